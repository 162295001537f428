from .django_cache_base import DjangoCacheBase
from .django_parse_cache import DjangoParseCache

__all__ = [
    "DjangoCacheBase",
    "DjangoParseCache",
]
