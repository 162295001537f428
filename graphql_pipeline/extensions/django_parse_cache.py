from graphql import DocumentNode, parse

from .django_cache_base import DjangoCacheBase


class DjangoParseCache(DjangoCacheBase):
    def parse(self, query: str) -> DocumentNode:
        return self.execute_cached(parse, query)
