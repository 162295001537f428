from .identity import Identity, IdentityResolver, aidentity_from_user, identity_from_user
from .utils import aget_current_user, get_current_identity, get_current_user

__all__ = [
    "Identity",
    "IdentityResolver",
    "aget_current_user",
    "aidentity_from_user",
    "get_current_identity",
    "get_current_user",
    "identity_from_user",
]
