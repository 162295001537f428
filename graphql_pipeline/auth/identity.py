from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Union

from asgiref.sync import sync_to_async
from typing_extensions import TypeAlias

if TYPE_CHECKING:
    from graphql_pipeline.utils.typing import UserType


@dataclasses.dataclass(frozen=True)
class Identity:
    """Who is running the query.

    Either anonymous or authenticated with a `subject_id`. A Django user can
    be attached, in which case capability checks go through its permissions.
    """

    subject_id: Optional[str] = None
    capabilities: frozenset[str] = frozenset()
    user: Optional[UserType] = dataclasses.field(default=None, compare=False, repr=False)
    is_staff: bool = False
    token_rejected: bool = False

    @classmethod
    def anonymous(cls, *, token_rejected: bool = False) -> Identity:
        return cls(token_rejected=token_rejected)

    @classmethod
    def authenticated(
        cls,
        subject_id: Any,
        *,
        capabilities: Optional[set[str]] = None,
        is_staff: bool = False,
        user: Optional[UserType] = None,
    ) -> Identity:
        return cls(
            subject_id=str(subject_id),
            capabilities=frozenset(capabilities or ()),
            user=user,
            is_staff=is_staff,
        )

    @property
    def is_authenticated(self) -> bool:
        return self.subject_id is not None

    @property
    def is_anonymous(self) -> bool:
        return self.subject_id is None

    def has_capability(self, capability: str) -> bool:
        if self.user is not None:
            return self.user.has_perm(capability)
        return capability in self.capabilities


IdentityResolver: TypeAlias = Callable[
    [str],
    Union[Identity, Awaitable[Identity]],
]


def identity_from_user(user: Optional[UserType]) -> Identity:
    """Build an identity from a Django user (or anonymous user)."""
    if user is None or not user.is_authenticated or not getattr(user, "is_active", True):
        return Identity.anonymous()

    return Identity.authenticated(
        user.pk,
        capabilities=set(user.get_all_permissions()),
        is_staff=bool(getattr(user, "is_staff", False)),
        user=user,
    )


async def aidentity_from_user(user: Optional[UserType]) -> Identity:
    return await sync_to_async(identity_from_user)(user)
