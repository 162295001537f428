from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Optional, overload

from asgiref.sync import sync_to_async

from graphql_pipeline.errors import AuthenticationError

if TYPE_CHECKING:
    from graphql_pipeline.auth.identity import Identity
    from graphql_pipeline.fields import ResolveInfo
    from graphql_pipeline.utils.typing import UserType


def get_current_identity(info: ResolveInfo) -> Identity:
    return info.context.identity


@overload
def get_current_user(info: ResolveInfo, *, strict: Literal[True]) -> UserType: ...


@overload
def get_current_user(info: ResolveInfo, *, strict: bool = False) -> Optional[UserType]: ...


def get_current_user(info: ResolveInfo, *, strict: bool = False) -> Optional[UserType]:
    """Get and return the Django user attached to the identity running the query.

    With `strict`, fail with an `authentication` error when there is none.
    """
    identity = get_current_identity(info)
    user = identity.user

    if user is None and strict:
        raise AuthenticationError

    return user


@overload
async def aget_current_user(
    info: ResolveInfo,
    *,
    strict: Literal[True],
) -> UserType: ...


@overload
async def aget_current_user(
    info: ResolveInfo,
    *,
    strict: bool = False,
) -> Optional[UserType]: ...


async def aget_current_user(info: ResolveInfo, *, strict: bool = False) -> Optional[UserType]:
    return await sync_to_async(get_current_user)(info, strict=strict)
