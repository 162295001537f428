from __future__ import annotations

from collections.abc import Awaitable
from typing import TYPE_CHECKING, TypeVar, Union

if TYPE_CHECKING:
    from django.contrib.auth.base_user import AbstractBaseUser
    from django.contrib.auth.models import AnonymousUser
    from typing_extensions import TypeAlias

_T = TypeVar("_T")

UserType: TypeAlias = Union["AbstractBaseUser", "AnonymousUser"]
AwaitableOrValue: TypeAlias = Union[Awaitable[_T], _T]
