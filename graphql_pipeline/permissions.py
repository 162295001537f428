from __future__ import annotations

import abc
import inspect
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, ClassVar, Optional, Union

from .errors import AuthenticationError, ErrorCategory, Failure
from .fields import django_resolver

if TYPE_CHECKING:
    from .auth.identity import Identity
    from .fields import ResolveInfo
    from .utils.typing import AwaitableOrValue

INVALID_TOKEN_MESSAGE = "The access token is invalid or has expired."


class BasePolicy(abc.ABC):
    """Base authorization policy.

    A policy is a predicate over the identity running the query and the
    field being resolved. It never encodes how to react to a denial, the
    `AuthorizationGate` does that.
    """

    DEFAULT_ERROR_MESSAGE: ClassVar[str] = "You don't have permission to access this field."

    #: Anonymous identities are denied with an `authentication` error before
    #: `check` is even called.
    requires_authentication: ClassVar[bool] = True

    def __init__(self, *, message: Optional[str] = None):
        self.message = message if message is not None else self.DEFAULT_ERROR_MESSAGE

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    @abc.abstractmethod
    def check(
        self,
        identity: Identity,
        *,
        info: ResolveInfo,
        source: Any,
        arguments: Mapping[str, Any],
    ) -> AwaitableOrValue[bool]: ...


class AllowAny(BasePolicy):
    """Allow everyone, including anonymous identities."""

    requires_authentication: ClassVar[bool] = False

    def check(self, identity, *, info, source, arguments) -> bool:
        return True


class IsAuthenticated(BasePolicy):
    """Mark a field as only resolvable by authenticated identities."""

    DEFAULT_ERROR_MESSAGE: ClassVar[str] = "The current customer isn't authorized."

    def check(self, identity, *, info, source, arguments) -> bool:
        return identity.is_authenticated


class IsStaff(BasePolicy):
    """Mark a field as only resolvable by staff members."""

    DEFAULT_ERROR_MESSAGE: ClassVar[str] = "User is not a staff member."

    def check(self, identity, *, info, source, arguments) -> bool:
        return identity.is_staff


def _default_capability_checker(identity: Identity, capability: str) -> bool:
    return identity.has_capability(capability)


class HasCapability(BasePolicy):
    """Require any (or all) of the given capabilities.

    Capabilities are checked through the Django user's permissions when the
    identity carries one, otherwise against the identity's capability set.
    A custom `checker` can delegate to any other policy collaborator.
    """

    DEFAULT_ERROR_MESSAGE: ClassVar[str] = "You don't have permission to access this resource."

    def __init__(
        self,
        capabilities: Union[str, Sequence[str]],
        *,
        any_capability: bool = True,
        checker: Optional[Callable[[Identity, str], AwaitableOrValue[bool]]] = None,
        message: Optional[str] = None,
    ):
        super().__init__(message=message)

        if isinstance(capabilities, str):
            capabilities = [capabilities]

        if not capabilities:
            raise TypeError(f"At least one capability is required for {self!r}")

        self.capabilities = tuple(capabilities)
        self.any_capability = any_capability
        self.checker = checker if checker is not None else _default_capability_checker

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({list(getattr(self, 'capabilities', ()))!r})"

    async def check(self, identity, *, info, source, arguments) -> bool:
        results = []
        for capability in self.capabilities:
            allowed = django_resolver(self.checker)(identity, capability)
            while inspect.isawaitable(allowed):
                allowed = await allowed
            results.append(bool(allowed))

        f = any if self.any_capability else all
        return f(results)


class IsOwner(BasePolicy):
    """Allow only the identity owning the resource.

    `owner_of` receives the parent value and the field arguments and returns
    the subject id of the owner.
    """

    DEFAULT_ERROR_MESSAGE: ClassVar[str] = (
        "The current user cannot perform operations on this resource."
    )

    def __init__(
        self,
        owner_of: Callable[[Any, Mapping[str, Any]], AwaitableOrValue[Any]],
        *,
        message: Optional[str] = None,
    ):
        super().__init__(message=message)
        self.owner_of = owner_of

    async def check(self, identity, *, info, source, arguments) -> bool:
        owner = django_resolver(self.owner_of)(source, arguments)
        while inspect.isawaitable(owner):
            owner = await owner

        return owner is not None and str(owner) == identity.subject_id


class AuthorizationGate:
    """Runs the policies of a field before its resolver is allowed to run."""

    async def authorize(
        self,
        policies: Iterable[BasePolicy],
        identity: Identity,
        *,
        info: ResolveInfo,
        source: Any,
        arguments: Mapping[str, Any],
    ) -> Optional[Failure]:
        """Return `None` to allow, or the `Failure` the field resolves to."""
        for policy in policies:
            if policy.requires_authentication and not identity.is_authenticated:
                message = (
                    INVALID_TOKEN_MESSAGE
                    if identity.token_rejected
                    else (
                        policy.message
                        if isinstance(policy, IsAuthenticated)
                        else AuthenticationError.default_message
                    )
                )
                return Failure(ErrorCategory.AUTHENTICATION, message)

            # Checks may consult the Django user, which can need a query
            allowed = django_resolver(policy.check)(
                identity,
                info=info,
                source=source,
                arguments=arguments,
            )
            while inspect.isawaitable(allowed):
                allowed = await allowed

            if not allowed:
                return Failure(ErrorCategory.AUTHORIZATION, policy.message)

        return None
