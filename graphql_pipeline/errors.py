"""Field-level failures and their classification.

Resolvers may either raise one of the `PipelineError` subclasses below or
return a `Failure` directly. The engine turns both into `Failure` values, which
then flow through null propagation as plain data.
"""

from __future__ import annotations

import dataclasses
import enum
from typing import Any, ClassVar, Optional

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError


class ErrorCategory(str, enum.Enum):
    INPUT = "input"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not-found"
    SOURCE_UNAVAILABLE = "source-unavailable"
    INTERNAL = "internal"


class PipelineError(Exception):
    """Base for field-local failures raised from resolvers or loaders."""

    category: ClassVar[ErrorCategory] = ErrorCategory.INTERNAL
    default_message: ClassVar[str] = "Internal server error."

    def __init__(self, message: Optional[str] = None):
        self.message = message if message is not None else self.default_message
        super().__init__(self.message)


class InputError(PipelineError):
    category = ErrorCategory.INPUT
    default_message = "Invalid input."


class AuthenticationError(PipelineError):
    category = ErrorCategory.AUTHENTICATION
    default_message = "The current customer isn't authorized."


class AuthorizationError(PipelineError):
    category = ErrorCategory.AUTHORIZATION
    default_message = "You don't have permission to access this resource."


class NotFoundError(PipelineError):
    category = ErrorCategory.NOT_FOUND
    default_message = "The requested entity was not found."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        entity_type: Optional[str] = None,
        key: Any = None,
    ):
        self.entity_type = entity_type
        self.key = key
        if message is None and entity_type is not None:
            message = f'Could not find a "{entity_type}" for key "{key}".'
        super().__init__(message)


class SourceUnavailableError(PipelineError):
    category = ErrorCategory.SOURCE_UNAVAILABLE
    default_message = "The data source is unavailable."

    def __init__(self, message: Optional[str] = None, *, entity_type: Optional[str] = None):
        self.entity_type = entity_type
        if message is None and entity_type is not None:
            message = f'The data source for "{entity_type}" is unavailable.'
        super().__init__(message)


class InternalError(PipelineError):
    category = ErrorCategory.INTERNAL


class InvalidTokenError(Exception):
    """Raised by identity resolvers when a presented token can't be trusted."""


class QueryError(Exception):
    """The whole query is rejected before execution; no data is returned."""

    category: ClassVar[ErrorCategory] = ErrorCategory.INPUT

    def __init__(self, message: str, *, nodes: Any = None, path: Optional[list] = None):
        self.message = message
        self.nodes = nodes
        self.path = path if path is not None else []
        super().__init__(message)


@dataclasses.dataclass(frozen=True)
class Failure:
    """A typed, field-local failure."""

    category: ErrorCategory
    message: str
    original_error: Optional[BaseException] = dataclasses.field(
        default=None,
        compare=False,
        repr=False,
    )

    @classmethod
    def from_exception(cls, error: BaseException, *, internal_message: str) -> Failure:
        """Classify an exception raised while resolving a field.

        Anything not recognised becomes an `internal` failure whose message is
        `internal_message`, so details never reach the client.
        """
        if isinstance(error, PipelineError):
            message = error.message
            if error.category is ErrorCategory.INTERNAL:
                message = internal_message
            return cls(error.category, message, error)

        if isinstance(error, PermissionDenied):
            return cls(
                ErrorCategory.AUTHORIZATION,
                str(error) or AuthorizationError.default_message,
                error,
            )

        if isinstance(error, ObjectDoesNotExist):
            return cls(
                ErrorCategory.NOT_FOUND,
                str(error) or NotFoundError.default_message,
                error,
            )

        if isinstance(error, ValidationError):
            return cls(ErrorCategory.INPUT, "; ".join(error.messages), error)

        return cls(ErrorCategory.INTERNAL, internal_message, error)

    @property
    def is_internal(self) -> bool:
        return self.category is ErrorCategory.INTERNAL
