from . import auth, extensions
from .arguments import Argument, argument
from .auth.identity import Identity, identity_from_user
from .context import ExecutionContext, Scope
from .errors import (
    AuthenticationError,
    AuthorizationError,
    ErrorCategory,
    Failure,
    InputError,
    InternalError,
    InvalidTokenError,
    NotFoundError,
    PipelineError,
    QueryError,
    SourceUnavailableError,
)
from .exceptions import (
    AmbiguousTypeError,
    DuplicateFieldError,
    DuplicateTypeError,
    InvalidSchemaError,
    RegistryFrozenError,
    SchemaDefinitionError,
    UnknownFieldError,
    UnknownTypeError,
)
from .fields import FieldDefinition, ResolveInfo
from .loaders import BatchLoader
from .permissions import (
    AllowAny,
    AuthorizationGate,
    BasePolicy,
    HasCapability,
    IsAuthenticated,
    IsOwner,
    IsStaff,
)
from .registry import SchemaRegistry
from .response import PartialResult
from .schema import Schema
from .selection import Operation, field, on
from .types import TypeRef

__all__ = [
    "AllowAny",
    "AmbiguousTypeError",
    "Argument",
    "AuthenticationError",
    "AuthorizationError",
    "AuthorizationGate",
    "BasePolicy",
    "BatchLoader",
    "DuplicateFieldError",
    "DuplicateTypeError",
    "ErrorCategory",
    "ExecutionContext",
    "Failure",
    "FieldDefinition",
    "HasCapability",
    "Identity",
    "InputError",
    "InternalError",
    "InvalidSchemaError",
    "InvalidTokenError",
    "IsAuthenticated",
    "IsOwner",
    "IsStaff",
    "NotFoundError",
    "Operation",
    "PartialResult",
    "PipelineError",
    "QueryError",
    "RegistryFrozenError",
    "ResolveInfo",
    "Schema",
    "SchemaDefinitionError",
    "SchemaRegistry",
    "Scope",
    "SourceUnavailableError",
    "TypeRef",
    "UnknownFieldError",
    "UnknownTypeError",
    "argument",
    "auth",
    "extensions",
    "field",
    "identity_from_user",
    "on",
]
