from __future__ import annotations

import contextvars
import dataclasses
import functools
import inspect
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Optional

from asgiref.sync import sync_to_async
from strawberry.utils.inspect import in_async_context

if TYPE_CHECKING:
    from graphql.pyutils import Path

    from .arguments import Argument
    from .context import ExecutionContext
    from .permissions import BasePolicy
    from .registry import SchemaRegistry
    from .selection import Operation, SelectionNode
    from .types import ObjectTypeDefinition, TypeRef


resolving_async: contextvars.ContextVar[bool] = contextvars.ContextVar(
    "graphql-pipeline-resolving-async",
    default=False,
)


def django_resolver(resolver: Callable[..., Any]) -> Callable[..., Any]:
    """Make sure a sync resolver is always called from a sync context.

    The Django ORM refuses to run inside an event loop, so when called from an
    async context the resolver runs through `sync_to_async`. Coroutine
    functions are returned unchanged.
    """
    if inspect.iscoroutinefunction(resolver):
        return resolver

    @sync_to_async
    def async_resolver(*args, **kwargs):
        token = resolving_async.set(True)
        try:
            return resolver(*args, **kwargs)
        finally:
            resolving_async.reset(token)

    @functools.wraps(resolver)
    def inner_wrapper(*args, **kwargs):
        f = (
            async_resolver
            if in_async_context() and not resolving_async.get()
            else resolver
        )
        return f(*args, **kwargs)

    return inner_wrapper


@dataclasses.dataclass(frozen=True)
class FieldDefinition:
    name: str
    owner: str
    type: TypeRef
    resolver: Optional[Callable[..., Any]] = None
    arguments: Mapping[str, Argument] = dataclasses.field(
        default_factory=lambda: MappingProxyType({}),
    )
    policies: tuple[BasePolicy, ...] = ()
    description: Optional[str] = None
    deprecation_reason: Optional[str] = None

    @property
    def coordinate(self) -> str:
        return f"{self.owner}.{self.name}"

    @property
    def is_deprecated(self) -> bool:
        return self.deprecation_reason is not None

    @functools.cached_property
    def _resolver(self) -> Callable[..., Any]:
        if self.resolver is None:
            return default_resolver
        return django_resolver(self.resolver)

    def resolve(self, source: Any, info: ResolveInfo, arguments: Mapping[str, Any]):
        return self._resolver(source, info, **arguments)


@dataclasses.dataclass(frozen=True)
class ResolveInfo:
    """Information about the field being resolved, passed to every resolver."""

    field: FieldDefinition
    parent_type: ObjectTypeDefinition
    path: Path
    nodes: tuple[SelectionNode, ...]
    context: ExecutionContext
    registry: SchemaRegistry
    operation: Operation

    @property
    def field_name(self) -> str:
        return self.field.name

    @property
    def response_key(self) -> str:
        return self.nodes[0].response_key

    @property
    def return_type(self) -> TypeRef:
        return self.field.type

    @property
    def selected_fields(self) -> list[str]:
        """Names of the sub fields requested below this field, in query order."""
        names: list[str] = []
        for node in self.nodes:
            for child in node.iter_fields():
                if child.name not in names:
                    names.append(child.name)
        return names


def default_resolver(source: Any, info: ResolveInfo, **kwargs: Any) -> Any:
    """Read the field from a mapping key or an attribute of the parent."""
    if isinstance(source, Mapping):
        value = source.get(info.field_name)
        return value(info, **kwargs) if callable(value) else value

    return _resolve_attribute(source, info, **kwargs)


@django_resolver
def _resolve_attribute(source: Any, info: ResolveInfo, **kwargs: Any) -> Any:
    # Attributes of model instances may need a query
    value = getattr(source, info.field_name, None)
    if callable(value):
        return value(info, **kwargs)

    return value
