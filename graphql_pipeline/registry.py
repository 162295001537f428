"""The schema registry.

Holds every type and field definition, the resolver bound to each field, the
functions used to resolve abstract types and the fetch functions used by the
batch loader. It is built once, frozen, and then shared read-only by every
query.
"""

from __future__ import annotations

import enum
import inspect
from collections.abc import Callable, Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Optional, TypeVar, Union

from .arguments import Argument, normalize_arguments
from .exceptions import (
    AmbiguousTypeError,
    DuplicateFieldError,
    DuplicateTypeError,
    InvalidSchemaError,
    RegistryFrozenError,
    UnknownFieldError,
    UnknownTypeError,
)
from .fields import FieldDefinition
from .types import (
    BUILTIN_SCALARS,
    EnumTypeDefinition,
    InputTypeDefinition,
    InterfaceTypeDefinition,
    NamedTypeDefinition,
    ObjectTypeDefinition,
    ScalarTypeDefinition,
    TypeRef,
    UnionTypeDefinition,
)

if TYPE_CHECKING:
    from .fields import ResolveInfo
    from .loaders import FetchFunction
    from .permissions import BasePolicy

_T = TypeVar("_T", bound=NamedTypeDefinition)
_F = TypeVar("_F", bound=Callable[..., Any])

ArgumentSpec = Union[str, TypeRef, Argument]


class SchemaRegistry:
    def __init__(self, *, query: str = "Query", mutation: Optional[str] = None):
        self.query_type = query
        self.mutation_type = mutation
        self._types: dict[str, NamedTypeDefinition] = dict(BUILTIN_SCALARS)
        self._type_resolvers: dict[str, Callable[[Any, ResolveInfo], Optional[str]]] = {}
        self._loaders: dict[str, FetchFunction] = {}
        self._frozen = False

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"<{self.__class__.__name__} {len(self._types)} types ({state})>"

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def types(self) -> Mapping[str, NamedTypeDefinition]:
        return MappingProxyType(self._types)

    @property
    def loaders(self) -> Mapping[str, FetchFunction]:
        return MappingProxyType(self._loaders)

    def _check_open(self):
        if self._frozen:
            raise RegistryFrozenError

    def _add_type(self, type_def: _T) -> _T:
        self._check_open()
        if type_def.name in self._types:
            raise DuplicateTypeError(type_def.name)

        self._types[type_def.name] = type_def
        return type_def

    # Types

    def object_type(
        self,
        name: str,
        *,
        interfaces: Sequence[str] = (),
        is_type_of: Optional[Callable[[Any, ResolveInfo], bool]] = None,
        description: Optional[str] = None,
    ) -> ObjectTypeDefinition:
        return self._add_type(
            ObjectTypeDefinition(
                name,
                description=description,
                interfaces=tuple(interfaces),
                is_type_of=is_type_of,
            ),
        )

    def interface_type(
        self,
        name: str,
        *,
        resolve_type: Optional[Callable[[Any, ResolveInfo], Optional[str]]] = None,
        description: Optional[str] = None,
    ) -> InterfaceTypeDefinition:
        return self._add_type(
            InterfaceTypeDefinition(
                name,
                description=description,
                resolve_type=resolve_type,
            ),
        )

    def union_type(
        self,
        name: str,
        types: Sequence[str],
        *,
        resolve_type: Optional[Callable[[Any, ResolveInfo], Optional[str]]] = None,
        description: Optional[str] = None,
    ) -> UnionTypeDefinition:
        if not types:
            raise TypeError(f"Union {name!r} needs at least one member type")

        return self._add_type(
            UnionTypeDefinition(
                name,
                description=description,
                types=tuple(types),
                resolve_type=resolve_type,
            ),
        )

    def scalar_type(
        self,
        name: str,
        *,
        serialize: Callable[[Any], Any] = lambda value: value,
        parse_value: Callable[[Any], Any] = lambda value: value,
        description: Optional[str] = None,
    ) -> ScalarTypeDefinition:
        return self._add_type(
            ScalarTypeDefinition(
                name,
                description=description,
                serialize=serialize,
                parse_value=parse_value,
            ),
        )

    def enum_type(
        self,
        name: str,
        values: Union[Mapping[str, Any], Iterable[str], type[enum.Enum]],
        *,
        description: Optional[str] = None,
    ) -> EnumTypeDefinition:
        if isinstance(values, type) and issubclass(values, enum.Enum):
            mapping = {member.name: member for member in values}
        elif isinstance(values, Mapping):
            mapping = dict(values)
        else:
            mapping = {value: value for value in values}

        return self._add_type(
            EnumTypeDefinition(name, description=description, values=mapping),
        )

    def input_type(
        self,
        name: str,
        fields: Mapping[str, ArgumentSpec],
        *,
        description: Optional[str] = None,
    ) -> InputTypeDefinition:
        return self._add_type(
            InputTypeDefinition(
                name,
                description=description,
                fields=normalize_arguments(fields),
            ),
        )

    def get_type(self, name: str) -> NamedTypeDefinition:
        try:
            return self._types[name]
        except KeyError:
            raise UnknownTypeError(name) from None

    def has_type(self, name: str) -> bool:
        return name in self._types

    def get_root_type(self, operation: str) -> ObjectTypeDefinition:
        name = self.mutation_type if operation == "mutation" else self.query_type
        if name is None:
            raise UnknownTypeError(operation)

        root = self.get_type(name)
        if not isinstance(root, ObjectTypeDefinition):
            raise UnknownTypeError(name)
        return root

    # Fields

    def register(
        self,
        type_name: str,
        field_name: str,
        resolver: Optional[Callable[..., Any]] = None,
        *,
        returns: Union[str, TypeRef],
        arguments: Optional[Mapping[str, ArgumentSpec]] = None,
        policies: Sequence[BasePolicy] = (),
        description: Optional[str] = None,
        deprecation_reason: Optional[str] = None,
    ) -> FieldDefinition:
        """Bind a resolver to `type_name.field_name`.

        Fails with `DuplicateFieldError` if the pair was registered before.
        A `None` resolver reads the value from the parent object.
        """
        self._check_open()

        owner = self.get_type(type_name)
        if not isinstance(owner, (ObjectTypeDefinition, InterfaceTypeDefinition)):
            raise TypeError(f"Fields can only be registered on object or interface types, not {type_name!r}")

        if field_name in owner.fields:
            raise DuplicateFieldError(type_name, field_name, resolver)

        if field_name.startswith("__"):
            raise TypeError(f"Field name {field_name!r} is reserved")

        field = FieldDefinition(
            name=field_name,
            owner=type_name,
            type=TypeRef.parse(returns),
            resolver=resolver,
            arguments=MappingProxyType(normalize_arguments(arguments)),
            policies=tuple(policies),
            description=description,
            deprecation_reason=deprecation_reason,
        )
        owner.fields[field_name] = field
        return field

    def field(
        self,
        type_name: str,
        field_name: Optional[str] = None,
        **options: Any,
    ) -> Callable[[_F], _F]:
        """Register the decorated function as a resolver.

        >>> @registry.field("Query", returns="[Product!]!")
        ... def products(root, info, sku: str): ...
        """

        def wrapper(resolver: _F) -> _F:
            self.register(
                type_name,
                field_name if field_name is not None else resolver.__name__,
                resolver,
                **options,
            )
            return resolver

        return wrapper

    def lookup(self, type_name: str, field_name: str) -> FieldDefinition:
        """Return the field definition, failing with `UnknownFieldError`."""
        owner = self._types.get(type_name)
        if not isinstance(owner, (ObjectTypeDefinition, InterfaceTypeDefinition)):
            raise UnknownFieldError(type_name, field_name)

        field = owner.fields.get(field_name)
        if field is not None:
            return field

        if isinstance(owner, ObjectTypeDefinition):
            for interface_name in owner.interfaces:
                interface = self._types.get(interface_name)
                if isinstance(interface, InterfaceTypeDefinition):
                    field = interface.fields.get(field_name)
                    if field is not None:
                        return field

        raise UnknownFieldError(type_name, field_name)

    # Abstract types

    def register_type_resolver(
        self,
        abstract_type: str,
        resolve_type: Callable[[Any, ResolveInfo], Optional[str]],
    ) -> None:
        self._check_open()
        type_def = self.get_type(abstract_type)
        if not type_def.is_abstract:
            raise TypeError(f"{abstract_type!r} is not an interface or union")

        self._type_resolvers[abstract_type] = resolve_type

    def possible_types(self, abstract_type: str) -> list[ObjectTypeDefinition]:
        type_def = self.get_type(abstract_type)
        if isinstance(type_def, ObjectTypeDefinition):
            return [type_def]

        if isinstance(type_def, UnionTypeDefinition):
            return [
                t for name in type_def.types
                if isinstance(t := self._types.get(name), ObjectTypeDefinition)
            ]

        return [
            t for t in self._types.values()
            if isinstance(t, ObjectTypeDefinition) and abstract_type in t.interfaces
        ]

    def is_possible_type(self, abstract_type: str, object_type: str) -> bool:
        return any(t.name == object_type for t in self.possible_types(abstract_type))

    def resolve_abstract_type(
        self,
        abstract_type: str,
        value: Any,
        info: ResolveInfo,
    ) -> ObjectTypeDefinition:
        """Find the concrete object type of `value` for an interface or union.

        Fails with `AmbiguousTypeError` when no strategy yields exactly one
        possible type.
        """
        type_def = self.get_type(abstract_type)
        possible = {t.name: t for t in self.possible_types(abstract_type)}

        resolve_type = self._type_resolvers.get(abstract_type) or getattr(
            type_def,
            "resolve_type",
            None,
        )
        if resolve_type is not None:
            name = resolve_type(value, info)
            if inspect.isawaitable(name):
                raise TypeError("Type resolvers must be synchronous")
            if name in possible:
                return possible[name]
            raise AmbiguousTypeError(abstract_type)

        typename = (
            value.get("__typename")
            if isinstance(value, Mapping)
            else getattr(value, "__typename", None)
        )
        if typename is not None:
            if typename in possible:
                return possible[typename]
            raise AmbiguousTypeError(abstract_type)

        matches = [
            t for t in possible.values()
            if t.is_type_of is not None and t.is_type_of(value, info)
        ]
        if len(matches) != 1:
            raise AmbiguousTypeError(abstract_type, [t.name for t in matches])

        return matches[0]

    # Loaders

    def register_loader(self, entity_type: str, fetch: FetchFunction) -> None:
        """Bind the function fetching `entity_type` values for a set of keys."""
        self._check_open()
        if entity_type in self._loaders:
            raise ValueError(f"A loader for {entity_type!r} is already registered")

        self._loaders[entity_type] = fetch

    def loader(self, entity_type: str) -> Callable[[_F], _F]:
        def wrapper(fetch: _F) -> _F:
            self.register_loader(entity_type, fetch)
            return fetch

        return wrapper

    def get_loader(self, entity_type: str) -> Optional[FetchFunction]:
        return self._loaders.get(entity_type)

    # Validation

    def freeze(self) -> SchemaRegistry:
        """Check the registry for consistency and make it read-only."""
        if self._frozen:
            return self

        problems = list(self._collect_problems())
        if problems:
            raise InvalidSchemaError(problems)

        for type_def in self._types.values():
            if isinstance(type_def, (ObjectTypeDefinition, InterfaceTypeDefinition)):
                type_def.fields = MappingProxyType(type_def.fields)  # type: ignore

        self._frozen = True
        return self

    def _collect_problems(self) -> Iterable[str]:
        for operation, name in (("query", self.query_type), ("mutation", self.mutation_type)):
            if name is None:
                continue
            if not isinstance(self._types.get(name), ObjectTypeDefinition):
                yield f'Root {operation} type "{name}" is not a defined object type'

        for type_def in self._types.values():
            if isinstance(type_def, (ObjectTypeDefinition, InterfaceTypeDefinition)):
                for field in type_def.fields.values():
                    if field.type.named_type not in self._types:
                        yield f'Field "{field.coordinate}" returns unknown type "{field.type.named_type}"'
                    for arg_name, arg in field.arguments.items():
                        yield from self._check_input_ref(f"{field.coordinate}({arg_name})", arg.type)

            if isinstance(type_def, ObjectTypeDefinition):
                for interface_name in type_def.interfaces:
                    interface = self._types.get(interface_name)
                    if not isinstance(interface, InterfaceTypeDefinition):
                        yield f'Type "{type_def.name}" implements unknown interface "{interface_name}"'
                        continue
                    # Fields missing on the object are inherited, see `lookup`
                    for name, field in type_def.fields.items():
                        inherited = interface.fields.get(name)
                        if inherited is not None and inherited.type.named_type != field.type.named_type:
                            yield (
                                f'Field "{field.coordinate}" does not match the type of '
                                f'"{inherited.coordinate}"'
                            )

            if isinstance(type_def, UnionTypeDefinition):
                for member in type_def.types:
                    if not isinstance(self._types.get(member), ObjectTypeDefinition):
                        yield f'Union "{type_def.name}" member "{member}" is not an object type'

            if isinstance(type_def, InputTypeDefinition):
                for field_name, arg in type_def.fields.items():
                    yield from self._check_input_ref(f"{type_def.name}.{field_name}", arg.type)

    def _check_input_ref(self, where: str, type_ref: TypeRef) -> Iterable[str]:
        type_def = self._types.get(type_ref.named_type)
        if type_def is None:
            yield f'"{where}" uses unknown type "{type_ref.named_type}"'
        elif type_def.is_composite:
            yield f'"{where}" uses output type "{type_def.name}" as an input'
