from __future__ import annotations

import dataclasses
import enum
import functools
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Optional, Union, cast

from graphql import (
    GraphQLBoolean,
    GraphQLError,
    GraphQLFloat,
    GraphQLID,
    GraphQLInt,
    GraphQLScalarType,
    GraphQLString,
    ListTypeNode,
    NonNullTypeNode,
    TypeNode,
    parse_type,
)

if TYPE_CHECKING:
    from typing_extensions import Self

    from .arguments import Argument
    from .fields import FieldDefinition, ResolveInfo

__all__ = [
    "BUILTIN_SCALARS",
    "EnumTypeDefinition",
    "InputTypeDefinition",
    "InterfaceTypeDefinition",
    "NamedTypeDefinition",
    "ObjectTypeDefinition",
    "ScalarTypeDefinition",
    "TypeKind",
    "TypeRef",
    "UnionTypeDefinition",
]


@dataclasses.dataclass(frozen=True)
class TypeRef:
    """A reference to a type, as written in SDL (e.g. `[Product!]!`)."""

    name: Optional[str] = None
    of_type: Optional[TypeRef] = None
    nullable: bool = True

    def __post_init__(self):
        if (self.name is None) == (self.of_type is None):
            raise TypeError("A type reference is either named or a list")

    def __str__(self) -> str:
        inner = self.name if self.of_type is None else f"[{self.of_type}]"
        return inner if self.nullable else f"{inner}!"

    @property
    def is_list(self) -> bool:
        return self.of_type is not None

    @property
    def named_type(self) -> str:
        ref = self
        while ref.of_type is not None:
            ref = ref.of_type
        return cast("str", ref.name)

    @property
    def depth(self) -> int:
        """How many list wrappers this reference has."""
        depth = 0
        ref = self
        while ref.of_type is not None:
            depth += 1
            ref = ref.of_type
        return depth

    def as_nullable(self) -> Self:
        return dataclasses.replace(self, nullable=True)

    @classmethod
    def parse(cls, source: Union[str, TypeRef]) -> TypeRef:
        if isinstance(source, TypeRef):
            return source
        return _parse_type_ref(source)


def _from_type_node(node: TypeNode, *, nullable: bool = True) -> TypeRef:
    if isinstance(node, NonNullTypeNode):
        return _from_type_node(node.type, nullable=False)

    if isinstance(node, ListTypeNode):
        return TypeRef(of_type=_from_type_node(node.type), nullable=nullable)

    return TypeRef(name=node.name.value, nullable=nullable)  # type: ignore


@functools.lru_cache(maxsize=1024)
def _parse_type_ref(source: str) -> TypeRef:
    try:
        node = parse_type(source)
    except GraphQLError as e:
        raise TypeError(f"Invalid type reference {source!r}: {e.message}") from e

    return _from_type_node(node)


class TypeKind(enum.Enum):
    OBJECT = "object"
    INTERFACE = "interface"
    UNION = "union"
    SCALAR = "scalar"
    ENUM = "enum"
    INPUT = "input"


@dataclasses.dataclass
class NamedTypeDefinition:
    KIND: ClassVar[TypeKind]

    name: str
    description: Optional[str] = dataclasses.field(default=None, kw_only=True)

    @property
    def kind(self) -> TypeKind:
        return self.KIND

    @property
    def is_leaf(self) -> bool:
        return self.KIND in (TypeKind.SCALAR, TypeKind.ENUM)

    @property
    def is_abstract(self) -> bool:
        return self.KIND in (TypeKind.INTERFACE, TypeKind.UNION)

    @property
    def is_composite(self) -> bool:
        return self.KIND in (TypeKind.OBJECT, TypeKind.INTERFACE, TypeKind.UNION)


@dataclasses.dataclass
class ObjectTypeDefinition(NamedTypeDefinition):
    KIND: ClassVar[TypeKind] = TypeKind.OBJECT

    interfaces: tuple[str, ...] = ()
    is_type_of: Optional[Callable[[Any, ResolveInfo], bool]] = None
    fields: dict[str, FieldDefinition] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class InterfaceTypeDefinition(NamedTypeDefinition):
    KIND: ClassVar[TypeKind] = TypeKind.INTERFACE

    resolve_type: Optional[Callable[[Any, ResolveInfo], Optional[str]]] = None
    fields: dict[str, FieldDefinition] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class UnionTypeDefinition(NamedTypeDefinition):
    KIND: ClassVar[TypeKind] = TypeKind.UNION

    types: tuple[str, ...] = ()
    resolve_type: Optional[Callable[[Any, ResolveInfo], Optional[str]]] = None


@dataclasses.dataclass
class ScalarTypeDefinition(NamedTypeDefinition):
    KIND: ClassVar[TypeKind] = TypeKind.SCALAR

    serialize: Callable[[Any], Any] = lambda value: value
    parse_value: Callable[[Any], Any] = lambda value: value

    @classmethod
    def from_graphql(cls, scalar: GraphQLScalarType) -> ScalarTypeDefinition:
        return cls(
            scalar.name,
            description=scalar.description,
            serialize=scalar.serialize,
            parse_value=scalar.parse_value,
        )


@dataclasses.dataclass
class EnumTypeDefinition(NamedTypeDefinition):
    """An enum type.

    `values` maps the GraphQL name of each value to the python value
    resolvers use. Python `enum.Enum` classes can be passed as well.
    """

    KIND: ClassVar[TypeKind] = TypeKind.ENUM

    values: dict[str, Any] = dataclasses.field(default_factory=dict)

    def serialize(self, value: Any) -> str:
        for name, python_value in self.values.items():
            if value == python_value or value == name:
                return name

        if isinstance(value, enum.Enum) and value.name in self.values:
            return value.name

        raise TypeError(f'Enum "{self.name}" cannot represent value: {value!r}')

    def parse_value(self, value: Any) -> Any:
        if isinstance(value, str) and value in self.values:
            return self.values[value]

        raise TypeError(f'Value "{value}" does not exist in "{self.name}" enum.')


@dataclasses.dataclass
class InputTypeDefinition(NamedTypeDefinition):
    KIND: ClassVar[TypeKind] = TypeKind.INPUT

    fields: dict[str, Argument] = dataclasses.field(default_factory=dict)


BUILTIN_SCALARS: dict[str, ScalarTypeDefinition] = {
    scalar.name: ScalarTypeDefinition.from_graphql(scalar)
    for scalar in (
        GraphQLString,
        GraphQLInt,
        GraphQLFloat,
        GraphQLBoolean,
        GraphQLID,
    )
}
