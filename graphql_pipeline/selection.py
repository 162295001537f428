"""Selection trees and their mapping onto the schema registry.

Parsing is left to graphql-core. This module turns a parsed document into the
immutable `SelectionNode` tree the engine walks, and checks that the tree can
be mapped onto the registry before anything gets resolved.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any, Optional, Union

from graphql import (
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    NonNullTypeNode,
    OperationDefinitionNode,
    OperationType,
    SelectionSetNode,
)
from graphql.pyutils import Undefined
from graphql.utilities import value_from_ast_untyped
from typing_extensions import Literal, TypeAlias

from .errors import QueryError
from .exceptions import UnknownFieldError
from .types import ObjectTypeDefinition, UnionTypeDefinition

if TYPE_CHECKING:
    from graphql import DirectiveNode

    from .registry import SchemaRegistry
    from .types import NamedTypeDefinition

TYPENAME_FIELD = "__typename"


@dataclasses.dataclass(frozen=True)
class SelectionNode:
    """A requested field with its alias, argument values and sub selections."""

    name: str
    alias: Optional[str] = None
    arguments: Mapping[str, Any] = dataclasses.field(default_factory=dict)
    selections: tuple[Selection, ...] = ()
    ast: Optional[FieldNode] = dataclasses.field(
        default=None,
        compare=False,
        repr=False,
    )

    @property
    def response_key(self) -> str:
        return self.alias or self.name

    def iter_fields(self) -> Iterator[SelectionNode]:
        """Yield the direct sub fields, looking through fragments."""
        yield from _iter_fields(self.selections)


@dataclasses.dataclass(frozen=True)
class FragmentNode:
    """An inline fragment or an expanded named fragment spread."""

    type_condition: Optional[str]
    selections: tuple[Selection, ...] = ()


Selection: TypeAlias = Union[SelectionNode, FragmentNode]
OperationKind: TypeAlias = Literal["query", "mutation"]


@dataclasses.dataclass(frozen=True)
class Operation:
    kind: OperationKind
    selections: tuple[Selection, ...]
    name: Optional[str] = None


def _iter_fields(selections: tuple[Selection, ...]) -> Iterator[SelectionNode]:
    for selection in selections:
        if isinstance(selection, FragmentNode):
            yield from _iter_fields(selection.selections)
        else:
            yield selection


def field(
    name: str,
    *selections: Selection,
    alias: Optional[str] = None,
    **arguments: Any,
) -> SelectionNode:
    """Shortcut to build a selection tree by hand.

    >>> field("products", field("sku"), field("name"), search="shirt")
    """
    return SelectionNode(name, alias=alias, arguments=arguments, selections=selections)


def on(type_condition: Optional[str], *selections: Selection) -> FragmentNode:
    return FragmentNode(type_condition, selections)


# Document conversion


def build_selection(
    document: DocumentNode,
    operation_name: Optional[str] = None,
    variables: Optional[Mapping[str, Any]] = None,
) -> Operation:
    """Convert a parsed document into an `Operation`.

    Variables are substituted, named fragments are expanded into
    `FragmentNode`s and `@skip`/`@include` directives are applied.
    """
    operation: Optional[OperationDefinitionNode] = None
    fragments: dict[str, FragmentDefinitionNode] = {}

    for definition in document.definitions:
        if isinstance(definition, FragmentDefinitionNode):
            fragments[definition.name.value] = definition
        elif isinstance(definition, OperationDefinitionNode):
            if operation_name is None:
                if operation is not None:
                    raise QueryError(
                        "Must provide operation name if query contains multiple operations.",
                    )
                operation = definition
            elif definition.name and definition.name.value == operation_name:
                operation = definition

    if operation is None:
        if operation_name is not None:
            raise QueryError(f"Unknown operation named '{operation_name}'.")
        raise QueryError("Must provide an operation.")

    if operation.operation == OperationType.SUBSCRIPTION:
        raise QueryError("Subscriptions are not supported.", nodes=operation)

    variable_values = _collect_variables(operation, variables or {})
    converter = _SelectionConverter(fragments, variable_values)

    return Operation(
        kind="mutation" if operation.operation == OperationType.MUTATION else "query",
        selections=converter.convert(operation.selection_set),
        name=operation.name.value if operation.name else None,
    )


def _collect_variables(
    operation: OperationDefinitionNode,
    variables: Mapping[str, Any],
) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for definition in operation.variable_definitions or ():
        name = definition.variable.name.value
        if name in variables:
            values[name] = variables[name]
        elif definition.default_value is not None:
            values[name] = value_from_ast_untyped(definition.default_value)
        elif isinstance(definition.type, NonNullTypeNode):
            raise QueryError(
                f"Variable '${name}' of required type was not provided.",
                nodes=definition,
            )

    return values


class _SelectionConverter:
    def __init__(
        self,
        fragments: Mapping[str, FragmentDefinitionNode],
        variables: Mapping[str, Any],
    ):
        self.fragments = fragments
        self.variables = variables
        self._spreading: list[str] = []

    def convert(self, selection_set: Optional[SelectionSetNode]) -> tuple[Selection, ...]:
        if selection_set is None:
            return ()

        selections: list[Selection] = []
        for node in selection_set.selections:
            if not self._should_include(node.directives):
                continue

            if isinstance(node, FieldNode):
                selections.append(
                    SelectionNode(
                        node.name.value,
                        alias=node.alias.value if node.alias else None,
                        arguments=self._arguments(node),
                        selections=self.convert(node.selection_set),
                        ast=node,
                    ),
                )
            elif isinstance(node, InlineFragmentNode):
                selections.append(
                    FragmentNode(
                        node.type_condition.name.value if node.type_condition else None,
                        self.convert(node.selection_set),
                    ),
                )
            elif isinstance(node, FragmentSpreadNode):
                selections.append(self._spread(node))

        return tuple(selections)

    def _spread(self, node: FragmentSpreadNode) -> FragmentNode:
        name = node.name.value
        fragment = self.fragments.get(name)
        if fragment is None:
            raise QueryError(f"Unknown fragment '{name}'.", nodes=node)

        if name in self._spreading:
            raise QueryError(f"Cannot spread fragment '{name}' within itself.", nodes=node)

        self._spreading.append(name)
        try:
            return FragmentNode(
                fragment.type_condition.name.value,
                self.convert(fragment.selection_set),
            )
        finally:
            self._spreading.pop()

    def _arguments(self, node: FieldNode) -> dict[str, Any]:
        arguments: dict[str, Any] = {}
        for arg in node.arguments or ():
            value = value_from_ast_untyped(arg.value, self.variables)
            if value is not Undefined:
                arguments[arg.name.value] = value
        return arguments

    def _should_include(self, directives: Optional[tuple[DirectiveNode, ...]]) -> bool:
        for directive in directives or ():
            name = directive.name.value
            if name not in ("skip", "include"):
                continue

            condition = None
            for arg in directive.arguments or ():
                if arg.name.value == "if":
                    condition = value_from_ast_untyped(arg.value, self.variables)

            if name == "skip" and condition is True:
                return False
            if name == "include" and condition is not True:
                return False

        return True


# Field collection and validation


def does_fragment_condition_match(
    registry: SchemaRegistry,
    type_condition: Optional[str],
    object_type: ObjectTypeDefinition,
) -> bool:
    if type_condition is None or type_condition == object_type.name:
        return True

    condition = registry.types.get(type_condition)
    if condition is None or not condition.is_abstract:
        return False

    return registry.is_possible_type(type_condition, object_type.name)


def collect_fields(
    registry: SchemaRegistry,
    object_type: ObjectTypeDefinition,
    selections: tuple[Selection, ...],
) -> dict[str, list[SelectionNode]]:
    """Group the selected fields for `object_type` by response key, in query order."""
    fields: dict[str, list[SelectionNode]] = {}

    def visit(selections: tuple[Selection, ...]):
        for selection in selections:
            if isinstance(selection, FragmentNode):
                if does_fragment_condition_match(
                    registry,
                    selection.type_condition,
                    object_type,
                ):
                    visit(selection.selections)
            else:
                fields.setdefault(selection.response_key, []).append(selection)

    visit(selections)
    return fields


def merge_selections(nodes: list[SelectionNode]) -> tuple[Selection, ...]:
    if len(nodes) == 1:
        return nodes[0].selections

    merged: list[Selection] = []
    for node in nodes:
        merged.extend(node.selections)
    return tuple(merged)


def validate_selection(
    registry: SchemaRegistry,
    root: ObjectTypeDefinition,
    selections: tuple[Selection, ...],
    *,
    max_depth: Optional[int] = None,
) -> None:
    """Make sure every selected field can be mapped onto the registry.

    Raises `QueryError` for the first problem found, which aborts the whole
    query.
    """

    def visit(
        type_def: NamedTypeDefinition,
        selections: tuple[Selection, ...],
        path: list[str],
        depth: int,
    ):
        for selection in selections:
            if isinstance(selection, FragmentNode):
                target = type_def
                if selection.type_condition is not None:
                    target = registry.types.get(selection.type_condition)
                    if target is None:
                        raise QueryError(
                            f"Unknown type '{selection.type_condition}'.",
                            path=path,
                        )
                    if not target.is_composite:
                        raise QueryError(
                            f"Fragment cannot condition on non composite type "
                            f"'{selection.type_condition}'.",
                            path=path,
                        )
                visit(target, selection.selections, path, depth)
                continue

            field_path = [*path, selection.response_key]

            if max_depth is not None and depth > max_depth:
                raise QueryError(
                    f"Query exceeds the maximum allowed depth of {max_depth}.",
                    nodes=selection.ast,
                    path=field_path,
                )

            if selection.name == TYPENAME_FIELD:
                if selection.selections:
                    raise QueryError(
                        f"Field '{TYPENAME_FIELD}' must not have a selection.",
                        nodes=selection.ast,
                        path=field_path,
                    )
                continue

            if isinstance(type_def, UnionTypeDefinition):
                raise QueryError(
                    f"Cannot query field '{selection.name}' on type '{type_def.name}'. "
                    "Did you mean to use an inline fragment?",
                    nodes=selection.ast,
                    path=field_path,
                )

            try:
                field_def = registry.lookup(type_def.name, selection.name)
            except UnknownFieldError as e:
                raise QueryError(e.message, nodes=selection.ast, path=field_path) from e

            child = registry.get_type(field_def.type.named_type)
            if child.is_leaf and selection.selections:
                raise QueryError(
                    f"Field '{selection.name}' must not have a selection since type "
                    f"'{field_def.type}' has no subfields.",
                    nodes=selection.ast,
                    path=field_path,
                )

            if child.is_composite:
                if not selection.selections:
                    raise QueryError(
                        f"Field '{selection.name}' of type '{field_def.type}' must have "
                        "a selection of subfields.",
                        nodes=selection.ast,
                        path=field_path,
                    )
                visit(child, selection.selections, field_path, depth + 1)

    visit(root, selections, [], 1)
