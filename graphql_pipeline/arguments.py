from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Optional, Union

from django.core.exceptions import ValidationError
from graphql import GraphQLError
from strawberry import UNSET

from .errors import InputError
from .types import InputTypeDefinition, TypeRef

if TYPE_CHECKING:
    from .registry import SchemaRegistry


@dataclasses.dataclass(frozen=True)
class Argument:
    """A declared field argument (or input object field)."""

    type: TypeRef
    default: Any = UNSET
    validators: tuple[Callable[[Any], Any], ...] = ()
    description: Optional[str] = None

    @property
    def is_required(self) -> bool:
        return not self.type.nullable and self.default is UNSET


def argument(
    type_: Union[str, TypeRef],
    *,
    default: Any = UNSET,
    validators: Sequence[Callable[[Any], Any]] = (),
    description: Optional[str] = None,
) -> Argument:
    return Argument(
        type=TypeRef.parse(type_),
        default=default,
        validators=tuple(validators),
        description=description,
    )


def normalize_arguments(
    arguments: Optional[Mapping[str, Union[str, TypeRef, Argument]]],
) -> dict[str, Argument]:
    if not arguments:
        return {}

    return {
        name: spec if isinstance(spec, Argument) else argument(spec)
        for name, spec in arguments.items()
    }


def coerce_arguments(
    arguments: Mapping[str, Argument],
    raw: Mapping[str, Any],
    registry: SchemaRegistry,
    *,
    owner: str = "argument",
) -> dict[str, Any]:
    """Validate raw argument values against their declarations.

    Omitted nullable arguments without a default are left out of the result,
    so resolvers see them as missing keyword arguments.
    """
    for name in raw:
        if name not in arguments:
            raise InputError(f'Unknown {owner} "{name}".')

    coerced: dict[str, Any] = {}
    for name, arg in arguments.items():
        if name in raw:
            value = _coerce_value(raw[name], arg.type, registry, name)
        elif arg.default is not UNSET:
            coerced[name] = arg.default
            continue
        elif not arg.type.nullable:
            raise InputError(
                f'{owner.capitalize()} "{name}" of type "{arg.type}" '
                "is required, but it was not provided.",
            )
        else:
            continue

        for validator in arg.validators:
            try:
                validator(value)
            except ValidationError as e:
                raise InputError("; ".join(e.messages)) from e
            except ValueError as e:
                raise InputError(str(e)) from e

        coerced[name] = value

    return coerced


def _coerce_value(value: Any, type_ref: TypeRef, registry: SchemaRegistry, name: str):
    if value is None:
        if not type_ref.nullable:
            raise InputError(f'Value for "{name}" of non-null type "{type_ref}" must not be null.')
        return None

    if type_ref.of_type is not None:
        items = value if isinstance(value, (list, tuple)) else [value]
        return [_coerce_value(item, type_ref.of_type, registry, name) for item in items]

    type_def = registry.get_type(type_ref.named_type)

    if isinstance(type_def, InputTypeDefinition):
        if not isinstance(value, Mapping):
            raise InputError(f'Expected value of input type "{type_def.name}" for "{name}".')
        return coerce_arguments(type_def.fields, value, registry, owner="field")

    parse_value = getattr(type_def, "parse_value", None)
    if parse_value is None:
        raise InputError(f'Type "{type_def.name}" can not be used as an input for "{name}".')

    try:
        return parse_value(value)
    except GraphQLError as e:
        raise InputError(f'Invalid value for "{name}": {e.message}') from e
    except (TypeError, ValueError) as e:
        raise InputError(f'Invalid value for "{name}": {e}') from e
