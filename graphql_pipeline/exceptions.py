from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING, Any, Callable

from strawberry.exceptions.exception import StrawberryException
from strawberry.exceptions.utils.source_finder import SourceFinder

if TYPE_CHECKING:
    from collections.abc import Iterable

    from strawberry.exceptions.exception_source import ExceptionSource


class SchemaDefinitionError(StrawberryException):
    """Base for mistakes made while building a schema registry."""

    def __init__(self, message: str):
        self.message = message
        self.rich_message = f"[bold red]{message}"
        self.annotation_message = "schema definition error"
        super().__init__(self.message)

    @cached_property
    def exception_source(self) -> ExceptionSource | None:  # pragma: no cover
        return None


class DuplicateTypeError(SchemaDefinitionError):
    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f'Type "{type_name}" is already defined')
        self.suggestion = "To fix this error, give each type a unique name"


class UnknownTypeError(SchemaDefinitionError):
    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f'Unknown type "{type_name}"')


class DuplicateFieldError(SchemaDefinitionError):
    def __init__(
        self,
        type_name: str,
        field_name: str,
        resolver: Callable[..., Any] | None = None,
    ):
        self.type_name = type_name
        self.field_name = field_name
        self.function = resolver

        super().__init__(
            f'Field "{field_name}" is already registered on type "{type_name}"',
        )
        self.rich_message = (
            f"[bold red]Field [underline]{type_name}.{field_name}[/] "
            "is registered twice"
        )
        self.annotation_message = "duplicate field"
        self.suggestion = (
            "To fix this error, register a single resolver for each field"
        )

    @cached_property
    def exception_source(self) -> ExceptionSource | None:  # pragma: no cover
        if self.function is None:
            return None

        source_finder = SourceFinder()

        return source_finder.find_function_from_object(self.function)  # type: ignore


class UnknownFieldError(SchemaDefinitionError):
    def __init__(self, type_name: str, field_name: str):
        self.type_name = type_name
        self.field_name = field_name

        super().__init__(
            f'Cannot query field "{field_name}" on type "{type_name}"',
        )
        self.annotation_message = "unknown field"


class AmbiguousTypeError(SchemaDefinitionError):
    def __init__(self, abstract_type: str, candidates: Iterable[str] = ()):
        self.abstract_type = abstract_type
        self.candidates = tuple(candidates)

        if self.candidates:
            message = (
                f'Value for abstract type "{abstract_type}" matches more than one '
                f"type: {', '.join(self.candidates)}"
            )
        else:
            message = (
                f'Could not determine the concrete type for abstract type "{abstract_type}"'
            )

        super().__init__(message)
        self.suggestion = (
            "To fix this error, register a type resolver or define `is_type_of` "
            "on the possible types"
        )


class RegistryFrozenError(SchemaDefinitionError):
    def __init__(self):
        super().__init__("The schema registry is frozen and can no longer be changed")


class InvalidSchemaError(SchemaDefinitionError):
    def __init__(self, problems: Iterable[str]):
        self.problems = list(problems)
        super().__init__("Invalid schema:\n" + "\n".join(self.problems))
