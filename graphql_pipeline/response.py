from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Optional, Union

from graphql import GraphQLError

from .errors import ErrorCategory, Failure

if TYPE_CHECKING:
    from graphql import Node

Path = list[Union[str, int]]


@dataclasses.dataclass
class PartialResult:
    """The result of a query: a data tree and the errors met on the way.

    `has_data` is False only when the whole query was aborted (unmappable
    selection or timeout), in which case the formatted result has no `data`
    entry at all.
    """

    data: Optional[dict[str, Any]]
    errors: list[GraphQLError] = dataclasses.field(default_factory=list)
    has_data: bool = True

    @property
    def formatted(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.has_data:
            result["data"] = self.data
        if self.errors:
            result["errors"] = [error.formatted for error in self.errors]
        return result

    @property
    def categories(self) -> list[str]:
        return [(error.extensions or {}).get("category") for error in self.errors]  # type: ignore


def make_error(
    message: str,
    category: ErrorCategory,
    path: Path,
    *,
    nodes: Union[Node, Sequence[Node], None] = None,
    original_error: Optional[BaseException] = None,
) -> GraphQLError:
    return GraphQLError(
        message,
        nodes=nodes,
        path=path,
        original_error=original_error if isinstance(original_error, Exception) else None,
        extensions={"category": category.value},
    )


class ResponseAssembler:
    """Collects field errors and builds the final `PartialResult`.

    Errors are reported in depth-first, left-to-right order of their position
    in the response, whatever order they were met in, and at most once per
    path.
    """

    def __init__(self):
        self._errors: list[tuple[tuple[int, ...], GraphQLError]] = []
        self._paths: set[tuple[Union[str, int], ...]] = set()

    def __len__(self) -> int:
        return len(self._errors)

    def add(
        self,
        failure: Failure,
        path: Path,
        *,
        order: tuple[int, ...],
        nodes: Union[Node, Sequence[Node], None] = None,
    ) -> None:
        key = tuple(path)
        if key in self._paths:
            return

        self._paths.add(key)
        self._errors.append(
            (
                order,
                make_error(
                    failure.message,
                    failure.category,
                    path,
                    nodes=nodes,
                    original_error=failure.original_error,
                ),
            ),
        )

    def build(self, data: Optional[dict[str, Any]]) -> PartialResult:
        errors = [error for _, error in sorted(self._errors, key=lambda item: item[0])]
        return PartialResult(data=data, errors=errors)

    @staticmethod
    def abort(
        message: str,
        category: ErrorCategory,
        *,
        path: Optional[Path] = None,
        nodes: Union[Node, Sequence[Node], None] = None,
    ) -> PartialResult:
        """Build the result of a query aborted as a whole."""
        return PartialResult(
            data=None,
            errors=[make_error(message, category, path or [], nodes=nodes)],
            has_data=False,
        )
