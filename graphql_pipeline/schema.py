from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Optional, Union

from asgiref.sync import async_to_sync
from graphql import DocumentNode, GraphQLSyntaxError, parse
from strawberry.utils.inspect import in_async_context

from .context import ExecutionContext, Scope
from .engine import Executor
from .errors import ErrorCategory, QueryError
from .extensions.django_parse_cache import DjangoParseCache
from .permissions import AuthorizationGate
from .response import PartialResult, ResponseAssembler
from .selection import (
    FragmentNode,
    Operation,
    SelectionNode,
    build_selection,
    validate_selection,
)
from .settings import graphql_pipeline_settings

if TYPE_CHECKING:
    from .auth.identity import Identity, IdentityResolver
    from .registry import SchemaRegistry

logger = logging.getLogger("graphql_pipeline.execution")

TIMEOUT_MESSAGE = "Query timed out."

QuerySource = Union[str, DocumentNode, Operation, Sequence[Union[SelectionNode, FragmentNode]]]


class Schema:
    """Runs queries against a frozen `SchemaRegistry`.

    The registry is the only state shared between queries. Each call to
    `execute` builds its own `ExecutionContext`, batch loader and executor.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        *,
        identity_resolver: Optional[IdentityResolver] = None,
        gate: Optional[AuthorizationGate] = None,
    ):
        self.registry = registry.freeze()
        self.identity_resolver = identity_resolver
        self.gate = gate if gate is not None else AuthorizationGate()

        settings = graphql_pipeline_settings()
        cache_name = settings["PARSE_CACHE"]
        self.parse_cache = (
            DjangoParseCache(cache_name, timeout=settings["PARSE_CACHE_TIMEOUT"])
            if cache_name is not None
            else None
        )

    def parse(self, query: str) -> DocumentNode:
        try:
            if self.parse_cache is not None:
                return self.parse_cache.parse(query)
            return parse(query)
        except GraphQLSyntaxError as e:
            raise QueryError(e.message) from e

    def prepare(
        self,
        query: QuerySource,
        *,
        variables: Optional[Mapping[str, Any]] = None,
        operation_name: Optional[str] = None,
    ) -> Operation:
        """Turn the query into a validated `Operation`, or raise `QueryError`."""
        if isinstance(query, Operation):
            operation = query
        elif isinstance(query, (str, DocumentNode)):
            document = self.parse(query) if isinstance(query, str) else query
            operation = build_selection(document, operation_name, variables)
        else:
            operation = Operation("query", tuple(query))

        if operation.kind == "mutation" and self.registry.mutation_type is None:
            raise QueryError("Schema is not configured for mutations.")

        validate_selection(
            self.registry,
            self.registry.get_root_type(operation.kind),
            operation.selections,
            max_depth=graphql_pipeline_settings()["MAX_QUERY_DEPTH"],
        )
        return operation

    async def execute(
        self,
        query: QuerySource,
        *,
        variables: Optional[Mapping[str, Any]] = None,
        operation_name: Optional[str] = None,
        token: Optional[str] = None,
        identity: Optional[Identity] = None,
        scope: Optional[Scope] = None,
        root_value: Any = None,
        timeout: Optional[float] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> PartialResult:
        settings = graphql_pipeline_settings()

        try:
            operation = self.prepare(
                query,
                variables=variables,
                operation_name=operation_name,
            )
        except QueryError as e:
            return ResponseAssembler.abort(
                e.message,
                e.category,
                path=e.path,
                nodes=e.nodes,
            )

        if identity is not None:
            context = ExecutionContext(
                self.registry,
                identity=identity,
                scope=scope,
                extra=extra,
                max_batch_size=settings["MAX_BATCH_SIZE"],
            )
        else:
            context = await ExecutionContext.build(
                self.registry,
                token,
                scope,
                identity_resolver=self.identity_resolver,
                extra=extra,
                max_batch_size=settings["MAX_BATCH_SIZE"],
            )

        executor = Executor(
            self.registry,
            context,
            operation,
            gate=self.gate,
            internal_error_message=settings["INTERNAL_ERROR_MESSAGE"],
            log_internal_errors=settings["LOG_INTERNAL_ERRORS"],
        )

        if timeout is None:
            timeout = settings["DEFAULT_TIMEOUT"]

        try:
            if timeout is None:
                return await executor.run(root_value)

            try:
                return await asyncio.wait_for(executor.run(root_value), timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Query %s timed out after %s seconds",
                    operation.name or operation.kind,
                    timeout,
                )
                return ResponseAssembler.abort(TIMEOUT_MESSAGE, ErrorCategory.INTERNAL)
        finally:
            context.close()

    def execute_sync(self, query: QuerySource, **kwargs: Any) -> PartialResult:
        if in_async_context():
            raise RuntimeError(
                "execute_sync can't be called from an async context, "
                "use `await schema.execute(...)` instead",
            )

        return async_to_sync(self.execute)(query, **kwargs)
