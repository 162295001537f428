import logging

import pytest
from strawberry.utils.inspect import in_async_context

from graphql_pipeline import (
    ExecutionContext,
    Identity,
    InvalidTokenError,
    IsAuthenticated,
    Schema,
    Scope,
    SchemaRegistry,
)


@pytest.fixture
def empty_registry():
    registry = SchemaRegistry()
    registry.object_type("Query")
    return registry


async def test_build_without_token(empty_registry):
    context = await ExecutionContext.build(empty_registry)

    assert context.identity.is_anonymous
    assert not context.identity.token_rejected
    assert context.scope == Scope()


async def test_build_with_async_identity_resolver(empty_registry):
    async def resolve(token):
        if token != "good":
            raise InvalidTokenError
        return Identity.authenticated(7, capabilities={"orders.view"})

    context = await ExecutionContext.build(
        empty_registry,
        "good",
        Scope(store="default", locale="en_US", currency="USD"),
        identity_resolver=resolve,
        extra={"request_id": "abc"},
    )

    assert context.get_identity() == Identity.authenticated(7, capabilities={"orders.view"})
    assert context.get_identity().has_capability("orders.view")
    assert context.get_scope().currency == "USD"
    assert context.extra == {"request_id": "abc"}

    rejected = await ExecutionContext.build(empty_registry, "bad", identity_resolver=resolve)
    assert rejected.identity.is_anonymous
    assert rejected.identity.token_rejected


async def test_contexts_are_isolated(empty_registry):
    first = ExecutionContext(empty_registry)
    second = ExecutionContext(empty_registry)

    first.loader.prime("Product", "A", {"sku": "A"})

    assert first.cached_keys("Product") == ["A"]
    assert second.cached_keys("Product") == []
    assert first.loader is not second.loader


async def test_closed_context(empty_registry):
    context = ExecutionContext(empty_registry)
    context.close()

    with pytest.raises(RuntimeError):
        context.cache_clear()


async def test_build_with_failing_identity_resolver(empty_registry, caplog):
    def resolve(token):
        raise ConnectionError("identity service down")

    with caplog.at_level(logging.ERROR, logger="graphql_pipeline.execution"):
        context = await ExecutionContext.build(empty_registry, "t", identity_resolver=resolve)

    assert context.identity.is_anonymous
    assert context.identity.token_rejected
    assert "identity service down" in caplog.text


async def test_failing_identity_resolver_still_returns_a_result(empty_registry):
    @empty_registry.field("Query", returns="String")
    def ok(root, info):
        return "fine"

    @empty_registry.field("Query", returns="String", policies=[IsAuthenticated()])
    def secret(root, info):
        return "hidden"

    async def resolve(token):
        raise ConnectionError("identity service down")

    schema = Schema(empty_registry, identity_resolver=resolve)
    result = await schema.execute("{ ok secret }", token="t")

    assert result.data == {"ok": "fine", "secret": None}
    assert result.categories == ["authentication"]


async def test_sync_identity_resolver_runs_outside_the_event_loop(empty_registry):
    def resolve(token):
        assert not in_async_context()
        return Identity.authenticated(token)

    context = await ExecutionContext.build(empty_registry, "9", identity_resolver=resolve)

    assert context.identity == Identity.authenticated("9")
