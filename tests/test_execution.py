import asyncio

import pytest
from django.contrib.auth.models import User

from graphql_pipeline import (
    InputError,
    NotFoundError,
    Schema,
    SchemaRegistry,
)
from graphql_pipeline.selection import field
from graphql_pipeline.test.client import TestClient


async def test_same_key_is_fetched_once(schema, fetch_log):
    query = """
    query {
        p1: product(sku: "A") {
            sku
            relatedCategory { name }
        }
        p2: product(sku: "A") {
            sku
            relatedCategory { name }
        }
    }
    """

    result = await schema.execute(query)

    assert result.errors == []
    assert result.data == {
        "p1": {"sku": "A", "relatedCategory": {"name": "Shirts"}},
        "p2": {"sku": "A", "relatedCategory": {"name": "Shirts"}},
    }
    assert fetch_log.of("Product") == [["A"]]
    assert fetch_log.of("Category") == [[1]]


async def test_sibling_loads_are_batched(schema, fetch_log):
    query = """
    query {
        a: product(sku: "A") { relatedCategory { name } }
        b: product(sku: "B") { relatedCategory { name } }
        c: product(sku: "C") { relatedCategory { name } }
    }
    """

    result = await schema.execute(query)

    assert result.errors == []
    assert result.data == {
        "a": {"relatedCategory": {"name": "Shirts"}},
        "b": {"relatedCategory": {"name": "Trousers"}},
        "c": {"relatedCategory": {"name": "Shirts"}},
    }
    assert fetch_log.of("Product") == [["A", "B", "C"]]
    assert fetch_log.of("Category") == [[1, 2]]


async def test_queries_do_not_share_caches(schema, fetch_log):
    query = '{ product(sku: "A") { name } }'

    first, second = await asyncio.gather(schema.execute(query), schema.execute(query))

    assert first.data == second.data == {"product": {"name": "Alpha shirt"}}
    assert fetch_log.of("Product") == [["A"], ["A"]]


async def test_partial_batch(schema, fetch_log):
    query = """
    query {
        a: product(sku: "A") { name }
        z: product(sku: "Z") { name }
        c: product(sku: "C") { name }
    }
    """

    result = await schema.execute(query)

    assert result.data == {
        "a": {"name": "Alpha shirt"},
        "z": None,
        "c": {"name": "Gamma shirt"},
    }
    assert fetch_log.of("Product") == [["A", "Z", "C"]]

    (error,) = result.formatted["errors"]
    assert error["message"] == 'Could not find a "Product" for key "Z".'
    assert error["path"] == ["z"]
    assert error["extensions"] == {"category": "not-found"}
    assert error["locations"] == [{"line": 4, "column": 9}]


async def test_non_null_failure_bubbles_to_nullable_parent(schema):
    result = await schema.execute('{ product(sku: "B") { sku stock } }')

    assert result.data == {"product": None}
    assert result.formatted["errors"] == [
        {
            "message": "Inventory is unavailable.",
            "locations": [{"line": 1, "column": 27}],
            "path": ["product", "stock"],
            "extensions": {"category": "source-unavailable"},
        },
    ]


async def test_non_null_list_item_bubbles_to_list(schema):
    result = await schema.execute('{ search(term: "a") { sku stock } }')

    assert result.data == {"search": None}
    assert len(result.errors) == 1
    assert result.errors[0].path == ["search", 1, "stock"]


async def test_list_completion(schema):
    result = await schema.execute('{ search(term: "shirt") { sku stock } }')

    assert result.errors == []
    assert result.data == {
        "search": [
            {"sku": "A", "stock": 3},
            {"sku": "C", "stock": 0},
        ],
    }


async def test_internal_errors_are_hidden(schema, caplog):
    result = await schema.execute('{ boom product(sku: "A") { sku } }')

    assert result.data == {"boom": None, "product": {"sku": "A"}}
    (error,) = result.formatted["errors"]
    assert error["message"] == "Internal server error."
    assert error["extensions"] == {"category": "internal"}
    assert "hunter2" not in str(result.formatted)
    assert "Error resolving Query.boom at boom" in caplog.text


async def test_typename(schema):
    result = await schema.execute('{ __typename product(sku: "A") { __typename sku } }')

    assert result.data == {
        "__typename": "Query",
        "product": {"__typename": "Product", "sku": "A"},
    }


async def test_hand_built_selection(schema):
    result = await schema.execute(
        [field("product", field("name"), field("price"), alias="p", sku="C")],
    )

    assert result.errors == []
    assert result.data == {"p": {"name": "Gamma shirt", "price": 12.0}}


def test_execute_sync(schema):
    result = schema.execute_sync('{ product(sku: "A") { name } }')

    assert result.formatted == {"data": {"product": {"name": "Alpha shirt"}}}


async def test_execute_sync_in_async_context(schema):
    with pytest.raises(RuntimeError, match="async context"):
        schema.execute_sync('{ product(sku: "A") { name } }')


# Ordering


@pytest.fixture
def timing_schema():
    registry = SchemaRegistry()
    registry.object_type("Query")

    @registry.field("Query", returns="String")
    async def slow(root, info):
        await asyncio.sleep(0.03)
        return "slow"

    @registry.field("Query", returns="String")
    def fast(root, info):
        return "fast"

    @registry.field("Query", returns="String")
    async def slowFailure(root, info):
        await asyncio.sleep(0.03)
        raise NotFoundError("slow failure")

    @registry.field("Query", returns="String")
    def fastFailure(root, info):
        raise InputError("fast failure")

    @registry.field("Query", returns="String!")
    def required(root, info):
        return None

    @registry.field("Query", returns="[Int]")
    def numbers(root, info):
        return 5

    @registry.field("Query", returns="Int")
    def count(root, info):
        return "many"

    return Schema(registry)


async def test_output_follows_query_order(timing_schema):
    result = await timing_schema.execute("{ slow fast }")
    assert list(result.data) == ["slow", "fast"]

    result = await timing_schema.execute("{ fast slow }")
    assert list(result.data) == ["fast", "slow"]


async def test_errors_follow_query_order(timing_schema):
    result = await timing_schema.execute("{ slowFailure fastFailure }")

    assert [e.message for e in result.errors] == ["slow failure", "fast failure"]
    assert result.categories == ["not-found", "input"]


async def test_null_for_non_null_root_field(timing_schema):
    result = await timing_schema.execute("{ fast required }")

    assert result.formatted == {
        "data": None,
        "errors": [
            {
                "message": "Cannot return null for non-nullable field Query.required.",
                "locations": [{"line": 1, "column": 8}],
                "path": ["required"],
                "extensions": {"category": "internal"},
            },
        ],
    }


async def test_invalid_leaf_and_list_values(timing_schema):
    result = await timing_schema.execute("{ numbers count fast }")

    assert result.data == {"numbers": None, "count": None, "fast": "fast"}
    assert [e.path for e in result.errors] == [["numbers"], ["count"]]
    assert result.categories == ["internal", "internal"]


async def test_failing_scalar_serializer_nulls_its_field():
    registry = SchemaRegistry()
    registry.object_type("Query")
    registry.scalar_type("Money", serialize=lambda value: f"{value['amount']:.2f}")

    @registry.field("Query", returns="Money")
    def price(root, info):
        return {"currency": "EUR"}

    @registry.field("Query", returns="Money")
    def total(root, info):
        return {"amount": 9.5}

    result = await Schema(registry).execute("{ price total }")

    assert result.data == {"price": None, "total": "9.50"}
    (error,) = result.errors
    assert error.path == ["price"]
    assert error.message == "Internal server error."
    assert error.extensions == {"category": "internal"}


@pytest.mark.django_db
def test_sync_resolvers_can_use_the_orm(registry):
    User.objects.create_user("jane")
    User.objects.create_user("john")

    @registry.field("Query", returns="Int!")
    def users(root, info):
        return User.objects.count()

    @registry.field("Query", returns="[String!]!")
    def usernames(root, info):
        return list(User.objects.order_by("username").values_list("username", flat=True))

    client = TestClient(Schema(registry))
    res = client.query("{ users usernames }")

    assert res.data == {"users": 2, "usernames": ["jane", "john"]}
