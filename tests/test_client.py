import pytest

from graphql_pipeline import Schema, Scope
from graphql_pipeline.test.client import AsyncTestClient, TestClient

query_to_non_existed_field = "{ nonExistentField { id } }"


def check_non_existed_field_error(errors):
    assert isinstance(errors, list)
    assert len(errors) == 1
    error = errors[0]
    assert isinstance(error, dict)
    assert "nonExistentField" in error["message"]
    assert "Cannot query field" in error["message"]
    assert error["locations"]


def test_client_assert_no_errors(gql_client: TestClient):
    with pytest.raises(AssertionError):
        gql_client.query(query_to_non_existed_field)

    res = gql_client.query(query_to_non_existed_field, assert_no_errors=False)
    assert res.data is None
    check_non_existed_field_error(res.errors)


def test_client_asserts_errors_is_deprecated(gql_client: TestClient):
    with pytest.deprecated_call():
        res = gql_client.query(query_to_non_existed_field, asserts_errors=False)

    check_non_existed_field_error(res.errors)


def test_client_query(gql_client: TestClient):
    res = gql_client.query(
        "query ($sku: String!) { product(sku: $sku) { name } }",
        {"sku": "A"},
    )

    assert res.data == {"product": {"name": "Alpha shirt"}}
    assert res.errors is None


def test_client_token(schema):
    client = TestClient(schema, token="jane-token")

    res = client.query("{ customer { email } }")
    assert res.data == {"customer": {"email": "jane@example.com"}}


async def test_async_client(async_gql_client: AsyncTestClient):
    res = await async_gql_client.query('{ product(sku: "C") { name } }')
    assert res.data == {"product": {"name": "Gamma shirt"}}

    res = await async_gql_client.query(query_to_non_existed_field, assert_no_errors=False)
    check_non_existed_field_error(res.errors)


async def test_async_client_scope(registry):
    @registry.field("Query", returns="String!")
    def currency(root, info):
        return info.context.scope.currency or "EUR"

    client = AsyncTestClient(Schema(registry), scope=Scope(store="de", currency="CHF"))

    res = await client.query("{ currency }")
    assert res.data == {"currency": "CHF"}
