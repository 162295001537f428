import dataclasses
from typing import Any, Dict, List, Tuple

import pytest
from django.core.validators import MaxValueValidator, MinValueValidator

from graphql_pipeline import (
    Identity,
    InvalidTokenError,
    IsAuthenticated,
    Schema,
    SchemaRegistry,
    SourceUnavailableError,
    argument,
)
from graphql_pipeline.test.client import AsyncTestClient, TestClient

CATEGORIES = {
    1: {"id": 1, "name": "Shirts"},
    2: {"id": 2, "name": "Trousers"},
}

PRODUCTS = {
    "A": {"sku": "A", "name": "Alpha shirt", "price": 10.5, "category_id": 1, "stock": 3},
    "B": {"sku": "B", "name": "Beta trousers", "price": 25.0, "category_id": 2, "stock": None},
    "C": {"sku": "C", "name": "Gamma shirt", "price": 12.0, "category_id": 1, "stock": 0},
}

CUSTOMERS = {
    "42": {"id": "42", "firstname": "Jane", "email": "jane@example.com"},
}

GUEST = {"id": None, "firstname": "Guest", "email": None}


@dataclasses.dataclass
class FetchLog:
    calls: List[Tuple[str, List[Any]]] = dataclasses.field(default_factory=list)

    def record(self, entity_type: str, keys):
        self.calls.append((entity_type, list(keys)))

    def of(self, entity_type: str) -> List[List[Any]]:
        return [keys for t, keys in self.calls if t == entity_type]


def build_catalog(fetch_log: FetchLog) -> SchemaRegistry:
    registry = SchemaRegistry()

    registry.object_type("Query")
    registry.object_type("Category")
    registry.object_type("Product")
    registry.object_type("Customer")

    @registry.loader("Product")
    def fetch_products(skus):
        fetch_log.record("Product", skus)
        return {sku: PRODUCTS[sku] for sku in skus if sku in PRODUCTS}

    @registry.loader("Category")
    async def fetch_categories(ids):
        fetch_log.record("Category", ids)
        return [CATEGORIES.get(pk) for pk in ids]

    @registry.field("Query", returns="Product", arguments={"sku": "String!"})
    async def product(root, info, sku):
        return await info.context.load("Product", sku)

    @registry.field(
        "Query",
        returns="[Product!]",
        arguments={
            "term": "String!",
            "pageSize": argument(
                "Int",
                default=20,
                validators=[MinValueValidator(1), MaxValueValidator(100)],
            ),
        },
    )
    def search(root, info, term, pageSize):
        found = [p for p in PRODUCTS.values() if term.lower() in p["name"].lower()]
        return found[:pageSize]

    @registry.field("Query", returns="Customer")
    def customer(root, info):
        identity = info.context.identity
        return CUSTOMERS.get(identity.subject_id, GUEST)

    @registry.field("Query", returns="String")
    def boom(root, info):
        raise RuntimeError("database password is hunter2")

    registry.register("Category", "id", returns="Int!")
    registry.register("Category", "name", returns="String!")

    registry.register("Product", "sku", returns="String!")
    registry.register("Product", "name", returns="String!")
    registry.register("Product", "price", returns="Float")

    @registry.field("Product", returns="Category")
    async def relatedCategory(product, info):
        return await info.context.load("Category", product["category_id"])

    @registry.field("Product", returns="Int!")
    def stock(product, info):
        if product["stock"] is None:
            raise SourceUnavailableError("Inventory is unavailable.")
        return product["stock"]

    registry.register("Customer", "firstname", returns="String!")
    registry.register(
        "Customer",
        "email",
        returns="String!",
        policies=[IsAuthenticated()],
    )

    return registry


@pytest.fixture
def fetch_log() -> FetchLog:
    return FetchLog()


@pytest.fixture
def registry(fetch_log) -> SchemaRegistry:
    return build_catalog(fetch_log)


@pytest.fixture
def schema(registry) -> Schema:
    return Schema(registry, identity_resolver=resolve_token)


@pytest.fixture
def jane() -> Identity:
    return Identity.authenticated(42)


@pytest.fixture
def gql_client(schema):
    return TestClient(schema)


@pytest.fixture
def async_gql_client(schema):
    return AsyncTestClient(schema)


TOKENS: Dict[str, Identity] = {
    "jane-token": Identity.authenticated(42, capabilities={"catalog.view_cost"}),
}


def resolve_token(token: str) -> Identity:
    try:
        return TOKENS[token]
    except KeyError:
        raise InvalidTokenError(token) from None
