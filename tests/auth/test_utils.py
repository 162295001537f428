import pytest
from django.contrib.auth.models import User

from graphql_pipeline import Identity, Schema, SchemaRegistry, identity_from_user
from graphql_pipeline.auth import aget_current_user, get_current_identity, get_current_user


@pytest.fixture
def me_schema():
    registry = SchemaRegistry()
    registry.object_type("Query")

    @registry.field("Query", returns="String")
    def username(root, info):
        user = get_current_user(info)
        return user.get_username() if user is not None else None

    @registry.field("Query", returns="String!")
    def strictUsername(root, info):
        return get_current_user(info, strict=True).get_username()

    @registry.field("Query", returns="String")
    async def asyncUsername(root, info):
        user = await aget_current_user(info)
        return user.get_username() if user is not None else None

    @registry.field("Query", returns="ID")
    def subject(root, info):
        return get_current_identity(info).subject_id

    return Schema(registry)


async def test_without_user(me_schema):
    result = await me_schema.execute("{ username asyncUsername subject }")

    assert result.data == {"username": None, "asyncUsername": None, "subject": None}

    result = await me_schema.execute("{ strictUsername }")

    assert result.data is None
    assert result.categories == ["authentication"]


async def test_identity_without_user(me_schema):
    result = await me_schema.execute("{ username subject }", identity=Identity.authenticated(3))

    assert result.data == {"username": None, "subject": "3"}


@pytest.mark.django_db
def test_with_user(me_schema):
    user = User.objects.create_user("jane")
    identity = identity_from_user(user)

    result = me_schema.execute_sync(
        "{ username strictUsername asyncUsername subject }",
        identity=identity,
    )

    assert result.errors == []
    assert result.data == {
        "username": "jane",
        "strictUsername": "jane",
        "asyncUsername": "jane",
        "subject": str(user.pk),
    }
