"""Tests for `graphql_pipeline/settings.py`."""

from django.test import override_settings

from graphql_pipeline import settings


def test_defaults():
    """Test that `graphql_pipeline_settings()` provides the default settings if they don't
    exist in the Django settings file.
    """
    with override_settings(GRAPHQL_PIPELINE={}):
        assert settings.graphql_pipeline_settings() == settings.DEFAULT_PIPELINE_SETTINGS


def test_non_defaults():
    """Test that `graphql_pipeline_settings()` provides the user's settings if they are
    defined in the Django settings file.
    """
    with override_settings(
        GRAPHQL_PIPELINE=settings.GraphQLPipelineSettings(
            DEFAULT_TIMEOUT=2.5,
            MAX_QUERY_DEPTH=8,
            MAX_BATCH_SIZE=50,
            INTERNAL_ERROR_MESSAGE="Something went wrong.",
            LOG_INTERNAL_ERRORS=False,
            PARSE_CACHE="documents",
            PARSE_CACHE_TIMEOUT=60,
        ),
    ):
        assert (
            settings.graphql_pipeline_settings()
            == settings.GraphQLPipelineSettings(
                DEFAULT_TIMEOUT=2.5,
                MAX_QUERY_DEPTH=8,
                MAX_BATCH_SIZE=50,
                INTERNAL_ERROR_MESSAGE="Something went wrong.",
                LOG_INTERNAL_ERRORS=False,
                PARSE_CACHE="documents",
                PARSE_CACHE_TIMEOUT=60,
            )
        )


def test_partial_settings():
    with override_settings(GRAPHQL_PIPELINE={"MAX_BATCH_SIZE": 2}):
        assert settings.graphql_pipeline_settings() == {
            **settings.DEFAULT_PIPELINE_SETTINGS,
            "MAX_BATCH_SIZE": 2,
        }


async def test_internal_error_message(schema, caplog):
    with override_settings(
        GRAPHQL_PIPELINE={
            "INTERNAL_ERROR_MESSAGE": "Something went wrong.",
            "LOG_INTERNAL_ERRORS": False,
        },
    ):
        result = await schema.execute("{ boom }")

    assert result.errors[0].message == "Something went wrong."
    assert "Error resolving" not in caplog.text


async def test_max_batch_size(schema, fetch_log):
    query = """
    {
        a: product(sku: "A") { name }
        b: product(sku: "B") { name }
        c: product(sku: "C") { name }
    }
    """

    with override_settings(GRAPHQL_PIPELINE={"MAX_BATCH_SIZE": 2}):
        result = await schema.execute(query)

    assert result.errors == []
    assert sorted(fetch_log.of("Product")) == [["A", "B"], ["C"]]
