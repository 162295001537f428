"""Code for interacting with Django settings."""

from typing import Optional, cast

from django.conf import settings
from typing_extensions import TypedDict


class GraphQLPipelineSettings(TypedDict):
    """Dictionary defining the shape `settings.GRAPHQL_PIPELINE` should have.

    All settings are optional and have defaults as described in their docstrings and
    defined in `DEFAULT_PIPELINE_SETTINGS`.
    """

    #: Seconds a single query may run before it is aborted without partial
    #: data. `None` disables the deadline.
    DEFAULT_TIMEOUT: Optional[float]

    #: Maximum nesting of the selection tree. Deeper queries are rejected
    #: before any resolver runs. `None` disables the check.
    MAX_QUERY_DEPTH: Optional[int]

    #: Maximum number of keys handed to a fetch function in one call. Larger
    #: batches are split. `None` means unlimited.
    MAX_BATCH_SIZE: Optional[int]

    #: Message shown to clients for `internal` failures.
    INTERNAL_ERROR_MESSAGE: str

    #: If True, internal failures are logged with their traceback.
    LOG_INTERNAL_ERRORS: bool

    #: Name of the Django cache used to store parsed documents, or `None` to
    #: parse every query.
    PARSE_CACHE: Optional[str]

    #: How long parsed documents stay in the parse cache.
    PARSE_CACHE_TIMEOUT: Optional[int]


DEFAULT_PIPELINE_SETTINGS = GraphQLPipelineSettings(
    DEFAULT_TIMEOUT=None,
    MAX_QUERY_DEPTH=None,
    MAX_BATCH_SIZE=None,
    INTERNAL_ERROR_MESSAGE="Internal server error.",
    LOG_INTERNAL_ERRORS=True,
    PARSE_CACHE=None,
    PARSE_CACHE_TIMEOUT=None,
)


def graphql_pipeline_settings() -> GraphQLPipelineSettings:
    """Get graphql pipeline settings.

    Return the dictionary from `settings.GRAPHQL_PIPELINE`, with defaults
    for missing keys.

    Preferred to direct access for the type hints and defaults.
    """
    defaults = DEFAULT_PIPELINE_SETTINGS
    return cast(
        "GraphQLPipelineSettings",
        {**defaults, **getattr(settings, "GRAPHQL_PIPELINE", {})},
    )
