from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
from collections.abc import Hashable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, Optional

from asgiref.sync import sync_to_async

from .auth.identity import Identity
from .errors import InvalidTokenError
from .loaders import BatchLoader

if TYPE_CHECKING:
    from .auth.identity import IdentityResolver
    from .registry import SchemaRegistry

logger = logging.getLogger("graphql_pipeline.execution")

CacheKey = tuple[str, Hashable]


@dataclasses.dataclass(frozen=True)
class Scope:
    """Store scope a query runs in (store view, locale and currency)."""

    store: Optional[str] = None
    locale: Optional[str] = None
    currency: Optional[str] = None


class ExecutionContext:
    """Per-query state.

    Carries the identity and scope of the query, and the cache mapping
    `(entity_type, key)` to the future holding its value. One instance is
    created for each query and is never shared with another one.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        *,
        identity: Optional[Identity] = None,
        scope: Optional[Scope] = None,
        extra: Optional[Mapping[str, Any]] = None,
        max_batch_size: Optional[int] = None,
    ):
        self._identity = identity if identity is not None else Identity.anonymous()
        self._scope = scope if scope is not None else Scope()
        self._cache: dict[CacheKey, asyncio.Future] = {}
        self._closed = False
        self.extra: dict[str, Any] = dict(extra or {})
        self.loader = BatchLoader(self, registry.loaders, max_batch_size=max_batch_size)

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} identity={self._identity!r} "
            f"scope={self._scope!r}>"
        )

    @classmethod
    async def build(
        cls,
        registry: SchemaRegistry,
        token: Optional[str] = None,
        scope: Optional[Scope] = None,
        *,
        identity_resolver: Optional[IdentityResolver] = None,
        **kwargs: Any,
    ) -> ExecutionContext:
        """Create the context for a new query from an inbound token."""
        if not token:
            identity = Identity.anonymous()
        elif identity_resolver is None:
            logger.warning("Received a token but no identity resolver is configured")
            identity = Identity.anonymous(token_rejected=True)
        else:
            resolve = (
                identity_resolver
                if inspect.iscoroutinefunction(identity_resolver)
                else sync_to_async(identity_resolver)
            )

            try:
                identity = await resolve(token)
                while inspect.isawaitable(identity):
                    identity = await identity
            except InvalidTokenError:
                logger.info("Rejected an invalid access token")
                identity = Identity.anonymous(token_rejected=True)
            except Exception:
                # The query still runs, as anonymous
                logger.exception("Resolving the identity of an access token failed")
                identity = Identity.anonymous(token_rejected=True)

        return cls(registry, identity=identity, scope=scope, **kwargs)

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def scope(self) -> Scope:
        return self._scope

    def get_identity(self) -> Identity:
        return self._identity

    def get_scope(self) -> Scope:
        return self._scope

    @property
    def is_closed(self) -> bool:
        return self._closed

    # Request cache, mutated by the batch loader only

    def cache_get(self, entity_type: str, key: Hashable) -> Optional[asyncio.Future]:
        return self._cache.get((entity_type, key))

    def cache_set(self, entity_type: str, key: Hashable, future: asyncio.Future):
        if self._closed:
            raise RuntimeError("The execution context of a finished query can't be changed")
        self._cache[(entity_type, key)] = future

    def cache_clear(self, entity_type: Optional[str] = None, key: Any = None):
        if self._closed:
            raise RuntimeError("The execution context of a finished query can't be changed")

        if entity_type is None:
            self._cache.clear()
        elif key is None:
            for cache_key in [k for k in self._cache if k[0] == entity_type]:
                del self._cache[cache_key]
        else:
            self._cache.pop((entity_type, key), None)

    def cached_keys(self, entity_type: str) -> list[Hashable]:
        return [k for t, k in self._cache if t == entity_type]

    # Shortcuts

    async def load(self, entity_type: str, key: Hashable) -> Any:
        return await self.loader.load(entity_type, key)

    async def load_many(self, entity_type: str, keys: Iterable[Hashable]) -> list[Any]:
        return await self.loader.load_many(entity_type, keys)

    def close(self):
        self._closed = True
