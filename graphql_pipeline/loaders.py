"""Request scoped batch loading.

Resolvers ask for entities through `BatchLoader.load`. Requests are queued
until the engine decides that the running tier has emitted all it is going
to emit (every unfinished field is waiting on the loader), then a single fetch
per entity type is issued for the deduplicated keys.
"""

from __future__ import annotations

import asyncio
import contextvars
import dataclasses
import inspect
import logging
from collections.abc import Hashable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from asgiref.sync import sync_to_async
from typing_extensions import TypeAlias

from .errors import NotFoundError, SourceUnavailableError

if TYPE_CHECKING:
    from .context import ExecutionContext
    from .utils.typing import AwaitableOrValue

logger = logging.getLogger("graphql_pipeline.loaders")

FetchResult: TypeAlias = Union[Mapping[Hashable, Any], Sequence[Any]]
FetchFunction: TypeAlias = Callable[[list[Hashable]], "AwaitableOrValue[FetchResult]"]


@dataclasses.dataclass(eq=False)
class WaitState:
    """How many loads the current field task is parked on."""

    parked: int = 0

    @property
    def is_parked(self) -> bool:
        return self.parked > 0


current_wait_state: contextvars.ContextVar[Optional[WaitState]] = contextvars.ContextVar(
    "graphql-pipeline-wait-state",
    default=None,
)


def _chunks(keys: list[Hashable], size: Optional[int]) -> Iterable[list[Hashable]]:
    if not size:
        yield keys
        return

    for i in range(0, len(keys), size):
        yield keys[i : i + size]


def _as_mapping(keys: list[Hashable], result: Any) -> Mapping[Hashable, Any]:
    if isinstance(result, Mapping):
        return result

    if isinstance(result, Sequence) and not isinstance(result, (str, bytes)):
        if len(result) != len(keys):
            raise TypeError(
                "Fetch functions returning a sequence must return one value per key, "
                f"got {len(result)} values for {len(keys)} keys",
            )
        return dict(zip(keys, result))

    raise TypeError(
        f"Fetch functions must return a mapping or a sequence, got {type(result).__name__}",
    )


class BatchLoader:
    def __init__(
        self,
        context: ExecutionContext,
        fetchers: Mapping[str, FetchFunction],
        *,
        max_batch_size: Optional[int] = None,
    ):
        self._context = context
        self._fetchers = fetchers
        self._queue: dict[str, dict[Hashable, asyncio.Future]] = {}
        self._inflight: set[asyncio.Future] = set()
        self.max_batch_size = max_batch_size
        self.parked = asyncio.Event()
        self.fetch_count = 0

    @property
    def has_pending(self) -> bool:
        return bool(self._queue)

    def pending_keys(self, entity_type: str) -> list[Hashable]:
        return list(self._queue.get(entity_type, ()))

    def _enqueue(self, entity_type: str, key: Hashable) -> asyncio.Future:
        try:
            hash(key)
        except TypeError:
            raise TypeError(f"Loader keys must be hashable, got {key!r}") from None

        future = self._context.cache_get(entity_type, key)
        if future is not None:
            return future

        # A key cleared while still queued keeps its future, earlier waiters hold it
        queued = self._queue.get(entity_type, {}).get(key)
        if queued is not None:
            self._context.cache_set(entity_type, key, queued)
            return queued

        future = asyncio.get_running_loop().create_future()
        self._context.cache_set(entity_type, key, future)
        self._queue.setdefault(entity_type, {})[key] = future
        return future

    async def load(self, entity_type: str, key: Hashable) -> Any:
        """Return the value of `entity_type` for `key`.

        Identical requests within one query share a single future, so the
        fetch function never sees the same key twice.
        """
        future = self._enqueue(entity_type, key)
        if future.done():
            return future.result()

        state = current_wait_state.get()
        if state is not None:
            state.parked += 1
            self.parked.set()

        try:
            # Shielded so that a cancelled waiter doesn't cancel the shared future
            return await asyncio.shield(future)
        finally:
            if state is not None:
                state.parked -= 1

    async def load_many(self, entity_type: str, keys: Iterable[Hashable]) -> list[Any]:
        return list(
            await asyncio.gather(*(self.load(entity_type, key) for key in keys)),
        )

    def prime(self, entity_type: str, key: Hashable, value: Any) -> None:
        """Seed the cache with a known value, unless the key is already cached."""
        if self._context.cache_get(entity_type, key) is not None:
            return

        future = asyncio.get_running_loop().create_future()
        future.set_result(value)
        self._context.cache_set(entity_type, key, future)

    def clear(self, entity_type: Optional[str] = None, key: Any = None) -> None:
        """Forget cached values, e.g. after a mutation changed them."""
        self._context.cache_clear(entity_type, key)

    async def dispatch(self) -> None:
        """Issue one fetch per entity type for every queued key."""
        queue, self._queue = self._queue, {}
        if not queue:
            return

        tasks = [
            asyncio.ensure_future(self._fetch_batch(entity_type, dict(chunk)))
            for entity_type, pending in queue.items()
            for chunk in _chunks(list(pending.items()), self.max_batch_size)  # type: ignore
        ]
        self._inflight.update(tasks)
        try:
            await asyncio.gather(*tasks)
        finally:
            self._inflight.difference_update(tasks)

    async def _fetch_batch(
        self,
        entity_type: str,
        pending: dict[Hashable, asyncio.Future],
    ) -> None:
        keys = list(pending)
        fetch = self._fetchers.get(entity_type)

        try:
            if fetch is None:
                raise LookupError(f"No loader registered for {entity_type!r}")

            logger.debug("Fetching %d %r key(s)", len(keys), entity_type)
            self.fetch_count += 1

            if inspect.iscoroutinefunction(fetch):
                result = await fetch(keys)
            else:
                result = await sync_to_async(fetch)(keys)
                while inspect.isawaitable(result):
                    result = await result

            values = _as_mapping(keys, result)
        except asyncio.CancelledError:
            for future in pending.values():
                future.cancel()
            raise
        except Exception:
            logger.warning("Fetching %r failed", entity_type, exc_info=True)
            for future in pending.values():
                if not future.done():
                    future.set_exception(SourceUnavailableError(entity_type=entity_type))
            return

        for key, future in pending.items():
            if future.done():
                continue

            value = values.get(key)
            if value is None:
                future.set_exception(NotFoundError(entity_type=entity_type, key=key))
            elif isinstance(value, BaseException):
                future.set_exception(value)
            else:
                future.set_result(value)

    def cancel(self) -> None:
        """Cancel queued and in-flight fetches of this query."""
        for task in list(self._inflight):
            task.cancel()

        for pending in self._queue.values():
            for future in pending.values():
                future.cancel()

        self._queue.clear()
