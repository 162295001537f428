"""The resolver engine.

Fields are resolved tier by tier: every field sitting at the same depth of the
response runs concurrently, so the loads they raise can be coalesced by the
batch loader. Once a tier is done its values are completed in query order,
which fills the response tree, applies null propagation and schedules the
fields of the next tier.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Optional, Union

from graphql.pyutils import Path

from .arguments import coerce_arguments
from .errors import ErrorCategory, Failure, InputError
from .fields import ResolveInfo
from .loaders import WaitState, current_wait_state
from .permissions import AuthorizationGate
from .response import ResponseAssembler
from .selection import TYPENAME_FIELD, collect_fields, merge_selections

if TYPE_CHECKING:
    from .context import ExecutionContext
    from .fields import FieldDefinition
    from .registry import SchemaRegistry
    from .response import PartialResult
    from .selection import Operation, Selection, SelectionNode
    from .types import ObjectTypeDefinition, TypeRef

logger = logging.getLogger("graphql_pipeline.execution")


@dataclasses.dataclass(eq=False)
class _Slot:
    """A position in the response tree.

    `container[key]` is where the value lives. Positions that can't hold null
    pass failures on to their parent.
    """

    container: Union[dict[str, Any], list[Any]]
    key: Union[str, int]
    nullable: bool
    parent: Optional[_Slot]
    path: tuple[Union[str, int], ...]
    order: tuple[int, ...]
    nulled: bool = False

    def child(self, container, key, nullable: bool, index: int) -> _Slot:
        return _Slot(
            container,
            key,
            nullable,
            self,
            (*self.path, key),
            (*self.order, index),
        )

    def is_cut(self) -> bool:
        """Tell if this position, or one of its ancestors, was nulled."""
        slot: Optional[_Slot] = self
        while slot is not None:
            if slot.nulled:
                return True
            slot = slot.parent
        return False

    def as_graphql_path(self) -> Optional[Path]:
        path = None
        for key in self.path:
            path = Path(path, key, None)
        return path


@dataclasses.dataclass(eq=False)
class _FieldJob:
    slot: _Slot
    parent_type: ObjectTypeDefinition
    field: FieldDefinition
    nodes: list[SelectionNode]
    source: Any
    info: Optional[ResolveInfo] = None


class Executor:
    """Executes one operation against one execution context."""

    def __init__(
        self,
        registry: SchemaRegistry,
        context: ExecutionContext,
        operation: Operation,
        *,
        gate: Optional[AuthorizationGate] = None,
        internal_error_message: str = "Internal server error.",
        log_internal_errors: bool = True,
    ):
        self.registry = registry
        self.context = context
        self.operation = operation
        self.gate = gate if gate is not None else AuthorizationGate()
        self.internal_error_message = internal_error_message
        self.log_internal_errors = log_internal_errors
        self.assembler = ResponseAssembler()
        self.tiers = 0

    async def run(self, root_value: Any = None) -> PartialResult:
        root_type = self.registry.get_root_type(self.operation.kind)

        data: dict[str, Any] = {}
        holder: dict[str, Any] = {"data": data}
        root = _Slot(holder, "data", True, None, (), ())

        jobs = self._object_jobs(root_type, self.operation.selections, data, root, root_value)

        if self.operation.kind == "mutation":
            # Top level mutation fields run one after another
            for job in jobs:
                await self._execute_tiers([job])
        else:
            await self._execute_tiers(jobs)

        logger.debug(
            "Executed %s in %d tier(s) with %d fetch(es)",
            self.operation.name or self.operation.kind,
            self.tiers,
            self.context.loader.fetch_count,
        )
        return self.assembler.build(holder["data"])

    # Scheduling

    async def _execute_tiers(self, jobs: list[_FieldJob]):
        while jobs:
            jobs = [job for job in jobs if not job.slot.is_cut()]
            if not jobs:
                break

            self.tiers += 1
            outcomes = await self._run_tier(jobs)

            next_jobs: list[_FieldJob] = []
            for job, outcome in zip(jobs, outcomes):
                if job.slot.is_cut():
                    continue
                self._complete_value(outcome, job.field.type, job.slot, job, next_jobs)

            jobs = next_jobs

    async def _run_tier(self, jobs: list[_FieldJob]) -> list[Any]:
        loader = self.context.loader
        states = [WaitState() for _ in jobs]
        tasks = [
            asyncio.ensure_future(self._resolve_field(job, state))
            for job, state in zip(jobs, states)
        ]

        try:
            while True:
                unfinished = [
                    (task, state) for task, state in zip(tasks, states) if not task.done()
                ]
                if not unfinished:
                    break

                # Everything left is waiting on the loader, flush the batch
                if loader.has_pending and all(state.is_parked for _, state in unfinished):
                    await loader.dispatch()
                    continue

                loader.parked.clear()
                parked = asyncio.ensure_future(loader.parked.wait())
                try:
                    await asyncio.wait(
                        [*(task for task, _ in unfinished), parked],
                        return_when=asyncio.FIRST_COMPLETED,
                    )
                finally:
                    parked.cancel()
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            loader.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return [task.result() for task in tasks]

    async def _resolve_field(self, job: _FieldJob, state: WaitState) -> Any:
        current_wait_state.set(state)

        field = job.field
        info = job.info = ResolveInfo(
            field=field,
            parent_type=job.parent_type,
            path=job.slot.as_graphql_path(),  # type: ignore
            nodes=tuple(job.nodes),
            context=self.context,
            registry=self.registry,
            operation=self.operation,
        )

        try:
            raw = job.nodes[0].arguments
            input_error: Optional[InputError] = None
            try:
                arguments = coerce_arguments(field.arguments, raw, self.registry)
            except InputError as e:
                arguments, input_error = dict(raw), e

            if field.policies:
                denied = await self.gate.authorize(
                    field.policies,
                    self.context.identity,
                    info=info,
                    source=job.source,
                    arguments=arguments,
                )
                if denied is not None:
                    return denied

            if input_error is not None:
                raise input_error

            result = field.resolve(job.source, info, arguments)
            while inspect.isawaitable(result):
                result = await result
        except Exception as e:  # noqa: BLE001
            return self._classify(e, job)

        return result

    # Completion

    def _object_jobs(
        self,
        object_type: ObjectTypeDefinition,
        selections: tuple[Selection, ...],
        target: dict[str, Any],
        slot: _Slot,
        source: Any,
    ) -> list[_FieldJob]:
        jobs: list[_FieldJob] = []
        fields = collect_fields(self.registry, object_type, selections)

        for index, (response_key, nodes) in enumerate(fields.items()):
            # Keys are set in query order, values may come later
            target[response_key] = None

            if nodes[0].name == TYPENAME_FIELD:
                target[response_key] = object_type.name
                continue

            field = self.registry.lookup(object_type.name, nodes[0].name)
            jobs.append(
                _FieldJob(
                    slot=slot.child(target, response_key, field.type.nullable, index),
                    parent_type=object_type,
                    field=field,
                    nodes=nodes,
                    source=source,
                ),
            )

        return jobs

    def _complete_value(
        self,
        value: Any,
        type_ref: TypeRef,
        slot: _Slot,
        job: _FieldJob,
        next_jobs: list[_FieldJob],
    ) -> None:
        if isinstance(value, Exception):
            value = self._classify(value, job)

        if isinstance(value, Failure):
            self._fail(slot, value, job)
            return

        if value is None:
            if type_ref.nullable:
                slot.container[slot.key] = None  # type: ignore
            else:
                self._fail(
                    slot,
                    Failure(
                        ErrorCategory.INTERNAL,
                        f"Cannot return null for non-nullable field {job.field.coordinate}.",
                    ),
                    job,
                )
            return

        if type_ref.of_type is not None:
            self._complete_list(value, type_ref.of_type, slot, job, next_jobs)
            return

        type_def = self.registry.get_type(type_ref.named_type)

        if type_def.is_leaf:
            try:
                serialized = type_def.serialize(value)  # type: ignore
            except Exception as e:  # noqa: BLE001
                self._fail(slot, self._classify(e, job), job)
                return
            slot.container[slot.key] = serialized  # type: ignore
            return

        if type_def.is_abstract:
            try:
                object_type = self.registry.resolve_abstract_type(
                    type_def.name,
                    value,
                    job.info,  # type: ignore
                )
            except Exception as e:  # noqa: BLE001
                self._fail(slot, self._classify(e, job), job)
                return
        else:
            object_type = type_def  # type: ignore

        result: dict[str, Any] = {}
        slot.container[slot.key] = result  # type: ignore
        next_jobs.extend(
            self._object_jobs(
                object_type,
                merge_selections(job.nodes),
                result,
                slot,
                value,
            ),
        )

    def _complete_list(
        self,
        value: Any,
        item_type: TypeRef,
        slot: _Slot,
        job: _FieldJob,
        next_jobs: list[_FieldJob],
    ) -> None:
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
            self._fail(
                slot,
                Failure(
                    ErrorCategory.INTERNAL,
                    f"Expected Iterable, but did not find one for field {job.field.coordinate}.",
                ),
                job,
            )
            return

        items: list[Any] = []
        slot.container[slot.key] = items  # type: ignore
        for index, item in enumerate(value):
            items.append(None)
            self._complete_value(
                item,
                item_type,
                slot.child(items, index, item_type.nullable, index),
                job,
                next_jobs,
            )
            if slot.is_cut():
                # An item failure bubbled through this list
                return

    # Failures

    def _classify(self, error: BaseException, job: _FieldJob) -> Failure:
        failure = Failure.from_exception(error, internal_message=self.internal_error_message)
        if failure.is_internal and self.log_internal_errors:
            logger.error(
                "Error resolving %s at %s",
                job.field.coordinate,
                ".".join(str(key) for key in job.slot.path),
                exc_info=error,
            )
        return failure

    def _fail(self, slot: _Slot, failure: Failure, job: _FieldJob) -> None:
        """Null the nearest nullable position and report the failure once."""
        if slot.is_cut():
            return

        target = slot
        while not target.nullable and target.parent is not None:
            target = target.parent

        target.container[target.key] = None  # type: ignore
        target.nulled = True

        nodes = [node.ast for node in job.nodes if node.ast is not None]
        self.assembler.add(
            failure,
            list(slot.path),
            order=slot.order,
            nodes=nodes or None,
        )
