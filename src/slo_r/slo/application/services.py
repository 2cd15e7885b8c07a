"""
SLO Application Services
=========================

Application services orchestrate the SLO list: they fan scope queries out
to the query services, merge the results into the table, keep the refresh
ticker armed and talk to entity storage for detail and deletion.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (query services, document
  store, scheduler), not concrete implementations
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from slo_r.config import SLO_SCOPES, SloScope
from slo_r.core import (
    ExternalServiceException,
    QueryBatchFailed,
    StorageMutationFailed,
)
from slo_r.shared.infrastructure.logging import get_logger, log_latency
from slo_r.slo.domain import (
    ScopeResult,
    SloDefinition,
    SloDocument,
    SloQueryFailure,
    SloTable,
    TimeRange,
    fold_scope_results,
    slos_equal,
)

logger = get_logger(__name__)


# ========== Service Interfaces (Dependency Inversion) ==========

class ISloQueryService(ABC):
    """Computes the metric payload of one SLO for one scope."""

    @abstractmethod
    async def query(
        self,
        scope: SloScope,
        document: SloDocument,
        time_range: TimeRange
    ) -> ScopeResult:
        """Run the scope query and return ``ScopeResult(document, scope, data)``."""


class ActionType(str, Enum):
    """Entity storage mutation actions."""
    DELETE_DOCUMENT = "DELETE_DOCUMENT"


@dataclass(frozen=True)
class DocumentMutation:
    """Entity storage mutation addressed by collection, entity and document."""
    action_type: ActionType
    collection: str
    entity_guid: str
    document_id: str


class IDocumentStore(ABC):
    """Entity-scoped document storage."""

    @abstractmethod
    async def mutate(self, mutation: DocumentMutation) -> Any:
        """Apply a mutation. A falsy result means the mutation failed."""

    @abstractmethod
    async def get_document(
        self,
        collection: str,
        entity_guid: str,
        document_id: str
    ) -> Optional[dict]:
        """Get one document, or None when it does not exist."""

    @abstractmethod
    async def list_documents(self, collection: str, entity_guid: str) -> List[dict]:
        """List every document of the entity's collection."""

    @abstractmethod
    async def remove_entity_tags(self, entity_guid: str, tag_keys: Sequence[str]) -> bool:
        """Remove tags from an entity."""


class IPollScheduler(ABC):
    """Repeating trigger for refresh cycles."""

    @abstractmethod
    def arm(self, job: Callable[[], Awaitable[None]]) -> None:
        """Start (or restart) the repeating job, replacing any previous one."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop the repeating job. The scheduler can be armed again."""

    @abstractmethod
    def shutdown(self) -> None:
        """Stop for good."""

    @property
    @abstractmethod
    def is_armed(self) -> bool:
        """Whether a repeating job is currently scheduled."""


# ========== Fan-out ==========

@dataclass
class QueryBatch:
    """Outcome of one fan-out: merged-ready results plus per-SLO failures."""
    results: List[ScopeResult] = field(default_factory=list)
    failures: List[SloQueryFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            raise QueryBatchFailed(self.failures)


class FanOutQueryDispatcher:
    """
    Issues the current, 7-day and 30-day queries for every SLO.

    Error-budget SLOs go to the error-budget service, every other indicator
    to the alert-driven service. Each SLO is loaded independently: its three
    scopes succeed or fail together, and one failing SLO never drops the
    results of the others.
    """

    def __init__(
        self,
        error_budget_service: ISloQueryService,
        alert_driven_service: ISloQueryService
    ):
        self._error_budget_service = error_budget_service
        self._alert_driven_service = alert_driven_service

    def service_for(self, document: SloDocument) -> ISloQueryService:
        if document.is_error_budget:
            return self._error_budget_service
        return self._alert_driven_service

    async def load_slo(self, slo: SloDefinition, time_range: TimeRange) -> List[ScopeResult]:
        """Query all scopes of one SLO concurrently."""
        document = slo.document
        service = self.service_for(document)

        tasks = [
            asyncio.ensure_future(
                service.query(scope=scope, document=document, time_range=time_range)
            )
            for scope in SLO_SCOPES
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except Exception:
            for task in tasks:
                task.cancel()
            raise

    async def dispatch(
        self,
        slos: Sequence[SloDefinition],
        time_range: TimeRange
    ) -> QueryBatch:
        """Load every SLO and collect results and failures."""
        batch = QueryBatch()
        if not slos:
            return batch

        with log_latency(logger, "scope_fan_out", slos=len(slos)):
            outcomes = await asyncio.gather(
                *(self.load_slo(slo, time_range) for slo in slos),
                return_exceptions=True
            )

        for slo, outcome in zip(slos, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(
                    "SLO scope queries failed",
                    extra={
                        "document_id": slo.document.document_id,
                        "entity_guid": slo.document.entity_guid,
                        "error_type": type(outcome).__name__,
                        "error": str(outcome)
                    }
                )
                batch.failures.append(SloQueryFailure(document=slo.document, error=outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                batch.results.extend(outcome)

        return batch


# ========== Polling Controller ==========

class CycleState(str, Enum):
    """Refresh cycle states."""
    IDLE = "idle"
    FETCHING = "fetching"
    DISPOSED = "disposed"


class SloListController:
    """
    Owns the SLO table and keeps it fresh.

    - ``mount`` and every change of the tracked list (deep comparison) or of
      the time range clear the table, cancel any in-flight cycle, start a new
      cycle and re-arm the ticker.
    - Ticker refreshes keep the previous table visible until the new cycle
      completes, then replace it wholesale.
    - A tick that fires while a cycle is running is skipped.
    - Each cycle carries a generation number; results of superseded cycles
      and of cycles finishing after ``dispose`` are discarded.
    """

    def __init__(
        self,
        dispatcher: FanOutQueryDispatcher,
        scheduler: IPollScheduler,
        time_range: TimeRange
    ):
        self._dispatcher = dispatcher
        self._scheduler = scheduler
        self._time_range = time_range
        self._slos: List[SloDefinition] = []
        self._table = SloTable()
        self._state = CycleState.IDLE
        self._is_processing = True
        self._mounted = False
        self._generation = 0
        self._cycle_task: Optional[asyncio.Task] = None

        self.last_error: Optional[QueryBatchFailed] = None
        self.last_refreshed_at: Optional[datetime] = None

    # ----- inputs -----

    async def mount(
        self,
        slos: Optional[Iterable[SloDefinition]] = None,
        time_range: Optional[TimeRange] = None
    ) -> None:
        """Start tracking: first cycle plus ticker."""
        if self.is_disposed:
            return
        if slos is not None:
            self._slos = list(slos)
        if time_range is not None:
            self._time_range = time_range
        self._mounted = True
        self._rearm()
        await self.wait_for_cycle()

    def set_slos(self, slos: Iterable[SloDefinition]) -> bool:
        """
        Replace the tracked list. Returns True when it differs from the
        current one and a fresh cycle was started.
        """
        slos = list(slos)
        if self.is_disposed or slos_equal(slos, self._slos):
            return False
        self._slos = slos
        if self._mounted:
            self._rearm()
        return True

    def set_time_range(self, time_range: TimeRange) -> bool:
        if self.is_disposed or time_range == self._time_range:
            return False
        self._time_range = time_range
        if self._mounted:
            self._rearm()
        return True

    async def update(
        self,
        slos: Optional[Iterable[SloDefinition]] = None,
        time_range: Optional[TimeRange] = None
    ) -> bool:
        """Apply new inputs and wait for the resulting cycle, if any."""
        changed = False
        if slos is not None:
            changed = self.set_slos(slos) or changed
        if time_range is not None:
            changed = self.set_time_range(time_range) or changed
        if changed:
            await self.wait_for_cycle()
        return changed

    # ----- cycles -----

    async def refresh(self) -> bool:
        """
        Run one cycle now without clearing the table.

        Returns False when skipped (not mounted, disposed, or a cycle is
        already in flight).
        """
        if self.is_disposed or not self._mounted:
            return False
        if self._cycle_task is not None and not self._cycle_task.done():
            logger.info(
                "Refresh skipped, previous cycle still running",
                extra={"generation": self._generation}
            )
            return False
        self._cycle_task = asyncio.create_task(self._run_cycle(self._generation))
        await self.wait_for_cycle()
        return True

    async def wait_for_cycle(self) -> None:
        """Wait for the latest cycle, following it when it gets superseded."""
        task = self._cycle_task
        while task is not None:
            await asyncio.wait({task})
            if task.cancelled():
                if self._cycle_task is task:
                    return
                task = self._cycle_task
                continue
            task.result()
            return

    def dispose(self) -> None:
        """Stop the ticker. Cycles still in flight finish as no-ops."""
        if self.is_disposed:
            return
        self._state = CycleState.DISPOSED
        self._scheduler.shutdown()
        logger.info(
            "SLO list controller disposed",
            extra={"in_flight": self._cycle_task is not None and not self._cycle_task.done()}
        )

    def _rearm(self) -> None:
        self._generation += 1
        if self._cycle_task is not None and not self._cycle_task.done():
            self._cycle_task.cancel()
            logger.info(
                "Cancelled superseded refresh cycle",
                extra={"generation": self._generation - 1}
            )

        # The cancelled cycle no longer owns the state
        self._state = CycleState.IDLE
        self._table = SloTable()
        self.last_error = None
        if self._slos:
            self._is_processing = True
            self._cycle_task = asyncio.create_task(self._run_cycle(self._generation))
        else:
            self._is_processing = False
            self._cycle_task = None
        self._scheduler.arm(self._on_tick)

    async def _on_tick(self) -> None:
        if self.is_disposed:
            return
        await self.refresh()

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and not self.is_disposed

    async def _run_cycle(self, generation: int) -> None:
        slos = list(self._slos)
        time_range = self._time_range
        if not slos or not self._is_current(generation):
            return

        self._state = CycleState.FETCHING
        try:
            batch = await self._dispatcher.dispatch(slos, time_range)
        finally:
            if self._is_current(generation):
                self._state = CycleState.IDLE
                self._is_processing = False

        if not self._is_current(generation):
            logger.debug(
                "Discarding results of a stale refresh cycle",
                extra={"generation": generation, "disposed": self.is_disposed}
            )
            return

        self._apply(batch)

    def _apply(self, batch: QueryBatch) -> None:
        table = fold_scope_results(batch.results)

        if batch.failures:
            # Failed SLOs keep their last known row
            carried = table.carry_over(
                self._table, [failure.document_id for failure in batch.failures]
            )
            self.last_error = QueryBatchFailed(batch.failures)
            logger.warning(
                "Refresh cycle finished with failed SLOs",
                extra={
                    "failed_document_ids": [f.document_id for f in batch.failures],
                    "carried_over": carried
                }
            )
        else:
            self.last_error = None

        self._table = table
        self.last_refreshed_at = datetime.now(timezone.utc)
        logger.info(
            "Refresh cycle applied",
            extra={"rows": len(table), "generation": self._generation}
        )

    # ----- state -----

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def is_fetching(self) -> bool:
        return self._state == CycleState.FETCHING

    @property
    def is_processing(self) -> bool:
        """True until the first cycle after mount or a list change completes."""
        return self._is_processing and not self.is_disposed

    @property
    def is_disposed(self) -> bool:
        return self._state == CycleState.DISPOSED

    @property
    def table(self) -> SloTable:
        return self._table

    @property
    def slos(self) -> List[SloDefinition]:
        return list(self._slos)

    @property
    def time_range(self) -> TimeRange:
        return self._time_range

    @property
    def generation(self) -> int:
        return self._generation


# ========== Tracked list ==========

SloListListener = Callable[[List[SloDefinition]], Any]


class SloRegistry:
    """
    The tracked SLO list.

    Loads the SLO documents of the configured entities from entity storage
    and notifies subscribers whenever the list changes.
    """

    def __init__(self, document_store: IDocumentStore, collection: str):
        self._document_store = document_store
        self._collection = collection
        self._slos: List[SloDefinition] = []
        self._listeners: List[SloListListener] = []

    @property
    def slos(self) -> List[SloDefinition]:
        return list(self._slos)

    def subscribe(self, listener: SloListListener) -> None:
        self._listeners.append(listener)

    def replace(self, slos: Iterable[SloDefinition]) -> None:
        self._slos = list(slos)
        for listener in self._listeners:
            listener(self.slos)

    async def load(self, entity_guids: Sequence[str]) -> List[SloDefinition]:
        """Load the SLO documents of every entity and replace the list."""
        per_entity = await asyncio.gather(
            *(self._document_store.list_documents(self._collection, guid) for guid in entity_guids)
        )

        slos: List[SloDefinition] = []
        for entity_guid, documents in zip(entity_guids, per_entity):
            for raw in documents:
                try:
                    document = SloDocument.model_validate({"entityGuid": entity_guid, **raw})
                except ValidationError as e:
                    logger.warning(
                        "Skipping malformed SLO document",
                        extra={"entity_guid": entity_guid, "error": str(e)}
                    )
                    continue
                slos.append(SloDefinition(document=document))

        logger.info(
            "SLO registry loaded",
            extra={"entities": len(entity_guids), "slos": len(slos)}
        )
        self.replace(slos)
        return slos

    def remove_from_list(self, document: SloDocument) -> None:
        """Drop a document so later cycles stop querying it."""
        remaining = [slo for slo in self._slos if slo.document.key != document.key]
        if len(remaining) == len(self._slos):
            logger.warning(
                "SLO document not tracked",
                extra={"document_id": document.document_id, "entity_guid": document.entity_guid}
            )
            return
        self.replace(remaining)


# ========== Documents ==========

class SloDocumentService:
    """Reads and deletes SLO documents in entity storage."""

    def __init__(
        self,
        document_store: IDocumentStore,
        collection: str,
        tag_key: Optional[str] = None
    ):
        self._document_store = document_store
        self._collection = collection
        self._tag_key = tag_key

    async def get_document(self, entity_guid: str, document_id: str) -> Optional[dict]:
        return await self._document_store.get_document(
            self._collection, entity_guid, document_id
        )

    async def delete_document(self, document: SloDocument) -> None:
        """
        Delete one SLO document.

        Raises:
            StorageMutationFailed: the store returned a falsy result or failed
        """
        mutation = DocumentMutation(
            action_type=ActionType.DELETE_DOCUMENT,
            collection=self._collection,
            entity_guid=document.entity_guid,
            document_id=document.document_id
        )

        try:
            result = await self._document_store.mutate(mutation)
        except ExternalServiceException as e:
            raise StorageMutationFailed(
                document.entity_guid, document.document_id, reason=e.message
            ) from e
        except Exception as e:
            raise StorageMutationFailed(
                document.entity_guid, document.document_id, reason=str(e) or type(e).__name__
            ) from e

        if not result:
            raise StorageMutationFailed(document.entity_guid, document.document_id)

        logger.info(
            "SLO document deleted",
            extra={"document_id": document.document_id, "entity_guid": document.entity_guid}
        )
        await self._untag_if_last(document.entity_guid)

    async def _untag_if_last(self, entity_guid: str) -> None:
        """Remove the SLO tag from an entity that has no SLO documents left."""
        if not self._tag_key:
            return

        try:
            remaining = await self._document_store.list_documents(self._collection, entity_guid)
            if remaining:
                return
            await self._document_store.remove_entity_tags(entity_guid, [self._tag_key])
            logger.info(
                "Removed SLO tag from entity without SLO documents",
                extra={"entity_guid": entity_guid, "tag_key": self._tag_key}
            )
        except ExternalServiceException as e:
            logger.warning(
                "SLO tag cleanup failed",
                extra={"entity_guid": entity_guid, "error": str(e)}
            )
