"""
Pytest configuration and fixtures.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from slo_r.slo.application import (
    FanOutQueryDispatcher,
    IDocumentStore,
    IPollScheduler,
    ISloQueryService,
    SloDocumentService,
    SloListController,
)
from slo_r.slo.domain import ScopeResult, SloDefinition, SloDocument, TimeRange


def make_slo(document_id: str, indicator: str = "error_budget", entity_guid: str = "g1", **extra) -> SloDefinition:
    document = {"documentId": document_id, "entityGuid": entity_guid, "indicator": indicator, **extra}
    return SloDefinition(document=SloDocument.model_validate(document))


class FakeQueryService(ISloQueryService):
    """Answers ``{"value": "<document>:<scope>"}`` unless told otherwise."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.failing: set = set()
        self.gate: Optional[asyncio.Event] = None
        self.started = asyncio.Event()

    async def query(self, scope, document, time_range) -> ScopeResult:
        self.calls.append({"scope": scope, "document": document, "time_range": time_range})
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if document.document_id in self.failing:
            raise RuntimeError(f"query failed for {document.document_id}")
        return ScopeResult(
            document=document,
            scope=scope,
            data={"value": f"{document.document_id}:{scope.value}"}
        )


class RecordingScheduler(IPollScheduler):
    """Scheduler double that records arming instead of ticking."""

    def __init__(self):
        self.job = None
        self.arm_count = 0
        self.cancel_count = 0
        self.shut_down = False

    def arm(self, job) -> None:
        self.job = job
        self.arm_count += 1

    def cancel(self) -> None:
        self.job = None
        self.cancel_count += 1

    def shutdown(self) -> None:
        self.job = None
        self.shut_down = True

    @property
    def is_armed(self) -> bool:
        return self.job is not None

    async def tick(self) -> None:
        assert self.job is not None, "scheduler not armed"
        await self.job()


class FakeDocumentStore(IDocumentStore):
    """In-memory entity storage."""

    def __init__(self, documents: Optional[Dict[str, List[dict]]] = None):
        self.documents = documents or {}
        self.mutations = []
        self.removed_tags = []
        self.mutate_result: Any = None
        self.mutate_error: Optional[Exception] = None

    async def mutate(self, mutation) -> Any:
        self.mutations.append(mutation)
        if self.mutate_error is not None:
            raise self.mutate_error
        if self.mutate_result is not None:
            return self.mutate_result
        documents = self.documents.get(mutation.entity_guid, [])
        remaining = [d for d in documents if d["documentId"] != mutation.document_id]
        self.documents[mutation.entity_guid] = remaining
        return len(documents) - len(remaining)

    async def get_document(self, collection, entity_guid, document_id) -> Optional[dict]:
        for document in self.documents.get(entity_guid, []):
            if document["documentId"] == document_id:
                return document
        return None

    async def list_documents(self, collection, entity_guid) -> List[dict]:
        return list(self.documents.get(entity_guid, []))

    async def remove_entity_tags(self, entity_guid, tag_keys) -> bool:
        self.removed_tags.append((entity_guid, list(tag_keys)))
        return True


@pytest.fixture
def time_range():
    return TimeRange.last_minutes(30)


@pytest.fixture
def error_budget_service():
    return FakeQueryService()


@pytest.fixture
def alert_driven_service():
    return FakeQueryService()


@pytest.fixture
def dispatcher(error_budget_service, alert_driven_service):
    return FanOutQueryDispatcher(error_budget_service, alert_driven_service)


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def controller(dispatcher, scheduler, time_range):
    return SloListController(dispatcher, scheduler, time_range)


@pytest.fixture
def document_store():
    return FakeDocumentStore()


@pytest.fixture
def document_service(document_store):
    return SloDocumentService(document_store, "nr1-csg-slo-r", tag_key="slor")
