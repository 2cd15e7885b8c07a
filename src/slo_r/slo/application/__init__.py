"""
SLO Application Layer
======================

Application layer for the SLO list module.

Contains:
- Services: fan-out dispatcher, polling controller, registry, documents
- Presenter: view and modal state
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and service interfaces,
but not on concrete infrastructure implementations.
"""

from slo_r.slo.application.dto import (
    ViewModeRequest,
    ViewModalState,
    DeleteModalState,
    SloListViewResponse,
    SloDocumentResponse,
    DefineSloResponse,
)
from slo_r.slo.application.services import (
    ActionType,
    CycleState,
    DocumentMutation,
    FanOutQueryDispatcher,
    QueryBatch,
    SloDocumentService,
    SloListController,
    SloRegistry,
    ISloQueryService,
    IDocumentStore,
    IPollScheduler,
)
from slo_r.slo.application.presenter import SloListPresenter

__all__ = [
    # DTOs
    "ViewModeRequest",
    "ViewModalState",
    "DeleteModalState",
    "SloListViewResponse",
    "SloDocumentResponse",
    "DefineSloResponse",
    # Services
    "ActionType",
    "CycleState",
    "DocumentMutation",
    "FanOutQueryDispatcher",
    "QueryBatch",
    "SloDocumentService",
    "SloListController",
    "SloRegistry",
    "SloListPresenter",
    # Interfaces
    "ISloQueryService",
    "IDocumentStore",
    "IPollScheduler",
]
