"""
SLO Controllers (API Routes)
=============================

FastAPI routes for the SLO list.

Controllers are thin - they delegate to the presenter and application
services stored on the application state.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from slo_r.core import (
    ExternalServiceException,
    ResourceNotFoundException,
    StorageMutationFailed,
    ValidationException,
)
from slo_r.shared.infrastructure.logging import get_logger
from slo_r.slo.application import (
    DefineSloResponse,
    SloDocumentResponse,
    SloListPresenter,
    SloListViewResponse,
    ViewModeRequest,
)
from slo_r.slo.domain import TimeRange

logger = get_logger(__name__)
router = APIRouter(prefix="/slo", tags=["SLO List"])


# ========== Example payloads for Swagger ==========

SLO_LIST_RESPONSE_EXAMPLE = {
    "view": "grid",
    "state": "idle",
    "rows": [
        {
            "documentId": "6f1c2c1e-0c5a-4d0e-9a55-0f3f3c4b9a11",
            "entityGuid": "MXxBUE18QVBQTElDQVRJT058MTIz",
            "indicator": "error_budget",
            "name": "Checkout errors",
            "accountId": 1,
            "current": {"result": 99.95, "total": 20000.0, "defects": 10.0, "met": True},
            "7_day": {"result": 99.9, "total": 980000.0, "defects": 980.0, "met": True},
            "30_day": {"result": 99.7, "total": 4100000.0, "defects": 12300.0, "met": False}
        }
    ],
    "total_count": 1,
    "error": None,
    "failed_document_ids": [],
    "last_refreshed_at": "2024-01-15T10:00:00Z",
    "define_slo_url": None,
    "view_modal": {"open": False, "entity_guid": None, "document_id": None},
    "delete_modal": {
        "open": False,
        "entity_guid": None,
        "document_id": None,
        "is_processing": False,
        "error": None
    }
}


# ========== Dependencies ==========

def get_presenter(request: Request) -> SloListPresenter:
    """Get the SLO list presenter created at startup."""
    presenter = getattr(request.app.state, "slo_presenter", None)
    if presenter is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="SLO list not initialized"
        )
    return presenter


# ========== Route Handlers ==========

@router.get(
    "/list",
    response_model=SloListViewResponse,
    summary="Get the SLO list",
    description="""
    Current state of the SLO list.

    **Views**: `loading` (first refresh after startup or a list change),
    `empty` (no SLOs tracked), `table` or `grid`.

    Every row carries the stored document fields plus `current`, `7_day`
    and `30_day` compliance payloads. `error` is set when some SLOs failed
    to refresh; their previous rows are kept.
    """,
    responses={
        200: {
            "description": "SLO list",
            "content": {"application/json": {"example": SLO_LIST_RESPONSE_EXAMPLE}}
        }
    }
)
async def get_slo_list(presenter: SloListPresenter = Depends(get_presenter)):
    return presenter.render()


@router.put("/list/view-mode", response_model=SloListViewResponse, summary="Switch table/grid view")
async def set_view_mode(
    request: ViewModeRequest,
    presenter: SloListPresenter = Depends(get_presenter)
):
    presenter.is_table_view_active = request.table
    return presenter.render()


@router.put(
    "/list/time-range",
    response_model=SloListViewResponse,
    summary="Change the time range of the current scope"
)
async def set_time_range(
    time_range: TimeRange,
    presenter: SloListPresenter = Depends(get_presenter)
):
    await presenter.controller.update(time_range=time_range)
    return presenter.render()


@router.post(
    "/list/refresh",
    response_model=SloListViewResponse,
    summary="Refresh SLO metrics now",
    description="Runs a refresh cycle unless one is already running."
)
async def refresh_slo_list(presenter: SloListPresenter = Depends(get_presenter)):
    refreshed = await presenter.controller.refresh()
    logger.info("Manual refresh requested", extra={"refreshed": refreshed})
    return presenter.render()


@router.post(
    "/list/define-new",
    response_model=DefineSloResponse,
    summary="Start defining a new SLO"
)
async def define_new_slo(presenter: SloListPresenter = Depends(get_presenter)):
    return DefineSloResponse(url=presenter.define_new_slo())


@router.post(
    "/documents/{entity_guid}/{document_id}/view",
    response_model=SloListViewResponse,
    summary="Toggle the document detail modal"
)
async def toggle_view_modal(
    entity_guid: str,
    document_id: str,
    presenter: SloListPresenter = Depends(get_presenter)
):
    presenter.toggle_view_modal(entity_guid, document_id)
    return presenter.render()


@router.delete("/list/view-modal", response_model=SloListViewResponse, summary="Close the detail modal")
async def close_view_modal(presenter: SloListPresenter = Depends(get_presenter)):
    presenter.close_view_modal()
    return presenter.render()


@router.get(
    "/documents/{entity_guid}/{document_id}",
    response_model=SloDocumentResponse,
    summary="Get a full SLO document",
    responses={404: {"description": "Document not found"}}
)
async def get_slo_document(
    entity_guid: str,
    document_id: str,
    presenter: SloListPresenter = Depends(get_presenter)
):
    try:
        document = await presenter.load_document(entity_guid, document_id)
    except ResourceNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except ExternalServiceException as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    return SloDocumentResponse(
        entity_guid=entity_guid,
        document_id=document_id,
        document=document
    )


@router.post(
    "/documents/{entity_guid}/{document_id}/delete-request",
    response_model=SloListViewResponse,
    summary="Open the delete confirmation modal",
    responses={404: {"description": "SLO not tracked"}}
)
async def request_delete(
    entity_guid: str,
    document_id: str,
    presenter: SloListPresenter = Depends(get_presenter)
):
    try:
        document = presenter.find_document(entity_guid, document_id)
    except ResourceNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    presenter.request_delete(document)
    return presenter.render()


@router.post(
    "/list/delete-modal/cancel",
    response_model=SloListViewResponse,
    summary="Close the delete confirmation modal"
)
async def cancel_delete(presenter: SloListPresenter = Depends(get_presenter)):
    presenter.cancel_delete()
    return presenter.render()


@router.post(
    "/list/delete-modal/confirm",
    response_model=SloListViewResponse,
    summary="Delete the SLO awaiting confirmation",
    description="""
    Deletes the SLO document from entity storage and stops tracking it.

    On failure the modal stays open with the error and the request answers
    `502`; the deletion can be retried.
    """,
    responses={
        409: {"description": "No SLO awaiting confirmation"},
        502: {"description": "Entity storage rejected the deletion"}
    }
)
async def confirm_delete(presenter: SloListPresenter = Depends(get_presenter)):
    try:
        await presenter.confirm_delete()
    except ValidationException as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except StorageMutationFailed as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": e.message, "retryable": True}
        )
    return presenter.render()


# Export router for inclusion in main app
slo_router = router
