"""
SLO List Presenter
==================

Presentation state of the SLO list: which view is shown, the detail modal
and the delete confirmation modal.
"""

from typing import Callable, Optional

from slo_r.config import ViewKind
from slo_r.core import ResourceNotFoundException, StorageMutationFailed, ValidationException
from slo_r.shared.infrastructure.logging import get_logger
from slo_r.slo.application.dto import (
    DeleteModalState,
    SloListViewResponse,
    ViewModalState,
)
from slo_r.slo.application.services import SloDocumentService, SloListController
from slo_r.slo.domain import SloDocument

logger = get_logger(__name__)


class SloListPresenter:
    """
    View state on top of ``SloListController``.

    ``remove_from_list`` is the owner of the tracked list; it is called once
    a deletion succeeded so the next cycle no longer queries the document.
    """

    def __init__(
        self,
        controller: SloListController,
        document_service: SloDocumentService,
        remove_from_list: Callable[[SloDocument], None],
        is_table_view_active: bool = False,
        define_slo_url: Optional[str] = None,
        handle_define_new_slo: Optional[Callable[[], None]] = None
    ):
        self._controller = controller
        self._document_service = document_service
        self._remove_from_list = remove_from_list
        self._define_slo_url = define_slo_url
        self._handle_define_new_slo = handle_define_new_slo
        self.is_table_view_active = is_table_view_active

        self._is_view_modal_active = False
        self._view_entity_guid: Optional[str] = None
        self._view_document_id: Optional[str] = None

        self._is_delete_modal_active = False
        self._slo_to_be_deleted: Optional[SloDocument] = None
        self._is_deleting = False
        self._delete_error: Optional[str] = None

    @property
    def controller(self) -> SloListController:
        return self._controller

    def find_document(self, entity_guid: str, document_id: str) -> SloDocument:
        for slo in self._controller.slos:
            if slo.document.key == (entity_guid, document_id):
                return slo.document
        raise ResourceNotFoundException("SLO document", document_id)

    # ----- detail modal -----

    def toggle_view_modal(
        self,
        entity_guid: Optional[str] = None,
        document_id: Optional[str] = None
    ) -> None:
        self._view_entity_guid = entity_guid
        self._view_document_id = document_id
        self._is_view_modal_active = not self._is_view_modal_active

    def close_view_modal(self) -> None:
        self._is_view_modal_active = False

    async def load_document(self, entity_guid: str, document_id: str) -> dict:
        document = await self._document_service.get_document(entity_guid, document_id)
        if document is None:
            raise ResourceNotFoundException("SLO document", document_id)
        return document

    # ----- delete modal -----

    def request_delete(self, document: SloDocument) -> None:
        self._slo_to_be_deleted = document
        self._delete_error = None
        self._is_delete_modal_active = True

    def cancel_delete(self) -> None:
        self._is_delete_modal_active = False
        self._delete_error = None

    async def confirm_delete(self) -> SloDocument:
        """
        Delete the SLO awaiting confirmation.

        On success the document is removed from the tracked list and the
        modal closes. On failure the modal stays open with the error and
        ``StorageMutationFailed`` propagates.
        """
        document = self._slo_to_be_deleted
        if document is None or not self._is_delete_modal_active:
            raise ValidationException("No SLO is awaiting delete confirmation")

        self._is_deleting = True
        try:
            await self._document_service.delete_document(document)
        except StorageMutationFailed as e:
            self._delete_error = e.message
            logger.error(
                "SLO deletion failed",
                extra={"document_id": document.document_id, "entity_guid": document.entity_guid}
            )
            raise
        finally:
            self._is_deleting = False

        self._delete_error = None
        self._remove_from_list(document)
        self._is_delete_modal_active = False
        self._slo_to_be_deleted = None
        return document

    # ----- empty state -----

    def define_new_slo(self) -> Optional[str]:
        if self._handle_define_new_slo is not None:
            self._handle_define_new_slo()
        return self._define_slo_url

    # ----- rendering -----

    def current_view(self) -> ViewKind:
        if self._controller.is_processing:
            return ViewKind.LOADING
        if not self._controller.slos:
            return ViewKind.EMPTY
        return ViewKind.TABLE if self.is_table_view_active else ViewKind.GRID

    def render(self) -> SloListViewResponse:
        view = self.current_view()
        controller = self._controller
        error = controller.last_error

        rows = []
        if view in (ViewKind.TABLE, ViewKind.GRID):
            rows = controller.table.to_list()

        deleting = self._slo_to_be_deleted
        return SloListViewResponse(
            view=view.value,
            state=controller.state.value,
            rows=rows,
            total_count=len(rows),
            error=error.message if error else None,
            failed_document_ids=[f.document_id for f in error.failures] if error else [],
            last_refreshed_at=controller.last_refreshed_at,
            define_slo_url=self._define_slo_url if view == ViewKind.EMPTY else None,
            view_modal=ViewModalState(
                open=self._is_view_modal_active,
                entity_guid=self._view_entity_guid,
                document_id=self._view_document_id
            ),
            delete_modal=DeleteModalState(
                open=self._is_delete_modal_active,
                entity_guid=deleting.entity_guid if deleting else None,
                document_id=deleting.document_id if deleting else None,
                is_processing=self._is_deleting,
                error=self._delete_error
            )
        )
