"""
Tests for the SLO list presenter: views, detail modal and deletion.
"""

from unittest.mock import MagicMock

import pytest

from slo_r.config import ViewKind
from slo_r.core import (
    NerdGraphException,
    ResourceNotFoundException,
    StorageMutationFailed,
    ValidationException,
)
from slo_r.slo.application import SloListPresenter

from conftest import make_slo


def _presenter(controller, document_service, **kwargs):
    remove_from_list = MagicMock()
    presenter = SloListPresenter(controller, document_service, remove_from_list, **kwargs)
    return presenter, remove_from_list


@pytest.mark.asyncio
async def test_views_follow_controller_state(controller, document_service):
    presenter, _ = _presenter(controller, document_service)
    assert presenter.current_view() == ViewKind.LOADING

    await controller.mount([make_slo("a")])
    assert presenter.current_view() == ViewKind.GRID

    presenter.is_table_view_active = True
    assert presenter.current_view() == ViewKind.TABLE

    await controller.update(slos=[])
    assert presenter.current_view() == ViewKind.EMPTY


@pytest.mark.asyncio
async def test_render_rows_and_error(controller, document_service, error_budget_service):
    presenter, _ = _presenter(controller, document_service)
    await controller.mount([make_slo("a"), make_slo("b")])
    error_budget_service.failing.add("b")
    await controller.refresh()

    view = presenter.render()

    assert view.view == "grid"
    assert view.state == "idle"
    assert view.total_count == 2
    assert view.failed_document_ids == ["b"]
    assert "b" in view.error
    assert view.rows[0]["current"] == {"value": "a:current"}


@pytest.mark.asyncio
async def test_empty_view_offers_define_slo(controller, document_service):
    handler = MagicMock()
    presenter, _ = _presenter(
        controller,
        document_service,
        define_slo_url="https://example.test/define",
        handle_define_new_slo=handler
    )
    await controller.mount([])

    view = presenter.render()

    assert view.view == "empty"
    assert view.rows == []
    assert view.define_slo_url == "https://example.test/define"
    assert presenter.define_new_slo() == "https://example.test/define"
    handler.assert_called_once_with()


def test_view_modal_toggles(controller, document_service):
    presenter, _ = _presenter(controller, document_service)

    presenter.toggle_view_modal("g1", "a")
    assert presenter.render().view_modal.open
    assert presenter.render().view_modal.document_id == "a"

    presenter.toggle_view_modal("g1", "a")
    assert not presenter.render().view_modal.open

    presenter.toggle_view_modal()
    presenter.close_view_modal()
    assert not presenter.render().view_modal.open


@pytest.mark.asyncio
async def test_load_document(controller, document_service, document_store):
    document_store.documents = {"g1": [{"documentId": "a", "indicator": "latency"}]}
    presenter, _ = _presenter(controller, document_service)

    assert await presenter.load_document("g1", "a") == {"documentId": "a", "indicator": "latency"}
    with pytest.raises(ResourceNotFoundException):
        await presenter.load_document("g1", "missing")


@pytest.mark.asyncio
async def test_find_document(controller, document_service):
    presenter, _ = _presenter(controller, document_service)
    await controller.mount([make_slo("a")])

    assert presenter.find_document("g1", "a").document_id == "a"
    with pytest.raises(ResourceNotFoundException):
        presenter.find_document("g2", "a")


@pytest.mark.asyncio
async def test_delete_success_removes_from_list_once(controller, document_service, document_store):
    slo = make_slo("a")
    document_store.documents = {"g1": [slo.document.to_dict(), {"documentId": "b"}]}
    presenter, remove_from_list = _presenter(controller, document_service)

    presenter.request_delete(slo.document)
    assert presenter.render().delete_modal.open

    deleted = await presenter.confirm_delete()

    assert deleted == slo.document
    remove_from_list.assert_called_once_with(slo.document)
    modal = presenter.render().delete_modal
    assert not modal.open
    assert not modal.is_processing
    assert modal.error is None
    assert document_store.removed_tags == []


@pytest.mark.asyncio
async def test_delete_failure_keeps_modal_open(controller, document_service, document_store):
    document_store.mutate_result = 0
    document_store.mutate_error = None
    presenter, remove_from_list = _presenter(controller, document_service)
    slo = make_slo("a")
    presenter.request_delete(slo.document)

    with pytest.raises(StorageMutationFailed):
        await presenter.confirm_delete()

    remove_from_list.assert_not_called()
    modal = presenter.render().delete_modal
    assert modal.open
    assert not modal.is_processing
    assert "a" in modal.error
    assert modal.document_id == "a"


@pytest.mark.asyncio
async def test_delete_transport_error_is_wrapped(controller, document_service, document_store):
    document_store.mutate_error = NerdGraphException("request failed after 3 attempts")
    presenter, remove_from_list = _presenter(controller, document_service)
    presenter.request_delete(make_slo("a").document)

    with pytest.raises(StorageMutationFailed) as exc_info:
        await presenter.confirm_delete()

    assert "request failed after 3 attempts" in exc_info.value.message
    remove_from_list.assert_not_called()

    # Retry succeeds once storage recovers
    document_store.mutate_error = None
    document_store.mutate_result = 1
    await presenter.confirm_delete()
    remove_from_list.assert_called_once()


@pytest.mark.asyncio
async def test_delete_unexpected_store_error_is_wrapped(controller, document_service, document_store):
    document_store.mutate_error = RuntimeError("store exploded")
    presenter, remove_from_list = _presenter(controller, document_service)
    presenter.request_delete(make_slo("a").document)

    with pytest.raises(StorageMutationFailed) as exc_info:
        await presenter.confirm_delete()

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert "store exploded" in exc_info.value.message
    remove_from_list.assert_not_called()
    modal = presenter.render().delete_modal
    assert modal.open
    assert "store exploded" in modal.error


@pytest.mark.asyncio
async def test_confirm_without_request_is_rejected(controller, document_service):
    presenter, _ = _presenter(controller, document_service)

    with pytest.raises(ValidationException):
        await presenter.confirm_delete()

    presenter.request_delete(make_slo("a").document)
    presenter.cancel_delete()
    with pytest.raises(ValidationException):
        await presenter.confirm_delete()


@pytest.mark.asyncio
async def test_last_document_removes_entity_tag(document_service, document_store):
    slo = make_slo("a")
    document_store.documents = {"g1": [slo.document.to_dict()]}

    await document_service.delete_document(slo.document)

    assert document_store.removed_tags == [("g1", ["slor"])]
