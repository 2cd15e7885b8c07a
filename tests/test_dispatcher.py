"""
Tests for the scope query fan-out.
"""

import pytest

from slo_r.config import SLO_SCOPES, SloScope
from slo_r.core import QueryBatchFailed

from conftest import make_slo


def test_routes_by_indicator(dispatcher, error_budget_service, alert_driven_service):
    assert dispatcher.service_for(make_slo("a").document) is error_budget_service
    assert dispatcher.service_for(make_slo("b", indicator="availability").document) is alert_driven_service
    assert dispatcher.service_for(make_slo("c", indicator="latency").document) is alert_driven_service


@pytest.mark.asyncio
async def test_issues_three_scopes_per_slo(dispatcher, error_budget_service, alert_driven_service, time_range):
    slos = [make_slo("a"), make_slo("b", indicator="availability")]

    batch = await dispatcher.dispatch(slos, time_range)

    assert batch.succeeded
    assert len(batch.results) == 6
    assert sorted(call["scope"].value for call in error_budget_service.calls) == sorted(s.value for s in SLO_SCOPES)
    assert [call["document"].document_id for call in alert_driven_service.calls] == ["b", "b", "b"]
    assert all(call["time_range"] == time_range for call in error_budget_service.calls)


@pytest.mark.asyncio
async def test_results_carry_document_and_scope(dispatcher, time_range):
    batch = await dispatcher.dispatch([make_slo("a")], time_range)

    by_scope = {result.scope: result for result in batch.results}
    assert by_scope[SloScope.SEVEN_DAY].data == {"value": "a:7_day"}
    assert all(result.document_id == "a" for result in batch.results)


@pytest.mark.asyncio
async def test_empty_list_issues_no_queries(dispatcher, error_budget_service, time_range):
    batch = await dispatcher.dispatch([], time_range)

    assert batch.results == []
    assert batch.succeeded
    assert error_budget_service.calls == []


@pytest.mark.asyncio
async def test_one_failing_slo_keeps_the_others(dispatcher, error_budget_service, time_range):
    error_budget_service.failing.add("bad")

    batch = await dispatcher.dispatch([make_slo("good"), make_slo("bad")], time_range)

    assert not batch.succeeded
    assert {result.document_id for result in batch.results} == {"good"}
    assert len(batch.results) == 3
    assert [failure.document_id for failure in batch.failures] == ["bad"]
    assert isinstance(batch.failures[0].error, RuntimeError)


@pytest.mark.asyncio
async def test_raise_for_failures(dispatcher, alert_driven_service, time_range):
    alert_driven_service.failing.add("x")
    batch = await dispatcher.dispatch([make_slo("x", indicator="capacity")], time_range)

    with pytest.raises(QueryBatchFailed) as exc_info:
        batch.raise_for_failures()

    assert [f.document_id for f in exc_info.value.failures] == ["x"]
    assert "x" in exc_info.value.message
