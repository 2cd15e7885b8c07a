"""
SLO Scope Queries
=================

NRQL-backed implementations of ``ISloQueryService``.

- Error-budget SLOs: share of non-defective transactions of an application
- Alert-driven SLOs: share of the window without an open SLO alert
"""

from typing import Any, Iterable, List, Optional

from slo_r.config import SloScope
from slo_r.core import ValidationException
from slo_r.slo.application import ISloQueryService
from slo_r.slo.domain import (
    ComplianceCalculator,
    ScopeResult,
    ScopeWindow,
    SloDocument,
    TimeRange,
)
from slo_r.slo.infrastructure.nerdgraph import NerdGraphClient

# Events posted by the SLO-R alert webhook
ALERT_EVENT_TYPE = "SLOR_ALERTS"

DEFAULT_DEFECT = "error IS true"


def quote(value: str) -> str:
    """Single-quoted NRQL string literal."""
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _names(items: Optional[Iterable[Any]], key: str) -> List[str]:
    """Accept plain strings or dicts carrying ``key`` (or ``value``)."""
    names = []
    for item in items or []:
        if isinstance(item, dict):
            item = item.get(key) or item.get("value")
        if item:
            names.append(str(item))
    return names


def _account_id(document: SloDocument) -> int:
    if document.account_id is None:
        raise ValidationException(
            f"SLO document {document.document_id} has no accountId",
            {"document_id": document.document_id}
        )
    return document.account_id


def _target(document: SloDocument) -> Optional[float]:
    target = (document.model_extra or {}).get("target")
    try:
        return float(target) if target is not None else None
    except (TypeError, ValueError):
        return None


class ErrorBudgetQueryService(ISloQueryService):
    """Computes error-budget attainment from the Transaction event."""

    def __init__(self, client: NerdGraphClient):
        self._client = client

    @staticmethod
    def build_nrql(scope: SloScope, document: SloDocument, time_range: TimeRange) -> str:
        extra = document.model_extra or {}
        app_name = extra.get("appName")
        if not app_name:
            raise ValidationException(
                f"Error budget SLO {document.document_id} has no appName",
                {"document_id": document.document_id}
            )

        defects = _names(extra.get("defects"), "value") or [DEFAULT_DEFECT]
        defect_clause = " OR ".join(f"({defect})" for defect in defects)

        where = f"appName = {quote(app_name)}"
        transactions = _names(extra.get("transactions"), "name")
        if transactions and "all" not in transactions:
            where += f" AND name IN ({', '.join(quote(t) for t in transactions)})"

        return (
            "SELECT count(*) AS 'total', "
            f"filter(count(*), WHERE {defect_clause}) AS 'defects' "
            f"FROM Transaction WHERE {where} "
            f"{ScopeWindow.since_clause(scope, time_range)}"
        )

    async def query(
        self,
        scope: SloScope,
        document: SloDocument,
        time_range: TimeRange
    ) -> ScopeResult:
        nrql = self.build_nrql(scope, document, time_range)
        rows = await self._client.nrql(_account_id(document), nrql)
        first = rows[0] if rows else {}

        total = float(first.get("total") or 0)
        defects = float(first.get("defects") or 0)
        attainment = ComplianceCalculator.error_budget_attainment(total, defects)

        return ScopeResult(
            document=document,
            scope=scope,
            data={
                "result": attainment,
                "total": total,
                "defects": defects,
                "met": ComplianceCalculator.meets_target(attainment, _target(document)),
            }
        )


class AlertDrivenQueryService(ISloQueryService):
    """Computes attainment from the downtime of closed SLO alerts."""

    def __init__(self, client: NerdGraphClient):
        self._client = client

    @staticmethod
    def build_nrql(scope: SloScope, document: SloDocument, time_range: TimeRange) -> str:
        policies = _names((document.model_extra or {}).get("alerts"), "policy_name")
        if not policies:
            raise ValidationException(
                f"Alert driven SLO {document.document_id} has no alert policies",
                {"document_id": document.document_id}
            )

        return (
            "SELECT sum(duration) AS 'downtime', count(*) AS 'alerts' "
            f"FROM {ALERT_EVENT_TYPE} "
            f"WHERE policy_name IN ({', '.join(quote(p) for p in policies)}) "
            "AND current_state = 'closed' "
            f"{ScopeWindow.since_clause(scope, time_range)}"
        )

    async def query(
        self,
        scope: SloScope,
        document: SloDocument,
        time_range: TimeRange
    ) -> ScopeResult:
        nrql = self.build_nrql(scope, document, time_range)
        rows = await self._client.nrql(_account_id(document), nrql)
        first = rows[0] if rows else {}

        window_ms = ScopeWindow.window_ms(scope, time_range)
        downtime_ms = float(first.get("downtime") or 0)
        attainment = ComplianceCalculator.alert_driven_attainment(window_ms, downtime_ms)

        return ScopeResult(
            document=document,
            scope=scope,
            data={
                "result": attainment,
                "downtime_ms": downtime_ms,
                "window_ms": window_ms,
                "alerts": int(first.get("alerts") or 0),
                "met": ComplianceCalculator.meets_target(attainment, _target(document)),
            }
        )
