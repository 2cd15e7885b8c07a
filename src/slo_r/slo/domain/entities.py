"""
SLO Domain Entities
====================

Domain entities for the SLO list.

SLO documents are owned by entity storage and arrive here as immutable
pydantic models; scope results and table rows are plain dataclasses
produced while refreshing the list.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from slo_r.config import ERROR_BUDGET_INDICATOR, SLO_SCOPES, SloScope


class SloDocument(BaseModel):
    """
    SLO definition document as stored in entity storage.

    Only the identity fields and the indicator are interpreted; every
    other attribute (name, target, transactions, alerts, ...) is carried
    through untouched and spread into the table row.
    """

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    document_id: str = Field(..., alias="documentId", min_length=1)
    entity_guid: str = Field(..., alias="entityGuid", min_length=1)
    indicator: str = Field(..., min_length=1)
    name: Optional[str] = None
    account_id: Optional[int] = Field(default=None, alias="accountId")

    @property
    def is_error_budget(self) -> bool:
        """Error-budget SLOs are computed from transaction defects."""
        return self.indicator == ERROR_BUDGET_INDICATOR

    @property
    def key(self) -> tuple[str, str]:
        """Storage key: (entity GUID, document id)."""
        return self.entity_guid, self.document_id

    def to_dict(self) -> Dict[str, Any]:
        """Document fields in their stored (camelCase) shape."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class SloDefinition(BaseModel):
    """An SLO tracked by the list: the stored document plus metadata."""

    model_config = ConfigDict(extra="allow", frozen=True)

    document: SloDocument

    @property
    def document_id(self) -> str:
        return self.document.document_id


def slos_equal(new_slos: Sequence[SloDefinition], prev_slos: Sequence[SloDefinition]) -> bool:
    """Deep structural comparison of two tracked SLO lists."""
    if len(new_slos) != len(prev_slos):
        return False
    return list(new_slos) == list(prev_slos)


@dataclass(frozen=True)
class ScopeResult:
    """Computed metric payload for one (document, scope) pair."""

    document: SloDocument
    scope: SloScope
    data: Any

    @property
    def document_id(self) -> str:
        return self.document.document_id


@dataclass(frozen=True)
class TableRow:
    """
    Merged row of the SLO table.

    Holds the latest document and the scope payloads received so far.
    Rows are never mutated; ``with_scope`` returns a shallow copy.
    """

    document: SloDocument
    scopes: Mapping[SloScope, Any] = field(default_factory=dict)

    @classmethod
    def from_result(cls, result: ScopeResult) -> "TableRow":
        return cls(document=result.document, scopes={result.scope: result.data})

    @property
    def document_id(self) -> str:
        return self.document.document_id

    @property
    def is_complete(self) -> bool:
        """True once every compliance window has been populated."""
        return all(scope in self.scopes for scope in SLO_SCOPES)

    def with_scope(self, scope: SloScope, data: Any) -> "TableRow":
        return replace(self, scopes={**self.scopes, scope: data})

    def to_dict(self) -> Dict[str, Any]:
        """Flat row: document fields spread, then one key per scope."""
        row = self.document.to_dict()
        for scope in SLO_SCOPES:
            if scope in self.scopes:
                row[scope.value] = self.scopes[scope]
        return row


@dataclass(frozen=True)
class SloQueryFailure:
    """An SLO whose scope queries failed during a refresh cycle."""

    document: SloDocument
    error: BaseException

    @property
    def document_id(self) -> str:
        return self.document.document_id

    def describe(self) -> str:
        return f"{self.document_id}: {self.error}"
