"""
SLO Application DTOs
=====================

Data Transfer Objects for the SLO API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

# ========== Type Aliases for Literals ==========
ViewKindStr = Literal["loading", "empty", "table", "grid"]
CycleStateStr = Literal["idle", "fetching", "disposed"]


# ========== Request DTOs ==========

class ViewModeRequest(BaseModel):
    """Switch between table and grid rendering."""
    table: bool = Field(..., description="True for the table view, False for the grid")


# ========== Response DTOs ==========

class ViewModalState(BaseModel):
    """Document detail modal."""
    open: bool = False
    entity_guid: Optional[str] = None
    document_id: Optional[str] = None


class DeleteModalState(BaseModel):
    """Delete confirmation modal."""
    open: bool = False
    entity_guid: Optional[str] = None
    document_id: Optional[str] = None
    is_processing: bool = Field(False, description="Deletion call in flight")
    error: Optional[str] = Field(None, description="Last deletion failure, retryable")


class SloListViewResponse(BaseModel):
    """Everything needed to draw the SLO list."""
    view: ViewKindStr = Field(..., description="Which view to show")
    state: CycleStateStr = Field(..., description="Refresh cycle state")
    rows: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="One row per SLO document with current, 7_day and 30_day fields"
    )
    total_count: int = Field(0, ge=0)
    error: Optional[str] = Field(None, description="Failure of the last refresh cycle")
    failed_document_ids: List[str] = Field(default_factory=list)
    last_refreshed_at: Optional[datetime] = None
    define_slo_url: Optional[str] = Field(
        None,
        description="Offered by the empty state to define a new SLO"
    )
    view_modal: ViewModalState = Field(default_factory=ViewModalState)
    delete_modal: DeleteModalState = Field(default_factory=DeleteModalState)


class SloDocumentResponse(BaseModel):
    """Full SLO document for the detail modal."""
    entity_guid: str
    document_id: str
    document: Dict[str, Any]


class DefineSloResponse(BaseModel):
    url: Optional[str] = None
