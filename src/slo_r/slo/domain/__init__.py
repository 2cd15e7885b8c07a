"""
SLO Domain Layer
================

Domain layer for the SLO list module.

Contains:
- Entities: SloDocument, SloDefinition, ScopeResult, TableRow
- Value Objects: TimeRange, ScopeWindow, ComplianceCalculator
- Table: keyed merge of scope results

This layer has no dependencies on infrastructure.
"""

from slo_r.slo.domain.entities import (
    SloDocument,
    SloDefinition,
    ScopeResult,
    TableRow,
    SloQueryFailure,
    slos_equal,
)
from slo_r.slo.domain.value_objects import (
    TimeRange,
    ScopeWindow,
    ComplianceCalculator,
    RegistryConfig,
)
from slo_r.slo.domain.table import SloTable, fold_scope_results

__all__ = [
    # Entities
    "SloDocument",
    "SloDefinition",
    "ScopeResult",
    "TableRow",
    "SloQueryFailure",
    "slos_equal",
    # Value Objects & Services
    "TimeRange",
    "ScopeWindow",
    "ComplianceCalculator",
    "RegistryConfig",
    # Table
    "SloTable",
    "fold_scope_results",
]
