"""
SLO Infrastructure Layer
=========================

Infrastructure implementations for the SLO list:
- NerdGraph: GraphQL client with retries and circuit breaker
- Queries: error-budget and alert-driven scope query services
- Storage: entity storage document store
- External: refresh ticker (APScheduler), registry file watcher
"""

from slo_r.slo.infrastructure.nerdgraph import NerdGraphClient, CircuitBreaker
from slo_r.slo.infrastructure.queries import (
    ErrorBudgetQueryService,
    AlertDrivenQueryService,
)
from slo_r.slo.infrastructure.storage import EntityStorageDocumentStore
from slo_r.slo.infrastructure.external import PollScheduler, RegistryConfigManager

__all__ = [
    "NerdGraphClient",
    "CircuitBreaker",
    "ErrorBudgetQueryService",
    "AlertDrivenQueryService",
    "EntityStorageDocumentStore",
    "PollScheduler",
    "RegistryConfigManager",
]
