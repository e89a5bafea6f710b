"""
Core services for the trailer planning engine.

Business logic layer containing:
- Planning: plan suggestion, preview and the apply/reject lifecycle
- Ledger: bounded, cursor-paginated event log
- Import: CSV/JSON bulk load import
- Store: planning snapshot persistence protocol
"""

from .ledger import EventLedger
from .importer import FileKind, ImportMode, ImportRowError, IMPORT_TEMPLATE_CSV
from .store import (
    DEFAULT_ORG_ID,
    InMemorySnapshotStore,
    PlanningSnapshot,
    SnapshotStore,
    build_default_snapshot,
)
from .planning import (
    ContextView,
    ImportResult,
    LoadFilters,
    PlanApplyRequest,
    PlanApplyResult,
    PlanningService,
    PlanPreviewRequest,
    PlanPreviewResult,
    PlanRejectResult,
)

__all__ = [
    "EventLedger",
    "FileKind",
    "ImportMode",
    "ImportRowError",
    "IMPORT_TEMPLATE_CSV",
    "DEFAULT_ORG_ID",
    "InMemorySnapshotStore",
    "PlanningSnapshot",
    "SnapshotStore",
    "build_default_snapshot",
    "ContextView",
    "ImportResult",
    "LoadFilters",
    "PlanApplyRequest",
    "PlanApplyResult",
    "PlanningService",
    "PlanPreviewRequest",
    "PlanPreviewResult",
    "PlanRejectResult",
]
