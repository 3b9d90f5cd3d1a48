# -*- coding: utf-8 -*-
"""
Econova Waste Accounting Ledger SDK
===================================

This package provides the annual waste ledger and the monthly
close/transfer workflow behind Zero Waste certification. It supports:

- Per-tenant annual matrix of material weights by month and category
- Atomic batch saves that apply every edit or none
- Append-only daily waste log sealed once its month closes
- Monthly summaries moving open -> closed -> transferred
- Immutable official deviation records for certification
- Diversion index and certification bands
- SHA-256 provenance tracking for ledger writes
- Prometheus metrics for observability
- In-memory and SQLite stores selected by the caller
- FastAPI REST API
- Thread-safe configuration with ECONOVA_LEDGER_ env prefix

Key Components:
    - taxonomy: MaterialTaxonomy of valid materials per category
    - validator: LedgerValidator for every write
    - matrix: LedgerMatrix for the annual spreadsheet
    - aggregator: pure total and diversion functions
    - daily_recorder: DailyEntryRecorder for the daily log
    - lifecycle: MonthlyLifecycleController for close and transfer
    - archive: OfficialRecordsArchive for certification records
    - store / sqlite_store: LedgerStore implementations
    - provenance: ProvenanceTracker for SHA-256 audit trails
    - config: WasteLedgerConfig with ECONOVA_LEDGER_ env prefix
    - metrics: Prometheus metrics
    - setup: WasteLedgerService facade and API router

Example:
    >>> from econova.waste_ledger import InMemoryLedgerStore, WasteLedgerService
    >>> service = WasteLedgerService(InMemoryLedgerStore())
    >>> entry = service.record_daily_entry(
    ...     "1", "2025-01-10T09:00:00", "recycling", "PET", 5, "Cafetería")
    >>> summary = service.close_month("1", 2025, 1, closed_by="ana")
    >>> record = service.transfer_month("1", 2025, 1)
    >>> print(record.deviation_percent)  # 100.0
"""

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from econova.waste_ledger.config import (
    WasteLedgerConfig,
    get_config,
    set_config,
    reset_config,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from econova.waste_ledger.models import (
    # Enumerations
    WasteCategory,
    CIRCULAR_CATEGORIES,
    MonthStatus,
    CertificationBand,
    # Matrix models
    CellKey,
    LedgerCell,
    CellEdit,
    YearMatrix,
    # Daily log
    DailyWasteEntry,
    # Aggregates
    CategoryTotals,
    MonthlySummary,
    MonthDetail,
    YearSummary,
    # Certification
    OfficialDeviationRecord,
    CertificationStatus,
    # Audit
    ProvenanceEntry,
)

# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------
from econova.waste_ledger.taxonomy import (
    MONTH_LABELS,
    MaterialTaxonomy,
    DEFAULT_TAXONOMY,
)

# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------
from econova.waste_ledger.store import LedgerStore, InMemoryLedgerStore
from econova.waste_ledger.sqlite_store import SQLiteLedgerStore

# ---------------------------------------------------------------------------
# Core engines
# ---------------------------------------------------------------------------
from econova.waste_ledger.aggregator import (
    row_total,
    category_month_total,
    grand_total,
    category_totals,
    diversion_index,
    certification_status,
)
from econova.waste_ledger.validator import LedgerValidator
from econova.waste_ledger.matrix import LedgerMatrix
from econova.waste_ledger.daily_recorder import DailyEntryRecorder
from econova.waste_ledger.lifecycle import MonthlyLifecycleController
from econova.waste_ledger.archive import OfficialRecordsArchive
from econova.waste_ledger.provenance import ProvenanceTracker

# ---------------------------------------------------------------------------
# Service setup facade
# ---------------------------------------------------------------------------
from econova.waste_ledger.setup import (
    WasteLedgerService,
    configure_waste_ledger_service,
    get_waste_ledger_service,
    get_router,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "WasteLedgerConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Enumerations
    "WasteCategory",
    "CIRCULAR_CATEGORIES",
    "MonthStatus",
    "CertificationBand",
    # Matrix models
    "CellKey",
    "LedgerCell",
    "CellEdit",
    "YearMatrix",
    # Daily log
    "DailyWasteEntry",
    # Aggregates
    "CategoryTotals",
    "MonthlySummary",
    "MonthDetail",
    "YearSummary",
    # Certification
    "OfficialDeviationRecord",
    "CertificationStatus",
    # Audit
    "ProvenanceEntry",
    # Taxonomy
    "MONTH_LABELS",
    "MaterialTaxonomy",
    "DEFAULT_TAXONOMY",
    # Stores
    "LedgerStore",
    "InMemoryLedgerStore",
    "SQLiteLedgerStore",
    # Aggregation
    "row_total",
    "category_month_total",
    "grand_total",
    "category_totals",
    "diversion_index",
    "certification_status",
    # Core engines
    "LedgerValidator",
    "LedgerMatrix",
    "DailyEntryRecorder",
    "MonthlyLifecycleController",
    "OfficialRecordsArchive",
    "ProvenanceTracker",
    # Service facade
    "WasteLedgerService",
    "configure_waste_ledger_service",
    "get_waste_ledger_service",
    "get_router",
]
