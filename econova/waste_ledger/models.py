# -*- coding: utf-8 -*-
"""
Waste Ledger Data Models - Econova Waste Accounting Ledger

Pydantic v2 data models for the Waste Ledger SDK.

Models:
    - Enums: WasteCategory, MonthStatus, CertificationBand
    - Keys: CellKey (structured composite key for matrix cells)
    - Matrix: LedgerCell, CellEdit, YearMatrix
    - Daily log: DailyWasteEntry
    - Aggregates: CategoryTotals, MonthlySummary, MonthDetail, YearSummary
    - Certification: OfficialDeviationRecord, CertificationStatus
    - Audit: ProvenanceEntry

Derived figures (totals, breakdowns, deviation) are always produced by the
aggregator; nothing here computes or accepts caller-supplied totals except
the frozen copies kept on closed summaries and official records.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field


# =============================================================================
# Enumerations
# =============================================================================


class WasteCategory(str, Enum):
    """Waste destination categories."""
    RECYCLING = "recycling"
    COMPOST = "compost"
    REUSE = "reuse"
    LANDFILL = "landfill"


CIRCULAR_CATEGORIES = (
    WasteCategory.RECYCLING,
    WasteCategory.COMPOST,
    WasteCategory.REUSE,
)


class MonthStatus(str, Enum):
    """Monthly close lifecycle states. Only OPEN -> CLOSED -> TRANSFERRED."""
    OPEN = "open"
    CLOSED = "closed"
    TRANSFERRED = "transferred"


class CertificationBand(str, Enum):
    """Progress bands toward the Zero Waste diversion target."""
    CRITICAL = "critical"
    DEVELOPING = "developing"
    ADVANCED = "advanced"
    CERTIFIED = "certified"


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# =============================================================================
# Keys
# =============================================================================


@dataclass(frozen=True, order=True)
class CellKey:
    """Composite key of one matrix cell within a tenant-year."""
    category: WasteCategory
    material: str
    month: int


# =============================================================================
# Matrix Models
# =============================================================================


class LedgerCell(BaseModel):
    """One weight value of the annual matrix."""
    tenant_id: str = Field(..., description="Tenant identifier")
    year: int = Field(..., description="Reporting year")
    month: int = Field(..., ge=1, le=12, description="Month index (1-12)")
    category: WasteCategory = Field(..., description="Waste category")
    material: str = Field(..., description="Material name from the taxonomy")
    kg: float = Field(..., ge=0, description="Weight in kilograms")
    updated_at: datetime = Field(default_factory=_utcnow, description="Last write time")

    model_config = {"extra": "forbid"}

    @property
    def key(self) -> CellKey:
        return CellKey(self.category, self.material, self.month)


class CellEdit(BaseModel):
    """One edit of a batch spreadsheet save.

    Values are kept raw so that validation can report every bad edit of a
    batch instead of stopping at the first parse failure.
    """
    month: Any = Field(..., description="Month index (1-12)")
    category: Any = Field(..., description="Waste category")
    material: Any = Field(..., description="Material name")
    kg: Any = Field(..., description="Weight in kilograms")

    model_config = {"extra": "forbid"}


class YearMatrix(BaseModel):
    """Read-only snapshot of a tenant-year matrix."""
    tenant_id: str = Field(..., description="Tenant identifier")
    year: int = Field(..., description="Reporting year")
    cells: List[LedgerCell] = Field(default_factory=list, description="All stored cells")
    taxonomy: Dict[str, List[str]] = Field(
        default_factory=dict, description="Valid materials per category",
    )
    month_labels: List[str] = Field(default_factory=list, description="Column labels")

    model_config = {"extra": "forbid"}


# =============================================================================
# Daily Log
# =============================================================================


class DailyWasteEntry(BaseModel):
    """Immutable point-in-time waste observation."""
    entry_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique entry ID",
    )
    tenant_id: str = Field(..., description="Tenant identifier")
    timestamp: datetime = Field(..., description="Observation time")
    category: WasteCategory = Field(..., description="Waste category")
    material: str = Field(..., description="Material name from the taxonomy")
    kg: float = Field(..., gt=0, description="Weight in kilograms")
    location: str = Field(..., description="Where the waste was collected")
    notes: Optional[str] = Field(None, description="Free-text notes")
    created_at: datetime = Field(default_factory=_utcnow, description="Recording time")
    provenance_hash: str = Field(default="", description="SHA-256 hash of the entry")

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def year(self) -> int:
        return self.timestamp.year

    @property
    def month(self) -> int:
        return self.timestamp.month


# =============================================================================
# Aggregates
# =============================================================================


class CategoryTotals(BaseModel):
    """Kilograms per category. Missing categories are zero, never absent."""
    recycling: float = Field(default=0.0, ge=0)
    compost: float = Field(default=0.0, ge=0)
    reuse: float = Field(default=0.0, ge=0)
    landfill: float = Field(default=0.0, ge=0)

    model_config = {"extra": "ignore"}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def circular(self) -> float:
        """Weight kept out of landfill."""
        return self.recycling + self.compost + self.reuse

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> float:
        return self.circular + self.landfill

    def get(self, category: WasteCategory) -> float:
        return getattr(self, WasteCategory(category).value)


class MonthlySummary(BaseModel):
    """Aggregated totals and lifecycle state for one tenant-month."""
    tenant_id: str = Field(..., description="Tenant identifier")
    year: int = Field(..., description="Reporting year")
    month: int = Field(..., ge=1, le=12, description="Month index (1-12)")
    totals: CategoryTotals = Field(default_factory=CategoryTotals)
    breakdowns: Dict[str, Dict[str, float]] = Field(
        default_factory=dict, description="category -> material -> kg",
    )
    daily_entries_count: int = Field(default=0, ge=0)
    status: MonthStatus = Field(default=MonthStatus.OPEN)
    closed_by: Optional[str] = Field(None, description="Who closed the month")
    closed_at: Optional[datetime] = Field(None, description="When the month was closed")
    transferred_to_official: bool = Field(default=False)
    transferred_at: Optional[datetime] = Field(None, description="When transferred")
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = {"extra": "forbid"}

    @property
    def period(self) -> tuple:
        return (self.year, self.month)


class MonthDetail(BaseModel):
    """Monthly review view: summary, its entries and whether it may close."""
    summary: MonthlySummary
    daily_entries: List[DailyWasteEntry] = Field(default_factory=list)
    can_close: bool = Field(default=False)

    model_config = {"extra": "forbid"}


class YearSummary(BaseModel):
    """Annual totals derived from the matrix."""
    tenant_id: str = Field(..., description="Tenant identifier")
    year: int = Field(..., description="Reporting year")
    category_totals: CategoryTotals = Field(default_factory=CategoryTotals)
    monthly_totals: Dict[int, CategoryTotals] = Field(default_factory=dict)
    material_totals: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    grand_total: float = Field(default=0.0, ge=0)
    deviation_percent: float = Field(default=0.0, ge=0, le=100)

    model_config = {"extra": "forbid"}


# =============================================================================
# Certification
# =============================================================================


class OfficialDeviationRecord(BaseModel):
    """Immutable certification record written once by a transfer."""
    record_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique record ID",
    )
    tenant_id: str = Field(..., description="Tenant identifier")
    year: int = Field(..., description="Reporting year")
    month: int = Field(..., ge=1, le=12, description="Month index (1-12)")
    circular_total: float = Field(..., ge=0, description="Recycling + compost + reuse kg")
    landfill_total: float = Field(..., ge=0, description="Landfill kg")
    grand_total: float = Field(..., ge=0, description="All categories kg")
    deviation_percent: float = Field(..., ge=0, le=100, description="Diversion index")
    totals: CategoryTotals = Field(..., description="Frozen per-category totals")
    closed_by: Optional[str] = Field(None, description="Who closed the source month")
    closed_at: Optional[datetime] = Field(None, description="When the source month closed")
    created_at: datetime = Field(default_factory=_utcnow)
    provenance_hash: str = Field(default="", description="SHA-256 of the certified figures")

    model_config = {"extra": "forbid", "frozen": True}


class CertificationStatus(BaseModel):
    """Diversion index measured against the certification target."""
    deviation_percent: float = Field(..., ge=0, le=100)
    target_pct: float = Field(..., gt=0, le=100)
    progress_pct: float = Field(..., ge=0, le=100)
    band: CertificationBand

    model_config = {"extra": "forbid"}

    @property
    def certified(self) -> bool:
        return self.band == CertificationBand.CERTIFIED


# =============================================================================
# Audit
# =============================================================================


class ProvenanceEntry(BaseModel):
    """One chained audit entry for a ledger write."""
    log_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique log ID",
    )
    timestamp: datetime = Field(default_factory=_utcnow)
    tenant_id: str = Field(..., description="Tenant identifier")
    operation: str = Field(..., description="Ledger operation name")
    subject: str = Field(..., description="What was written, e.g. 2025-03")
    payload_hash: str = Field(..., description="SHA-256 of the written data")
    chain_hash: str = Field(default="", description="Hash linking to the previous entry")

    model_config = {"extra": "forbid"}


__all__ = [
    "WasteCategory",
    "CIRCULAR_CATEGORIES",
    "MonthStatus",
    "CertificationBand",
    "CellKey",
    "LedgerCell",
    "CellEdit",
    "YearMatrix",
    "DailyWasteEntry",
    "CategoryTotals",
    "MonthlySummary",
    "MonthDetail",
    "YearSummary",
    "OfficialDeviationRecord",
    "CertificationStatus",
    "ProvenanceEntry",
]
