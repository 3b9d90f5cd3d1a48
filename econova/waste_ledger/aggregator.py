# -*- coding: utf-8 -*-
"""
Aggregator - Econova Waste Accounting Ledger

Pure functions deriving every total in the ledger from matrix cells or
daily entries: row totals, category-month totals, the annual grand total,
per-material breakdowns, the diversion ("deviation") index and the
certification band.

Zero-Hallucination Guarantees:
    - No caller-supplied totals; everything is summed from stored weights
    - Sums use ``math.fsum`` over values visited in sorted key order, so the
      same inputs always produce bit-identical totals
    - Diversion index is clamped to [0, 100]

Example:
    >>> from econova.waste_ledger.aggregator import diversion_index
    >>> diversion_index(1000.0, 1000.0)
    50.0
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from econova.exceptions import InvalidWeightError
from econova.waste_ledger.models import (
    CategoryTotals,
    CertificationBand,
    CertificationStatus,
    CIRCULAR_CATEGORIES,
    LedgerCell,
    WasteCategory,
    YearSummary,
)

logger = logging.getLogger(__name__)

#: Progress bands below the certification target.
CRITICAL_BELOW_PCT = 50.0
DEVELOPING_BELOW_PCT = 75.0


# ---------------------------------------------------------------------------
# Ordering helpers
# ---------------------------------------------------------------------------


def _sort_key(item: Any) -> Tuple:
    """Stable visiting order for cells and daily entries."""
    category = WasteCategory(item.category).value
    month = getattr(item, "month", 0)
    timestamp = getattr(item, "timestamp", None)
    return (
        category,
        item.material,
        month,
        timestamp.isoformat() if timestamp is not None else "",
        getattr(item, "entry_id", ""),
    )


def _ordered(items: Iterable[Any]) -> List[Any]:
    return sorted(items, key=_sort_key)


# ---------------------------------------------------------------------------
# Matrix sums
# ---------------------------------------------------------------------------


def row_total(
    cells: Iterable[LedgerCell],
    category: WasteCategory,
    material: str,
) -> float:
    """Sum of one material's weights across months 1..12."""
    category = WasteCategory(category)
    return math.fsum(
        c.kg for c in _ordered(cells)
        if c.category == category and c.material == material
    )


def category_month_total(
    cells: Iterable[LedgerCell],
    month: int,
    category: WasteCategory,
) -> float:
    """Sum of one category's materials in one month."""
    category = WasteCategory(category)
    return math.fsum(
        c.kg for c in _ordered(cells)
        if c.category == category and c.month == month
    )


def grand_total(cells: Iterable[LedgerCell]) -> float:
    """Annual total of every category.

    Computed as the sum of category-month totals so that it agrees with
    the column sums shown in the matrix.
    """
    columns: Dict[Tuple[WasteCategory, int], List[float]] = defaultdict(list)
    for cell in _ordered(cells):
        columns[(WasteCategory(cell.category), cell.month)].append(cell.kg)
    return math.fsum(
        math.fsum(columns.get((category, month), ()))
        for category in WasteCategory
        for month in range(1, 13)
    )


# ---------------------------------------------------------------------------
# Category and material aggregation (cells or entries)
# ---------------------------------------------------------------------------


def category_totals(items: Iterable[Any]) -> CategoryTotals:
    """Kilograms per category for cells or daily entries.

    Empty categories are reported as 0.
    """
    buckets: Dict[WasteCategory, List[float]] = {c: [] for c in WasteCategory}
    for item in _ordered(items):
        buckets[WasteCategory(item.category)].append(item.kg)
    return CategoryTotals(**{c.value: math.fsum(v) for c, v in buckets.items()})


def material_breakdowns(items: Iterable[Any]) -> Dict[str, Dict[str, float]]:
    """category -> material -> kg. Every category key is present."""
    grouped: Dict[str, Dict[str, List[float]]] = {
        c.value: defaultdict(list) for c in WasteCategory
    }
    for item in _ordered(items):
        grouped[WasteCategory(item.category).value][item.material].append(item.kg)
    return {
        category: {m: math.fsum(v) for m, v in sorted(materials.items())}
        for category, materials in grouped.items()
    }


def monthly_category_totals(cells: Iterable[LedgerCell]) -> Dict[int, CategoryTotals]:
    """Category totals for each month 1..12, zero-filled."""
    by_month: Dict[int, List[LedgerCell]] = {m: [] for m in range(1, 13)}
    for cell in cells:
        by_month[cell.month].append(cell)
    return {m: category_totals(by_month[m]) for m in range(1, 13)}


def circular_total(totals: CategoryTotals) -> float:
    """Recycling + compost + reuse."""
    return math.fsum(totals.get(c) for c in CIRCULAR_CATEGORIES)


# ---------------------------------------------------------------------------
# Diversion index and certification
# ---------------------------------------------------------------------------


def diversion_index(circular: float, landfill: float) -> float:
    """Percentage of generated waste kept out of landfill.

    ``circular / (circular + landfill) * 100``, 0 when nothing was
    generated, clamped to [0, 100].

    Args:
        circular: Recycling + compost + reuse kilograms.
        landfill: Landfill kilograms.

    Returns:
        Diversion percentage.

    Raises:
        InvalidWeightError: If either input is negative or not finite.
    """
    for name, value in (("circular", circular), ("landfill", landfill)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidWeightError(
                f"{name} must be numeric, got {type(value).__name__}", kg=value,
            )
        if not math.isfinite(value) or value < 0:
            raise InvalidWeightError(
                f"{name} must be a finite non-negative number, got {value!r}",
                kg=value,
            )

    total = circular + landfill
    if total == 0:
        return 0.0
    return min(100.0, max(0.0, circular / total * 100.0))


def totals_diversion_index(totals: CategoryTotals) -> float:
    """Diversion index of a CategoryTotals."""
    return diversion_index(circular_total(totals), totals.landfill)


def certification_status(
    deviation_percent: float,
    target_pct: float = 90.0,
) -> CertificationStatus:
    """Place a diversion index into its certification band.

    Args:
        deviation_percent: Diversion index in [0, 100].
        target_pct: Percentage that counts as certified.

    Returns:
        CertificationStatus with progress toward the target.
    """
    deviation = min(100.0, max(0.0, float(deviation_percent)))
    progress = min(100.0, deviation / target_pct * 100.0)

    if deviation >= target_pct:
        band = CertificationBand.CERTIFIED
    elif deviation < CRITICAL_BELOW_PCT:
        band = CertificationBand.CRITICAL
    elif deviation < DEVELOPING_BELOW_PCT:
        band = CertificationBand.DEVELOPING
    else:
        band = CertificationBand.ADVANCED

    return CertificationStatus(
        deviation_percent=deviation,
        target_pct=target_pct,
        progress_pct=progress,
        band=band,
    )


# ---------------------------------------------------------------------------
# Composite views
# ---------------------------------------------------------------------------


def summarize_entries(
    entries: Sequence[Any],
) -> Tuple[CategoryTotals, Dict[str, Dict[str, float]], int]:
    """Totals, breakdowns and count for one month of daily entries."""
    return category_totals(entries), material_breakdowns(entries), len(entries)


def build_year_summary(
    tenant_id: str,
    year: int,
    cells: Sequence[LedgerCell],
) -> YearSummary:
    """Annual totals of a tenant-year matrix."""
    cells = list(cells)
    totals = category_totals(cells)
    summary = YearSummary(
        tenant_id=tenant_id,
        year=year,
        category_totals=totals,
        monthly_totals=monthly_category_totals(cells),
        material_totals=material_breakdowns(cells),
        grand_total=grand_total(cells),
        deviation_percent=totals_diversion_index(totals),
    )
    logger.debug(
        "Year summary %s/%d: %d cells, grand_total=%.3f, deviation=%.2f%%",
        tenant_id, year, len(cells), summary.grand_total, summary.deviation_percent,
    )
    return summary


__all__ = [
    "CRITICAL_BELOW_PCT",
    "DEVELOPING_BELOW_PCT",
    "row_total",
    "category_month_total",
    "grand_total",
    "category_totals",
    "material_breakdowns",
    "monthly_category_totals",
    "circular_total",
    "diversion_index",
    "totals_diversion_index",
    "certification_status",
    "summarize_entries",
    "build_year_summary",
]
