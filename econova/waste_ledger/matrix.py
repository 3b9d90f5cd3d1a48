# -*- coding: utf-8 -*-
"""
Ledger Matrix - Econova Waste Accounting Ledger

The annual spreadsheet of material weights: one cell per
(tenant, year, month, category, material). Single-cell upserts and batch
saves both go through the validator before the store is touched; a batch
with any invalid edit is rejected whole.

Example:
    >>> from econova.waste_ledger.matrix import LedgerMatrix
    >>> from econova.waste_ledger.store import InMemoryLedgerStore
    >>> matrix = LedgerMatrix(InMemoryLedgerStore())
    >>> cell = matrix.upsert_cell("1", 2025, 3, "recycling", "Cartón", 150)
    >>> matrix.row_total("1", 2025, "recycling", "Cartón")
    150.0
"""

from __future__ import annotations

import logging
import time
from typing import Any, List, Optional, Sequence

from econova.exceptions import ValidationError
from econova.waste_ledger import aggregator
from econova.waste_ledger.metrics import (
    record_batch_rejected,
    record_cells_written,
    record_operation,
)
from econova.waste_ledger.models import CellKey, LedgerCell, YearMatrix, YearSummary
from econova.waste_ledger.provenance import ProvenanceTracker
from econova.waste_ledger.store import LedgerStore
from econova.waste_ledger.taxonomy import MONTH_LABELS
from econova.waste_ledger.validator import LedgerValidator, require_tenant

logger = logging.getLogger(__name__)


class LedgerMatrix:
    """Reads and writes the tenant-year weight matrix.

    Attributes:
        store: Injected LedgerStore.
        validator: LedgerValidator for every write.
        provenance: Optional ProvenanceTracker for write audit.
    """

    def __init__(
        self,
        store: LedgerStore,
        validator: Optional[LedgerValidator] = None,
        provenance: Optional[ProvenanceTracker] = None,
    ) -> None:
        self.store = store
        self.validator = validator or LedgerValidator()
        self.provenance = provenance

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_cell(
        self,
        tenant_id: Any,
        year: Any,
        month: Any,
        category: Any,
        material: Any,
        kg: Any,
    ) -> LedgerCell:
        """Set one cell, replacing any previous value.

        Raises:
            InvalidTenantError, InvalidYearError, InvalidMonthError,
            InvalidMaterialError, InvalidWeightError: On bad input.
        """
        start = time.monotonic()
        tenant = require_tenant(tenant_id)
        try:
            year = self.validator.year(year, tenant)
            month = self.validator.month(month, tenant)
            cat, name = self.validator.category_material(category, material, tenant)
            value = self.validator.weight(kg, tenant)
        except ValidationError:
            record_operation("upsert_cell", "rejected", time.monotonic() - start)
            raise

        written = self.store.apply_cells(tenant, year, {CellKey(cat, name, month): value})
        record_cells_written(len(written))
        self._audit(tenant, "upsert_cell", str(year), [
            c.model_dump(mode="json", exclude={"updated_at"}) for c in written
        ])
        record_operation("upsert_cell", "success", time.monotonic() - start)
        logger.info(
            "Cell set for tenant %s: %d-%02d %s/%s = %.3f kg",
            tenant, year, month, cat.value, name, value,
        )
        return written[0]

    def batch_upsert(
        self,
        tenant_id: Any,
        year: Any,
        edits: Sequence[Any],
    ) -> List[LedgerCell]:
        """Apply a spreadsheet save atomically.

        All edits are validated first; on any failure nothing is written and
        a single ValidationError lists every bad edit by index. Otherwise
        every edit is committed in one store transaction. Repeated keys in
        one batch resolve last-write-wins in list order.

        Args:
            tenant_id: Tenant scope.
            year: Reporting year.
            edits: CellEdit instances or equivalent dicts.

        Returns:
            The cells written, one per distinct key.

        Raises:
            ValidationError: If the batch is too large or any edit is invalid.
        """
        start = time.monotonic()
        tenant = require_tenant(tenant_id)
        try:
            year = self.validator.year(year, tenant)
            values = self.validator.batch(list(edits), tenant)
        except ValidationError:
            record_batch_rejected()
            record_operation("batch_upsert", "rejected", time.monotonic() - start)
            raise

        if not values:
            record_operation("batch_upsert", "success", time.monotonic() - start)
            return []

        written = self.store.apply_cells(tenant, year, values)
        record_cells_written(len(written))
        self._audit(tenant, "batch_upsert", str(year), [
            c.model_dump(mode="json", exclude={"updated_at"}) for c in written
        ])
        record_operation("batch_upsert", "success", time.monotonic() - start)
        logger.info(
            "Batch saved for tenant %s year %d: %d edits, %d cells",
            tenant, year, len(edits), len(written),
        )
        return written

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_year_matrix(self, tenant_id: Any, year: Any) -> YearMatrix:
        """Read-only snapshot of a tenant-year with taxonomy and labels."""
        tenant = require_tenant(tenant_id)
        year = self.validator.year(year, tenant)
        cells = self.store.get_cells(tenant, year)
        logger.debug("Loaded %d cells for tenant %s year %d", len(cells), tenant, year)
        return YearMatrix(
            tenant_id=tenant,
            year=year,
            cells=cells,
            taxonomy=self.validator.taxonomy.as_dict(),
            month_labels=list(MONTH_LABELS),
        )

    def row_total(self, tenant_id: Any, year: Any, category: Any, material: Any) -> float:
        """Annual total of one material."""
        snapshot = self.get_year_matrix(tenant_id, year)
        cat, name = self.validator.category_material(category, material, snapshot.tenant_id)
        return aggregator.row_total(snapshot.cells, cat, name)

    def category_month_total(self, tenant_id: Any, year: Any, month: Any, category: Any) -> float:
        """Total of one category in one month."""
        snapshot = self.get_year_matrix(tenant_id, year)
        month = self.validator.month(month, snapshot.tenant_id)
        cat = self.validator.category(category, snapshot.tenant_id)
        return aggregator.category_month_total(snapshot.cells, month, cat)

    def grand_total(self, tenant_id: Any, year: Any) -> float:
        """Annual total of every category."""
        snapshot = self.get_year_matrix(tenant_id, year)
        return aggregator.grand_total(snapshot.cells)

    def year_summary(self, tenant_id: Any, year: Any) -> YearSummary:
        """Annual, monthly and per-material totals with the diversion index."""
        snapshot = self.get_year_matrix(tenant_id, year)
        return aggregator.build_year_summary(snapshot.tenant_id, snapshot.year, snapshot.cells)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _audit(self, tenant_id: str, operation: str, subject: str, payload: Any) -> None:
        if self.provenance is not None:
            self.provenance.record(tenant_id, operation, subject, payload)


__all__ = [
    "LedgerMatrix",
]
