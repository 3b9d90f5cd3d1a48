# -*- coding: utf-8 -*-
"""
Daily Entry Recorder - Econova Waste Accounting Ledger

Append-only log of point-in-time waste observations. Entries feed the
monthly summaries; once a month is closed its log is sealed and further
entries for that month are refused.

Example:
    >>> from econova.waste_ledger.daily_recorder import DailyEntryRecorder
    >>> from econova.waste_ledger.store import InMemoryLedgerStore
    >>> recorder = DailyEntryRecorder(InMemoryLedgerStore())
    >>> entry = recorder.record_daily_entry(
    ...     "1", "2025-01-10T09:00:00", "recycling", "PET", 5, "Cafetería",
    ... )
    >>> recorder.daily_totals("1", "2025-01-10").recycling
    5.0
"""

from __future__ import annotations

import logging
import time
from typing import Any, List, Optional

from econova.exceptions import (
    StateTransitionError,
    TransitionReason,
    ValidationError,
)
from econova.waste_ledger import aggregator
from econova.waste_ledger.metrics import record_daily_entry, record_operation
from econova.waste_ledger.models import (
    CategoryTotals,
    DailyWasteEntry,
    MonthStatus,
)
from econova.waste_ledger.provenance import ProvenanceTracker, hash_payload
from econova.waste_ledger.store import LedgerStore
from econova.waste_ledger.validator import (
    LedgerValidator,
    parse_timestamp,
    require_tenant,
)

logger = logging.getLogger(__name__)

_SEALED_REASONS = {
    MonthStatus.CLOSED: TransitionReason.ALREADY_CLOSED,
    MonthStatus.TRANSFERRED: TransitionReason.ALREADY_TRANSFERRED,
}


class DailyEntryRecorder:
    """Records daily waste entries and answers per-day totals.

    Attributes:
        store: Injected LedgerStore.
        validator: LedgerValidator for every entry.
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

    def record_daily_entry(
        self,
        tenant_id: Any,
        timestamp: Any,
        category: Any,
        material: Any,
        kg: Any,
        location: Any,
        notes: Any = None,
    ) -> DailyWasteEntry:
        """Append one observation to the daily log.

        Args:
            tenant_id: Tenant scope.
            timestamp: datetime or ISO-8601 string; naive values are UTC.
            category: Waste category.
            material: Material name valid for the category.
            kg: Weight, strictly positive.
            location: Where the waste was collected.
            notes: Optional free text.

        Returns:
            The stored DailyWasteEntry.

        Raises:
            ValidationError: On any invalid field.
            StateTransitionError: If the entry's month is already closed
                (AlreadyClosed) or transferred (AlreadyTransferred).
        """
        start = time.monotonic()
        tenant = require_tenant(tenant_id)
        try:
            when = parse_timestamp(timestamp)
            self.validator.year(when.year, tenant)
            cat, name = self.validator.category_material(category, material, tenant)
            value = self.validator.weight(kg, tenant, allow_zero=False)
            where = self.validator.text(location, "location", tenant)
            note = self.validator.text(
                notes, "notes", tenant,
                required=False, max_length=self.validator.config.max_notes_length,
            )
        except ValidationError:
            record_operation("record_daily_entry", "rejected", time.monotonic() - start)
            raise

        fields = {
            "tenant_id": tenant,
            "timestamp": when,
            "category": cat,
            "material": name,
            "kg": value,
            "location": where,
            "notes": note,
        }
        draft = DailyWasteEntry(**fields)
        entry = draft.model_copy(update={
            "provenance_hash": hash_payload(
                draft.model_dump(mode="json", exclude={"provenance_hash"}),
            ),
        })

        status = self.store.append_entry_if_open(entry)
        if status != MonthStatus.OPEN:
            record_operation("record_daily_entry", "rejected", time.monotonic() - start)
            logger.warning(
                "Entry refused for tenant %s: %d-%02d is %s",
                tenant, entry.year, entry.month, status.value,
            )
            raise StateTransitionError(
                f"Month {entry.year}-{entry.month:02d} is {status.value}; "
                "no further daily entries are accepted",
                reason=_SEALED_REASONS[status],
                tenant_id=tenant,
                period=(entry.year, entry.month),
            )

        record_daily_entry(cat.value)
        if self.provenance is not None:
            self.provenance.record(
                tenant, "record_daily_entry",
                f"{entry.year}-{entry.month:02d}", entry.provenance_hash,
            )
        record_operation("record_daily_entry", "success", time.monotonic() - start)
        logger.info(
            "Daily entry %s for tenant %s: %s/%s %.3f kg at %s",
            entry.entry_id, tenant, cat.value, name, value, where,
        )
        return entry

    def daily_totals(self, tenant_id: Any, day: Any) -> CategoryTotals:
        """Per-category totals of one calendar day; empty categories are 0."""
        tenant = require_tenant(tenant_id)
        day = self.validator.calendar_date(day, tenant)
        entries = [
            e for e in self.store.list_entries(tenant, day.year, day.month)
            if e.timestamp.date() == day
        ]
        logger.debug("Daily totals for tenant %s on %s: %d entries", tenant, day, len(entries))
        return aggregator.category_totals(entries)

    def monthly_entries(self, tenant_id: Any, year: Any, month: Any) -> List[DailyWasteEntry]:
        """Entries of one month ordered by timestamp."""
        tenant = require_tenant(tenant_id)
        year = self.validator.year(year, tenant)
        month = self.validator.month(month, tenant)
        return self.store.list_entries(tenant, year, month)


__all__ = [
    "DailyEntryRecorder",
]
