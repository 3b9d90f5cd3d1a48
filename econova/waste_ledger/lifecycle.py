# -*- coding: utf-8 -*-
"""
Monthly Lifecycle Controller - Econova Waste Accounting Ledger

Drives each tenant-month through ``open -> closed -> transferred``:

    - open: totals are recomputed from the daily log on every read
    - close: freezes totals and breakdowns, records who closed it
    - transfer: writes the one official deviation record for the month

Both transitions are optimistic compare-and-swap commits against the
stored status. A lost race raises ``ConcurrencyConflict``; the controller
never retries on its own. There is no way back to ``open``.

Example:
    >>> from econova.waste_ledger.lifecycle import MonthlyLifecycleController
    >>> from econova.waste_ledger.store import InMemoryLedgerStore
    >>> controller = MonthlyLifecycleController(InMemoryLedgerStore())
    >>> controller.get_monthly_summary("1", 2025, 1).status.value
    'open'
"""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Optional, Tuple

from econova.exceptions import (
    ConcurrencyConflict,
    NotFoundError,
    StateTransitionError,
    TransitionReason,
)
from econova.waste_ledger import aggregator
from econova.waste_ledger.archive import record_hash
from econova.waste_ledger.metrics import (
    record_official_record,
    record_operation,
    record_transition,
)
from econova.waste_ledger.models import (
    MonthDetail,
    MonthlySummary,
    MonthStatus,
    OfficialDeviationRecord,
    _utcnow,
)
from econova.waste_ledger.provenance import ProvenanceTracker
from econova.waste_ledger.store import LedgerStore
from econova.waste_ledger.validator import LedgerValidator, require_tenant

logger = logging.getLogger(__name__)


class MonthlyLifecycleController:
    """Monthly summaries and their close/transfer transitions.

    Attributes:
        store: Injected LedgerStore.
        validator: LedgerValidator for period and actor checks.
        provenance: Optional ProvenanceTracker for transition audit.
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
    # Reads
    # ------------------------------------------------------------------

    def get_monthly_summary(self, tenant_id: Any, year: Any, month: Any) -> MonthlySummary:
        """Return the month's summary, creating it open if absent.

        Open summaries reflect the daily log as of this call; closed and
        transferred summaries are returned exactly as frozen.
        """
        tenant, year, month = self._period(tenant_id, year, month)
        stored = self._touch(tenant, year, month)
        if stored.status != MonthStatus.OPEN:
            return stored
        entries = self.store.list_entries(tenant, year, month)
        return self._recomputed(stored, entries)

    def get_month_detail(self, tenant_id: Any, year: Any, month: Any) -> MonthDetail:
        """Summary, its daily entries and whether it can be closed now."""
        tenant, year, month = self._period(tenant_id, year, month)
        stored = self._touch(tenant, year, month)
        entries = self.store.list_entries(tenant, year, month)
        summary = self._recomputed(stored, entries) if stored.status == MonthStatus.OPEN else stored
        return MonthDetail(
            summary=summary,
            daily_entries=entries,
            can_close=summary.status == MonthStatus.OPEN and len(entries) > 0,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def close(self, tenant_id: Any, year: Any, month: Any, closed_by: Any) -> MonthlySummary:
        """Freeze an open month's totals.

        Args:
            tenant_id: Tenant scope.
            year: Reporting year.
            month: Month index (1-12).
            closed_by: Name of the person closing the month.

        Returns:
            The closed MonthlySummary.

        Raises:
            ValidationError: If closed_by is blank.
            StateTransitionError: AlreadyClosed, AlreadyTransferred or
                NoEntries.
            ConcurrencyConflict: If the status or the daily log changed
                between read and commit.
        """
        start = time.monotonic()
        tenant, year, month = self._period(tenant_id, year, month)
        actor = self.validator.text(closed_by, "closed_by", tenant)

        current = self._touch(tenant, year, month)
        if current.status == MonthStatus.CLOSED:
            self._refuse("close", start, TransitionReason.ALREADY_CLOSED, current,
                         "is already closed")
        if current.status == MonthStatus.TRANSFERRED:
            self._refuse("close", start, TransitionReason.ALREADY_TRANSFERRED, current,
                         "was already transferred")

        entries = self.store.list_entries(tenant, year, month)
        if not entries:
            self._refuse("close", start, TransitionReason.NO_ENTRIES, current,
                         "has no daily entries")

        now = _utcnow()
        closed = self._recomputed(current, entries).model_copy(update={
            "status": MonthStatus.CLOSED,
            "closed_by": actor,
            "closed_at": now,
            "updated_at": now,
        })
        committed = self.store.compare_and_set_summary(
            closed, MonthStatus.OPEN, expected_entries_count=len(entries),
        )
        if not committed:
            self._conflict("close", start, tenant, year, month, MonthStatus.OPEN)

        if self.provenance is not None:
            self.provenance.record(
                tenant, "close", f"{year}-{month:02d}",
                closed.model_dump(mode="json", exclude={"updated_at"}),
            )
        record_transition("close", "success")
        record_operation("close", "success", time.monotonic() - start)
        logger.info(
            "Closed %d-%02d for tenant %s by %s: %d entries, total %.3f kg",
            year, month, tenant, actor, closed.daily_entries_count, closed.totals.total,
        )
        return closed

    def transfer(self, tenant_id: Any, year: Any, month: Any) -> OfficialDeviationRecord:
        """Write the official deviation record of a closed month.

        Transferring an already transferred month returns the existing
        record without writing anything.

        Raises:
            StateTransitionError: NotClosed if the month is still open.
            ConcurrencyConflict: If the status changed before commit.
        """
        start = time.monotonic()
        tenant, year, month = self._period(tenant_id, year, month)
        current = self._touch(tenant, year, month)

        if current.status == MonthStatus.TRANSFERRED:
            record = self.store.get_official_record(tenant, year, month)
            if record is None:
                raise NotFoundError(
                    f"Month {year}-{month:02d} is transferred but has no official record",
                    tenant_id=tenant,
                    resource="official_record",
                    key={"year": year, "month": month},
                )
            record_transition("transfer", "noop")
            record_operation("transfer", "success", time.monotonic() - start)
            logger.debug("Transfer of %d-%02d for tenant %s is a no-op", year, month, tenant)
            return record

        if current.status == MonthStatus.OPEN:
            self._refuse("transfer", start, TransitionReason.NOT_CLOSED, current,
                         "must be closed before transfer")

        totals = current.totals
        circular = aggregator.circular_total(totals)
        draft = OfficialDeviationRecord(
            tenant_id=tenant,
            year=year,
            month=month,
            circular_total=circular,
            landfill_total=totals.landfill,
            grand_total=math.fsum((circular, totals.landfill)),
            deviation_percent=aggregator.diversion_index(circular, totals.landfill),
            totals=totals,
            closed_by=current.closed_by,
            closed_at=current.closed_at,
        )
        record = draft.model_copy(update={"provenance_hash": record_hash(draft)})

        now = _utcnow()
        transferred = current.model_copy(update={
            "status": MonthStatus.TRANSFERRED,
            "transferred_to_official": True,
            "transferred_at": now,
            "updated_at": now,
        })
        if not self.store.commit_transfer(transferred, MonthStatus.CLOSED, record):
            self._conflict("transfer", start, tenant, year, month, MonthStatus.CLOSED)

        if self.provenance is not None:
            self.provenance.record(
                tenant, "transfer", f"{year}-{month:02d}", record.provenance_hash,
            )
        record_official_record(record.deviation_percent)
        record_transition("transfer", "success")
        record_operation("transfer", "success", time.monotonic() - start)
        logger.info(
            "Transferred %d-%02d for tenant %s: record %s, deviation %.2f%%",
            year, month, tenant, record.record_id, record.deviation_percent,
        )
        return record

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _period(self, tenant_id: Any, year: Any, month: Any) -> Tuple[str, int, int]:
        tenant = require_tenant(tenant_id)
        return tenant, self.validator.year(year, tenant), self.validator.month(month, tenant)

    def _touch(self, tenant: str, year: int, month: int) -> MonthlySummary:
        return self.store.insert_summary_if_absent(
            MonthlySummary(tenant_id=tenant, year=year, month=month),
        )

    @staticmethod
    def _recomputed(summary: MonthlySummary, entries: list) -> MonthlySummary:
        totals, breakdowns, count = aggregator.summarize_entries(entries)
        return summary.model_copy(update={
            "totals": totals,
            "breakdowns": breakdowns,
            "daily_entries_count": count,
        })

    @staticmethod
    def _refuse(
        transition: str,
        start: float,
        reason: TransitionReason,
        summary: MonthlySummary,
        detail: str,
    ) -> None:
        record_transition(transition, "rejected")
        record_operation(transition, "rejected", time.monotonic() - start)
        logger.warning(
            "%s refused for tenant %s %d-%02d: %s",
            transition, summary.tenant_id, summary.year, summary.month, reason.value,
        )
        raise StateTransitionError(
            f"Month {summary.year}-{summary.month:02d} {detail}",
            reason=reason,
            tenant_id=summary.tenant_id,
            period=summary.period,
        )

    @staticmethod
    def _conflict(
        transition: str,
        start: float,
        tenant: str,
        year: int,
        month: int,
        expected: MonthStatus,
    ) -> None:
        record_transition(transition, "conflict")
        record_operation(transition, "conflict", time.monotonic() - start)
        logger.warning(
            "%s of %d-%02d for tenant %s lost a concurrent update",
            transition, year, month, tenant,
        )
        raise ConcurrencyConflict(
            f"Month {year}-{month:02d} changed during {transition}; re-read and retry",
            tenant_id=tenant,
            operation=transition,
            expected_status=expected.value,
        )


__all__ = [
    "MonthlyLifecycleController",
]
