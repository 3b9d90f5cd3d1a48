# -*- coding: utf-8 -*-
"""
Ledger Store - Econova Waste Accounting Ledger

Persistence abstraction for the ledger plus the in-process implementation
used by tests and demos. The durable implementation lives in
``sqlite_store``. Callers construct the store they want and pass it in;
the ledger never picks a backend on its own.

Every method is tenant-scoped and every write method is one transaction:
batch cell writes, append-entry-if-open, the close compare-and-swap and the
transfer commit either apply completely or not at all.

Example:
    >>> from econova.waste_ledger.store import InMemoryLedgerStore
    >>> store = InMemoryLedgerStore()
    >>> store.get_cells("1", 2025)
    []
"""

from __future__ import annotations

import abc
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from econova.waste_ledger.metrics import record_store_transaction
from econova.waste_ledger.models import (
    CellKey,
    DailyWasteEntry,
    LedgerCell,
    MonthlySummary,
    MonthStatus,
    OfficialDeviationRecord,
    _utcnow,
)

logger = logging.getLogger(__name__)

_Period = Tuple[str, int, int]


class LedgerStore(abc.ABC):
    """Tenant-scoped persistence for cells, entries, summaries and records."""

    #: Backend label used in metrics and logs.
    backend: str = "abstract"

    # -- Matrix cells -------------------------------------------------------

    @abc.abstractmethod
    def get_cells(self, tenant_id: str, year: int) -> List[LedgerCell]:
        """All stored cells of a tenant-year, in key order."""

    @abc.abstractmethod
    def apply_cells(
        self,
        tenant_id: str,
        year: int,
        values: Mapping[CellKey, float],
    ) -> List[LedgerCell]:
        """Upsert every value in one transaction and return the written cells."""

    # -- Daily entries ------------------------------------------------------

    @abc.abstractmethod
    def append_entry_if_open(self, entry: DailyWasteEntry) -> MonthStatus:
        """Append ``entry`` unless its month is closed.

        Materializes an open summary for the month if none exists. The
        status check and the append form one transaction.

        Returns:
            The month status observed. The entry was appended only if it
            is ``MonthStatus.OPEN``.
        """

    @abc.abstractmethod
    def list_entries(self, tenant_id: str, year: int, month: int) -> List[DailyWasteEntry]:
        """Entries of one month ordered by timestamp then entry id."""

    @abc.abstractmethod
    def count_entries(self, tenant_id: str, year: int, month: int) -> int:
        """Number of entries of one month."""

    # -- Monthly summaries --------------------------------------------------

    @abc.abstractmethod
    def get_summary(self, tenant_id: str, year: int, month: int) -> Optional[MonthlySummary]:
        """Stored summary or None."""

    @abc.abstractmethod
    def insert_summary_if_absent(self, summary: MonthlySummary) -> MonthlySummary:
        """Store ``summary`` unless one exists; return the stored one."""

    @abc.abstractmethod
    def compare_and_set_summary(
        self,
        summary: MonthlySummary,
        expected_status: MonthStatus,
        expected_entries_count: Optional[int] = None,
    ) -> bool:
        """Replace the stored summary if its status still matches.

        When ``expected_entries_count`` is given, the month must also still
        hold exactly that many daily entries.

        Returns:
            False if a precondition failed and nothing was written.
        """

    @abc.abstractmethod
    def commit_transfer(
        self,
        summary: MonthlySummary,
        expected_status: MonthStatus,
        record: OfficialDeviationRecord,
    ) -> bool:
        """Insert ``record`` and replace the summary in one transaction.

        Returns:
            False if the summary status no longer matches or a record
            already exists for the month; nothing is written then.
        """

    # -- Official records ---------------------------------------------------

    @abc.abstractmethod
    def get_official_record(
        self, tenant_id: str, year: int, month: int,
    ) -> Optional[OfficialDeviationRecord]:
        """Stored record or None."""

    @abc.abstractmethod
    def list_official_records(
        self, tenant_id: str, year: Optional[int] = None,
    ) -> List[OfficialDeviationRecord]:
        """Records of a tenant, optionally one year, by period."""

    def close(self) -> None:
        """Release backend resources."""


class InMemoryLedgerStore(LedgerStore):
    """Ephemeral store. A re-entrant lock serializes each transaction.

    Values are copied in and out so callers never hold live references to
    stored state.
    """

    backend = "memory"

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._cells: Dict[Tuple[str, int], Dict[CellKey, LedgerCell]] = {}
        self._entries: Dict[_Period, List[DailyWasteEntry]] = {}
        self._summaries: Dict[_Period, MonthlySummary] = {}
        self._records: Dict[_Period, OfficialDeviationRecord] = {}
        logger.info("InMemoryLedgerStore initialized")

    @contextmanager
    def _transaction(self, name: str) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except Exception:
                record_store_transaction(self.backend, "rollback")
                logger.error("Rolled back %s", name)
                raise
            record_store_transaction(self.backend, "commit")

    # -- Matrix cells -------------------------------------------------------

    def get_cells(self, tenant_id: str, year: int) -> List[LedgerCell]:
        with self._lock:
            cells = self._cells.get((tenant_id, year), {})
            return [cells[k].model_copy() for k in sorted(cells)]

    def apply_cells(
        self,
        tenant_id: str,
        year: int,
        values: Mapping[CellKey, float],
    ) -> List[LedgerCell]:
        with self._transaction("apply_cells"):
            now = _utcnow()
            written = [
                LedgerCell(
                    tenant_id=tenant_id,
                    year=year,
                    month=key.month,
                    category=key.category,
                    material=key.material,
                    kg=kg,
                    updated_at=now,
                )
                for key, kg in values.items()
            ]
            # Staged above so a bad value leaves the tenant-year untouched
            staged = dict(self._cells.get((tenant_id, year), {}))
            staged.update((cell.key, cell) for cell in written)
            self._cells[(tenant_id, year)] = staged
        return [cell.model_copy() for cell in written]

    # -- Daily entries ------------------------------------------------------

    def append_entry_if_open(self, entry: DailyWasteEntry) -> MonthStatus:
        period = (entry.tenant_id, entry.year, entry.month)
        with self._transaction("append_entry_if_open"):
            summary = self._summaries.get(period)
            if summary is None:
                summary = MonthlySummary(
                    tenant_id=entry.tenant_id, year=entry.year, month=entry.month,
                )
                self._summaries[period] = summary
            if summary.status != MonthStatus.OPEN:
                return summary.status
            self._entries.setdefault(period, []).append(entry)
            return MonthStatus.OPEN

    def list_entries(self, tenant_id: str, year: int, month: int) -> List[DailyWasteEntry]:
        with self._lock:
            entries = list(self._entries.get((tenant_id, year, month), []))
        return sorted(entries, key=lambda e: (e.timestamp, e.entry_id))

    def count_entries(self, tenant_id: str, year: int, month: int) -> int:
        with self._lock:
            return len(self._entries.get((tenant_id, year, month), []))

    # -- Monthly summaries --------------------------------------------------

    def get_summary(self, tenant_id: str, year: int, month: int) -> Optional[MonthlySummary]:
        with self._lock:
            summary = self._summaries.get((tenant_id, year, month))
            return summary.model_copy(deep=True) if summary is not None else None

    def insert_summary_if_absent(self, summary: MonthlySummary) -> MonthlySummary:
        period = (summary.tenant_id, summary.year, summary.month)
        with self._transaction("insert_summary_if_absent"):
            stored = self._summaries.setdefault(period, summary.model_copy(deep=True))
            return stored.model_copy(deep=True)

    def compare_and_set_summary(
        self,
        summary: MonthlySummary,
        expected_status: MonthStatus,
        expected_entries_count: Optional[int] = None,
    ) -> bool:
        period = (summary.tenant_id, summary.year, summary.month)
        with self._transaction("compare_and_set_summary"):
            current = self._summaries.get(period)
            if current is None or current.status != expected_status:
                return False
            if (
                expected_entries_count is not None
                and len(self._entries.get(period, [])) != expected_entries_count
            ):
                return False
            self._summaries[period] = summary.model_copy(deep=True)
            return True

    def commit_transfer(
        self,
        summary: MonthlySummary,
        expected_status: MonthStatus,
        record: OfficialDeviationRecord,
    ) -> bool:
        period = (summary.tenant_id, summary.year, summary.month)
        with self._transaction("commit_transfer"):
            current = self._summaries.get(period)
            if current is None or current.status != expected_status:
                return False
            if period in self._records:
                return False
            self._records[period] = record
            self._summaries[period] = summary.model_copy(deep=True)
            return True

    # -- Official records ---------------------------------------------------

    def get_official_record(
        self, tenant_id: str, year: int, month: int,
    ) -> Optional[OfficialDeviationRecord]:
        with self._lock:
            return self._records.get((tenant_id, year, month))

    def list_official_records(
        self, tenant_id: str, year: Optional[int] = None,
    ) -> List[OfficialDeviationRecord]:
        with self._lock:
            periods = sorted(
                p for p in self._records
                if p[0] == tenant_id and (year is None or p[1] == year)
            )
            return [self._records[p] for p in periods]


__all__ = [
    "LedgerStore",
    "InMemoryLedgerStore",
]
