"""Tests specific to the SQLite ledger store."""

from datetime import datetime, timezone

import pydantic
import pytest

from econova.exceptions import StoreError
from econova.waste_ledger.config import WasteLedgerConfig, set_config
from econova.waste_ledger.models import (
    CategoryTotals,
    CellKey,
    DailyWasteEntry,
    MonthlySummary,
    MonthStatus,
    OfficialDeviationRecord,
    WasteCategory,
)
from econova.waste_ledger.sqlite_store import SQLiteLedgerStore

from tests.conftest import TENANT


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "ledger.db")


@pytest.fixture
def sqlite_store(db_path):
    ledger_store = SQLiteLedgerStore(db_path)
    yield ledger_store
    ledger_store.close()


def _entry(entry_id="e-1", hour=9, kg=5.0):
    return DailyWasteEntry(
        entry_id=entry_id,
        tenant_id=TENANT,
        timestamp=datetime(2025, 1, 10, hour, tzinfo=timezone.utc),
        category=WasteCategory.RECYCLING,
        material="PET",
        kg=kg,
        location="Cafetería",
    )


def _record(record_id="r-1"):
    totals = CategoryTotals(recycling=5.0)
    return OfficialDeviationRecord(
        record_id=record_id,
        tenant_id=TENANT,
        year=2025,
        month=1,
        circular_total=5.0,
        landfill_total=0.0,
        grand_total=5.0,
        deviation_percent=100.0,
        totals=totals,
        closed_by="Ana",
    )


class TestPersistence:
    """Data written through one connection is read back by the next."""

    def test_data_survives_reopen(self, db_path):
        first = SQLiteLedgerStore(db_path)
        first.apply_cells(TENANT, 2025, {CellKey(WasteCategory.REUSE, "Mobiliario", 2): 12.5})
        first.append_entry_if_open(_entry())
        first.close()

        second = SQLiteLedgerStore(db_path)
        try:
            cells = second.get_cells(TENANT, 2025)
            entries = second.list_entries(TENANT, 2025, 1)
            summary = second.get_summary(TENANT, 2025, 1)
        finally:
            second.close()

        assert [(c.material, c.kg) for c in cells] == [("Mobiliario", 12.5)]
        assert [e.entry_id for e in entries] == ["e-1"]
        assert entries[0].timestamp == datetime(2025, 1, 10, 9, tzinfo=timezone.utc)
        assert summary.status == MonthStatus.OPEN

    def test_schema_is_idempotent(self, db_path):
        SQLiteLedgerStore(db_path).close()
        SQLiteLedgerStore(db_path).close()

    def test_count_entries(self, sqlite_store):
        sqlite_store.append_entry_if_open(_entry("a"))
        sqlite_store.append_entry_if_open(_entry("b", hour=10))
        assert sqlite_store.count_entries(TENANT, 2025, 1) == 2
        assert sqlite_store.count_entries(TENANT, 2025, 2) == 0


class TestCompareAndSwap:
    """Status transitions commit only against the expected state."""

    def test_status_mismatch(self, sqlite_store):
        summary = sqlite_store.insert_summary_if_absent(
            MonthlySummary(tenant_id=TENANT, year=2025, month=1),
        )
        closed = summary.model_copy(update={"status": MonthStatus.CLOSED})

        assert sqlite_store.compare_and_set_summary(closed, MonthStatus.CLOSED) is False
        assert sqlite_store.compare_and_set_summary(closed, MonthStatus.OPEN) is True
        assert sqlite_store.get_summary(TENANT, 2025, 1).status == MonthStatus.CLOSED

    def test_entry_count_mismatch(self, sqlite_store):
        sqlite_store.append_entry_if_open(_entry())
        summary = sqlite_store.get_summary(TENANT, 2025, 1)
        closed = summary.model_copy(update={"status": MonthStatus.CLOSED})

        assert sqlite_store.compare_and_set_summary(
            closed, MonthStatus.OPEN, expected_entries_count=0,
        ) is False
        assert sqlite_store.get_summary(TENANT, 2025, 1).status == MonthStatus.OPEN

    def test_closed_month_refuses_append(self, sqlite_store):
        sqlite_store.append_entry_if_open(_entry())
        summary = sqlite_store.get_summary(TENANT, 2025, 1)
        sqlite_store.compare_and_set_summary(
            summary.model_copy(update={"status": MonthStatus.CLOSED}), MonthStatus.OPEN,
        )

        assert sqlite_store.append_entry_if_open(_entry("e-2")) == MonthStatus.CLOSED
        assert sqlite_store.count_entries(TENANT, 2025, 1) == 1

    def test_second_transfer_commit_refused(self, sqlite_store):
        summary = sqlite_store.insert_summary_if_absent(
            MonthlySummary(tenant_id=TENANT, year=2025, month=1, status=MonthStatus.CLOSED),
        )
        transferred = summary.model_copy(update={"status": MonthStatus.TRANSFERRED})

        assert sqlite_store.commit_transfer(transferred, MonthStatus.CLOSED, _record()) is True
        assert sqlite_store.commit_transfer(
            transferred, MonthStatus.TRANSFERRED, _record("r-2"),
        ) is False
        assert [r.record_id for r in sqlite_store.list_official_records(TENANT)] == ["r-1"]


class TestFailures:
    """sqlite errors surface as StoreError and leave no partial writes."""

    def test_bad_schema_path(self, tmp_path):
        with pytest.raises(StoreError) as exc_info:
            SQLiteLedgerStore(str(tmp_path / "x.db"), schema_path=str(tmp_path / "missing.sql"))
        assert exc_info.value.context["operation"] == "initialize"

    def test_sqlite_errors_become_store_errors(self, sqlite_store):
        sqlite_store._get_connection().execute("DROP TABLE ledger_cells")

        with pytest.raises(StoreError) as exc_info:
            sqlite_store.get_cells(TENANT, 2025)

        assert exc_info.value.context["cause_type"] == "OperationalError"

    def test_failed_append_rolls_back(self, sqlite_store):
        sqlite_store.append_entry_if_open(_entry())

        with pytest.raises(StoreError):
            sqlite_store.append_entry_if_open(_entry())

        assert sqlite_store.count_entries(TENANT, 2025, 1) == 1
        # The connection is usable after the rollback
        assert sqlite_store.append_entry_if_open(_entry("e-2")) == MonthStatus.OPEN

    def test_invalid_cell_writes_nothing(self, sqlite_store):
        with pytest.raises(pydantic.ValidationError):
            sqlite_store.apply_cells(TENANT, 2025, {
                CellKey(WasteCategory.RECYCLING, "PET", 1): 4.0,
                CellKey(WasteCategory.RECYCLING, "PET", 2): -1.0,
            })
        assert sqlite_store.get_cells(TENANT, 2025) == []


class TestConnectionSettings:
    """Connection options come from the ledger config."""

    def test_busy_timeout_from_config(self, db_path):
        set_config(WasteLedgerConfig(sqlite_timeout_seconds=1.5))
        ledger_store = SQLiteLedgerStore(db_path)
        try:
            assert ledger_store.timeout == 1.5
        finally:
            ledger_store.close()

    def test_explicit_timeout_wins(self, db_path):
        set_config(WasteLedgerConfig(sqlite_timeout_seconds=1.5))
        ledger_store = SQLiteLedgerStore(db_path, timeout=0.25)
        try:
            assert ledger_store.timeout == 0.25
        finally:
            ledger_store.close()


class TestSummaryReads:
    """Existing summaries are read without taking the write lock."""

    def test_existing_summary_skips_write_transaction(self, sqlite_store, monkeypatch):
        sqlite_store.insert_summary_if_absent(
            MonthlySummary(tenant_id=TENANT, year=2025, month=1, closed_by="Ana"),
        )

        def no_transaction(*args, **kwargs):
            raise AssertionError("write transaction opened for an existing summary")

        monkeypatch.setattr(sqlite_store, "_transaction", no_transaction)

        stored = sqlite_store.insert_summary_if_absent(
            MonthlySummary(tenant_id=TENANT, year=2025, month=1),
        )

        assert stored.closed_by == "Ana"

    def test_missing_summary_is_created(self, sqlite_store):
        stored = sqlite_store.insert_summary_if_absent(
            MonthlySummary(tenant_id=TENANT, year=2025, month=2),
        )

        assert stored.status == MonthStatus.OPEN
        assert sqlite_store.get_summary(TENANT, 2025, 2) is not None
