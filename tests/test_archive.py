"""Tests for the official records archive."""

import pytest

from econova.exceptions import NotFoundError
from econova.waste_ledger.archive import OfficialRecordsArchive, record_hash
from econova.waste_ledger.sqlite_store import SQLiteLedgerStore
from econova.waste_ledger.setup import WasteLedgerService

from tests.conftest import OTHER_TENANT, TENANT


@pytest.fixture
def transfer(service, record):
    """Close and transfer one month that has a single entry."""

    def _transfer(year=2025, month=1, tenant=TENANT, closed_by="Ana"):
        record(day=f"{year}-{month:02d}-10", tenant=tenant)
        service.close_month(tenant, year, month, closed_by)
        return service.transfer_month(tenant, year, month)

    return _transfer


class TestLookup:
    """Records are found by tenant and period."""

    def test_missing_record(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            service.get_official_record(TENANT, 2025, 1)

        assert exc_info.value.context["resource"] == "official_record"
        assert exc_info.value.context["key"] == {"year": 2025, "month": 1}

    def test_get_record(self, service, transfer):
        written = transfer()
        fetched = service.get_official_record(TENANT, 2025, 1)

        assert fetched.record_id == written.record_id
        assert fetched.deviation_percent == 100.0

    def test_list_in_period_order(self, service, transfer):
        transfer(month=3)
        transfer(month=1)
        transfer(year=2026, month=2)

        assert [(r.year, r.month) for r in service.list_official_records(TENANT)] == [
            (2025, 1), (2025, 3), (2026, 2),
        ]
        assert [r.month for r in service.list_official_records(TENANT, 2025)] == [1, 3]
        assert service.list_official_records(TENANT, 2024) == []

    def test_records_are_per_tenant(self, service, transfer):
        transfer()

        assert service.list_official_records(OTHER_TENANT) == []
        with pytest.raises(NotFoundError):
            service.get_official_record(OTHER_TENANT, 2025, 1)

    def test_archive_on_bare_store(self, store):
        assert OfficialRecordsArchive(store).list_official_records(TENANT) == []


class TestVerification:
    """Record hashes detect edits to certified figures."""

    def test_untouched_record_verifies(self, service, transfer):
        record = transfer()
        assert record.provenance_hash == record_hash(record)
        assert service.verify_record(record) is True

    def test_tampered_figures_fail(self, service, transfer):
        record = transfer()
        tampered = record.model_copy(update={"deviation_percent": 99.0})
        assert service.verify_record(tampered) is False

    def test_tampered_actor_fails(self, service, transfer):
        record = transfer()
        assert service.verify_record(record.model_copy(update={"closed_by": "Luis"})) is False

    def test_record_id_not_hashed(self, transfer):
        record = transfer()
        renamed = record.model_copy(update={"record_id": "other"})
        assert OfficialRecordsArchive.verify_record(renamed) is True

    def test_verifies_after_reopening_database(self, tmp_path, config):
        path = str(tmp_path / "archive.db")
        first = SQLiteLedgerStore(path)
        service = WasteLedgerService(first, config=config)
        service.record_daily_entry(
            TENANT, "2025-04-02T10:15:00", "reuse", "Mobiliario", 12.345, "Bodega",
        )
        service.close_month(TENANT, 2025, 4, "Ana")
        written = service.transfer_month(TENANT, 2025, 4)
        first.close()

        second = SQLiteLedgerStore(path)
        try:
            reloaded = OfficialRecordsArchive(second).get_official_record(TENANT, 2025, 4)
        finally:
            second.close()

        assert reloaded.model_dump() == written.model_dump()
        assert OfficialRecordsArchive.verify_record(reloaded) is True
