"""Tests for the monthly close/transfer lifecycle."""

import pytest

from econova.exceptions import (
    ConcurrencyConflict,
    StateTransitionError,
    TransitionReason,
    ValidationError,
    is_retriable,
)
from econova.waste_ledger.models import MonthStatus

from tests.conftest import OTHER_TENANT, TENANT


@pytest.fixture
def half_diverted(record):
    """A January with 600 kg recycled, 400 kg composted and 1000 kg landfilled."""
    record(category="recycling", material="Cartón", kg=600, hour=8)
    record(category="compost", material="Jardinería", kg=400, hour=9)
    record(category="landfill", material="Inorgánico", kg=1000, hour=10)


class TestMonthlySummary:
    """Open summaries follow the daily log until the month closes."""

    def test_created_open_on_first_read(self, service):
        summary = service.get_monthly_summary(TENANT, 2025, 6)

        assert summary.status == MonthStatus.OPEN
        assert summary.daily_entries_count == 0
        assert summary.totals.total == 0.0
        assert summary.closed_by is None

    def test_open_summary_tracks_daily_log(self, service, record):
        record(kg=5)
        assert service.get_monthly_summary(TENANT, 2025, 1).totals.recycling == 5.0

        record(kg=2, hour=10)
        summary = service.get_monthly_summary(TENANT, 2025, 1)

        assert summary.totals.recycling == 7.0
        assert summary.daily_entries_count == 2
        assert summary.breakdowns["recycling"] == {"PET": 7.0}

    def test_month_detail(self, service, record):
        detail = service.get_month_detail(TENANT, 2025, 1)
        assert detail.can_close is False
        assert detail.daily_entries == []

        record()
        detail = service.get_month_detail(TENANT, 2025, 1)

        assert detail.can_close is True
        assert len(detail.daily_entries) == 1
        assert detail.summary.daily_entries_count == 1

    def test_closed_month_cannot_close_again(self, service, record):
        record()
        service.close_month(TENANT, 2025, 1, "Ana")
        assert service.get_month_detail(TENANT, 2025, 1).can_close is False


class TestClose:
    """Closing freezes totals once, and only with entries."""

    def test_close_freezes_totals(self, service, half_diverted):
        closed = service.close_month(TENANT, 2025, 1, "  Ana Pérez ")

        assert closed.status == MonthStatus.CLOSED
        assert closed.closed_by == "Ana Pérez"
        assert closed.closed_at is not None
        assert closed.daily_entries_count == 3
        assert closed.totals.total == 2000.0

        stored = service.get_monthly_summary(TENANT, 2025, 1)
        assert stored.status == MonthStatus.CLOSED
        assert stored.totals.model_dump() == closed.totals.model_dump()

    def test_close_without_entries(self, service):
        with pytest.raises(StateTransitionError) as exc_info:
            service.close_month(TENANT, 2025, 1, "Ana")

        assert exc_info.value.reason == TransitionReason.NO_ENTRIES
        assert service.get_monthly_summary(TENANT, 2025, 1).status == MonthStatus.OPEN

    def test_close_twice(self, service, record):
        record()
        service.close_month(TENANT, 2025, 1, "Ana")

        with pytest.raises(StateTransitionError) as exc_info:
            service.close_month(TENANT, 2025, 1, "Luis")

        assert exc_info.value.reason == TransitionReason.ALREADY_CLOSED
        assert service.get_monthly_summary(TENANT, 2025, 1).closed_by == "Ana"

    def test_close_after_transfer(self, service, record):
        record()
        service.close_month(TENANT, 2025, 1, "Ana")
        service.transfer_month(TENANT, 2025, 1)

        with pytest.raises(StateTransitionError) as exc_info:
            service.close_month(TENANT, 2025, 1, "Ana")

        assert exc_info.value.reason == TransitionReason.ALREADY_TRANSFERRED

    @pytest.mark.parametrize("closed_by", ["", "   ", None])
    def test_closed_by_required(self, service, record, closed_by):
        record()
        with pytest.raises(ValidationError):
            service.close_month(TENANT, 2025, 1, closed_by)
        assert service.get_monthly_summary(TENANT, 2025, 1).status == MonthStatus.OPEN

    def test_close_is_per_tenant(self, service, record):
        record()
        record(tenant=OTHER_TENANT)
        service.close_month(TENANT, 2025, 1, "Ana")

        assert service.get_monthly_summary(OTHER_TENANT, 2025, 1).status == MonthStatus.OPEN

    def test_entry_appended_during_close_conflicts(self, service, store, record):
        """A daily entry landing between read and commit aborts the close."""
        record()
        late = record(hour=20).model_copy(update={"entry_id": "late-entry"})
        original = store.list_entries

        def list_then_append(tenant_id, year, month):
            entries = original(tenant_id, year, month)
            store.list_entries = original
            store.append_entry_if_open(late)
            return entries

        store.list_entries = list_then_append

        with pytest.raises(ConcurrencyConflict) as exc_info:
            service.close_month(TENANT, 2025, 1, "Ana")

        assert is_retriable(exc_info.value) is True
        summary = service.get_monthly_summary(TENANT, 2025, 1)
        assert summary.status == MonthStatus.OPEN
        assert summary.daily_entries_count == 3

    def test_lost_status_swap_conflicts(self, service, store, record, monkeypatch):
        record()
        monkeypatch.setattr(store, "compare_and_set_summary", lambda *a, **kw: False)

        with pytest.raises(ConcurrencyConflict) as exc_info:
            service.close_month(TENANT, 2025, 1, "Ana")

        assert exc_info.value.context["expected_status"] == "open"


class TestTransfer:
    """Transfer writes exactly one official record per month."""

    def test_transfer_writes_official_record(self, service, half_diverted):
        service.close_month(TENANT, 2025, 1, "Ana")

        record = service.transfer_month(TENANT, 2025, 1)

        assert record.circular_total == 1000.0
        assert record.landfill_total == 1000.0
        assert record.grand_total == 2000.0
        assert record.deviation_percent == 50.0
        assert record.closed_by == "Ana"
        assert record.totals.compost == 400.0
        assert service.verify_record(record) is True

        summary = service.get_monthly_summary(TENANT, 2025, 1)
        assert summary.status == MonthStatus.TRANSFERRED
        assert summary.transferred_to_official is True
        assert summary.transferred_at is not None

    def test_transfer_open_month(self, service, record):
        record()
        with pytest.raises(StateTransitionError) as exc_info:
            service.transfer_month(TENANT, 2025, 1)

        assert exc_info.value.reason == TransitionReason.NOT_CLOSED
        assert service.list_official_records(TENANT) == []

    def test_transfer_twice_returns_same_record(self, service, record):
        record()
        service.close_month(TENANT, 2025, 1, "Ana")

        first = service.transfer_month(TENANT, 2025, 1)
        second = service.transfer_month(TENANT, 2025, 1)

        assert second.record_id == first.record_id
        assert second.provenance_hash == first.provenance_hash
        assert len(service.list_official_records(TENANT, 2025)) == 1

    def test_lost_transfer_commit_conflicts(self, service, store, record, monkeypatch):
        record()
        service.close_month(TENANT, 2025, 1, "Ana")
        monkeypatch.setattr(store, "commit_transfer", lambda *a, **kw: False)

        with pytest.raises(ConcurrencyConflict):
            service.transfer_month(TENANT, 2025, 1)

        assert service.get_monthly_summary(TENANT, 2025, 1).status == MonthStatus.CLOSED
        assert service.list_official_records(TENANT) == []

    def test_frozen_totals_ignore_matrix_edits(self, service, half_diverted):
        service.close_month(TENANT, 2025, 1, "Ana")
        service.upsert_cell(TENANT, 2025, 1, "landfill", "Inorgánico", 99999)

        record = service.transfer_month(TENANT, 2025, 1)

        assert record.landfill_total == 1000.0
