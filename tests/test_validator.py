"""Tests for LedgerValidator and the tenant/timestamp helpers."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from econova.exceptions import (
    InvalidMaterialError,
    InvalidMonthError,
    InvalidTenantError,
    InvalidWeightError,
    InvalidYearError,
    ValidationError,
)
from econova.waste_ledger.config import WasteLedgerConfig
from econova.waste_ledger.models import CellEdit, CellKey, WasteCategory
from econova.waste_ledger.validator import (
    LedgerValidator,
    parse_timestamp,
    require_tenant,
)


@pytest.fixture
def validator():
    return LedgerValidator(config=WasteLedgerConfig(max_batch_edits=5))


class TestRequireTenant:
    """Tenant identifiers are mandatory and normalized to str."""

    @pytest.mark.parametrize("raw,expected", [(1, "1"), ("acme", "acme"), (" 7 ", "7")])
    def test_accepts(self, raw, expected):
        assert require_tenant(raw) == expected

    @pytest.mark.parametrize("raw", [None, True, False, "", "   ", 1.5, ["1"]])
    def test_rejects(self, raw):
        with pytest.raises(InvalidTenantError):
            require_tenant(raw)


class TestPeriodChecks:
    """Year and month bounds."""

    def test_year_in_range(self, validator):
        assert validator.year(2025) == 2025

    @pytest.mark.parametrize("year", [1999, 2101, "2025", 2025.0, True])
    def test_year_rejected(self, validator, year):
        with pytest.raises(InvalidYearError):
            validator.year(year)

    @pytest.mark.parametrize("month", [1, 6, 12])
    def test_month_in_range(self, validator, month):
        assert validator.month(month) == month

    @pytest.mark.parametrize("month", [0, 13, -1, "3", 3.0, True, None])
    def test_month_rejected(self, validator, month):
        with pytest.raises(InvalidMonthError):
            validator.month(month)


class TestWeight:
    """Weights are finite and non-negative."""

    @pytest.mark.parametrize("raw,expected", [
        (0, 0.0),
        (150, 150.0),
        (12.5, 12.5),
        ("12.5", 12.5),
        (Decimal("3.25"), 3.25),
    ])
    def test_accepts(self, validator, raw, expected):
        assert validator.weight(raw) == expected

    @pytest.mark.parametrize("raw", [
        -1, -0.001, float("nan"), float("inf"), float("-inf"),
        "abc", "", None, True, [5],
    ])
    def test_rejects(self, validator, raw):
        with pytest.raises(InvalidWeightError):
            validator.weight(raw)

    def test_zero_rejected_when_not_allowed(self, validator):
        with pytest.raises(InvalidWeightError, match="> 0"):
            validator.weight(0, allow_zero=False)


class TestCategoryMaterial:
    """Materials must belong to their category."""

    def test_returns_parsed_category_and_normalized_name(self, validator):
        category, material = validator.category_material("Recycling", " Cartón ")
        assert category is WasteCategory.RECYCLING
        assert material == "Cartón"

    def test_unknown_category(self, validator):
        with pytest.raises(InvalidMaterialError) as exc_info:
            validator.category_material("metal", "Fierro", tenant_id="1")
        assert exc_info.value.context["category"] == "metal"
        assert exc_info.value.tenant_id == "1"

    def test_material_from_other_category(self, validator):
        with pytest.raises(InvalidMaterialError, match="not valid for category"):
            validator.category_material("compost", "PET")


class TestBatch:
    """Batch validation reports every bad edit at once."""

    def test_valid_batch(self, validator):
        values = validator.batch([
            CellEdit(month=1, category="recycling", material="PET", kg=10),
            {"month": 2, "category": "landfill", "material": "Orgánico", "kg": "4"},
        ], tenant_id="1")

        assert values == {
            CellKey(WasteCategory.RECYCLING, "PET", 1): 10.0,
            CellKey(WasteCategory.LANDFILL, "Orgánico", 2): 4.0,
        }

    def test_duplicate_keys_last_write_wins(self, validator):
        values = validator.batch([
            {"month": 1, "category": "recycling", "material": "PET", "kg": 10},
            {"month": 1, "category": "recycling", "material": "PET", "kg": 25},
        ], tenant_id="1")
        assert values == {CellKey(WasteCategory.RECYCLING, "PET", 1): 25.0}

    def test_failures_aggregated_with_indexes(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.batch([
                {"month": 1, "category": "recycling", "material": "PET", "kg": 10},
                {"month": 13, "category": "recycling", "material": "PET", "kg": 10},
                {"month": 2, "category": "recycling", "material": "PET", "kg": 5},
                {"month": 2, "category": "recycling", "material": "Madera", "kg": -1},
                {"month": 2, "category": "recycling"},
            ], tenant_id="1")

        failures = exc_info.value.failures
        assert [f["index"] for f in failures] == [1, 3, 4]
        assert failures[0]["error_type"] == "InvalidMonthError"
        assert failures[1]["error_type"] == "InvalidMaterialError"
        assert failures[2]["error_type"] == "MalformedEdit"
        assert type(exc_info.value) is ValidationError

    def test_oversized_batch_rejected(self, validator):
        edits = [
            {"month": m, "category": "recycling", "material": "PET", "kg": 1}
            for m in range(1, 7)
        ]
        with pytest.raises(ValidationError, match="exceeds limit"):
            validator.batch(edits, tenant_id="1")


class TestTimestampAndText:
    """Timestamps, dates and free text."""

    def test_naive_timestamp_is_utc(self):
        parsed = parse_timestamp("2025-01-10T09:30:00")
        assert parsed == datetime(2025, 1, 10, 9, 30, tzinfo=timezone.utc)

    def test_z_suffix(self):
        parsed = parse_timestamp("2025-01-10T09:30:00Z")
        assert parsed.utcoffset() == timedelta(0)

    def test_offset_preserved(self):
        parsed = parse_timestamp("2025-01-10T09:30:00-06:00")
        assert parsed.utcoffset() == timedelta(hours=-6)

    def test_datetime_passthrough(self):
        aware = datetime(2025, 1, 10, tzinfo=timezone.utc)
        assert parse_timestamp(aware) is aware

    @pytest.mark.parametrize("raw", ["yesterday", 1736500000, None])
    def test_bad_timestamp(self, raw):
        with pytest.raises(ValidationError):
            parse_timestamp(raw)

    def test_required_text(self, validator):
        assert validator.text("  Patio ", "location") == "Patio"
        with pytest.raises(ValidationError) as exc_info:
            validator.text("  ", "location")
        assert exc_info.value.context["field"] == "location"

    def test_optional_text_and_length(self, validator):
        assert validator.text(None, "notes", required=False) is None
        with pytest.raises(ValidationError, match="exceeds 3 characters"):
            validator.text("abcd", "notes", required=False, max_length=3)

    def test_calendar_date(self, validator):
        assert validator.calendar_date("2025-01-10") == date(2025, 1, 10)
        assert validator.calendar_date(datetime(2025, 1, 10, 8)) == date(2025, 1, 10)
        with pytest.raises(ValidationError):
            validator.calendar_date("10/01/2025")
