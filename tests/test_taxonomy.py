"""Tests for the material taxonomy."""

import pytest

from econova.waste_ledger.models import WasteCategory
from econova.waste_ledger.taxonomy import (
    DEFAULT_TAXONOMY,
    MONTH_LABELS,
    MaterialTaxonomy,
    normalize_name,
)


class TestMaterialTaxonomy:
    """Category parsing and material membership."""

    def test_default_taxonomy_covers_every_category(self):
        data = DEFAULT_TAXONOMY.as_dict()
        assert list(data) == ["recycling", "compost", "reuse", "landfill"]
        assert all(data.values())

    def test_material_membership(self):
        assert DEFAULT_TAXONOMY.is_valid("recycling", "Cartón") is True
        assert DEFAULT_TAXONOMY.is_valid(WasteCategory.LANDFILL, "Orgánico") is True
        assert DEFAULT_TAXONOMY.is_valid("landfill", "Cartón") is False
        assert DEFAULT_TAXONOMY.is_valid("recycling", "Madera") is False

    def test_decomposed_accents_match(self):
        """'Carto' + combining acute equals the composed 'Cartón'."""
        assert DEFAULT_TAXONOMY.is_valid("recycling", "Carto\u0301n") is True
        assert normalize_name("  Carto\u0301n ") == "Cartón"

    def test_non_string_material_is_invalid(self):
        assert DEFAULT_TAXONOMY.is_valid("recycling", 42) is False

    @pytest.mark.parametrize("raw,expected", [
        ("recycling", WasteCategory.RECYCLING),
        (" Compost ", WasteCategory.COMPOST),
        ("LANDFILL", WasteCategory.LANDFILL),
        (WasteCategory.REUSE, WasteCategory.REUSE),
        ("metal", None),
        (3, None),
        (None, None),
    ])
    def test_parse_category(self, raw, expected):
        assert MaterialTaxonomy.parse_category(raw) == expected

    def test_custom_taxonomy(self):
        taxonomy = MaterialTaxonomy({
            "recycling": ["Vidrio"],
            "compost": ["Hojas"],
            "reuse": ["Pallets"],
            "landfill": ["Mixto"],
        })
        assert taxonomy.is_valid("compost", "Hojas") is True
        assert taxonomy.is_valid("compost", "Jardinería") is False
        assert taxonomy != DEFAULT_TAXONOMY

    def test_missing_category_rejected(self):
        with pytest.raises(ValueError, match="missing categories"):
            MaterialTaxonomy({"recycling": ["Vidrio"]})

    def test_empty_category_rejected(self):
        with pytest.raises(ValueError, match="has no materials"):
            MaterialTaxonomy({
                "recycling": ["Vidrio"],
                "compost": [" "],
                "reuse": ["Pallets"],
                "landfill": ["Mixto"],
            })


class TestMonthLabels:
    """Column labels of the year matrix."""

    def test_twelve_spanish_labels(self):
        assert len(MONTH_LABELS) == 12
        assert MONTH_LABELS[0] == "Ene"
        assert MONTH_LABELS[-1] == "Dic"
