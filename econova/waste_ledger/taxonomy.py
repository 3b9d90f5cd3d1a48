# -*- coding: utf-8 -*-
"""
Material Taxonomy - Econova Waste Accounting Ledger

Static configuration of the four waste categories and the material names
valid in each. The default lists are the ones tenants log against on the
daily registration form; a different taxonomy can be injected wherever a
``MaterialTaxonomy`` is accepted.

Example:
    >>> from econova.waste_ledger.taxonomy import DEFAULT_TAXONOMY
    >>> DEFAULT_TAXONOMY.is_valid("recycling", "Cartón")
    True
"""

from __future__ import annotations

import logging
import unicodedata
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from econova.waste_ledger.models import WasteCategory

logger = logging.getLogger(__name__)

MONTH_LABELS: Tuple[str, ...] = (
    "Ene", "Feb", "Mar", "Abr", "May", "Jun",
    "Jul", "Ago", "Sep", "Oct", "Nov", "Dic",
)

RECYCLING_MATERIALS: Tuple[str, ...] = (
    "Papel Mixto",
    "Papel de oficina",
    "Revistas",
    "Periódico",
    "Cartón",
    "PET",
    "Plástico Duro",
    "HDPE",
    "Tin Can",
    "Aluminio",
    "Vidrio",
    "Fierro",
    "Residuo electrónico",
)

COMPOST_MATERIALS: Tuple[str, ...] = (
    "Poda San Sebastián",
    "Jardinería",
    "Residuos de cocina",
    "Restos orgánicos",
)

REUSE_MATERIALS: Tuple[str, ...] = (
    "Vidrio donación",
    "Mobiliario",
    "Equipos reutilizables",
)

LANDFILL_MATERIALS: Tuple[str, ...] = (
    "Orgánico",
    "Inorgánico",
)


def normalize_name(value: str) -> str:
    """NFC-normalize and trim a material name so composed and decomposed
    accents ("Cartón") compare equal."""
    return unicodedata.normalize("NFC", value).strip()


class MaterialTaxonomy:
    """Immutable category -> material-name mapping.

    Every category must be present and list at least one material; material
    order is preserved for display.
    """

    def __init__(self, materials: Mapping[str, Iterable[str]]) -> None:
        resolved: Dict[WasteCategory, Tuple[str, ...]] = {}
        for raw_category, names in materials.items():
            category = WasteCategory(raw_category)
            cleaned = tuple(dict.fromkeys(
                normalize_name(n) for n in names if n and n.strip()
            ))
            if not cleaned:
                raise ValueError(f"Category '{category.value}' has no materials")
            resolved[category] = cleaned

        missing = [c.value for c in WasteCategory if c not in resolved]
        if missing:
            raise ValueError(f"Taxonomy is missing categories: {missing}")

        self._materials = resolved
        self._lookup = {c: frozenset(names) for c, names in resolved.items()}
        logger.debug(
            "MaterialTaxonomy built: %s",
            {c.value: len(n) for c, n in resolved.items()},
        )

    @staticmethod
    def parse_category(value: object) -> Optional[WasteCategory]:
        """Return the category for ``value`` or None if it is not one."""
        if isinstance(value, WasteCategory):
            return value
        if isinstance(value, str):
            try:
                return WasteCategory(value.strip().lower())
            except ValueError:
                return None
        return None

    def materials(self, category: WasteCategory) -> Tuple[str, ...]:
        return self._materials[WasteCategory(category)]

    def is_valid(self, category: object, material: object) -> bool:
        parsed = self.parse_category(category)
        if parsed is None or not isinstance(material, str):
            return False
        return normalize_name(material) in self._lookup[parsed]

    def as_dict(self) -> Dict[str, List[str]]:
        """Plain mapping for read-only consumers (matrix views, JSON)."""
        return {c.value: list(self._materials[c]) for c in WasteCategory}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MaterialTaxonomy):
            return NotImplemented
        return self._materials == other._materials

    def __repr__(self) -> str:
        counts = ", ".join(f"{c.value}={len(n)}" for c, n in self._materials.items())
        return f"MaterialTaxonomy({counts})"


DEFAULT_TAXONOMY = MaterialTaxonomy({
    WasteCategory.RECYCLING: RECYCLING_MATERIALS,
    WasteCategory.COMPOST: COMPOST_MATERIALS,
    WasteCategory.REUSE: REUSE_MATERIALS,
    WasteCategory.LANDFILL: LANDFILL_MATERIALS,
})


__all__ = [
    "MONTH_LABELS",
    "RECYCLING_MATERIALS",
    "COMPOST_MATERIALS",
    "REUSE_MATERIALS",
    "LANDFILL_MATERIALS",
    "normalize_name",
    "MaterialTaxonomy",
    "DEFAULT_TAXONOMY",
]
