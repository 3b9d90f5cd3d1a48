# -*- coding: utf-8 -*-
"""
Ledger Input Validator - Econova Waste Accounting Ledger

Validates every write into the ledger before anything touches the store:
tenant scope, reporting period, weights, taxonomy membership and free-text
fields. Batch validation checks all edits and reports every failure in one
``ValidationError``.

Zero-Hallucination Guarantees:
    - All validation is deterministic and rule-based
    - Invalid input is never coerced into a stored value
    - Every rejection carries the offending field in its context

Example:
    >>> from econova.waste_ledger.validator import LedgerValidator
    >>> validator = LedgerValidator()
    >>> validator.weight(150, tenant_id="1")
    150.0
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from econova.exceptions import (
    InvalidMaterialError,
    InvalidMonthError,
    InvalidTenantError,
    InvalidWeightError,
    InvalidYearError,
    ValidationError,
)
from econova.waste_ledger.config import WasteLedgerConfig, get_config
from econova.waste_ledger.metrics import record_validation_failure
from econova.waste_ledger.models import CellEdit, CellKey, WasteCategory
from econova.waste_ledger.taxonomy import (
    DEFAULT_TAXONOMY,
    MaterialTaxonomy,
    normalize_name,
)

logger = logging.getLogger(__name__)


def require_tenant(tenant_id: Any) -> str:
    """Normalize a tenant identifier to a non-empty string.

    Args:
        tenant_id: Identifier supplied by the tenant resolver.

    Returns:
        The tenant identifier as a string.

    Raises:
        InvalidTenantError: If the identifier is missing or malformed.
    """
    if isinstance(tenant_id, bool) or tenant_id is None:
        raise InvalidTenantError(
            "tenant_id is required on every ledger operation",
            context={"tenant_id": repr(tenant_id)},
        )
    if isinstance(tenant_id, int):
        return str(tenant_id)
    if isinstance(tenant_id, str) and tenant_id.strip():
        return tenant_id.strip()
    raise InvalidTenantError(
        "tenant_id must be a non-empty string or integer",
        context={"tenant_id": repr(tenant_id)},
    )


def parse_timestamp(value: Any) -> datetime:
    """Parse an entry timestamp from a datetime or ISO-8601 string.

    Naive values are taken as UTC.

    Raises:
        ValidationError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(
                f"Cannot parse timestamp: {value!r}", field="timestamp",
            ) from exc
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)
    raise ValidationError(
        f"Expected datetime or ISO string, got {type(value).__name__}",
        field="timestamp",
    )


class LedgerValidator:
    """Validates ledger write input against configuration and taxonomy.

    Attributes:
        config: WasteLedgerConfig supplying year range and limits.
        taxonomy: MaterialTaxonomy that materials must belong to.
    """

    def __init__(
        self,
        config: Optional[WasteLedgerConfig] = None,
        taxonomy: Optional[MaterialTaxonomy] = None,
    ) -> None:
        self.config = config or get_config()
        self.taxonomy = taxonomy or DEFAULT_TAXONOMY

    # ------------------------------------------------------------------
    # Field checks
    # ------------------------------------------------------------------

    def year(self, year: Any, tenant_id: Optional[str] = None) -> int:
        if isinstance(year, bool) or not isinstance(year, int):
            raise self._reject(InvalidYearError(
                f"Year must be an integer, got {type(year).__name__}",
                tenant_id=tenant_id, year=year,
            ))
        if not self.config.min_year <= year <= self.config.max_year:
            raise self._reject(InvalidYearError(
                f"Year {year} outside accepted range "
                f"{self.config.min_year}-{self.config.max_year}",
                tenant_id=tenant_id, year=year,
            ))
        return year

    def month(self, month: Any, tenant_id: Optional[str] = None) -> int:
        if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
            raise self._reject(InvalidMonthError(
                f"Month must be an integer in [1, 12], got {month!r}",
                tenant_id=tenant_id, month=month,
            ))
        return month

    def weight(
        self,
        kg: Any,
        tenant_id: Optional[str] = None,
        allow_zero: bool = True,
    ) -> float:
        """Validate a weight in kilograms.

        Matrix cells accept zero (a cleared cell); daily entries do not,
        since a zero-weight observation carries no information.

        Args:
            kg: Weight as int, float, Decimal or numeric string.
            tenant_id: Tenant scope for error context.
            allow_zero: Whether 0 is accepted.

        Returns:
            The weight as a float.

        Raises:
            InvalidWeightError: If not a finite number in range.
        """
        if isinstance(kg, bool):
            raise self._reject(InvalidWeightError(
                "Weight must be numeric, got bool", tenant_id=tenant_id, kg=kg,
            ))
        if isinstance(kg, (int, float, Decimal)):
            value = float(kg)
        elif isinstance(kg, str):
            try:
                value = float(kg.strip())
            except ValueError:
                raise self._reject(InvalidWeightError(
                    f"Weight is not a number: {kg!r}", tenant_id=tenant_id, kg=kg,
                )) from None
        else:
            raise self._reject(InvalidWeightError(
                f"Weight must be numeric, got {type(kg).__name__}",
                tenant_id=tenant_id, kg=kg,
            ))

        if not math.isfinite(value):
            raise self._reject(InvalidWeightError(
                f"Weight must be finite, got {kg!r}", tenant_id=tenant_id, kg=kg,
            ))
        if value < 0 or (value == 0 and not allow_zero):
            bound = ">= 0" if allow_zero else "> 0"
            raise self._reject(InvalidWeightError(
                f"Weight must be {bound}, got {kg!r}", tenant_id=tenant_id, kg=kg,
            ))
        return value

    def category(
        self,
        category: Any,
        tenant_id: Optional[str] = None,
        material: Any = None,
    ) -> WasteCategory:
        parsed = self.taxonomy.parse_category(category)
        if parsed is None:
            raise self._reject(InvalidMaterialError(
                f"Unknown waste category: {category!r}",
                tenant_id=tenant_id,
                category=str(category),
                material=None if material is None else str(material),
            ))
        return parsed

    def category_material(
        self,
        category: Any,
        material: Any,
        tenant_id: Optional[str] = None,
    ) -> Tuple[WasteCategory, str]:
        """Resolve a category and check the material belongs to it.

        Returns:
            (WasteCategory, normalized material name).

        Raises:
            InvalidMaterialError: Unknown category or foreign material.
        """
        parsed = self.category(category, tenant_id, material)
        if not self.taxonomy.is_valid(parsed, material):
            raise self._reject(InvalidMaterialError(
                f"Material {material!r} is not valid for category '{parsed.value}'",
                tenant_id=tenant_id, category=parsed.value, material=str(material),
            ))
        return parsed, normalize_name(material)

    def text(
        self,
        value: Any,
        field: str,
        tenant_id: Optional[str] = None,
        required: bool = True,
        max_length: Optional[int] = None,
    ) -> Optional[str]:
        """Validate a free-text field (location, notes, closed_by)."""
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                raise self._reject(ValidationError(
                    f"{field} is required", tenant_id=tenant_id, field=field,
                ))
            return None
        if not isinstance(value, str):
            raise self._reject(ValidationError(
                f"{field} must be a string", tenant_id=tenant_id, field=field,
            ))
        cleaned = value.strip()
        if max_length is not None and len(cleaned) > max_length:
            raise self._reject(ValidationError(
                f"{field} exceeds {max_length} characters",
                tenant_id=tenant_id, field=field,
            ))
        return cleaned

    def calendar_date(self, value: Any, tenant_id: Optional[str] = None) -> date:
        """Accept a date, a datetime or an ISO date string."""
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip()[:10])
            except ValueError:
                pass
        raise self._reject(ValidationError(
            f"Expected a calendar date, got {value!r}",
            tenant_id=tenant_id, field="date",
        ))

    # ------------------------------------------------------------------
    # Composite checks
    # ------------------------------------------------------------------

    def cell_edit(self, edit: CellEdit, tenant_id: str) -> Tuple[CellKey, float]:
        """Validate one batch edit and return its key and weight."""
        month = self.month(edit.month, tenant_id)
        category, material = self.category_material(edit.category, edit.material, tenant_id)
        kg = self.weight(edit.kg, tenant_id)
        return CellKey(category, material, month), kg

    def batch(
        self,
        edits: Sequence[Any],
        tenant_id: str,
    ) -> Dict[CellKey, float]:
        """Validate every edit of a batch before any is applied.

        Duplicate keys resolve last-write-wins in list order.

        Args:
            edits: CellEdit instances or dicts with month/category/material/kg.
            tenant_id: Tenant scope.

        Returns:
            Mapping of cell key to weight, in first-seen key order.

        Raises:
            ValidationError: Listing every invalid edit by index.
        """
        if len(edits) > self.config.max_batch_edits:
            raise self._reject(ValidationError(
                f"Batch of {len(edits)} edits exceeds limit "
                f"of {self.config.max_batch_edits}",
                tenant_id=tenant_id, field="edits",
            ))

        resolved: Dict[CellKey, float] = {}
        failures: List[Dict[str, Any]] = []

        for index, raw in enumerate(edits):
            try:
                edit = raw if isinstance(raw, CellEdit) else CellEdit.model_validate(raw)
            except PydanticValidationError as exc:
                failures.append({
                    "index": index,
                    "error_type": "MalformedEdit",
                    "message": str(exc),
                })
                continue
            try:
                key, kg = self.cell_edit(edit, tenant_id)
            except ValidationError as exc:
                failures.append({
                    "index": index,
                    "error_type": type(exc).__name__,
                    "message": exc.message,
                    "context": {k: v for k, v in exc.context.items() if k != "failures"},
                })
                continue
            resolved[key] = kg

        if failures:
            logger.warning(
                "Batch rejected for tenant %s: %d of %d edits invalid",
                tenant_id, len(failures), len(edits),
            )
            raise ValidationError(
                f"Batch rejected: {len(failures)} of {len(edits)} edits are invalid",
                tenant_id=tenant_id,
                failures=failures,
            )
        return resolved

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _reject(exc: ValidationError) -> ValidationError:
        record_validation_failure(type(exc).__name__)
        logger.debug("Rejected ledger input: %s", exc)
        return exc


__all__ = [
    "LedgerValidator",
    "require_tenant",
    "parse_timestamp",
]
