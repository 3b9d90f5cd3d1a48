# -*- coding: utf-8 -*-
"""
Official Records Archive - Econova Waste Accounting Ledger

Read side of the certification records. Records are written exactly once
by a monthly transfer and never modified; this module only looks them up,
lists them and re-derives their SHA-256 hash for audit.

Example:
    >>> from econova.waste_ledger.archive import OfficialRecordsArchive
    >>> from econova.waste_ledger.store import InMemoryLedgerStore
    >>> archive = OfficialRecordsArchive(InMemoryLedgerStore())
    >>> archive.list_official_records("1", 2025)
    []
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from econova.exceptions import NotFoundError
from econova.waste_ledger.models import OfficialDeviationRecord
from econova.waste_ledger.provenance import hash_payload
from econova.waste_ledger.store import LedgerStore
from econova.waste_ledger.validator import LedgerValidator, require_tenant

logger = logging.getLogger(__name__)

# Figures covered by the record hash; identifiers and creation time are not
_HASHED_FIELDS = {
    "tenant_id",
    "year",
    "month",
    "circular_total",
    "landfill_total",
    "grand_total",
    "deviation_percent",
    "totals",
    "closed_by",
    "closed_at",
}


def record_hash(record: OfficialDeviationRecord) -> str:
    """SHA-256 over the certified figures of a record."""
    return hash_payload(record.model_dump(mode="json", include=_HASHED_FIELDS))


class OfficialRecordsArchive:
    """Read-only access to official deviation records."""

    def __init__(
        self,
        store: LedgerStore,
        validator: Optional[LedgerValidator] = None,
    ) -> None:
        self.store = store
        self.validator = validator or LedgerValidator()

    def get_official_record(self, tenant_id: Any, year: Any, month: Any) -> OfficialDeviationRecord:
        """Return the record of one month.

        Raises:
            NotFoundError: If the month has not been transferred.
        """
        tenant = require_tenant(tenant_id)
        year = self.validator.year(year, tenant)
        month = self.validator.month(month, tenant)
        record = self.store.get_official_record(tenant, year, month)
        if record is None:
            raise NotFoundError(
                f"No official record for {year}-{month:02d}",
                tenant_id=tenant,
                resource="official_record",
                key={"year": year, "month": month},
            )
        return record

    def list_official_records(self, tenant_id: Any, year: Any = None) -> List[OfficialDeviationRecord]:
        """Records of a tenant ordered by period, optionally for one year."""
        tenant = require_tenant(tenant_id)
        if year is not None:
            year = self.validator.year(year, tenant)
        records = self.store.list_official_records(tenant, year)
        logger.debug("Listed %d official records for tenant %s", len(records), tenant)
        return records

    @staticmethod
    def verify_record(record: OfficialDeviationRecord) -> bool:
        """True if the record's figures still match its provenance hash."""
        matches = record_hash(record) == record.provenance_hash
        if not matches:
            logger.warning(
                "Official record %s failed hash verification (%s %d-%02d)",
                record.record_id, record.tenant_id, record.year, record.month,
            )
        return matches


__all__ = [
    "OfficialRecordsArchive",
    "record_hash",
]
