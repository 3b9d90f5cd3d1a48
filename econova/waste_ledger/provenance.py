# -*- coding: utf-8 -*-
"""
Ledger Provenance Tracker - Econova Waste Accounting Ledger

SHA-256 audit trail for every ledger write: batch saves, cell upserts,
daily entries, monthly closes and transfers. Entries chain to their
predecessor so any tampering with the log is detectable.

Zero-Hallucination Guarantees:
    - All hashes are deterministic SHA-256 over canonical JSON
    - Chain hashing links operations in sequence
    - JSON export for external audit systems

Example:
    >>> from econova.waste_ledger.provenance import ProvenanceTracker
    >>> tracker = ProvenanceTracker()
    >>> entry = tracker.record("1", "close", "2025-01", {"closed_by": "ana"})
    >>> tracker.verify_chain()
    True
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Any, Dict, List, Optional

from econova.waste_ledger.metrics import update_provenance_entries
from econova.waste_ledger.models import ProvenanceEntry

logger = logging.getLogger(__name__)


def hash_payload(data: Any) -> str:
    """SHA-256 of ``data`` serialized as sorted-key JSON."""
    serialized = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode()).hexdigest()


class ProvenanceTracker:
    """Tracks ledger writes with SHA-256 chain hashing.

    Attributes:
        _entries: Ordered list of provenance entries.
        _last_chain_hash: Most recent chain hash for linking.
    """

    # Initial chain hash (genesis)
    _GENESIS_HASH = hashlib.sha256(b"econova-waste-ledger-genesis").hexdigest()

    def __init__(self) -> None:
        self._entries: List[ProvenanceEntry] = []
        self._last_chain_hash: str = self._GENESIS_HASH
        self._lock = threading.Lock()
        logger.info("ProvenanceTracker initialized")

    def record(
        self,
        tenant_id: str,
        operation: str,
        subject: str,
        payload: Any,
    ) -> ProvenanceEntry:
        """Append a write to the audit trail.

        Args:
            tenant_id: Tenant the write belongs to.
            operation: Ledger operation name.
            subject: What was written, e.g. "2025" or "2025-03".
            payload: Data written; hashed, not stored.

        Returns:
            The new chained ProvenanceEntry.
        """
        with self._lock:
            entry = ProvenanceEntry(
                tenant_id=tenant_id,
                operation=operation,
                subject=subject,
                payload_hash=hash_payload(payload),
            )
            chain_hash = self._next_hash(self._last_chain_hash, entry)
            entry.chain_hash = chain_hash
            self._entries.append(entry)
            self._last_chain_hash = chain_hash
            count = len(self._entries)

        update_provenance_entries(count)
        logger.debug(
            "Recorded provenance: %s %s/%s %s",
            operation, tenant_id, subject, entry.log_id,
        )
        return entry

    def get_trail(
        self,
        tenant_id: Optional[str] = None,
        operation: Optional[str] = None,
        limit: int = 100,
    ) -> List[ProvenanceEntry]:
        """Return entries newest first, optionally filtered."""
        with self._lock:
            entries = list(self._entries)
        if tenant_id is not None:
            entries = [e for e in entries if e.tenant_id == tenant_id]
        if operation is not None:
            entries = [e for e in entries if e.operation == operation]
        entries.reverse()
        return entries[:limit]

    def verify_chain(self, entries: Optional[List[ProvenanceEntry]] = None) -> bool:
        """Recompute chain hashes from genesis and compare.

        Args:
            entries: Entries to verify. Uses all entries if None.

        Returns:
            True if chain is intact, False if tampered.
        """
        with self._lock:
            check_entries = list(entries if entries is not None else self._entries)

        current_hash = self._GENESIS_HASH
        for entry in check_entries:
            expected_hash = self._next_hash(current_hash, entry)
            if entry.chain_hash != expected_hash:
                logger.warning(
                    "Chain verification failed at entry %s", entry.log_id,
                )
                return False
            current_hash = expected_hash
        return True

    def export_json(self) -> str:
        """Export all provenance records as JSON string."""
        with self._lock:
            records = [entry.model_dump(mode="json") for entry in self._entries]
        return json.dumps(records, indent=2, default=str)

    @property
    def entry_count(self) -> int:
        """Return the number of provenance entries."""
        return len(self._entries)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _next_hash(previous: str, entry: ProvenanceEntry) -> str:
        entry_hash = hash_payload({
            "tenant": entry.tenant_id,
            "operation": entry.operation,
            "subject": entry.subject,
            "payload": entry.payload_hash,
            "timestamp": entry.timestamp.isoformat(),
        })
        combined = f"{previous}:{entry_hash}"
        return hashlib.sha256(combined.encode()).hexdigest()


__all__ = [
    "ProvenanceTracker",
    "hash_payload",
]
