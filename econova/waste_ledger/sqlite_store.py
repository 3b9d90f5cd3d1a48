# -*- coding: utf-8 -*-
"""
SQLite Ledger Store - Econova Waste Accounting Ledger

Durable ``LedgerStore`` backed by the standard library ``sqlite3`` module.
Each write runs inside ``BEGIN IMMEDIATE`` so the write lock is taken up
front; compare-and-swap transitions are ``UPDATE ... WHERE status = ?``
statements checked through their row count.

sqlite errors never leak: they are rolled back and re-raised as
``StoreError`` with the sqlite3 exception chained.

Example:
    >>> from econova.waste_ledger.sqlite_store import SQLiteLedgerStore
    >>> store = SQLiteLedgerStore("ledger.db")
    >>> store.count_entries("1", 2025, 1)
    0
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Mapping, Optional

from econova.exceptions import StoreError
from econova.waste_ledger.config import get_config
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
from econova.waste_ledger.store import LedgerStore

logger = logging.getLogger(__name__)

_CELL_COLUMNS = "tenant_id, year, month, category, material, kg, updated_at"
_ENTRY_COLUMNS = (
    "entry_id, tenant_id, timestamp, category, material, kg, "
    "location, notes, created_at, provenance_hash"
)


class SQLiteLedgerStore(LedgerStore):
    """Durable ledger store on a single SQLite database file.

    Example:
        >>> store = SQLiteLedgerStore(":memory:")
        >>> store.get_summary("1", 2025, 1) is None
        True
    """

    backend = "sqlite"

    def __init__(
        self,
        db_path: str,
        timeout: Optional[float] = None,
        schema_path: Optional[str] = None,
    ) -> None:
        """Open (and if needed create) the ledger database.

        Args:
            db_path: Path to the SQLite file, or ":memory:".
            timeout: Seconds to wait on a locked database. Uses the
                configured sqlite_timeout_seconds if None.
            schema_path: Path to schema.sql (defaults to the packaged one).

        Raises:
            StoreError: If the database cannot be opened or initialized.
        """
        self.db_path = str(db_path)
        self.timeout = timeout if timeout is not None else get_config().sqlite_timeout_seconds
        self.schema_path = schema_path or str(Path(__file__).parent / "schema.sql")
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._initialize_database()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection (lazy initialization)."""
        if self._connection is None:
            try:
                # Autocommit mode; transactions are issued explicitly
                self._connection = sqlite3.connect(
                    self.db_path,
                    timeout=self.timeout,
                    isolation_level=None,
                    check_same_thread=False,
                )
                self._connection.row_factory = sqlite3.Row
                logger.debug("Connected to ledger database: %s", self.db_path)
            except sqlite3.Error as e:
                logger.error("Ledger database connection failed: %s", e)
                raise StoreError(
                    f"Ledger database connection failed: {e}",
                    operation="connect", cause=e,
                ) from e
        return self._connection

    def _initialize_database(self) -> None:
        """Apply schema.sql; every statement is idempotent."""
        try:
            schema_sql = Path(self.schema_path).read_text(encoding="utf-8")
            with self._lock:
                self._get_connection().executescript(schema_sql)
            logger.info("Ledger schema ready at %s", self.db_path)
        except (OSError, sqlite3.Error) as e:
            logger.error("Ledger schema initialization failed: %s", e)
            raise StoreError(
                f"Ledger schema initialization failed: {e}",
                operation="initialize", cause=e,
            ) from e

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
                logger.debug("Ledger database connection closed")

    @contextmanager
    def _transaction(self, name: str, tenant_id: Optional[str] = None) -> Iterator[sqlite3.Connection]:
        """Run the block inside BEGIN IMMEDIATE ... COMMIT.

        Any exception rolls back. sqlite errors are re-raised as StoreError.
        """
        with self._lock:
            conn = self._get_connection()
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                record_store_transaction(self.backend, "rollback")
                raise StoreError(
                    f"Could not start {name}: {e}",
                    tenant_id=tenant_id, operation=name, cause=e,
                ) from e
            try:
                yield conn
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                conn.execute("ROLLBACK")
                record_store_transaction(self.backend, "rollback")
                logger.error("Rolled back %s: %s", name, e)
                raise StoreError(
                    f"{name} failed: {e}",
                    tenant_id=tenant_id, operation=name, cause=e,
                ) from e
            except Exception:
                conn.execute("ROLLBACK")
                record_store_transaction(self.backend, "rollback")
                logger.error("Rolled back %s", name)
                raise
            record_store_transaction(self.backend, "commit")

    def _query(self, name: str, sql: str, params: tuple) -> List[sqlite3.Row]:
        with self._lock:
            try:
                return self._get_connection().execute(sql, params).fetchall()
            except sqlite3.Error as e:
                logger.error("Query %s failed: %s", name, e)
                raise StoreError(
                    f"{name} failed: {e}", operation=name, cause=e,
                ) from e

    # -- Matrix cells -------------------------------------------------------

    def get_cells(self, tenant_id: str, year: int) -> List[LedgerCell]:
        rows = self._query(
            "get_cells",
            f"SELECT {_CELL_COLUMNS} FROM ledger_cells "
            "WHERE tenant_id = ? AND year = ?",
            (tenant_id, year),
        )
        cells = [LedgerCell.model_validate(dict(row)) for row in rows]
        return sorted(cells, key=lambda c: c.key)

    def apply_cells(
        self,
        tenant_id: str,
        year: int,
        values: Mapping[CellKey, float],
    ) -> List[LedgerCell]:
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
        with self._transaction("apply_cells", tenant_id) as conn:
            conn.executemany(
                f"INSERT INTO ledger_cells ({_CELL_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (tenant_id, year, category, material, month) "
                "DO UPDATE SET kg = excluded.kg, updated_at = excluded.updated_at",
                [
                    (
                        c.tenant_id, c.year, c.month, c.category.value,
                        c.material, c.kg, c.updated_at.isoformat(),
                    )
                    for c in written
                ],
            )
        return written

    # -- Daily entries ------------------------------------------------------

    def append_entry_if_open(self, entry: DailyWasteEntry) -> MonthStatus:
        with self._transaction("append_entry_if_open", entry.tenant_id) as conn:
            status = self._ensure_summary(
                conn, MonthlySummary(
                    tenant_id=entry.tenant_id, year=entry.year, month=entry.month,
                ),
            )
            if status != MonthStatus.OPEN:
                return status
            conn.execute(
                "INSERT INTO daily_entries (entry_id, tenant_id, year, month, "
                "timestamp, category, material, kg, location, notes, "
                "created_at, provenance_hash) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.entry_id, entry.tenant_id, entry.year, entry.month,
                    entry.timestamp.isoformat(), entry.category.value,
                    entry.material, entry.kg, entry.location, entry.notes,
                    entry.created_at.isoformat(), entry.provenance_hash,
                ),
            )
            return MonthStatus.OPEN

    def list_entries(self, tenant_id: str, year: int, month: int) -> List[DailyWasteEntry]:
        rows = self._query(
            "list_entries",
            f"SELECT {_ENTRY_COLUMNS} FROM daily_entries "
            "WHERE tenant_id = ? AND year = ? AND month = ?",
            (tenant_id, year, month),
        )
        entries = [DailyWasteEntry.model_validate(dict(row)) for row in rows]
        # Offsets may differ between rows, so order on parsed datetimes
        return sorted(entries, key=lambda e: (e.timestamp, e.entry_id))

    def count_entries(self, tenant_id: str, year: int, month: int) -> int:
        rows = self._query(
            "count_entries",
            "SELECT COUNT(*) AS n FROM daily_entries "
            "WHERE tenant_id = ? AND year = ? AND month = ?",
            (tenant_id, year, month),
        )
        return int(rows[0]["n"])

    # -- Monthly summaries --------------------------------------------------

    def get_summary(self, tenant_id: str, year: int, month: int) -> Optional[MonthlySummary]:
        rows = self._query(
            "get_summary",
            "SELECT payload FROM monthly_summaries "
            "WHERE tenant_id = ? AND year = ? AND month = ?",
            (tenant_id, year, month),
        )
        return MonthlySummary.model_validate_json(rows[0]["payload"]) if rows else None

    def insert_summary_if_absent(self, summary: MonthlySummary) -> MonthlySummary:
        existing = self.get_summary(summary.tenant_id, summary.year, summary.month)
        if existing is not None:
            return existing
        # Missing row: take the write lock; a concurrent insert wins via OR IGNORE
        with self._transaction("insert_summary_if_absent", summary.tenant_id) as conn:
            self._ensure_summary(conn, summary)
            row = conn.execute(
                "SELECT payload FROM monthly_summaries "
                "WHERE tenant_id = ? AND year = ? AND month = ?",
                (summary.tenant_id, summary.year, summary.month),
            ).fetchone()
        return MonthlySummary.model_validate_json(row["payload"])

    def compare_and_set_summary(
        self,
        summary: MonthlySummary,
        expected_status: MonthStatus,
        expected_entries_count: Optional[int] = None,
    ) -> bool:
        with self._transaction("compare_and_set_summary", summary.tenant_id) as conn:
            if expected_entries_count is not None:
                count = conn.execute(
                    "SELECT COUNT(*) FROM daily_entries "
                    "WHERE tenant_id = ? AND year = ? AND month = ?",
                    (summary.tenant_id, summary.year, summary.month),
                ).fetchone()[0]
                if count != expected_entries_count:
                    return False
            return self._swap_summary(conn, summary, expected_status)

    def commit_transfer(
        self,
        summary: MonthlySummary,
        expected_status: MonthStatus,
        record: OfficialDeviationRecord,
    ) -> bool:
        with self._transaction("commit_transfer", summary.tenant_id) as conn:
            existing = conn.execute(
                "SELECT 1 FROM official_records "
                "WHERE tenant_id = ? AND year = ? AND month = ?",
                (record.tenant_id, record.year, record.month),
            ).fetchone()
            if existing is not None:
                return False
            if not self._swap_summary(conn, summary, expected_status):
                return False
            conn.execute(
                "INSERT INTO official_records (record_id, tenant_id, "
                "year, month, deviation_percent, payload, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    record.record_id, record.tenant_id, record.year, record.month,
                    record.deviation_percent, record.model_dump_json(),
                    record.created_at.isoformat(),
                ),
            )
            return True

    # -- Official records ---------------------------------------------------

    def get_official_record(
        self, tenant_id: str, year: int, month: int,
    ) -> Optional[OfficialDeviationRecord]:
        rows = self._query(
            "get_official_record",
            "SELECT payload FROM official_records "
            "WHERE tenant_id = ? AND year = ? AND month = ?",
            (tenant_id, year, month),
        )
        return OfficialDeviationRecord.model_validate_json(rows[0]["payload"]) if rows else None

    def list_official_records(
        self, tenant_id: str, year: Optional[int] = None,
    ) -> List[OfficialDeviationRecord]:
        if year is None:
            rows = self._query(
                "list_official_records",
                "SELECT payload FROM official_records WHERE tenant_id = ? "
                "ORDER BY year, month",
                (tenant_id,),
            )
        else:
            rows = self._query(
                "list_official_records",
                "SELECT payload FROM official_records WHERE tenant_id = ? "
                "AND year = ? ORDER BY month",
                (tenant_id, year),
            )
        return [OfficialDeviationRecord.model_validate_json(r["payload"]) for r in rows]

    # ------------------------------------------------------------------
    # Internal helpers (called inside an open transaction)
    # ------------------------------------------------------------------

    @staticmethod
    def _ensure_summary(conn: sqlite3.Connection, summary: MonthlySummary) -> MonthStatus:
        conn.execute(
            "INSERT OR IGNORE INTO monthly_summaries "
            "(tenant_id, year, month, status, payload, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                summary.tenant_id, summary.year, summary.month,
                summary.status.value, summary.model_dump_json(),
                summary.updated_at.isoformat(),
            ),
        )
        row = conn.execute(
            "SELECT status FROM monthly_summaries "
            "WHERE tenant_id = ? AND year = ? AND month = ?",
            (summary.tenant_id, summary.year, summary.month),
        ).fetchone()
        return MonthStatus(row["status"])

    @staticmethod
    def _swap_summary(
        conn: sqlite3.Connection,
        summary: MonthlySummary,
        expected_status: MonthStatus,
    ) -> bool:
        cursor = conn.execute(
            "UPDATE monthly_summaries SET status = ?, payload = ?, updated_at = ? "
            "WHERE tenant_id = ? AND year = ? AND month = ? AND status = ?",
            (
                summary.status.value, summary.model_dump_json(),
                summary.updated_at.isoformat(),
                summary.tenant_id, summary.year, summary.month,
                expected_status.value,
            ),
        )
        return cursor.rowcount == 1


__all__ = [
    "SQLiteLedgerStore",
]
