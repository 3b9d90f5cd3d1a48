# -*- coding: utf-8 -*-
"""
Waste Ledger Service Setup - Econova Waste Accounting Ledger

Provides ``configure_waste_ledger_service(app, store)`` which wires up the
Waste Ledger SDK (validator, matrix, daily recorder, lifecycle controller,
archive, provenance) over a caller-supplied store and mounts the REST API.

Also exposes ``get_waste_ledger_service(app)`` for programmatic access
and the ``WasteLedgerService`` facade class.

Usage:
    >>> from fastapi import FastAPI
    >>> from econova.waste_ledger.setup import configure_waste_ledger_service
    >>> from econova.waste_ledger.sqlite_store import SQLiteLedgerStore
    >>> app = FastAPI()
    >>> configure_waste_ledger_service(app, SQLiteLedgerStore("ledger.db"))
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence

from fastapi import APIRouter, HTTPException, Query, Request

from econova.exceptions import (
    ConcurrencyConflict,
    LedgerException,
    NotFoundError,
    StateTransitionError,
    ValidationError,
)
from econova.waste_ledger import aggregator
from econova.waste_ledger.archive import OfficialRecordsArchive
from econova.waste_ledger.config import WasteLedgerConfig, get_config
from econova.waste_ledger.daily_recorder import DailyEntryRecorder
from econova.waste_ledger.lifecycle import MonthlyLifecycleController
from econova.waste_ledger.matrix import LedgerMatrix
from econova.waste_ledger.models import (
    CategoryTotals,
    CertificationStatus,
    DailyWasteEntry,
    LedgerCell,
    MonthDetail,
    MonthlySummary,
    OfficialDeviationRecord,
    YearMatrix,
    YearSummary,
)
from econova.waste_ledger.provenance import ProvenanceTracker
from econova.waste_ledger.store import LedgerStore
from econova.waste_ledger.taxonomy import DEFAULT_TAXONOMY, MaterialTaxonomy
from econova.waste_ledger.validator import LedgerValidator

logger = logging.getLogger(__name__)


# ===================================================================
# WasteLedgerService facade
# ===================================================================

# Thread-safe singleton lock
_singleton_lock = threading.Lock()
_singleton_instance: Optional["WasteLedgerService"] = None


class WasteLedgerService:
    """Unified facade over the Waste Ledger SDK.

    Every operation takes the tenant explicitly. The store is injected;
    the service never chooses a backend.

    Attributes:
        store: LedgerStore shared by every component.
        config: WasteLedgerConfig instance.
        taxonomy: MaterialTaxonomy used for validation and matrix views.
        validator: LedgerValidator instance.
        provenance: ProvenanceTracker, or None when disabled.
        matrix: LedgerMatrix instance.
        recorder: DailyEntryRecorder instance.
        lifecycle: MonthlyLifecycleController instance.
        archive: OfficialRecordsArchive instance.

    Example:
        >>> from econova.waste_ledger.store import InMemoryLedgerStore
        >>> service = WasteLedgerService(InMemoryLedgerStore())
        >>> cell = service.upsert_cell("1", 2025, 3, "recycling", "Cartón", 150)
        >>> service.year_summary("1", 2025).grand_total
        150.0
    """

    def __init__(
        self,
        store: LedgerStore,
        config: Optional[WasteLedgerConfig] = None,
        taxonomy: Optional[MaterialTaxonomy] = None,
    ) -> None:
        """Initialize the Waste Ledger Service facade.

        Args:
            store: LedgerStore to persist into.
            config: Optional config. Uses global config if None.
            taxonomy: Optional material taxonomy. Uses the default if None.
        """
        self.store = store
        self.config = config or get_config()
        self.taxonomy = taxonomy or DEFAULT_TAXONOMY
        self.validator = LedgerValidator(config=self.config, taxonomy=self.taxonomy)
        self.provenance = ProvenanceTracker() if self.config.enable_provenance else None
        self.matrix = LedgerMatrix(store, self.validator, self.provenance)
        self.recorder = DailyEntryRecorder(store, self.validator, self.provenance)
        self.lifecycle = MonthlyLifecycleController(store, self.validator, self.provenance)
        self.archive = OfficialRecordsArchive(store, self.validator)
        self._started = False

        logger.info("WasteLedgerService facade created (store=%s)", store.backend)

    # ------------------------------------------------------------------
    # Matrix
    # ------------------------------------------------------------------

    def get_year_matrix(self, tenant_id: Any, year: Any) -> YearMatrix:
        return self.matrix.get_year_matrix(tenant_id, year)

    def upsert_cell(
        self,
        tenant_id: Any,
        year: Any,
        month: Any,
        category: Any,
        material: Any,
        kg: Any,
    ) -> LedgerCell:
        return self.matrix.upsert_cell(tenant_id, year, month, category, material, kg)

    def batch_upsert(self, tenant_id: Any, year: Any, edits: Sequence[Any]) -> List[LedgerCell]:
        return self.matrix.batch_upsert(tenant_id, year, edits)

    def row_total(self, tenant_id: Any, year: Any, category: Any, material: Any) -> float:
        return self.matrix.row_total(tenant_id, year, category, material)

    def category_month_total(self, tenant_id: Any, year: Any, month: Any, category: Any) -> float:
        return self.matrix.category_month_total(tenant_id, year, month, category)

    def grand_total(self, tenant_id: Any, year: Any) -> float:
        return self.matrix.grand_total(tenant_id, year)

    def year_summary(self, tenant_id: Any, year: Any) -> YearSummary:
        return self.matrix.year_summary(tenant_id, year)

    def certification_status(self, tenant_id: Any, year: Any) -> CertificationStatus:
        """Annual diversion index placed against the certification target."""
        summary = self.matrix.year_summary(tenant_id, year)
        return aggregator.certification_status(
            summary.deviation_percent, self.config.certification_target_pct,
        )

    # ------------------------------------------------------------------
    # Daily log
    # ------------------------------------------------------------------

    def record_daily_entry(
        self,
        tenant_id: Any,
        timestamp: Any,
        category: Any,
        material: Any,
        kg: Any,
        location: Any,
        notes: Any = None,
    ) -> DailyWasteEntry:
        return self.recorder.record_daily_entry(
            tenant_id, timestamp, category, material, kg, location, notes,
        )

    def daily_totals(self, tenant_id: Any, day: Any) -> CategoryTotals:
        return self.recorder.daily_totals(tenant_id, day)

    def monthly_entries(self, tenant_id: Any, year: Any, month: Any) -> List[DailyWasteEntry]:
        return self.recorder.monthly_entries(tenant_id, year, month)

    # ------------------------------------------------------------------
    # Monthly lifecycle
    # ------------------------------------------------------------------

    def get_monthly_summary(self, tenant_id: Any, year: Any, month: Any) -> MonthlySummary:
        return self.lifecycle.get_monthly_summary(tenant_id, year, month)

    def get_month_detail(self, tenant_id: Any, year: Any, month: Any) -> MonthDetail:
        return self.lifecycle.get_month_detail(tenant_id, year, month)

    def close_month(self, tenant_id: Any, year: Any, month: Any, closed_by: Any) -> MonthlySummary:
        return self.lifecycle.close(tenant_id, year, month, closed_by)

    def transfer_month(self, tenant_id: Any, year: Any, month: Any) -> OfficialDeviationRecord:
        return self.lifecycle.transfer(tenant_id, year, month)

    # ------------------------------------------------------------------
    # Official records
    # ------------------------------------------------------------------

    def get_official_record(self, tenant_id: Any, year: Any, month: Any) -> OfficialDeviationRecord:
        return self.archive.get_official_record(tenant_id, year, month)

    def list_official_records(self, tenant_id: Any, year: Any = None) -> List[OfficialDeviationRecord]:
        return self.archive.list_official_records(tenant_id, year)

    def verify_record(self, record: OfficialDeviationRecord) -> bool:
        return self.archive.verify_record(record)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        """Get waste ledger service metrics summary.

        Returns:
            Dictionary with service metric summaries.
        """
        return {
            "started": self._started,
            "store_backend": self.store.backend,
            "provenance_enabled": self.provenance is not None,
            "provenance_entries": (
                self.provenance.entry_count if self.provenance is not None else 0
            ),
            "certification_target_pct": self.config.certification_target_pct,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Start the waste ledger service.

        Safe to call multiple times.
        """
        if self._started:
            logger.debug("WasteLedgerService already started; skipping")
            return

        logger.info("WasteLedgerService starting up...")
        self._started = True
        logger.info("WasteLedgerService startup complete")

    def shutdown(self) -> None:
        """Shutdown the service. The store belongs to the caller and stays open."""
        if not self._started:
            return

        self._started = False
        logger.info("WasteLedgerService shut down")


# ===================================================================
# FastAPI integration
# ===================================================================


def configure_waste_ledger_service(
    app: Any,
    store: LedgerStore,
    config: Optional[WasteLedgerConfig] = None,
    taxonomy: Optional[MaterialTaxonomy] = None,
) -> WasteLedgerService:
    """Configure the Waste Ledger Service on a FastAPI application.

    Creates the WasteLedgerService, stores it in app.state, mounts
    the waste ledger API router, and starts the service.

    Args:
        app: FastAPI application instance.
        store: LedgerStore the service persists into.
        config: Optional waste ledger config.
        taxonomy: Optional material taxonomy.

    Returns:
        WasteLedgerService instance.
    """
    global _singleton_instance

    service = WasteLedgerService(store, config=config, taxonomy=taxonomy)

    # Store as singleton
    with _singleton_lock:
        _singleton_instance = service

    # Attach to app state
    app.state.waste_ledger_service = service

    app.include_router(get_router())
    logger.info("Waste ledger API router mounted")

    # Start service
    service.startup()

    logger.info("Waste ledger service configured on app")
    return service


def get_waste_ledger_service(app: Any = None) -> WasteLedgerService:
    """Get the WasteLedgerService from app state, or the last configured one.

    Args:
        app: Optional FastAPI application instance.

    Returns:
        WasteLedgerService instance.

    Raises:
        RuntimeError: If waste ledger service not configured.
    """
    if app is not None:
        service = getattr(app.state, "waste_ledger_service", None)
    else:
        service = _singleton_instance
    if service is None:
        raise RuntimeError(
            "Waste ledger service not configured. "
            "Call configure_waste_ledger_service(app, store) first."
        )
    return service


def _http_error(exc: LedgerException) -> HTTPException:
    """Map a ledger error to its HTTP status with the error body."""
    detail = exc.to_dict(include_traceback=False)
    if isinstance(exc, ValidationError):
        status_code = 422
    elif isinstance(exc, ConcurrencyConflict):
        status_code = 409
        detail["retryable"] = True
    elif isinstance(exc, StateTransitionError):
        status_code = 409
    elif isinstance(exc, NotFoundError):
        status_code = 404
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail=detail)


def get_router() -> APIRouter:
    """Get the waste ledger API router.

    Creates a FastAPI APIRouter for the Waste Ledger service at prefix
    ``/api/v1/waste-ledger``. The tenant is an explicit path segment on
    every ledger route.

    Returns:
        FastAPI APIRouter.
    """
    router = APIRouter(
        prefix="/api/v1/waste-ledger",
        tags=["waste-ledger"],
    )

    def _svc(request: Request) -> WasteLedgerService:
        """Get the service configured on the serving app."""
        return get_waste_ledger_service(request.app)

    # ------------------------------------------------------------------
    # 1. GET /tenants/{tenant_id}/years/{year}/matrix - Year matrix
    # ------------------------------------------------------------------
    @router.get("/tenants/{tenant_id}/years/{year}/matrix", response_model=YearMatrix)
    def get_year_matrix(request: Request, tenant_id: str, year: int) -> YearMatrix:
        """Read-only snapshot of the annual matrix."""
        try:
            return _svc(request).get_year_matrix(tenant_id, year)
        except LedgerException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # 2. PUT /tenants/{tenant_id}/years/{year}/matrix - Batch save
    # ------------------------------------------------------------------
    @router.put("/tenants/{tenant_id}/years/{year}/matrix")
    def put_batch_upsert(
        request: Request,
        tenant_id: str,
        year: int,
        body: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Apply every edit of a spreadsheet save, or none of them."""
        try:
            cells = _svc(request).batch_upsert(tenant_id, year, body.get("edits") or [])
        except LedgerException as exc:
            raise _http_error(exc) from exc
        return {
            "written": len(cells),
            "cells": [c.model_dump(mode="json") for c in cells],
        }

    # ------------------------------------------------------------------
    # 3. PUT /tenants/{tenant_id}/years/{year}/cells - Single cell
    # ------------------------------------------------------------------
    @router.put("/tenants/{tenant_id}/years/{year}/cells", response_model=LedgerCell)
    def put_upsert_cell(
        request: Request,
        tenant_id: str,
        year: int,
        body: Dict[str, Any],
    ) -> LedgerCell:
        """Set one matrix cell."""
        try:
            return _svc(request).upsert_cell(
                tenant_id, year,
                body.get("month"), body.get("category"),
                body.get("material"), body.get("kg"),
            )
        except LedgerException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # 4. GET /tenants/{tenant_id}/years/{year}/summary - Annual totals
    # ------------------------------------------------------------------
    @router.get("/tenants/{tenant_id}/years/{year}/summary", response_model=YearSummary)
    def get_year_summary(request: Request, tenant_id: str, year: int) -> YearSummary:
        """Annual, monthly and per-material totals."""
        try:
            return _svc(request).year_summary(tenant_id, year)
        except LedgerException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # 5. GET /tenants/{tenant_id}/years/{year}/certification
    # ------------------------------------------------------------------
    @router.get(
        "/tenants/{tenant_id}/years/{year}/certification",
        response_model=CertificationStatus,
    )
    def get_certification(
        request: Request, tenant_id: str, year: int,
    ) -> CertificationStatus:
        """Diversion index against the certification target."""
        try:
            return _svc(request).certification_status(tenant_id, year)
        except LedgerException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # 6. POST /tenants/{tenant_id}/entries - Record a daily entry
    # ------------------------------------------------------------------
    @router.post(
        "/tenants/{tenant_id}/entries",
        response_model=DailyWasteEntry,
        status_code=201,
    )
    def post_daily_entry(
        request: Request,
        tenant_id: str,
        body: Dict[str, Any],
    ) -> DailyWasteEntry:
        """Append one observation to the daily log."""
        try:
            return _svc(request).record_daily_entry(
                tenant_id,
                body.get("timestamp"),
                body.get("category"),
                body.get("material"),
                body.get("kg"),
                body.get("location"),
                body.get("notes"),
            )
        except LedgerException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # 7. GET /tenants/{tenant_id}/daily-totals?date= - Totals of one day
    # ------------------------------------------------------------------
    @router.get("/tenants/{tenant_id}/daily-totals", response_model=CategoryTotals)
    def get_daily_totals(
        request: Request,
        tenant_id: str,
        date: str = Query(..., description="Calendar date, YYYY-MM-DD"),
    ) -> CategoryTotals:
        """Per-category totals of one calendar day."""
        try:
            return _svc(request).daily_totals(tenant_id, date)
        except LedgerException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # 8. GET /tenants/{tenant_id}/months/{year}/{month} - Monthly summary
    # ------------------------------------------------------------------
    @router.get(
        "/tenants/{tenant_id}/months/{year}/{month}",
        response_model=MonthlySummary,
    )
    def get_monthly_summary(
        request: Request, tenant_id: str, year: int, month: int,
    ) -> MonthlySummary:
        """Summary of one month, created open on first read."""
        try:
            return _svc(request).get_monthly_summary(tenant_id, year, month)
        except LedgerException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # 9. GET /tenants/{tenant_id}/months/{year}/{month}/detail
    # ------------------------------------------------------------------
    @router.get(
        "/tenants/{tenant_id}/months/{year}/{month}/detail",
        response_model=MonthDetail,
    )
    def get_month_detail(
        request: Request, tenant_id: str, year: int, month: int,
    ) -> MonthDetail:
        """Summary, daily entries and whether the month can be closed."""
        try:
            return _svc(request).get_month_detail(tenant_id, year, month)
        except LedgerException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # 10. POST /tenants/{tenant_id}/months/{year}/{month}/close
    # ------------------------------------------------------------------
    @router.post(
        "/tenants/{tenant_id}/months/{year}/{month}/close",
        response_model=MonthlySummary,
    )
    def post_close_month(
        request: Request,
        tenant_id: str,
        year: int,
        month: int,
        body: Dict[str, Any],
    ) -> MonthlySummary:
        """Freeze the month's totals."""
        try:
            return _svc(request).close_month(tenant_id, year, month, body.get("closed_by"))
        except LedgerException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # 11. POST /tenants/{tenant_id}/months/{year}/{month}/transfer
    # ------------------------------------------------------------------
    @router.post(
        "/tenants/{tenant_id}/months/{year}/{month}/transfer",
        response_model=OfficialDeviationRecord,
    )
    def post_transfer_month(
        request: Request, tenant_id: str, year: int, month: int,
    ) -> OfficialDeviationRecord:
        """Write the official deviation record of a closed month."""
        try:
            return _svc(request).transfer_month(tenant_id, year, month)
        except LedgerException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # 12. GET /tenants/{tenant_id}/official-records - List records
    # ------------------------------------------------------------------
    @router.get(
        "/tenants/{tenant_id}/official-records",
        response_model=List[OfficialDeviationRecord],
    )
    def get_official_records(
        request: Request,
        tenant_id: str,
        year: Optional[int] = Query(None),
    ) -> List[OfficialDeviationRecord]:
        """Official records of a tenant, optionally for one year."""
        try:
            return _svc(request).list_official_records(tenant_id, year)
        except LedgerException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # 13. GET /tenants/{tenant_id}/official-records/{year}/{month}
    # ------------------------------------------------------------------
    @router.get(
        "/tenants/{tenant_id}/official-records/{year}/{month}",
        response_model=OfficialDeviationRecord,
    )
    def get_official_record(
        request: Request, tenant_id: str, year: int, month: int,
    ) -> OfficialDeviationRecord:
        """Official record of one month."""
        try:
            return _svc(request).get_official_record(tenant_id, year, month)
        except LedgerException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # 14. GET /health - Service status
    # ------------------------------------------------------------------
    @router.get("/health")
    def get_health(request: Request) -> Dict[str, Any]:
        """Service status and metric summary."""
        return _svc(request).get_metrics()

    return router


__all__ = [
    "WasteLedgerService",
    "configure_waste_ledger_service",
    "get_waste_ledger_service",
    "get_router",
]
