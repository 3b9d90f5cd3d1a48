# -*- coding: utf-8 -*-
"""
Prometheus Metrics - Econova Waste Accounting Ledger

Prometheus metrics for waste ledger monitoring.

Metrics:
    1.  econova_ledger_operations_total (Counter)
    2.  econova_ledger_operation_duration_seconds (Histogram)
    3.  econova_ledger_validation_failures_total (Counter)
    4.  econova_ledger_cells_written_total (Counter)
    5.  econova_ledger_batches_rejected_total (Counter)
    6.  econova_ledger_daily_entries_total (Counter)
    7.  econova_ledger_transitions_total (Counter)
    8.  econova_ledger_official_records_total (Counter)
    9.  econova_ledger_deviation_percent (Histogram)
    10. econova_ledger_store_transactions_total (Counter)
    11. econova_ledger_provenance_entries (Gauge)
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Operations count
ledger_operations_total = Counter(
    "econova_ledger_operations_total",
    "Total waste ledger operations performed",
    labelnames=["operation", "result"],
)

# 2. Operation duration
ledger_operation_duration_seconds = Histogram(
    "econova_ledger_operation_duration_seconds",
    "Waste ledger operation duration in seconds",
    labelnames=["operation"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0),
)

# 3. Validation failures by error type
ledger_validation_failures_total = Counter(
    "econova_ledger_validation_failures_total",
    "Total rejected write inputs by error type",
    labelnames=["error_type"],
)

# 4. Cells written
ledger_cells_written_total = Counter(
    "econova_ledger_cells_written_total",
    "Total matrix cells written",
)

# 5. Rejected batches
ledger_batches_rejected_total = Counter(
    "econova_ledger_batches_rejected_total",
    "Total batch saves rejected without applying any edit",
)

# 6. Daily entries
ledger_daily_entries_total = Counter(
    "econova_ledger_daily_entries_total",
    "Total daily waste entries recorded",
    labelnames=["category"],
)

# 7. Lifecycle transitions
ledger_transitions_total = Counter(
    "econova_ledger_transitions_total",
    "Monthly lifecycle transition attempts",
    labelnames=["transition", "result"],
)

# 8. Official records
ledger_official_records_total = Counter(
    "econova_ledger_official_records_total",
    "Total official deviation records written",
)

# 9. Certified deviation
ledger_deviation_percent = Histogram(
    "econova_ledger_deviation_percent",
    "Diversion index of transferred months",
    buckets=(10, 25, 50, 75, 80, 85, 90, 95, 100),
)

# 10. Store transactions
ledger_store_transactions_total = Counter(
    "econova_ledger_store_transactions_total",
    "Store transactions by backend and outcome",
    labelnames=["backend", "result"],
)

# 11. Provenance entries gauge
ledger_provenance_entries = Gauge(
    "econova_ledger_provenance_entries",
    "Current number of provenance chain entries",
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_operation(operation: str, result: str, duration_seconds: float) -> None:
    """Record a ledger operation.

    Args:
        operation: Operation name (batch_upsert, close, transfer, etc.).
        result: Operation result ("success", "rejected", "conflict", "error").
        duration_seconds: Operation duration in seconds.
    """
    ledger_operations_total.labels(operation=operation, result=result).inc()
    ledger_operation_duration_seconds.labels(operation=operation).observe(
        duration_seconds,
    )


def record_validation_failure(error_type: str) -> None:
    """Record a rejected input.

    Args:
        error_type: Exception class name of the rejection.
    """
    ledger_validation_failures_total.labels(error_type=error_type).inc()


def record_cells_written(count: int) -> None:
    """Record matrix cells committed."""
    if count > 0:
        ledger_cells_written_total.inc(count)


def record_batch_rejected() -> None:
    """Record a batch that was rejected as a whole."""
    ledger_batches_rejected_total.inc()


def record_daily_entry(category: str) -> None:
    """Record a daily entry append.

    Args:
        category: Waste category of the entry.
    """
    ledger_daily_entries_total.labels(category=category).inc()


def record_transition(transition: str, result: str) -> None:
    """Record a lifecycle transition attempt.

    Args:
        transition: "close" or "transfer".
        result: "success", "rejected", "conflict" or "noop".
    """
    ledger_transitions_total.labels(transition=transition, result=result).inc()


def record_official_record(deviation_percent: float) -> None:
    """Record a newly written official record and its diversion index."""
    ledger_official_records_total.inc()
    ledger_deviation_percent.observe(deviation_percent)


def record_store_transaction(backend: str, result: str) -> None:
    """Record a store transaction outcome.

    Args:
        backend: "memory" or "sqlite".
        result: "commit" or "rollback".
    """
    ledger_store_transactions_total.labels(backend=backend, result=result).inc()


def update_provenance_entries(count: int) -> None:
    """Set the provenance entries gauge."""
    ledger_provenance_entries.set(count)


__all__ = [
    "ledger_operations_total",
    "ledger_operation_duration_seconds",
    "ledger_validation_failures_total",
    "ledger_cells_written_total",
    "ledger_batches_rejected_total",
    "ledger_daily_entries_total",
    "ledger_transitions_total",
    "ledger_official_records_total",
    "ledger_deviation_percent",
    "ledger_store_transactions_total",
    "ledger_provenance_entries",
    "record_operation",
    "record_validation_failure",
    "record_cells_written",
    "record_batch_rejected",
    "record_daily_entry",
    "record_transition",
    "record_official_record",
    "record_store_transaction",
    "update_provenance_entries",
]
