"""Econova Custom Exception Hierarchy.

This module provides the exception hierarchy shared by the Econova waste
accounting ledger, with rich error context for debugging, monitoring, and
the HTTP/UI boundary.

Exception Hierarchy:
    EconovaException (base)
    └── LedgerException
        ├── ValidationError
        │   ├── InvalidMaterialError
        │   ├── InvalidWeightError
        │   ├── InvalidMonthError
        │   ├── InvalidYearError
        │   └── InvalidTenantError
        ├── StateTransitionError
        ├── ConcurrencyConflict
        ├── NotFoundError
        └── StoreError

All exceptions include rich context:
- error_code: Unique error identifier
- tenant_id: Tenant the failing operation was scoped to (optional)
- context: Dictionary with error-specific details
- timestamp: When the error occurred
- traceback: Full stack trace for debugging

Example:
    >>> from econova.exceptions import InvalidMaterialError
    >>> raise InvalidMaterialError(
    ...     message="Material 'Madera' is not valid for category 'recycling'",
    ...     tenant_id="1",
    ...     category="recycling",
    ...     material="Madera",
    ... )
"""

import json
import re
import traceback as tb
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class EconovaException(Exception):
    """Base exception for all Econova errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "ECO_LEDGER_NOT_FOUND_ERROR")
        tenant_id: Tenant scope of the failing operation (optional)
        context: Dictionary with error-specific details
        timestamp: When the error occurred
        traceback_str: Full stack trace for debugging
    """

    ERROR_PREFIX = "ECO"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        tenant_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize Econova exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            tenant_id: Tenant scope of the failing operation
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.tenant_id = tenant_id
        self.context = context or {}
        self.timestamp = datetime.now()
        self.traceback_str = "".join(tb.format_stack()[:-1])

    def _generate_error_code(self) -> str:
        """Generate error code based on exception class.

        Returns:
            Error code like "ECO_LEDGER_INVALID_WEIGHT_ERROR"
        """
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self, include_traceback: bool = True) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Args:
            include_traceback: Whether to include the captured stack

        Returns:
            Dictionary with all error details
        """
        data = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "tenant_id": self.tenant_id,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }
        if include_traceback:
            data["traceback"] = self.traceback_str
        return data

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        """String representation with error code and message."""
        parts = [f"[{self.error_code}]"]
        if self.tenant_id:
            parts.append(f"Tenant: {self.tenant_id}")
        parts.append(self.message)
        return " - ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"tenant_id='{self.tenant_id}')"
        )


# ==============================================================================
# Ledger Exceptions
# ==============================================================================

class LedgerException(EconovaException):
    """Base exception for waste ledger errors."""
    ERROR_PREFIX = "ECO_LEDGER"


class ValidationError(LedgerException):
    """Write input failed validation.

    Single-field errors use one of the subclasses below. A rejected batch
    raises this class directly with one ``failures`` item per bad edit.

    Example:
        >>> raise ValidationError(
        ...     message="Batch rejected: 2 of 5 edits are invalid",
        ...     tenant_id="1",
        ...     failures=[
        ...         {"index": 1, "error_type": "InvalidWeightError", "message": "..."},
        ...         {"index": 4, "error_type": "InvalidMonthError", "message": "..."},
        ...     ],
        ... )
    """

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        failures: Optional[List[Dict[str, Any]]] = None,
        field: Optional[str] = None,
    ):
        """Initialize validation error.

        Args:
            message: Error message
            tenant_id: Tenant scope
            context: Error context
            failures: Per-item failure reports (batch validation)
            field: Name of the offending input field
        """
        context = context or {}
        self.failures = list(failures or [])
        if self.failures:
            context["failures"] = self.failures
        if field:
            context["field"] = field
        super().__init__(message, tenant_id=tenant_id, context=context)


class InvalidMaterialError(ValidationError):
    """Category is unknown or the material is not in its taxonomy."""

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        category: Optional[str] = None,
        material: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if category is not None:
            context["category"] = category
        if material is not None:
            context["material"] = material
        super().__init__(message, tenant_id=tenant_id, context=context, field="material")


class InvalidWeightError(ValidationError):
    """Weight is not a finite number in the allowed range."""

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        kg: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if kg is not None:
            context["kg"] = repr(kg)
        super().__init__(message, tenant_id=tenant_id, context=context, field="kg")


class InvalidMonthError(ValidationError):
    """Month is not an integer in [1, 12]."""

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        month: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if month is not None:
            context["month"] = repr(month)
        super().__init__(message, tenant_id=tenant_id, context=context, field="month")


class InvalidYearError(ValidationError):
    """Year is not an integer within the configured range."""

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        year: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if year is not None:
            context["year"] = repr(year)
        super().__init__(message, tenant_id=tenant_id, context=context, field="year")


class InvalidTenantError(ValidationError):
    """Tenant identifier is missing or malformed."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context=context, field="tenant_id")


class TransitionReason(str, Enum):
    """Why a monthly lifecycle transition was refused."""
    ALREADY_CLOSED = "AlreadyClosed"
    NO_ENTRIES = "NoEntries"
    NOT_CLOSED = "NotClosed"
    ALREADY_TRANSFERRED = "AlreadyTransferred"


class StateTransitionError(LedgerException):
    """Illegal monthly lifecycle transition.

    Example:
        >>> raise StateTransitionError(
        ...     message="Month 2025-01 has no daily entries",
        ...     reason=TransitionReason.NO_ENTRIES,
        ...     tenant_id="1",
        ...     period=(2025, 1),
        ... )
    """

    def __init__(
        self,
        message: str,
        reason: TransitionReason,
        tenant_id: Optional[str] = None,
        period: Optional[tuple] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        self.reason = TransitionReason(reason)
        context["reason"] = self.reason.value
        if period is not None:
            context["year"], context["month"] = period
        super().__init__(message, tenant_id=tenant_id, context=context)


class ConcurrencyConflict(LedgerException):
    """Compare-and-swap precondition failed at commit time.

    The caller should re-read the summary and retry.
    """

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        operation: Optional[str] = None,
        expected_status: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if operation:
            context["operation"] = operation
        if expected_status:
            context["expected_status"] = expected_status
        super().__init__(message, tenant_id=tenant_id, context=context)


class NotFoundError(LedgerException):
    """Requested ledger record does not exist."""

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        resource: Optional[str] = None,
        key: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if resource:
            context["resource"] = resource
        if key:
            context["key"] = key
        super().__init__(message, tenant_id=tenant_id, context=context)


class StoreError(LedgerException):
    """Persistence backend failed.

    Example:
        >>> raise StoreError(
        ...     message="Failed to commit batch",
        ...     operation="apply_cells",
        ...     cause=sqlite3.OperationalError("database is locked"),
        ... )
    """

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if operation:
            context["operation"] = operation
        if cause:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
        super().__init__(message, tenant_id=tenant_id, context=context)


# ==============================================================================
# Exception Utilities
# ==============================================================================

def format_exception_chain(exc: Exception) -> str:
    """Format exception chain for logging/display.

    Args:
        exc: Exception to format

    Returns:
        Formatted string with full exception chain
    """
    lines = []
    current = exc

    while current is not None:
        if isinstance(current, EconovaException):
            lines.append(str(current))
            lines.append(f"  Context: {current.context}")
        else:
            lines.append(f"{type(current).__name__}: {current}")
        current = getattr(current, "__cause__", None)

    return "\n".join(lines)


def is_retriable(exc: Exception) -> bool:
    """Check if the failed operation may be retried as-is.

    Args:
        exc: Exception to check

    Returns:
        True if operation should be retried
    """
    # Conflicts resolve on re-read; everything else needs different input
    if isinstance(exc, ConcurrencyConflict):
        return True
    if isinstance(exc, StoreError):
        return "locked" in str(exc.context.get("cause", "")).lower()
    return False
