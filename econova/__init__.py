"""
Econova: Waste Accounting Infrastructure
========================================

Econova tracks tenant waste generation by material, month and year and
produces the diversion figures used for Zero Waste certification.

The accounting core lives in ``econova.waste_ledger``.
"""

__version__ = "1.0.0"

__author__ = "Econova Team"
__license__ = "MIT"

from econova.exceptions import (
    EconovaException,
    LedgerException,
    ValidationError,
    StateTransitionError,
    ConcurrencyConflict,
    NotFoundError,
)

__all__ = [
    "__version__",
    "EconovaException",
    "LedgerException",
    "ValidationError",
    "StateTransitionError",
    "ConcurrencyConflict",
    "NotFoundError",
]
