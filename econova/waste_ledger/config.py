# -*- coding: utf-8 -*-
"""
Waste Ledger Configuration - Econova Waste Accounting Ledger

Centralized configuration for the Waste Ledger SDK covering:
- Accepted reporting years
- Batch and free-text limits
- Provenance tracking toggle
- Certification target for the diversion index
- Durable store transaction timeout

All settings can be overridden via environment variables with the
``ECONOVA_LEDGER_`` prefix (e.g. ``ECONOVA_LEDGER_MAX_BATCH_EDITS``).

Store selection is deliberately absent: callers construct and pass the
store they want.

Example:
    >>> from econova.waste_ledger.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.max_batch_edits, cfg.certification_target_pct)
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "ECONOVA_LEDGER_"


# ---------------------------------------------------------------------------
# WasteLedgerConfig
# ---------------------------------------------------------------------------


@dataclass
class WasteLedgerConfig:
    """Complete configuration for the Econova Waste Ledger SDK.

    Attributes:
        min_year: Earliest accepted reporting year.
        max_year: Latest accepted reporting year.
        max_batch_edits: Maximum number of cell edits in one batch.
        max_notes_length: Maximum length of a daily entry note.
        enable_provenance: Whether ledger writes are chained into the
            provenance audit trail.
        certification_target_pct: Diversion percentage that counts as
            certified (TRUE Zero Waste requires 90).
        sqlite_timeout_seconds: Busy timeout for durable store transactions.
    """

    # -- Periods -------------------------------------------------------------
    min_year: int = 2000
    max_year: int = 2100

    # -- Input limits --------------------------------------------------------
    max_batch_edits: int = 5000
    max_notes_length: int = 2000

    # -- Audit ---------------------------------------------------------------
    enable_provenance: bool = True

    # -- Certification -------------------------------------------------------
    certification_target_pct: float = 90.0

    # -- Persistence ---------------------------------------------------------
    sqlite_timeout_seconds: float = 5.0

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> WasteLedgerConfig:
        """Build a WasteLedgerConfig from environment variables.

        Every field can be overridden via ``ECONOVA_LEDGER_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).

        Returns:
            Populated WasteLedgerConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _float(name: str, default: float) -> float:
            val = _env(name)
            if val is None:
                return default
            try:
                return float(val)
            except ValueError:
                logger.warning(
                    "Invalid float for %s%s=%s, using default %.1f",
                    prefix, name, val, default,
                )
                return default

        config = cls(
            min_year=_int("MIN_YEAR", cls.min_year),
            max_year=_int("MAX_YEAR", cls.max_year),
            max_batch_edits=_int("MAX_BATCH_EDITS", cls.max_batch_edits),
            max_notes_length=_int("MAX_NOTES_LENGTH", cls.max_notes_length),
            enable_provenance=_bool("ENABLE_PROVENANCE", cls.enable_provenance),
            certification_target_pct=_float(
                "CERTIFICATION_TARGET_PCT", cls.certification_target_pct,
            ),
            sqlite_timeout_seconds=_float(
                "SQLITE_TIMEOUT_SECONDS", cls.sqlite_timeout_seconds,
            ),
        )

        logger.info(
            "WasteLedgerConfig loaded: years=%d-%d, max_batch=%d, "
            "provenance=%s, target=%.1f%%",
            config.min_year,
            config.max_year,
            config.max_batch_edits,
            config.enable_provenance,
            config.certification_target_pct,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[WasteLedgerConfig] = None
_config_lock = threading.Lock()


def get_config() -> WasteLedgerConfig:
    """Return the singleton WasteLedgerConfig, creating from env if needed."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = WasteLedgerConfig.from_env()
    return _config_instance


def set_config(config: WasteLedgerConfig) -> None:
    """Replace the singleton WasteLedgerConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("WasteLedgerConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "WasteLedgerConfig",
    "get_config",
    "set_config",
    "reset_config",
]
