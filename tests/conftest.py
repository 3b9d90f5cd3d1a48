# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures for the waste ledger."""

import pytest

from econova.waste_ledger.config import WasteLedgerConfig, reset_config, set_config
from econova.waste_ledger.setup import WasteLedgerService
from econova.waste_ledger.sqlite_store import SQLiteLedgerStore
from econova.waste_ledger.store import InMemoryLedgerStore

TENANT = "1"
OTHER_TENANT = "2"


@pytest.fixture(autouse=True)
def _reset_ledger_config():
    """Isolate the config singleton between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config():
    """Default configuration installed as the singleton."""
    cfg = WasteLedgerConfig()
    set_config(cfg)
    return cfg


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Every store-backed test runs against both implementations."""
    if request.param == "memory":
        ledger_store = InMemoryLedgerStore()
    else:
        ledger_store = SQLiteLedgerStore(str(tmp_path / "ledger.db"))
    yield ledger_store
    ledger_store.close()


@pytest.fixture
def service(store, config):
    """Service facade over the parametrized store."""
    return WasteLedgerService(store, config=config)


@pytest.fixture
def record(service):
    """Record a daily entry with sensible defaults."""

    def _record(
        day="2025-01-10",
        category="recycling",
        material="PET",
        kg=5.0,
        tenant=TENANT,
        hour=9,
        location="Planta principal",
        notes=None,
    ):
        return service.record_daily_entry(
            tenant, f"{day}T{hour:02d}:00:00", category, material, kg, location, notes,
        )

    return _record
