"""
Unit Tests for the Application Entry Point

Run with:
    pytest tests/unit/test_main.py -v
"""

from unittest.mock import AsyncMock

import pytest

import app.main as app_main
from core.config import ExchangeConfig, Settings
from storage import InMemoryMarketStore


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_invalid_configuration_exits_with_1(monkeypatch):
    monkeypatch.setattr(app_main, "settings", make_settings(exchanges=[]))

    assert app_main.main() == 1


def test_unknown_exchange_exits_with_1(monkeypatch):
    monkeypatch.setattr(app_main, "settings", make_settings(exchanges=[ExchangeConfig(name="nope")]))

    assert app_main.main() == 1


def test_store_failure_at_startup_exits_with_1(monkeypatch):
    monkeypatch.setattr(app_main, "settings", make_settings(exchanges=[ExchangeConfig(name="kraken")]))

    class UnreachableStore(InMemoryMarketStore):
        async def initialize(self):
            raise RuntimeError("Database unreachable after 10 attempts")

    monkeypatch.setattr(app_main, "build_store", lambda config: UnreachableStore())

    assert app_main.main() == 1


@pytest.mark.asyncio
async def test_run_shuts_everything_down(monkeypatch):
    config = make_settings(exchanges=[ExchangeConfig(name="kraken")])
    run_scheduler = AsyncMock(side_effect=RuntimeError("stop"))
    monkeypatch.setattr(app_main.CycleScheduler, "run", run_scheduler)
    shutdown_all = AsyncMock()
    monkeypatch.setattr(app_main.ExchangeManager, "shutdown_all", shutdown_all)
    monkeypatch.setattr(app_main.ExchangeManager, "initialize_all", AsyncMock())

    with pytest.raises(RuntimeError, match="stop"):
        await app_main.run(config)

    run_scheduler.assert_awaited_once()
    shutdown_all.assert_awaited_once()
