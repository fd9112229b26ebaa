"""Shared fixtures and pytest compatibility helpers.

Scheduler tests are coroutines marked with ``@pytest.mark.asyncio``. When
``pytest-asyncio`` is not installed, :func:`pytest_pyfunc_call` runs them
on a fresh event loop instead.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any

import pytest

from papertrade.core.types import Instrument, InstrumentCategory
from papertrade.data.store import InMemoryStore
from papertrade.simulator.engine import TradingEngine


def pytest_configure(config: pytest.Config) -> None:
    """Register local markers used in the suite."""
    config.addinivalue_line("markers", "asyncio: mark test as asyncio-compatible")


def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run ``@pytest.mark.asyncio`` coroutine tests without external plugins."""
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    kwargs: dict[str, Any] = {
        arg: pyfuncitem.funcargs[arg]
        for arg in pyfuncitem._fixtureinfo.argnames
    }
    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(test_func(**kwargs))
    finally:
        loop.close()
    return True


# ── Fixtures ─────────────────────────────────────────────────────

BTC = Instrument("BTC/USD", "Bitcoin", InstrumentCategory.CRYPTO, 45_000.0)
ETH = Instrument("ETH/USD", "Ethereum", InstrumentCategory.CRYPTO, 2_500.0)
EURUSD = Instrument("EUR/USD", "Euro/Dollar", InstrumentCategory.FOREX, 1.08)
AAPL = Instrument("AAPL", "Apple Inc.", InstrumentCategory.STOCK, 185.0)
SPX = Instrument("S&P500", "S&P 500", InstrumentCategory.INDEX, 4_800.0)


@pytest.fixture
def instruments() -> list[Instrument]:
    return [BTC, ETH, EURUSD, AAPL, SPX]


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def engine(instruments: list[Instrument], store: InMemoryStore) -> TradingEngine:
    return TradingEngine(instruments, store, seed=7)


@pytest.fixture
def btc() -> Instrument:
    return BTC


@pytest.fixture
def eth() -> Instrument:
    return ETH


@pytest.fixture
def aapl() -> Instrument:
    return AAPL
