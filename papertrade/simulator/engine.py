"""Trading engine — composition root for simulation, ledger and persistence.

The engine owns the price table, the price history and the portfolio.
Every read and every mutation runs under one re-entrant lock, so a tick
can never interleave with a buy, sell, close or reset.

Usage::

    engine = TradingEngine.from_settings()
    await engine.start()              # recurring tick every 2 seconds
    engine.buy("BTC/USD", 0.1)
    engine.snapshot().portfolio_value
    await engine.stop()

Tests drive the simulation step by step with :meth:`tick` instead.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

import numpy as np

from config.settings import Settings, get_settings
from papertrade.core.constants import (
    DEFAULT_HISTORY_CAP,
    DEFAULT_INITIAL_CAPITAL,
    DEFAULT_TICK_INTERVAL_SECONDS,
)
from papertrade.core.exceptions import InvalidCapitalError
from papertrade.core.interfaces import BaseKeyValueStore
from papertrade.core.logging import get_logger, setup_logging
from papertrade.core.types import (
    Instrument,
    PortfolioSnapshot,
    Position,
    TradeResult,
    TradeStatus,
)
from papertrade.data.store import InMemoryStore, build_store
from papertrade.simulator.catalog import InstrumentCatalog, load_catalog
from papertrade.simulator.ledger import PortfolioLedger, is_valid_amount
from papertrade.simulator.persistence import PersistenceGateway
from papertrade.simulator.price_simulator import ChartSeries, PriceSimulator
from papertrade.simulator.scheduler import TickScheduler

log = get_logger(__name__)


class TradingEngine:
    """Unified read/command surface over the simulator and the ledger.

    Args:
        instruments: Tradable instruments (catalog order is preserved).
        store: Key-value backend for persistence. Defaults to an
            in-memory store.
        tick_interval: Seconds between scheduled ticks.
        history_cap: Maximum chart points kept per instrument.
        default_capital: Capital used when nothing was persisted.
        seed: Seed for the price random walk; ``None`` for fresh entropy.
    """

    def __init__(
        self,
        instruments: Iterable[Instrument] | InstrumentCatalog,
        store: BaseKeyValueStore | None = None,
        *,
        tick_interval: float = DEFAULT_TICK_INTERVAL_SECONDS,
        history_cap: int = DEFAULT_HISTORY_CAP,
        default_capital: float = DEFAULT_INITIAL_CAPITAL,
        seed: int | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._version = 0
        self._catalog = (
            instruments
            if isinstance(instruments, InstrumentCatalog)
            else InstrumentCatalog(instruments)
        )

        self._simulator = PriceSimulator(
            tick_interval=tick_interval,
            history_cap=history_cap,
            rng=np.random.default_rng(seed),
        )
        self._simulator.initialize(self._catalog)

        self._persistence = PersistenceGateway(store if store is not None else InMemoryStore())
        self._ledger = PortfolioLedger(default_capital, persistence=self._persistence)
        self._ledger.restore(self._persistence.load(default_capital))

        self._scheduler = TickScheduler(self.tick, tick_interval)

        log.info(
            "engine_initialized",
            instrument_count=len(self._catalog),
            cash=round(self._ledger.cash, 4),
            initial_capital=self._ledger.initial_capital,
            n_positions=len(self._ledger.positions()),
            tick_interval=tick_interval,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        store: BaseKeyValueStore | None = None,
    ) -> TradingEngine:
        """Build an engine from :class:`Settings` (catalog, store, tuning)."""
        settings = settings or get_settings()
        setup_logging(settings.log_level, json_output=settings.log_json)
        return cls(
            load_catalog(settings.instruments_path),
            store if store is not None else build_store(settings),
            tick_interval=settings.tick_interval_seconds,
            history_cap=settings.history_cap,
            default_capital=settings.default_initial_capital,
            seed=settings.random_seed,
        )

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        """Start the recurring price tick on the running event loop."""
        await self._scheduler.start()

    async def stop(self) -> None:
        """Stop the recurring tick and wait for the loop to exit."""
        await self._scheduler.stop()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def shutdown(self) -> None:
        """Release the persistence backend."""
        self._persistence.close()

    def tick(self) -> dict[str, float]:
        """Advance the simulation by one step; returns the new price table."""
        with self._lock:
            prices = self._simulator.tick()
            self._version += 1
            return prices

    # ── Market Reads ────────────────────────────────────────────

    @property
    def instruments(self) -> list[Instrument]:
        return list(self._catalog)

    def get_instrument(self, symbol: str) -> Instrument:
        """Raises :class:`UnknownInstrumentError` for unknown symbols."""
        return self._catalog.get(symbol)

    def search_instruments(self, text: str) -> list[Instrument]:
        return self._catalog.search(text)

    def get_price(self, symbol: str) -> float:
        with self._lock:
            return self._simulator.current_price(symbol)

    def get_prices(self) -> dict[str, float]:
        with self._lock:
            return self._simulator.prices()

    def get_chart_data(self, symbol: str) -> ChartSeries:
        with self._lock:
            return self._simulator.history(symbol)

    def get_price_change(self, symbol: str) -> float:
        with self._lock:
            return self._simulator.price_change(symbol)

    def get_price_change_percent(self, symbol: str) -> float:
        with self._lock:
            return self._simulator.price_change_percent(symbol)

    # ── Portfolio Reads ─────────────────────────────────────────

    @property
    def cash(self) -> float:
        with self._lock:
            return self._ledger.cash

    @property
    def initial_capital(self) -> float:
        with self._lock:
            return self._ledger.initial_capital

    @property
    def positions(self) -> tuple[Position, ...]:
        with self._lock:
            return self._ledger.positions()

    def get_position(self, symbol: str) -> Position | None:
        with self._lock:
            return self._ledger.get_position(symbol)

    def get_position_pnl(self, symbol: str) -> float:
        """Unrealized P&L of the position in *symbol* (0.0 if not held)."""
        with self._lock:
            position = self._ledger.get_position(symbol)
            if position is None:
                return 0.0
            return position.unrealized_pnl(self._simulator.current_price(symbol))

    def get_portfolio_value(self) -> float:
        with self._lock:
            return self._ledger.portfolio_value(self._simulator.current_price)

    def get_pnl(self) -> float:
        with self._lock:
            return self._ledger.unrealized_pnl(self._simulator.current_price)

    def get_pnl_percent(self) -> float:
        with self._lock:
            return self._ledger.pnl_percent(self._simulator.current_price)

    def snapshot(self) -> PortfolioSnapshot:
        """Consistent point-in-time view for the display layer."""
        with self._lock:
            lookup = self._simulator.current_price
            return PortfolioSnapshot(
                cash=self._ledger.cash,
                initial_capital=self._ledger.initial_capital,
                portfolio_value=self._ledger.portfolio_value(lookup),
                pnl=self._ledger.unrealized_pnl(lookup),
                pnl_percent=self._ledger.pnl_percent(lookup),
                positions=self._ledger.positions(),
                prices=self._simulator.prices(),
                version=self._version,
            )

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    # ── Commands ────────────────────────────────────────────────

    def buy(self, instrument: Instrument | str, amount: float) -> TradeResult:
        """Market-buy *amount* units at the current simulated price."""
        inst = self._resolve(instrument)
        with self._lock:
            if not is_valid_amount(amount):
                return self._invalid_amount(inst, amount)
            result = self._ledger.buy(inst, amount, self._simulator.current_price)
            if result.ok:
                self._version += 1
            return result

    def sell(self, instrument: Instrument | str, amount: float) -> TradeResult:
        """Market-sell *amount* units at the current simulated price."""
        inst = self._resolve(instrument)
        with self._lock:
            if not is_valid_amount(amount):
                return self._invalid_amount(inst, amount)
            result = self._ledger.sell(inst, amount, self._simulator.current_price)
            if result.ok:
                self._version += 1
            return result

    def close(self, position_id: str) -> TradeResult | None:
        """Liquidate a position by id; ``None`` if it is not open."""
        with self._lock:
            result = self._ledger.close(position_id, self._simulator.current_price)
            if result is not None and result.ok:
                self._version += 1
            return result

    def reset(self, capital: float) -> None:
        """Clear all positions and restart with *capital* in cash.

        Raises:
            InvalidCapitalError: If *capital* is not a positive number.
        """
        if not is_valid_amount(capital):
            msg = f"Reset capital must be positive, got {capital}"
            raise InvalidCapitalError(msg, context={"capital": capital})
        with self._lock:
            self._ledger.reset(capital)
            self._version += 1

    # ── Internal ────────────────────────────────────────────────

    def _resolve(self, instrument: Instrument | str) -> Instrument:
        symbol = instrument.symbol if isinstance(instrument, Instrument) else instrument
        return self._catalog.get(symbol)

    def _invalid_amount(self, instrument: Instrument, amount: float) -> TradeResult:
        log.info("trade_rejected_invalid_amount", symbol=instrument.symbol, amount=amount)
        return TradeResult(
            status=TradeStatus.INVALID_AMOUNT,
            symbol=instrument.symbol,
            amount=amount,
            price=self._simulator.current_price(instrument.symbol),
            cash_after=self._ledger.cash,
            position=self._ledger.get_position(instrument.symbol),
        )
