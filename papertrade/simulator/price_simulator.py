"""Synthetic price simulation — biased random walk with bounded history.

Per tick, per instrument::

    trend  ~ U(-0.3, 0.7)          # slight upward bias
    walk   ~ U(-1, 1)
    change = (0.3 * trend + 0.7 * walk) * volatility(category)
    price  = price * (1 + change)

Prices are not floored. A step never moves a price by a whole unit of
itself, so prices stay positive but may drift arbitrarily close to zero.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator
from datetime import datetime, timedelta, timezone

import numpy as np

from papertrade.core.constants import (
    DEFAULT_HISTORY_CAP,
    DEFAULT_TICK_INTERVAL_SECONDS,
    TREND_HIGH,
    TREND_LOW,
    TREND_WEIGHT,
    VOLATILITY,
    WALK_WEIGHT,
)
from papertrade.core.logging import get_logger
from papertrade.core.types import Instrument, PricePoint

log = get_logger(__name__)


# ── Chart Series ────────────────────────────────────────────────


class ChartSeries:
    """Restartable, lazily evaluated sequence of :class:`PricePoint`.

    Raw tick timestamps are not retained, so an evenly spaced time axis
    is rebuilt from *anchor*: point ``i`` is stamped
    ``anchor + i * interval``.
    """

    def __init__(
        self,
        prices: Iterable[float],
        anchor: datetime,
        interval: timedelta,
    ) -> None:
        self._prices: tuple[float, ...] = tuple(prices)
        self._anchor = anchor
        self._interval = interval

    def __iter__(self) -> Iterator[PricePoint]:
        for index, price in enumerate(self._prices):
            yield PricePoint(
                timestamp=self._anchor + index * self._interval,
                price=price,
            )

    def __len__(self) -> int:
        return len(self._prices)

    def __bool__(self) -> bool:
        return bool(self._prices)

    @property
    def prices(self) -> tuple[float, ...]:
        return self._prices


# ── Price Simulator ─────────────────────────────────────────────


class PriceSimulator:
    """Advances every instrument's price on each :meth:`tick`.

    Args:
        tick_interval: Seconds between ticks; only used to space the
            synthetic chart time axis.
        history_cap: Maximum number of prices kept per instrument.
        rng: Random generator. Pass a seeded one for reproducible paths.
    """

    def __init__(
        self,
        tick_interval: float = DEFAULT_TICK_INTERVAL_SECONDS,
        history_cap: int = DEFAULT_HISTORY_CAP,
        rng: np.random.Generator | None = None,
    ) -> None:
        if history_cap < 1:
            msg = f"history_cap must be at least 1, got {history_cap}"
            raise ValueError(msg)
        self._tick_interval = timedelta(seconds=tick_interval)
        self._history_cap = history_cap
        self._rng: np.random.Generator = rng if rng is not None else np.random.default_rng()

        self._instruments: dict[str, Instrument] = {}
        self._prices: dict[str, float] = {}
        self._history: dict[str, deque[float]] = {}
        self._tick_count = 0

    # ── Setup ───────────────────────────────────────────────────

    def initialize(self, instruments: Iterable[Instrument]) -> None:
        """Seed the price table and history with each base price."""
        self._instruments = {inst.symbol: inst for inst in instruments}
        self._prices = {
            symbol: inst.base_price for symbol, inst in self._instruments.items()
        }
        self._history = {
            symbol: deque([inst.base_price], maxlen=self._history_cap)
            for symbol, inst in self._instruments.items()
        }
        self._tick_count = 0
        log.info(
            "price_simulator_initialized",
            instrument_count=len(self._instruments),
            history_cap=self._history_cap,
        )

    # ── Simulation ──────────────────────────────────────────────

    def tick(self) -> dict[str, float]:
        """Advance all prices by one step and return the new price table."""
        for symbol, inst in self._instruments.items():
            current = self._prices.get(symbol, inst.base_price)
            trend = self._rng.uniform(TREND_LOW, TREND_HIGH)
            walk = self._rng.uniform(-1.0, 1.0)
            change = (TREND_WEIGHT * trend + WALK_WEIGHT * walk) * VOLATILITY[inst.category]
            new_price = float(current * (1.0 + change))

            self._prices[symbol] = new_price
            history = self._history.get(symbol)
            if history is None:
                history = deque(maxlen=self._history_cap)
                self._history[symbol] = history
            history.append(new_price)

        self._tick_count += 1
        log.debug("prices_ticked", tick=self._tick_count)
        return dict(self._prices)

    # ── Queries ─────────────────────────────────────────────────

    def current_price(self, symbol: str) -> float:
        """Return the simulated price, else the base price, else 0.0."""
        price = self._prices.get(symbol)
        if price is not None:
            return price
        inst = self._instruments.get(symbol)
        return inst.base_price if inst else 0.0

    def history(self, symbol: str) -> ChartSeries:
        """Return the chart series for *symbol* (empty if unknown)."""
        return ChartSeries(
            self._history.get(symbol, ()),
            anchor=datetime.now(timezone.utc),
            interval=self._tick_interval,
        )

    def prices(self) -> dict[str, float]:
        return dict(self._prices)

    def price_change(self, symbol: str) -> float:
        """Current price minus base price."""
        inst = self._instruments.get(symbol)
        if inst is None:
            return 0.0
        return self.current_price(symbol) - inst.base_price

    def price_change_percent(self, symbol: str) -> float:
        inst = self._instruments.get(symbol)
        if inst is None:
            return 0.0
        return self.price_change(symbol) / inst.base_price * 100

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def tick_interval(self) -> float:
        return self._tick_interval.total_seconds()
