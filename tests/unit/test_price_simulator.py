"""Tests for the synthetic price simulator."""

from __future__ import annotations

from datetime import timedelta

import numpy as np
import pytest

from papertrade.core.constants import VOLATILITY
from papertrade.core.types import Instrument, InstrumentCategory
from papertrade.simulator.price_simulator import PriceSimulator


@pytest.fixture
def simulator(instruments: list[Instrument]) -> PriceSimulator:
    sim = PriceSimulator(tick_interval=2.0, history_cap=50, rng=np.random.default_rng(42))
    sim.initialize(instruments)
    return sim


class TestInitialize:
    def test_prices_start_at_base(
        self, simulator: PriceSimulator, instruments: list[Instrument],
    ) -> None:
        for inst in instruments:
            assert simulator.current_price(inst.symbol) == inst.base_price
            assert simulator.history(inst.symbol).prices == (inst.base_price,)
        assert set(simulator.prices()) == {inst.symbol for inst in instruments}

    def test_unknown_symbol_price_is_zero(self, simulator: PriceSimulator) -> None:
        assert simulator.current_price("DOGE/USD") == 0.0
        assert len(simulator.history("DOGE/USD")) == 0

    def test_invalid_history_cap(self) -> None:
        with pytest.raises(ValueError, match="history_cap"):
            PriceSimulator(history_cap=0)


class TestTick:
    def test_tick_moves_every_price_within_bounds(
        self, simulator: PriceSimulator, instruments: list[Instrument],
    ) -> None:
        before = simulator.prices()
        after = simulator.tick()

        for inst in instruments:
            change = after[inst.symbol] / before[inst.symbol] - 1.0
            # |0.3 * trend + 0.7 * walk| <= 0.3 * 0.7 + 0.7 * 1.0
            assert abs(change) <= 0.91 * VOLATILITY[inst.category] + 1e-12
        assert simulator.tick_count == 1

    def test_history_is_capped(self, simulator: PriceSimulator) -> None:
        for _ in range(120):
            simulator.tick()
        history = simulator.history("BTC/USD")
        assert len(history) == 50
        assert history.prices[-1] == simulator.current_price("BTC/USD")

    def test_history_evicts_oldest_first(self, instruments: list[Instrument]) -> None:
        sim = PriceSimulator(history_cap=3, rng=np.random.default_rng(1))
        sim.initialize(instruments)
        seen = [sim.current_price("AAPL")]
        for _ in range(5):
            seen.append(sim.tick()["AAPL"])
        assert sim.history("AAPL").prices == tuple(seen[-3:])

    def test_seeded_runs_are_reproducible(self, instruments: list[Instrument]) -> None:
        runs = []
        for _ in range(2):
            sim = PriceSimulator(rng=np.random.default_rng(99))
            sim.initialize(instruments)
            for _ in range(10):
                sim.tick()
            runs.append(sim.prices())
        assert runs[0] == runs[1]

    def test_walk_is_upward_biased_on_average(self) -> None:
        inst = Instrument("X", "X", InstrumentCategory.CRYPTO, 100.0)
        sim = PriceSimulator(rng=np.random.default_rng(0))
        sim.initialize([inst])
        for _ in range(2_000):
            sim.tick()
        # Expected drift per tick is 0.3 * 0.2 * 0.003 = +0.018 %.
        assert sim.current_price("X") > 100.0


class TestChartSeries:
    def test_timestamps_are_evenly_spaced(self, simulator: PriceSimulator) -> None:
        for _ in range(4):
            simulator.tick()
        points = list(simulator.history("ETH/USD"))

        assert len(points) == 5
        for prev, nxt in zip(points, points[1:]):
            assert nxt.timestamp - prev.timestamp == timedelta(seconds=2)
        assert points[0].timestamp.tzinfo is not None

    def test_series_is_restartable(self, simulator: PriceSimulator) -> None:
        simulator.tick()
        series = simulator.history("BTC/USD")
        assert list(series) == list(series)

    def test_series_is_frozen_copy(self, simulator: PriceSimulator) -> None:
        series = simulator.history("BTC/USD")
        simulator.tick()
        assert len(series) == 1
        assert len(simulator.history("BTC/USD")) == 2


class TestPriceChange:
    def test_change_relative_to_base(self, simulator: PriceSimulator) -> None:
        assert simulator.price_change("AAPL") == 0.0
        simulator.tick()
        change = simulator.price_change("AAPL")
        assert change == pytest.approx(simulator.current_price("AAPL") - 185.0)
        assert simulator.price_change_percent("AAPL") == pytest.approx(change / 185.0 * 100)

    def test_unknown_symbol_change_is_zero(self, simulator: PriceSimulator) -> None:
        assert simulator.price_change("NOPE") == 0.0
        assert simulator.price_change_percent("NOPE") == 0.0
