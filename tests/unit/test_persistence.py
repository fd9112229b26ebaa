"""Tests for the persistence gateway."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from papertrade.core.exceptions import PersistenceError
from papertrade.core.interfaces import BaseKeyValueStore
from papertrade.core.types import Instrument, InstrumentCategory, Position
from papertrade.data.store import InMemoryStore
from papertrade.simulator.persistence import PersistenceGateway


class _FailingStore(BaseKeyValueStore):
    def get(self, key: str) -> bytes | None:
        raise PersistenceError("backend down")

    def set(self, key: str, value: bytes) -> None:
        raise PersistenceError("backend down")


def _position(symbol: str, amount: float, avg_price: float) -> Position:
    return Position.open(
        Instrument(symbol, f"{symbol} name", InstrumentCategory.STOCK, avg_price),
        amount,
        avg_price,
    )


class TestSave:
    def test_writes_three_entries(self) -> None:
        store = InMemoryStore()
        gateway = PersistenceGateway(store)

        assert gateway.save(5_500.0, 10_000.0, [_position("AAPL", 2.0, 185.0)])

        assert gateway.load_number("balance") == 5_500.0
        assert gateway.load_number("initialCapital") == 10_000.0
        records = json.loads(store.get("positions") or b"")
        assert records == [
            {
                "symbol": "AAPL",
                "name": "AAPL name",
                "category": "Stock",
                "amount": 2.0,
                "avg_price": 185.0,
            },
        ]

    def test_entries_are_written_in_one_batch(self) -> None:
        store = MagicMock(spec=BaseKeyValueStore)

        assert PersistenceGateway(store).save(5_500.0, 10_000.0, [])

        store.set_many.assert_called_once()
        store.set.assert_not_called()
        (items,), _ = store.set_many.call_args
        assert set(items) == {"balance", "initialCapital", "positions"}
        assert items["positions"] == b"[]"

    def test_save_failure_is_swallowed(self) -> None:
        gateway = PersistenceGateway(_FailingStore())
        assert gateway.save(1.0, 1.0, []) is False


class TestLoad:
    def test_round_trip(self) -> None:
        store = InMemoryStore()
        positions = [_position("AAPL", 2.5, 180.25), _position("TSLA", 0.75, 240.0)]
        PersistenceGateway(store).save(1_234.5, 20_000.0, positions)

        state = PersistenceGateway(store).load()

        assert state.cash == 1_234.5
        assert state.initial_capital == 20_000.0
        assert list(state.positions) == ["AAPL", "TSLA"]
        for original in positions:
            loaded = state.positions[original.symbol]
            assert loaded.amount == pytest.approx(original.amount)
            assert loaded.avg_price == pytest.approx(original.avg_price)
            assert loaded.name == original.name
            assert loaded.category is original.category

    def test_empty_store_uses_defaults(self) -> None:
        state = PersistenceGateway(InMemoryStore()).load(10_000.0)
        assert state.cash == 10_000.0
        assert state.initial_capital == 10_000.0
        assert state.positions == {}

    def test_zero_balance_treated_as_absent(self) -> None:
        store = InMemoryStore({"balance": b"0.0", "initialCapital": b"5000.0"})
        state = PersistenceGateway(store).load(10_000.0)
        assert state.cash == 10_000.0
        assert state.initial_capital == 5_000.0

    @pytest.mark.parametrize("raw", [b"not-a-number", b"nan", b"inf", b"-inf", b"\xff"])
    def test_malformed_number_treated_as_absent(self, raw: bytes) -> None:
        store = InMemoryStore({"balance": raw})
        assert PersistenceGateway(store).load_number("balance") == 0.0

    def test_non_finite_balance_uses_default(self) -> None:
        store = InMemoryStore({"balance": b"nan", "initialCapital": b"5000.0"})
        state = PersistenceGateway(store).load(10_000.0)
        assert state.cash == 10_000.0
        assert state.initial_capital == 5_000.0

    @pytest.mark.parametrize(
        "blob",
        [
            b"{not json",
            b'{"symbol": "AAPL"}',
            b'[{"symbol": "AAPL", "name": "Apple", "category": "Bond", "amount": 1, "avg_price": 1}]',
            b'[{"symbol": "AAPL", "name": "Apple", "category": "Stock", "amount": -1, "avg_price": 1}]',
        ],
    )
    def test_malformed_positions_ignored(self, blob: bytes) -> None:
        store = InMemoryStore({"balance": b"100.0", "positions": blob})
        state = PersistenceGateway(store).load()
        assert state.cash == 100.0
        assert state.positions == {}

    def test_duplicate_records_are_merged(self) -> None:
        blob = json.dumps([
            {"symbol": "AAPL", "name": "Apple", "category": "Stock", "amount": 1, "avg_price": 100},
            {"symbol": "AAPL", "name": "Apple", "category": "Stock", "amount": 3, "avg_price": 200},
        ]).encode()
        state = PersistenceGateway(InMemoryStore({"positions": blob})).load()

        assert len(state.positions) == 1
        assert state.positions["AAPL"].amount == 4
        assert state.positions["AAPL"].avg_price == pytest.approx(175.0)

    def test_backend_failure_falls_back_to_defaults(self) -> None:
        state = PersistenceGateway(_FailingStore()).load(7_000.0)
        assert state.cash == 7_000.0
        assert state.positions == {}
