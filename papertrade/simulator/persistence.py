"""Portfolio persistence over an opaque key-value store.

Three logical entries are written together on every save::

    balance         -> decimal text, e.g. b"5500.0"
    initialCapital  -> decimal text
    positions       -> JSON array of {symbol, name, category, amount, avg_price}

Position ids are not persisted; every loaded position gets a fresh id.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from papertrade.core.constants import (
    DEFAULT_INITIAL_CAPITAL,
    STORAGE_KEY_BALANCE,
    STORAGE_KEY_INITIAL_CAPITAL,
    STORAGE_KEY_POSITIONS,
)
from papertrade.core.interfaces import BaseKeyValueStore
from papertrade.core.logging import get_logger
from papertrade.core.types import InstrumentCategory, PortfolioState, Position

log = get_logger(__name__)


class PositionRecord(BaseModel):
    """Serialized form of a :class:`Position`."""

    model_config = ConfigDict(extra="ignore")

    symbol: str = Field(..., min_length=1)
    name: str
    category: InstrumentCategory
    amount: float = Field(..., gt=0)
    avg_price: float = Field(..., gt=0)

    @classmethod
    def from_position(cls, position: Position) -> PositionRecord:
        return cls(
            symbol=position.symbol,
            name=position.name,
            category=position.category,
            amount=position.amount,
            avg_price=position.avg_price,
        )

    def to_position(self) -> Position:
        return Position(
            symbol=self.symbol,
            name=self.name,
            category=self.category,
            amount=self.amount,
            avg_price=self.avg_price,
        )


_RECORDS = TypeAdapter(list[PositionRecord])


class PersistenceGateway:
    """Loads and saves portfolio state through a :class:`BaseKeyValueStore`.

    Saving is best effort: any failure is logged and swallowed so the
    in-memory portfolio stays the source of truth for the session.
    """

    def __init__(self, store: BaseKeyValueStore) -> None:
        self._store = store

    @property
    def store(self) -> BaseKeyValueStore:
        return self._store

    # ── Primitive reads ─────────────────────────────────────────

    def load_number(self, key: str) -> float:
        """Return the number stored under *key*, or 0.0 if absent or unreadable."""
        raw = self._store.get(key)
        if raw is None:
            return 0.0
        try:
            value = float(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            value = math.nan
        if not math.isfinite(value):
            log.warning("persisted_number_malformed", key=key)
            return 0.0
        return value

    def load_bytes(self, key: str) -> bytes | None:
        return self._store.get(key)

    # ── Portfolio ───────────────────────────────────────────────

    def save(
        self,
        balance: float,
        initial_capital: float,
        positions: Iterable[Position],
    ) -> bool:
        """Write all three entries in one store call. Returns ``False`` on failure."""
        try:
            records = [PositionRecord.from_position(p) for p in positions]
            blob = _RECORDS.dump_json(records)
            self._store.set_many({
                STORAGE_KEY_BALANCE: repr(float(balance)).encode("utf-8"),
                STORAGE_KEY_INITIAL_CAPITAL: repr(float(initial_capital)).encode("utf-8"),
                STORAGE_KEY_POSITIONS: blob,
            })
        except Exception as exc:
            log.error(
                "portfolio_save_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False

        log.debug(
            "portfolio_saved",
            balance=round(balance, 4),
            initial_capital=initial_capital,
            n_positions=len(records),
        )
        return True

    def load(self, default_capital: float = DEFAULT_INITIAL_CAPITAL) -> PortfolioState:
        """Rebuild portfolio state from the store.

        A balance or initial capital that loads as exactly zero is
        treated as never saved and replaced with *default_capital*.
        A malformed positions blob yields no positions.
        """
        try:
            balance = self.load_number(STORAGE_KEY_BALANCE)
            initial_capital = self.load_number(STORAGE_KEY_INITIAL_CAPITAL)
            blob = self.load_bytes(STORAGE_KEY_POSITIONS)
        except Exception as exc:
            log.warning("portfolio_load_failed", error=str(exc))
            return PortfolioState(cash=default_capital, initial_capital=default_capital)

        if balance == 0:
            balance = default_capital
        if initial_capital == 0:
            initial_capital = default_capital

        positions: dict[str, Position] = {}
        if blob is not None:
            for position in self._decode_positions(blob):
                existing = positions.get(position.symbol)
                if existing is None:
                    positions[position.symbol] = position
                    continue
                # Merge duplicates at weighted-average cost.
                total = existing.amount + position.amount
                existing.avg_price = (
                    existing.avg_price * existing.amount
                    + position.avg_price * position.amount
                ) / total
                existing.amount = total

        log.info(
            "portfolio_loaded",
            balance=round(balance, 4),
            initial_capital=initial_capital,
            n_positions=len(positions),
        )
        return PortfolioState(
            cash=balance,
            initial_capital=initial_capital,
            positions=positions,
        )

    @staticmethod
    def _decode_positions(blob: bytes) -> list[Position]:
        try:
            records = _RECORDS.validate_json(blob)
        except (ValidationError, ValueError) as exc:
            log.warning("persisted_positions_malformed", error=str(exc))
            return []
        return [record.to_position() for record in records]

    def close(self) -> None:
        self._store.close()

