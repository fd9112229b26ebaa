"""System-wide shared types — the single source of truth for all data structures."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from uuid_extensions import uuid7

from papertrade.core.exceptions import (
    InsufficientFundsError,
    InsufficientPositionError,
    InvalidAmountError,
    NoPositionError,
    PriceUnavailableError,
)


# ── Enums ────────────────────────────────────────────────────────

class InstrumentCategory(str, Enum):
    CRYPTO = "Crypto"
    FOREX = "Forex"
    STOCK = "Stock"
    INDEX = "Index"


class TradeStatus(str, Enum):
    OK = "ok"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NO_POSITION = "no_position"
    INSUFFICIENT_AMOUNT = "insufficient_amount"
    INVALID_AMOUNT = "invalid_amount"
    PRICE_UNAVAILABLE = "price_unavailable"


# ── Market Types ─────────────────────────────────────────────────

@dataclass(frozen=True)
class Instrument:
    """A tradable symbol with a category and base reference price."""

    symbol: str
    name: str
    category: InstrumentCategory
    base_price: float

    def __post_init__(self) -> None:
        if not self.symbol:
            msg = "Instrument symbol must not be empty"
            raise ValueError(msg)
        if self.base_price <= 0:
            msg = f"Instrument base_price must be positive, got {self.base_price}"
            raise ValueError(msg)


@dataclass(frozen=True)
class PricePoint:
    """Single point of a chart series."""

    timestamp: datetime
    price: float


# ── Portfolio Types ──────────────────────────────────────────────

@dataclass
class Position:
    """Current holding in one instrument, tracked at weighted-average cost."""

    symbol: str
    name: str
    category: InstrumentCategory
    amount: float
    avg_price: float
    id: str = field(default_factory=lambda: str(uuid7()))

    @classmethod
    def open(cls, instrument: Instrument, amount: float, price: float) -> Position:
        return cls(
            symbol=instrument.symbol,
            name=instrument.name,
            category=instrument.category,
            amount=amount,
            avg_price=price,
        )

    def market_value(self, price: float) -> float:
        return self.amount * price

    def unrealized_pnl(self, price: float) -> float:
        """Mark-to-market P&L of this position at *price*."""
        return (price - self.avg_price) * self.amount

    def unrealized_pnl_percent(self, price: float) -> float:
        if self.avg_price == 0:
            return 0.0
        return (price - self.avg_price) / self.avg_price * 100


@dataclass
class PortfolioState:
    """Cash balance, P&L baseline and open positions keyed by symbol."""

    cash: float
    initial_capital: float
    positions: dict[str, Position] = field(default_factory=dict)

    def copy(self) -> PortfolioState:
        return copy.deepcopy(self)


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Read-only view of the engine handed to the display layer.

    ``version`` increases on every tick and every successful command, so a
    poller can skip redraws when nothing changed.
    """

    cash: float
    initial_capital: float
    portfolio_value: float
    pnl: float
    pnl_percent: float
    positions: tuple[Position, ...]
    prices: dict[str, float]
    version: int


# ── Trade Outcome ────────────────────────────────────────────────

_STATUS_ERRORS = {
    TradeStatus.INSUFFICIENT_BALANCE: InsufficientFundsError,
    TradeStatus.NO_POSITION: NoPositionError,
    TradeStatus.INSUFFICIENT_AMOUNT: InsufficientPositionError,
    TradeStatus.INVALID_AMOUNT: InvalidAmountError,
    TradeStatus.PRICE_UNAVAILABLE: PriceUnavailableError,
}


@dataclass(frozen=True)
class TradeResult:
    """Outcome of a buy / sell / close.

    Rejections are ordinary values; callers that prefer exceptions can
    call :meth:`raise_for_status`.
    """

    status: TradeStatus
    symbol: str
    amount: float
    price: float
    cash_after: float
    position: Position | None = None

    @property
    def ok(self) -> bool:
        return self.status is TradeStatus.OK

    @property
    def value(self) -> float:
        """Notional value of the trade at the execution price."""
        return self.amount * self.price

    def raise_for_status(self) -> TradeResult:
        """Raise the matching :class:`PaperTradeError` for a rejected trade."""
        error_cls = _STATUS_ERRORS.get(self.status)
        if error_cls is None:
            return self
        raise error_cls(
            f"{self.status.value}: {self.symbol} amount={self.amount}",
            context={
                "symbol": self.symbol,
                "amount": self.amount,
                "price": self.price,
                "cash": self.cash_after,
            },
        )
