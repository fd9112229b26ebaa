"""Portfolio ledger — cash, open positions and weighted-average-cost accounting.

Cash impact::

    BUY  : cash -= price * amount
    SELL : cash += price * amount
    CLOSE: cash += price * position.amount

Buying more of a held symbol recomputes the entry price::

    avg = (avg * held + price * amount) / (held + amount)

Selling never changes the entry price. A position whose remaining amount
drops below ``DUST_EPSILON`` is removed.

Every operation is all-or-nothing: rejected trades leave state untouched
and are reported through :class:`TradeResult`, never raised.
"""

from __future__ import annotations

import math
from dataclasses import replace

from papertrade.core.constants import DEFAULT_INITIAL_CAPITAL, DUST_EPSILON
from papertrade.core.interfaces import PriceLookup
from papertrade.core.logging import get_logger
from papertrade.core.types import (
    Instrument,
    PortfolioState,
    Position,
    TradeResult,
    TradeStatus,
)
from papertrade.simulator.persistence import PersistenceGateway

log = get_logger(__name__)


class PortfolioLedger:
    """State machine over a single :class:`PortfolioState`.

    Typical lifecycle::

        ledger = PortfolioLedger(10_000)
        ledger.buy(btc, 0.1, simulator.current_price)
        ledger.portfolio_value(simulator.current_price)
        ledger.sell(btc, 0.05, simulator.current_price)

    Args:
        initial_capital: Starting cash and P&L baseline.
        persistence: Optional gateway; every successful mutation is
            saved through it.
    """

    def __init__(
        self,
        initial_capital: float = DEFAULT_INITIAL_CAPITAL,
        persistence: PersistenceGateway | None = None,
    ) -> None:
        self._state = PortfolioState(cash=initial_capital, initial_capital=initial_capital)
        self._persistence = persistence

    # ── Accessors ───────────────────────────────────────────────

    @property
    def cash(self) -> float:
        return self._state.cash

    @property
    def initial_capital(self) -> float:
        return self._state.initial_capital

    def positions(self) -> tuple[Position, ...]:
        """Open positions in the order they were opened."""
        return tuple(replace(p) for p in self._state.positions.values())

    def get_position(self, symbol: str) -> Position | None:
        position = self._state.positions.get(symbol)
        return replace(position) if position else None

    def get_position_by_id(self, position_id: str) -> Position | None:
        position = self._find_by_id(position_id)
        return replace(position) if position else None

    def state(self) -> PortfolioState:
        """Deep copy of the current state."""
        return self._state.copy()

    def restore(self, state: PortfolioState) -> None:
        """Replace the whole state without persisting (used at startup)."""
        self._state = state.copy()
        log.info(
            "ledger_restored",
            cash=round(state.cash, 4),
            initial_capital=state.initial_capital,
            n_positions=len(state.positions),
        )

    # ── Trading ─────────────────────────────────────────────────

    def buy(
        self,
        instrument: Instrument,
        amount: float,
        price_lookup: PriceLookup,
    ) -> TradeResult:
        """Buy *amount* units of *instrument* at the current price."""
        price = price_lookup(instrument.symbol)
        if not is_valid_amount(amount):
            return self._reject(TradeStatus.INVALID_AMOUNT, instrument.symbol, amount, price)
        if not is_valid_amount(price):
            return self._price_unavailable(instrument.symbol, amount, price)

        cost = amount * price
        if cost > self._state.cash:
            log.info(
                "buy_rejected_insufficient_balance",
                symbol=instrument.symbol,
                amount=amount,
                cost=round(cost, 4),
                cash=round(self._state.cash, 4),
            )
            return self._reject(
                TradeStatus.INSUFFICIENT_BALANCE, instrument.symbol, amount, price,
            )

        self._state.cash -= cost
        existing = self._state.positions.get(instrument.symbol)
        if existing is not None:
            old_avg = existing.avg_price
            new_amount = existing.amount + amount
            existing.avg_price = (existing.avg_price * existing.amount + price * amount) / new_amount
            existing.amount = new_amount
            position = existing
            log.info(
                "position_added",
                symbol=instrument.symbol,
                added_amount=amount,
                price=price,
                avg_before=round(old_avg, 6),
                avg_after=round(position.avg_price, 6),
                total_amount=new_amount,
            )
        else:
            position = Position.open(instrument, amount, price)
            self._state.positions[instrument.symbol] = position
            log.info(
                "position_opened",
                symbol=instrument.symbol,
                amount=amount,
                price=price,
                position_id=position.id,
            )

        self._persist()
        return TradeResult(
            status=TradeStatus.OK,
            symbol=instrument.symbol,
            amount=amount,
            price=price,
            cash_after=self._state.cash,
            position=replace(position),
        )

    def sell(
        self,
        instrument: Instrument,
        amount: float,
        price_lookup: PriceLookup,
    ) -> TradeResult:
        """Sell *amount* units of a held *instrument* at the current price."""
        price = price_lookup(instrument.symbol)
        if not is_valid_amount(amount):
            return self._reject(TradeStatus.INVALID_AMOUNT, instrument.symbol, amount, price)
        if not is_valid_amount(price):
            return self._price_unavailable(instrument.symbol, amount, price)

        position = self._state.positions.get(instrument.symbol)
        if position is None:
            log.info("sell_rejected_no_position", symbol=instrument.symbol, amount=amount)
            return self._reject(TradeStatus.NO_POSITION, instrument.symbol, amount, price)
        if position.amount < amount:
            log.info(
                "sell_rejected_insufficient_amount",
                symbol=instrument.symbol,
                amount=amount,
                held=position.amount,
            )
            return self._reject(
                TradeStatus.INSUFFICIENT_AMOUNT, instrument.symbol, amount, price,
            )

        self._state.cash += amount * price
        position.amount -= amount
        remaining: Position | None = position
        if position.amount < DUST_EPSILON:
            del self._state.positions[instrument.symbol]
            remaining = None

        log.info(
            "position_reduced",
            symbol=instrument.symbol,
            sold_amount=amount,
            price=price,
            realized_pnl=round((price - position.avg_price) * amount, 4),
            remaining_amount=position.amount if remaining else 0.0,
            action="CLOSE" if remaining is None else "REDUCE",
        )

        self._persist()
        return TradeResult(
            status=TradeStatus.OK,
            symbol=instrument.symbol,
            amount=amount,
            price=price,
            cash_after=self._state.cash,
            position=replace(remaining) if remaining else None,
        )

    def close(self, position_id: str, price_lookup: PriceLookup) -> TradeResult | None:
        """Liquidate one position at the current price.

        Returns ``None`` (and changes nothing) if *position_id* is not open.
        A position without a usable price is left open and reported as
        ``PRICE_UNAVAILABLE``.
        """
        position = self._find_by_id(position_id)
        if position is None:
            log.debug("close_ignored_unknown_position", position_id=position_id)
            return None

        price = price_lookup(position.symbol)
        if not is_valid_amount(price):
            return self._price_unavailable(position.symbol, position.amount, price)
        self._state.cash += position.amount * price
        del self._state.positions[position.symbol]

        log.info(
            "position_closed",
            symbol=position.symbol,
            position_id=position_id,
            amount=position.amount,
            price=price,
            realized_pnl=round(position.unrealized_pnl(price), 4),
        )

        self._persist()
        return TradeResult(
            status=TradeStatus.OK,
            symbol=position.symbol,
            amount=position.amount,
            price=price,
            cash_after=self._state.cash,
            position=None,
        )

    def reset(self, new_initial_capital: float) -> None:
        """Drop every position and restart with *new_initial_capital* in cash.

        Raises:
            ValueError: If *new_initial_capital* is not a positive number.
        """
        if not is_valid_amount(new_initial_capital):
            msg = f"initial capital must be positive, got {new_initial_capital}"
            raise ValueError(msg)

        n_dropped = len(self._state.positions)
        self._state = PortfolioState(
            cash=new_initial_capital,
            initial_capital=new_initial_capital,
        )
        log.info(
            "portfolio_reset",
            initial_capital=new_initial_capital,
            positions_dropped=n_dropped,
        )
        self._persist()

    # ── Valuation ───────────────────────────────────────────────

    def positions_value(self, price_lookup: PriceLookup) -> float:
        return sum(
            position.amount * price_lookup(position.symbol)
            for position in self._state.positions.values()
        )

    def portfolio_value(self, price_lookup: PriceLookup) -> float:
        """Cash plus every position marked at its current price."""
        return self._state.cash + self.positions_value(price_lookup)

    def unrealized_pnl(self, price_lookup: PriceLookup) -> float:
        return self.portfolio_value(price_lookup) - self._state.initial_capital

    def pnl_percent(self, price_lookup: PriceLookup) -> float:
        """P&L relative to initial capital, in percent (0.0 without a baseline)."""
        if self._state.initial_capital == 0:
            return 0.0
        return self.unrealized_pnl(price_lookup) / self._state.initial_capital * 100

    # ── Internal ────────────────────────────────────────────────

    def _find_by_id(self, position_id: str) -> Position | None:
        for position in self._state.positions.values():
            if position.id == position_id:
                return position
        return None

    def _reject(
        self,
        status: TradeStatus,
        symbol: str,
        amount: float,
        price: float,
    ) -> TradeResult:
        return TradeResult(
            status=status,
            symbol=symbol,
            amount=amount,
            price=price,
            cash_after=self._state.cash,
            position=self.get_position(symbol),
        )

    def _price_unavailable(self, symbol: str, amount: float, price: float) -> TradeResult:
        log.warning("trade_rejected_price_unavailable", symbol=symbol, price=price)
        return self._reject(TradeStatus.PRICE_UNAVAILABLE, symbol, amount, price)

    def _persist(self) -> None:
        if self._persistence is None:
            return
        self._persistence.save(
            self._state.cash,
            self._state.initial_capital,
            self._state.positions.values(),
        )


def is_valid_amount(amount: float) -> bool:
    """True for a finite, strictly positive number."""
    try:
        return math.isfinite(amount) and amount > 0
    except TypeError:
        return False
