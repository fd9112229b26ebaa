"""Custom exception hierarchy for PaperTrade."""

from __future__ import annotations

from typing import Any


class PaperTradeError(Exception):
    """Base exception for all PaperTrade errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context: dict[str, Any] = context or {}


# ── Trading ──────────────────────────────────────────────────────

class InsufficientFundsError(PaperTradeError):
    """Not enough cash to pay for the order."""


class NoPositionError(PaperTradeError):
    """Sell requested for a symbol that is not held."""


class InsufficientPositionError(PaperTradeError):
    """Sell amount exceeds the held amount."""


class InvalidAmountError(PaperTradeError):
    """Trade amount is zero, negative or not a finite number."""


class PriceUnavailableError(PaperTradeError):
    """No positive, finite price is available for the instrument."""


class InvalidCapitalError(PaperTradeError):
    """Reset capital must be a positive amount."""


class UnknownInstrumentError(PaperTradeError, KeyError):
    """Symbol is not part of the instrument catalog."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


# ── Data Layer ───────────────────────────────────────────────────

class CatalogError(PaperTradeError):
    """Instrument catalog file is missing or malformed."""


class PersistenceError(PaperTradeError):
    """Key-value backend failed to read or write."""
