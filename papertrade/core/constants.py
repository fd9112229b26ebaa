"""System-wide constants. All magic numbers and strings live here."""

from __future__ import annotations

from papertrade.core.types import InstrumentCategory

# ── Price Simulation ─────────────────────────────────────────────
# Per-tick volatility by instrument category.
VOLATILITY: dict[InstrumentCategory, float] = {
    InstrumentCategory.CRYPTO: 0.003,
    InstrumentCategory.FOREX: 0.0008,
    InstrumentCategory.STOCK: 0.0015,
    InstrumentCategory.INDEX: 0.0012,
}

TREND_LOW = -0.3                     # trend ~ U(-0.3, 0.7), upward bias
TREND_HIGH = 0.7
TREND_WEIGHT = 0.3
WALK_WEIGHT = 0.7

DEFAULT_HISTORY_CAP = 50             # points kept per instrument
DEFAULT_TICK_INTERVAL_SECONDS = 2.0

# ── Portfolio ────────────────────────────────────────────────────
DEFAULT_INITIAL_CAPITAL = 10_000.0
DUST_EPSILON = 1e-5                  # positions below this amount are removed

# ── Storage Keys ─────────────────────────────────────────────────
STORAGE_KEY_BALANCE = "balance"
STORAGE_KEY_INITIAL_CAPITAL = "initialCapital"
STORAGE_KEY_POSITIONS = "positions"
