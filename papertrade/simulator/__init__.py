"""Paper-trading simulator — price simulation, portfolio ledger and trading engine."""

from papertrade.simulator.catalog import InstrumentCatalog, load_catalog
from papertrade.simulator.engine import TradingEngine
from papertrade.simulator.ledger import PortfolioLedger
from papertrade.simulator.persistence import PersistenceGateway, PositionRecord
from papertrade.simulator.price_simulator import ChartSeries, PriceSimulator
from papertrade.simulator.scheduler import TickScheduler

__all__ = [
    "ChartSeries",
    "InstrumentCatalog",
    "PersistenceGateway",
    "PortfolioLedger",
    "PositionRecord",
    "PriceSimulator",
    "TickScheduler",
    "TradingEngine",
    "load_catalog",
]
