"""PaperTrade — simulated paper-trading portfolio engine."""

__version__ = "0.1.0"
