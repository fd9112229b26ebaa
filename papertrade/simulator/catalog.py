"""Static instrument catalog loaded from ``config/instruments.yaml``."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path

import yaml

from papertrade.core.exceptions import CatalogError, UnknownInstrumentError
from papertrade.core.logging import get_logger
from papertrade.core.types import Instrument, InstrumentCategory

log = get_logger(__name__)

_INSTRUMENTS_YAML = Path(__file__).resolve().parents[2] / "config" / "instruments.yaml"


class InstrumentCatalog:
    """Ordered, symbol-unique collection of instruments."""

    def __init__(self, instruments: Iterable[Instrument]) -> None:
        self._instruments: dict[str, Instrument] = {}
        for instrument in instruments:
            if instrument.symbol in self._instruments:
                msg = f"Duplicate instrument symbol: {instrument.symbol}"
                raise CatalogError(msg, context={"symbol": instrument.symbol})
            self._instruments[instrument.symbol] = instrument

    def __iter__(self) -> Iterator[Instrument]:
        return iter(self._instruments.values())

    def __len__(self) -> int:
        return len(self._instruments)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._instruments

    def get(self, symbol: str) -> Instrument:
        """Return the instrument for *symbol*.

        Raises:
            UnknownInstrumentError: If *symbol* is not in the catalog.
        """
        instrument = self._instruments.get(symbol)
        if instrument is None:
            msg = f"Unknown instrument: {symbol}"
            raise UnknownInstrumentError(msg, context={"symbol": symbol})
        return instrument

    def find(self, symbol: str) -> Instrument | None:
        return self._instruments.get(symbol)

    def base_price(self, symbol: str) -> float | None:
        instrument = self._instruments.get(symbol)
        return instrument.base_price if instrument else None

    def search(self, text: str) -> list[Instrument]:
        """Case-insensitive substring match on symbol or name.

        An empty (or whitespace-only) query returns the full catalog.
        """
        needle = text.strip().casefold()
        if not needle:
            return list(self)
        return [
            inst for inst in self
            if needle in inst.symbol.casefold() or needle in inst.name.casefold()
        ]

    def by_category(self, category: InstrumentCategory) -> list[Instrument]:
        return [inst for inst in self if inst.category is category]


def load_catalog(path: Path | None = None) -> InstrumentCatalog:
    """Load the instrument catalog from YAML.

    Raises:
        CatalogError: If the file is missing, unparsable, or an entry
            is incomplete or invalid.
    """
    catalog_path = path or _INSTRUMENTS_YAML
    try:
        with catalog_path.open(encoding="utf-8") as fh:
            config: dict[str, object] = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        msg = f"Cannot read instrument catalog: {exc}"
        raise CatalogError(msg, context={"path": str(catalog_path)}) from exc

    entries = config.get("instruments", []) if isinstance(config, dict) else []
    if not isinstance(entries, list) or not entries:
        msg = "No instruments found in catalog"
        raise CatalogError(msg, context={"path": str(catalog_path)})

    instruments: list[Instrument] = []
    for index, entry in enumerate(entries):
        try:
            instruments.append(
                Instrument(
                    symbol=str(entry["symbol"]),
                    name=str(entry.get("name", entry["symbol"])),
                    category=InstrumentCategory(entry["category"]),
                    base_price=float(entry["base_price"]),
                ),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            msg = f"Invalid instrument entry #{index}: {exc}"
            raise CatalogError(
                msg, context={"path": str(catalog_path), "entry": entry},
            ) from exc

    catalog = InstrumentCatalog(instruments)
    log.info(
        "catalog_loaded",
        path=str(catalog_path),
        instrument_count=len(catalog),
    )
    return catalog
