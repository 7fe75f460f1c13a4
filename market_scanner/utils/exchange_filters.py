"""Per-symbol LOT_SIZE / PRICE_FILTER rules from futures exchange info."""

from __future__ import annotations
import math
from typing import NamedTuple, Optional


class SymbolFilters(NamedTuple):
    min_qty: float = 0.001
    lot_step: float = 0.0001
    price_tick: float = 0.01

    @classmethod
    def from_symbol_info(cls, symbol_info: Optional[dict]) -> "SymbolFilters":
        """Defaults for any filter the exchange does not report."""
        filters = cls()
        for f in (symbol_info or {}).get("filters", []):
            kind = f.get("filterType")
            if kind == "LOT_SIZE":
                filters = filters._replace(
                    min_qty=float(f.get("minQty", filters.min_qty)),
                    lot_step=float(f.get("stepSize", filters.lot_step)),
                )
            elif kind == "PRICE_FILTER":
                filters = filters._replace(price_tick=float(f.get("tickSize", filters.price_tick)))
        return filters

    def quantity(self, qty: float) -> float:
        """Floor to the lot step; 0 when below the exchange minimum."""
        if qty <= 0:
            return 0.0
        # epsilon keeps exact multiples (0.3 / 0.1 == 2.9999...) on their step
        steps = math.floor(qty / self.lot_step + 1e-9)
        rounded = round(steps * self.lot_step, 8)
        return rounded if rounded >= self.min_qty else 0.0

    def price(self, price: float) -> float:
        """Nearest tick."""
        return round(round(price / self.price_tick) * self.price_tick, 8)
