"""Estimated EV charging price by charger power.

The provider publishes no tariffs, so the price shown for a charge station is
an approximation looked up from a power -> EUR/kWh table configured through
EV_PRICE_TIERS.
"""

import bisect
from typing import Iterable, List, Optional, Sequence, Tuple


DEFAULT_PRICE_TIERS: List[Tuple[float, float]] = [
    (0.0, 0.49),     # < 11 kW (AC slow)
    (11.0, 0.59),    # 11-50 kW
    (50.0, 0.69),    # 50-100 kW
    (100.0, 0.79),   # >= 100 kW (HPC)
]


class PowerPriceTable:
    """Maps charger power (kW) to an estimated price per kWh."""

    def __init__(self, tiers: Optional[Iterable[Sequence[float]]] = None):
        if tiers is None:
            tiers = DEFAULT_PRICE_TIERS
        rows = sorted((float(min_kw), float(price)) for min_kw, price in tiers)
        if not rows:
            raise ValueError("EV price table needs at least one tier")
        self._thresholds = [min_kw for min_kw, _ in rows]
        self._prices = [price for _, price in rows]

    @property
    def tiers(self) -> List[Tuple[float, float]]:
        return list(zip(self._thresholds, self._prices))

    def price_for(self, power_kw: Optional[float]) -> Optional[float]:
        """Return the tier price whose lower bound is the highest one <= power_kw."""
        if power_kw is None or power_kw < 0:
            return None
        idx = bisect.bisect_right(self._thresholds, power_kw) - 1
        if idx < 0:
            # below the first configured bound
            return self._prices[0]
        return self._prices[idx]
