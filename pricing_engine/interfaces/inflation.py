"""
Fournisseurs de taux d'inflation.

Le moteur ne dépend que de `get_inflation(currency) -> InflationSnapshot`.
`StaticInflationProvider` sert les dernières valeurs publiées (référence).
"""

import logging
from typing import Dict, Optional, Protocol, Tuple

from pricing_engine.models.entities import InflationSnapshot

logger = logging.getLogger(__name__)

# devise -> (taux annuel, source)
REFERENCE_RATES: Dict[str, Tuple[float, str]] = {
    "SAR": (0.023, "SAMA (Saudi Central Bank) - Latest CPI Data"),
    "USD": (0.031, "US Bureau of Labor Statistics - Latest CPI"),
}
DEFAULT_RATE: Tuple[float, str] = (0.025, "IMF Global Estimate")


class InflationProvider(Protocol):
    async def get_inflation(self, currency: str) -> InflationSnapshot:
        ...


class StaticInflationProvider:
    """Taux de référence par devise, 2.5 % (estimation FMI) pour les autres."""

    def __init__(self, rates: Optional[Dict[str, Tuple[float, str]]] = None):
        self.rates = dict(REFERENCE_RATES)
        if rates:
            self.rates.update(rates)

    async def get_inflation(self, currency: str) -> InflationSnapshot:
        rate, source = self.rates.get(currency, DEFAULT_RATE)
        logger.info(f"Inflation for {currency}: {rate * 100:.1f}% ({source})")
        return InflationSnapshot(currency=currency, rate=rate, source=source)
