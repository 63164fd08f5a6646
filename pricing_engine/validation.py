"""
Validation de la qualité des données marché avant pricing.

Bloque le calcul (`should_proceed=False`) quand les données concurrentes
sont insuffisantes ou contaminées, et émet un avertissement non bloquant
quand le marché contient des variantes à bas prix (format, lot...).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .config import PricingConfig, get_pricing_config_for_category
from .exceptions import DataQualityError
from .models.entities import CompetitorProduct, MarketStats, ProductBaseline


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketValidation:
    should_proceed: bool
    reason: Optional[str] = None
    has_warning: bool = False
    warning_message: Optional[str] = None
    qualifying_products: int = 0

    def ensure_valid(self) -> "MarketValidation":
        """Lève `DataQualityError` si le pricing doit être bloqué."""
        if not self.should_proceed:
            raise DataQualityError(self)
        return self


class MarketDataValidator:
    """Contrôle qualité des statistiques marché pour une baseline."""

    def __init__(self, config: Optional[PricingConfig] = None) -> None:
        self._config = config

    def _config_for(self, baseline: ProductBaseline) -> PricingConfig:
        return self._config or get_pricing_config_for_category(baseline.category)

    def validate(
        self,
        baseline: ProductBaseline,
        stats: MarketStats,
        products: Sequence[CompetitorProduct],
    ) -> MarketValidation:
        config = self._config_for(baseline)
        thresholds = config.validation
        price = baseline.current_price

        qualifying = sum(
            1 for p in products if p.similarity_score >= config.validation_similarity
        )

        if qualifying < thresholds.min_products:
            return MarketValidation(
                should_proceed=False,
                reason=f"Insufficient competitor data (only {qualifying} products found)",
                qualifying_products=qualifying,
            )

        if stats.average <= 0:
            return MarketValidation(
                should_proceed=False,
                reason="No competitor data available. Using baseline price.",
                qualifying_products=qualifying,
            )

        spread = (stats.highest - stats.lowest) / stats.average
        if spread > thresholds.max_spread_ratio:
            return MarketValidation(
                should_proceed=False,
                reason=(
                    f"Market data quality issue: price spread {spread * 100:.0f}% "
                    f"(extreme outliers detected). Keeping current price."
                ),
                qualifying_products=qualifying,
            )

        low_bound, high_bound = thresholds.avg_ratio_bounds
        avg_ratio = stats.average / price
        if avg_ratio < low_bound or avg_ratio > high_bound:
            return MarketValidation(
                should_proceed=False,
                reason=(
                    f"Market average ({stats.average:.2f}) differs too much from "
                    f"baseline ({price:.2f}). Possible product mismatch."
                ),
                qualifying_products=qualifying,
            )

        lowest_ratio = stats.lowest / price
        if lowest_ratio < thresholds.low_price_ratio:
            message = (
                f"Market includes low-priced variants ({stats.lowest:.2f}). "
                f"Using weighted average ({stats.average:.2f}) for pricing."
            )
            logger.warning(f"{baseline.id}: {message}")
            return MarketValidation(
                should_proceed=True,
                has_warning=True,
                warning_message=message,
                qualifying_products=qualifying,
            )

        return MarketValidation(should_proceed=True, qualifying_products=qualifying)
