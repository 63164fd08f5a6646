"""
Logique de décision de prix pour le moteur de pricing concurrentiel.

Ce module est responsable de :
- calculer l'optimum théorique (élasticité constante),
- ajuster les bornes marché par l'inflation,
- mélanger moyenne marché et optimum théorique,
- appliquer le plancher de marge et le plafond marché,
- arbitrer le prix via la politique de sécurité (Zone Velocity Model
  ou garde-fou profit),
- projeter le profit mensuel au prix final.

Un seul moteur canonique, versionné (`ENGINE_VERSION`) ; toutes les
variantes passent par `PricingConfig`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .config import PricingConfig, SafetyPolicy, get_pricing_config_for_category
from .models.categories import get_zone_profile
from .models.demand_model import (
    calibrated_elasticity,
    competitor_factor,
    project_profit,
    theoretical_optimum,
)
from .models.entities import InflationSnapshot, MarketStats, PricingResult, ProductBaseline
from .validation import MarketValidation


logger = logging.getLogger(__name__)


DECISION_ACCEPT = "accept"
DECISION_RISK_ADJUSTED = "risk_adjusted"
DECISION_KEEP_CURRENT = "keep_current"


@dataclass(frozen=True)
class SafetyBand:
    floor: float
    ceiling: float

    @property
    def is_valid(self) -> bool:
        return self.floor <= self.ceiling

    def clamp(self, price: float) -> float:
        return min(max(price, self.floor), self.ceiling)

    def round_inside(self, price: float) -> float:
        """Arrondi au centime sans sortir de la bande."""
        low = math.ceil(round(self.floor * 100, 6)) / 100
        high = math.floor(round(self.ceiling * 100, 6)) / 100
        if low > high:
            return self.clamp(price)
        return min(max(round(price, 2), low), high)


@dataclass(frozen=True)
class ZoneAssessment:
    zone: str
    multiplier: float
    break_even: float


@dataclass(frozen=True)
class SafetyOutcome:
    price: float
    decision: str
    warning: Optional[str] = None


def classify_zone(
    price: float,
    lowest_adj: float,
    average_adj: float,
    category: str,
    tolerance: float = 0.05,
) -> Tuple[str, float]:
    """
    Zone de prix et multiplicateur de volume attendu.

    - A : prix <= plus bas du marché + 5 %
    - B : prix <= moyenne du marché
    - C : au-dessus de la moyenne (multiplicateur 1.0)
    """
    profile = get_zone_profile(category)
    if price <= lowest_adj * (1.0 + tolerance):
        return "A", profile.zone_a
    if price <= average_adj:
        return "B", profile.zone_b
    return "C", profile.zone_c


def break_even_multiplier(current_price: float, new_price: float, cost: float) -> float:
    """Hausse de volume nécessaire pour conserver le profit au nouveau prix."""
    new_margin = new_price - cost
    if new_margin <= 0:
        return math.inf
    return (current_price - cost) / new_margin


def _zone_velocity_policy(
    engine: "PricingDecisionEngine",
    baseline: ProductBaseline,
    clamped: float,
    band: SafetyBand,
    assessment: ZoneAssessment,
    elasticity: float,
) -> SafetyOutcome:
    if assessment.multiplier >= assessment.break_even:
        return SafetyOutcome(price=clamped, decision=DECISION_ACCEPT)

    midpoint = band.clamp((baseline.current_price + clamped) / 2.0)
    warning = (
        f"Price risk-adjusted: zone {assessment.zone} volume multiplier "
        f"{assessment.multiplier:.2f} is below break-even {assessment.break_even:.2f}. "
        f"Moving halfway toward the market price."
    )
    return SafetyOutcome(price=midpoint, decision=DECISION_RISK_ADJUSTED, warning=warning)


def _profit_guard_policy(
    engine: "PricingDecisionEngine",
    baseline: ProductBaseline,
    clamped: float,
    band: SafetyBand,
    assessment: ZoneAssessment,
    elasticity: float,
) -> SafetyOutcome:
    projection = project_profit(
        baseline.current_price,
        baseline.current_quantity,
        baseline.cost_per_unit,
        clamped,
        elasticity,
    )
    if projection.increase_amount >= 0:
        return SafetyOutcome(price=clamped, decision=DECISION_ACCEPT)

    fallback = band.clamp(baseline.current_price)
    warning = (
        f"Market-based price {clamped:.2f} {baseline.currency} would reduce profit by "
        f"{abs(projection.increase_percent):.1f}%. Current price maintained for profitability."
    )
    return SafetyOutcome(price=fallback, decision=DECISION_KEEP_CURRENT, warning=warning)


SafetyPolicyFn = Callable[..., SafetyOutcome]

SAFETY_POLICIES: Dict[SafetyPolicy, SafetyPolicyFn] = {
    SafetyPolicy.ZONE_VELOCITY: _zone_velocity_policy,
    SafetyPolicy.PROFIT_GUARD: _profit_guard_policy,
}


class PricingDecisionEngine:
    """
    Moteur de décision de prix.

    Utilisation typique :
        engine = PricingDecisionEngine()
        result = engine.decide(baseline, stats, validation, inflation)
    """

    def __init__(self, config: Optional[PricingConfig] = None) -> None:
        self._config = config

    def config_for(self, baseline: ProductBaseline) -> PricingConfig:
        return self._config or get_pricing_config_for_category(baseline.category)

    @property
    def version(self) -> str:
        return (self._config or PricingConfig()).engine_version

    def _keep_current(
        self,
        baseline: ProductBaseline,
        inflation: InflationSnapshot,
        config: PricingConfig,
        message: str,
        stats: Optional[MarketStats] = None,
    ) -> PricingResult:
        current_profit = baseline.current_profit
        return PricingResult(
            baseline_id=baseline.id,
            optimal_price=baseline.current_price,
            suggested_price=baseline.current_price,
            inflation_rate=inflation.rate,
            inflation_adjustment=1.0 + inflation.rate,
            base_elasticity=baseline.base_elasticity,
            calibrated_elasticity=baseline.base_elasticity,
            competitor_factor=1.0,
            currency=baseline.currency,
            market_lowest=stats.lowest if stats and stats.average > 0 else None,
            market_average=stats.average if stats and stats.average > 0 else None,
            market_highest=stats.highest if stats and stats.average > 0 else None,
            expected_monthly_profit=current_profit,
            profit_increase_amount=0.0,
            profit_increase_percent=0.0,
            has_warning=True,
            warning_message=message,
            decision=DECISION_KEEP_CURRENT,
            market_confidence=stats.confidence.value if stats else None,
            engine_version=config.engine_version,
            reasoning="Current price kept: market data did not support a recommendation",
        )

    def decide(
        self,
        baseline: ProductBaseline,
        stats: MarketStats,
        validation: MarketValidation,
        inflation: InflationSnapshot,
    ) -> PricingResult:
        """
        Calcule la recommandation de prix pour une baseline.

        Si le validateur bloque, retourne le prix courant avec avertissement
        sans autre calcul.
        """
        config = self.config_for(baseline)

        if not validation.should_proceed:
            logger.warning(f"{baseline.id}: market data rejected: {validation.reason}")
            return self._keep_current(baseline, inflation, config, validation.reason, stats)

        if stats.average <= 0:
            return self._keep_current(
                baseline, inflation, config,
                "No competitor data available. Using baseline price.", stats,
            )

        cost = baseline.cost_per_unit
        price = baseline.current_price
        multiplier = 1.0 + inflation.rate

        # 1. Optimum théorique
        optimal = theoretical_optimum(cost, baseline.base_elasticity)

        # 2. Bornes marché ajustées de l'inflation
        average_adj = stats.average * multiplier
        highest_adj = stats.highest * multiplier
        lowest_adj = stats.lowest * multiplier

        # 3. Suggestion de base : moyenne, mélangée avec P* s'il est plus bas
        band = SafetyBand(
            floor=cost * config.min_margin_multiplier,
            ceiling=highest_adj * config.ceiling_multiplier,
        )
        suggestion = average_adj
        blended = False
        if optimal is not None and band.floor < optimal < average_adj:
            suggestion = config.market_weight * average_adj + config.theoretical_weight * optimal
            blended = True

        factor = competitor_factor(stats.average, price)
        elasticity = calibrated_elasticity(
            baseline.base_elasticity, factor, config.competitor_sensitivity
        )

        warnings: List[str] = []
        if validation.has_warning and validation.warning_message:
            warnings.append(validation.warning_message)

        if not band.is_valid:
            message = (
                f"Minimum margin price ({band.floor:.2f}) exceeds market ceiling "
                f"({band.ceiling:.2f}). Current price maintained."
            )
            logger.warning(f"{baseline.id}: {message}")
            result = self._keep_current(baseline, inflation, config, " ".join(warnings + [message]), stats)
            result.optimal_price = optimal
            return result

        # 4. Plancher / plafond
        clamped = band.clamp(suggestion)
        if suggestion < band.floor:
            reasoning = f"Set to minimum {round((config.min_margin_multiplier - 1) * 100)}% profit margin ({band.floor:.2f})"
        elif suggestion > band.ceiling:
            reasoning = f"Capped at {round(config.ceiling_multiplier * 100)}% of market highest ({highest_adj:.2f})"
        else:
            below = (highest_adj - clamped) / highest_adj * 100
            reasoning = f"Optimized at {below:.1f}% below market highest based on inflation-adjusted average"
        if blended:
            reasoning += f"; blended with theoretical optimum {optimal:.2f}"

        # 5. Politique de sécurité
        zone, zone_multiplier = classify_zone(
            clamped, lowest_adj, average_adj, baseline.category, config.zone_a_tolerance
        )
        assessment = ZoneAssessment(
            zone=zone,
            multiplier=zone_multiplier,
            break_even=break_even_multiplier(price, clamped, cost),
        )
        policy = SAFETY_POLICIES[config.safety_policy]
        outcome = policy(self, baseline, clamped, band, assessment, elasticity)
        if outcome.warning:
            warnings.append(outcome.warning)

        # Filet de sécurité final et arrondi au centime
        final_price = band.round_inside(band.clamp(outcome.price))

        logger.info(
            f"{baseline.id}: zone={zone} multiplier={zone_multiplier:.2f} "
            f"break_even={assessment.break_even:.2f} decision={outcome.decision} "
            f"price={final_price:.2f} (band {band.floor:.2f}-{band.ceiling:.2f})"
        )

        # 6. Projection du profit
        projection = project_profit(price, baseline.current_quantity, cost, final_price, elasticity)

        return PricingResult(
            baseline_id=baseline.id,
            optimal_price=optimal,
            suggested_price=final_price,
            inflation_rate=inflation.rate,
            inflation_adjustment=multiplier,
            base_elasticity=baseline.base_elasticity,
            calibrated_elasticity=elasticity,
            competitor_factor=factor,
            currency=baseline.currency,
            market_lowest=stats.lowest,
            market_average=stats.average,
            market_highest=stats.highest,
            position_vs_market=(final_price - stats.average) / stats.average * 100,
            expected_monthly_profit=projection.expected_profit,
            profit_increase_amount=projection.increase_amount,
            profit_increase_percent=projection.increase_percent,
            has_warning=bool(warnings),
            warning_message=" ".join(warnings) if warnings else None,
            price_zone=zone,
            zone_multiplier=zone_multiplier,
            break_even_multiplier=assessment.break_even,
            decision=outcome.decision,
            market_confidence=stats.confidence.value,
            engine_version=config.engine_version,
            reasoning=reasoning,
        )
