"""
Modèle de demande à élasticité constante.

Ce module fournit :
- `theoretical_optimum` : prix de monopole P* = coût / (1 + 1/e),
- `calibrated_elasticity` : élasticité de base corrigée par la position marché,
- `projected_quantity` / `project_profit` : projection du volume et du profit
  pour un nouveau prix.

Convention : les élasticités sont négatives (e < -1 pour une demande
élastique). La projection utilise la magnitude |e| : une hausse de prix
réduit toujours le volume.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


def theoretical_optimum(cost: float, elasticity: float) -> Optional[float]:
    """
    Prix théorique maximisant le profit (règle de markup de Lerner).

    Retourne None lorsque la demande est inélastique (-1 <= e < 0) ou
    que la formule ne donne pas un prix positif : pas d'optimum fini.
    """
    if cost <= 0 or elasticity == 0:
        return None
    denominator = 1.0 + 1.0 / elasticity
    if denominator <= 0:
        return None
    return cost / denominator


def competitor_factor(market_average: float, current_price: float) -> float:
    """Position du marché par rapport au prix courant (1.0 si inconnue)."""
    if market_average <= 0 or current_price <= 0:
        return 1.0
    return market_average / current_price


def calibrated_elasticity(
    base_elasticity: float,
    factor: float,
    sensitivity: float = 0.3,
) -> float:
    """
    Élasticité calibrée : e * (1 + (facteur - 1) * sensibilité).

    Un marché plus cher que le prix courant (facteur > 1) rend la demande
    plus sensible aux hausses.
    """
    return base_elasticity * (1.0 + (factor - 1.0) * sensitivity)


def projected_quantity(
    current_quantity: float,
    current_price: float,
    new_price: float,
    elasticity: float,
) -> float:
    """Volume projeté q = q0 * (p0 / p)^|e|."""
    if new_price <= 0:
        return 0.0
    return current_quantity * (current_price / new_price) ** abs(elasticity)


@dataclass(frozen=True)
class ProfitProjection:
    new_quantity: float
    expected_profit: float
    current_profit: float

    @property
    def increase_amount(self) -> float:
        return self.expected_profit - self.current_profit

    @property
    def increase_percent(self) -> float:
        if self.current_profit == 0:
            return 0.0
        return self.increase_amount / abs(self.current_profit) * 100.0


def project_profit(
    current_price: float,
    current_quantity: float,
    cost: float,
    new_price: float,
    elasticity: float,
) -> ProfitProjection:
    """Profit mensuel attendu au nouveau prix, comparé au profit courant."""
    quantity = projected_quantity(current_quantity, current_price, new_price, elasticity)
    return ProfitProjection(
        new_quantity=quantity,
        expected_profit=(new_price - cost) * quantity,
        current_profit=(current_price - cost) * current_quantity,
    )
