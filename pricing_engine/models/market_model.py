"""
Agrégation des statistiques marché à partir des offres concurrentes.

Chemin principal : produits dont la similarité >= seuil d'agrégation (0.8).
Repli : liste aplatie des agrégats par marketplace (plus bas / moyen /
plus haut) lorsque moins de 3 produits sont exploitables.

Le calcul est une fonction pure de ses entrées : aucune lecture en base
ici, le dépôt fournit les listes.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np  # type: ignore

from ..config import PricingConfig, get_default_pricing_config
from .entities import CompetitorProduct, Confidence, FetchStatus, MarketAggregate, MarketStats


logger = logging.getLogger(__name__)


def remove_outliers(
    values: Sequence[float],
    multiplier: float = 1.5,
    min_values: int = 4,
) -> Tuple[List[int], int]:
    """
    Filtre IQR : garde les valeurs dans [Q1 - k*IQR, Q3 + k*IQR].

    Les quartiles sont pris par index sur la liste triée
    (Q1 = trié[floor(n/4)], Q3 = trié[floor(3n/4)]). En dessous de
    `min_values` valeurs, rien n'est filtré. Si le filtre viderait
    l'ensemble, l'ensemble d'origine est conservé.

    Returns:
        (indices conservés, nombre de valeurs retirées)
    """
    n = len(values)
    all_indices = list(range(n))
    if n < min_values:
        return all_indices, 0

    ordered = np.sort(np.asarray(values, dtype=float))
    q1 = ordered[int(np.floor(n * 0.25))]
    q3 = ordered[int(np.floor(n * 0.75))]
    iqr = q3 - q1
    lower = q1 - multiplier * iqr
    upper = q3 + multiplier * iqr

    kept = [i for i, value in enumerate(values) if lower <= value <= upper]
    if not kept:
        return all_indices, 0
    return kept, n - len(kept)


class MarketStatsAggregator:
    """Calcule `MarketStats` pour une baseline."""

    def __init__(self, config: Optional[PricingConfig] = None) -> None:
        self.config = config or get_default_pricing_config()

    def _confidence_for(self, count: int) -> Confidence:
        if count >= self.config.high_confidence_count:
            return Confidence.HIGH
        if count >= self.config.medium_confidence_count:
            return Confidence.MEDIUM
        return Confidence.LOW

    def _stats_from_prices(
        self,
        prices: Sequence[float],
        weights: Sequence[float],
        confidence: Optional[Confidence],
        source: str,
    ) -> MarketStats:
        kept, removed = remove_outliers(
            prices,
            multiplier=self.config.iqr_multiplier,
            min_values=self.config.iqr_min_values,
        )
        clean_prices = np.asarray([prices[i] for i in kept], dtype=float)
        clean_weights = np.asarray([weights[i] for i in kept], dtype=float)

        if clean_weights.sum() > 0:
            average = float(np.average(clean_prices, weights=clean_weights))
        else:
            average = float(clean_prices.mean())

        return MarketStats(
            lowest=float(clean_prices.min()),
            average=average,
            highest=float(clean_prices.max()),
            confidence=confidence or self._confidence_for(len(kept)),
            outliers_removed=removed,
            products_used=len(kept),
            source=source,
        )

    def aggregate(
        self,
        products: Sequence[CompetitorProduct],
        aggregates: Sequence[MarketAggregate] = (),
    ) -> MarketStats:
        """
        Statistiques marché (plus bas, moyenne pondérée, plus haut, confiance).

        - >= 3 produits au-dessus du seuil : confiance selon le nombre retenu,
        - sinon, agrégats disponibles : confiance `very_low` (ou `low` s'il
          n'y a aucun produit du tout),
        - sinon : statistiques vides, confiance `none`.
        """
        threshold = self.config.aggregation_similarity
        matched = [
            p for p in products
            if p.similarity_score >= threshold and p.price > 0
        ]

        if len(matched) >= self.config.validation.min_products:
            return self._stats_from_prices(
                [p.price for p in matched],
                [p.similarity_score for p in matched],
                confidence=None,
                source="products",
            )

        fallback_prices = [
            price
            for aggregate in aggregates
            if aggregate.fetch_status == FetchStatus.SUCCESS
            for price in aggregate.prices()
        ]
        if fallback_prices:
            confidence = Confidence.LOW if not products else Confidence.VERY_LOW
            logger.info(
                f"Only {len(matched)} products above similarity {threshold}, "
                f"falling back to {len(fallback_prices)} aggregate prices ({confidence.value})"
            )
            return self._stats_from_prices(
                fallback_prices,
                [1.0] * len(fallback_prices),
                confidence=confidence,
                source="aggregates",
            )

        if matched:
            # Moins de 3 produits mais pas d'agrégat : on garde ce qu'on a
            return self._stats_from_prices(
                [p.price for p in matched],
                [p.similarity_score for p in matched],
                confidence=Confidence.VERY_LOW,
                source="products",
            )

        return MarketStats.empty(Confidence.NONE)
