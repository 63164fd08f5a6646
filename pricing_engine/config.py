"""
Configuration centrale pour le moteur de pricing concurrentiel.

Ce module définit les paramètres utilisés par le moteur :
- bornes de sécurité (plancher de marge, plafond marché),
- pondération du mélange moyenne marché / optimum théorique,
- seuils de similarité (agrégation, validation),
- seuils du validateur de données marché,
- politique de sécurité (Zone Velocity ou garde-fou profit).

Les seuils sont des données : une nouvelle variante du moteur se
configure ici plutôt que par une copie de la fonction de pricing.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple

from .models.categories import is_size_variable


ENGINE_VERSION = "zone-velocity-2.0"


class SafetyPolicy(str, Enum):
    """Politique appliquée quand le prix borné réduit la marge unitaire."""

    # Accepte un prix « risk-adjusted » (milieu courant / borné) si le volume
    # attendu de la zone ne compense pas la baisse de marge
    ZONE_VELOCITY = "zone_velocity"
    # Refuse tout prix dont le profit projeté est inférieur au profit courant
    PROFIT_GUARD = "profit_guard"


@dataclass(frozen=True)
class ValidationThresholds:
    """Seuils du validateur de données marché."""

    min_products: int = 3
    max_spread_ratio: float = 5.0
    avg_ratio_bounds: Tuple[float, float] = (0.3, 3.0)
    low_price_ratio: float = 0.15


# Parfums, cosmétiques, alimentaire : formats très variables, bornes élargies
SIZE_VARIABLE_THRESHOLDS = ValidationThresholds(
    avg_ratio_bounds=(0.2, 4.0),
    low_price_ratio=0.10,
)


@dataclass
class PricingConfig:
    """
    Paramètres de haut niveau pour le moteur de pricing.

    Ces paramètres peuvent être surchargés par catégorie
    (voir `get_pricing_config_for_category`).
    """

    # Marge minimale : prix >= coût * 1.15
    min_margin_multiplier: float = 1.15
    # Plafond : prix <= plus haut marché (ajusté inflation) * 0.95
    ceiling_multiplier: float = 0.95

    # Mélange moyenne marché / optimum théorique
    market_weight: float = 0.6
    theoretical_weight: float = 0.4

    # Zone A : prix à moins de 5 % du plus bas du marché
    zone_a_tolerance: float = 0.05

    # Calibration de l'élasticité par le facteur concurrentiel
    competitor_sensitivity: float = 0.3

    # Similarité minimale pour l'agrégation (chemin principal)
    aggregation_similarity: float = 0.8
    # Similarité minimale des produits comptés par le validateur
    validation_similarity: float = 0.6

    # Confiance : nombre de produits pour high / medium
    high_confidence_count: int = 10
    medium_confidence_count: int = 5

    # Règle IQR
    iqr_multiplier: float = 1.5
    iqr_min_values: int = 4

    validation: ValidationThresholds = field(default_factory=ValidationThresholds)

    safety_policy: SafetyPolicy = SafetyPolicy.ZONE_VELOCITY
    engine_version: str = ENGINE_VERSION


def get_default_pricing_config() -> PricingConfig:
    """Retourne une instance de configuration par défaut."""
    return PricingConfig()


def get_pricing_config_for_category(
    category: Optional[str] = None,
    safety_policy: Optional[SafetyPolicy] = None,
) -> PricingConfig:
    """
    Retourne la configuration à utiliser pour une catégorie donnée.

    Les catégories « taille variable » reçoivent des seuils de validation
    élargis. La politique de sécurité peut être imposée par l'appelant.
    """
    config = get_default_pricing_config()
    if category and is_size_variable(category):
        config = replace(config, validation=SIZE_VARIABLE_THRESHOLDS)
    if safety_policy is not None:
        config = replace(config, safety_policy=SafetyPolicy(safety_policy))
    return config
