"""
Table des catégories produit.

Chaque catégorie (ensemble fermé de 14 valeurs) porte :
- son élasticité de base (négative, demande élastique : e < -1),
- son appartenance au groupe « taille variable » (bornes du validateur élargies),
- son profil de zones pour le Zone Velocity Model.

La table est validée au chargement du module : une catégorie sans profil
de zones connu ou avec une élasticité nulle fait échouer l'import.
"""

from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True)
class ZoneProfile:
    """Multiplicateurs de volume attendus par zone de prix."""

    name: str
    zone_a: float  # Prix à moins de 5 % du plus bas du marché
    zone_b: float  # Prix <= moyenne du marché
    zone_c: float = 1.0  # Prix au-dessus de la moyenne : pas de gain de volume


ZONE_PROFILES: Dict[str, ZoneProfile] = {
    "electronics": ZoneProfile(name="electronics", zone_a=3.5, zone_b=2.2),
    "beauty_food": ZoneProfile(name="beauty_food", zone_a=1.8, zone_b=1.3),
    "default": ZoneProfile(name="default", zone_a=2.5, zone_b=1.8),
}


@dataclass(frozen=True)
class CategorySpec:
    name: str
    base_elasticity: float
    zone_profile: str = "default"
    size_variable: bool = False


_CATEGORY_SPECS: List[CategorySpec] = [
    CategorySpec("Electronics & Technology", -2.0, zone_profile="electronics"),
    CategorySpec("Fashion & Apparel", -2.2),
    CategorySpec("Luxury Goods", -1.3),
    CategorySpec("Food & Beverages", -1.6, zone_profile="beauty_food", size_variable=True),
    CategorySpec("Health & Beauty", -1.7, zone_profile="beauty_food", size_variable=True),
    CategorySpec("Home & Furniture", -1.9),
    CategorySpec("Sports & Outdoors", -2.0),
    CategorySpec("Toys & Games", -2.1),
    CategorySpec("Books & Media", -2.3),
    CategorySpec("Automotive Parts", -1.5),
    CategorySpec("Pharmaceuticals", -1.2),
    CategorySpec("Groceries (Staples)", -1.4, size_variable=True),
    CategorySpec("Office Supplies", -1.8),
    CategorySpec("Pet Supplies", -1.6),
]


def _build_category_table(specs: List[CategorySpec]) -> Dict[str, CategorySpec]:
    table: Dict[str, CategorySpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate category: {spec.name}")
        if spec.zone_profile not in ZONE_PROFILES:
            raise ValueError(
                f"Unknown zone profile '{spec.zone_profile}' for category {spec.name}"
            )
        if spec.base_elasticity == 0:
            raise ValueError(f"Elasticity cannot be zero for category {spec.name}")
        table[spec.name] = spec
    return table


CATEGORIES: Dict[str, CategorySpec] = _build_category_table(_CATEGORY_SPECS)
ALLOWED_CATEGORIES: List[str] = list(CATEGORIES.keys())


def get_category(name: str) -> CategorySpec:
    """
    Retourne la spécification d'une catégorie.

    Raises:
        KeyError: Si la catégorie ne fait pas partie de l'ensemble fermé
    """
    return CATEGORIES[name]


def get_zone_profile(category: str) -> ZoneProfile:
    """Profil de zones d'une catégorie (profil par défaut si inconnue)."""
    spec = CATEGORIES.get(category)
    if spec is None:
        return ZONE_PROFILES["default"]
    return ZONE_PROFILES[spec.zone_profile]


def is_size_variable(category: str) -> bool:
    """Parfums, cosmétiques, alimentaire : formats et lots très variables."""
    spec = CATEGORIES.get(category)
    return bool(spec and spec.size_variable)
