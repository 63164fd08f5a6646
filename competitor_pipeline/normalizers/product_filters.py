"""
Filtres métier sur les annonces concurrentes.

- requêtes de recherche simplifiées (marque + modèle + stockage),
- détection des accessoires / pièces détachées,
- détection des générations / variantes différentes (iPhone, Galaxy),
- rejet des prix anormalement bas (5x sous la moyenne d'une marketplace).
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACCESSORY_KEYWORDS = (
    "replacement", "replace", "spare", "parts",
    "earpads", "ear pads", "ear pad", "cushion", "cushions", "foam", "tips",
    "case", "cover", "protective", "pouch", "bag",
    "cable", "cord", "wire", "adapter", "charger",
    "screen protector", "protector", "tempered glass", "film",
    "screen guard", "guard", "shield",
    "stand", "mount", "holder", "strap", "skin", "sticker", "decal",
    "pcs", "pieces", "set of", "pack of",
    "2 pack", "3 pack", "4 pack", "2-pack", "3-pack", "4-pack",
    "قطع غيار", "قطع", "غيار", "بديل", "حافظة", "كفر", "غطاء", "وسادة", "كابل",
)

_ACCESSORY_PATTERN = re.compile(
    "|".join(
        # Mots latins : frontières de mot ; arabe : sous-chaîne
        rf"\b{re.escape(keyword)}\b" if keyword.isascii() else re.escape(keyword)
        for keyword in ACCESSORY_KEYWORDS
    ),
    re.IGNORECASE,
)

_TITLE_NOISE = [
    re.compile(r"\([^)]*\)"),
    re.compile(r"\[[^\]]*\]"),
    re.compile(r","),
    re.compile(r"\bAI Phone\b", re.IGNORECASE),
    re.compile(r"\b(?:Titanium|Black|White|Blue|Green|Purple|Pink|Gold|Silver|Gray|Grey)\b", re.IGNORECASE),
    re.compile(r"\b(?:Unlocked|Factory Sealed|Brand New|Sealed|New)\b", re.IGNORECASE),
    re.compile(r"\b(?:Free Shipping|Fast Delivery|Same Day)\b", re.IGNORECASE),
    re.compile(r"\b(?:International|US|EU|UK|KSA)\s*(?:Version|Variant)?\b", re.IGNORECASE),
]

_STORAGE_TOKEN = re.compile(r"\s*\d+\s*(?:gb|tb)\b", re.IGNORECASE)

_IPHONE = re.compile(r"iphone\s*(\d+)\s*(pro\s*max|pro|plus|mini)?", re.IGNORECASE)
_GALAXY = re.compile(r"galaxy\s*([sza])(\d+)\s*(ultra|plus|fe)?", re.IGNORECASE)


def simplify_title(full_name: str, max_words: int = 6) -> str:
    """
    Marque + modèle + stockage, pour les recherches marketplace.

    "Samsung Galaxy S24 Ultra, AI Phone, 256GB, Titanium Black"
    → "Samsung Galaxy S24 Ultra 256GB"
    """
    cleaned = full_name
    for pattern in _TITLE_NOISE:
        cleaned = pattern.sub(" ", cleaned)
    words = [word for word in cleaned.split() if len(word) > 1]
    return " ".join(words[:max_words]).strip()


def build_search_queries(product_name: str, max_queries: int = 2) -> List[str]:
    """Requête principale puis une variante plus courte (sans stockage pour les iPhone)."""
    primary = simplify_title(product_name) or product_name.strip()
    queries = [primary]
    if "iphone" in product_name.lower():
        variant = _STORAGE_TOKEN.sub("", primary).strip()
    else:
        variant = " ".join(primary.split()[:4])
    if variant and variant != primary:
        queries.append(variant)
    return queries[:max_queries]


def is_accessory(product_name: str) -> bool:
    """Vrai si le titre désigne un accessoire ou une pièce détachée."""
    return bool(_ACCESSORY_PATTERN.search(product_name or ""))


@dataclass(frozen=True)
class ModelInfo:
    family: str = ""
    variant: str = ""
    generation: Optional[int] = None


def extract_model_info(product_name: str) -> ModelInfo:
    lower = (product_name or "").lower()
    if "iphone air" in lower:
        return ModelInfo(family="iphone-air", variant="air")

    match = _IPHONE.search(lower)
    if match:
        variant = re.sub(r"\s+", "", match.group(2) or "standard")
        return ModelInfo(family="iphone", variant=variant, generation=int(match.group(1)))

    match = _GALAXY.search(lower)
    if match:
        variant = f"{match.group(1)}{match.group(3) or ''}"
        return ModelInfo(family="galaxy", variant=variant, generation=int(match.group(2)))

    return ModelInfo()


def is_model_mismatch(baseline_name: str, competitor_name: str) -> bool:
    """
    Vrai si les deux titres désignent des modèles différents.

    Seules les familles reconnues (iPhone, Galaxy) sont comparées ;
    un titre sans famille reconnue n'est jamais considéré comme différent.
    """
    baseline = extract_model_info(baseline_name)
    competitor = extract_model_info(competitor_name)

    if not baseline.family or not competitor.family:
        return False
    if baseline.family != competitor.family:
        return True
    if (
        baseline.generation is not None
        and competitor.generation is not None
        and baseline.generation != competitor.generation
    ):
        return True
    return bool(baseline.variant and competitor.variant and baseline.variant != competitor.variant)


def filter_low_price_outliers(items: Sequence[T], price_of=lambda item: item.price) -> List[T]:
    """
    Retire les prix plus de 5 fois inférieurs à la moyenne.

    Appliqué par marketplace avant l'agrégation (prix d'accessoires,
    erreurs d'extraction de type "256").
    """
    if len(items) < 2:
        return list(items)
    average = sum(price_of(item) for item in items) / len(items)
    threshold = average / 5
    kept = [item for item in items if price_of(item) >= threshold]
    if len(kept) < len(items):
        logger.info(
            f"Low price outlier filter: {len(items)} -> {len(kept)} "
            f"(threshold {threshold:.2f}, average {average:.2f})"
        )
    return kept
