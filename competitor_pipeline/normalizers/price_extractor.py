"""
Extraction de prix à partir de texte libre (grammaire déclarative).

Une règle = un jeton devise (préfixe ou suffixe) + un jeton numérique,
avec une confiance de base. Les règles sont essayées par confiance
décroissante ; la première valeur plausible l'emporte.

Les tailles de stockage (256GB) et numéros de modèle (iPhone 16, S24)
présents dans le nom produit ne sont jamais lus comme des prix.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Set

# 1,299.99 | 1299.99 | 1299
NUMBER = r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
DECIMAL_NUMBER = r"(\d{1,3}(?:,\d{3})+\.\d{2}|\d+\.\d{2})"

CURRENCY_TOKENS: Dict[str, str] = {
    "SAR": r"SAR|SR|ريال|ریال|ر\.س\.?|﷼",
    "USD": r"\$|USD|US\$",
}

# Mentions commerciales autour d'un prix ("from", "as low as", "/mo"...)
_FILLER = re.compile(
    r"\b(?:from|as low as|starting at|save|off|each|per|month)\b|/mo\b",
    re.IGNORECASE,
)

_STORAGE = re.compile(r"(\d+)\s*(?:gb|tb)\b", re.IGNORECASE)
_MODEL_NUMBERS = [
    re.compile(r"iphone\s*(\d+)", re.IGNORECASE),
    re.compile(r"galaxy\s*[sza]?(\d+)", re.IGNORECASE),
    re.compile(r"pixel\s*(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)\s*(?:pro|max|mini|plus|ultra)\b", re.IGNORECASE),
]

MIN_PRICE = 50.0
MAX_PRICE = 1_000_000.0


@dataclass(frozen=True)
class PriceRule:
    name: str
    pattern: Pattern
    confidence: float
    currency_bound: bool = True
    # Les règles génériques rejettent les années (2018-2030)
    reject_years: bool = False


@dataclass(frozen=True)
class PriceMatch:
    price: float
    confidence: float
    rule: str


def build_rules(currency: str) -> List[PriceRule]:
    """Règles de la grammaire pour une devise, par confiance décroissante."""
    rules: List[PriceRule] = []
    token = CURRENCY_TOKENS.get(currency)

    if currency == "SAR":
        # Prix TTC affiché sans symbole (symbole riyal rendu en SVG)
        rules.append(PriceRule(
            name="vat_suffix",
            pattern=re.compile(rf"{NUMBER}\s*(?:incl\.?\s*)?vat\b", re.IGNORECASE),
            confidence=1.0,
        ))
    if token:
        rules.append(PriceRule(
            name="currency_prefix",
            pattern=re.compile(rf"(?:{token})\s*{NUMBER}", re.IGNORECASE),
            confidence=1.0,
        ))
        rules.append(PriceRule(
            name="currency_suffix",
            pattern=re.compile(rf"{NUMBER}\s*(?:{token})", re.IGNORECASE),
            confidence=0.9,
        ))

    rules.append(PriceRule(
        name="decimal",
        pattern=re.compile(rf"(?<![\d,.]){DECIMAL_NUMBER}(?![\d,])"),
        confidence=0.6,
        currency_bound=False,
        reject_years=True,
    ))
    rules.append(PriceRule(
        name="integer",
        pattern=re.compile(r"(?<![\d,.])(\d{1,3}(?:,\d{3})+|\d+)(?![\d,.])"),
        confidence=0.4,
        currency_bound=False,
        reject_years=True,
    ))
    return rules


def excluded_numbers(product_name: Optional[str]) -> Set[float]:
    """Nombres du nom produit à ne jamais prendre pour un prix."""
    excluded: Set[float] = set()
    if not product_name:
        return excluded
    for match in _STORAGE.finditer(product_name):
        excluded.add(float(match.group(1)))
    for pattern in _MODEL_NUMBERS:
        for match in pattern.finditer(product_name):
            excluded.add(float(match.group(1)))
    return excluded


def parse_number(raw: str) -> Optional[float]:
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None


def extract_price(
    text: str,
    currency: str,
    product_name: Optional[str] = None,
    min_price: float = MIN_PRICE,
    allow_generic: bool = True,
) -> Optional[PriceMatch]:
    """
    Extrait le prix le plus plausible d'un texte.

    Args:
        text: Texte d'un élément prix ou d'un conteneur complet
        currency: Devise attendue (SAR / USD)
        product_name: Nom produit (exclusion stockage / modèle)
        min_price: Valeur minimale acceptée
        allow_generic: Autoriser les règles sans jeton devise

    Returns:
        PriceMatch ou None si aucun prix plausible
    """
    if not text:
        return None

    cleaned = _FILLER.sub(" ", text)
    excluded = excluded_numbers(product_name)

    for rule in build_rules(currency):
        if not rule.currency_bound and not allow_generic:
            continue
        for match in rule.pattern.finditer(cleaned):
            price = parse_number(match.group(1))
            if price is None or price in excluded:
                continue
            if price < min_price or price >= MAX_PRICE:
                continue
            if rule.reject_years and price.is_integer() and 2018 <= price <= 2030:
                continue
            return PriceMatch(price=price, confidence=rule.confidence, rule=rule.name)
    return None


def has_currency_price(text: str, currency: str) -> bool:
    """Vrai si le texte contient un prix explicitement libellé dans la devise."""
    return extract_price(text, currency, min_price=0.01, allow_generic=False) is not None
