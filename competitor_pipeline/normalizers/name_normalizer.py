"""
Normalisation des noms produit et score de similarité.

`normalize` canonise un titre (baseline ou annonce concurrente) et
`similarity` compare deux titres normalisés via la distance de Levenshtein.
Le même score sert à filtrer les annonces et à pondérer l'agrégation.
"""

import re
from typing import List

# Contenu entre parenthèses / crochets : couleur, capacité, mentions vendeur
_BRACKETED = re.compile(r"\([^)]*\)|\[[^\]]*\]")
# Qualificatif final séparé par un tiret entouré d'espaces (" - Black", " – Renewed")
_DASH_QUALIFIER = re.compile(r"\s+[-–—]\s+")
# Tout ce qui n'est ni lettre/chiffre ASCII ni bloc arabe U+0600–U+06FF
_DISALLOWED = re.compile(r"[^a-z0-9\u0600-\u06ff]+")
# Année de modèle sur deux chiffres ("'24" devient le token "24")
_MODEL_YEAR = re.compile(r"^2\d$")

STOPWORDS = frozenset({
    "the", "with", "for", "and", "or", "in", "new",
    "original", "genuine", "authentic", "official", "brand",
})


def tokenize(name: str) -> List[str]:
    """Tokens normalisés d'un nom produit."""
    text = (name or "").lower()
    text = _BRACKETED.sub(" ", text)

    # Garder la partie avant le premier " - " (si elle n'est pas vide)
    head = _DASH_QUALIFIER.split(text, maxsplit=1)[0]
    if head.strip():
        text = head

    text = _DISALLOWED.sub(" ", text)
    return [
        token for token in text.split()
        if token not in STOPWORDS and not _MODEL_YEAR.match(token)
    ]


def normalize(name: str) -> str:
    """
    Canonise un nom produit.

    Idempotent : normalize(normalize(x)) == normalize(x).
    """
    return " ".join(tokenize(name))


def levenshtein(a: str, b: str) -> int:
    """Distance d'édition (insertion, suppression, substitution)."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


def similarity_normalized(na: str, nb: str) -> float:
    """Similarité de deux noms déjà normalisés."""
    longest = max(len(na), len(nb))
    if longest == 0:
        return 0.0
    if na == nb:
        return 1.0
    score = 1.0 - levenshtein(na, nb) / longest
    return max(0.0, min(1.0, score))


def similarity(a: str, b: str) -> float:
    """
    Score dans [0, 1] entre deux noms produit.

    1.0 exactement si les deux noms normalisés sont identiques ;
    0.0 si les deux sont vides après normalisation.
    """
    return similarity_normalized(normalize(a), normalize(b))
