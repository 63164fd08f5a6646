"""
Validateurs des lignes écrites par le pipeline concurrentiel.
"""

import logging
from typing import Any, Dict, Iterable, List

logger = logging.getLogger(__name__)

NUMBER = (int, float)

SCHEMAS: Dict[str, Dict[str, Any]] = {
    "competitor_products": {
        "baseline_id": str,
        "marketplace": str,
        "product_name": str,
        "price": NUMBER,
        "similarity_score": NUMBER,
        "price_ratio": NUMBER,
        "rank": int,
    },
    "competitor_prices": {
        "baseline_id": str,
        "marketplace": str,
        "fetch_status": str,
        "products_found": int,
    },
}


def validate_data(data: Dict[str, Any], schema: Dict[str, Any]) -> bool:
    """
    Valide des données selon un schéma.
    
    Args:
        data: Données à valider
        schema: Schéma avec {field: type ou tuple de types}
        
    Returns:
        True si valides
    """
    for field, expected_type in schema.items():
        if field not in data:
            logger.warning(f"Missing field: {field}")
            return False
        
        value = data[field]
        # bool est un int : jamais accepté comme nombre
        if value is not None and (isinstance(value, bool) or not isinstance(value, expected_type)):
            logger.warning(
                f"Invalid type for {field}: expected {expected_type}, "
                f"got {type(value)}"
            )
            return False
    
    return True


def validate_schema(table_name: str, data: Dict[str, Any]) -> bool:
    """
    Valide une ligne selon le schéma de sa table, plus les bornes métier.
    
    Args:
        table_name: 'competitor_products' ou 'competitor_prices'
        data: Ligne à écrire
        
    Returns:
        True si valide

    Raises:
        KeyError: Table inconnue
    """
    if not validate_data(data, SCHEMAS[table_name]):
        return False

    if table_name == "competitor_products":
        if data["price"] <= 0:
            logger.warning(f"Non-positive price for {data['marketplace']}: {data['price']}")
            return False
        if not 0.0 <= data["similarity_score"] <= 1.0:
            logger.warning(f"Similarity out of [0, 1]: {data['similarity_score']}")
            return False
    return True


def filter_valid_rows(table_name: str, rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Ne garde que les lignes valides (les autres sont journalisées)."""
    valid = [row for row in rows if validate_schema(table_name, row)]
    return valid
