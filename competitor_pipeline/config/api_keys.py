"""
Gestion des clés API des fournisseurs externes.
"""

import os
from typing import Optional
from dotenv import load_dotenv
from pathlib import Path

# Charger .env depuis la racine du projet (même chemin que settings.py)
project_root = Path(__file__).parent.parent.parent
load_dotenv(dotenv_path=project_root / ".env")


def get_api_key(service_name: str, default: Optional[str] = None) -> Optional[str]:
    """
    Récupère la clé API pour un service donné.

    Args:
        service_name: Nom du service (ex: 'SCRAPINGBEE')
        default: Valeur par défaut si la clé n'est pas trouvée

    Returns:
        La clé API ou None si non trouvée
    """
    env_key = f"{service_name}_API_KEY"
    return os.getenv(env_key, default)


def require_api_key(service_name: str) -> str:
    """Comme `get_api_key`, mais lève ValueError si la clé est absente."""
    api_key = get_api_key(service_name)
    if not api_key:
        raise ValueError(f"{service_name}_API_KEY environment variable is not configured")
    return api_key


class API_SERVICES:
    """Constantes pour les noms de services API."""
    SCRAPINGBEE = "SCRAPINGBEE"  # Rendu JS + proxy des pages marketplaces
