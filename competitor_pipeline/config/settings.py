"""
Configuration générale du pipeline concurrentiel.
"""

import os
from typing import List
from dataclasses import dataclass, field
from dotenv import load_dotenv
from pathlib import Path

# Charger .env depuis la racine du projet
project_root = Path(__file__).parent.parent.parent
load_dotenv(dotenv_path=project_root / ".env")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass
class Settings:
    """Configuration globale du pipeline."""

    # Base de données
    supabase_url: str
    supabase_key: str

    # Fournisseur de rendu (pages marketplaces)
    scrapingbee_api_key: str = ""

    # Timeout explicite par marketplace (secondes)
    marketplace_timeout_seconds: float = 25.0
    # Nombre de marketplaces interrogées en parallèle
    max_concurrent_marketplaces: int = 4

    # Similarité minimale pour accepter une offre (0.65 - 0.80)
    match_threshold: float = 0.70

    # Retry du rafraîchissement concurrentiel (orchestrateur)
    max_retries: int = 3
    retry_backoff_seconds: float = 3.0
    settle_delay_seconds: float = 1.0

    # Marketplaces à ignorer (ex: "jarir,target")
    disabled_marketplaces: List[str] = field(default_factory=list)

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Crée une instance Settings depuis les variables d'environnement.

        Raises:
            ValueError: Paramètre hors bornes (voir `validate`)
        """
        disabled = os.getenv("DISABLED_MARKETPLACES", "")
        settings = cls(
            supabase_url=os.getenv("SUPABASE_URL", ""),
            supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", os.getenv("SUPABASE_KEY", "")),
            scrapingbee_api_key=os.getenv("SCRAPINGBEE_API_KEY", ""),
            marketplace_timeout_seconds=_env_float("MARKETPLACE_TIMEOUT_SECONDS", 25.0),
            max_concurrent_marketplaces=_env_int("MAX_CONCURRENT_MARKETPLACES", 4),
            match_threshold=_env_float("MATCH_THRESHOLD", 0.70),
            max_retries=_env_int("MAX_RETRIES", 3),
            retry_backoff_seconds=_env_float("RETRY_BACKOFF_SECONDS", 3.0),
            settle_delay_seconds=_env_float("SETTLE_DELAY_SECONDS", 1.0),
            disabled_marketplaces=[m.strip() for m in disabled.split(",") if m.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Vérifie la cohérence des paramètres (lève ValueError)."""
        if not 0.65 <= self.match_threshold <= 0.80:
            raise ValueError(
                f"MATCH_THRESHOLD must be between 0.65 and 0.80, got {self.match_threshold}"
            )
        if self.marketplace_timeout_seconds <= 0:
            raise ValueError("MARKETPLACE_TIMEOUT_SECONDS must be positive")
        if self.max_concurrent_marketplaces < 1:
            raise ValueError("MAX_CONCURRENT_MARKETPLACES must be >= 1")
        if self.max_retries < 1:
            raise ValueError("MAX_RETRIES must be >= 1")
