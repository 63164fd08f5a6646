"""
Configurations des rate limits par fournisseur.

À ajuster selon le plan souscrit auprès de chaque fournisseur.
"""

import logging
from competitor_pipeline.collectors.rate_limiter import RateLimitConfig, RateLimiter

logger = logging.getLogger(__name__)

# Configuration par défaut (limites génériques)
DEFAULT_RATE_LIMIT = RateLimitConfig(
    requests_per_minute=60,
    requests_per_hour=1000,
)

RATE_LIMIT_CONFIGS = {
    # ScrapingBee : concurrence limitée par plan, chaque rendu JS coûte 5 crédits
    "scrapingbee": RateLimitConfig(
        requests_per_minute=30,
        requests_per_hour=1000,
        requests_per_day=10000,
    ),
}


def get_rate_limit_config(source_name: str) -> RateLimitConfig:
    """
    Retourne la configuration de rate limit pour une source donnée.

    Returns:
        RateLimitConfig pour la source, ou DEFAULT_RATE_LIMIT si non trouvé
    """
    source_lower = source_name.lower()
    if source_lower in RATE_LIMIT_CONFIGS:
        return RATE_LIMIT_CONFIGS[source_lower]

    logger.warning(f"No rate limit config found for '{source_name}', using default")
    return DEFAULT_RATE_LIMIT


def create_rate_limiter(source_name: str) -> RateLimiter:
    """Crée un RateLimiter configuré pour une source donnée."""
    return RateLimiter(config=get_rate_limit_config(source_name), source_name=source_name)
