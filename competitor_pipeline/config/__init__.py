"""Configuration module for competitor pipeline."""

from .api_keys import get_api_key, require_api_key, API_SERVICES
from .settings import Settings
from .marketplace_config import (
    MARKETPLACES,
    MarketplaceConfig,
    RenderOptions,
    get_marketplaces_for_currency,
)
from .rate_limit_configs import (
    get_rate_limit_config,
    create_rate_limiter,
    RATE_LIMIT_CONFIGS,
    DEFAULT_RATE_LIMIT
)

__all__ = [
    "get_api_key",
    "require_api_key",
    "API_SERVICES",
    "Settings",
    "MARKETPLACES",
    "MarketplaceConfig",
    "RenderOptions",
    "get_marketplaces_for_currency",
    "get_rate_limit_config",
    "create_rate_limiter",
    "RATE_LIMIT_CONFIGS",
    "DEFAULT_RATE_LIMIT"
]
