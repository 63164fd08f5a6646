"""Collectors module for competitor pipeline."""

from .base_collector import BaseCollector
from .marketplace_collector import (
    MarketplaceCollector,
    MarketplaceScrapeResult,
    ScrapedProduct,
)
from .rate_limiter import RateLimiter, RateLimitConfig
from .render_client import RenderedContentProvider, ScrapingBeeRenderer

__all__ = [
    "BaseCollector",
    "MarketplaceCollector",
    "MarketplaceScrapeResult",
    "ScrapedProduct",
    "RateLimiter",
    "RateLimitConfig",
    "RenderedContentProvider",
    "ScrapingBeeRenderer",
]
