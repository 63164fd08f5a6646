"""Jobs module for competitor pipeline."""

from .refresh_competitors import refresh_competitor_data

__all__ = [
    "refresh_competitor_data",
]
