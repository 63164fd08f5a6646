"""Normalizers module for competitor pipeline."""

from .name_normalizer import normalize, similarity
from .price_extractor import extract_price
from .listing_parser import ListingParser, RawListing
from .product_filters import (
    build_search_queries,
    filter_low_price_outliers,
    is_accessory,
    is_model_mismatch,
)

__all__ = [
    "normalize",
    "similarity",
    "extract_price",
    "ListingParser",
    "RawListing",
    "build_search_queries",
    "filter_low_price_outliers",
    "is_accessory",
    "is_model_mismatch",
]
