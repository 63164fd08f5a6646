"""Utils module for competitor pipeline."""

from .validators import validate_data, validate_schema

__all__ = [
    "validate_data",
    "validate_schema",
]
