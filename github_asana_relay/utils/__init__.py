"""Utility modules for shared functionality."""

from .hashing import color_for_option, rolling_hash_32
from .retry import retry_on_rate_limit

__all__ = [
    "color_for_option",
    "rolling_hash_32",
    "retry_on_rate_limit",
]
