"""Fractional position keys for durable sibling order."""

from __future__ import annotations

from .fractional import (
    BASE_62_DIGITS,
    generate_key_between,
    generate_n_keys_between,
    validate_order_key,
)

__all__ = [
    "BASE_62_DIGITS",
    "generate_key_between",
    "generate_n_keys_between",
    "validate_order_key",
]
