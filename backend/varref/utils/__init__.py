"""Utility modules for the varref backend."""

from .html import parse_fragment
from .text import normalize_key, safe_truncate

__all__ = ["normalize_key", "parse_fragment", "safe_truncate"]
