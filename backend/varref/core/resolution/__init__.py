"""Identifier value resolution."""

from .engine import ResolutionEngine, resolve

__all__ = ["ResolutionEngine", "resolve"]
