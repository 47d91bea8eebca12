"""Shared models for the variable engine."""

from .content import ContentTriple
from .variables import VariableRecord, VariableType

__all__ = [
    "ContentTriple",
    "VariableRecord",
    "VariableType",
]
