"""Change notification and debounced re-synchronization."""

from .channel import (
    IdentifierSyncChannel,
    IdentifiersUpdatedEvent,
    VARIABLE_IDENTIFIERS_UPDATED,
)
from .debounce import Debouncer

__all__ = [
    "IdentifierSyncChannel",
    "IdentifiersUpdatedEvent",
    "VARIABLE_IDENTIFIERS_UPDATED",
    "Debouncer",
]
