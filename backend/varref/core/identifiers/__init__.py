"""Identifier grammar and display/system translation."""

from .grammar import (
    DISPLAY,
    SYSTEM,
    IdentifierMatch,
    collapse_repeats,
    find_identifiers,
    find_legacy_identifiers,
    format_display_identifier,
    format_system_identifier,
    has_markup,
    parse_identifier,
    parse_legacy_system_identifier,
    separate_adjacent,
    short_id_for,
    strip_markup,
    tokenize,
)
from .translator import (
    IdentifierTranslator,
    IdentifiersUpdatedEvent,
    VARIABLE_IDENTIFIERS_UPDATED,
    to_display_form,
    to_system_form,
)

__all__ = [
    "DISPLAY",
    "SYSTEM",
    "IdentifierMatch",
    "collapse_repeats",
    "find_identifiers",
    "find_legacy_identifiers",
    "format_display_identifier",
    "format_system_identifier",
    "has_markup",
    "parse_identifier",
    "parse_legacy_system_identifier",
    "separate_adjacent",
    "short_id_for",
    "strip_markup",
    "tokenize",
    "IdentifierTranslator",
    "IdentifiersUpdatedEvent",
    "VARIABLE_IDENTIFIERS_UPDATED",
    "to_display_form",
    "to_system_form",
]
