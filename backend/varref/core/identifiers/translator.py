"""Display/system identifier translation.

Display identifiers (`@source.field#shortId`) follow source renames; system
identifiers (`@gv_<id>_<field>`) do not. Storage uses the system form and
the editor shows the display form. Both passes rewrite identifier spans in
place and leave every span they cannot resolve untouched.
"""

import logging
from typing import TYPE_CHECKING, Callable, Optional

from varref.core.identifiers.grammar import (
    IdentifierMatch,
    collapse_repeats,
    format_display_identifier,
    format_system_identifier,
    short_id_for,
    tokenize,
)
from varref.core.sync.channel import (
    IdentifierSyncChannel,
    IdentifiersUpdatedEvent,
    VARIABLE_IDENTIFIERS_UPDATED,
)
from varref.models.variables import VariableType
from varref.utils.text import safe_truncate

if TYPE_CHECKING:
    from varref.core.registry.cache import VariableRegistry

logger = logging.getLogger(__name__)


def _rewrite_spans(
    text: str,
    matches: list[IdentifierMatch],
    replace: Callable[[IdentifierMatch], Optional[str]],
) -> str:
    parts: list[str] = []
    pos = 0
    for m in matches:
        parts.append(text[pos:m.start])
        replacement = replace(m)
        parts.append(replacement if replacement is not None else m.match)
        pos = m.end
    parts.append(text[pos:])
    return "".join(parts)


def _system_for(m: IdentifierMatch, registry: "VariableRegistry") -> Optional[str]:
    if not m.is_display:
        return None

    # Short id disambiguates sources that share a name
    if m.short_id:
        record = registry.find_by_short_id(m.short_id, field_name=m.field)
        if record is not None:
            return format_system_identifier(record.id, m.field)

    record_id = registry.source_id_for(m.source)
    if record_id is None:
        logger.debug("No source named '%s', keeping %s", m.source, m.match)
        return None
    return format_system_identifier(record_id, m.field)


def _display_for(m: IdentifierMatch, registry: "VariableRegistry") -> Optional[str]:
    length = registry.short_id_length

    if m.is_system:
        if m.field:
            record = registry.find_by_system_id(m.id, m.field)
            field = m.field
        else:
            record = registry.find_by_id(m.id)
            field = record.field if record is not None else None
        if record is None:
            return None
        return format_display_identifier(
            record.source_name, field, short_id_for(record.id, length)
        )

    if m.short_id:
        record = registry.find_by_short_id(m.short_id, field_name=m.field)
        if record is None:
            record = registry.find_by_short_id(m.short_id)
    else:
        record = registry.find_by_source_field(m.source, m.field)

    if record is None or record.source_name == m.source:
        return None
    # Custom variables keep whatever name the author gave them
    if record.type == VariableType.CUSTOM:
        return None
    return format_display_identifier(record.source_name, m.field, m.short_id)


def to_system_form(
    text: str,
    registry: "VariableRegistry",
    channel: Optional[IdentifierSyncChannel] = None,
) -> str:
    """Rewrite display identifiers as `@gv_<id>_<field>`.

    Args:
        text: Raw text
        registry: Loaded variable registry
        channel: Optional channel notified when the text changes

    Returns:
        Text with every resolvable display identifier rewritten
    """
    normalized, matches = tokenize(text or "")
    updated = _rewrite_spans(normalized, matches, lambda m: _system_for(m, registry))
    _notify(text or "", updated, channel)
    return updated


def to_display_form(
    text: str,
    registry: "VariableRegistry",
    channel: Optional[IdentifierSyncChannel] = None,
) -> str:
    """Rewrite system and outdated display identifiers to current display form.

    Repeated identifiers are collapsed first. Field and short id are
    preserved; sources of custom variables are never renamed.
    """
    normalized, matches = tokenize(collapse_repeats(text or ""))
    updated = _rewrite_spans(normalized, matches, lambda m: _display_for(m, registry))
    _notify(text or "", updated, channel)
    return updated


def _notify(
    original: str,
    updated: str,
    channel: Optional[IdentifierSyncChannel],
) -> None:
    if original == updated:
        return
    logger.debug(
        "Identifiers updated: %s -> %s",
        safe_truncate(original),
        safe_truncate(updated),
    )
    if channel is not None:
        channel.publish(IdentifiersUpdatedEvent(original_text=original, updated_text=updated))


class IdentifierTranslator:
    """Registry-bound translator that publishes rewrites on a channel."""

    def __init__(
        self,
        registry: "VariableRegistry",
        channel: Optional[IdentifierSyncChannel] = None,
    ):
        self.registry = registry
        self.channel = channel or IdentifierSyncChannel()

    def to_system_form(self, text: str) -> str:
        return to_system_form(text, self.registry, self.channel)

    def to_display_form(self, text: str) -> str:
        return to_display_form(text, self.registry, self.channel)

    async def refresh_display_form(self, text: str) -> str:
        """Load the registry, then rewrite text to display form."""
        await self.registry.load()
        return self.to_display_form(text)


__all__ = [
    "IdentifierTranslator",
    "IdentifiersUpdatedEvent",
    "VARIABLE_IDENTIFIERS_UPDATED",
    "to_display_form",
    "to_system_form",
]
