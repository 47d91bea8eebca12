"""Variable value substitution.

The engine replaces every identifier in raw text with the current value of
the record it refers to. Identifiers that match no record stay verbatim;
resolution never fails.
"""

import logging
from typing import TYPE_CHECKING, Optional

from varref.core.identifiers.grammar import (
    IdentifierMatch,
    find_identifiers,
    parse_identifier,
    separate_adjacent,
)
from varref.models.variables import VariableRecord
from varref.utils.html import parse_fragment
from varref.utils.text import safe_truncate

if TYPE_CHECKING:
    from varref.core.content.converter import ContentFormatConverter
    from varref.core.registry.cache import VariableRegistry

logger = logging.getLogger(__name__)


class ResolutionEngine:
    """Resolves identifiers against a VariableRegistry."""

    def __init__(self, registry: "VariableRegistry"):
        self.registry = registry

    # =========================================================================
    # Lookup
    # =========================================================================

    def lookup(self, m: IdentifierMatch) -> Optional[VariableRecord]:
        """Find the record an identifier refers to.

        Display identifiers are tried in order of decreasing precision:
        1. exact (source, field) whose id starts with the short id
        2. exact (source, field)
        3. case-insensitive (source, field)
        4. short id prefix with the same field
        Ties go to the first record in catalog order.
        """
        if m.is_system:
            return self.registry.find_by_system_id(m.id, m.field)

        exact = self.registry.records_by_source_field(m.source, m.field)
        if m.short_id:
            prefix = m.short_id.casefold()
            for record in exact:
                if record.id.casefold().startswith(prefix):
                    return record
        if exact:
            return exact[0]

        folded = self.registry.records_by_source_field(m.source, m.field, mode="casefold")
        if folded:
            return folded[0]

        if m.short_id:
            return self.registry.find_by_short_id(m.short_id, field_name=m.field)
        return None

    def lookup_token(self, token: str) -> Optional[VariableRecord]:
        """Resolve a single identifier string, including legacy system tokens."""
        m = parse_identifier(token)
        return self.lookup(m) if m is not None else None

    # =========================================================================
    # Substitution
    # =========================================================================

    def scan(self, text: str) -> list[IdentifierMatch]:
        """Identifiers in text, legacy system tokens included, by position."""
        return find_identifiers(text)

    def resolve(self, text: str) -> str:
        """Substitute every resolvable identifier with its value.

        Adjacent identifiers are separated by one space first, so the result
        for `@a.b@c.d` is `<value> <value>`.
        """
        if not text or "@" not in text:
            return text or ""

        text = separate_adjacent(text)

        parts: list[str] = []
        pos = 0
        resolved = unresolved = 0
        for m in self.scan(text):
            parts.append(text[pos:m.start])
            record = self.lookup(m)
            if record is None:
                parts.append(m.match)
                unresolved += 1
            else:
                parts.append(record.value)
                resolved += 1
            pos = m.end
        parts.append(text[pos:])

        logger.debug(
            "Resolved %d identifiers (%d unresolved) in: %s",
            resolved,
            unresolved,
            safe_truncate(text),
        )
        return "".join(parts)

    def find_unresolved(self, text: str) -> list[str]:
        """List identifiers in text that match no record, without duplicates."""
        unresolved: list[str] = []
        for m in self.scan(separate_adjacent(text or "")):
            if self.lookup(m) is None and m.match not in unresolved:
                unresolved.append(m.match)
        return unresolved

    def resolve_html(
        self,
        html: str,
        converter: Optional["ContentFormatConverter"] = None,
    ) -> str:
        """Replace variable tags in an HTML fragment with their values.

        Other markup is kept. Identifiers written as plain text inside the
        fragment are resolved too.
        """
        if not html:
            return ""
        if converter is None:
            from varref.core.content.converter import ContentFormatConverter

            converter = ContentFormatConverter(self.registry)

        _, container = parse_fragment(html)

        for node in list(container.find_all(string=True)):
            if "@" not in node:
                continue
            if any(converter.is_variable_tag(parent) for parent in node.parents):
                continue
            resolved = self.resolve(str(node))
            if resolved != str(node):
                node.replace_with(resolved)

        for tag in list(container.find_all(converter.is_variable_tag)):
            identifier = converter.identifier_of(tag)
            record = self.lookup_token(identifier)
            tag.replace_with(record.value if record is not None else identifier)

        return container.decode_contents()


def resolve(text: str, registry: "VariableRegistry") -> str:
    """Module-level shortcut for ResolutionEngine(registry).resolve(text)."""
    return ResolutionEngine(registry).resolve(text)
