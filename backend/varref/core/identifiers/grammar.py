"""Identifier grammar.

Recognizes the variable reference syntaxes inside arbitrary text:

- display identifiers: ``@source.field`` or ``@source.field#shortId``
- system identifiers: ``@gv_<id>_<field>`` or the field-less ``@gv_<id>``
- legacy system identifiers: ``@gv_<type>_<id>_<field>-=`` (read only)

All functions here are pure. Matching is bounded by ASCII word characters
only, so CJK text directly before or after an identifier is a boundary.
"""

import re
from dataclasses import dataclass
from typing import Optional

from varref.utils.html import parse_fragment

DISPLAY = "display"
SYSTEM = "system"

SYSTEM_PREFIX = "@gv_"

_WORD = r"A-Za-z0-9_"
_CJK = r"\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff"

# Display first: `@gv_abc.name` is a display identifier whose source is `gv_abc`
_IDENTIFIER_BODY = (
    rf"@(?:"
    rf"(?P<source>[{_WORD}{_CJK}]+)\.(?P<field>[{_WORD}]+)"
    rf"(?:#(?P<short_id>[A-Za-z0-9]{{4,6}}))?"
    rf"|gv_(?P<id>[A-Za-z0-9-]+)(?:_(?P<sys_field>[{_WORD}]+))?"
    rf")"
)

# Same shape without groups, for lookaheads
_BARE_BODY = (
    rf"@(?:[{_WORD}{_CJK}]+\.[{_WORD}]+|gv_[A-Za-z0-9-]+)"
)

IDENTIFIER_PATTERN = re.compile(
    rf"(?<![{_WORD}]){_IDENTIFIER_BODY}(?![{_WORD}])"
)

# Identifier immediately followed by another identifier
ADJACENT_PATTERN = re.compile(
    rf"(?<![{_WORD}]){_IDENTIFIER_BODY}(?={_BARE_BODY})"
)

# Same display identifier written twice or more with nothing between. A
# repeat followed by `#` carries its own short id and is a different identifier
REPEAT_PATTERN = re.compile(
    rf"(?<![{_WORD}])(@[{_WORD}{_CJK}]+\.[{_WORD}]+(?:#[A-Za-z0-9]{{4,6}})?)(?:\1)+(?![{_WORD}#])"
)

# `@gv_<type>_<id>_<field>-=`, written by early editor builds
LEGACY_SYSTEM_PATTERN = re.compile(
    rf"(?<![{_WORD}])@gv_(?P<type>[A-Za-z]+)_(?P<id>[A-Za-z0-9-]+)_(?P<field>[A-Za-z0-9_]+)-="
)

MARKUP_PATTERN = re.compile(r"<[^>]+>")


@dataclass(frozen=True)
class IdentifierMatch:
    """One identifier occurrence inside a text."""

    match: str
    start: int
    end: int
    kind: str
    field: Optional[str] = None
    source: Optional[str] = None
    short_id: Optional[str] = None
    id: Optional[str] = None

    @property
    def is_display(self) -> bool:
        return self.kind == DISPLAY

    @property
    def is_system(self) -> bool:
        return self.kind == SYSTEM


def _to_match(m: re.Match) -> IdentifierMatch:
    if m.group("source") is not None:
        return IdentifierMatch(
            match=m.group(0),
            start=m.start(),
            end=m.end(),
            kind=DISPLAY,
            source=m.group("source"),
            field=m.group("field"),
            short_id=m.group("short_id"),
        )
    return IdentifierMatch(
        match=m.group(0),
        start=m.start(),
        end=m.end(),
        kind=SYSTEM,
        id=m.group("id"),
        field=m.group("sys_field"),
    )


def find_identifiers(text: str) -> list[IdentifierMatch]:
    """Find every identifier in text, in order of appearance.

    Legacy `@gv_<type>_<id>_<field>-=` tokens are reported as one system
    identifier each. The text is scanned verbatim. Identifiers glued to
    another identifier are not bounded and therefore not found; run
    separate_adjacent() first, or use tokenize().
    """
    if not text:
        return []
    legacy = find_legacy_identifiers(text)
    matches = [
        _to_match(m)
        for m in IDENTIFIER_PATTERN.finditer(text)
        if not any(old.start <= m.start() < old.end for old in legacy)
    ]
    if not legacy:
        return matches
    return sorted(legacy + matches, key=lambda m: m.start)


def separate_adjacent(text: str) -> str:
    """Insert exactly one space between identifiers written back to back."""
    if not text or "@" not in text:
        return text or ""
    previous = None
    # A run of N glued identifiers needs up to N-1 passes since the
    # lookbehind of each match depends on the space inserted before it
    while previous != text:
        previous = text
        text = ADJACENT_PATTERN.sub(lambda m: m.group(0) + " ", text)
    return text


def collapse_repeats(text: str) -> str:
    """Collapse a display identifier concatenated with itself to one occurrence."""
    if not text or "@" not in text:
        return text or ""
    return REPEAT_PATTERN.sub(r"\1", text)


def has_markup(text: str) -> bool:
    return bool(text) and MARKUP_PATTERN.search(text) is not None


def strip_markup(text: str) -> str:
    """Remove embedded HTML fragments, keeping their text content."""
    if not has_markup(text):
        return text or ""
    _, container = parse_fragment(text)
    return container.get_text()


def tokenize(text: str) -> tuple[str, list[IdentifierMatch]]:
    """Normalize adjacency and find identifiers.

    Returns:
        Tuple of (normalized text, matches whose offsets refer to it)
    """
    normalized = separate_adjacent(text)
    return normalized, find_identifiers(normalized)


def parse_identifier(token: str) -> Optional[IdentifierMatch]:
    """Parse a single token that must be exactly one identifier."""
    if not token:
        return None
    token = token.strip()
    legacy = LEGACY_SYSTEM_PATTERN.fullmatch(token)
    if legacy:
        return _legacy_match(legacy)
    m = IDENTIFIER_PATTERN.fullmatch(token)
    if not m:
        return None
    return _to_match(m)


def parse_legacy_system_identifier(token: str) -> Optional[IdentifierMatch]:
    """Parse an old-style `@gv_<type>_<id>_<field>-=` token.

    The type segment is dropped; only id and field take part in lookups.
    """
    if not token:
        return None
    m = LEGACY_SYSTEM_PATTERN.fullmatch(token.strip())
    if not m:
        return None
    return _legacy_match(m)


def find_legacy_identifiers(text: str) -> list[IdentifierMatch]:
    if not text or "-=" not in text:
        return []
    return [_legacy_match(m) for m in LEGACY_SYSTEM_PATTERN.finditer(text)]


def _legacy_match(m: re.Match) -> IdentifierMatch:
    return IdentifierMatch(
        match=m.group(0),
        start=m.start(),
        end=m.end(),
        kind=SYSTEM,
        id=m.group("id"),
        field=m.group("field"),
    )


def short_id_for(record_id: str, length: int = 4) -> str:
    return (record_id or "")[:length]


def format_system_identifier(record_id: str, field: Optional[str] = None) -> str:
    if field:
        return f"{SYSTEM_PREFIX}{record_id}_{field}"
    return f"{SYSTEM_PREFIX}{record_id}"


def format_display_identifier(
    source: str,
    field: str,
    short_id: Optional[str] = None,
) -> str:
    if short_id:
        return f"@{source}.{field}#{short_id}"
    return f"@{source}.{field}"
