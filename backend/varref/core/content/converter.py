"""Conversion between raw identifier text and editor HTML.

The editor shows each variable as an atomic, non-editable inline tag. The
same document is also kept as raw text (tags replaced by their identifier
string) and as plain text (tags replaced by their visible label). This
module converts between those projections so that

    extract_raw(render_html(extract_raw(html))) == extract_raw(html)
"""

import html as html_lib
import logging
import re
from typing import Callable, Iterable, Optional

from bs4 import BeautifulSoup, Comment, Doctype, NavigableString, ProcessingInstruction, Tag

from varref.core.identifiers.grammar import (
    IdentifierMatch,
    find_identifiers,
    format_display_identifier,
    separate_adjacent,
    short_id_for,
)
from varref.core.registry.cache import VariableRegistry
from varref.core.registry.type_rules import DEFAULT_TYPE_RULES, TypeRule, infer_type
from varref.core.resolution.engine import ResolutionEngine
from varref.models.content import ContentTriple
from varref.models.variables import VariableType
from varref.utils.html import parse_fragment
from varref.utils.text import safe_truncate

logger = logging.getLogger(__name__)


class ContentFormatConverter:
    """Converts editor content between HTML, raw text and plain text."""

    VARIABLE_CLASS = "variable-tag"

    BLOCK_TAGS = frozenset({
        "p", "div", "li", "ul", "ol", "blockquote", "pre", "section",
        "article", "header", "footer", "table", "tr",
        "h1", "h2", "h3", "h4", "h5", "h6",
    })
    SKIP_TAGS = frozenset({"script", "style", "head", "title"})

    # Markup input that already starts with a block element is not re-wrapped
    BLOCK_START_PATTERN = re.compile(
        r"^\s*<(?:p|div|ul|ol|blockquote|pre|section|article|table|h[1-6])[\s>/]",
        re.IGNORECASE,
    )
    TAG_PATTERN = re.compile(r"<[^>]+>")

    def __init__(
        self,
        registry: Optional[VariableRegistry] = None,
        type_rules: Iterable[TypeRule] = DEFAULT_TYPE_RULES,
        short_id_length: Optional[int] = None,
    ):
        self.registry = registry
        self.type_rules = tuple(type_rules)
        if short_id_length is None:
            short_id_length = registry.short_id_length if registry is not None else 4
        self.short_id_length = short_id_length
        self._engine = ResolutionEngine(registry) if registry is not None else None

    # =========================================================================
    # Variable tag detection
    # =========================================================================

    @classmethod
    def is_variable_tag(cls, tag) -> bool:
        """Check whether an element is a rendered variable."""
        if not isinstance(tag, Tag) or not tag.attrs:
            return False
        attrs = tag.attrs
        if "data-variable" in attrs or "identifier" in attrs:
            return True
        if attrs.get("data-type") == "variable":
            return True
        classes = attrs.get("class") or []
        if isinstance(classes, str):
            classes = classes.split()
        return cls.VARIABLE_CLASS in classes

    @staticmethod
    def identifier_of(tag: Tag) -> str:
        """Identifier string carried by a variable tag, always `@`-prefixed."""
        identifier = tag.get("data-identifier") or tag.get("identifier") or ""
        if isinstance(identifier, list):
            identifier = " ".join(identifier)
        identifier = identifier.strip() or tag.get_text().strip()
        if identifier and not identifier.startswith("@"):
            identifier = "@" + identifier
        return identifier

    # =========================================================================
    # HTML -> text
    # =========================================================================

    def extract_raw(self, html: str) -> str:
        """Raw text of an HTML fragment, variable tags as identifier strings.

        Identifiers left glued together are separated by one space. Malformed
        markup degrades to a tag-stripping fallback and, in the worst case,
        an empty string.
        """
        if not html:
            return ""
        try:
            raw = self._walk(html, self.identifier_of)
        except Exception as e:
            logger.warning("Failed to parse editor HTML, stripping tags: %s", e)
            raw = self._strip_tags(html)
        return separate_adjacent(raw)

    def to_plain_text(self, html: str) -> str:
        """Visible text of an HTML fragment, variable tags as their labels."""
        if not html:
            return ""
        try:
            return self._walk(html, lambda tag: tag.get_text())
        except Exception as e:
            logger.warning("Failed to parse editor HTML, stripping tags: %s", e)
            return self._strip_tags(html)

    def _strip_tags(self, html: str) -> str:
        try:
            return html_lib.unescape(self.TAG_PATTERN.sub("", html))
        except Exception as e:
            logger.error("Could not extract text from HTML: %s", e)
            return ""

    def _walk(self, html: str, label_of: Callable[[Tag], str]) -> str:
        _, container = parse_fragment(html)
        out: list[str] = []
        # Set when a block just closed; the next content starts a new line
        block_closed = False

        def break_line() -> None:
            nonlocal block_closed
            if block_closed:
                out.append("\n")
                block_closed = False

        def visit(node) -> None:
            nonlocal block_closed
            if isinstance(node, (Comment, Doctype, ProcessingInstruction)):
                return
            if isinstance(node, NavigableString):
                text = str(node)
                if block_closed and not text.strip():
                    return
                break_line()
                out.append(text)
                return
            if not isinstance(node, Tag) or node.name in self.SKIP_TAGS:
                return

            if self.is_variable_tag(node):
                break_line()
                out.append(label_of(node))
                return

            if node.name == "br":
                break_line()
                if not self._is_trailing_br(node):
                    out.append("\n")
                return

            if node.name in self.BLOCK_TAGS:
                if block_closed:
                    break_line()
                elif "".join(out).strip() and not out[-1].endswith("\n"):
                    out.append("\n")
                for child in node.children:
                    visit(child)
                block_closed = True
                return

            for child in node.children:
                visit(child)

        for child in container.children:
            visit(child)
        return "".join(out)

    def _is_trailing_br(self, tag: Tag) -> bool:
        if tag.parent is None or tag.parent.name not in self.BLOCK_TAGS:
            return False
        for sibling in tag.next_siblings:
            if isinstance(sibling, NavigableString) and not str(sibling).strip():
                continue
            return False
        return True

    # =========================================================================
    # Text -> HTML
    # =========================================================================

    def render_html(self, raw_text: str, markup: bool = False) -> str:
        """Render raw text as editor HTML.

        Raw text is literal: it is split into one paragraph per line and any
        angle brackets in it stay text. With `markup=True` the input is
        parsed as HTML instead, and wrapped in a paragraph only when it does
        not start with a block element. Every identifier, resolvable or not,
        becomes a variable tag.
        """
        if not raw_text:
            return ""
        text = separate_adjacent(raw_text.replace("\r\n", "\n"))

        if markup:
            if not self.BLOCK_START_PATTERN.match(text):
                text = f"<p>{text}</p>"
            soup, container = parse_fragment(text)
        else:
            soup = BeautifulSoup("<div></div>", "lxml")
            container = soup.div
            for line in text.split("\n"):
                paragraph = soup.new_tag("p")
                if line:
                    paragraph.append(soup.new_string(line))
                container.append(paragraph)

        self._tag_identifiers(soup, container)
        html = container.decode_contents()
        logger.debug("Rendered %s -> %s", safe_truncate(raw_text), safe_truncate(html))
        return html

    def _tag_identifiers(self, soup: BeautifulSoup, container: Tag) -> None:
        for node in list(container.find_all(string=True)):
            if isinstance(node, (Comment, Doctype, ProcessingInstruction)):
                continue
            if "@" not in node:
                continue
            if any(
                self.is_variable_tag(parent) or parent.name in self.SKIP_TAGS
                for parent in node.parents
            ):
                continue

            text = str(node)
            matches = find_identifiers(text)
            if not matches:
                continue

            pieces = []
            pos = 0
            for m in matches:
                if m.start > pos:
                    pieces.append(soup.new_string(text[pos:m.start]))
                pieces.append(self._build_variable_tag(soup, m))
                pos = m.end
            if pos < len(text):
                pieces.append(soup.new_string(text[pos:]))
            node.replace_with(*pieces)

    def _build_variable_tag(self, soup: BeautifulSoup, m: IdentifierMatch) -> Tag:
        record = self._engine.lookup(m) if self._engine is not None else None
        label = m.match

        if record is not None:
            var_type = record.type
            source_name = record.source_name if m.is_system else m.source
            field = m.field or record.field
            record_id = record.id
            if m.is_system:
                label = format_display_identifier(
                    record.source_name, field, short_id_for(record.id, self.short_id_length)
                )
        elif m.is_display:
            var_type = infer_type(m.source, self.type_rules)
            source_name = m.source
            field = m.field
            record_id = ""
        else:
            var_type = VariableType.UNKNOWN
            source_name = ""
            field = m.field or ""
            record_id = m.id

        short_id = m.short_id or (short_id_for(record_id, self.short_id_length) if record_id else "")

        tag = soup.new_tag(
            "span",
            attrs={
                "identifier": m.match,
                "sourcename": source_name,
                "type": var_type.value,
                "data-variable": "",
                "data-identifier": m.match,
                "data-type": var_type.value,
                "data-source-name": source_name,
                "data-field": field,
                "data-id": record_id,
                "data-short-id": short_id,
                "class": self.VARIABLE_CLASS,
                "contenteditable": "false",
            },
        )
        tag.string = label
        return tag

    # =========================================================================
    # Triples
    # =========================================================================

    def triple_from_raw(self, raw_text: str, markup: bool = False) -> ContentTriple:
        """Build all three projections from raw text."""
        html = self.render_html(raw_text, markup=markup)
        return ContentTriple(
            html=html,
            raw_text=self.extract_raw(html),
            plain_text=self.to_plain_text(html),
        )

    def triple_from_html(self, html: str) -> ContentTriple:
        """Build all three projections from editor HTML, keeping the HTML."""
        return ContentTriple(
            html=html or "",
            raw_text=self.extract_raw(html),
            plain_text=self.to_plain_text(html),
        )
