"""Editor-facing facade over the resolution pipeline.

An EditorSession holds one document as a ContentTriple and keeps its three
projections consistent as content is typed, pasted, inserted or replaced
programmatically.
"""

import logging
from typing import Optional

from varref.core.content.converter import ContentFormatConverter
from varref.core.identifiers.grammar import has_markup, separate_adjacent, tokenize
from varref.core.identifiers.translator import IdentifierTranslator
from varref.core.registry.cache import VariableRegistry
from varref.core.resolution.engine import ResolutionEngine
from varref.core.sync.channel import IdentifierSyncChannel
from varref.core.sync.debounce import Debouncer
from varref.models.content import ContentTriple
from varref.models.variables import VariableRecord
from varref.utils.text import safe_truncate

logger = logging.getLogger(__name__)


class EditorSession:
    """One editable document bound to a shared VariableRegistry."""

    def __init__(
        self,
        registry: VariableRegistry,
        channel: Optional[IdentifierSyncChannel] = None,
        converter: Optional[ContentFormatConverter] = None,
        edit_debounce_ms: int = 300,
        paste_debounce_ms: int = 100,
    ):
        self.registry = registry
        self.channel = channel or IdentifierSyncChannel()
        self.translator = IdentifierTranslator(registry, self.channel)
        self.converter = converter or ContentFormatConverter(registry)
        self.engine = ResolutionEngine(registry)

        self._content = ContentTriple()
        self._edit_debouncer = Debouncer(edit_debounce_ms / 1000, self.recognize_variables)
        self._paste_debouncer = Debouncer(paste_debounce_ms / 1000, self.recognize_variables)

    # =========================================================================
    # Reading
    # =========================================================================

    def get_raw_content(self) -> str:
        return self._content.raw_text

    def get_rich_content(self) -> ContentTriple:
        return self._content.model_copy()

    async def get_resolved_content(self) -> str:
        """Resolve the current content against a freshly loaded catalog.

        Falls back to the raw text if resolution fails.
        """
        raw = self._content.raw_text
        try:
            self.registry.clear_cache()
            await self.registry.load()
            return self.engine.resolve(raw)
        except Exception as e:
            logger.warning("Failed to resolve editor content, returning raw text: %s", e)
            return raw

    def get_storage_content(self) -> str:
        """Raw text with display identifiers rewritten to system form."""
        return self.translator.to_system_form(self._content.raw_text)

    def get_used_variables(self) -> list[VariableRecord]:
        """Distinct records referenced by the current content, in order."""
        used: list[VariableRecord] = []
        seen: set[tuple[str, str]] = set()
        _, matches = tokenize(self._content.raw_text)
        for identifier in matches:
            record = self.engine.lookup(identifier)
            if record is None or record.key in seen:
                continue
            seen.add(record.key)
            used.append(record)
        return used

    # =========================================================================
    # Writing
    # =========================================================================

    def insert_variable(self, record: VariableRecord) -> str:
        """Append a variable to the content as its system identifier.

        Returns:
            The inserted identifier
        """
        identifier = record.system_identifier
        raw = self._content.raw_text
        if raw and not raw[-1].isspace():
            raw += " "
        self._set_raw(raw + identifier)
        logger.debug("Inserted %s (%s.%s)", identifier, record.source_name, record.field)
        return identifier

    async def parse_external_content(self, text: str) -> ContentTriple:
        """Replace the content with text supplied by an external caller.

        Markup is reduced to raw text first, variable tags keeping their
        identifiers. Glued identifiers are then separated and every
        identifier refreshed to its current display form before rendering.
        """
        text = text or ""
        if has_markup(text):
            text = self.converter.extract_raw(text)
        cleaned = separate_adjacent(text)
        await self.registry.load()
        self._set_raw(self.translator.to_display_form(cleaned))
        logger.info("Parsed external content: %s", safe_truncate(cleaned))
        return self.get_rich_content()

    def update_rich_content(self, content: ContentTriple) -> ContentTriple:
        """Replace the content with an editor-supplied triple.

        Raw and plain text are recomputed from the HTML. A triple without
        HTML is rendered from its raw text instead.
        """
        if content.html:
            self._content = self.converter.triple_from_html(content.html)
        else:
            self._set_raw(content.raw_text)
        return self.get_rich_content()

    def update_content(self, html: str) -> None:
        """Record a typing change and schedule identifier recognition."""
        self._content = self.converter.triple_from_html(html)
        self._edit_debouncer.trigger()

    def handle_paste(self, html: str) -> None:
        """Record pasted content and schedule identifier recognition."""
        self._content = self.converter.triple_from_html(html)
        self._paste_debouncer.trigger()

    async def recognize_variables(self) -> bool:
        """Turn typed identifiers into tags and refresh them to display form.

        Returns:
            True if the content changed
        """
        await self.registry.load()
        before = self._content
        self._set_raw(self.translator.to_display_form(before.raw_text))
        changed = self._content.html != before.html
        if changed:
            logger.debug("Recognized variables in: %s", safe_truncate(before.raw_text))
        return changed

    async def flush(self) -> None:
        """Run any pending debounced recognition now."""
        await self._paste_debouncer.flush()
        await self._edit_debouncer.flush()

    @property
    def has_pending_sync(self) -> bool:
        return any(
            d.pending or d.running for d in (self._edit_debouncer, self._paste_debouncer)
        )

    def clear_content(self) -> None:
        self.close()
        self._content = ContentTriple()

    def close(self) -> None:
        self._edit_debouncer.cancel()
        self._paste_debouncer.cancel()

    def _set_raw(self, raw_text: str) -> None:
        self._content = self.converter.triple_from_raw(raw_text)
