"""Tests for ContentFormatConverter."""

import pytest
from bs4 import BeautifulSoup

from varref.core.content.converter import ContentFormatConverter
from varref.core.identifiers.grammar import separate_adjacent


@pytest.fixture
def converter(registry) -> ContentFormatConverter:
    return ContentFormatConverter(registry)


def _variable_spans(html: str) -> list:
    soup = BeautifulSoup(f"<div>{html}</div>", "lxml")
    return soup.find_all("span", class_="variable-tag")


class TestExtractRaw:
    """Test HTML -> raw text extraction."""

    def test_data_variable_tag(self, converter) -> None:
        """Test a data-variable span yields its identifier."""
        html = '<span data-variable data-identifier="@a.b" data-type="npc">@a.b</span>'
        assert converter.extract_raw(html) == "@a.b"

    def test_bare_identifier_attribute(self, converter) -> None:
        """Test the leading @ is added when missing."""
        html = '<p>hi <span identifier="npc.name">小明</span></p>'
        assert converter.extract_raw(html) == "hi @npc.name"

    def test_variable_class_falls_back_to_text(self, converter) -> None:
        """Test a tag without identifier attributes uses its text."""
        html = '<span class="chip variable-tag">@npc.age</span> 岁'
        assert converter.extract_raw(html) == "@npc.age 岁"

    def test_data_type_variable(self, converter) -> None:
        """Test data-type=variable marks a variable tag."""
        html = '<span data-type="variable" data-identifier="@gv_abc123_name">x</span>'
        assert converter.extract_raw(html) == "@gv_abc123_name"

    def test_paragraphs_become_lines(self, converter) -> None:
        """Test block elements are separated by single newlines."""
        assert converter.extract_raw("<p>a</p><p>b</p>") == "a\nb"

    def test_pretty_printed_blocks(self, converter) -> None:
        """Test whitespace between blocks is ignored."""
        html = "<div><p>a</p></div>\n   <p>b</p>\n"
        assert converter.extract_raw(html) == "a\nb"

    def test_list_items(self, converter) -> None:
        """Test list items become lines."""
        assert converter.extract_raw("<ul><li>x</li><li>y</li></ul>") == "x\ny"

    def test_stray_closing_tag_keeps_following_text(self, converter) -> None:
        """Test content after an unmatched closing tag is still extracted."""
        raw = converter.extract_raw("a</div>b @npc.name")
        assert raw.replace("\n", "") == "ab @npc.name"

    def test_stray_closing_tag_before_variable_tag(self, converter) -> None:
        """Test a variable tag after an unmatched closing tag is kept."""
        html = '<p>a</p></div><span data-variable data-identifier="@gv_abc123_name">x</span>'
        assert converter.extract_raw(html).endswith("@gv_abc123_name")

    def test_line_breaks(self, converter) -> None:
        """Test inner br is a newline and a trailing br is dropped."""
        assert converter.extract_raw("<p>a<br>b</p>") == "a\nb"
        assert converter.extract_raw("<p>a<br></p><p>b</p>") == "a\nb"

    def test_text_after_block(self, converter) -> None:
        """Test inline text following a block starts a new line."""
        assert converter.extract_raw("intro<p>x</p>tail") == "intro\nx\ntail"

    def test_malformed_markup(self, converter) -> None:
        """Test unclosed tags still yield their text."""
        assert converter.extract_raw("<p>unclosed <b>bold") == "unclosed bold"

    def test_parser_failure_falls_back(self, converter, monkeypatch) -> None:
        """Test a parser error degrades to tag stripping."""

        def explode(*args, **kwargs):
            raise RuntimeError("parser exploded")

        monkeypatch.setattr(converter, "_walk", explode)
        assert converter.extract_raw("<p>a &amp; b</p>") == "a & b"

    def test_empty(self, converter) -> None:
        """Test empty input."""
        assert converter.extract_raw("") == ""


class TestRenderHtml:
    """Test raw text -> HTML rendering."""

    def test_resolved_display_identifier(self, converter) -> None:
        """Test a resolvable identifier becomes an atomic tag."""
        html = converter.render_html("hi @npc.name")
        [span] = _variable_spans(html)
        assert span["contenteditable"] == "false"
        assert span["data-identifier"] == "@npc.name"
        assert span["identifier"] == "@npc.name"
        assert span["data-type"] == "npc"
        assert span["data-id"] == "abc123"
        assert span["data-short-id"] == "abc1"
        assert span["data-field"] == "name"
        assert span["data-source-name"] == "npc"
        assert span.has_attr("data-variable")
        assert span.get_text() == "@npc.name"

    def test_system_identifier_label(self, converter) -> None:
        """Test a system identifier shows its display form."""
        html = converter.render_html("@gv_abc123_name")
        [span] = _variable_spans(html)
        assert span["data-identifier"] == "@gv_abc123_name"
        assert span.get_text() == "@npc.name#abc1"

    @pytest.mark.parametrize(
        "raw, expected_type",
        [
            ("@主线工作流.step", "workflow"),
            ("@寻宝任务.status", "task"),
            ("@他是谁.name", "task"),
            ("@NPC小红.name", "npc"),
            ("@ghost.field", "custom"),
            ("@gv_nope_field", "unknown"),
        ],
    )
    def test_unresolved_identifiers_still_tagged(self, converter, raw, expected_type) -> None:
        """Test unresolved identifiers render as tags with an inferred type."""
        [span] = _variable_spans(converter.render_html(raw))
        assert span["data-type"] == expected_type
        assert span.get_text() == raw

    def test_lines_become_paragraphs(self, converter) -> None:
        """Test each line is wrapped in a paragraph, empty lines included."""
        html = converter.render_html("a\n\nb")
        soup = BeautifulSoup(html, "lxml")
        assert [p.get_text() for p in soup.find_all("p")] == ["a", "", "b"]

    def test_block_markup_is_kept(self, converter) -> None:
        """Test raw text that is already block HTML is not re-wrapped."""
        html = converter.render_html("<p>hi @npc.name</p>", markup=True)
        soup = BeautifulSoup(html, "lxml")
        assert len(soup.find_all("p")) == 1
        assert len(_variable_spans(html)) == 1

    def test_inline_markup_is_wrapped(self, converter) -> None:
        """Test markup without a leading block element gets one paragraph."""
        html = converter.render_html("hi <b>@npc.name</b>", markup=True)
        soup = BeautifulSoup(html, "lxml")
        assert len(soup.find_all("p")) == 1
        assert len(soup.find_all("b")) == 1
        assert len(_variable_spans(html)) == 1

    def test_literal_block_markup_stays_text(self, converter) -> None:
        """Test raw text that looks like block HTML is rendered as text."""
        html = converter.render_html("<p>hello @npc.name")
        assert html.startswith("<p>&lt;p&gt;hello ")

    def test_legacy_token_tag(self, converter) -> None:
        """Test a legacy typed token renders as one tag for its real record."""
        html = converter.render_html("@gv_npc_abc123_name-=")
        [span] = _variable_spans(html)
        assert (span["data-id"], span["data-field"], span["data-type"]) == ("abc123", "name", "npc")
        assert span["data-identifier"] == "@gv_npc_abc123_name-="
        assert converter.extract_raw(html) == "@gv_npc_abc123_name-="
        assert converter.to_plain_text(html) == "@npc.name#abc1"

    def test_text_is_escaped(self, converter) -> None:
        """Test literal angle brackets in plain text stay text."""
        html = converter.render_html("a <b> c")
        assert "&lt;b&gt;" in html

    def test_without_registry(self) -> None:
        """Test rendering works with no registry at all."""
        [span] = _variable_spans(ContentFormatConverter().render_html("@npc.name"))
        assert span["data-type"] == "npc"
        assert span["data-id"] == ""


class TestRoundTrip:
    """Test round trips between projections."""

    @pytest.mark.parametrize(
        "raw",
        [
            "@npc.name 会被替换为变量值",
            "line1\nline2 @gv_abc123_name",
            "@云透.name@云透.name",
            "\n开头空行",
            "结尾\n",
            "a\n\n\nb",
            "x < y & z @ghost.f",
            "  indented @npc.age",
            "<p>hello @npc.name",
            "@gv_npc_abc123_name-= @npc.name@npc.name#c0ff",
        ],
    )
    def test_extract_after_render(self, converter, raw) -> None:
        """Test extract_raw(render_html(T)) == separate_adjacent(T)."""
        assert converter.extract_raw(converter.render_html(raw)) == separate_adjacent(raw)

    def test_extract_is_idempotent(self, converter) -> None:
        """Test re-rendering extracted raw text is stable."""
        html = (
            "<p>你好 <span data-variable data-identifier=\"@gv_abc123_name\">小明</span></p>"
            "<p>@云透.name@npc.age</p><p><br></p>"
        )
        raw = converter.extract_raw(html)
        assert converter.extract_raw(converter.render_html(raw)) == raw

    def test_extract_is_idempotent_for_escaped_markup(self, converter) -> None:
        """Test escaped tags in the text are not re-parsed as markup."""
        raw = converter.extract_raw("<p>&lt;p&gt;hello @npc.name</p>")
        assert raw == "<p>hello @npc.name"
        assert converter.extract_raw(converter.render_html(raw)) == raw

    def test_plain_text_uses_labels(self, converter) -> None:
        """Test plain text shows visible labels, raw text identifiers."""
        triple = converter.triple_from_raw("看 @gv_abc123_name")
        assert triple.raw_text == "看 @gv_abc123_name"
        assert triple.plain_text == "看 @npc.name#abc1"

    def test_triple_from_html_keeps_html(self, converter) -> None:
        """Test the supplied HTML is kept verbatim."""
        html = "<p>a</p><p>b</p>"
        triple = converter.triple_from_html(html)
        assert triple.html == html
        assert triple.raw_text == "a\nb"
        assert triple.plain_text == "a\nb"
