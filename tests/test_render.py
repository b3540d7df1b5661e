from __future__ import annotations

from doc_mirror.convert.html_to_md import (
    html_to_markdown,
    normalize_markdown_whitespace,
    render_document,
)


class TestNormalizeMarkdownWhitespace:
    def test_collapses_excessive_blank_lines(self):
        text = "Line 1\n\n\nLine 2\n\n\n\n\nLine 3"
        assert normalize_markdown_whitespace(text) == "Line 1\n\nLine 2\n\nLine 3"

    def test_trims_trailing_whitespace_per_line(self):
        text = "Line 1   \nLine 2\t\t\nLine 3     "
        assert normalize_markdown_whitespace(text) == "Line 1\nLine 2\nLine 3"

    def test_trims_document_edges_but_keeps_inner_indentation(self):
        text = "\n\n  Line 1\n  Line 2\n\n"
        assert normalize_markdown_whitespace(text) == "Line 1\n  Line 2"

    def test_preserves_indentation(self):
        text = "# Heading\n\n  - Indented item\n    - More indented"
        assert normalize_markdown_whitespace(text) == text

    def test_normalizes_inside_code_blocks(self):
        text = "Text\n\n```\ncode line 1\n\n\ncode line 2\n```\n\n\nMore text"
        expected = "Text\n\n```\ncode line 1\n\ncode line 2\n```\n\nMore text"
        assert normalize_markdown_whitespace(text) == expected


class TestHtmlToMarkdown:
    def test_atx_headings_and_paragraphs(self):
        markdown = html_to_markdown("<h2>Setup</h2><p>Install it.</p>")
        assert "## Setup" in markdown
        assert "Install it." in markdown

    def test_scripts_are_dropped(self):
        markdown = html_to_markdown("<p>Body</p><script>alert(1)</script>")
        assert "alert" not in markdown

    def test_no_blank_runs(self):
        markdown = html_to_markdown("<p>A</p><br><br><br><p>B</p><div></div><p>C</p>")
        assert "\n\n\n" not in markdown


class TestRenderDocument:
    def test_preamble_layout(self):
        doc = render_document(
            url="https://site/docs/page",
            title="Page | Docs",
            heading="Page",
            breadcrumb=["Docs", "Guides", "Page"],
            html="<p>Hello.</p>",
            crawled_at="2026-03-01T12:00:00Z",
        )
        lines = doc.split("\n")
        assert lines[:8] == [
            "# Page",
            "",
            "**URL:** https://site/docs/page",
            "**Breadcrumb:** Docs > Guides > Page",
            "**Crawled:** 2026-03-01T12:00:00Z",
            "",
            "---",
            "",
        ]
        assert doc.endswith("Hello.")

    def test_falls_back_to_title_and_omits_empty_breadcrumb(self):
        doc = render_document(
            url="https://site/docs/page",
            title="Page title",
            heading="",
            breadcrumb=[],
            html="<p>Hello.</p>",
            crawled_at="2026-03-01T12:00:00Z",
        )
        assert doc.startswith("# Page title\n")
        assert "**Breadcrumb:**" not in doc
