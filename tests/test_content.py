from __future__ import annotations

import pytest

from doc_mirror.content import (
    ExtractionError,
    extract_breadcrumb,
    extract_content,
    extract_links_from_html,
    looks_like_html,
)
from doc_mirror.urls import SiteRoot

from conftest import BASE, doc_page

_NOISY_PAGE = """
<html>
<head><title>Widgets | Docs</title></head>
<body>
  <header>Site header</header>
  <nav class="sf-breadcrumb"><a href="/docs">Docs</a><a href="/docs/dev">Developers</a>
    <span aria-current="page">Widgets</span></nav>
  <div id="sfVersionSelector">Version 15.2</div>
  <main>
    <h1>Widgets</h1>
    <p>Widgets render content.</p>
    <script>trackPageView();</script>
    <div class="promo-box">Try the new release!</div>
    <h2>Was this article helpful?</h2>
    <p>Yes / No</p>
    <h2>Next steps</h2>
    <p>Keep reading.</p>
    <div><p>We use cookies to personalize content and ads.</p></div>
    <div>Thank you for your feedback!</div>
    <a href="javascript:void(0)">Toggle</a>
    <img src="https://bat.bing.com/action/0?ti=1">
  </main>
  <footer>Footer links</footer>
</body>
</html>
"""


class TestExtractContent:
    def test_reads_title_heading_and_breadcrumb(self):
        content = extract_content(_NOISY_PAGE, url=f"{BASE}/widgets")
        assert content.url == f"{BASE}/widgets"
        assert content.title == "Widgets | Docs"
        assert content.heading == "Widgets"
        assert content.breadcrumb == ["Docs", "Developers", "Widgets"]

    def test_removes_chrome_and_noise(self):
        content = extract_content(_NOISY_PAGE, url=f"{BASE}/widgets")
        for fragment in [
            "Site header",
            "Footer links",
            "Version 15.2",
            "trackPageView",
            "Try the new release",
            "Was this article helpful",
            "Yes / No",
            "We use cookies",
            "Thank you for your feedback",
            "Toggle",
            "bat.bing.com",
        ]:
            assert fragment not in content.html
            assert fragment not in content.text

    def test_keeps_documentation_body(self):
        content = extract_content(_NOISY_PAGE, url=f"{BASE}/widgets")
        assert "Widgets render content." in content.text
        assert "Next steps" in content.text
        assert "Keep reading." in content.text
        assert "<h1>Widgets</h1>" in content.html

    def test_noise_block_keeps_unrelated_wrapper_content(self):
        html = (
            "<html><body><section><p>Real content.</p>"
            "<div>Cookie Settings</div></section></body></html>"
        )
        content = extract_content(html, url=f"{BASE}/x")
        assert "Real content." in content.text
        assert "Cookie Settings" not in content.text

    def test_course_listing_is_removed(self):
        html = (
            "<html><body><p>Intro.</p><div><p>This free lesson covers widgets.</p>"
            '<a href="https://www.progress.com/services/education/widgets">Start</a>'
            "</div></body></html>"
        )
        content = extract_content(html, url=f"{BASE}/x")
        assert "Intro." in content.text
        assert "free lesson" not in content.text

    def test_custom_exclude_selectors(self):
        html = "<html><body><p class='keep'>A</p><p class='drop'>B</p></body></html>"
        content = extract_content(html, url=f"{BASE}/x", exclude_selectors=[".drop"])
        assert "A" in content.text
        assert "B" not in content.text

    def test_empty_document_raises(self):
        with pytest.raises(ExtractionError):
            extract_content("   ", url=f"{BASE}/x")

    def test_non_html_raises(self):
        with pytest.raises(ExtractionError):
            extract_content('{"error": "not found"}', url=f"{BASE}/x")

    def test_missing_title_and_heading_are_empty(self):
        content = extract_content("<html><body><p>Only text</p></body></html>", url=BASE)
        assert content.title == ""
        assert content.heading == ""
        assert content.breadcrumb == []


class TestBreadcrumb:
    def test_aria_label_variant(self):
        from bs4 import BeautifulSoup

        soup = BeautifulSoup(
            '<nav aria-label="breadcrumb"><a href="/">Home</a><a href="/d">Docs</a></nav>',
            "html.parser",
        )
        assert extract_breadcrumb(soup) == ["Home", "Docs"]


class TestExtractLinks:
    def test_in_site_links_in_document_order(self):
        html = doc_page(
            "Index",
            links=[
                "/docs/b",
                "a",
                "https://site/docs/c#section",
                "https://other/docs/x",
                "/blog/post",
                "mailto:help@site",
                "javascript:void(0)",
                "#top",
                "/docs/b?ref=nav",
            ],
        )
        links = extract_links_from_html(html, page_url=f"{BASE}/", site=SiteRoot(BASE))
        assert links == [
            "https://site/docs",
            "https://site/docs/b",
            "https://site/docs/a",
            "https://site/docs/c",
        ]

    def test_base_href_is_honored(self):
        html = (
            '<html><head><base href="https://site/docs/guides/"></head>'
            '<body><a href="intro">Intro</a></body></html>'
        )
        links = extract_links_from_html(html, page_url=f"{BASE}/x", site=SiteRoot(BASE))
        assert links == ["https://site/docs/guides/intro"]


def test_looks_like_html():
    assert looks_like_html(b"<!DOCTYPE html><html></html>")
    assert looks_like_html(b"  <html><body></body></html>")
    assert not looks_like_html(b'{"a": 1}')
