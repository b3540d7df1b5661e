from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Final, Iterable
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .urls import SiteRoot, normalize_url

DEFAULT_EXCLUDE_SELECTORS: Final[tuple[str, ...]] = (
    # Navigation and structure
    "nav",
    "header",
    "footer",
    ".navbar",
    ".sidebar",
    "#kendonav",
    "#navContainer",
    "#sfVersionSelector",
    ".breadcrumb",
    ".k-treeview",
    "[data-role='treeview']",
    # Promotional and CTA sections
    ".promo",
    ".cta",
    ".call-to-action",
    "[class*='promo']",
    "[class*='banner']",
    # Feedback and rating widgets
    ".feedback",
    ".rating",
    ".article-feedback",
    "[class*='feedback']",
    "[class*='rating']",
    "[class*='helpful']",
    # Training and learning sections
    ".training",
    ".courses",
    ".learn-more",
    "[class*='training']",
    "[class*='course']",
    # Cookie consent and privacy
    ".cookie",
    ".consent",
    "[class*='cookie']",
    "[class*='consent']",
    "[class*='privacy']",
    # Tracking pixels
    "img[src*='bat.bing.com']",
    "img[src*='analytics']",
    "img[src*='adsct']",
    "img[src*='tracking']",
    # Social widgets
    ".social",
    ".share",
    "[class*='social']",
    "[class*='share']",
    # Related content and next-article navigation
    ".related",
    ".next-article",
    "[class*='related']",
    "[class*='next']",
)

BREADCRUMB_SELECTOR: Final[str] = ".sf-breadcrumb, nav[aria-label*='breadcrumb']"

# Headings that open a repeated, non-documentation section. The heading and
# everything up to the next heading of the same or higher level is dropped.
_SECTION_HEADING_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^NEW TO SITEFINITY\?", re.IGNORECASE),
    re.compile(r"^Want to learn more\?", re.IGNORECASE),
    re.compile(r"^Was this article helpful\?", re.IGNORECASE),
    re.compile(r"^Would you like to submit additional feedback\?", re.IGNORECASE),
    re.compile(r"^Next article$", re.IGNORECASE),
)

_NOISE_BLOCK_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"We use cookies to personalize content", re.IGNORECASE),
    re.compile(r"Cookies? Settings", re.IGNORECASE),
)

_HEADING_RE = re.compile(r"^h([1-6])$")


class ExtractionError(ValueError):
    """The loaded document cannot be turned into page content."""


@dataclass(frozen=True)
class ExtractedContent:
    url: str
    title: str
    heading: str
    text: str
    html: str
    breadcrumb: list[str] = field(default_factory=list)


def looks_like_html(data: bytes) -> bool:
    head = data[:2048].lstrip().lower()
    return head.startswith(b"<") and (
        b"<html" in head or b"<!doctype" in head or b"<head" in head or b"<body" in head
    )


def _drop(tag: Tag) -> None:
    if not tag.decomposed:
        tag.decompose()


def _heading_level(tag: Tag) -> int | None:
    match = _HEADING_RE.match(tag.name or "")
    return int(match.group(1)) if match else None


def extract_breadcrumb(soup: BeautifulSoup) -> list[str]:
    nav = soup.select_one(BREADCRUMB_SELECTOR)
    if nav is None:
        return []
    crumbs: list[str] = []
    for el in nav.select("a, span[aria-current='page']"):
        text = el.get_text(" ", strip=True)
        if text:
            crumbs.append(text)
    return crumbs


def _remove_heading_sections(body: Tag) -> None:
    for heading in body.find_all(["h2", "h3", "h4", "h5"]):
        if heading.decomposed:
            continue
        text = heading.get_text(" ", strip=True)
        if not any(p.search(text) for p in _SECTION_HEADING_PATTERNS):
            continue

        level = _heading_level(heading) or 6
        doomed = [heading]
        for sibling in heading.find_next_siblings():
            sibling_level = _heading_level(sibling)
            if sibling_level is not None and sibling_level <= level:
                break
            doomed.append(sibling)
        for el in doomed:
            _drop(el)


def _remove_noise_blocks(body: Tag) -> None:
    # Innermost first, so a wrapper is never dropped for text that lives in
    # an already-removed child.
    for el in reversed(body.find_all(["div", "p", "section"])):
        if el.decomposed:
            continue
        text = el.get_text(" ", strip=True)
        if any(p.search(text) for p in _NOISE_BLOCK_PATTERNS):
            _drop(el)


def _remove_course_listings(body: Tag) -> None:
    for link in body.find_all("a"):
        if link.decomposed:
            continue
        href = str(link.get("href") or "")
        text = link.get_text(" ", strip=True)
        if not (
            "/services/education/" in href
            or "free lesson" in text
            or "free on-demand video course" in text
        ):
            continue
        parent = link.parent
        while parent is not None and parent is not body:
            parent_text = parent.get_text(" ", strip=True)
            if (
                "This free lesson" in parent_text
                or "free on-demand video course" in parent_text
            ):
                _drop(parent)
                break
            parent = parent.parent


def _clean_body_inplace(body: Tag, exclude_selectors: Iterable[str]) -> None:
    for selector in exclude_selectors:
        for el in body.select(selector):
            _drop(el)

    for tag_name in ["script", "style", "noscript", "iframe"]:
        for t in body.find_all(tag_name):
            _drop(t)

    _remove_heading_sections(body)
    _remove_noise_blocks(body)
    _remove_course_listings(body)

    for img in body.select("img[src*='course_book']"):
        _drop(img)
    for el in body.find_all(True):
        if not el.decomposed and el.get_text(strip=True) == "Thank you for your feedback!":
            _drop(el)
    for el in body.select("[onclick*='__doPostBack'], a[href^='javascript:']"):
        _drop(el)


def _html_to_text(body: Tag) -> str:
    text = body.get_text("\n")
    lines = [ln.strip() for ln in text.splitlines()]
    out: list[str] = []
    blank_run = 0
    for ln in lines:
        if not ln:
            blank_run += 1
            if blank_run <= 1:
                out.append("")
            continue
        blank_run = 0
        out.append(ln)
    return "\n".join(out).strip()


def extract_content(
    html: str,
    *,
    url: str,
    exclude_selectors: Iterable[str] = DEFAULT_EXCLUDE_SELECTORS,
) -> ExtractedContent:
    """Extract title, heading, breadcrumb and cleaned body from *html*.

    The breadcrumb is read before cleaning, since the exclusion rules remove
    the breadcrumb navigation itself.
    """

    if not html.strip():
        raise ExtractionError(f"Empty document: {url}")
    soup = BeautifulSoup(html, "html.parser")
    body = soup.body
    if body is None:
        if not looks_like_html(html.encode("utf-8", errors="replace")):
            raise ExtractionError(f"Not an HTML document: {url}")
        raise ExtractionError(f"Document has no <body>: {url}")

    breadcrumb = extract_breadcrumb(soup)
    title = soup.title.get_text(" ", strip=True) if soup.title else ""
    h1 = soup.find("h1")
    heading = h1.get_text(" ", strip=True) if h1 else ""

    _clean_body_inplace(body, exclude_selectors)

    return ExtractedContent(
        url=url,
        title=title,
        heading=heading,
        text=_html_to_text(body),
        html=body.decode_contents().strip(),
        breadcrumb=breadcrumb,
    )


def extract_links_from_html(html: str, *, page_url: str, site: SiteRoot) -> list[str]:
    """Return in-site page links of *html*, in document order, de-duplicated.

    Parses the markup only; never touches the network.
    """

    soup = BeautifulSoup(html, "html.parser")

    def _attr_text(val: object) -> str:
        if isinstance(val, list):
            if not val:
                return ""
            return str(val[0])
        return str(val or "")

    effective_base = page_url
    base = soup.find("base")
    if base is not None:
        base_href = _attr_text(base.get("href")).strip()
        if base_href:
            effective_base = urljoin(page_url, base_href)

    out: dict[str, None] = {}
    for a in soup.select("a[href]"):
        href = _attr_text(a.get("href")).strip()
        if not href or href.startswith("#"):
            continue
        if href.lower().startswith(("mailto:", "javascript:", "tel:")):
            continue
        abs_url = normalize_url(urljoin(effective_base, href))
        if site.contains(abs_url):
            out.setdefault(abs_url, None)

    return list(out)
