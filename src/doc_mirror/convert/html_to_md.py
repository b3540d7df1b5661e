from __future__ import annotations

import re
from typing import Sequence

from bs4 import BeautifulSoup
from markdownify import markdownify as md


def _clean_soup_inplace(soup: BeautifulSoup) -> None:
    for tag_name in ["script", "style", "noscript"]:
        for t in soup.find_all(tag_name):
            t.decompose()


def normalize_markdown_whitespace(markdown: str) -> str:
    """Strip trailing whitespace per line, cap blank runs, trim the edges.

    Leading indentation inside lines is preserved.
    """

    text = "\n".join(line.rstrip() for line in markdown.split("\n"))
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def html_to_markdown(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    _clean_soup_inplace(soup)
    markdown = md(str(soup), heading_style="ATX")
    return normalize_markdown_whitespace(markdown)


def render_document(
    *,
    url: str,
    title: str,
    heading: str,
    breadcrumb: Sequence[str],
    html: str,
    crawled_at: str,
) -> str:
    """Render one page as Markdown with a heading/metadata preamble."""

    lines = [
        f"# {heading or title}",
        "",
        f"**URL:** {url}",
    ]
    if breadcrumb:
        lines.append(f"**Breadcrumb:** {' > '.join(breadcrumb)}")
    lines += [
        f"**Crawled:** {crawled_at}",
        "",
        "---",
        "",
        html_to_markdown(html),
    ]
    return "\n".join(lines)
