from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pytest

from doc_mirror.cache import CrawlRecord, RecordStore
from doc_mirror.convert.html_to_md import render_document
from doc_mirror.crawl import MirrorConfig
from doc_mirror.http_client import FetchError, PageResponse, RetryPolicy
from doc_mirror.manifest import parse_utc_iso
from doc_mirror.urls import SiteRoot

BASE = "https://site/docs"
NOW_ISO = "2026-03-01T12:00:00Z"
NOW = parse_utc_iso(NOW_ISO)


def doc_page(
    heading: str,
    *,
    links: Iterable[str] = (),
    text: str = "Some documentation text.",
    title: str | None = None,
) -> str:
    items = "".join(f'<li><a href="{href}">{href}</a></li>' for href in links)
    return f"""<!DOCTYPE html>
<html>
<head><title>{title or heading}</title></head>
<body>
  <nav class="sf-breadcrumb">
    <a href="{BASE}">Docs</a>
    <span aria-current="page">{heading}</span>
  </nav>
  <main>
    <h1>{heading}</h1>
    <p>{text}</p>
    <ul>{items}</ul>
  </main>
</body>
</html>
"""


class FakeFetcher:
    """In-memory PageFetcher.

    Known pages answer 200 and unknown URLs 404. ``failures`` maps a URL to
    how many leading calls raise FetchError; ``redirects`` maps a URL to the
    final URL it lands on.
    """

    def __init__(
        self,
        pages: dict[str, str] | None = None,
        *,
        statuses: dict[str, int] | None = None,
        failures: dict[str, int] | None = None,
        redirects: dict[str, str] | None = None,
        start_error: Exception | None = None,
    ) -> None:
        self.pages = dict(pages or {})
        self.statuses = dict(statuses or {})
        self.failures = dict(failures or {})
        self.redirects = dict(redirects or {})
        self.start_error = start_error
        self.calls: list[tuple[str, float, bool]] = []
        self.started = False
        self.closed = False

    def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def fetch(self, url: str, *, timeout_s: float, probe: bool = False) -> PageResponse:
        self.calls.append((url, timeout_s, probe))
        remaining = self.failures.get(url, 0)
        if remaining > 0:
            self.failures[url] = remaining - 1
            raise FetchError(f"Timeout loading {url}")

        final_url = self.redirects.get(url, url)
        if url in self.statuses:
            status = self.statuses[url]
        else:
            status = 200 if final_url in self.pages else 404
        html = "" if probe or status >= 400 else self.pages.get(final_url, "")
        return PageResponse(
            url=url,
            final_url=final_url,
            status_code=status,
            html=html,
            fetched_at=NOW,
        )

    def close(self) -> None:
        self.closed = True

    @property
    def fetched(self) -> list[str]:
        return [url for url, _t, probe in self.calls if not probe]

    @property
    def probed(self) -> list[str]:
        return [url for url, _t, probe in self.calls if probe]


@pytest.fixture()
def site() -> SiteRoot:
    return SiteRoot(BASE)


@pytest.fixture()
def out_dir(tmp_path: Path) -> Path:
    return tmp_path / "output"


@pytest.fixture()
def store(out_dir: Path, site: SiteRoot) -> RecordStore:
    return RecordStore(out_dir / "progress", site)


@pytest.fixture()
def make_config(out_dir: Path):
    def _make(**overrides) -> MirrorConfig:
        kwargs = {
            "out_dir": out_dir,
            "base_url": BASE,
            "stale_threshold_s": 86400.0,
            "retry": RetryPolicy(max_attempts=3, base_timeout_s=10.0),
        }
        kwargs.update(overrides)
        return MirrorConfig(**kwargs)

    return _make


def write_cached_record(
    store: RecordStore,
    url: str,
    *,
    links: Iterable[str] = (),
    crawled_at: str = NOW_ISO,
    heading: str = "Cached page",
) -> CrawlRecord:
    html = "<h1>{}</h1><p>Cached body.</p>{}".format(
        heading, "".join(f'<a href="{href}">link</a>' for href in links)
    )
    record = CrawlRecord(
        url=url,
        title=heading,
        heading=heading,
        text="Cached body.",
        html=html,
        crawled_at=crawled_at,
        breadcrumb=["Docs"],
    )
    rendered = render_document(
        url=url,
        title=record.title,
        heading=record.heading,
        breadcrumb=record.breadcrumb,
        html=record.html,
        crawled_at=crawled_at,
    )
    store.write(record, rendered)
    return record
