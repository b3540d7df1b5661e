from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

from .cache import CrawlRecord, RecordStore
from .content import (
    DEFAULT_EXCLUDE_SELECTORS,
    ExtractionError,
    extract_content,
    extract_links_from_html,
)
from .convert.html_to_md import render_document
from .http_client import (
    DEFAULT_USER_AGENT,
    FetchError,
    PageFetcher,
    RetryPolicy,
    fetch_with_retries,
)
from .loader import load_cached_progress
from .manifest import CORPUS_FILENAME, ManifestWriter, relpath_posix, utc_iso, write_corpus
from .state import CrawlState
from .urls import SiteRoot, normalize_url

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.progress.com/documentation/sitefinity-cms"
DEFAULT_CORPUS_TITLE = "Sitefinity CMS Documentation"


class InitializationError(RuntimeError):
    """Output locations or the fetcher could not be set up."""


@dataclass
class MirrorConfig:
    out_dir: Path
    base_url: str = DEFAULT_BASE_URL
    max_pages: int | None = None
    stale_threshold_s: float | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    probe_timeout_s: float = 60.0
    exclude_selectors: tuple[str, ...] = DEFAULT_EXCLUDE_SELECTORS
    corpus_title: str = DEFAULT_CORPUS_TITLE
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if self.max_pages is not None and self.max_pages < 1:
            raise ValueError("max_pages must be a positive integer or None")
        if self.stale_threshold_s is not None and self.stale_threshold_s < 0:
            raise ValueError("stale_threshold_s must be >= 0 or None")

    @property
    def progress_dir(self) -> Path:
        return self.out_dir / "progress"


class Crawler:
    """Sequential, origin-scoped documentation crawler.

    Each dequeued URL goes through the same gates, in order: already
    finalized / page budget spent / out of site, version suppression,
    canonical-first probe, cache short-circuit, redirect short-circuit, fetch.
    Traversal is depth-first in link discovery order, driven by an explicit
    stack.
    """

    def __init__(
        self,
        *,
        fetcher: PageFetcher,
        config: MirrorConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.fetcher = fetcher
        self.cfg = config
        self.clock = clock

        self.site = SiteRoot(self.cfg.base_url)
        self.out_dir = self.cfg.out_dir
        self.store = RecordStore(self.cfg.progress_dir, self.site)
        self.manifest = ManifestWriter(self.out_dir)
        self.state = CrawlState()

        self._fetcher_started = False

    def _budget_label(self) -> str:
        return "unlimited" if self.cfg.max_pages is None else str(self.cfg.max_pages)

    def _budget_exhausted(self) -> bool:
        return self.state.budget_exhausted(self.cfg.max_pages)

    def initialize(self) -> list[str]:
        """Create output locations, load the cache, start the fetcher.

        Returns the candidate URLs harvested from fresh cached pages.
        """

        try:
            self.out_dir.mkdir(parents=True, exist_ok=True)
            self.store.ensure_dir()
        except OSError as e:
            raise InitializationError(f"Cannot create output directory: {e}") from e

        loaded = load_cached_progress(
            self.store,
            self.state,
            stale_threshold_s=self.cfg.stale_threshold_s,
            now=self.clock(),
        )
        for url in self.state.visit_order:
            if url in self.state.cached_pages:
                self.manifest.append({"kind": "cached", "url": url})

        try:
            self.fetcher.start()
        except FetchError as e:
            raise InitializationError(f"Cannot start page fetcher: {e}") from e
        self._fetcher_started = True

        return loaded.candidates

    def _probe(self, url: str) -> bool:
        try:
            res = self.fetcher.fetch(url, timeout_s=self.cfg.probe_timeout_s, probe=True)
        except FetchError as e:
            logger.info("Canonical version failed to load: %s (%s)", url, e)
            self.manifest.append({"kind": "probe", "url": url, "ok": False, "error": str(e)})
            return False

        self.manifest.append(
            {"kind": "probe", "url": url, "ok": res.ok, "status_code": res.status_code}
        )
        if not res.ok:
            logger.info("Canonical version doesn't exist (%s): %s", res.status_code, url)
        return res.ok

    def _fail(self, url: str, error: str) -> list[str]:
        logger.error("Error crawling %s: %s", url, error)
        self.state.failed.append(url)
        self.manifest.append({"kind": "error", "url": url, "error": error})
        return []

    def _fetch_page(self, url: str, canonical: str) -> list[str]:
        state = self.state
        # Marked before fetching so a failing page is never retried this run.
        state.mark_visited(url)
        state.canonical.add(canonical)
        state.page_count += 1

        logger.info("[%d/%s] Crawling: %s", state.page_count, self._budget_label(), url)

        try:
            res = fetch_with_retries(self.fetcher, url, policy=self.cfg.retry)
        except FetchError as e:
            return self._fail(url, str(e))
        if not res.ok:
            return self._fail(url, f"HTTP {res.status_code}")

        try:
            content = extract_content(
                res.html, url=url, exclude_selectors=self.cfg.exclude_selectors
            )
        except ExtractionError as e:
            return self._fail(url, str(e))

        crawled_at = utc_iso(res.fetched_at)
        record = CrawlRecord(
            url=url,
            title=content.title,
            heading=content.heading,
            text=content.text,
            html=content.html,
            crawled_at=crawled_at,
            breadcrumb=list(content.breadcrumb),
        )
        rendered = render_document(
            url=url,
            title=record.title,
            heading=record.heading,
            breadcrumb=record.breadcrumb,
            html=record.html,
            crawled_at=crawled_at,
        )
        paths = self.store.write(record, rendered)
        state.documents.append(rendered)
        state.fetched_count += 1
        logger.info("Saved: %s", paths.json_path.name)

        event: dict = {
            "kind": "fetched",
            "url": url,
            "status_code": res.status_code,
            "title": record.title,
            "paths": {
                "page_json": relpath_posix(paths.json_path, self.out_dir),
                "page_html": relpath_posix(paths.html_path, self.out_dir),
                "page_md": relpath_posix(paths.md_path, self.out_dir),
            },
        }

        final_url = normalize_url(res.final_url)
        if final_url != url and self.site.contains(final_url):
            self.store.write_redirect(url, final_url)
            state.redirects[url] = final_url
            state.mark_visited(final_url)
            state.canonical.add(self.site.canonicalize(final_url))
            event["final_url"] = final_url

        links = extract_links_from_html(res.html, page_url=res.final_url, site=self.site)
        logger.info("Found %d documentation links", len(links))
        event["links"] = len(links)
        self.manifest.append(event)
        return links

    def visit(self, url: str) -> list[str]:
        """Run the per-URL decision procedure once.

        Returns the URLs to visit next, in order: a resolved canonical URL,
        the links of a freshly fetched page, or nothing.
        """

        state = self.state
        if url in state.visited or self._budget_exhausted():
            return []
        if not self.site.contains(url):
            logger.warning("Skipping URL outside %s: %s", self.site.base_url, url)
            return []

        canonical = self.site.canonicalize(url)
        version = self.site.version_token(url)

        if version is not None:
            if canonical in state.canonical:
                logger.info("Skipping versioned URL (already crawled canonical): %s", url)
                self.manifest.append(
                    {"kind": "skipped_version", "url": url, "canonical": canonical}
                )
                return []

            logger.info("Found versioned URL: %s (version %s)", url, version)
            logger.info("Attempting canonical (latest) version first: %s", canonical)
            if self._probe(canonical):
                return [canonical]
            logger.info("Crawling versioned URL as exception: %s", url)

        if url in state.cached_pages:
            return []

        target = state.redirects.get(url)
        if target is not None and target in state.visited:
            state.mark_visited(url)
            logger.info("Skipping %s (redirects to already crawled %s)", url, target)
            self.manifest.append({"kind": "skipped_redirect", "url": url, "target": target})
            return []

        return self._fetch_page(url, canonical)

    def crawl_from(self, url: str) -> None:
        stack = [normalize_url(url)]
        while stack and not self._budget_exhausted():
            current = stack.pop()
            stack.extend(reversed(self.visit(current)))

    def close(self) -> dict:
        """Release the fetcher and write the manifest and corpus.

        Runs on success and failure alike; with nothing crawled the artifacts
        are still written, just empty-bodied.
        """

        try:
            if self._fetcher_started:
                self._fetcher_started = False
                self.fetcher.close()
        finally:
            summary = self._finalize()
        return summary

    def _finalize(self) -> dict:
        state = self.state
        generated_at = utc_iso()
        total = state.cached_count + state.fetched_count

        summary = {
            "totalPages": total,
            "cachedPages": state.cached_count,
            "newlyFetchedPages": state.fetched_count,
            "attemptedPages": state.page_count,
            "failedPages": len(state.failed),
            "crawledAt": generated_at,
            "baseUrl": self.site.base_url,
            "maxPages": self.cfg.max_pages,
            "staleThreshold": self.cfg.stale_threshold_s,
            "pages": list(state.visit_order),
            "failed": list(state.failed),
        }
        try:
            self.manifest.write_summary(summary)
            write_corpus(
                self.out_dir / CORPUS_FILENAME,
                state.documents,
                title=self.cfg.corpus_title,
                generated_at=generated_at,
                header_fields=[
                    ("Total Pages", total),
                    ("Cached Pages", state.cached_count),
                    ("Newly Fetched Pages", state.fetched_count),
                ],
            )
        except OSError as e:
            # Best effort.
            logger.error("Failed to write run artifacts in %s: %s", self.out_dir, e)

        logger.info("Crawling completed!")
        logger.info(
            "Total pages: %d (%d cached, %d newly fetched, %d failed)",
            total,
            state.cached_count,
            state.fetched_count,
            len(state.failed),
        )
        return summary

    def run(self, seeds: Iterable[str] | None = None) -> dict:
        """Crawl cached candidates first, then *seeds* (default: the site root).

        Per-page failures are absorbed; initialization failures propagate
        after the artifacts have been written.
        """

        try:
            candidates = self.initialize()

            if candidates:
                logger.info("Crawling %d URLs from cached pages...", len(candidates))
            for url in candidates:
                if self._budget_exhausted():
                    break
                self.crawl_from(url)

            for seed in list(seeds) if seeds is not None else [self.site.base_url]:
                if self._budget_exhausted():
                    break
                self.crawl_from(seed)
        finally:
            summary = self.close()
        return summary
