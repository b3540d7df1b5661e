from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .cache import RecordStore
from .content import extract_links_from_html
from .manifest import parse_utc_iso
from .state import CrawlState

logger = logging.getLogger(__name__)


@dataclass
class CacheLoadResult:
    candidates: list[str] = field(default_factory=list)
    fresh: int = 0
    stale: int = 0


def is_fresh(crawled_at: str, *, stale_threshold_s: float | None, now: float) -> bool:
    """``None`` treats every record as fresh; unparsable timestamps are stale."""

    if stale_threshold_s is None:
        return True
    try:
        age = now - parse_utc_iso(crawled_at)
    except ValueError:
        return False
    return age < stale_threshold_s


def load_cached_progress(
    store: RecordStore,
    state: CrawlState,
    *,
    stale_threshold_s: float | None,
    now: float,
) -> CacheLoadResult:
    """Seed *state* from fresh persisted records, without network access.

    Every fresh record is marked visited (and its canonical form resolved),
    its rendered document is queued for the corpus, and the in-site links of
    its stored HTML become crawl candidates. Stale, incomplete or malformed
    records are dropped silently.
    """

    result = CacheLoadResult()

    if stale_threshold_s == 0:
        logger.info("Stale threshold is 0, ignoring cached progress")
        return result

    if not store.progress_dir.is_dir():
        logger.info("No existing progress directory found, starting fresh crawl")
        return result

    all_paths = store.record_paths()
    if not all_paths:
        logger.info("No cached progress files found, starting fresh crawl")
        return result

    candidates: dict[str, None] = {}
    for paths in all_paths:
        cached = store.read(paths)
        if cached is None:
            logger.debug("Ignoring incomplete cache record: %s", paths.json_path.name)
            result.stale += 1
            continue

        record = cached.record
        if not is_fresh(record.crawled_at, stale_threshold_s=stale_threshold_s, now=now):
            result.stale += 1
            continue

        state.cached_pages[record.url] = cached
        state.mark_visited(record.url)
        state.canonical.add(store.site.canonicalize(record.url))
        state.documents.append(cached.rendered)

        for link in extract_links_from_html(
            record.html, page_url=record.url, site=store.site
        ):
            candidates.setdefault(link, None)

        result.fresh += 1

    for redirect in store.load_redirects():
        if not is_fresh(redirect.cached_at, stale_threshold_s=stale_threshold_s, now=now):
            continue
        state.redirects[redirect.source] = redirect.target
        if redirect.source in state.cached_pages:
            state.mark_visited(redirect.target)
            state.canonical.add(store.site.canonicalize(redirect.target))

    result.candidates = list(candidates)
    state.cached_count = result.fresh

    threshold = "unbounded" if stale_threshold_s is None else f"{stale_threshold_s:g}s"
    logger.info("Loaded %d fresh cached pages (threshold: %s)", result.fresh, threshold)
    logger.info("Found %d stale/missing pages to re-crawl", result.stale)
    logger.info("Extracted %d URLs from cached HTML to check", len(result.candidates))
    return result
