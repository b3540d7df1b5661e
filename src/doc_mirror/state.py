from __future__ import annotations

from dataclasses import dataclass, field

from .cache import CachedPage


@dataclass
class CrawlState:
    """In-memory traversal state for one run.

    Rebuilt from persisted records at startup and discarded at the end.
    """

    visited: set[str] = field(default_factory=set)
    canonical: set[str] = field(default_factory=set)
    cached_pages: dict[str, CachedPage] = field(default_factory=dict)
    redirects: dict[str, str] = field(default_factory=dict)
    documents: list[str] = field(default_factory=list)
    visit_order: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    page_count: int = 0
    cached_count: int = 0
    fetched_count: int = 0

    def mark_visited(self, url: str) -> None:
        if url not in self.visited:
            self.visited.add(url)
            self.visit_order.append(url)

    def budget_exhausted(self, max_pages: int | None) -> bool:
        return max_pages is not None and self.page_count >= max_pages
