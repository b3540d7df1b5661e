from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .http_client import load_json
from .manifest import SUMMARY_FILENAME, utc_iso
from .urls import SiteRoot

REDIRECT_SUFFIX = ".redirect.json"


@dataclass(frozen=True)
class CrawlRecord:
    url: str
    title: str
    heading: str
    text: str
    html: str
    crawled_at: str
    breadcrumb: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        # The cleaned HTML lives in its own companion file.
        return {
            "url": self.url,
            "title": self.title,
            "heading": self.heading,
            "breadcrumb": list(self.breadcrumb),
            "text": self.text,
            "crawledAt": self.crawled_at,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any], *, html: str) -> CrawlRecord | None:
        url = data.get("url")
        crawled_at = data.get("crawledAt")
        if not isinstance(url, str) or not url:
            return None
        if not isinstance(crawled_at, str) or not crawled_at:
            return None
        breadcrumb = data.get("breadcrumb") or []
        if not isinstance(breadcrumb, list):
            return None
        return cls(
            url=url,
            title=str(data.get("title") or ""),
            heading=str(data.get("heading") or ""),
            text=str(data.get("text") or ""),
            html=html,
            crawled_at=crawled_at,
            breadcrumb=[str(b) for b in breadcrumb],
        )


@dataclass(frozen=True)
class CachedPage:
    record: CrawlRecord
    rendered: str


@dataclass(frozen=True)
class RecordPaths:
    json_path: Path
    html_path: Path
    md_path: Path

    @classmethod
    def for_json(cls, json_path: Path) -> RecordPaths:
        return cls(
            json_path=json_path,
            html_path=json_path.with_suffix(".html"),
            md_path=json_path.with_suffix(".md"),
        )

    def missing(self) -> list[Path]:
        return [
            p for p in (self.json_path, self.html_path, self.md_path) if not p.exists()
        ]

    def complete(self) -> bool:
        return not self.missing()


@dataclass(frozen=True)
class RedirectRecord:
    source: str
    target: str
    cached_at: str


@dataclass
class RecordStore:
    """One JSON + HTML + Markdown triple per fetched URL under *progress_dir*."""

    progress_dir: Path
    site: SiteRoot

    def ensure_dir(self) -> None:
        self.progress_dir.mkdir(parents=True, exist_ok=True)

    def paths_for(self, url: str) -> RecordPaths:
        stem = self.site.filename_stem(url)
        return RecordPaths.for_json(self.progress_dir / f"{stem}.json")

    def record_paths(self) -> list[RecordPaths]:
        if not self.progress_dir.is_dir():
            return []
        return [
            RecordPaths.for_json(p)
            for p in sorted(self.progress_dir.glob("*.json"))
            if not p.name.endswith(REDIRECT_SUFFIX) and p.name != SUMMARY_FILENAME
        ]

    def read_record(self, paths: RecordPaths) -> CrawlRecord | None:
        if not paths.json_path.exists() or not paths.html_path.exists():
            return None
        meta = load_json(paths.json_path)
        if meta is None:
            return None
        try:
            html = paths.html_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None
        return CrawlRecord.from_json(meta, html=html)

    def read(self, paths: RecordPaths) -> CachedPage | None:
        """Load a record with its rendered document.

        Anything incomplete or unreadable yields None.
        """

        if not paths.complete():
            return None
        record = self.read_record(paths)
        if record is None:
            return None
        try:
            rendered = paths.md_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None
        return CachedPage(record=record, rendered=rendered)

    def write(self, record: CrawlRecord, rendered: str) -> RecordPaths:
        self.ensure_dir()
        paths = self.paths_for(record.url)
        # JSON goes last: a record without it is never picked up as cache.
        paths.html_path.write_text(record.html, encoding="utf-8", newline="\n")
        paths.md_path.write_text(rendered, encoding="utf-8", newline="\n")
        paths.json_path.write_text(
            json.dumps(record.to_json(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
            newline="\n",
        )
        return paths

    def write_rendered(self, paths: RecordPaths, rendered: str) -> None:
        paths.md_path.write_text(rendered, encoding="utf-8", newline="\n")

    def _redirect_path(self, source: str) -> Path:
        return self.progress_dir / f"{self.site.filename_stem(source)}{REDIRECT_SUFFIX}"

    def write_redirect(self, source: str, target: str) -> Path:
        self.ensure_dir()
        path = self._redirect_path(source)
        data = {"source": source, "target": target, "cachedAt": utc_iso()}
        path.write_text(
            json.dumps(data, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
            newline="\n",
        )
        return path

    def _parse_redirect(self, path: Path) -> RedirectRecord | None:
        data = load_json(path)
        if data is None:
            return None
        source, target, cached_at = (
            data.get("source"),
            data.get("target"),
            data.get("cachedAt"),
        )
        if not all(isinstance(v, str) and v for v in (source, target, cached_at)):
            return None
        return RedirectRecord(source=source, target=target, cached_at=cached_at)

    def load_redirects(self) -> list[RedirectRecord]:
        if not self.progress_dir.is_dir():
            return []
        out: list[RedirectRecord] = []
        for path in sorted(self.progress_dir.glob(f"*{REDIRECT_SUFFIX}")):
            redirect = self._parse_redirect(path)
            if redirect is not None:
                out.append(redirect)
        return out
