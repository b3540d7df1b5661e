from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .cache import RecordStore
from .loader import is_fresh
from .urls import SiteRoot


@dataclass(frozen=True)
class ProgressInspection:
    progress_dir: Path
    records_total: int
    complete: int
    incomplete: int
    invalid: int
    fresh: int
    stale: int
    redirects: int
    missing_by_suffix: dict[str, int]
    missing_paths_sample: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "progress_dir": str(self.progress_dir),
            "records_total": self.records_total,
            "complete": self.complete,
            "incomplete": self.incomplete,
            "invalid": self.invalid,
            "fresh": self.fresh,
            "stale": self.stale,
            "redirects": self.redirects,
            "missing_by_suffix": dict(self.missing_by_suffix),
            "missing_paths_sample": list(self.missing_paths_sample),
        }


def inspect_progress(
    *,
    out_dir: Path,
    base_url: str,
    stale_threshold_s: float | None,
    now: float,
    max_missing_paths_sample: int = 25,
) -> ProgressInspection:
    """Classify every persisted record the way the cache loader would."""

    progress_dir = (out_dir / "progress").resolve()
    if not progress_dir.is_dir():
        raise FileNotFoundError(f"Missing progress directory in: {out_dir}")

    store = RecordStore(progress_dir, SiteRoot(base_url))

    complete = incomplete = invalid = fresh = stale = 0
    missing_by_suffix: dict[str, int] = {}
    missing_paths_sample: list[str] = []

    all_paths = store.record_paths()
    for paths in all_paths:
        missing = paths.missing()
        if missing:
            incomplete += 1
            for p in missing:
                missing_by_suffix[p.suffix] = missing_by_suffix.get(p.suffix, 0) + 1
                if len(missing_paths_sample) < max_missing_paths_sample:
                    missing_paths_sample.append(p.name)
            continue

        cached = store.read(paths)
        if cached is None:
            invalid += 1
            continue

        complete += 1
        if is_fresh(
            cached.record.crawled_at, stale_threshold_s=stale_threshold_s, now=now
        ):
            fresh += 1
        else:
            stale += 1

    missing_by_suffix = dict(
        sorted(missing_by_suffix.items(), key=lambda kv: (-kv[1], kv[0]))
    )

    return ProgressInspection(
        progress_dir=progress_dir,
        records_total=len(all_paths),
        complete=complete,
        incomplete=incomplete,
        invalid=invalid,
        fresh=fresh,
        stale=stale,
        redirects=len(store.load_redirects()),
        missing_by_suffix=missing_by_suffix,
        missing_paths_sample=missing_paths_sample,
    )
