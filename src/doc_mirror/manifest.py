from __future__ import annotations

import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

SUMMARY_FILENAME = "_summary.json"
CORPUS_FILENAME = "llms-full.txt"


def utc_iso(ts: float | None = None) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(ts))


def parse_utc_iso(value: str) -> float:
    """Parse an ISO-8601 timestamp into epoch seconds.

    Accepts a trailing ``Z`` and fractional seconds; naive values are UTC.
    Raises ValueError on anything else.
    """

    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def relpath_posix(path: Path, base_dir: Path) -> str:
    rel = path.relative_to(base_dir)
    return rel.as_posix()


@dataclass
class ManifestWriter:
    out_dir: Path

    def __post_init__(self) -> None:
        self.jsonl_path = self.out_dir / "manifest.jsonl"
        self.json_path = self.out_dir / SUMMARY_FILENAME

    def append(self, event: dict[str, Any]) -> None:
        event = dict(event)
        event.setdefault("at", utc_iso())
        self.jsonl_path.parent.mkdir(parents=True, exist_ok=True)
        with self.jsonl_path.open("a", encoding="utf-8", newline="\n") as f:
            f.write(json.dumps(event, ensure_ascii=False) + "\n")

    def write_summary(self, summary: dict[str, Any]) -> None:
        self.json_path.parent.mkdir(parents=True, exist_ok=True)
        self.json_path.write_text(
            json.dumps(summary, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )


def build_corpus(
    documents: Sequence[str],
    *,
    title: str,
    generated_at: str,
    header_fields: Sequence[tuple[str, object]] = (),
) -> str:
    """Concatenate rendered documents under a run-level header.

    With no documents the result is just the header.
    """

    lines = [f"# {title}", "", f"**Generated:** {generated_at}"]
    lines += [f"**{name}:** {value}" for name, value in header_fields]
    lines += ["", "---", ""]
    for i, doc in enumerate(documents, start=1):
        lines.append(f"\n\n## Document {i}\n\n{doc}")
    return "\n".join(lines) + "\n"


def write_corpus(
    path: Path,
    documents: Sequence[str],
    *,
    title: str,
    generated_at: str,
    header_fields: Sequence[tuple[str, object]] = (),
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        build_corpus(
            documents,
            title=title,
            generated_at=generated_at,
            header_fields=header_fields,
        ),
        encoding="utf-8",
        newline="\n",
    )
    return path
