from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from tqdm import tqdm

from .cache import RecordStore
from .convert.html_to_md import render_document
from .manifest import CORPUS_FILENAME, ManifestWriter, utc_iso, write_corpus
from .urls import SiteRoot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegenerateResult:
    rendered: int
    skipped: int
    corpus_path: Path


def regenerate_markdown(
    *,
    out_dir: Path,
    base_url: str,
    corpus_title: str,
    show_progress: bool = True,
) -> RegenerateResult:
    """Re-render every persisted record's Markdown from its JSON + HTML.

    Useful after changing the renderer. Rewrites the corpus from the
    regenerated documents; never touches the network.
    """

    progress_dir = out_dir / "progress"
    if not progress_dir.is_dir():
        raise FileNotFoundError(f"No progress directory found at: {progress_dir}")

    store = RecordStore(progress_dir, SiteRoot(base_url))
    all_paths = store.record_paths()
    if not all_paths:
        raise FileNotFoundError(f"No JSON records found in: {progress_dir}")

    manifest = ManifestWriter(out_dir)
    documents: list[str] = []
    skipped = 0

    for paths in tqdm(
        all_paths, desc="Regenerating", unit="page", disable=not show_progress
    ):
        record = store.read_record(paths)
        if record is None:
            logger.warning("Skipping %s: record or HTML companion unreadable", paths.json_path.name)
            skipped += 1
            continue

        rendered = render_document(
            url=record.url,
            title=record.title,
            heading=record.heading,
            breadcrumb=record.breadcrumb,
            html=record.html,
            crawled_at=record.crawled_at,
        )
        store.write_rendered(paths, rendered)
        documents.append(rendered)

    corpus_path = write_corpus(
        out_dir / CORPUS_FILENAME,
        documents,
        title=corpus_title,
        generated_at=utc_iso(),
        header_fields=[
            ("Total Pages", len(documents)),
            ("Regenerated from cache", "true"),
        ],
    )
    manifest.append(
        {"kind": "regenerated", "rendered": len(documents), "skipped": skipped}
    )
    logger.info("Regenerated %d markdown files (%d skipped)", len(documents), skipped)
    return RegenerateResult(
        rendered=len(documents), skipped=skipped, corpus_path=corpus_path
    )
