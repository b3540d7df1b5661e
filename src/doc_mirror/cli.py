from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path

import requests

from .crawl import (
    DEFAULT_BASE_URL,
    DEFAULT_CORPUS_TITLE,
    Crawler,
    InitializationError,
    MirrorConfig,
)
from .http_client import DEFAULT_USER_AGENT, HttpPageFetcher, PageFetcher, RetryPolicy
from .regenerate import regenerate_markdown
from .store_inspect import inspect_progress

LOG_FILENAME = "crawler.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def _parse_max_pages(value: str) -> int | None:
    if value.strip().lower() in {"unlimited", "none", "all"}:
        return None
    try:
        n = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid page count: {value!r}") from e
    if n < 1:
        raise argparse.ArgumentTypeError("--max-pages must be >= 1")
    return n


def _parse_threshold(value: str) -> float | None:
    if value.strip().lower() in {"inf", "infinity", "none"}:
        return None
    try:
        s = float(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid threshold: {value!r}") from e
    if s < 0:
        raise argparse.ArgumentTypeError("--stale-threshold must be >= 0")
    return s


def _setup_logging(out_dir: Path | None, level: str) -> logging.Logger:
    """Log the package to the console and, given *out_dir*, to crawler.log."""

    logger = logging.getLogger("doc_mirror")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if out_dir is not None:
        out_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(out_dir / LOG_FILENAME, encoding="utf-8"))
    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def _build_fetcher(cfg: MirrorConfig, *, browser: bool) -> PageFetcher:
    if browser:
        from .browser import BrowserPageFetcher

        return BrowserPageFetcher(user_agent=cfg.user_agent)
    return HttpPageFetcher(requests.Session(), user_agent=cfg.user_agent)


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--out", type=Path, default=Path("output"))
    p.add_argument("--base-url", default=DEFAULT_BASE_URL)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="doc-mirror")
    sub = parser.add_subparsers(dest="cmd", required=True)

    crawl_p = sub.add_parser(
        "crawl",
        help="Incrementally mirror the documentation site into --out",
    )
    _add_common_args(crawl_p)
    crawl_p.add_argument(
        "--max-pages",
        type=_parse_max_pages,
        default=None,
        help="Fetch budget for this run, or 'unlimited' (default)",
    )
    crawl_p.add_argument(
        "--stale-threshold",
        type=_parse_threshold,
        default=86400.0,
        help=(
            "Seconds a cached page stays fresh (default: 86400). "
            "'inf' never expires; 0 ignores the cache"
        ),
    )
    crawl_p.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Base fetch timeout in seconds; attempt n uses n times this",
    )
    crawl_p.add_argument("--attempts", type=int, default=3)
    crawl_p.add_argument("--probe-timeout", type=float, default=60.0)
    crawl_p.add_argument(
        "--seed",
        action="append",
        default=None,
        help="Repeatable; defaults to --base-url",
    )
    crawl_p.add_argument(
        "--browser",
        action="store_true",
        help="Render pages in headless Chromium (requires the 'browser' extra)",
    )
    crawl_p.add_argument("--user-agent", default=DEFAULT_USER_AGENT)
    crawl_p.add_argument("--corpus-title", default=DEFAULT_CORPUS_TITLE)
    crawl_p.add_argument("--log-level", default="INFO")

    regen_p = sub.add_parser(
        "regenerate",
        help="Re-render Markdown and the corpus from persisted records, offline",
    )
    _add_common_args(regen_p)
    regen_p.add_argument("--corpus-title", default=DEFAULT_CORPUS_TITLE)
    regen_p.add_argument("--no-progress", action="store_true")
    regen_p.add_argument("--log-level", default="INFO")

    inspect_p = sub.add_parser(
        "inspect",
        help="Report on persisted records (complete, fresh, stale, missing)",
    )
    _add_common_args(inspect_p)
    inspect_p.add_argument(
        "--stale-threshold",
        type=_parse_threshold,
        default=86400.0,
    )
    inspect_p.add_argument("--json", action="store_true")
    inspect_p.add_argument("--max-missing-sample", type=int, default=25)
    inspect_p.add_argument(
        "--validate",
        action="store_true",
        help="Fail (non-zero) if any record is missing a companion file",
    )

    args = parser.parse_args(argv)

    if args.cmd == "crawl":
        if int(args.attempts) < 1:
            print("--attempts must be >= 1", file=sys.stderr)
            return 2
        try:
            _setup_logging(args.out, args.log_level)
        except OSError as e:
            print(f"Cannot open log file: {e}", file=sys.stderr)
            return 1

        cfg = MirrorConfig(
            out_dir=args.out,
            base_url=args.base_url,
            max_pages=args.max_pages,
            stale_threshold_s=args.stale_threshold,
            retry=RetryPolicy(
                max_attempts=int(args.attempts),
                base_timeout_s=float(args.timeout),
            ),
            probe_timeout_s=float(args.probe_timeout),
            corpus_title=args.corpus_title,
            user_agent=args.user_agent,
        )
        try:
            fetcher = _build_fetcher(cfg, browser=bool(args.browser))
        except ImportError:
            print(
                "--browser requires Playwright; install doc-mirror[browser] "
                "and run 'playwright install chromium'",
                file=sys.stderr,
            )
            return 2

        crawler = Crawler(fetcher=fetcher, config=cfg)
        try:
            summary = crawler.run(seeds=args.seed)
        except (InitializationError, OSError) as e:
            print(f"Fatal error: {e}", file=sys.stderr)
            return 1

        print(
            "crawl: "
            f"total={summary['totalPages']} "
            f"cached={summary['cachedPages']} "
            f"fetched={summary['newlyFetchedPages']} "
            f"failed={summary['failedPages']}"
        )
        return 0

    if args.cmd == "regenerate":
        _setup_logging(None, args.log_level)
        try:
            result = regenerate_markdown(
                out_dir=args.out,
                base_url=args.base_url,
                corpus_title=args.corpus_title,
                show_progress=not bool(args.no_progress),
            )
        except OSError as e:
            print(str(e), file=sys.stderr)
            return 2

        print(
            "regenerate: "
            f"rendered={result.rendered} skipped={result.skipped} "
            f"corpus={result.corpus_path}"
        )
        return 0

    if args.cmd == "inspect":
        try:
            inspected = inspect_progress(
                out_dir=args.out,
                base_url=args.base_url,
                stale_threshold_s=args.stale_threshold,
                now=time.time(),
                max_missing_paths_sample=int(args.max_missing_sample),
            )
        except (OSError, ValueError) as e:
            print(str(e), file=sys.stderr)
            return 2

        if bool(args.json):
            print(json.dumps(inspected.to_dict(), indent=2))
        else:
            print(
                "inspect: "
                f"records={inspected.records_total} "
                f"complete={inspected.complete} "
                f"incomplete={inspected.incomplete} "
                f"invalid={inspected.invalid} "
                f"fresh={inspected.fresh} "
                f"stale={inspected.stale} "
                f"redirects={inspected.redirects}"
            )
            if inspected.missing_by_suffix:
                parts = " ".join(
                    f"{k}={v}" for k, v in inspected.missing_by_suffix.items()
                )
                print(f"inspect: missing_by_suffix: {parts}")
            if inspected.missing_paths_sample:
                print("inspect: missing_paths_sample:")
                for p in inspected.missing_paths_sample:
                    print(f"- {p}")

        if bool(args.validate) and inspected.incomplete:
            return 4
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
