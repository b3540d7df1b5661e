from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from urllib.parse import ParseResult, urlparse, urlunparse


def normalize_url(raw_url: str) -> str:
    """Normalize a URL for de-duplication.

    - Lowercases scheme + hostname.
    - Strips fragments and query strings (documentation pages are addressed
      by path only).
    """

    parsed: ParseResult = urlparse(raw_url)
    parsed = parsed._replace(
        scheme=(parsed.scheme or "").lower(),
        netloc=(parsed.netloc or "").lower(),
        query="",
        fragment="",
    )
    return urlunparse(parsed)


def _version_pattern(root_path: str) -> re.Pattern[str]:
    # One or more decimal segments directly under the root, each followed by
    # another path segment ("/root/152/page", not "/root/152").
    return re.compile("^" + re.escape(root_path) + r"/((?:\d+/)+)")


def extract_version_token(url: str, *, root_path: str) -> str | None:
    """Return the version segment following ``root_path`` in *url*, if any."""

    match = _version_pattern(root_path).match(urlparse(url).path)
    if match is None:
        return None
    return match.group(1).split("/", 1)[0]


def canonicalize(url: str, *, root_path: str) -> str:
    """Drop the version segment(s) following ``root_path``.

    URLs without a version token are returned unchanged, so the function is
    idempotent.
    """

    parsed = urlparse(url)
    path, n = _version_pattern(root_path).subn(
        lambda _m: root_path + "/", parsed.path, count=1
    )
    if not n:
        return url
    return urlunparse(parsed._replace(path=path))


def url_to_filename_stem(url: str, *, root_path: str, max_len: int = 80) -> str:
    path = urlparse(url).path
    if path == root_path or path.startswith(root_path + "/"):
        path = path[len(root_path) :]
    stem = path.replace("/", "_")
    stem = re.sub(r"[^A-Za-z0-9_-]", "_", stem)
    stem = re.sub(r"_+", "_", stem).strip("_")
    if not stem:
        return "index"
    if len(stem) > max_len:
        # Truncated stems keep a digest of the full stem so they stay unique.
        digest = hashlib.sha256(stem.encode("utf-8")).hexdigest()[:10]
        stem = stem[: max_len - len(digest) - 1].rstrip("_-") + "_" + digest
    return stem


@dataclass(frozen=True)
class SiteRoot:
    """The fixed origin + documentation root path being mirrored."""

    base_url: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", normalize_url(self.base_url).rstrip("/"))

    @property
    def origin(self) -> str:
        parsed = urlparse(self.base_url)
        return f"{parsed.scheme}://{parsed.netloc}"

    @property
    def root_path(self) -> str:
        return urlparse(self.base_url).path.rstrip("/")

    def contains(self, url: str) -> bool:
        parsed = urlparse(url)
        if f"{parsed.scheme}://{parsed.netloc}".lower() != self.origin:
            return False
        root = self.root_path
        if not root:
            return True
        path = parsed.path
        return path == root or path.startswith(root + "/")

    def version_token(self, url: str) -> str | None:
        return extract_version_token(url, root_path=self.root_path)

    def canonicalize(self, url: str) -> str:
        return canonicalize(url, root_path=self.root_path)

    def filename_stem(self, url: str) -> str:
        return url_to_filename_stem(url, root_path=self.root_path)
