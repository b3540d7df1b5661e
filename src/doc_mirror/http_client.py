from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import requests
from requests import exceptions as req_exc

logger = logging.getLogger(__name__)

TRANSIENT_HTTP_STATUSES = {429, 500, 502, 503, 504}

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"
)


class FetchError(RuntimeError):
    """A navigation/transport failure (timeout, connection error, ...)."""


@dataclass(frozen=True)
class PageResponse:
    url: str
    final_url: str
    status_code: int
    html: str
    fetched_at: float

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400


class PageFetcher(Protocol):
    def start(self) -> None: ...

    def fetch(
        self, url: str, *, timeout_s: float, probe: bool = False
    ) -> PageResponse: ...

    def close(self) -> None: ...


class HttpPageFetcher:
    """Plain HTTP fetcher.

    In probe mode the body is never downloaded: the response is streamed and
    closed as soon as the status line and headers are in.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._session = session
        self._user_agent = user_agent

    def start(self) -> None:
        if self._session is None:
            self._session = requests.Session()
        self._session.headers["User-Agent"] = self._user_agent

    def fetch(
        self, url: str, *, timeout_s: float, probe: bool = False
    ) -> PageResponse:
        if self._session is None:
            raise FetchError("HTTP session not initialized")
        try:
            resp = self._session.get(url, timeout=timeout_s, stream=probe)
        except req_exc.RequestException as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e

        try:
            html = "" if probe else resp.text
        except req_exc.RequestException as e:
            raise FetchError(f"Failed to read {url}: {e}") from e
        finally:
            resp.close()

        return PageResponse(
            url=url,
            final_url=str(resp.url),
            status_code=int(resp.status_code),
            html=html,
            fetched_at=time.time(),
        )

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_timeout_s: float = 10.0

    def timeout_for(self, attempt: int) -> float:
        # Attempt n gets n times the base timeout: 10s, 20s, 30s.
        return self.base_timeout_s * attempt


def fetch_with_retries(
    fetcher: PageFetcher, url: str, *, policy: RetryPolicy
) -> PageResponse:
    """Fetch *url*, retrying transport failures with a growing timeout.

    Retries are sequential and have no delay beyond the timeout itself.
    Besides transport failures, the transient HTTP statuses in
    ``TRANSIENT_HTTP_STATUSES`` (429 and 5xx gateway/server errors) are also
    retried, since the server answered but the page did not load. Any other
    response (including 4xx) is returned to the caller as-is.
    """

    last_error: Exception | None = None

    for attempt in range(1, policy.max_attempts + 1):
        timeout_s = policy.timeout_for(attempt)
        if attempt > 1:
            logger.info(
                "Re-attempt %d/%d (timeout: %.0fs): %s",
                attempt,
                policy.max_attempts,
                timeout_s,
                url,
            )
        try:
            res = fetcher.fetch(url, timeout_s=timeout_s)
        except FetchError as e:
            last_error = e
            if attempt < policy.max_attempts:
                logger.warning("Attempt %d failed: %s", attempt, e)
            continue

        if res.status_code in TRANSIENT_HTTP_STATUSES:
            last_error = FetchError(f"HTTP {res.status_code} from {url}")
            if attempt < policy.max_attempts:
                logger.warning("Attempt %d failed: %s", attempt, last_error)
            continue

        return res

    raise FetchError(
        f"Failed to fetch {url} after {policy.max_attempts} attempts: {last_error}"
    )


def load_json(path: Path) -> dict | None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    return data
