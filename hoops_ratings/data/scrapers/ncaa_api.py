"""Resilient JSON client for the public NCAA scoreboard/box-score API."""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, FrozenSet, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://ncaa-api.henrygd.me"

# 428 is the vendor's "box score not ready yet" answer for games in progress.
NOT_READY_STATUS = 428
RETRYABLE_STATUSES: FrozenSet[int] = frozenset({NOT_READY_STATUS, 429, 500, 502, 503, 504})
SLOW_BACKOFF_STATUSES: FrozenSet[int] = frozenset({NOT_READY_STATUS, 502})

DEFAULT_HEADERS = {
    "User-Agent": "hoops-ratings-bot/0.1 (+https://www.ncaa.com/)",
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
    "Referer": "https://www.ncaa.com/",
    "Origin": "https://www.ncaa.com",
}

_TRANSIENT_EXCEPTIONS = (
    requests.Timeout,
    requests.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
)


class UpstreamError(Exception):
    """A request to the upstream API could not produce a JSON payload."""

    def __init__(self, path: str, message: str, status: Optional[int] = None):
        super().__init__(f"{message} for {path}")
        self.path = path
        self.status = status


class TransientUpstreamError(UpstreamError):
    """Retry ceiling exhausted on a timeout, reset, or retryable status."""


class FatalUpstreamError(UpstreamError):
    """Non-retryable HTTP status; the request is not attempted again."""


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded linear backoff shared by every upstream call."""

    max_retries: int = 3
    backoff_seconds: float = 0.5
    not_ready_backoff_seconds: float = 2.0
    retryable_statuses: FrozenSet[int] = RETRYABLE_STATUSES
    slow_statuses: FrozenSet[int] = SLOW_BACKOFF_STATUSES

    def is_retryable(self, status: int) -> bool:
        return status in self.retryable_statuses

    def delay(self, attempt: int, status: Optional[int] = None) -> float:
        """Seconds to wait after the zero-based ``attempt`` failed."""
        base = self.not_ready_backoff_seconds if status in self.slow_statuses else self.backoff_seconds
        return base * (attempt + 1)


def default_session() -> requests.Session:
    session = requests.Session()
    session.headers.update(DEFAULT_HEADERS)
    return session


class NCAAApiClient:
    """
    ``fetch(path) -> JSON payload`` with retry, backoff, and a hard deadline.

    Each worker thread gets its own ``requests.Session``; the client holds no
    other mutable state, so one instance can be shared by a worker pool.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout_seconds: float = 20.0,
        session_factory: Callable[[], Any] = default_session,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = (base_url or os.getenv("NCAA_API_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_seconds = float(timeout_seconds)
        self._session_factory = session_factory
        self._sleep = sleep
        self._local = threading.local()

    def _session(self):
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            self._local.session = session
        return session

    def _get_with_deadline(self, url: str) -> Tuple[int, bytes]:
        """Perform one attempt; the deadline covers connect plus body read.

        A watchdog closes the response when the deadline passes, so a server
        trickling bytes cannot hold a blocked read open past it.
        """
        deadline = time.monotonic() + self.timeout_seconds
        response = self._session().get(url, timeout=self.timeout_seconds, stream=True)
        expired = threading.Event()

        def _abort() -> None:
            expired.set()
            response.close()

        watchdog = threading.Timer(max(0.0, deadline - time.monotonic()), _abort)
        watchdog.daemon = True
        watchdog.start()
        timeout_error = requests.Timeout(f"deadline of {self.timeout_seconds:g}s exceeded")
        try:
            status = int(response.status_code)
            if status >= 400:
                return status, b""
            chunks = []
            try:
                for chunk in response.iter_content(chunk_size=64 * 1024):
                    if expired.is_set() or time.monotonic() > deadline:
                        raise timeout_error
                    if chunk:
                        chunks.append(chunk)
            except Exception as exc:
                # Reads on a connection closed by the watchdog fail in
                # library-specific ways.
                if exc is not timeout_error and expired.is_set():
                    raise timeout_error from exc
                raise
            if expired.is_set():
                # The close may surface as a clean EOF with a truncated body.
                raise timeout_error
            return status, b"".join(chunks)
        finally:
            watchdog.cancel()
            response.close()

    def fetch(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        policy = self.retry_policy
        last_error: Optional[UpstreamError] = None

        for attempt in range(policy.max_retries + 1):
            status: Optional[int] = None
            try:
                status, body = self._get_with_deadline(url)
            except _TRANSIENT_EXCEPTIONS as exc:
                last_error = TransientUpstreamError(path, f"network error ({exc.__class__.__name__}: {exc})")
            else:
                if status < 400:
                    try:
                        return json.loads(body.decode("utf-8"))
                    except (UnicodeDecodeError, ValueError) as exc:
                        last_error = TransientUpstreamError(path, f"invalid JSON body ({exc})", status)
                elif policy.is_retryable(status):
                    last_error = TransientUpstreamError(path, f"HTTP {status}", status)
                else:
                    raise FatalUpstreamError(path, f"HTTP {status}", status)

            if attempt < policy.max_retries:
                wait = policy.delay(attempt, status)
                logger.debug("Retrying %s in %.1fs (attempt %d): %s", path, wait, attempt + 1, last_error)
                self._sleep(wait)

        assert last_error is not None
        raise last_error

    @staticmethod
    def boxscore_path(game_id: str) -> str:
        return f"/game/{game_id}/boxscore"

    @staticmethod
    def scoreboard_path(sport: str, division: str, day: date, listing: str = "all-conf") -> str:
        return f"/scoreboard/{sport}/{division}/{day.year:04d}/{day.month:02d}/{day.day:02d}/{listing}"

    def fetch_boxscore(self, game_id: str) -> Any:
        return self.fetch(self.boxscore_path(game_id))

    def fetch_scoreboard(self, sport: str, division: str, day: date, listing: str = "all-conf") -> Any:
        return self.fetch(self.scoreboard_path(sport, division, day, listing))
