"""HTTP page fetching with bounded retries and exponential backoff."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional

import requests

from .models import FetchFailure, FetchResult, FetchSuccess

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (compatible; ProductWatch/1.0; "
        "+https://github.com/productwatch/productwatch)"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}
MAX_ATTEMPTS = 3
BASE_DELAY_SECONDS = 1.0
DEFAULT_TIMEOUT = 15
RETRYABLE_STATUSES = frozenset({403, 429, 503})


@dataclass
class ResilientFetcher:
    """GET a page, retrying throttling statuses and network errors.

    Has no side effects beyond the HTTP requests themselves; persisting a
    failure is the caller's job. Unless a session is injected, each thread
    gets its own ``requests.Session`` from ``session_factory``.
    """

    session: Optional[requests.Session] = None
    session_factory: Callable[[], requests.Session] = requests.Session
    timeout: float = DEFAULT_TIMEOUT
    max_attempts: int = MAX_ATTEMPTS
    base_delay: float = BASE_DELAY_SECONDS
    retryable_statuses: FrozenSet[int] = RETRYABLE_STATUSES
    sleep: Callable[[float], None] = time.sleep
    _local: threading.local = field(default_factory=threading.local, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.session is not None:
            self.session.headers.update(DEFAULT_HEADERS)

    def current_session(self) -> requests.Session:
        if self.session is not None:
            return self.session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self.session_factory()
            session.headers.update(DEFAULT_HEADERS)
            self._local.session = session
        return session

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the given 1-based attempt."""
        return self.base_delay * (2 ** (attempt - 1))

    def fetch(self, url: str) -> FetchResult:
        session = self.current_session()
        reason = "no attempts made"
        status_code = None
        attempts = 0

        for attempt in range(1, self.max_attempts + 1):
            attempts = attempt
            try:
                response = session.get(url, timeout=self.timeout)
            except requests.RequestException as exc:
                reason = f"network error: {exc}"
                status_code = None
                logger.warning(
                    "Fetch attempt %d/%d for %s failed: %s",
                    attempt,
                    self.max_attempts,
                    url,
                    exc,
                )
            else:
                status_code = response.status_code
                if 200 <= status_code < 300:
                    if not response.encoding or response.encoding.lower() == "iso-8859-1":
                        response.encoding = response.apparent_encoding or "utf-8"
                    logger.debug(
                        "Fetched %s (status %d, attempt %d)", url, status_code, attempt
                    )
                    return FetchSuccess(
                        url=url,
                        html=response.text,
                        status_code=status_code,
                        attempts=attempt,
                    )
                reason = f"HTTP {status_code}"
                if status_code not in self.retryable_statuses:
                    logger.warning(
                        "Fetch for %s returned terminal status %d", url, status_code
                    )
                    break
                logger.warning(
                    "Fetch attempt %d/%d for %s returned retryable status %d",
                    attempt,
                    self.max_attempts,
                    url,
                    status_code,
                )

            if attempt < self.max_attempts:
                self.sleep(self.backoff_delay(attempt))

        return FetchFailure(
            url=url,
            reason=reason,
            attempts=attempts,
            status_code=status_code,
        )
