"""Check-cycle orchestration for watches: fetch, extract, diff, persist."""

from __future__ import annotations

import datetime as dt
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .clock import to_iso, utc_now
from .db import Database
from .diff import diff_snapshots, is_substantive
from .extractor import extract_snapshot
from .fetcher import ResilientFetcher
from .models import (
    EVENT_CHANGE_DETECTED,
    EVENT_ERROR,
    EVENT_NO_CHANGE,
    EVENT_SCRAPE_FAILED,
    SEVERITY_CRITICAL,
    SEVERITY_INFO,
    SEVERITY_WARNING,
    STATUS_CHANGED,
    STATUS_ERROR,
    STATUS_OK,
    STATUS_SCRAPE_FAILED,
    CheckResult,
    FetchFailure,
    Snapshot,
    Watch,
)

logger = logging.getLogger(__name__)

BACKOFF_BASE_SECONDS = 60
BACKOFF_MAX_EXPONENT = 6
BACKOFF_CAP_SECONDS = 3600


class WatchNotFoundError(LookupError):
    """Raised when a check is requested for a watch id that does not exist."""


def compute_backoff_seconds(retry_count: int) -> int:
    """Delay before the next check after ``retry_count`` prior failures."""
    exponent = min(BACKOFF_MAX_EXPONENT, max(0, retry_count))
    return min(BACKOFF_CAP_SECONDS, BACKOFF_BASE_SECONDS * 2**exponent)


@dataclass
class WatchRunner:
    """Runs one check cycle for one watch."""

    database: Database
    fetcher: ResilientFetcher = field(default_factory=ResilientFetcher)
    extractor: Callable[..., Snapshot] = field(
        default_factory=lambda: extract_snapshot
    )
    clock: Callable[[], dt.datetime] = utc_now

    def init(self) -> None:
        """Initialize required persistence structures."""
        logger.info("Initializing database at %s", self.database.path)
        self.database.initialize()

    def run_watch_once(self, watch_id: int) -> CheckResult:
        watch = self.database.get_watch(watch_id)
        if watch is None:
            raise WatchNotFoundError(f"watch {watch_id} not found")

        logger.info("Checking watch %s (%s)", watch.id, watch.source_url)
        result = self.fetcher.fetch(watch.source_url)
        now = self.clock()

        if isinstance(result, FetchFailure):
            return self._record_scrape_failure(watch, result, now)

        try:
            snapshot = self.extractor(result.html, watch.source_url, fetched_at=to_iso(now))
            diff = diff_snapshots(watch.last_snapshot, snapshot)
            changed = is_substantive(diff)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Processing failed for watch %s: %s", watch.id, exc)
            return self._record_processing_error(watch, exc, now)

        event = self.database.insert_event(
            watch_id=watch.id,
            tenant_id=watch.tenant_id,
            product_id=watch.product_id,
            event_type=EVENT_CHANGE_DETECTED if changed else EVENT_NO_CHANGE,
            severity=SEVERITY_INFO,
            payload={
                "diff": diff,
                "snapshot": snapshot.to_dict(),
                "url": watch.source_url,
                "fetched_at": snapshot.fetched_at,
            },
            created_at=to_iso(now),
        )
        self.database.update_watch_status(
            watch.id,
            last_snapshot=snapshot,
            last_check_at=to_iso(now),
            last_status=STATUS_CHANGED if changed else STATUS_OK,
            retry_count=0,
            last_error=None,
            next_check_at=None,
        )
        logger.info(
            "Watch %s checked: %s",
            watch.id,
            "change detected" if changed else "no change",
        )
        return CheckResult(
            ok=True,
            watch_id=watch.id,
            changed=changed,
            diff=diff,
            snapshot=snapshot,
            event_id=event.id,
        )

    def _record_scrape_failure(
        self,
        watch: Watch,
        failure: FetchFailure,
        now: dt.datetime,
    ) -> CheckResult:
        backoff = compute_backoff_seconds(watch.retry_count)
        event = self.database.insert_event(
            watch_id=watch.id,
            tenant_id=watch.tenant_id,
            product_id=watch.product_id,
            event_type=EVENT_SCRAPE_FAILED,
            severity=SEVERITY_WARNING,
            payload={"error": failure.reason, "attempts": failure.attempts},
            created_at=to_iso(now),
        )
        self.database.update_watch_status(
            watch.id,
            retry_count=watch.retry_count + 1,
            last_error=failure.reason,
            last_check_at=to_iso(now),
            last_status=STATUS_SCRAPE_FAILED,
            next_check_at=to_iso(now + dt.timedelta(seconds=backoff)),
        )
        logger.warning(
            "Scrape failed for watch %s after %d attempt(s): %s; next check in %ds",
            watch.id,
            failure.attempts,
            failure.reason,
            backoff,
        )
        return CheckResult(
            ok=False,
            watch_id=watch.id,
            reason=EVENT_SCRAPE_FAILED,
            error=failure.reason,
            event_id=event.id,
        )

    def _record_processing_error(
        self,
        watch: Watch,
        exc: Exception,
        now: dt.datetime,
    ) -> CheckResult:
        message = str(exc) or type(exc).__name__
        event = self.database.insert_event(
            watch_id=watch.id,
            tenant_id=watch.tenant_id,
            product_id=watch.product_id,
            event_type=EVENT_ERROR,
            severity=SEVERITY_CRITICAL,
            payload={"error": message},
            created_at=to_iso(now),
        )
        self.database.update_watch_status(
            watch.id,
            last_status=STATUS_ERROR,
            last_check_at=to_iso(now),
        )
        return CheckResult(
            ok=False,
            watch_id=watch.id,
            error=message,
            event_id=event.id,
        )


@dataclass
class WatchScheduler:
    """Selects due watches and checks them on a bounded thread pool."""

    runner: WatchRunner
    max_workers: int = 4
    batch_limit: int = 200
    sleep: Callable[[float], None] = time.sleep

    def poll_once(self) -> List[CheckResult]:
        due = self.runner.database.select_due_watches(
            now=self.runner.clock(), limit=self.batch_limit
        )
        if not due:
            logger.debug("No watches due")
            return []

        logger.info("Checking %d due watch(es)", len(due))
        results: List[CheckResult] = []
        with ThreadPoolExecutor(max_workers=max(1, self.max_workers)) as executor:
            futures = {
                executor.submit(self.runner.run_watch_once, watch.id): watch
                for watch in due
            }
            for future in as_completed(futures):
                watch = futures[future]
                try:
                    results.append(future.result())
                except Exception:  # noqa: BLE001
                    logger.exception("Error running watch %s", watch.id)
        return results

    def run_forever(self, interval: float = 60.0, iterations: Optional[int] = None) -> None:
        logger.info("Watch scheduler starting (interval %.1fs)", interval)
        completed = 0
        while iterations is None or completed < iterations:
            try:
                self.poll_once()
            except Exception:  # noqa: BLE001
                logger.exception("Watch scheduler pass failed")
            completed += 1
            if iterations is None or completed < iterations:
                self.sleep(interval)
