"""Batch processing of pending events into rule actions."""

from __future__ import annotations

import logging
import os
import socket
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from .db import Database
from .models import (
    EVENT_CHANGE_DETECTED,
    ActionResult,
    DeliveryError,
    Event,
    EventOutcome,
    ProcessSummary,
)
from .notifications import NotificationDispatcher
from .rules import RuleEvaluator

logger = logging.getLogger(__name__)


def default_worker_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:8]}"


@dataclass
class EventProcessor:
    """Drains unprocessed events, dispatching each one at most once.

    Before dispatching, an event is claimed with a conditional update so
    that concurrent processors never handle the same event. Delivery
    failures are recorded on the outcome and never keep an event pending.
    """

    database: Database
    evaluator: RuleEvaluator
    dispatcher: NotificationDispatcher
    worker_id: str = field(default_factory=default_worker_id)
    claim_stale_after: float = 300.0
    sleep: Callable[[float], None] = time.sleep

    def process_event(self, event: Event) -> EventOutcome:
        if event.processed or not self.database.claim_event(
            event.id, self.worker_id, stale_after=self.claim_stale_after
        ):
            logger.debug("Event %s already handled elsewhere; skipping", event.id)
            return EventOutcome(event_id=event.id, skipped=True)

        outcome = EventOutcome(event_id=event.id)
        rules = self.evaluator.select(event)
        threshold = self._watch_threshold(event)

        for rule in rules:
            try:
                if not self.evaluator.matches(rule, event, threshold_override=threshold):
                    continue
                outcome.actions.append(self.dispatcher.dispatch(rule, event))
            except Exception as exc:  # noqa: BLE001
                logger.exception("Rule %s failed for event %s", rule.id, event.id)
                outcome.actions.append(
                    ActionResult(
                        action="error",
                        outcome=DeliveryError(reason=str(exc) or type(exc).__name__),
                        rule_id=rule.id,
                    )
                )

        if not rules and event.event_type == EVENT_CHANGE_DETECTED:
            try:
                outcome.actions.append(self.dispatcher.notify_default(event))
            except Exception as exc:  # noqa: BLE001
                logger.exception("Default notification failed for event %s", event.id)
                outcome.actions.append(
                    ActionResult(
                        action="app_notification",
                        outcome=DeliveryError(reason=str(exc) or type(exc).__name__),
                    )
                )

        if not self.database.mark_event_processed(event.id):
            logger.warning("Event %s was marked processed by another worker", event.id)
        logger.info(
            "Processed event %s (%s): %d action(s), %d failed",
            event.id,
            event.event_type,
            len(outcome.actions),
            sum(1 for result in outcome.actions if isinstance(result.outcome, DeliveryError)),
        )
        return outcome

    def _watch_threshold(self, event: Event) -> Optional[float]:
        try:
            watch = self.database.get_watch(event.watch_id)
        except (TypeError, ValueError):
            logger.exception(
                "Could not read watch %s for event %s; using rule thresholds",
                event.watch_id,
                event.id,
            )
            return None
        return watch.price_threshold_percent if watch else None

    def process_pending(self, limit: int = 50) -> ProcessSummary:
        summary = ProcessSummary()
        for event in self.database.fetch_pending_events(limit=limit):
            try:
                outcome = self.process_event(event)
            except Exception:  # noqa: BLE001
                logger.exception("Error processing event %s", event.id)
                continue
            if not outcome.skipped:
                summary.processed += 1
            summary.outcomes.append(outcome)
        return summary

    def run_forever(
        self,
        interval: float = 5.0,
        limit: int = 50,
        iterations: Optional[int] = None,
    ) -> None:
        logger.info("Event processor %s starting (interval %.1fs)", self.worker_id, interval)
        completed = 0
        while iterations is None or completed < iterations:
            try:
                summary = self.process_pending(limit=limit)
                if summary.processed:
                    logger.info("Processed %d event(s)", summary.processed)
            except Exception:  # noqa: BLE001
                logger.exception("Event processor pass failed")
            completed += 1
            if iterations is None or completed < iterations:
                self.sleep(interval)
