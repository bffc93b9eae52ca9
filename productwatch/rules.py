"""Rule selection and condition evaluation for monitoring events."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .db import Database
from .models import Event, Rule

logger = logging.getLogger(__name__)

PRICE_PCT_CHANGE = "price_pct_change"


def price_change_percent(payload: Dict[str, Any]) -> Optional[float]:
    """Absolute percent move recorded in ``payload.diff.price``, if any.

    A starting price of 0 is divided by 1 instead.
    """
    diff = (payload or {}).get("diff") or {}
    price = diff.get("price") if isinstance(diff, dict) else None
    if not isinstance(price, dict):
        return None
    if price.get("from") is None or price.get("to") is None:
        return None
    try:
        start = float(price["from"])
        end = float(price["to"])
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(start) and math.isfinite(end)):
        return None
    return abs((end - start) / (start or 1) * 100)


def condition_matches(
    condition: Dict[str, Any] | None,
    payload: Dict[str, Any],
    threshold_override: float | None = None,
) -> bool:
    """Evaluate a rule condition against an event payload.

    Empty and unrecognized conditions match. ``threshold_override`` replaces
    the percentage of a ``price_pct_change`` condition.
    """
    if not condition:
        return True
    if PRICE_PCT_CHANGE in condition:
        threshold = (
            threshold_override
            if threshold_override is not None
            else condition[PRICE_PCT_CHANGE]
        )
        try:
            threshold = float(threshold)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric price threshold %r", threshold)
            return False
        change = price_change_percent(payload)
        return change is not None and change >= threshold
    return True


@dataclass
class RuleEvaluator:
    """Finds the rules that apply to an event and whose conditions hold."""

    database: Database

    def select(self, event: Event) -> List[Rule]:
        return self.database.select_rules_for_event(event)

    def matches(
        self,
        rule: Rule,
        event: Event,
        threshold_override: float | None = None,
    ) -> bool:
        return condition_matches(rule.condition, event.payload, threshold_override)
