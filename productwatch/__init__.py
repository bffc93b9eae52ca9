"""ProductWatch package initialization."""

from .config import Settings, load_settings
from .db import Database
from .diff import diff_snapshots, is_substantive
from .extractor import extract_snapshot
from .fetcher import ResilientFetcher
from .models import (
    CheckResult,
    Event,
    Notification,
    ProcessSummary,
    Rule,
    Snapshot,
    Watch,
)
from .notifications import NotificationDispatcher, SendGridEmailSender, WebhookSender
from .processor import EventProcessor
from .rules import RuleEvaluator, condition_matches
from .runner import (
    WatchNotFoundError,
    WatchRunner,
    WatchScheduler,
    compute_backoff_seconds,
)

__all__ = [
    "CheckResult",
    "Database",
    "Event",
    "EventProcessor",
    "Notification",
    "NotificationDispatcher",
    "ProcessSummary",
    "ResilientFetcher",
    "Rule",
    "RuleEvaluator",
    "SendGridEmailSender",
    "Settings",
    "Snapshot",
    "Watch",
    "WatchNotFoundError",
    "WatchRunner",
    "WatchScheduler",
    "WebhookSender",
    "compute_backoff_seconds",
    "condition_matches",
    "diff_snapshots",
    "extract_snapshot",
    "is_substantive",
    "load_settings",
]
