"""Core data models for ProductWatch."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

# Watch.last_status values
STATUS_OK = "ok"
STATUS_CHANGED = "changed"
STATUS_SCRAPE_FAILED = "scrape_failed"
STATUS_ERROR = "error"
STATUS_UNKNOWN = "unknown"

# Event.event_type values
EVENT_CHANGE_DETECTED = "change_detected"
EVENT_NO_CHANGE = "no_change"
EVENT_SCRAPE_FAILED = "scrape_failed"
EVENT_ERROR = "error"
EVENT_ANY = "any"

SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"
SEVERITY_CRITICAL = "critical"


@dataclass(frozen=True)
class Snapshot:
    """Normalized content captured from one fetch of a watched page."""

    url: str
    title: Optional[str] = None
    price: Optional[float] = None
    images: List[str] = field(default_factory=list)
    specs: Dict[str, str] = field(default_factory=dict)
    fetched_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "price": self.price,
            "images": list(self.images),
            "specs": dict(self.specs),
            "fetched_at": self.fetched_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        price = data.get("price")
        return cls(
            url=str(data.get("url") or ""),
            title=data.get("title"),
            price=float(price) if price is not None else None,
            images=[str(src) for src in data.get("images") or []],
            specs={str(k): str(v) for k, v in (data.get("specs") or {}).items()},
            fetched_at=data.get("fetched_at"),
        )


@dataclass
class Watch:
    """Persisted monitoring subscription for one URL."""

    id: int
    source_url: str
    tenant_id: Optional[str] = None
    product_id: Optional[str] = None
    frequency_seconds: int = 86400
    last_snapshot: Optional[Snapshot] = None
    last_check_at: Optional[str] = None
    last_status: str = STATUS_UNKNOWN
    retry_count: int = 0
    last_error: Optional[str] = None
    next_check_at: Optional[str] = None
    muted_until: Optional[str] = None
    price_threshold_percent: Optional[float] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class Event:
    """Append-only record of one watch check outcome."""

    id: int
    watch_id: int
    event_type: str
    severity: str
    payload: Dict[str, Any]
    tenant_id: Optional[str] = None
    product_id: Optional[str] = None
    processed: bool = False
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "watch_id": self.watch_id,
            "tenant_id": self.tenant_id,
            "product_id": self.product_id,
            "event_type": self.event_type,
            "severity": self.severity,
            "payload": self.payload,
            "processed": self.processed,
            "created_at": self.created_at,
        }


@dataclass
class Rule:
    """Tenant-scoped (or global) condition -> action policy."""

    id: int
    event_type: str
    condition: Dict[str, Any]
    action: Dict[str, Any]
    tenant_id: Optional[str] = None
    name: Optional[str] = None
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "event_type": self.event_type,
            "condition": self.condition,
            "action": self.action,
            "enabled": self.enabled,
        }


@dataclass
class Notification:
    """In-app alert row written by an app_notification action."""

    id: int
    title: str
    body: str
    payload: Dict[str, Any]
    tenant_id: Optional[str] = None
    watch_id: Optional[int] = None
    event_id: Optional[int] = None
    read: bool = False
    created_at: Optional[str] = None


@dataclass
class Webhook:
    """Stored webhook endpoint with an optional signing secret."""

    id: int
    url: str
    secret: Optional[str] = None
    tenant_id: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class FetchSuccess:
    url: str
    html: str
    status_code: int
    attempts: int


@dataclass(frozen=True)
class FetchFailure:
    """Terminal or exhausted fetch outcome."""

    url: str
    reason: str
    attempts: int
    status_code: Optional[int] = None


FetchResult = Union[FetchSuccess, FetchFailure]


@dataclass
class CheckResult:
    """Outcome of a single run_watch_once call."""

    ok: bool
    watch_id: int
    changed: bool = False
    diff: Optional[Dict[str, Any]] = None
    snapshot: Optional[Snapshot] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    event_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"ok": self.ok, "watch_id": self.watch_id}
        if self.ok:
            data.update(
                changed=self.changed,
                diff=self.diff,
                snapshot=self.snapshot.to_dict() if self.snapshot else None,
            )
        if self.reason:
            data["reason"] = self.reason
        if self.error:
            data["error"] = self.error
        if self.event_id is not None:
            data["event_id"] = self.event_id
        return data


# Rule actions, one variant per delivery channel.


@dataclass(frozen=True)
class WebhookAction:
    url: str
    webhook_id: Optional[int] = None


@dataclass(frozen=True)
class EmailAction:
    to: str
    subject: Optional[str] = None


@dataclass(frozen=True)
class AppNotificationAction:
    title: Optional[str] = None
    body: Optional[str] = None


@dataclass(frozen=True)
class UnknownAction:
    """Action payload that names no supported channel."""

    raw: Dict[str, Any]


Action = Union[WebhookAction, EmailAction, AppNotificationAction, UnknownAction]


def parse_action(raw: Dict[str, Any] | None) -> Action:
    """Turn a stored action mapping into its typed variant."""
    raw = raw or {}
    action_type = raw.get("type")
    if action_type == "webhook" and raw.get("url"):
        webhook_id = raw.get("webhook_id")
        return WebhookAction(
            url=str(raw["url"]),
            webhook_id=int(webhook_id) if webhook_id is not None else None,
        )
    if action_type == "email" and raw.get("to"):
        return EmailAction(to=str(raw["to"]), subject=raw.get("subject"))
    if action_type == "app_notification":
        return AppNotificationAction(title=raw.get("title"), body=raw.get("body"))
    return UnknownAction(raw=dict(raw))


@dataclass(frozen=True)
class DeliveryOk:
    status_code: Optional[int] = None
    detail: Optional[str] = None


@dataclass(frozen=True)
class DeliveryError:
    reason: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class Skipped:
    """Action that was deliberately not attempted."""

    reason: str


DeliveryOutcome = Union[DeliveryOk, DeliveryError, Skipped]


@dataclass
class ActionResult:
    """Per-rule delivery outcome recorded while processing an event."""

    action: str
    outcome: DeliveryOutcome
    rule_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, DeliveryOk)


@dataclass
class EventOutcome:
    event_id: int
    actions: List[ActionResult] = field(default_factory=list)
    skipped: bool = False


@dataclass
class ProcessSummary:
    """Aggregated result of one process_pending pass."""

    processed: int = 0
    outcomes: List[EventOutcome] = field(default_factory=list)
