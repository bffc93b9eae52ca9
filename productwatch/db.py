"""SQLite-backed persistence for watches, events, rules and notifications."""

from __future__ import annotations

import datetime as dt
import json
import logging
import math
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

from openpyxl import Workbook

from .clock import parse_timestamp, to_iso, utc_now
from .models import (
    EVENT_ANY,
    EVENT_CHANGE_DETECTED,
    Event,
    Notification,
    Rule,
    Snapshot,
    Watch,
    Webhook,
)

logger = logging.getLogger(__name__)

SQLITE_PREFIX = "sqlite://"
DEFAULT_FREQUENCY_SECONDS = 86400
MAX_RULES_PER_EVENT = 200

# Fields the runner owns; everything else is changed through settings updates.
WATCH_STATUS_FIELDS = {
    "last_snapshot",
    "last_check_at",
    "last_status",
    "retry_count",
    "last_error",
    "next_check_at",
}
WATCH_SETTINGS_FIELDS = {
    "frequency_seconds",
    "price_threshold_percent",
    "muted_until",
}
RULE_UPDATE_FIELDS = {"name", "enabled", "event_type", "condition", "action"}

EXPORT_COLUMNS = [
    "id",
    "watch_id",
    "tenant_id",
    "product_id",
    "event_type",
    "severity",
    "processed",
    "created_at",
    "summary",
]


def resolve_sqlite_path(database_url: str) -> Path:
    """Translate a DATABASE_URL into a filesystem path."""
    if not database_url:
        raise ValueError("DATABASE_URL must not be empty")

    if database_url.startswith(SQLITE_PREFIX):
        raw_path = database_url[len(SQLITE_PREFIX) :]
        # Allow sqlite:///path/to/file and sqlite://path/to/file styles.
        if raw_path.startswith("/"):
            raw_path = raw_path[1:]
        path = Path(raw_path)
    else:
        path = Path(database_url)

    if not path.is_absolute():
        path = Path.cwd() / path

    return path.expanduser().resolve()


def normalize_source_url(source_url: str) -> str:
    """Strip whitespace and the fragment; reject anything but http(s)."""
    candidate = (source_url or "").strip()
    if not candidate:
        raise ValueError("source_url required")
    parts = urlsplit(candidate)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"Unsupported source_url: {source_url!r}")
    return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))


def _dumps(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, sort_keys=True)


def _loads(value: Optional[str], default: Any = None) -> Any:
    if value is None or value == "":
        return default
    return json.loads(value)


def _clean_settings(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Validate operator settings and convert them to their stored form."""
    cleaned: Dict[str, Any] = {}
    for name, value in fields.items():
        if name == "frequency_seconds":
            try:
                seconds = int(value)
            except (TypeError, ValueError):
                raise ValueError(f"frequency_seconds must be an integer: {value!r}") from None
            if seconds <= 0:
                raise ValueError("frequency_seconds must be positive")
            cleaned[name] = seconds
        elif value is None:
            cleaned[name] = None
        elif name == "price_threshold_percent":
            try:
                percent = float(value)
            except (TypeError, ValueError):
                raise ValueError(
                    f"price_threshold_percent must be a number: {value!r}"
                ) from None
            if not math.isfinite(percent) or percent < 0:
                raise ValueError("price_threshold_percent must be zero or more")
            cleaned[name] = percent
        elif name == "muted_until":
            if isinstance(value, dt.datetime):
                cleaned[name] = to_iso(value)
                continue
            if not isinstance(value, str):
                raise ValueError(f"muted_until must be an ISO timestamp: {value!r}")
            try:
                parsed = parse_timestamp(value)
            except ValueError:
                raise ValueError(f"muted_until must be an ISO timestamp: {value!r}") from None
            cleaned[name] = to_iso(parsed) if parsed else None
    return cleaned


@dataclass
class Database:
    """Thin wrapper around sqlite3 for the monitoring tables.

    Every call opens its own connection, so a single instance can be shared
    by worker threads.
    """

    path: Path

    def connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS watches (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source_url TEXT NOT NULL,
                    tenant_id TEXT,
                    product_id TEXT,
                    frequency_seconds INTEGER NOT NULL DEFAULT 86400,
                    last_snapshot TEXT,
                    last_check_at TEXT,
                    last_status TEXT NOT NULL DEFAULT 'unknown',
                    created_by TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            columns = {row[1] for row in conn.execute("PRAGMA table_info(watches)")}
            # Retry/backoff and sensitivity columns arrived after the first schema.
            if "retry_count" not in columns:
                conn.execute(
                    "ALTER TABLE watches ADD COLUMN retry_count INTEGER NOT NULL DEFAULT 0"
                )
            if "last_error" not in columns:
                conn.execute("ALTER TABLE watches ADD COLUMN last_error TEXT")
            if "next_check_at" not in columns:
                conn.execute("ALTER TABLE watches ADD COLUMN next_check_at TEXT")
            if "muted_until" not in columns:
                conn.execute("ALTER TABLE watches ADD COLUMN muted_until TEXT")
            if "price_threshold_percent" not in columns:
                conn.execute(
                    "ALTER TABLE watches ADD COLUMN price_threshold_percent REAL"
                )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_watches_source_url ON watches (source_url)"
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    watch_id INTEGER NOT NULL,
                    tenant_id TEXT,
                    product_id TEXT,
                    event_type TEXT NOT NULL,
                    severity TEXT NOT NULL DEFAULT 'info',
                    payload TEXT,
                    processed INTEGER NOT NULL DEFAULT 0,
                    claimed_by TEXT,
                    claimed_at TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(watch_id) REFERENCES watches(id)
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_events_unprocessed
                ON events (processed, created_at)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS rules (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    tenant_id TEXT,
                    name TEXT,
                    enabled INTEGER NOT NULL DEFAULT 1,
                    event_type TEXT NOT NULL,
                    condition TEXT,
                    action TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS webhooks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    tenant_id TEXT,
                    name TEXT,
                    url TEXT NOT NULL,
                    secret TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notifications (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    tenant_id TEXT,
                    watch_id INTEGER,
                    event_id INTEGER,
                    title TEXT NOT NULL,
                    body TEXT NOT NULL,
                    payload TEXT,
                    read INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.commit()

    # Watches

    def create_watch(
        self,
        source_url: str,
        tenant_id: str | None = None,
        product_id: str | None = None,
        created_by: str | None = None,
        frequency_seconds: int | None = None,
    ) -> Watch:
        """Create a watch, or return the existing one for the same URL."""
        normalized = normalize_source_url(source_url)
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM watches WHERE source_url = ? ORDER BY id LIMIT 1",
                (normalized,),
            ).fetchone()
            if row:
                if product_id and not row["product_id"]:
                    conn.execute(
                        "UPDATE watches SET product_id = ? WHERE id = ?",
                        (product_id, row["id"]),
                    )
                    conn.commit()
                watch_id = row["id"]
            else:
                cursor = conn.execute(
                    """
                    INSERT INTO watches (
                        source_url, tenant_id, product_id, frequency_seconds,
                        created_by, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        normalized,
                        tenant_id,
                        product_id,
                        frequency_seconds or DEFAULT_FREQUENCY_SECONDS,
                        created_by,
                        to_iso(utc_now()),
                    ),
                )
                conn.commit()
                watch_id = cursor.lastrowid
        watch = self.get_watch(watch_id)
        assert watch is not None
        return watch

    def get_watch(self, watch_id: int) -> Optional[Watch]:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM watches WHERE id = ?", (watch_id,)
            ).fetchone()
        return _watch_from_row(row) if row else None

    def list_watches(self) -> List[Watch]:
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM watches ORDER BY id").fetchall()
        return [_watch_from_row(row) for row in rows]

    def update_watch_status(self, watch_id: int, **fields: Any) -> None:
        """Scoped update of the runner-owned status columns."""
        unknown = set(fields) - WATCH_STATUS_FIELDS
        if unknown:
            raise ValueError(f"Not a watch status field: {sorted(unknown)}")
        if "last_snapshot" in fields and isinstance(fields["last_snapshot"], Snapshot):
            fields["last_snapshot"] = _dumps(fields["last_snapshot"].to_dict())
        self._update_watch(watch_id, fields)

    def update_watch_settings(self, watch_id: int, **fields: Any) -> Watch:
        """Apply an operator PATCH limited to the user-editable settings.

        Values are checked and normalized before anything is written, so a
        rejected update leaves the stored watch untouched.
        """
        if not fields:
            raise ValueError("no updatable fields provided")
        unknown = set(fields) - WATCH_SETTINGS_FIELDS
        if unknown:
            raise ValueError(f"Not an updatable watch field: {sorted(unknown)}")
        cleaned = _clean_settings(fields)
        with self.connect() as conn:
            exists = conn.execute(
                "SELECT 1 FROM watches WHERE id = ?", (watch_id,)
            ).fetchone()
        if not exists:
            raise LookupError(f"watch {watch_id} not found")
        self._update_watch(watch_id, cleaned)
        watch = self.get_watch(watch_id)
        assert watch is not None
        return watch

    def _update_watch(self, watch_id: int, fields: Dict[str, Any]) -> None:
        if not fields:
            return
        assignments = ", ".join(f"{name} = ?" for name in fields)
        with self.connect() as conn:
            conn.execute(
                f"UPDATE watches SET {assignments} WHERE id = ?",
                (*fields.values(), watch_id),
            )
            conn.commit()

    def select_due_watches(
        self,
        now: dt.datetime | None = None,
        limit: int = 200,
    ) -> List[Watch]:
        """Return watches whose cadence has elapsed and that are not muted or backing off."""
        now = now or utc_now()
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM watches
                ORDER BY last_check_at IS NOT NULL, last_check_at, id
                """
            ).fetchall()

        due: List[Watch] = []
        for row in rows:
            try:
                watch = _watch_from_row(row)
                muted_until = parse_timestamp(watch.muted_until)
                next_check = parse_timestamp(watch.next_check_at)
                last_check = parse_timestamp(watch.last_check_at)
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping watch %s with unreadable settings: %s", row["id"], exc)
                continue
            if muted_until and muted_until > now:
                continue
            if next_check and next_check > now:
                continue
            if last_check and last_check + dt.timedelta(
                seconds=watch.frequency_seconds
            ) > now:
                continue
            due.append(watch)
            if len(due) >= limit:
                break
        return due

    # Events

    def insert_event(
        self,
        watch_id: int,
        event_type: str,
        severity: str,
        payload: Dict[str, Any],
        tenant_id: str | None = None,
        product_id: str | None = None,
        created_at: str | None = None,
    ) -> Event:
        created_at = created_at or to_iso(utc_now())
        with self.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO events (
                    watch_id, tenant_id, product_id, event_type, severity,
                    payload, processed, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, 0, ?)
                """,
                (
                    watch_id,
                    tenant_id,
                    product_id,
                    event_type,
                    severity,
                    _dumps(payload),
                    created_at,
                ),
            )
            conn.commit()
            event_id = cursor.lastrowid
        return Event(
            id=event_id,
            watch_id=watch_id,
            tenant_id=tenant_id,
            product_id=product_id,
            event_type=event_type,
            severity=severity,
            payload=payload,
            processed=False,
            created_at=created_at,
        )

    def get_event(self, event_id: int) -> Optional[Event]:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM events WHERE id = ?", (event_id,)
            ).fetchone()
        return _event_from_row(row) if row else None

    def list_events(self, watch_id: int | None = None, limit: int = 100) -> List[Event]:
        query = "SELECT * FROM events"
        params: tuple = ()
        if watch_id is not None:
            query += " WHERE watch_id = ?"
            params = (watch_id,)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        with self.connect() as conn:
            rows = conn.execute(query, (*params, limit)).fetchall()
        return [_event_from_row(row) for row in rows]

    def fetch_pending_events(self, limit: int = 50) -> List[Event]:
        """Unprocessed events, oldest first."""
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM events
                WHERE processed = 0
                ORDER BY created_at, id
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [_event_from_row(row) for row in rows]

    def claim_event(
        self,
        event_id: int,
        worker_id: str,
        stale_after: float = 300.0,
    ) -> bool:
        """Atomically take ownership of an unprocessed event.

        An existing claim older than ``stale_after`` seconds is considered
        abandoned and may be taken over.
        """
        now = utc_now()
        stale_before = to_iso(now - dt.timedelta(seconds=stale_after))
        with self.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE events
                SET claimed_by = ?, claimed_at = ?
                WHERE id = ? AND processed = 0
                  AND (claimed_by IS NULL OR claimed_by = ? OR claimed_at < ?)
                """,
                (worker_id, to_iso(now), event_id, worker_id, stale_before),
            )
            conn.commit()
            return cursor.rowcount == 1

    def mark_event_processed(self, event_id: int) -> bool:
        """Flip processed to true; returns False if it was already set."""
        with self.connect() as conn:
            cursor = conn.execute(
                "UPDATE events SET processed = 1 WHERE id = ? AND processed = 0",
                (event_id,),
            )
            conn.commit()
            return cursor.rowcount == 1

    # Rules and webhooks

    def insert_rule(
        self,
        event_type: str,
        action: Dict[str, Any],
        condition: Dict[str, Any] | None = None,
        tenant_id: str | None = None,
        name: str | None = None,
        enabled: bool = True,
    ) -> Rule:
        if not event_type:
            raise ValueError("event_type must not be empty")
        if not isinstance(action, dict):
            raise ValueError("action must be an object")
        if condition is not None and not isinstance(condition, dict):
            raise ValueError("condition must be an object")
        with self.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO rules (tenant_id, name, enabled, event_type, condition, action, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    tenant_id,
                    name,
                    1 if enabled else 0,
                    event_type,
                    _dumps(condition or {}),
                    _dumps(action),
                    to_iso(utc_now()),
                ),
            )
            conn.commit()
            rule_id = cursor.lastrowid
        return Rule(
            id=rule_id,
            tenant_id=tenant_id,
            name=name,
            enabled=enabled,
            event_type=event_type,
            condition=condition or {},
            action=action,
        )

    def set_rule_enabled(self, rule_id: int, enabled: bool) -> None:
        with self.connect() as conn:
            conn.execute(
                "UPDATE rules SET enabled = ? WHERE id = ?",
                (1 if enabled else 0, rule_id),
            )
            conn.commit()

    def get_rule(self, rule_id: int) -> Optional[Rule]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM rules WHERE id = ?", (rule_id,)).fetchone()
        return _rule_from_row(row) if row else None

    def update_rule(self, rule_id: int, **fields: Any) -> Rule:
        """Apply an operator PATCH to a rule; tenant scope cannot change."""
        if not fields:
            raise ValueError("no updatable fields provided")
        unknown = set(fields) - RULE_UPDATE_FIELDS
        if unknown:
            raise ValueError(f"Not an updatable rule field: {sorted(unknown)}")
        if "event_type" in fields and not fields["event_type"]:
            raise ValueError("event_type must not be empty")
        if "action" in fields and not isinstance(fields["action"], dict):
            raise ValueError("action must be an object")
        if "condition" in fields:
            if fields["condition"] is None:
                fields["condition"] = {}
            if not isinstance(fields["condition"], dict):
                raise ValueError("condition must be an object")

        values: Dict[str, Any] = {}
        for name, value in fields.items():
            if name in ("action", "condition"):
                values[name] = _dumps(value)
            elif name == "enabled":
                values[name] = 1 if value else 0
            else:
                values[name] = value
        assignments = ", ".join(f"{name} = ?" for name in values)
        with self.connect() as conn:
            cursor = conn.execute(
                f"UPDATE rules SET {assignments} WHERE id = ?",
                (*values.values(), rule_id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise LookupError(f"rule {rule_id} not found")
        rule = self.get_rule(rule_id)
        assert rule is not None
        return rule

    def delete_rule(self, rule_id: int) -> bool:
        with self.connect() as conn:
            cursor = conn.execute("DELETE FROM rules WHERE id = ?", (rule_id,))
            conn.commit()
            return cursor.rowcount > 0

    def select_rules_for_event(self, event: Event) -> List[Rule]:
        """Enabled rules for the event's tenant or global, matching its type."""
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM rules
                WHERE enabled = 1
                  AND (tenant_id = ? OR tenant_id IS NULL)
                  AND event_type IN (?, ?, ?)
                ORDER BY id
                LIMIT ?
                """,
                (
                    event.tenant_id,
                    event.event_type,
                    EVENT_CHANGE_DETECTED,
                    EVENT_ANY,
                    MAX_RULES_PER_EVENT,
                ),
            ).fetchall()
        return [_rule_from_row(row) for row in rows]

    def insert_webhook(
        self,
        url: str,
        secret: str | None = None,
        tenant_id: str | None = None,
        name: str | None = None,
    ) -> Webhook:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO webhooks (tenant_id, name, url, secret, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (tenant_id, name, url, secret, to_iso(utc_now())),
            )
            conn.commit()
            webhook_id = cursor.lastrowid
        return Webhook(id=webhook_id, url=url, secret=secret, tenant_id=tenant_id, name=name)

    def get_webhook(self, webhook_id: int) -> Optional[Webhook]:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT id, url, secret, tenant_id, name FROM webhooks WHERE id = ?",
                (webhook_id,),
            ).fetchone()
        if not row:
            return None
        return Webhook(
            id=row["id"],
            url=row["url"],
            secret=row["secret"],
            tenant_id=row["tenant_id"],
            name=row["name"],
        )

    # Notifications

    def insert_notification(
        self,
        title: str,
        body: str,
        payload: Dict[str, Any],
        tenant_id: str | None = None,
        watch_id: int | None = None,
        event_id: int | None = None,
    ) -> Notification:
        created_at = to_iso(utc_now())
        with self.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO notifications (tenant_id, watch_id, event_id, title, body, payload, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (tenant_id, watch_id, event_id, title, body, _dumps(payload), created_at),
            )
            conn.commit()
            notification_id = cursor.lastrowid
        return Notification(
            id=notification_id,
            tenant_id=tenant_id,
            watch_id=watch_id,
            event_id=event_id,
            title=title,
            body=body,
            payload=payload,
            created_at=created_at,
        )

    def list_notifications(
        self,
        tenant_id: str | None = None,
        unread_only: bool = False,
        limit: int = 100,
    ) -> List[Notification]:
        clauses = []
        params: list = []
        if tenant_id is not None:
            clauses.append("tenant_id = ?")
            params.append(tenant_id)
        if unread_only:
            clauses.append("read = 0")
        query = "SELECT * FROM notifications"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        with self.connect() as conn:
            rows = conn.execute(query, (*params, limit)).fetchall()
        return [_notification_from_row(row) for row in rows]

    def mark_notification_read(self, notification_id: int) -> None:
        with self.connect() as conn:
            conn.execute(
                "UPDATE notifications SET read = 1 WHERE id = ?", (notification_id,)
            )
            conn.commit()

    def export_events_to_xlsx(self, path: Path, limit: int = 5000) -> int:
        """Write the most recent events to a spreadsheet; returns the row count."""
        events = self.list_events(limit=limit)
        workbook = Workbook()
        worksheet = workbook.active
        worksheet.title = "events"
        worksheet.append(EXPORT_COLUMNS)
        for event in events:
            worksheet.append(
                [
                    event.id,
                    event.watch_id,
                    event.tenant_id,
                    event.product_id,
                    event.event_type,
                    event.severity,
                    event.processed,
                    event.created_at,
                    _summarize_payload(event.payload),
                ]
            )
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        workbook.save(path)
        return len(events)


def _summarize_payload(payload: Dict[str, Any]) -> str:
    if "error" in payload:
        return f"error: {payload['error']}"
    diff = payload.get("diff") or {}
    if diff.get("_type") == "initial_snapshot":
        return "initial snapshot"
    changed = sorted(key for key in diff if key not in ("_type", "new"))
    return ", ".join(changed) if changed else "no change"


def _watch_from_row(row: sqlite3.Row) -> Watch:
    snapshot_data = _loads(row["last_snapshot"])
    threshold = row["price_threshold_percent"]
    return Watch(
        id=row["id"],
        source_url=row["source_url"],
        tenant_id=row["tenant_id"],
        product_id=row["product_id"],
        frequency_seconds=int(row["frequency_seconds"] or DEFAULT_FREQUENCY_SECONDS),
        last_snapshot=Snapshot.from_dict(snapshot_data) if snapshot_data else None,
        last_check_at=row["last_check_at"],
        last_status=row["last_status"],
        retry_count=int(row["retry_count"] or 0),
        last_error=row["last_error"],
        next_check_at=row["next_check_at"],
        muted_until=row["muted_until"],
        price_threshold_percent=float(threshold) if threshold is not None else None,
        created_by=row["created_by"],
        created_at=row["created_at"],
    )


def _event_from_row(row: sqlite3.Row) -> Event:
    return Event(
        id=row["id"],
        watch_id=row["watch_id"],
        tenant_id=row["tenant_id"],
        product_id=row["product_id"],
        event_type=row["event_type"],
        severity=row["severity"],
        payload=_loads(row["payload"], default={}),
        processed=bool(row["processed"]),
        created_at=row["created_at"],
    )


def _rule_from_row(row: sqlite3.Row) -> Rule:
    return Rule(
        id=row["id"],
        tenant_id=row["tenant_id"],
        name=row["name"],
        enabled=bool(row["enabled"]),
        event_type=row["event_type"],
        condition=_loads(row["condition"], default={}),
        action=_loads(row["action"], default={}),
    )


def _notification_from_row(row: sqlite3.Row) -> Notification:
    return Notification(
        id=row["id"],
        tenant_id=row["tenant_id"],
        watch_id=row["watch_id"],
        event_id=row["event_id"],
        title=row["title"],
        body=row["body"],
        payload=_loads(row["payload"], default={}),
        read=bool(row["read"]),
        created_at=row["created_at"],
    )

