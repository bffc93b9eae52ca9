"""Delivery of rule actions: signed webhooks, email and in-app notifications."""

from __future__ import annotations

import hashlib
import hmac
import html
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import requests

from .db import Database
from .models import (
    ActionResult,
    AppNotificationAction,
    DeliveryError,
    DeliveryOk,
    DeliveryOutcome,
    EmailAction,
    Event,
    Rule,
    Skipped,
    UnknownAction,
    WebhookAction,
    parse_action,
)

logger = logging.getLogger(__name__)

SENDGRID_ENDPOINT = "https://api.sendgrid.com/v3/mail/send"
SIGNATURE_HEADER = "X-Monitor-Signature"
DEFAULT_NOTIFICATION_TITLE = "Change detected"
MAX_BODY_CHARS = 1000


def sign_payload(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the exact request body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def render_payload_html(payload: Dict[str, Any]) -> str:
    pretty = json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)
    return f"<pre>{html.escape(pretty)}</pre>"


def summarize_payload(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False)[:MAX_BODY_CHARS]


class EmailSender(Protocol):
    """Protocol defining the transactional email contract."""

    def send(self, to: str, subject: str, html_body: str) -> DeliveryOutcome:
        ...


@dataclass
class WebhookSender:
    """POST JSON bodies to webhook endpoints, signing when a secret is known."""

    timeout: int = 10

    def send(
        self,
        url: str,
        payload: Dict[str, Any],
        secret: str | None = None,
    ) -> DeliveryOutcome:
        body = json.dumps(payload, ensure_ascii=False, default=str).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if secret:
            headers[SIGNATURE_HEADER] = sign_payload(body, secret)
        try:
            response = requests.post(
                url,
                data=body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            return DeliveryError(reason=f"webhook request failed: {exc}")
        if not response.ok:
            return DeliveryError(
                reason=f"webhook returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return DeliveryOk(status_code=response.status_code)


@dataclass
class SendGridEmailSender:
    """Send HTML email through the SendGrid v3 mail API."""

    api_key: Optional[str]
    from_email: str
    timeout: int = 10

    def send(self, to: str, subject: str, html_body: str) -> DeliveryOutcome:
        if not self.api_key:
            return DeliveryError(reason="No SENDGRID_API_KEY configured")
        message = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": [{"type": "text/html", "value": html_body}],
        }
        try:
            response = requests.post(
                SENDGRID_ENDPOINT,
                json=message,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            return DeliveryError(reason=f"email request failed: {exc}")
        if not response.ok:
            return DeliveryError(
                reason=f"email provider returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return DeliveryOk(status_code=response.status_code)


@dataclass
class NotificationDispatcher:
    """Executes the single action attached to a matching rule."""

    database: Database
    email_sender: EmailSender
    webhook_sender: WebhookSender = field(default_factory=WebhookSender)

    def dispatch(self, rule: Rule, event: Event) -> ActionResult:
        action = parse_action(rule.action)
        if isinstance(action, WebhookAction):
            outcome = self._send_webhook(action, rule, event)
            name = "webhook"
        elif isinstance(action, EmailAction):
            outcome = self._send_email(action, event)
            name = "email"
        elif isinstance(action, AppNotificationAction):
            outcome = self._create_notification(action, event)
            name = "app_notification"
        elif isinstance(action, UnknownAction):
            outcome = Skipped(reason="unknown_action")
            name = "noop"
        else:
            raise TypeError(f"Unhandled action variant: {action!r}")

        if isinstance(outcome, DeliveryError):
            logger.warning(
                "Rule %s %s delivery failed for event %s: %s",
                rule.id,
                name,
                event.id,
                outcome.reason,
            )
        return ActionResult(action=name, outcome=outcome, rule_id=rule.id)

    def notify_default(self, event: Event) -> ActionResult:
        """In-app fallback used when no rule applies to a detected change."""
        self.database.insert_notification(
            tenant_id=event.tenant_id,
            watch_id=event.watch_id,
            event_id=event.id,
            title=DEFAULT_NOTIFICATION_TITLE,
            body=summarize_payload(event.payload),
            payload=event.payload,
        )
        return ActionResult(
            action="app_notification",
            outcome=DeliveryOk(detail="default"),
        )

    def _send_webhook(
        self,
        action: WebhookAction,
        rule: Rule,
        event: Event,
    ) -> DeliveryOutcome:
        secret = None
        if action.webhook_id is not None:
            webhook = self.database.get_webhook(action.webhook_id)
            if webhook is None:
                logger.warning(
                    "Rule %s references missing webhook %s; sending unsigned",
                    rule.id,
                    action.webhook_id,
                )
            else:
                secret = webhook.secret
        return self.webhook_sender.send(
            action.url,
            {"rule": rule.to_dict(), "event": event.to_dict()},
            secret=secret,
        )

    def _send_email(self, action: EmailAction, event: Event) -> DeliveryOutcome:
        subject = action.subject or f"Monitor alert: {event.event_type}"
        return self.email_sender.send(
            action.to, subject, render_payload_html(event.payload)
        )

    def _create_notification(
        self,
        action: AppNotificationAction,
        event: Event,
    ) -> DeliveryOutcome:
        notification = self.database.insert_notification(
            tenant_id=event.tenant_id,
            watch_id=event.watch_id,
            event_id=event.id,
            title=action.title or f"Monitor: {event.event_type}",
            body=action.body or summarize_payload(event.payload),
            payload=event.payload,
        )
        return DeliveryOk(detail=f"notification {notification.id}")
