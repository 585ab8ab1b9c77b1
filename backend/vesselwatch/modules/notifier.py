"""Outbound alert notifications, delivered as email through Apprise.

The detection cycle only sees the ``Notifier`` protocol:
``send(subject, body, recipients) -> NotificationResult``. Delivery problems
come back as ``NotificationResult(success=False, reason=..)`` so a broken mail
relay cannot abort a detection tick.
"""
from __future__ import annotations

import html
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol, Sequence
from urllib.parse import urlencode

import apprise

from vesselwatch.config import settings
from vesselwatch.models.anomaly import MissingEntity, RouteDeviation

logger = logging.getLogger(__name__)

SUBJECT_PREFIX = "VesselWatch Alert"


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    reason: str | None = None


class Notifier(Protocol):
    def send(self, subject: str, body: str, recipients: Sequence[str]) -> NotificationResult:
        ...


class AlertRecipients:
    """Operator-configured addresses: the user and the coast guard contact."""

    def __init__(self, user_email: str | None = None, coast_guard_email: str | None = None) -> None:
        self._lock = threading.Lock()
        self.user_email = user_email
        self.coast_guard_email = coast_guard_email

    def update(self, user_email: str | None = None, coast_guard_email: str | None = None) -> dict:
        """Set whichever addresses are given; None leaves an address unchanged."""
        with self._lock:
            if user_email:
                self.user_email = user_email
            if coast_guard_email:
                self.coast_guard_email = coast_guard_email
            return self.as_dict()

    def as_dict(self) -> dict:
        return {"user_email": self.user_email, "coast_guard_email": self.coast_guard_email}

    def recipients(self) -> list[str]:
        return [addr for addr in (self.user_email, self.coast_guard_email) if addr]


class EmailNotifier:
    """Sends HTML alert mail via an Apprise ``mailtos://`` target built per send."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        use_ssl: bool | None = None,
        timeout: float | None = None,
    ) -> None:
        self.host = host or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.username = username if username is not None else settings.SMTP_USERNAME
        self.password = password if password is not None else settings.SMTP_PASSWORD
        self.sender = sender or settings.ALERT_SENDER
        self.use_ssl = settings.SMTP_USE_SSL if use_ssl is None else use_ssl
        self.timeout = timeout or settings.SMTP_TIMEOUT_SECONDS

    def target_url(self, recipients: Sequence[str]) -> str:
        params = {
            "smtp": self.host,
            "mode": "ssl" if self.use_ssl else "starttls",
            "from": self.sender,
            "to": ",".join(recipients),
            "cto": f"{self.timeout:g}",
        }
        if self.username and self.password:
            params["user"] = self.username
            params["pass"] = self.password
        return f"mailtos://{self.host}:{self.port}/?{urlencode(params)}"

    def send(self, subject: str, body: str, recipients: Sequence[str]) -> NotificationResult:
        if not recipients:
            logger.info("No email addresses configured for alerts")
            return NotificationResult(success=False, reason="No email addresses configured")

        apobj = apprise.Apprise()
        if not apobj.add(self.target_url(recipients)):
            logger.error("Rejected email notification target for %s", self.host)
            return NotificationResult(success=False, reason="Invalid email configuration")

        delivered = apobj.notify(
            title=f"{SUBJECT_PREFIX}: {subject}",
            body=_wrap_html(subject, body),
            body_format=apprise.NotifyFormat.HTML,
            notify_type=apprise.NotifyType.WARNING,
        )
        if not delivered:
            logger.error("Error sending alert email '%s' via %s", subject, self.host)
            return NotificationResult(success=False, reason=f"Delivery via {self.host} failed")

        logger.info("Alert email sent: %s -> %d recipients", subject, len(recipients))
        return NotificationResult(success=True)


# ---------------------------------------------------------------------------
# Message bodies
# ---------------------------------------------------------------------------


def _fmt_time(epoch_ms: int) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _vessel_label(metadata) -> str:
    name = metadata.get("name") or metadata.get("vessel_name")
    return html.escape(str(name)) if name else "Unknown vessel"


def format_deviation_alert(deviation: RouteDeviation) -> tuple[str, str]:
    report = deviation.report
    subject = f"Route Deviation - MMSI {report.entity_id}"
    course = f"{report.course_degrees:.0f}°" if report.course_degrees is not None else "unknown"
    body = (
        f"<p><strong>{_vessel_label(report.metadata)}</strong> "
        f"(MMSI {html.escape(report.entity_id)}) has left its recent track.</p>"
        f"<ul>"
        f"<li>Deviation: {deviation.distance_nm:.1f} nautical miles off the expected route</li>"
        f"<li>Position: {report.latitude:.5f}, {report.longitude:.5f}</li>"
        f"<li>Speed: {report.speed_knots:.1f} knots, course {course}</li>"
        f"<li>Observed: {_fmt_time(report.observed_at_ms)}</li>"
        f"</ul>"
    )
    return subject, body


def format_shutoff_alert(missing: MissingEntity) -> tuple[str, str]:
    report = missing.last_report
    subject = f"AIS Signal Lost - MMSI {missing.entity_id}"
    body = (
        f"<p><strong>{_vessel_label(report.metadata)}</strong> "
        f"(MMSI {html.escape(missing.entity_id)}) stopped reporting inside the monitored zone.</p>"
        f"<ul>"
        f"<li>Last known position: {report.latitude:.5f}, {report.longitude:.5f}</li>"
        f"<li>Last seen: {_fmt_time(missing.last_seen_ms)}</li>"
        f"<li>Missing since: {_fmt_time(missing.missing_at_ms)}</li>"
        f"</ul>"
    )
    return subject, body


def format_test_alert() -> tuple[str, str]:
    return (
        "Test Notification",
        "<p>This is a test alert from the VesselWatch maritime monitoring system.</p>"
        "<p>If you received this message, your alert notifications are configured correctly.</p>",
    )


def send_test_notification(notifier: Notifier, recipients: AlertRecipients) -> NotificationResult:
    subject, body = format_test_alert()
    return notifier.send(subject, body, recipients.recipients())


def _wrap_html(subject: str, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        '<h2 style="color: #3366cc;">Maritime Alert Notification</h2>'
        f'<p style="color: #d32f2f; font-weight: bold;">ALERT TYPE: {html.escape(subject)}</p>'
        f"<div>{body}</div>"
        '<p style="font-size: 12px; color: #666;">This is an automated alert from the '
        "VesselWatch maritime monitoring system.</p>"
        "</div>"
    )
