"""Alert notification channels and the fan-out notifier."""
import json
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from rich.markup import escape

from models.enums import SEVERITY_RANK, Severity
from utils.http_client import HTTPClient

logger = logging.getLogger("swapwatch.alerts.channels")


@dataclass
class NotificationResult:
    success: bool
    channel: str = ""
    message_id: Optional[str] = None
    error: Optional[str] = None


@runtime_checkable
class AlertChannel(Protocol):
    name: str

    def send(self, alert) -> NotificationResult: ...


def build_message(alert):
    """Notification body for downstream fan-out consumers."""
    metadata = alert.metadata or {}
    return {
        "alertId": alert.alert_id,
        "stationId": alert.station_id,
        "alertType": alert.alert_type.value,
        "severity": alert.severity.value,
        "status": alert.status.value,
        "title": alert.title,
        "description": alert.description,
        "recommendedAction": alert.recommended_action,
        "createdAt": alert.created_at,
        "metadata": metadata,
        "recommendation": metadata.get("recommendation"),
        "primaryAction": metadata.get("primaryAction"),
    }


def build_subject(alert):
    return f"[{alert.severity.value}] {alert.alert_type.value} Alert: {alert.station_id}"


def build_attributes(alert):
    """Tagged attributes for downstream filtering."""
    return {
        "alertType": alert.alert_type.value,
        "severity": alert.severity.value,
        "stationId": alert.station_id,
    }


class ConsoleChannel:
    """Print alerts to terminal with rich formatting."""
    name = "console"

    SEVERITY_STYLES = {
        "CRITICAL": "bold white on red",
        "HIGH": "bold red",
        "MEDIUM": "bold yellow",
        "LOW": "bold blue",
    }

    def __init__(self, console=None):
        if console is None:
            from rich.console import Console
            console = Console()
        self.console = console

    def send(self, alert):
        sev = alert.severity.value
        style = self.SEVERITY_STYLES.get(sev, "")
        self.console.print(f"[{style}]{escape(f'[{sev}]')} {alert.station_id} {alert.title}[/]: {escape(alert.recommended_action)}")
        return NotificationResult(success=True, channel=self.name, message_id=alert.alert_id)


class FileChannel:
    """Append alert notifications to a JSON lines file."""
    name = "file"

    def __init__(self, log_path="data/alerts.jsonl"):
        self.log_path = log_path

    def send(self, alert):
        entry = {"subject": build_subject(alert), "attributes": build_attributes(alert), **build_message(alert)}
        try:
            Path(self.log_path).parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            logger.warning(f"Failed to write alert to file: {e}")
            return NotificationResult(success=False, channel=self.name, error=str(e))
        return NotificationResult(success=True, channel=self.name, message_id=alert.alert_id)


class WebhookChannel:
    """POST alert notifications to an HTTP fan-out endpoint."""
    name = "webhook"

    def __init__(self, url, min_severity="LOW", client=None, timeout=10, max_retries=2):
        self.url = url
        self.min_severity = Severity(min_severity)
        self.client = client or HTTPClient(url, timeout=timeout, max_retries=max_retries)

    def send(self, alert):
        if SEVERITY_RANK[alert.severity] < SEVERITY_RANK[self.min_severity]:
            return NotificationResult(success=False, channel=self.name, error="below min severity")

        payload = {
            "subject": build_subject(alert),
            "message": build_message(alert),
            "attributes": build_attributes(alert),
        }
        try:
            body = self.client.post_json(payload)
        except Exception as e:
            logger.warning(f"Webhook delivery failed for {alert.alert_id}: {e}")
            return NotificationResult(success=False, channel=self.name, error=str(e))

        message_id = body.get("messageId") if isinstance(body, dict) else None
        return NotificationResult(success=True, channel=self.name, message_id=message_id or str(uuid.uuid4()))


class Notifier:
    """Fans an alert out to every channel; one channel failing never stops the rest."""

    def __init__(self, channels=None):
        self.channels = list(channels or [])

    def publish(self, alert) -> NotificationResult:
        results = []
        for channel in self.channels:
            try:
                results.append(channel.send(alert))
            except Exception as e:
                logger.warning(f"Channel dispatch error ({getattr(channel, 'name', channel)}): {e}")
                results.append(NotificationResult(success=False, channel=getattr(channel, "name", ""), error=str(e)))

        for result in results:
            if result.success:
                return result
        errors = "; ".join(r.error for r in results if r.error) or "no channels configured"
        return NotificationResult(success=False, error=errors)
