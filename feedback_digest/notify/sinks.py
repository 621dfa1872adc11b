"""
Notification sinks for rendered reports.

A sink receives a finished Report and a recipient. Delivery is attempted
once; any failure raises DeliveryError so the orchestrator can stop before
the run-state is advanced.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from pathlib import Path

import httpx

from ..config import NotifyConfig
from ..errors import ConfigError, DeliveryError
from ..types import Report
from ..utils.logging import log_event

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


class NotificationSink(ABC):
    """Delivery interface: one report, one recipient, no status polling."""

    name: str = "base"

    @abstractmethod
    def send(self, report: Report, recipient: str | None) -> None:
        raise NotImplementedError


class SendGridSink(NotificationSink):
    """Email delivery through the SendGrid v3 mail endpoint."""

    name = "sendgrid"

    def __init__(self, cfg: NotifyConfig, transport: httpx.BaseTransport | None = None):
        missing = [f"notify.{attr}" for attr in ("api_key", "sender") if not getattr(cfg, attr)]
        if missing:
            raise ConfigError(missing)
        self.cfg = cfg
        self._transport = transport

    def send(self, report: Report, recipient: str | None) -> None:
        if not recipient:
            raise DeliveryError(None, "No recipient configured")
        payload = {
            "personalizations": [{"to": [{"email": recipient}]}],
            "from": {"email": self.cfg.sender},
            "subject": report.subject,
            "content": [
                {"type": "text/plain", "value": report.text_body},
                {"type": "text/html", "value": report.html_body},
            ],
        }
        headers = {"Authorization": f"Bearer {self.cfg.api_key}"}
        try:
            with httpx.Client(timeout=self.cfg.timeout_seconds, transport=self._transport) as client:
                resp = client.post(SENDGRID_URL, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise DeliveryError(None, f"{type(exc).__name__}: {exc}") from exc
        if resp.status_code >= 300:
            raise DeliveryError(resp.status_code, _error_message(resp))
        log_event(logger, "Report emailed", event="delivery_done", sink=self.name, recipient=recipient)


class FileSink(NotificationSink):
    """Write the report bodies to ``output_dir`` instead of sending them."""

    name = "file"

    def __init__(self, output_dir: Path | str):
        self.output_dir = Path(output_dir)

    def send(self, report: Report, recipient: str | None) -> None:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            (self.output_dir / "report.html").write_text(report.html_body, encoding="utf-8")
            (self.output_dir / "report.txt").write_text(
                f"Subject: {report.subject}\n\n{report.text_body}", encoding="utf-8"
            )
        except OSError as exc:
            raise DeliveryError(None, f"Could not write report to {self.output_dir}: {exc}") from exc
        log_event(
            logger,
            "Report written",
            event="delivery_done",
            sink=self.name,
            output=str(self.output_dir / "report.html"),
        )


def create_sink(cfg: NotifyConfig, transport: httpx.BaseTransport | None = None) -> NotificationSink:
    backend = cfg.backend.lower().strip()
    if backend == "sendgrid":
        return SendGridSink(cfg, transport=transport)
    if backend == "file":
        return FileSink(cfg.output_dir)
    raise ConfigError([f"notify.backend (unsupported: {cfg.backend})"])


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason_phrase
    errors = data.get("errors") if isinstance(data, dict) else None
    if isinstance(errors, list) and errors:
        return "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
    return resp.reason_phrase or "Unknown error"
