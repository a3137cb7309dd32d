"""Email notification adapter.

Sends alerts over SMTP. smtplib is blocking, so the send runs in the
default executor to keep the delivery loop responsive.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from telltale.core.models import Alert
from telltale.core.ports import AlertChannelPort

logger = logging.getLogger(__name__)


class EmailAlertChannel(AlertChannelPort):
    """Emails fired alerts to a fixed recipient list."""

    def __init__(
        self,
        smtp_host: str,
        sender: str,
        recipients: list[str],
        smtp_port: int = 587,
        password: str = "",
        use_tls: bool = True,
        enabled: bool = True,
        timeout_seconds: float = 10.0,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.sender = sender
        self.recipients = list(recipients)
        self.password = password
        self.use_tls = use_tls
        self.enabled = enabled
        self.timeout_seconds = timeout_seconds

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.smtp_host and self.sender and self.recipients)

    async def send(self, alert: Alert) -> None:
        msg = self.build_message(alert)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._smtp_send, msg)
        logger.info(
            f"Email alert sent to {len(self.recipients)} recipient(s): {alert.rule.name}",
            extra={"rule_id": alert.rule.id, "event_id": alert.event.id},
        )

    def build_message(self, alert: Alert) -> MIMEMultipart:
        event = alert.event
        msg = MIMEMultipart("alternative")
        msg["Subject"] = f"[{alert.rule.severity.value.upper()}] {alert.rule.name}"
        msg["From"] = self.sender
        msg["To"] = ", ".join(self.recipients)

        text = (
            f"{alert.rule.name}\n\n{event.message}\n\n"
            f"Environment: {alert.environment}\n"
            f"User: {event.user.id}\n"
            f"Error type: {event.exception.type}\n"
            f"Event ID: {event.id}"
        )
        html = f"""<div style="font-family:sans-serif;max-width:600px">
        <h2 style="color:#c0392b">{escape(alert.rule.name)}</h2>
        <p>{escape(event.message)}</p>
        <table style="margin-top:12px">
        <tr><td style="color:#888">Environment</td><td>{escape(alert.environment)}</td></tr>
        <tr><td style="color:#888">User</td><td>{escape(event.user.id)}</td></tr>
        <tr><td style="color:#888">Error type</td><td>{escape(event.exception.type)}</td></tr>
        <tr><td style="color:#888">Event ID</td><td>{escape(event.id)}</td></tr>
        </table>
        </div>"""

        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))
        return msg

    def _smtp_send(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(
            self.smtp_host, self.smtp_port, timeout=self.timeout_seconds
        ) as server:
            if self.use_tls:
                server.starttls()
            if self.password:
                server.login(self.sender, self.password)
            server.send_message(msg)
