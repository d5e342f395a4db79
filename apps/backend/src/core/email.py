"""Escalation email through Azure Communication Services.

Sending is blocking (the SDK poller waits for the service), so the
``EscalationNotifier`` runs it in a worker thread, races it against a short
deadline, and does all of that in a background task so the turn that asked
for the escalation never waits on the mail server.
"""

import asyncio
import html
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from azure.communication.email import EmailClient
from azure.core.exceptions import HttpResponseError

from core.background import BackgroundTaskManager
from core.config import get_settings


_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EscalationEmail:
    """Everything the support team needs to pick up an escalated case."""

    issue: str
    customer_id: str | None = None
    customer_name: str = "Valued Customer"
    customer_email: str | None = None
    tier: str = "standard"
    ticket_id: str | None = None
    severity: str = "medium"
    conversation_history: str | None = None
    agent_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


def _get_email_client() -> EmailClient | None:
    """Client for the configured ACS resource, or None when email is off."""
    connection_string = get_settings().AZURE_COMMUNICATION_CONNECTION_STRING
    if connection_string:
        return EmailClient.from_connection_string(connection_string)
    _logger.warning(
        "AZURE_COMMUNICATION_CONNECTION_STRING not set; escalation emails disabled"
    )
    return None


def _compose_message(
    to_email: str, subject: str, html_content: str, plain_text: str | None
) -> dict[str, Any]:
    content: dict[str, str] = {"subject": subject, "html": html_content}
    if plain_text:
        content["plainText"] = plain_text
    return {
        "senderAddress": get_settings().EMAIL_SENDER_ADDRESS,
        "recipients": {"to": [{"address": to_email}]},
        "content": content,
        "headers": {"Importance": "high"},
    }


def send_email(
    to_email: str,
    subject: str,
    html_content: str,
    plain_text_content: str | None = None,
) -> bool:
    """Send one message and wait for ACS to accept it.

    Returns False when email is not configured or the service rejects it.
    """
    client = _get_email_client()
    if client is None:
        _logger.info("Skipping email to %s: no email client", to_email)
        return False

    message = _compose_message(to_email, subject, html_content, plain_text_content)
    try:
        poller = client.begin_send(message)
        outcome = poller.result()
    except HttpResponseError as err:
        _logger.error(
            "Email to %s rejected (status %s): %s",
            to_email,
            err.status_code,
            err.message,
        )
        return False

    _logger.info("Email to %s accepted as %s", to_email, outcome.get("id", "unknown"))
    return True


def build_escalation_email(payload: EscalationEmail) -> tuple[str, str, str]:
    """Render ``(subject, html, plain_text)`` for an escalation."""
    settings = get_settings()
    agent_id = payload.agent_id or settings.AGENT_ID
    escalated_at = payload.timestamp.strftime("%Y-%m-%d %H:%M:%S %Z")
    history = payload.conversation_history or "No conversation history available."

    def esc(value: object) -> str:
        return html.escape(str(value))

    ticket_row = (
        f'<p><span class="label">Ticket ID:</span> {esc(payload.ticket_id)}</p>'
        if payload.ticket_id
        else ""
    )

    subject = f"Escalation: {payload.customer_name} ({payload.tier})"
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <div style="background-color: #f44336; color: white; padding: 20px; text-align: center;">
            <h2>Customer Issue Escalation</h2>
            <p><strong>REQUIRES HUMAN ATTENTION</strong> (severity: {esc(payload.severity)})</p>
        </div>
        <div style="padding: 15px; border-left: 4px solid #2196F3;">
            <h3>Customer Information</h3>
            <p><span class="label">Customer ID:</span> {esc(payload.customer_id or "Unknown")}</p>
            <p><span class="label">Name:</span> {esc(payload.customer_name)}</p>
            <p><span class="label">Email:</span> {esc(payload.customer_email or "Not provided")}</p>
            <p><span class="label">Tier:</span> <strong>{esc(payload.tier)}</strong></p>
            <p><span class="label">Escalated At:</span> {esc(escalated_at)}</p>
            {ticket_row}
        </div>
        <div style="padding: 15px; border-left: 4px solid #f44336;">
            <h3>Issue Summary</h3>
            <p>{esc(payload.issue)}</p>
        </div>
        <h3>Conversation History</h3>
        <pre style="white-space: pre-wrap;">{esc(history)}</pre>
        <p><span class="label">Agent ID:</span> {esc(agent_id)}</p>
        <div style="background-color: #fff3cd; padding: 15px; border-left: 4px solid #ffc107;">
            <h4>Next Steps</h4>
            <ol>
                <li>Review the customer issue and history immediately.</li>
                <li>Contact the customer within 2 hours.</li>
                <li>Document the resolution on the ticket.</li>
            </ol>
        </div>
        <p style="color: #999; font-size: 12px; margin-top: 30px;">
            This is an automated escalation from the support voice agent.
        </p>
    </body>
    </html>
    """
    plain_text = f"""
Customer Issue Escalation (severity: {payload.severity})

Customer ID: {payload.customer_id or "Unknown"}
Name: {payload.customer_name}
Email: {payload.customer_email or "Not provided"}
Tier: {payload.tier}
Escalated At: {escalated_at}
Ticket ID: {payload.ticket_id or "n/a"}

Issue:
{payload.issue}

Conversation History:
{history}

Agent ID: {agent_id}
"""
    return subject, html_content, plain_text


def send_escalation_email(payload: EscalationEmail) -> bool:
    """Send the escalation email to the configured support inbox (blocking)."""
    settings = get_settings()
    subject, html_content, plain_text = build_escalation_email(payload)
    return send_email(settings.SUPPORT_EMAIL, subject, html_content, plain_text)


class EscalationNotifier:
    """Dispatch escalation emails without blocking the caller.

    ``notify`` returns immediately with the spawned task. The task runs the
    blocking send in a worker thread with a deadline; timeouts and failures
    are logged and resolve to ``False``.
    """

    def __init__(
        self,
        tasks: BackgroundTaskManager,
        *,
        timeout_seconds: float | None = None,
        sender=send_escalation_email,
    ) -> None:
        self._tasks = tasks
        self._timeout = timeout_seconds or get_settings().ESCALATION_EMAIL_TIMEOUT_SECONDS
        self._sender = sender

    def notify(self, payload: EscalationEmail) -> asyncio.Task[bool]:
        return self._tasks.spawn(
            self.deliver(payload), name=f"escalation-email:{payload.ticket_id}"
        )

    async def deliver(self, payload: EscalationEmail) -> bool:
        try:
            sent = await asyncio.wait_for(
                asyncio.to_thread(self._sender, payload), timeout=self._timeout
            )
        except TimeoutError:
            _logger.warning(
                "Escalation email for ticket %s timed out after %.1fs",
                payload.ticket_id,
                self._timeout,
            )
            return False
        except Exception:
            _logger.exception(
                "Escalation email for ticket %s failed", payload.ticket_id
            )
            return False

        if not sent:
            _logger.info("Escalation email for ticket %s not sent", payload.ticket_id)
        return bool(sent)
