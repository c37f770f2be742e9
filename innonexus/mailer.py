"""
Mail abstraction for Resend and in-memory testing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import resend

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    success: bool
    message: str
    error: Optional[str] = None


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    text: str
    html: Optional[str] = None


class Mailer(Protocol):
    """Defines what the workflows need from an email provider."""

    def send(
        self, to: str, subject: str, text: str, html: Optional[str] = None
    ) -> EmailResult:
        ...


@dataclass
class InMemoryMailer:
    """Test double that records every message instead of delivering it."""

    outbox: list[OutgoingEmail] = field(default_factory=list)

    def send(
        self, to: str, subject: str, text: str, html: Optional[str] = None
    ) -> EmailResult:
        self.outbox.append(OutgoingEmail(to=to, subject=subject, text=text, html=html))
        return EmailResult(success=True, message=f"Email recorded for {to}.")

    def reset(self) -> None:
        self.outbox.clear()


@dataclass
class LoggingMailer:
    """
    Used when no Resend API key is configured: logs the message and reports
    that nothing was sent.
    """

    def send(
        self, to: str, subject: str, text: str, html: Optional[str] = None
    ) -> EmailResult:
        logger.warning("RESEND_API_KEY not set, simulating email to %s", to)
        logger.info("Subject: %s\n%s", subject, text)
        return EmailResult(
            success=False,
            message="Email sending disabled: RESEND_API_KEY not found.",
            error="RESEND_API_KEY_MISSING",
        )


@dataclass
class ResendMailer:
    """Delivers mail through the Resend API."""

    api_key: str
    from_email: str

    def __post_init__(self):
        resend.api_key = self.api_key

    def send(
        self, to: str, subject: str, text: str, html: Optional[str] = None
    ) -> EmailResult:
        params: dict = {
            "from": self.from_email,
            "to": [to],
            "subject": subject,
            "text": text,
        }
        if html:
            params["html"] = html
        try:
            response = resend.Emails.send(params)
        except Exception as e:
            logger.exception("Failed to send email to %s via Resend", to)
            return EmailResult(
                success=False,
                message=f"Failed to send email via Resend: {e}",
                error=str(e),
            )
        logger.info("Email sent to %s via Resend (id=%s)", to, response.get("id"))
        return EmailResult(success=True, message=f"Email sent successfully to {to}.")
