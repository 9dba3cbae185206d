"""
HealthFlux Backend — Email Sender
==================================

What:  Outbound email (to / subject / plain-text body) for share-link
       notifications.
How:   EmailSender is the interface; ResendEmailService posts to the Resend
       HTTP API with httpx. Any failure is raised as EmailDeliveryError so
       the caller decides whether delivery is fatal.
Who:   ShareLinkService, through the app-scoped instance on app.state.
"""

import logging
from abc import ABC, abstractmethod

import httpx

from healthflux.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)


class EmailSender(ABC):
    """Sends a single plain-text email or raises EmailDeliveryError."""

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        ...


class ResendEmailService(EmailSender):
    """
    Resend (https://resend.com) implementation.

    Args:
        api_key: Resend API key. Without one every send raises
            EmailDeliveryError instead of silently dropping the message.
        sender: The "from" address, e.g. "HealthFlux <no-reply@healthflux.app>".
        api_url: Resend emails endpoint.
        timeout_seconds: Request timeout.
    """

    def __init__(
        self,
        api_key: str,
        sender: str,
        api_url: str = "https://api.resend.com/emails",
        timeout_seconds: int = 15,
    ):
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds

    async def send(self, to: str, subject: str, body: str) -> None:
        if not self.api_key:
            logger.warning("Email sending disabled (RESEND_API_KEY not set): %s to %s", subject, to)
            raise EmailDeliveryError(
                message="Email delivery is not configured",
                context={"to": to},
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    self.api_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": self.sender,
                        "to": to,
                        "subject": subject,
                        "text": body,
                    },
                )
        except httpx.HTTPError as e:
            logger.error("Email send error: to=%s error=%s", to, str(e))
            raise EmailDeliveryError(
                message="Email service could not be reached",
                context={"to": to, "error_type": type(e).__name__},
            )

        if response.status_code >= 400:
            logger.error("Email send failed: %d - %s", response.status_code, response.text)
            raise EmailDeliveryError(
                message=f"Email service rejected the message ({response.status_code})",
                context={"to": to, "status_code": response.status_code},
            )

        logger.info("Email sent successfully to %s: %s", to, subject)
