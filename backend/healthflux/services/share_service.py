"""
HealthFlux Backend — Share-Link Issuer
=======================================

What:  Creates time-boxed ShareableLink records and optionally emails the
       link to the recipient.
How:   Two phases with independent outcomes:
         1. Persist the link (failure fails the request)
         2. Notify the recipient (failure is logged and reported in the
            result; the link stays created)
Who:   POST /api/share-links

Token format:
    "{uuid4}-{base36 milliseconds since epoch}", fresh on every call.
    Expiry is stored as an absolute timestamp and not enforced here; the
    share-access side owns that check.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from healthflux.exceptions import EmailDeliveryError
from healthflux.schemas.entities import ShareableLink
from healthflux.schemas.sharing import NotificationOutcome, ShareLinkRequest, ShareLinkResponse
from healthflux.services.auth_service import Identity
from healthflux.services.email_service import EmailSender
from healthflux.services.entity_store import EntityStore

logger = logging.getLogger(__name__)

MESSAGE_CREATED = "Link created successfully"
MESSAGE_CREATED_AND_SENT = "Link created and email sent"

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_link_token(now: datetime) -> str:
    millis = int(now.timestamp() * 1000)
    return f"{uuid.uuid4()}-{to_base36(millis)}"


def to_iso_utc(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ShareLinkResult:
    link: ShareableLink
    share_url: str
    expires_at: datetime
    notification: NotificationOutcome

    def to_response(self) -> ShareLinkResponse:
        message = MESSAGE_CREATED_AND_SENT if self.notification.status == "sent" else MESSAGE_CREATED
        return ShareLinkResponse(
            success=True,
            link_id=self.link.id,
            share_url=self.share_url,
            expires_at=to_iso_utc(self.expires_at),
            message=message,
            notification=self.notification,
        )


def build_share_email(
    sender: Identity,
    share_url: str,
    expires_at: datetime,
    recipient_name: Optional[str],
    purpose: Optional[str],
) -> tuple:
    """Subject and plain-text body of the share notification."""
    subject = f"{sender.full_name or 'Someone'} shared health records with you"
    greeting = f"Hello {recipient_name}," if recipient_name else "Hello,"
    purpose_line = f"Purpose: {purpose}\n\n" if purpose else ""
    expiry = expires_at.astimezone(timezone.utc)
    body = (
        f"{greeting}\n\n"
        f"{sender.full_name or 'A HealthFlux user'} has securely shared health information with you.\n\n"
        f"{purpose_line}"
        f"Access the shared records here:\n"
        f"{share_url}\n\n"
        f"This link will expire on {expiry.strftime('%Y-%m-%d')} at {expiry.strftime('%H:%M')} UTC.\n\n"
        f"Note: This is a secure, time-limited link. Do not share it with others.\n\n"
        f"Best regards,\n"
        f"HealthFlux Team"
    )
    return subject, body


class ShareLinkService:
    """
    Args:
        store: Entity store holding ShareableLink records.
        email_sender: Outbound email channel.
        fallback_origin: Base URL when the request has no Origin header.
        default_expires_hours: Link lifetime when the request gives none.
        clock: Returns the current UTC time; replaced in tests.
    """

    def __init__(
        self,
        store: EntityStore,
        email_sender: EmailSender,
        fallback_origin: str,
        default_expires_hours: int = 168,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.email_sender = email_sender
        self.fallback_origin = fallback_origin.rstrip("/")
        self.default_expires_hours = default_expires_hours
        self.clock = clock

    async def create_link(
        self,
        request: ShareLinkRequest,
        sender: Identity,
        origin: Optional[str] = None,
    ) -> ShareLinkResult:
        now = self.clock()
        token = generate_link_token(now)
        hours = request.expires_hours or self.default_expires_hours
        expires_at = now + timedelta(hours=hours)

        row = await self.store.create(
            "ShareableLink",
            {
                "profile_id": request.profile_id,
                "link_token": token,
                "share_type": request.share_type,
                "resource_ids": request.resource_ids,
                "access_level": request.access_level,
                "expires_at": to_iso_utc(expires_at),
                "recipient_email": request.recipient_email,
                "recipient_name": request.recipient_name,
                "purpose": request.purpose,
                "is_active": True,
                "view_count": 0,
            },
        )
        link = ShareableLink.model_validate(row)
        share_url = f"{(origin or self.fallback_origin).rstrip('/')}/share/{token}"

        logger.info(
            "Share link created: id=%s profile=%s type=%s expires_in=%dh",
            link.id,
            request.profile_id,
            request.share_type,
            hours,
        )

        notification = await self._notify(request, sender, share_url, expires_at)
        return ShareLinkResult(
            link=link,
            share_url=share_url,
            expires_at=expires_at,
            notification=notification,
        )

    async def _notify(
        self,
        request: ShareLinkRequest,
        sender: Identity,
        share_url: str,
        expires_at: datetime,
    ) -> NotificationOutcome:
        if not (request.send_email and request.recipient_email):
            return NotificationOutcome(status="not_requested")

        subject, body = build_share_email(
            sender, share_url, expires_at, request.recipient_name, request.purpose
        )
        try:
            await self.email_sender.send(request.recipient_email, subject, body)
        except EmailDeliveryError as e:
            logger.error("Email send failed for share link: %s", e.message)
            return NotificationOutcome(status="failed", error=e.message)
        except Exception as e:
            logger.error("Email send failed for share link: %s", str(e), exc_info=True)
            return NotificationOutcome(status="failed", error="Email could not be sent")

        return NotificationOutcome(status="sent")
