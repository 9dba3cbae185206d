"""
Share-link request/response schemas.

The response carries the link (always created when the request succeeds) and,
separately, what happened to the optional email notification.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class ShareLinkRequest(BaseModel):
    profile_id: str = Field(min_length=1)
    share_type: str = Field(min_length=1, description="What is shared, e.g. full_profile or documents")
    resource_ids: List[str] = Field(default_factory=list)
    expires_hours: Optional[int] = Field(
        default=None,
        gt=0,
        description="Lifetime in hours; the configured default (168) when omitted",
    )
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    purpose: Optional[str] = None
    send_email: bool = False
    access_level: str = "view_only"


class NotificationOutcome(BaseModel):
    """
    status:
        not_requested: send_email was false or no recipient_email was given
        sent: the email provider accepted the message
        failed: delivery failed; `error` says why. The link still exists.
    """

    status: Literal["not_requested", "sent", "failed"]
    error: Optional[str] = None


class ShareLinkResponse(BaseModel):
    success: bool = True
    link_id: str
    share_url: str
    expires_at: str
    message: str
    notification: NotificationOutcome
