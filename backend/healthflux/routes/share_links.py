"""
HealthFlux Backend — Share-Link Route
======================================

POST /api/share-links
    Creates a time-boxed ShareableLink and, when asked, emails it. An email
    failure is reported in `notification` and never fails the request.
"""

import logging

from fastapi import APIRouter, Depends, Request

from healthflux.dependencies import get_current_user, get_share_service
from healthflux.schemas.common import ErrorResponse
from healthflux.schemas.sharing import ShareLinkRequest, ShareLinkResponse
from healthflux.services.auth_service import Identity
from healthflux.services.share_service import ShareLinkService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Sharing"])


@router.post(
    "/share-links",
    response_model=ShareLinkResponse,
    responses={
        400: {"description": "Missing profile_id or share_type", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
        500: {"description": "Link could not be stored", "model": ErrorResponse},
    },
    summary="Create a share link for health records",
)
async def create_share_link(
    body: ShareLinkRequest,
    request: Request,
    user: Identity = Depends(get_current_user),
    service: ShareLinkService = Depends(get_share_service),
) -> ShareLinkResponse:
    result = await service.create_link(body, user, origin=request.headers.get("origin"))
    return result.to_response()
