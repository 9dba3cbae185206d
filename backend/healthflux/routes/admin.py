"""
HealthFlux Backend — Admin Bootstrap Route
===========================================

POST /api/admin/bootstrap
    Grants admin to ADMIN_BOOTSTRAP_EMAIL. Like every route it needs a
    logged-in caller; it does not check the caller's own role.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from healthflux.dependencies import get_admin_service, get_current_user
from healthflux.exceptions import NotFoundError
from healthflux.schemas.admin import AdminBootstrapResponse
from healthflux.schemas.common import ErrorResponse
from healthflux.services.admin_service import AdminBootstrapService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(get_current_user)])


@router.post(
    "/bootstrap",
    response_model=AdminBootstrapResponse,
    responses={
        401: {"description": "Not logged in", "model": ErrorResponse},
        404: {"description": "Bootstrap user has not registered yet"},
    },
    summary="Grant admin role to the bootstrap account",
)
async def bootstrap_admin(
    service: AdminBootstrapService = Depends(get_admin_service),
):
    try:
        result = await service.grant_admin()
    except NotFoundError as e:
        # The admin console reads success/message from this body
        return JSONResponse(status_code=404, content={"success": False, "message": e.message})
    return AdminBootstrapResponse(**result)
