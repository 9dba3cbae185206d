"""
HealthFlux Backend — Report Route
==================================

POST /api/reports
    format="pdf" → application/pdf attachment (health-report.pdf)
    format="csv" → {"success": true, "report_content": "<csv>"}
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from healthflux.dependencies import get_current_user, get_report_service
from healthflux.schemas.common import ErrorResponse
from healthflux.schemas.reports import CsvReportResponse, ReportRequest
from healthflux.services.report_service import ReportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Reports"], dependencies=[Depends(get_current_user)])

PDF_FILENAME = "health-report.pdf"


@router.post(
    "/reports",
    response_model=CsvReportResponse,
    responses={
        200: {
            "description": "CSV envelope, or the PDF bytes when format is pdf",
            "content": {"application/pdf": {}},
        },
        400: {"description": "Invalid request or date", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
        404: {"description": "Profile not found", "model": ErrorResponse},
        500: {"description": "Report could not be generated", "model": ErrorResponse},
    },
    summary="Generate a health report (PDF or CSV)",
)
async def generate_report(
    body: ReportRequest,
    service: ReportService = Depends(get_report_service),
):
    content = await service.generate(body)

    if body.format == "pdf":
        return Response(
            content=content,
            media_type="application/pdf",
            headers={"Content-Disposition": f"attachment; filename={PDF_FILENAME}"},
        )
    return CsvReportResponse(report_content=content)
