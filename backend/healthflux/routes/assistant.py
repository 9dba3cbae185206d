"""
HealthFlux Backend — Assistant Routes
======================================

Routes:
    POST /api/meals/analyze    nutrition analysis of a meal photo
    POST /api/insurance/chat   question about a stored insurance policy
"""

import logging

from fastapi import APIRouter, Depends

from healthflux.dependencies import get_current_user, get_insurance_service, get_meal_service
from healthflux.schemas.assistant import (
    InsuranceChatRequest,
    InsuranceChatResponse,
    MealAnalysisRequest,
    MealAnalysisResponse,
)
from healthflux.schemas.common import ErrorResponse
from healthflux.services.insurance_service import InsuranceChatService
from healthflux.services.meal_service import MealAnalysisService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Assistant"], dependencies=[Depends(get_current_user)])


@router.post(
    "/meals/analyze",
    response_model=MealAnalysisResponse,
    responses={
        400: {"description": "Missing or unreachable image_url", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
        503: {"description": "AI service unavailable", "model": ErrorResponse},
    },
    summary="Analyze a meal photo",
)
async def analyze_meal(
    body: MealAnalysisRequest,
    service: MealAnalysisService = Depends(get_meal_service),
) -> MealAnalysisResponse:
    result = await service.analyze(body.image_url, body.profile_id)
    return MealAnalysisResponse(**result)


@router.post(
    "/insurance/chat",
    response_model=InsuranceChatResponse,
    responses={
        400: {"description": "Missing policy_id or question", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
        404: {"description": "Policy not found", "model": ErrorResponse},
        503: {"description": "AI service unavailable", "model": ErrorResponse},
    },
    summary="Ask a question about an insurance policy",
)
async def insurance_chat(
    body: InsuranceChatRequest,
    service: InsuranceChatService = Depends(get_insurance_service),
) -> InsuranceChatResponse:
    result = await service.ask(body.policy_id, body.question)
    return InsuranceChatResponse(**result)
