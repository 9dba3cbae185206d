"""
HealthFlux Backend — Localization Routes
=========================================

Routes:
    GET /api/i18n/languages    supported languages
    GET /api/i18n/catalog      translation catalog (?lang=xx, default fallback)
    GET /api/i18n/preference   caller's language: stored, then Accept-Language, then default
    PUT /api/i18n/preference   store the caller's language
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from healthflux.dependencies import get_current_user, get_preference_service, get_translator
from healthflux.i18n import Translator
from healthflux.schemas.common import ErrorResponse
from healthflux.schemas.i18n import (
    CatalogResponse,
    LanguageInfo,
    LanguagePreference,
    LanguagePreferenceResponse,
    LanguagesResponse,
)
from healthflux.services.auth_service import Identity
from healthflux.services.preference_service import LanguagePreferenceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/i18n", tags=["Localization"], dependencies=[Depends(get_current_user)])


@router.get("/languages", response_model=LanguagesResponse, summary="List supported languages")
async def list_languages(translator: Translator = Depends(get_translator)) -> LanguagesResponse:
    return LanguagesResponse(
        default=translator.default_language,
        languages=[
            LanguageInfo(code=lang.code, name=lang.name, native_name=lang.native_name)
            for lang in translator.languages
        ],
    )


@router.get("/catalog", response_model=CatalogResponse, summary="Translation catalog for a language")
async def get_catalog(
    lang: Optional[str] = Query(default=None, description="Language code, e.g. hi"),
    translator: Translator = Depends(get_translator),
) -> CatalogResponse:
    language, messages = translator.catalog(lang)
    return CatalogResponse(language=language, messages=messages)


@router.get(
    "/preference",
    response_model=LanguagePreferenceResponse,
    summary="The caller's preferred language",
)
async def get_preference(
    user: Identity = Depends(get_current_user),
    accept_language: Optional[str] = Header(default=None),
    service: LanguagePreferenceService = Depends(get_preference_service),
) -> LanguagePreferenceResponse:
    language, source = await service.get_language(user.email, accept_language)
    return LanguagePreferenceResponse(language=language, source=source)


@router.put(
    "/preference",
    response_model=LanguagePreferenceResponse,
    responses={400: {"description": "Unsupported language", "model": ErrorResponse}},
    summary="Store the caller's preferred language",
)
async def set_preference(
    body: LanguagePreference,
    user: Identity = Depends(get_current_user),
    service: LanguagePreferenceService = Depends(get_preference_service),
) -> LanguagePreferenceResponse:
    language = await service.set_language(user.email, body.language)
    return LanguagePreferenceResponse(language=language, source="preference")
