"""
HealthFlux Backend — FastAPI Dependencies
==========================================

What:  Providers handing app-scoped collaborators and per-request services
       to route handlers.
How:   The lifespan in main.py builds the entity store, LLM client, email
       sender, translator, file service and auth service once and stores
       them on app.state. Nothing here creates a process-wide singleton;
       tests swap collaborators by setting app.state or overriding these
       providers.
"""

from fastapi import Depends, Request

from healthflux.config import settings
from healthflux.i18n import Translator
from healthflux.services.admin_service import AdminBootstrapService
from healthflux.services.auth_service import AuthService, Identity
from healthflux.services.document_service import DocumentService
from healthflux.services.email_service import EmailSender
from healthflux.services.entity_store import EntityStore
from healthflux.services.file_service import FileService
from healthflux.services.insurance_service import InsuranceChatService
from healthflux.services.llm_base import LLMService
from healthflux.services.meal_service import MealAnalysisService
from healthflux.services.preference_service import LanguagePreferenceService
from healthflux.services.report_service import ReportService
from healthflux.services.share_service import ShareLinkService


# ── App-scoped collaborators ──────────────────────────────────────────────

def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_llm_service(request: Request) -> LLMService:
    return request.app.state.llm


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def get_translator(request: Request) -> Translator:
    return request.app.state.translator


def get_file_service(request: Request) -> FileService:
    return request.app.state.file_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


# ── Identity ──────────────────────────────────────────────────────────────

def get_current_user(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> Identity:
    """
    The logged-in caller. Raises AuthenticationError (401) otherwise.

    Routers declare this as a router-level dependency, so it is resolved
    before any handler body or service touches the entity store.
    """
    identity = auth.authenticate(request)
    request.state.user_id = identity.id
    return identity


# ── Per-request services ──────────────────────────────────────────────────

def get_document_service(
    store: EntityStore = Depends(get_store),
    llm: LLMService = Depends(get_llm_service),
    files: FileService = Depends(get_file_service),
) -> DocumentService:
    return DocumentService(store, llm, files)


def get_meal_service(
    store: EntityStore = Depends(get_store),
    llm: LLMService = Depends(get_llm_service),
) -> MealAnalysisService:
    return MealAnalysisService(store, llm)


def get_insurance_service(
    store: EntityStore = Depends(get_store),
    llm: LLMService = Depends(get_llm_service),
) -> InsuranceChatService:
    return InsuranceChatService(store, llm)


def get_report_service(store: EntityStore = Depends(get_store)) -> ReportService:
    return ReportService(store)


def get_share_service(
    store: EntityStore = Depends(get_store),
    email_sender: EmailSender = Depends(get_email_sender),
) -> ShareLinkService:
    return ShareLinkService(
        store,
        email_sender,
        fallback_origin=settings.share_fallback_origin,
        default_expires_hours=settings.share_default_expires_hours,
    )


def get_admin_service(store: EntityStore = Depends(get_store)) -> AdminBootstrapService:
    return AdminBootstrapService(store, settings.admin_bootstrap_email)


def get_preference_service(
    store: EntityStore = Depends(get_store),
    translator: Translator = Depends(get_translator),
) -> LanguagePreferenceService:
    return LanguagePreferenceService(store, translator)
