"""
HealthFlux Backend — Document Routes
=====================================

What:  Search, upload and summarize medical documents, and serve stored files.

Routes:
    POST /api/documents/search        LLM-assisted search over a profile's documents
    POST /api/documents               multipart upload, one record per file
    POST /api/documents/{id}/summary  AI summary stored on the document
    GET  /api/files/{path}            stored document file (auth required)
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse

from healthflux.dependencies import get_current_user, get_document_service, get_file_service
from healthflux.schemas.common import ErrorResponse
from healthflux.schemas.documents import (
    DocumentSearchRequest,
    DocumentSearchResponse,
    DocumentSummaryResponse,
    DocumentUploadResponse,
)
from healthflux.services.document_service import DocumentMetadata, DocumentService, UploadedFile
from healthflux.services.file_service import FileService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Documents"], dependencies=[Depends(get_current_user)])


@router.post(
    "/documents/search",
    response_model=DocumentSearchResponse,
    responses={
        400: {"description": "Missing profile_id or query", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
        503: {"description": "AI service unavailable", "model": ErrorResponse},
    },
    summary="Search a profile's documents in natural language",
)
async def search_documents(
    body: DocumentSearchRequest,
    service: DocumentService = Depends(get_document_service),
) -> DocumentSearchResponse:
    results = await service.search(body.profile_id, body.query)
    return DocumentSearchResponse(results=results)


@router.post(
    "/documents",
    status_code=201,
    response_model=DocumentUploadResponse,
    responses={
        400: {"description": "Invalid file type, size or form field", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
    },
    summary="Upload medical documents (PNG, JPG, JPEG, PDF)",
)
async def upload_documents(
    files: List[UploadFile] = File(..., description="One or more document files"),
    profile_id: str = Form(..., min_length=1),
    title: Optional[str] = Form(default=None),
    document_type: str = Form(default="other"),
    document_date: Optional[str] = Form(default=None),
    facility_name: Optional[str] = Form(default=None),
    doctor_name: Optional[str] = Form(default=None),
    notes: Optional[str] = Form(default=None),
    service: DocumentService = Depends(get_document_service),
) -> DocumentUploadResponse:
    uploads = []
    try:
        for upload in files:
            content = await upload.read()
            uploads.append(
                UploadedFile(
                    filename=upload.filename or "document",
                    content=content,
                    size=upload.size,
                )
            )
    finally:
        for upload in files:
            await upload.close()

    logger.info(
        "Received upload: profile=%s files=%d bytes=%d",
        profile_id,
        len(uploads),
        sum(len(u.content) for u in uploads),
    )

    metadata = DocumentMetadata(
        profile_id=profile_id,
        title=title or None,
        document_type=document_type or "other",
        document_date=document_date or None,
        facility_name=facility_name or None,
        doctor_name=doctor_name or None,
        notes=notes or None,
    )
    documents = await service.upload(metadata, uploads)
    return DocumentUploadResponse(documents=documents)


@router.post(
    "/documents/{document_id}/summary",
    response_model=DocumentSummaryResponse,
    responses={
        401: {"description": "Not logged in", "model": ErrorResponse},
        404: {"description": "Document not found", "model": ErrorResponse},
        503: {"description": "AI service unavailable", "model": ErrorResponse},
    },
    summary="Generate and store an AI summary for a document",
)
async def summarize_document(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> DocumentSummaryResponse:
    document = await service.summarize(document_id)
    return DocumentSummaryResponse(document=document)


@router.get(
    "/files/{file_path:path}",
    response_class=FileResponse,
    responses={
        400: {"description": "Path outside the storage root", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
    summary="Download a stored document file",
)
async def get_file(
    file_path: str,
    files: FileService = Depends(get_file_service),
) -> FileResponse:
    path = files.resolve(file_path)
    return FileResponse(path)
