"""
Request/response schemas for document search, upload and summaries.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field

DOCUMENT_TYPES = (
    "lab_report",
    "prescription",
    "imaging",
    "discharge_summary",
    "consultation",
    "vaccination",
    "insurance",
    "other",
)


class DocumentSearchRequest(BaseModel):
    profile_id: str = Field(min_length=1, description="Profile whose documents are searched")
    query: str = Field(min_length=1, description="Free-text search query")


class DocumentSearchResponse(BaseModel):
    """Matching MedicalDocument records, in store order."""

    results: List[Dict[str, Any]] = Field(default_factory=list)


class DocumentUploadResponse(BaseModel):
    """One created MedicalDocument per uploaded file."""

    success: bool = True
    documents: List[Dict[str, Any]]


class DocumentSummaryResponse(BaseModel):
    success: bool = True
    document: Dict[str, Any]
