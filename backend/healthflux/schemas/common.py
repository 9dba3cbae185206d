"""
HealthFlux Backend — Shared Response Schemas
=============================================

What:  The error envelope every failing endpoint returns, and the health
       check payload.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Fields:
        error: Machine-readable code (e.g. "validation_error", "not_found")
        message: Human-readable description, safe to display
        details: Optional extra context (e.g. the invalid field)
        request_id: Correlation ID for finding the request in server logs

    Example:
        {
            "error": "unauthorized",
            "message": "Unauthorized",
            "request_id": "3f9c1e0a-..."
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health."""

    status: str = Field(description="Overall status: healthy, degraded, or unhealthy")
    database: str = Field(description="Entity store status: connected or disconnected")
    llm_service: str = Field(description="Gemini API status: available, unavailable or circuit_open")
    uptime_seconds: float = Field(description="Seconds since the process started")
    version: str = Field(description="Application version")
