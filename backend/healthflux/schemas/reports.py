"""
Report request schemas.

The PDF variant is returned as raw bytes, so only the CSV envelope has a
response model.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class IncludeMetrics(BaseModel):
    """Which collections go into the report. Unset flags are off."""

    vitals: bool = False
    medications: bool = False
    nutrition: bool = False
    labs: bool = False
    insights: bool = False


class ReportRequest(BaseModel):
    profile_id: str = Field(min_length=1)
    start_date: Optional[str] = Field(default=None, description="ISO date, inclusive")
    end_date: Optional[str] = Field(default=None, description="ISO date, inclusive")
    include_metrics: IncludeMetrics = Field(default_factory=IncludeMetrics)
    format: Literal["pdf", "csv"] = "csv"


class CsvReportResponse(BaseModel):
    success: bool = True
    report_content: str
