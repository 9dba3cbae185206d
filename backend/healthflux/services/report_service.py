"""
HealthFlux Backend — Report Generator
======================================

What:  Builds a health report for one profile and date range as a PDF
       (reportlab canvas) or as CSV text.
How:   Loads the profile, then starts one fetch task per enabled metric flag
       and awaits them together. Results are kept in flag order: vitals,
       medications, nutrition, labs, insights. Any fetch or render error
       aborts the report.
Who:   POST /api/reports

Flow:
    ┌──────────┐    ┌────────────────────┐    ┌───────────────┐
    │ Profile  │───▶│ gather(flag tasks) │───▶│ render PDF or │
    │ (404?)   │    │ + date-range narrow│    │ CSV           │
    └──────────┘    └────────────────────┘    └───────────────┘
"""

import asyncio
import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Tuple, Type

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from healthflux.exceptions import (
    HealthFluxError,
    NotFoundError,
    ReportGenerationError,
    ValidationError,
)
from healthflux.schemas.entities import (
    EntityModel,
    HealthInsight,
    LabResult,
    MealLog,
    Medication,
    MedicationLog,
    Profile,
    VitalMeasurement,
    parse_iso_date,
)
from healthflux.schemas.reports import IncludeMetrics, ReportRequest
from healthflux.services.entity_store import EntityStore

logger = logging.getLogger(__name__)

CSV_HEADER = ["Date", "Metric", "Value", "Unit"]
DEFAULT_VITAL_UNIT = "mmHg"

# Flag → collections it reads, each with the field the date range applies to.
# None means the collection is not narrowed by date.
METRIC_SOURCES: Dict[str, List[Tuple[str, Type[EntityModel], Optional[str]]]] = {
    "vitals": [("VitalMeasurement", VitalMeasurement, "measured_at")],
    "medications": [
        ("Medication", Medication, None),
        ("MedicationLog", MedicationLog, "scheduled_time"),
    ],
    "nutrition": [("MealLog", MealLog, "meal_date")],
    "labs": [("LabResult", LabResult, "test_date")],
    "insights": [("HealthInsight", HealthInsight, "created_date")],
}

SECTION_TITLES = {
    "vitals": "Vital Signs Summary",
    "medications": "Medications Summary",
    "nutrition": "Nutrition Summary",
    "labs": "Lab Results Summary",
    "insights": "Health Insights Summary",
}

ROW_LABELS = {
    "VitalMeasurement": "Total measurements",
    "Medication": "Medications on record",
    "MedicationLog": "Medication log entries",
    "MealLog": "Meals logged",
    "LabResult": "Lab results",
    "HealthInsight": "Insights",
}


def enabled_metrics(include: IncludeMetrics) -> List[str]:
    """Flags that are on, in report order."""
    return [flag for flag in METRIC_SOURCES if getattr(include, flag)]


@dataclass
class ReportData:
    """Everything a renderer needs. `metrics` preserves flag order."""

    profile: Profile
    start_date: Optional[str]
    end_date: Optional[str]
    metrics: Dict[str, Dict[str, List[EntityModel]]] = field(default_factory=dict)

    @property
    def vitals(self) -> List[VitalMeasurement]:
        return self.metrics.get("vitals", {}).get("VitalMeasurement", [])


def _parse_bound(value: Optional[str], name: str) -> Optional[date]:
    if not value:
        return None
    parsed = parse_iso_date(value)
    if parsed is None:
        raise ValidationError(
            message=f"Invalid {name} '{value}'. Use an ISO date such as 2024-01-31.",
            field=name,
        )
    return parsed


def _in_range(value: Optional[str], start: Optional[date], end: Optional[date]) -> bool:
    if start is None and end is None:
        return True
    day = parse_iso_date(value)
    if day is None:
        return False
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True


def _format_number(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def vital_value(vital: VitalMeasurement) -> str:
    """The aggregate value, or "systolic/diastolic" when there is none."""
    if vital.value is not None and vital.value != "":
        return _format_number(vital.value)
    return f"{_format_number(vital.systolic)}/{_format_number(vital.diastolic)}"


class ReportService:
    """
    Report generation over an EntityStore.

    Args:
        store: Entity store used for every read.
    """

    def __init__(self, store: EntityStore):
        self.store = store

    async def _fetch_metric(
        self,
        flag: str,
        profile_id: str,
        start: Optional[date],
        end: Optional[date],
    ) -> Dict[str, List[EntityModel]]:
        """One fetch task: every collection behind `flag`, narrowed by date."""
        collections: Dict[str, List[EntityModel]] = {}
        for entity, model, date_field in METRIC_SOURCES[flag]:
            rows = await self.store.filter(entity, {"profile_id": profile_id})
            if date_field is not None:
                rows = [row for row in rows if _in_range(row.get(date_field), start, end)]
            collections[entity] = [model.model_validate(row) for row in rows]
        return collections

    async def collect(self, request: ReportRequest) -> ReportData:
        """
        Load the profile and the enabled metrics.

        Raises:
            ValidationError: unparseable start_date / end_date
            NotFoundError: profile does not exist
            ReportGenerationError: any fetch failed
        """
        start = _parse_bound(request.start_date, "start_date")
        end = _parse_bound(request.end_date, "end_date")

        try:
            profile_row = await self.store.get("Profile", request.profile_id)
            if profile_row is None:
                raise NotFoundError(resource="Profile", resource_id=request.profile_id)
            profile = Profile.model_validate(profile_row)

            flags = enabled_metrics(request.include_metrics)
            results = await asyncio.gather(
                *(self._fetch_metric(flag, request.profile_id, start, end) for flag in flags)
            )
        except NotFoundError:
            raise
        except HealthFluxError as e:
            logger.error("Report data fetch failed for profile %s: %s", request.profile_id, e.message)
            raise ReportGenerationError(context={"profile_id": request.profile_id, **e.context})
        except Exception as e:
            logger.error(
                "Report data fetch failed for profile %s: %s",
                request.profile_id,
                str(e),
                exc_info=True,
            )
            raise ReportGenerationError(
                context={"profile_id": request.profile_id, "error_type": type(e).__name__}
            )

        logger.info(
            "Report data collected: profile=%s metrics=%s",
            request.profile_id,
            flags,
        )
        return ReportData(
            profile=profile,
            start_date=request.start_date,
            end_date=request.end_date,
            metrics=dict(zip(flags, results)),
        )

    # ── CSV ───────────────────────────────────────────────────────────────

    @staticmethod
    def render_csv(data: ReportData) -> str:
        """Header row, then one row per vital measurement."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for vital in data.vitals:
            writer.writerow([
                vital.measured_at or "",
                vital.vital_type,
                vital_value(vital),
                vital.unit or DEFAULT_VITAL_UNIT,
            ])
        return buffer.getvalue()

    # ── PDF ───────────────────────────────────────────────────────────────

    @staticmethod
    def render_pdf(data: ReportData, generated_at: Optional[datetime] = None) -> bytes:
        """
        Linear top-to-bottom layout on A4. A new page starts whenever the
        cursor reaches the bottom margin.
        """
        generated_at = generated_at or datetime.now(timezone.utc)
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4)
        pdf.setTitle("Health Analytics Report")
        width, height = A4
        left, indent, margin = 56, 84, 56
        y = height - margin

        def line(text: str, x: float, font_size: int, step: float) -> None:
            nonlocal y
            if y < margin:
                pdf.showPage()
                y = height - margin
            pdf.setFont("Helvetica", font_size)
            pdf.drawString(x, y, text)
            y -= step

        line("Health Analytics Report", left, 20, 28)
        line(f"Generated: {generated_at.date().isoformat()}", left, 10, 14)
        line(
            f"Period: {data.start_date or 'beginning'} to {data.end_date or 'today'}",
            left,
            10,
            14,
        )
        line(f"Patient: {data.profile.full_name}", left, 10, 28)

        for flag, collections in data.metrics.items():
            line(SECTION_TITLES[flag], left, 14, 20)
            for entity, rows in collections.items():
                line(f"{ROW_LABELS[entity]}: {len(rows)}", indent, 10, 14)
            y -= 14

        pdf.showPage()
        pdf.save()
        return buffer.getvalue()

    async def generate(self, request: ReportRequest):
        """
        Returns:
            bytes for format="pdf", str for format="csv".

        Raises:
            ReportGenerationError when rendering fails (no partial output).
        """
        data = await self.collect(request)
        try:
            if request.format == "pdf":
                content = self.render_pdf(data)
            else:
                content = self.render_csv(data)
        except Exception as e:
            logger.error("Report rendering failed (%s): %s", request.format, str(e), exc_info=True)
            raise ReportGenerationError(
                context={"profile_id": request.profile_id, "format": request.format}
            )

        logger.info(
            "Report generated: profile=%s format=%s size=%d",
            request.profile_id,
            request.format,
            len(content),
        )
        return content
