"""
HealthFlux Backend — Typed Entity Records
==========================================

What:  Pydantic models for every entity the handlers read or write.
How:   Services convert the plain dicts returned by the entity store with
       `Model.model_validate(row)`. Required fields are declared without
       defaults; everything the store may omit is Optional or has an empty
       default. Unknown fields are kept (extra="allow") so records round-trip
       through the API unchanged.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class EntityModel(BaseModel):
    """Common base: string id, store timestamps, extra fields preserved."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    created_date: Optional[str] = None
    updated_date: Optional[str] = None


Number = Union[int, float]


# ── People ────────────────────────────────────────────────────────────────

class Profile(EntityModel):
    full_name: str = ""
    date_of_birth: Optional[str] = None
    chronic_conditions: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    relationship: Optional[str] = None

    def age_in_years(self, today: Optional[datetime] = None) -> Optional[int]:
        """Whole years since date_of_birth, counting 365.25-day years."""
        if not self.date_of_birth:
            return None
        try:
            born = datetime.fromisoformat(self.date_of_birth[:10])
        except ValueError:
            return None
        now = today or datetime.now()
        days = (now.replace(tzinfo=None) - born).total_seconds() / 86400
        return int(days // 365.25)


class User(EntityModel):
    email: str
    full_name: Optional[str] = None
    role: str = "user"


class UserPreferences(EntityModel):
    user_email: str
    language: Optional[str] = None


# ── Documents & sharing ───────────────────────────────────────────────────

class MedicalDocument(EntityModel):
    profile_id: str
    title: str = ""
    document_type: Optional[str] = None
    facility_name: Optional[str] = None
    doctor_name: Optional[str] = None
    document_date: Optional[str] = None
    ai_summary: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None


class ShareableLink(EntityModel):
    profile_id: str
    link_token: str
    share_type: str
    resource_ids: List[str] = Field(default_factory=list)
    access_level: str = "view_only"
    expires_at: str
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    purpose: Optional[str] = None
    is_active: bool = True
    view_count: int = 0


# ── Report inputs ─────────────────────────────────────────────────────────

class VitalMeasurement(EntityModel):
    profile_id: str
    vital_type: str = ""
    measured_at: Optional[str] = None
    value: Optional[Union[Number, str]] = None
    systolic: Optional[Number] = None
    diastolic: Optional[Number] = None
    unit: Optional[str] = None


class Medication(EntityModel):
    profile_id: str
    medication_name: str = ""
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    is_active: bool = True


class MedicationLog(EntityModel):
    profile_id: str
    medication_id: Optional[str] = None
    scheduled_time: Optional[str] = None
    taken_at: Optional[str] = None
    status: Optional[str] = None


class MealLog(EntityModel):
    profile_id: str
    meal_date: Optional[str] = None
    meal_type: Optional[str] = None
    calories: Optional[Number] = None


class LabResult(EntityModel):
    profile_id: str
    test_name: str = ""
    test_date: Optional[str] = None
    value: Optional[Union[Number, str]] = None
    unit: Optional[str] = None
    status: Optional[str] = None


class HealthInsight(EntityModel):
    profile_id: str
    title: str = ""
    severity: Optional[str] = None


class NutritionGoal(EntityModel):
    profile_id: str
    daily_calories: Optional[Number] = None


# ── Insurance ─────────────────────────────────────────────────────────────

class InsurerContact(BaseModel):
    model_config = ConfigDict(extra="allow")

    phone: Optional[str] = None
    email: Optional[str] = None


class HealthInsurance(EntityModel):
    provider_name: str = ""
    policy_number: str = ""
    policy_type: Optional[str] = None
    coverage_start_date: Optional[str] = None
    coverage_end_date: Optional[str] = None
    premium_amount: Optional[Number] = None
    deductible: Optional[Number] = None
    copay: Optional[Number] = None
    out_of_pocket_max: Optional[Number] = None
    covered_services: List[str] = Field(default_factory=list)
    excluded_services: List[str] = Field(default_factory=list)
    claims_process_description: Optional[str] = None
    insurer_contact_details: InsurerContact = Field(default_factory=InsurerContact)


def to_payload(record: BaseModel) -> Dict[str, Any]:
    """Serialize a typed record for a JSON response, extra fields included."""
    return record.model_dump(mode="json")


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Calendar date of an ISO date or datetime string, or None when unparseable."""
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None
