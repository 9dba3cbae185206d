"""
HealthFlux Backend — Meal-Photo Analysis
=========================================

What:  Nutritional analysis of a meal photo, personalised with the patient's
       profile, active medications and latest calorie goal.
How:   The three context reads run concurrently; the prompt plus the image
       URL go to the vision model, which must answer with a JSON object.
Who:   POST /api/meals/analyze
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from healthflux.exceptions import LLMServiceError
from healthflux.schemas.entities import Medication, NutritionGoal, Profile
from healthflux.services.entity_store import EntityStore
from healthflux.services.llm_base import LLMService

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a nutrition analysis AI that provides accurate, health-conscious meal assessments."
)

RESPONSE_SHAPE = """{
  "meal_name": "string",
  "description": "string",
  "calories": number,
  "protein": number,
  "carbs": number,
  "fat": number,
  "fiber": number,
  "sodium": number,
  "sugar": number,
  "ingredients": ["string"],
  "portion_size": "string",
  "health_feedback": "string (3-4 sentences about how this meal fits their health profile)",
  "recommendations": ["string (3-5 actionable tips)"],
  "warnings": ["string (any medication/allergy/condition-specific warnings)"]
}"""


def build_patient_context(
    profile: Optional[Profile],
    medications: List[Medication],
    goal: Optional[NutritionGoal],
    today: Optional[datetime] = None,
) -> str:
    lines = []
    if profile is not None:
        age = profile.age_in_years(today)
        lines.append(f"- Age: {age if age is not None else 'Unknown'}")
        lines.append(f"- Chronic Conditions: {', '.join(profile.chronic_conditions) or 'None'}")
        lines.append(f"- Allergies: {', '.join(profile.allergies) or 'None'}")
    if medications:
        lines.append(
            f"- Current Medications: {', '.join(m.medication_name for m in medications)}"
        )
    if goal is not None and goal.daily_calories is not None:
        lines.append(f"- Daily Calorie Goal: {goal.daily_calories} cal")
    return "\n".join(lines)


def build_meal_prompt(patient_context: str) -> str:
    return (
        "Analyze this meal image and provide detailed nutritional information.\n\n"
        "PATIENT CONTEXT:\n"
        f"{patient_context or '- No patient details available'}\n\n"
        "Provide comprehensive analysis with:\n"
        "1. Meal identification and description\n"
        "2. Accurate nutritional breakdown\n"
        "3. Health feedback considering their conditions and medications\n"
        "4. Personalized recommendations\n\n"
        "Format as JSON:\n"
        f"{RESPONSE_SHAPE}"
    )


class MealAnalysisService:
    def __init__(self, store: EntityStore, llm: LLMService):
        self.store = store
        self.llm = llm

    async def _load_context(self, profile_id: Optional[str]):
        if not profile_id:
            return None, [], None

        profile_rows, medication_rows, goal_rows = await asyncio.gather(
            self.store.filter("Profile", {"id": profile_id}, limit=1),
            self.store.filter("Medication", {"profile_id": profile_id, "is_active": True}),
            self.store.filter("NutritionGoal", {"profile_id": profile_id}, sort="-created_date", limit=1),
        )
        profile = Profile.model_validate(profile_rows[0]) if profile_rows else None
        medications = [Medication.model_validate(row) for row in medication_rows]
        goal = NutritionGoal.model_validate(goal_rows[0]) if goal_rows else None
        return profile, medications, goal

    async def analyze(self, image_url: str, profile_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Returns:
            {"success": True, "analysis": {...}, "timestamp": ISO-8601}

        Raises:
            LLMServiceError: the model reply is not a JSON object.
        """
        profile, medications, goal = await self._load_context(profile_id)
        prompt = build_meal_prompt(build_patient_context(profile, medications, goal))

        analysis = await self.llm.analyze_image(
            prompt,
            image_url,
            system_instruction=SYSTEM_INSTRUCTION,
        )
        if not isinstance(analysis, dict):
            logger.error("Meal analysis reply was %s, expected an object", type(analysis).__name__)
            raise LLMServiceError(message="The AI service returned an unreadable meal analysis.")

        logger.info(
            "Meal analyzed: profile=%s meal=%s calories=%s",
            profile_id,
            analysis.get("meal_name"),
            analysis.get("calories"),
        )
        return {
            "success": True,
            "analysis": analysis,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
