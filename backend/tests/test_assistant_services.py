"""
HealthFlux Backend — Meal Analysis & Insurance Q&A Tests
=========================================================

What we test:
    ✅ Meal prompt carries age, conditions, allergies, active medications, goal
    ✅ Only the newest nutrition goal and active medications are used
    ✅ Non-object meal replies are rejected
    ✅ Policy prompt renders missing values as "Not specified"
    ✅ Unknown policy → NotFoundError before any model call
"""

from datetime import datetime

import pytest

from healthflux.exceptions import LLMServiceError, NotFoundError
from healthflux.schemas.entities import HealthInsurance, Profile
from healthflux.services.insurance_service import (
    InsuranceChatService,
    build_policy_context,
)
from healthflux.services.meal_service import (
    SYSTEM_INSTRUCTION,
    MealAnalysisService,
    build_patient_context,
)


class TestPatientContext:
    def test_age_counts_whole_years(self):
        profile = Profile(id="p1", date_of_birth="1990-06-15")
        assert profile.age_in_years(datetime(2024, 6, 14)) == 33
        assert profile.age_in_years(datetime(2024, 6, 16)) == 34

    def test_unparseable_birth_date_has_no_age(self):
        assert Profile(id="p1", date_of_birth="sometime").age_in_years() is None

    def test_empty_context_without_profile(self):
        assert build_patient_context(None, [], None) == ""

    def test_profile_fields_default_to_none(self):
        context = build_patient_context(Profile(id="p1"), [], None)
        assert "- Age: Unknown" in context
        assert "- Chronic Conditions: None" in context
        assert "- Allergies: None" in context


class TestMealAnalysis:
    @pytest.mark.asyncio
    async def test_prompt_is_personalised(self, store, fake_llm):
        profile = await store.create(
            "Profile",
            {
                "full_name": "Asha",
                "date_of_birth": "1970-01-01",
                "chronic_conditions": ["type 2 diabetes"],
                "allergies": ["peanuts"],
            },
        )
        pid = profile["id"]
        await store.create("Medication", {"profile_id": pid, "medication_name": "Metformin", "is_active": True})
        await store.create("Medication", {"profile_id": pid, "medication_name": "Stopped", "is_active": False})
        await store.create("NutritionGoal", {"profile_id": pid, "daily_calories": 2200})
        await store.create("NutritionGoal", {"profile_id": pid, "daily_calories": 1800})
        fake_llm.image_reply = {"meal_name": "Dal rice", "calories": 520}

        result = await MealAnalysisService(store, fake_llm).analyze("https://img.example/meal.jpg", pid)

        assert result["success"] is True
        assert result["analysis"]["meal_name"] == "Dal rice"
        assert result["timestamp"]

        call = fake_llm.image_calls[0]
        assert call["image_url"] == "https://img.example/meal.jpg"
        assert call["system_instruction"] == SYSTEM_INSTRUCTION
        prompt = call["prompt"]
        assert "type 2 diabetes" in prompt
        assert "peanuts" in prompt
        assert "Current Medications: Metformin" in prompt
        assert "Stopped" not in prompt
        assert "Daily Calorie Goal: 1800 cal" in prompt

    @pytest.mark.asyncio
    async def test_without_profile_id_no_store_reads(self, store, fake_llm):
        fake_llm.image_reply = {"meal_name": "Salad"}

        result = await MealAnalysisService(store, fake_llm).analyze("https://img.example/a.jpg")

        assert result["analysis"] == {"meal_name": "Salad"}
        assert "No patient details available" in fake_llm.image_calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_non_object_reply_is_rejected(self, store, fake_llm):
        fake_llm.image_reply = ["not", "an", "object"]

        with pytest.raises(LLMServiceError):
            await MealAnalysisService(store, fake_llm).analyze("https://img.example/a.jpg")


class TestInsuranceChat:
    def test_missing_values_render_as_not_specified(self):
        context = build_policy_context(HealthInsurance(id="i1", provider_name="Acme"))

        assert "- Provider: Acme" in context
        assert "- Deductible: Not specified" in context
        assert "- Covered Services: Not specified" in context
        assert "Phone: Not specified, Email: Not specified" in context

    def test_amounts_and_lists(self):
        policy = HealthInsurance(
            id="i1",
            provider_name="Acme",
            deductible=500,
            covered_services=["hospitalization", "dental"],
            insurer_contact_details={"phone": "1800-123"},
        )
        context = build_policy_context(policy)

        assert "- Deductible: $500" in context
        assert "- Covered Services: hospitalization, dental" in context
        assert "Phone: 1800-123" in context

    @pytest.mark.asyncio
    async def test_answer_and_reference(self, store, fake_llm):
        policy = await store.create(
            "HealthInsurance",
            {"provider_name": "Acme Health", "policy_number": "POL-42", "copay": 20},
        )
        fake_llm.reply = "Your copay is $20 per visit."

        result = await InsuranceChatService(store, fake_llm).ask(policy["id"], "What is my copay?")

        assert result["answer"] == "Your copay is $20 per visit."
        assert result["policy_reference"] == {"provider": "Acme Health", "policy_number": "POL-42"}
        assert "User Question: What is my copay?" in fake_llm.prompts[0]
        assert "- Copay: $20" in fake_llm.prompts[0]

    @pytest.mark.asyncio
    async def test_unknown_policy(self, store, fake_llm):
        with pytest.raises(NotFoundError, match="Policy not found"):
            await InsuranceChatService(store, fake_llm).ask("missing", "Anything?")
        assert fake_llm.call_count == 0
