"""
Schemas for the LLM-backed endpoints: meal-photo analysis and insurance chat.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class MealAnalysisRequest(BaseModel):
    image_url: str = Field(min_length=1, description="Publicly reachable URL of the meal photo")
    profile_id: Optional[str] = Field(default=None, description="Adds patient context when given")


class MealAnalysisResponse(BaseModel):
    """
    `analysis` is the model's JSON object: meal_name, description, calories,
    protein, carbs, fat, fiber, sodium, sugar, ingredients, portion_size,
    health_feedback, recommendations, warnings.
    """

    success: bool = True
    analysis: Dict[str, Any]
    timestamp: str


class InsuranceChatRequest(BaseModel):
    policy_id: str = Field(min_length=1)
    question: str = Field(min_length=1)


class PolicyReference(BaseModel):
    provider: str
    policy_number: str


class InsuranceChatResponse(BaseModel):
    answer: str
    policy_reference: PolicyReference
