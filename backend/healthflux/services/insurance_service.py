"""
HealthFlux Backend — Insurance Policy Q&A
==========================================

What:  Answers a free-text question about one stored HealthInsurance policy.
How:   The policy is rendered into a context block, the model answers in
       plain text, and the response cites provider and policy number.
Who:   POST /api/insurance/chat
"""

import logging
from typing import Any, Dict, List, Optional

from healthflux.exceptions import NotFoundError
from healthflux.schemas.entities import HealthInsurance
from healthflux.services.entity_store import EntityStore
from healthflux.services.llm_base import LLMService

logger = logging.getLogger(__name__)

NOT_SPECIFIED = "Not specified"


def _text(value: Any) -> str:
    if value is None or value == "":
        return NOT_SPECIFIED
    return str(value)


def _money(value: Any) -> str:
    return NOT_SPECIFIED if value is None else f"${value}"


def _listing(values: Optional[List[str]]) -> str:
    return ", ".join(values) if values else NOT_SPECIFIED


def build_policy_context(policy: HealthInsurance) -> str:
    contact = policy.insurer_contact_details
    return (
        "Insurance Policy Information:\n"
        f"- Provider: {_text(policy.provider_name)}\n"
        f"- Policy Number: {_text(policy.policy_number)}\n"
        f"- Type: {_text(policy.policy_type)}\n"
        f"- Coverage Period: {_text(policy.coverage_start_date)} to {_text(policy.coverage_end_date)}\n"
        f"- Premium: {_money(policy.premium_amount)}\n"
        f"- Deductible: {_money(policy.deductible)}\n"
        f"- Copay: {_money(policy.copay)}\n"
        f"- Out-of-Pocket Max: {_money(policy.out_of_pocket_max)}\n"
        f"- Covered Services: {_listing(policy.covered_services)}\n"
        f"- Excluded Services: {_listing(policy.excluded_services)}\n"
        f"- Claims Process: {_text(policy.claims_process_description)}\n"
        f"- Contact: Phone: {_text(contact.phone)}, Email: {_text(contact.email)}\n"
    )


def build_policy_prompt(policy: HealthInsurance, question: str) -> str:
    return (
        "You are a helpful insurance policy assistant. Answer the user's question about "
        "their health insurance policy clearly and accurately.\n\n"
        f"{build_policy_context(policy)}\n"
        f"User Question: {question}\n\n"
        "Provide a clear, helpful answer. If the information isn't in the policy details, "
        "say so and suggest contacting the insurer."
    )


class InsuranceChatService:
    def __init__(self, store: EntityStore, llm: LLMService):
        self.store = store
        self.llm = llm

    async def ask(self, policy_id: str, question: str) -> Dict[str, Any]:
        row = await self.store.get("HealthInsurance", policy_id)
        if row is None:
            raise NotFoundError(resource="HealthInsurance", resource_id=policy_id, message="Policy not found")
        policy = HealthInsurance.model_validate(row)

        answer = await self.llm.complete(build_policy_prompt(policy, question))
        logger.info("Policy question answered: policy=%s answer_chars=%d", policy_id, len(str(answer)))

        return {
            "answer": str(answer),
            "policy_reference": {
                "provider": policy.provider_name,
                "policy_number": policy.policy_number,
            },
        }
