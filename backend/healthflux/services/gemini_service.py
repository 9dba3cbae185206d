"""
HealthFlux Backend — Google Gemini Service Implementation
==========================================================

What:  Concrete LLM service on the Google Gemini API: text completions, JSON
       completions and image + prompt analysis.
How:   Each call goes through the circuit breaker, then a tenacity-decorated
       method that talks to the SDK. Replies requested as JSON are decoded
       here so callers receive Python values.
Who:   Constructed once in the app factory and stored on app.state; handlers
       receive it through healthflux.dependencies.get_llm_service.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter. RETRY_MAX_ATTEMPTS
       defaults to 1, so calls are single attempts unless configured.
    2. Circuit breaker: after cb_failure_threshold consecutive failures, calls
       are rejected instantly for cb_recovery_timeout seconds.
    3. Per-call timeout passed to the SDK request options.
"""

import json
import logging
import time
import uuid
from typing import Any, Optional

import google.generativeai as genai
import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
    retry_if_exception_type,
    before_sleep_log,
)

from healthflux.config import settings
from healthflux.exceptions import CircuitBreakerOpenError, LLMServiceError, ValidationError
from healthflux.services.llm_base import LLMService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker guarding the Gemini API.

    State Machine:
        CLOSED    → failures counted; threshold reached → OPEN
        OPEN      → every call raises CircuitBreakerOpenError until
                    recovery_timeout has elapsed → HALF_OPEN
        HALF_OPEN → one call allowed; success → CLOSED, failure → OPEN

    Not shared across worker processes: each uvicorn worker keeps its own.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True if a call may proceed.

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery window is still running.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


def parse_json_reply(text: str) -> Any:
    """
    Decode a model reply that should be JSON.

    Models sometimes wrap JSON in a ```json fence even when asked not to;
    the fence is stripped before decoding.

    Raises:
        ValueError: The reply is not valid JSON.
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return json.loads(cleaned)


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(LLMService):
    """
    Google Gemini implementation of LLMService.

    Args:
        api_key: Gemini API key. Empty leaves the SDK unconfigured; calls then
            fail and are reported as LLMServiceError.
        model_name: Model for text and JSON completions.
        vision_model_name: Model for image + prompt calls.
        timeout_seconds: Per-request timeout handed to the SDK.
        max_output_tokens: Output cap for every call.
        failure_threshold / recovery_timeout: Circuit breaker settings.

    Error Handling Chain:
        SDK call fails → tenacity retries (RETRY_MAX_ATTEMPTS, default 1)
        → give up → circuit breaker failure recorded → LLMServiceError
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-1.5-flash",
        vision_model_name: str = "gemini-1.5-flash",
        timeout_seconds: int = 60,
        max_output_tokens: int = 1000,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
    ):
        # The SDK keeps auth in module-level state
        if api_key and api_key != "your_gemini_api_key_here":
            genai.configure(api_key=api_key)

        self.model_name = model_name
        self.vision_model_name = vision_model_name
        self.timeout_seconds = timeout_seconds
        self.max_output_tokens = max_output_tokens
        self.model = genai.GenerativeModel(model_name)

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with model=%s, vision_model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            model_name,
            vision_model_name,
            failure_threshold,
            recovery_timeout,
        )

    def _generation_config(self, json_response: bool) -> dict:
        config = {"max_output_tokens": self.max_output_tokens}
        if json_response:
            config["response_mime_type"] = "application/json"
        return config

    async def complete(self, prompt: str, json_response: bool = False) -> Any:
        request_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        logger.info(
            "[%s] Gemini completion: prompt_chars=%d json=%s",
            request_id,
            len(prompt),
            json_response,
        )
        text = await self._guarded_call(
            request_id,
            self.model,
            [prompt],
            self._generation_config(json_response),
        )
        if not json_response:
            return text
        return self._decode(text, request_id)

    async def analyze_image(
        self,
        prompt: str,
        image_url: str,
        system_instruction: Optional[str] = None,
    ) -> Any:
        request_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        image = await self._download_image(image_url, request_id)
        model = genai.GenerativeModel(
            self.vision_model_name,
            system_instruction=system_instruction,
        )

        logger.info(
            "[%s] Gemini image analysis: image_bytes=%d mime=%s",
            request_id,
            len(image["data"]),
            image["mime_type"],
        )
        text = await self._guarded_call(
            request_id,
            model,
            [prompt, image],
            self._generation_config(json_response=True),
        )
        return self._decode(text, request_id)

    async def _download_image(self, image_url: str, request_id: str) -> dict:
        """Fetch the image bytes as an inline blob for the SDK."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, follow_redirects=True) as client:
                response = await client.get(image_url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("[%s] Could not download image %s: %s", request_id, image_url, str(e))
            raise ValidationError(
                message="The image could not be downloaded. Check the image URL.",
                field="image_url",
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

        mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip()
        if not mime_type.startswith("image/"):
            mime_type = "image/jpeg"
        return {"mime_type": mime_type, "data": response.content}

    async def _guarded_call(self, request_id: str, model, contents: list, generation_config: dict) -> str:
        """Runs the retried SDK call and records the outcome in the circuit breaker."""
        try:
            result = await self._call_gemini_with_retry(model, contents, generation_config, request_id)
            self.circuit_breaker.record_success()
            return result
        except CircuitBreakerOpenError:
            raise
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Gemini call failed: %s",
                request_id,
                str(e),
                exc_info=True,
            )
            raise LLMServiceError(
                message="The AI service failed to respond. Please try again later.",
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

    @retry(
        retry=retry_if_exception_type(Exception),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(
        self, model, contents: list, generation_config: dict, request_id: str
    ) -> str:
        """The SDK call itself. Only this part is retried, never the breaker check."""
        start_time = time.time()

        try:
            response = await model.generate_content_async(
                contents,
                generation_config=generation_config,
                request_options={"timeout": self.timeout_seconds},
            )
            duration_ms = (time.time() - start_time) * 1000
            text = response.text.strip() if response.text else ""

            logger.info(
                "[%s] Gemini call completed in %.0fms, %d chars",
                request_id,
                duration_ms,
                len(text),
            )
            return text

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "[%s] Gemini API call failed after %.0fms: %s",
                request_id,
                duration_ms,
                str(e),
            )
            raise

    @staticmethod
    def _decode(text: str, request_id: str) -> Any:
        try:
            return parse_json_reply(text)
        except ValueError:
            logger.error("[%s] Gemini returned non-JSON reply: %.200s", request_id, text)
            raise LLMServiceError(
                message="The AI service returned an unreadable response. Please try again.",
                context={"request_id": request_id},
            )

    async def health_check(self) -> bool:
        """Lists models (no token cost) to verify key and connectivity."""
        try:
            models = genai.list_models()
            model_names = [m.name for m in models]
            target = f"models/{self.model_name}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False
