"""AI-assisted E/M complexity inference.

Asks the Anthropic Messages API to rate history, exam and medical decision
making complexity from encounter documentation (transcript, SOAP note, vitals),
then runs the deterministic 2-of-3 classifier on the inferred ratings. The code
returned is always the classifier's; the model's own suggested code is kept
only for audit.
"""

from dataclasses import dataclass, field
import json
import logging
import re
import threading
from typing import Any

import anthropic
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from app.core.config import settings
from app.services.em_classifier import EMClassification, EMClassifierService, get_em_classifier_service

logger = logging.getLogger(__name__)

DEFAULT_REASONING = "E/M level calculated based on encounter complexity"
FALLBACK_REASONING_CHARS = 500


class EMInferenceError(RuntimeError):
    """The language model call failed or returned an unusable reply."""


class EMInferenceUnavailableError(EMInferenceError):
    """AI inference is not configured (no API key)."""


@dataclass
class EncounterContext:
    """Clinical documentation used to infer complexity."""

    transcript: str | None = None
    soap_note: dict[str, Any] | str | None = None
    encounter_type: str | None = None
    chief_complaint: str | None = None
    vitals: dict[str, Any] | None = None
    patient_age: int | str | None = None

    def has_content(self) -> bool:
        """Whether there is any documentation to analyze."""
        return bool(self.transcript or self.soap_note or self.chief_complaint)


@dataclass
class EMInferenceResult:
    """Inferred complexities and the resulting classification."""

    classification: EMClassification
    reasoning: str
    details: dict[str, Any] = field(default_factory=dict)
    model_suggested_code: str | None = None
    model: str = ""


# ============================================================================
# Prompt Construction
# ============================================================================

PROMPT_INSTRUCTIONS = """Determine E/M level based on THREE key components (need 2 of 3):
1. **History Complexity**: Problem-focused, Expanded problem-focused, Detailed, Comprehensive
2. **Exam Complexity**: Problem-focused, Expanded problem-focused, Detailed, Comprehensive
3. **Medical Decision Making (MDM)**: Straightforward, Low, Moderate, High

MDM Complexity Factors:
- Number of diagnoses/management options
- Amount/complexity of data reviewed
- Risk of complications/morbidity/mortality

Return JSON format:
{
  "em_level": "99213",
  "reasoning": "Brief explanation of why this level was selected",
  "details": {
    "history_complexity": "detailed",
    "exam_complexity": "detailed",
    "mdm_complexity": "moderate",
    "history_points": ["HPI: 4 elements", "ROS: 10 systems", "PFSH: 2 elements"],
    "exam_points": ["Constitutional: 1", "Cardiovascular: 2", "Respiratory: 2"],
    "mdm_points": ["2 diagnoses", "Lab review", "Moderate risk"]
  }
}"""


def build_em_prompt(context: EncounterContext, transcript_char_limit: int | None = None) -> str:
    """Build the complexity-rating prompt for an encounter.

    Args:
        context: Encounter documentation; empty fields are omitted
        transcript_char_limit: Maximum transcript characters to include

    Returns:
        Prompt text.
    """
    limit = settings.em_transcript_char_limit if transcript_char_limit is None else transcript_char_limit

    lines = [
        "You are a medical coding expert specializing in E/M (Evaluation and Management) level determination.",
        "",
        "Analyze this encounter and determine the appropriate E/M level (99211-99215) "
        "based on 2021/2023 CMS guidelines.",
        "",
    ]

    if context.patient_age:
        lines.append(f"Patient Age: {context.patient_age}")
    if context.encounter_type:
        lines.append(f"Encounter Type: {context.encounter_type.replace('_', ' ')}")
    if context.chief_complaint:
        lines.append(f"Chief Complaint: {context.chief_complaint}")
    if context.vitals:
        lines.append(f"Vital Signs: {json.dumps(context.vitals)}")
    if context.soap_note:
        lines.append(f"SOAP Note: {json.dumps(context.soap_note)}")
    if context.transcript:
        lines.append(f"Transcript:\n{context.transcript[:limit]}")

    lines.extend(["", PROMPT_INSTRUCTIONS])
    return "\n".join(lines)


# ============================================================================
# Reply Parsing
# ============================================================================

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```")
_BARE_JSON = re.compile(r"(\{[\s\S]*\})")
_EM_CODE = re.compile(r"99\d{3}")


def parse_em_reply(text: str) -> dict[str, Any]:
    """Extract the JSON object from a model reply.

    Tries a fenced ```json block, then the outermost {...} span, then the
    whole text. When nothing parses, returns the first E/M-looking code in
    the text and a truncated copy of the text as reasoning.
    """
    match = _FENCED_JSON.search(text) or _BARE_JSON.search(text)
    candidate = match.group(1) if match else text

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        parsed = None

    if isinstance(parsed, dict):
        return parsed

    logger.warning("Could not parse JSON from E/M reply; falling back to text extraction")
    code_match = _EM_CODE.search(text)
    return {
        "em_level": code_match.group(0) if code_match else None,
        "reasoning": text[:FALLBACK_REASONING_CHARS],
        "details": {},
    }


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


# ============================================================================
# Retry Policy
# ============================================================================


def is_transient_error(exc: BaseException) -> bool:
    """Rate limits, overloads (529), other 5xx, timeouts and connection failures are worth retrying."""
    if isinstance(exc, (anthropic.APIConnectionError, anthropic.RateLimitError)):
        return True
    return isinstance(exc, anthropic.APIStatusError) and exc.status_code >= 500


# ============================================================================
# EM Inference Service
# ============================================================================

_inference_service: "EMInferenceService | None" = None
_inference_lock = threading.Lock()


def get_em_inference_service() -> "EMInferenceService":
    """Get the singleton E/M inference service instance."""
    global _inference_service
    if _inference_service is None:
        with _inference_lock:
            if _inference_service is None:
                _inference_service = EMInferenceService()
    return _inference_service


def reset_em_inference_service() -> None:
    """Reset the singleton instance (for testing)."""
    global _inference_service
    with _inference_lock:
        _inference_service = None


class EMInferenceService:
    """Infers complexity axes with an LLM and classifies them."""

    def __init__(
        self,
        client: anthropic.Anthropic | None = None,
        classifier: EMClassifierService | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        max_attempts: int | None = None,
        retry_wait=None,
    ) -> None:
        """Initialize the inference service.

        Args:
            client: Anthropic client; created from settings on first use if omitted
            classifier: Classifier service; defaults to the shared singleton
            model: Model name override
            max_tokens: Completion token limit override
            max_attempts: Total attempts for transient failures
            retry_wait: tenacity wait strategy override
        """
        self._client = client
        self._classifier = classifier
        self.model = model or settings.anthropic_model
        self.max_tokens = max_tokens or settings.anthropic_max_tokens
        self.max_attempts = max_attempts or settings.llm_max_attempts
        self._retry_wait = retry_wait or (wait_exponential(multiplier=1, min=1, max=30) + wait_random(0, 1))

    @property
    def available(self) -> bool:
        """Whether a client is configured."""
        return self._client is not None or bool(settings.anthropic_api_key)

    @property
    def client(self) -> anthropic.Anthropic:
        if self._client is None:
            if not settings.anthropic_api_key:
                raise EMInferenceUnavailableError("ANTHROPIC_API_KEY is not configured")
            # Retries are handled here, not by the SDK
            self._client = anthropic.Anthropic(api_key=settings.anthropic_api_key, max_retries=0)
        return self._client

    @property
    def classifier(self) -> EMClassifierService:
        if self._classifier is None:
            self._classifier = get_em_classifier_service()
        return self._classifier

    def _complete(self, prompt: str) -> str:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._retry_wait,
            retry=retry_if_exception(is_transient_error),
            reraise=True,
        )

        for attempt in retrying:
            with attempt:
                message = self.client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    messages=[{"role": "user", "content": prompt}],
                )

        if not message.content or message.content[0].type != "text":
            raise EMInferenceError("Unexpected response format from language model")
        return message.content[0].text

    def infer(self, context: EncounterContext) -> EMInferenceResult:
        """Infer complexities for an encounter and classify them.

        Args:
            context: Encounter documentation

        Returns:
            EMInferenceResult with the classifier's code and the model's reasoning.

        Raises:
            EMInferenceUnavailableError: No API key configured
            EMInferenceError: The vendor call failed
        """
        prompt = build_em_prompt(context)

        try:
            text = self._complete(prompt)
        except anthropic.APIError as e:
            logger.error(f"E/M inference failed: {e}")
            raise EMInferenceError(f"Language model request failed: {e}") from e

        reply = parse_em_reply(text)
        details = reply.get("details") if isinstance(reply.get("details"), dict) else {}

        classification = self.classifier.classify(
            _as_text(details.get("history_complexity")),
            _as_text(details.get("exam_complexity")),
            _as_text(details.get("mdm_complexity")),
            strict=False,
        )

        suggested = _as_text(reply.get("em_level"))
        if suggested and suggested != classification.code.value:
            logger.info(
                f"Model suggested {suggested} but inferred complexities classify as "
                f"{classification.code.value}"
            )

        return EMInferenceResult(
            classification=classification,
            reasoning=_as_text(reply.get("reasoning")) or DEFAULT_REASONING,
            details=details,
            model_suggested_code=suggested,
            model=self.model,
        )

    def get_stats(self) -> dict:
        """Get configuration summary."""
        return {
            "available": self.available,
            "model": self.model,
            "max_attempts": self.max_attempts,
        }
