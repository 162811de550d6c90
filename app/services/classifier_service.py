"""
Readiness JTBD — ClassifierService: LLM classification of survey responses.

Turns one free-text answer into a :class:`ResponseClassification` using
Gemini.  The force pipeline never calls this module; the HTTP layer runs it
before handing the classification to the mapping and analysis services.

Model fallback chain (from settings):
    GEMINI_MODEL_PRIMARY -> GEMINI_MODEL_FALLBACK -> GEMINI_MODEL_STABLE

Each model is retried on 429 / 5xx with exponential backoff.  When every
model in the chain fails, :class:`~app.errors.ClassificationError` is raised.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional, Protocol

import google.generativeai as genai
import structlog
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from json_repair import repair_json
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.config import get_settings
from app.errors import ClassificationError
from app.schemas.jtbd import Force, ResponseClassification, SentimentLabel
from app.utils.numeric import clamp

logger = structlog.get_logger("readiness.classifier_service")


class ResponseClassifier(Protocol):
    async def classify_response(
        self,
        question_text: str,
        response_text: str,
        expected_force: Optional[Force] = None,
    ) -> ResponseClassification: ...


FORCE_DEFINITIONS: dict[Force, str] = {
    Force.PAIN_OF_OLD: (
        "Pain of the Old: frustrations, inefficiencies and friction with current "
        "tools or processes that create pressure for change."
    ),
    Force.PULL_OF_NEW: (
        "Pull of the New: excitement, benefits and opportunities AI could provide, "
        "creating attraction toward adoption."
    ),
    Force.ANCHORS_TO_OLD: (
        "Anchors to the Old: organizational inertia, processes, investments or "
        "comfort with the current state that resist change."
    ),
    Force.ANXIETY_OF_NEW: (
        "Anxiety of the New: worries, uncertainties, risks or fears about adopting "
        "AI that create hesitation."
    ),
    Force.DEMOGRAPHIC: (
        "Demographic: background facts about the respondent (role, tools used, "
        "experience) with no change-related signal."
    ),
}

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


def _is_retryable_api_error(exc: BaseException) -> bool:
    """True for rate-limit (429) and transient server (500/503) errors."""
    exc_str = str(exc).lower()
    exc_type = type(exc).__name__.lower()

    if "429" in exc_str or "resource_exhausted" in exc_str:
        return True
    if "500" in exc_str or "503" in exc_str or "internal" in exc_str:
        return True
    if "resourceexhausted" in exc_type or "serviceunavailable" in exc_type:
        return True

    return False


class ClassifierService:
    """Gemini-backed :class:`ResponseClassifier`."""

    def __init__(self) -> None:
        settings = get_settings()

        genai.configure(api_key=settings.GEMINI_API_KEY)

        self._model_chain: list[str] = settings.model_chain
        self._max_attempts: int = settings.CLASSIFIER_MAX_ATTEMPTS

        # Frustrated or fearful answers must reach the model unblocked.
        self._safety_settings = {
            HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
        }

        self._generation_config = genai.GenerationConfig(
            temperature=settings.CLASSIFIER_TEMPERATURE,
            max_output_tokens=settings.CLASSIFIER_MAX_OUTPUT_TOKENS,
            response_mime_type="application/json",
        )

        logger.info("classifier_service_initialised", model_chain=self._model_chain)

    # ══════════════════════════════════════════════════════════════════
    # Public API
    # ══════════════════════════════════════════════════════════════════

    async def classify_response(
        self,
        question_text: str,
        response_text: str,
        expected_force: Optional[Force] = None,
    ) -> ResponseClassification:
        """Classify one survey answer against the five JTBD forces.

        Parameters
        ----------
        question_text:
            The survey question shown to the respondent.
        response_text:
            The respondent's free-text answer.
        expected_force:
            The force the question was mapped to, passed to the model as a
            hint only.

        Raises
        ------
        ClassificationError
            If every model in the chain fails or returns unusable output.
        """
        prompt = self._build_prompt(question_text, response_text, expected_force)
        last_exception: Exception | None = None

        for model_name in self._model_chain:
            try:
                raw = await self._call_gemini_with_retry(model_name, prompt)
                classification = self._to_classification(self._parse_json_response(raw))
            except Exception as exc:
                last_exception = exc
                logger.warning("model_fallback", failed_model=model_name, error=str(exc))
                continue

            logger.debug(
                "response_classified",
                model=model_name,
                primary_force=classification.primary_force.value,
                strength=classification.force_strength_score,
            )
            return classification

        raise ClassificationError(
            f"All models in chain exhausted. Last error: {last_exception}"
        ) from last_exception

    # ══════════════════════════════════════════════════════════════════
    # Gemini transport
    # ══════════════════════════════════════════════════════════════════

    async def _call_gemini_with_retry(self, model_name: str, prompt: str) -> str:
        model = genai.GenerativeModel(model_name)

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_retryable_api_error),
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=60, exp_base=2),
                reraise=True,
            ):
                with attempt:
                    logger.debug(
                        "gemini_call_attempt",
                        model=model_name,
                        attempt_number=attempt.retry_state.attempt_number,
                    )
                    response = await model.generate_content_async(
                        prompt,
                        safety_settings=self._safety_settings,
                        generation_config=self._generation_config,
                    )

                    if not response.candidates:
                        raise ValueError(
                            f"Gemini returned no candidates for model {model_name}. "
                            f"Prompt feedback: {response.prompt_feedback}"
                        )

                    text = response.text
                    if not text or not text.strip():
                        raise ValueError(f"Gemini returned empty text for model {model_name}")

                    return text

        except RetryError as retry_err:
            logger.error(
                "gemini_retry_exhausted",
                model=model_name,
                attempts=self._max_attempts,
                last_error=str(retry_err.last_attempt.exception()),
            )
            raise retry_err.last_attempt.exception() from retry_err

    # ══════════════════════════════════════════════════════════════════
    # Prompt construction
    # ══════════════════════════════════════════════════════════════════

    def _build_prompt(
        self,
        question_text: str,
        response_text: str,
        expected_force: Optional[Force],
    ) -> str:
        definitions = "\n".join(
            f"- {force.value}: {text}" for force, text in FORCE_DEFINITIONS.items()
        )
        hint = expected_force.value if expected_force else "unknown"
        labels = "|".join(label.value for label in SentimentLabel)
        forces = "|".join(force.value for force in Force)

        return f"""Analyze this AI readiness survey response using the JTBD Forces of Progress framework.

SURVEY QUESTION: "{question_text}"
EXPECTED FORCE (hint only, classify what the response actually expresses): {hint}

EMPLOYEE RESPONSE:
"{response_text}"

FORCES:
{definitions}

Score force strength 1-5 by intensity and specificity (1 = barely present,
5 = severe or detailed). Use confidence 4-5 for clear signals and 1-3 for
ambiguous responses. List at most 2 secondary forces and 3-5 specific themes.

Respond with JSON only:
{{
  "primary_force": "{forces}",
  "secondary_forces": ["..."],
  "force_strength_score": 1-5,
  "confidence_score": 1-5,
  "reasoning": "brief explanation citing the response",
  "key_themes": ["theme"],
  "related_themes": ["themes likely to recur in other responses"],
  "sentiment": {{
    "overall_score": -1.0 to 1.0,
    "label": "{labels}",
    "emotional_indicators": ["words or phrases"],
    "tone": "frustrated|excited|cautious|optimistic|concerned"
  }}
}}"""

    # ══════════════════════════════════════════════════════════════════
    # Output normalisation
    # ══════════════════════════════════════════════════════════════════

    def _to_classification(self, data: dict[str, Any]) -> ResponseClassification:
        """Build a validated classification from loosely-shaped model output.

        Scores are clamped into [1, 5] and the sentiment score into [-1, 1].
        Secondary forces the enum does not know are dropped; an unknown
        primary force raises ``ValueError``.
        """
        primary_raw = data.get("primary_force") or data.get("primary_jtbd_force")
        try:
            primary = Force(str(primary_raw).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown primary force in model output: {primary_raw!r}") from exc

        secondaries: list[Force] = []
        for raw in data.get("secondary_forces") or data.get("secondary_jtbd_forces") or []:
            try:
                force = Force(str(raw).strip().lower())
            except ValueError:
                logger.debug("unknown_secondary_force_dropped", value=raw)
                continue
            if force != primary and force not in secondaries:
                secondaries.append(force)

        sentiment = data.get("sentiment") or data.get("sentiment_analysis") or {}
        label_raw = sentiment.get("label") or sentiment.get("sentiment_label") or "neutral"
        try:
            label = SentimentLabel(str(label_raw).strip().lower())
        except ValueError:
            label = SentimentLabel.NEUTRAL

        related = data.get("related_themes")
        if related is None:
            related = (data.get("analysis_metadata") or {}).get("related_themes", [])

        payload = {
            "primary_force": primary,
            "secondary_forces": tuple(secondaries),
            "force_strength_score": clamp(float(data.get("force_strength_score", 1)), 1.0, 5.0),
            "confidence_score": clamp(float(data.get("confidence_score", 3)), 1.0, 5.0),
            "reasoning": str(data.get("reasoning", "")),
            "key_themes": tuple(str(t) for t in data.get("key_themes") or []),
            "related_themes": tuple(str(t) for t in related or []),
            "sentiment": {
                "overall_score": clamp(float(sentiment.get("overall_score", 0.0)), -1.0, 1.0),
                "label": label,
                "emotional_indicators": tuple(
                    str(i) for i in sentiment.get("emotional_indicators") or []
                ),
                "tone": str(sentiment.get("tone", "")),
            },
        }
        for field_name in (
            "pain_analysis",
            "opportunity_analysis",
            "barrier_analysis",
            "anxiety_analysis",
            "demographic_analysis",
        ):
            if isinstance(data.get(field_name), dict):
                payload[field_name] = data[field_name]

        try:
            return ResponseClassification.model_validate(payload)
        except ValidationError as exc:
            raise ValueError(f"Model output failed validation: {exc}") from exc

    def _parse_json_response(self, text: str) -> dict:
        """Parse a JSON object from model output.

        Tries, in order: direct ``json.loads``, a fenced code block, the
        outermost ``{...}`` span, then ``repair_json`` on the whole text.

        Raises
        ------
        ValueError
            If no strategy yields a JSON object.
        """
        if not text or not text.strip():
            raise ValueError("Empty response text, cannot parse JSON")

        cleaned = text.strip()
        candidates = [cleaned]

        fence = _FENCE_PATTERN.search(cleaned)
        if fence:
            candidates.append(fence.group(1).strip())

        first_brace = cleaned.find("{")
        last_brace = cleaned.rfind("}")
        if first_brace >= 0 and last_brace > first_brace:
            candidates.append(cleaned[first_brace : last_brace + 1])

        for candidate in candidates:
            try:
                result = json.loads(candidate)
            except (json.JSONDecodeError, TypeError):
                continue
            if isinstance(result, dict):
                return result

        repaired = repair_json(cleaned, return_objects=True)
        if isinstance(repaired, dict) and repaired:
            logger.info("json_parsed_via_repair", original_preview=cleaned[:80])
            return repaired

        raise ValueError(f"Failed to parse JSON from Gemini response. Preview: {cleaned[:200]}")
