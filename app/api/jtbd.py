"""
Readiness JTBD — Force API

Endpoints for mapping survey questions to JTBD forces, validating and
classifying responses, and computing per-question distributions and
survey-level aggregates.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.errors import (
    ClassificationError,
    EmptyInputError,
    PersistenceError,
    ReadinessError,
)
from app.schemas.jtbd import (
    AggregateForceScoreResult,
    AggregateRequest,
    AnalyzeResponseRequest,
    AnalyzeResponseResult,
    CompletionRequest,
    DistributionRequest,
    Force,
    ForceCompletionReport,
    ForceDistributionResult,
    ForceScoreRequest,
    ForceScoreResult,
    MappingResult,
    QuestionInput,
    ResponseAnalysisPage,
    ResponseValidationResult,
    ValidateResponseRequest,
)
from app.services.analysis_service import AnalysisService
from app.services.classifier_service import ClassifierService, ResponseClassifier
from app.services.force_rules import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.services.force_store import ForceStore, SqlForceStore
from app.services.mapping_service import MappingService

logger = structlog.get_logger("readiness.api.jtbd")

router = APIRouter()

# ── Dependencies ──────────────────────────────────────────────────────────────

_force_store: ForceStore | None = None
_classifier: ResponseClassifier | None = None


def get_force_store() -> ForceStore:
    global _force_store
    if _force_store is None:
        _force_store = SqlForceStore()
    return _force_store


def get_classifier() -> ResponseClassifier:
    global _classifier
    if _classifier is None:
        _classifier = ClassifierService()
    return _classifier


def get_mapping_service(store: ForceStore = Depends(get_force_store)) -> MappingService:
    return MappingService(store)


def get_analysis_service(store: ForceStore = Depends(get_force_store)) -> AnalysisService:
    return AnalysisService(store)


_STATUS_BY_ERROR: dict[type[ReadinessError], int] = {
    EmptyInputError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PersistenceError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ClassificationError: status.HTTP_502_BAD_GATEWAY,
}


def _http_error(exc: ReadinessError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.warning("request_failed", error_type=type(exc).__name__, error=str(exc))
    return HTTPException(status_code=status_code, detail=str(exc))


# ──────────────────────────────────────────────────────────────────────────────
# Questions
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/questions/map",
    response_model=MappingResult,
    summary="Map a survey question to its expected JTBD force",
)
async def map_question(
    body: QuestionInput,
    mapping_service: MappingService = Depends(get_mapping_service),
) -> MappingResult:
    try:
        return await mapping_service.map_question_to_force(body)
    except ReadinessError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/questions/coverage",
    response_model=ForceCompletionReport,
    summary="Check that a question set covers all five forces",
)
async def question_coverage(
    body: CompletionRequest,
    mapping_service: MappingService = Depends(get_mapping_service),
) -> ForceCompletionReport:
    """Map every question (creating mappings as needed) and report per-force
    coverage, balance and recommendations."""
    try:
        return await mapping_service.validate_force_completion(body.questions)
    except ReadinessError as exc:
        raise _http_error(exc) from exc


# ──────────────────────────────────────────────────────────────────────────────
# Responses
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/responses/validate",
    response_model=ResponseValidationResult,
    summary="Validate a classified response against its question's force",
)
async def validate_response(
    body: ValidateResponseRequest,
    mapping_service: MappingService = Depends(get_mapping_service),
) -> ResponseValidationResult:
    try:
        return await mapping_service.validate_response_against_force(
            body.question_id, body.response_text, body.classification
        )
    except ReadinessError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/responses/analyze",
    response_model=AnalyzeResponseResult,
    status_code=status.HTTP_201_CREATED,
    summary="Classify, validate, profile and store one response",
)
async def analyze_response(
    body: AnalyzeResponseRequest,
    mapping_service: MappingService = Depends(get_mapping_service),
    analysis_service: AnalysisService = Depends(get_analysis_service),
    classifier: ResponseClassifier = Depends(get_classifier),
) -> AnalyzeResponseResult:
    """Full single-response pipeline:

      1. Map the question (reuses the stored mapping when present)
      2. Classify the answer with the LLM, using the mapping as a hint
      3. Validate the classification against the question's rules
      4. Spread the response's strength across the five forces
      5. Persist the classified response for later aggregation
    """
    log = logger.bind(
        survey_id=body.survey_id,
        question_id=body.question.id,
        response_id=body.response_id,
    )
    log.info("analyze_response_start")

    try:
        mapping = await mapping_service.map_question_to_force(body.question)
        classification = await classifier.classify_response(
            body.question.text, body.response_text, mapping.expected_force
        )
        validation = await mapping_service.validate_response_against_force(
            body.question.id, body.response_text, classification
        )
        profile = analysis_service.analyze_response_forces(
            body.question.text, body.response_text, classification
        )
        await analysis_service.store_response_analysis(
            organization_id=body.organization_id,
            survey_id=body.survey_id,
            response_id=body.response_id,
            question_id=body.question.id,
            response_text=body.response_text,
            classification=classification,
        )
    except ReadinessError as exc:
        raise _http_error(exc) from exc

    log.info(
        "analyze_response_complete",
        primary_force=classification.primary_force.value,
        validation_score=validation.validation_score,
    )

    return AnalyzeResponseResult(
        response_id=body.response_id,
        classification=classification,
        validation=validation,
        force_profile=profile,
    )


@router.post(
    "/scores",
    response_model=ForceScoreResult,
    summary="Score one force across a set of classified responses",
)
async def force_score(
    body: ForceScoreRequest,
    analysis_service: AnalysisService = Depends(get_analysis_service),
) -> ForceScoreResult:
    return analysis_service.calculate_force_score(body.responses, body.force)


# ──────────────────────────────────────────────────────────────────────────────
# Surveys
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/surveys/{survey_id}/questions/{question_id}/distribution",
    response_model=ForceDistributionResult,
    summary="Calculate and store a question's force distribution",
)
async def question_distribution(
    survey_id: str,
    question_id: str,
    body: DistributionRequest,
    mapping_service: MappingService = Depends(get_mapping_service),
) -> ForceDistributionResult:
    try:
        return await mapping_service.calculate_force_distribution(
            survey_id,
            question_id,
            body.responses,
            organization_id=body.organization_id,
        )
    except ReadinessError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/surveys/{survey_id}/aggregate",
    response_model=AggregateForceScoreResult,
    summary="Aggregate force scores for a survey",
)
async def survey_aggregate(
    survey_id: str,
    body: AggregateRequest,
    analysis_service: AnalysisService = Depends(get_analysis_service),
) -> AggregateForceScoreResult:
    """Aggregate the supplied responses, or the survey's stored response
    analyses when the request carries none."""
    try:
        responses = body.responses or await analysis_service.list_response_analyses(
            survey_id
        )
        return await analysis_service.aggregate_force_scores(
            body.organization_id, survey_id, responses
        )
    except ReadinessError as exc:
        raise _http_error(exc) from exc


@router.get(
    "/surveys/{survey_id}/responses",
    response_model=ResponseAnalysisPage,
    summary="Page through stored response analyses for a survey",
)
async def list_survey_responses(
    survey_id: str,
    question_id: Optional[str] = Query(default=None),
    force: Optional[Force] = Query(default=None),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    analysis_service: AnalysisService = Depends(get_analysis_service),
) -> ResponseAnalysisPage:
    try:
        return await analysis_service.page_response_analyses(
            survey_id, question_id=question_id, force=force, limit=limit, offset=offset
        )
    except ReadinessError as exc:
        raise _http_error(exc) from exc
