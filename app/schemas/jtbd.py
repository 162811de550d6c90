from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Force(str, Enum):
    """The five Jobs-to-be-Done forces.  Declaration order is canonical:
    it drives iteration, tie-breaks, and the layout of every per-force map."""

    PAIN_OF_OLD = "pain_of_old"
    PULL_OF_NEW = "pull_of_new"
    ANCHORS_TO_OLD = "anchors_to_old"
    ANXIETY_OF_NEW = "anxiety_of_new"
    DEMOGRAPHIC = "demographic"


FORCE_ORDER: tuple[Force, ...] = tuple(Force)


class SentimentLabel(str, Enum):
    VERY_NEGATIVE = "very_negative"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    VERY_POSITIVE = "very_positive"


StrengthTier = Literal["weak", "moderate", "strong", "very_strong"]
CoverageQuality = Literal["poor", "fair", "good", "excellent"]


# ── Question mapping ─────────────────────────────────────────────────────────

class ValidationRules(BaseModel):
    required_keywords: list[str] = Field(default_factory=list)
    expected_sentiment: Optional[SentimentLabel] = None
    min_response_length: int = 10
    max_response_length: int = 5000
    domain_specific_rules: list[str] = Field(default_factory=list)


class QuestionInput(BaseModel):
    id: str
    text: str
    category: str = ""
    organization_id: Optional[str] = None
    survey_template_id: Optional[str] = None


class QuestionMapping(BaseModel):
    """Persisted question → expected-force binding."""

    question_id: str
    question_text: str
    question_category: str = ""
    organization_id: Optional[str] = None
    survey_template_id: Optional[str] = None
    expected_force: Force
    confidence_level: int = Field(ge=1, le=5)
    mapping_rationale: str
    validation_rules: ValidationRules
    created_by: str = "system"
    is_active: bool = True

    model_config = {"from_attributes": True}


class MappingResult(BaseModel):
    expected_force: Force
    confidence: int = Field(ge=1, le=5)
    rationale: str
    validation_rules: ValidationRules


# ── LLM classification (external input, never mutated) ──────────────────────

class SentimentAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(default=0.0, ge=-1.0, le=1.0)
    label: SentimentLabel = SentimentLabel.NEUTRAL
    emotional_indicators: tuple[str, ...] = ()
    tone: str = ""


class ResponseClassification(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary_force: Force
    secondary_forces: tuple[Force, ...] = ()
    force_strength_score: float = Field(ge=1.0, le=5.0)
    confidence_score: float = Field(default=3.0, ge=1.0, le=5.0)
    reasoning: str = ""
    key_themes: tuple[str, ...] = ()
    related_themes: tuple[str, ...] = ()
    sentiment: SentimentAnalysis = Field(default_factory=SentimentAnalysis)

    # Force-specific detail blocks returned by the classifier for some
    # question families; only a handful of keys are read (see
    # AnalysisService.analyze_response_forces).
    pain_analysis: Optional[dict[str, Any]] = None
    opportunity_analysis: Optional[dict[str, Any]] = None
    barrier_analysis: Optional[dict[str, Any]] = None
    anxiety_analysis: Optional[dict[str, Any]] = None
    demographic_analysis: Optional[dict[str, Any]] = None

    def relates_to(self, force: Force) -> bool:
        return self.primary_force == force or force in self.secondary_forces


class ClassifiedResponse(BaseModel):
    response_id: str
    classification: ResponseClassification


class ResponseAnalysisPage(BaseModel):
    """One page of stored analyses, newest first."""

    data: list[ClassifiedResponse]
    total: int
    has_more: bool


# ── Validation / scoring results ─────────────────────────────────────────────

class ResponseValidationResult(BaseModel):
    is_valid: bool
    validation_score: int = Field(ge=0, le=100)
    violations: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class ForceScoreResult(BaseModel):
    average_score: float
    total_responses: int
    confidence: float
    strength: StrengthTier


class ForceSummary(ForceScoreResult):
    top_themes: list[str] = Field(default_factory=list)


class ResponseForceProfile(BaseModel):
    primary_force: Force
    secondary_forces: list[Force]
    force_distribution: dict[Force, float]
    reasoning: str


# ── Distribution ─────────────────────────────────────────────────────────────

class PrimaryDeviation(BaseModel):
    actual_force: Force
    percentage: int = Field(ge=0, le=100)
    sample_responses: list[str] = Field(default_factory=list)


class DeviationAnalysis(BaseModel):
    primary_deviations: list[PrimaryDeviation] = Field(default_factory=list)
    deviation_reasons: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class ForceDistributionResult(BaseModel):
    expected_force: Force
    actual_distribution: dict[Force, int]
    total_responses: int
    accuracy_score: int = Field(ge=0, le=100)
    deviation_analysis: DeviationAnalysis


# ── Aggregate ────────────────────────────────────────────────────────────────

class ForceBalance(BaseModel):
    push_forces: float
    resistance_forces: float
    neutral_forces: float


class AggregateForceScoreResult(BaseModel):
    overall_scores: dict[Force, ForceSummary]
    dominant_force: Force
    force_balance: ForceBalance
    insights: list[str]


# ── Completion ───────────────────────────────────────────────────────────────

class ForceCoverage(BaseModel):
    question_count: int = 0
    question_ids: list[str] = Field(default_factory=list)
    coverage_quality: CoverageQuality = "poor"


class ForceCompletionReport(BaseModel):
    all_forces_covered: bool
    missing_forces: list[Force]
    force_coverage: dict[Force, ForceCoverage]
    balance_score: int = Field(ge=0, le=100)
    recommendations: list[str]


# ── API request bodies ───────────────────────────────────────────────────────

class CompletionRequest(BaseModel):
    questions: list[QuestionInput]


class ValidateResponseRequest(BaseModel):
    question_id: str
    response_text: str
    classification: ResponseClassification


class ForceScoreRequest(BaseModel):
    force: Force
    responses: list[ClassifiedResponse]


class DistributionRequest(BaseModel):
    organization_id: Optional[str] = None
    responses: list[ClassifiedResponse]


class AggregateRequest(BaseModel):
    organization_id: str
    # Empty → aggregate the analyses already stored for the survey.
    responses: list[ClassifiedResponse] = Field(default_factory=list)


class AnalyzeResponseRequest(BaseModel):
    organization_id: str
    survey_id: str
    response_id: str
    question: QuestionInput
    response_text: str = Field(min_length=1, max_length=5000)


class AnalyzeResponseResult(BaseModel):
    response_id: str
    classification: ResponseClassification
    validation: ResponseValidationResult
    force_profile: ResponseForceProfile
