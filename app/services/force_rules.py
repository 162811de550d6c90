"""
Readiness JTBD — Declarative force tables.

Every keyword list, base confidence, validation template, penalty and
threshold used by the mapping and analysis services lives here, keyed by
:class:`~app.schemas.jtbd.Force`.  The services only hold control flow.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.schemas.jtbd import Force, SentimentLabel


@dataclass(frozen=True)
class ForcePattern:
    keywords: tuple[str, ...]
    base_confidence: int


@dataclass(frozen=True)
class ValidationTemplate:
    expected_sentiment: SentimentLabel | None
    required_keywords: tuple[str, ...] = ()
    min_response_length: int = 20
    max_response_length: int = 2000
    domain_specific_rules: tuple[str, ...] = ()


# ── Question → force keyword heuristics ─────────────────────────────────────

FORCE_PATTERNS: dict[Force, ForcePattern] = {
    Force.PAIN_OF_OLD: ForcePattern(
        keywords=(
            "frustration", "problem", "challenge", "difficult", "slow",
            "inefficient", "waste", "error", "manual",
        ),
        base_confidence=4,
    ),
    Force.PULL_OF_NEW: ForcePattern(
        keywords=(
            "opportunity", "improve", "better", "faster", "automate",
            "streamline", "enhance", "optimize",
        ),
        base_confidence=4,
    ),
    Force.ANCHORS_TO_OLD: ForcePattern(
        keywords=(
            "concern", "risk", "change", "budget", "cost", "training",
            "approval", "policy", "process",
        ),
        base_confidence=3,
    ),
    Force.ANXIETY_OF_NEW: ForcePattern(
        keywords=(
            "worry", "fear", "uncertain", "security", "privacy", "trust",
            "reliable", "job", "replace",
        ),
        base_confidence=3,
    ),
    Force.DEMOGRAPHIC: ForcePattern(
        keywords=(
            "experience", "currently", "tools", "use", "frequency",
            "background", "role", "department",
        ),
        base_confidence=5,
    ),
}

DEFAULT_FORCE: Force = Force.DEMOGRAPHIC
DEFAULT_CONFIDENCE: int = 1
MAX_CONFIDENCE: int = 5


# ── Response validation templates ───────────────────────────────────────────

VALIDATION_TEMPLATES: dict[Force, ValidationTemplate] = {
    Force.PAIN_OF_OLD: ValidationTemplate(
        expected_sentiment=SentimentLabel.NEGATIVE,
        required_keywords=("problem", "issue", "challenge", "difficult"),
        min_response_length=30,
    ),
    Force.PULL_OF_NEW: ValidationTemplate(
        expected_sentiment=SentimentLabel.POSITIVE,
        required_keywords=("opportunity", "improve", "benefit", "advantage"),
    ),
    Force.ANCHORS_TO_OLD: ValidationTemplate(
        expected_sentiment=SentimentLabel.NEUTRAL,
        required_keywords=("concern", "barrier", "constraint"),
    ),
    Force.ANXIETY_OF_NEW: ValidationTemplate(
        expected_sentiment=SentimentLabel.NEGATIVE,
        required_keywords=("worry", "concern", "risk"),
    ),
    Force.DEMOGRAPHIC: ValidationTemplate(
        expected_sentiment=SentimentLabel.NEUTRAL,
        min_response_length=10,
    ),
}

VALIDATION_PENALTIES: dict[str, int] = {
    "force_mismatch": 30,
    "too_short": 20,
    "too_long": 10,
    "missing_keywords": 25,
    "sentiment_mismatch": 15,
}


# ── Scoring ─────────────────────────────────────────────────────────────────

PRIMARY_WEIGHT: int = 2
SECONDARY_WEIGHT: int = 1
VARIANCE_DIVISOR: float = 25.0
SECONDARY_PROFILE_FACTOR: float = 0.6
INDICATOR_CAP: float = 2.0
TOP_THEME_COUNT: int = 5

DEFAULT_PAGE_SIZE: int = 50
MAX_PAGE_SIZE: int = 500

# Checked top-down; first threshold the average reaches wins.
STRENGTH_TIERS: tuple[tuple[float, str], ...] = (
    (4.5, "very_strong"),
    (3.5, "strong"),
    (2.5, "moderate"),
)
WEAKEST_TIER: str = "weak"


# ── Distribution / deviation analysis ───────────────────────────────────────

DEVIATION_MIN_PERCENTAGE: int = 10
DEVIATION_SAMPLE_SIZE: int = 3
LOW_ACCURACY_THRESHOLD: int = 70
MAX_PRIMARY_DEVIATIONS: int = 2
DEMOGRAPHIC_DOMINANCE_THRESHOLD: int = 50


# ── Aggregate insights ──────────────────────────────────────────────────────

BALANCE_MARGIN: float = 1.0
HIGH_CONFIDENCE_THRESHOLD: float = 4.0
LOW_CONFIDENCE_THRESHOLD: float = 3.0

PUSH_FORCES: tuple[Force, Force] = (Force.PAIN_OF_OLD, Force.PULL_OF_NEW)
RESISTANCE_FORCES: tuple[Force, Force] = (Force.ANCHORS_TO_OLD, Force.ANXIETY_OF_NEW)


# ── Completion / coverage ───────────────────────────────────────────────────

BALANCE_VARIANCE_PENALTY: float = 10.0
LOW_BALANCE_THRESHOLD: int = 70
MIN_RECOMMENDED_QUESTIONS: int = 10
MAX_RECOMMENDED_QUESTIONS: int = 25
GOOD_COVERAGE_CONFIDENCE: float = 3.0
EXCELLENT_COVERAGE_CONFIDENCE: float = 4.0
EXCELLENT_COVERAGE_QUESTIONS: int = 2


FORCE_LABELS: dict[Force, str] = {
    Force.PAIN_OF_OLD: "pain of old",
    Force.PULL_OF_NEW: "pull of new",
    Force.ANCHORS_TO_OLD: "anchors to old",
    Force.ANXIETY_OF_NEW: "anxiety of new",
    Force.DEMOGRAPHIC: "demographic",
}


# ── Per-response indicator bonuses ──────────────────────────────────────────


@dataclass(frozen=True)
class IndicatorBonus:
    path: tuple[str, ...]
    value: str
    bonus: float


@dataclass(frozen=True)
class IndicatorRule:
    detail_field: str
    bonuses: tuple[IndicatorBonus, ...]
    base: float = 0.0


INDICATOR_RULES: dict[Force, IndicatorRule] = {
    Force.PAIN_OF_OLD: IndicatorRule(
        detail_field="pain_analysis",
        bonuses=(
            IndicatorBonus(("frequency",), "daily", 1.0),
            IndicatorBonus(("urgency_indicators", "time_sensitivity"), "critical", 1.0),
            IndicatorBonus(("business_impact",), "revenue", 0.5),
        ),
    ),
    Force.PULL_OF_NEW: IndicatorRule(
        detail_field="opportunity_analysis",
        bonuses=(
            IndicatorBonus(("value_potential",), "transformational", 1.0),
            IndicatorBonus(("feasibility",), "high", 0.5),
            IndicatorBonus(("innovation_readiness",), "pioneering", 0.5),
        ),
    ),
    Force.ANCHORS_TO_OLD: IndicatorRule(
        detail_field="barrier_analysis",
        bonuses=(
            IndicatorBonus(("change_magnitude",), "transformational", 1.0),
            IndicatorBonus(("timeline_to_overcome",), "years", 0.5),
            IndicatorBonus(("change_management", "stakeholder_alignment"), "low", 0.5),
        ),
    ),
    Force.ANXIETY_OF_NEW: IndicatorRule(
        detail_field="anxiety_analysis",
        bonuses=(
            IndicatorBonus(("severity",), "severe", 1.0),
            IndicatorBonus(("mitigation_potential",), "very_difficult", 0.5),
            IndicatorBonus(("concern_type",), "job_security", 0.5),
        ),
    ),
    Force.DEMOGRAPHIC: IndicatorRule(
        detail_field="demographic_analysis",
        bonuses=(
            IndicatorBonus(("extracted_data", "experience_level"), "expert", 0.5),
            IndicatorBonus(("extracted_data", "comfort_level"), "enthusiastic", 0.5),
        ),
        base=1.0,
    ),
}
