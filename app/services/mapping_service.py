"""
Readiness JTBD — MappingService: question-to-force mapping and validation.

Four operations share one injected :class:`~app.services.force_store.ForceStore`:

  1. **map_question_to_force** — keyword heuristics pick the JTBD force a
     question should elicit; the mapping is persisted once per question ID
     and served from the store on every later call.
  2. **validate_response_against_force** — checks one classified answer
     against its question's validation rules (fails open when unmapped).
  3. **calculate_force_distribution** — compares many classified answers to
     the question's expected force and upserts the distribution row.
  4. **validate_force_completion** — checks that a survey's question set
     covers all five forces evenly.

All keyword lists, templates and thresholds come from
:mod:`app.services.force_rules`.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from app.errors import EmptyInputError
from app.schemas.jtbd import (
    FORCE_ORDER,
    ClassifiedResponse,
    DeviationAnalysis,
    Force,
    ForceCompletionReport,
    ForceCoverage,
    ForceDistributionResult,
    MappingResult,
    PrimaryDeviation,
    QuestionInput,
    QuestionMapping,
    ResponseClassification,
    ResponseValidationResult,
    ValidationRules,
)
from app.services import force_rules as rules
from app.services.force_store import ForceStore
from app.utils.numeric import clamp, round_half_up

logger = structlog.get_logger("readiness.mapping_service")


class MappingService:
    """Maps survey questions to JTBD forces and checks responses, question
    distributions and question sets against those mappings."""

    def __init__(self, store: ForceStore) -> None:
        self._store = store

    # ══════════════════════════════════════════════════════════════════════
    # 1. map_question_to_force
    # ══════════════════════════════════════════════════════════════════════

    async def map_question_to_force(self, question: QuestionInput) -> MappingResult:
        """Return the expected force for ``question``, creating the mapping
        on first sight.

        A stored mapping is returned unchanged, so repeated calls for the
        same question ID are idempotent even if the text has since been
        edited.
        """
        log = logger.bind(question_id=question.id)

        existing = await self._store.get_mapping(question.id)
        if existing is not None:
            log.debug("mapping_reused", expected_force=existing.expected_force.value)
            return _to_mapping_result(existing)

        expected_force, confidence, score = self._analyze_question(
            question.text, question.category
        )
        mapping = QuestionMapping(
            question_id=question.id,
            question_text=question.text,
            question_category=question.category,
            organization_id=question.organization_id,
            survey_template_id=question.survey_template_id,
            expected_force=expected_force,
            confidence_level=confidence,
            mapping_rationale=(
                f"Mapped to {expected_force.value} based on keyword analysis. "
                f"Score: {score}"
            ),
            validation_rules=self._generate_validation_rules(expected_force),
        )

        stored = await self._store.upsert_mapping(mapping)
        log.info(
            "mapping_created",
            expected_force=expected_force.value,
            confidence=confidence,
            keyword_score=score,
        )
        return _to_mapping_result(stored)

    # ══════════════════════════════════════════════════════════════════════
    # 2. validate_response_against_force
    # ══════════════════════════════════════════════════════════════════════

    async def validate_response_against_force(
        self,
        question_id: str,
        response_text: str,
        classification: ResponseClassification,
    ) -> ResponseValidationResult:
        """Score one answer against its question's validation rules.

        Each violated rule deducts a fixed penalty from 100 (floored at 0).
        Validity is decided by the violation count alone: a single violation
        makes the response invalid regardless of the remaining score.
        """
        mapping = await self._store.get_mapping(question_id)
        if mapping is None:
            return ResponseValidationResult(
                is_valid=True,
                validation_score=100,
                violations=[],
                recommendations=["No validation rules defined for this question"],
            )

        penalties = rules.VALIDATION_PENALTIES
        violations: list[str] = []
        recommendations: list[str] = []
        score = 100

        expected = mapping.expected_force
        actual = classification.primary_force
        if not classification.relates_to(expected):
            violations.append(
                f"Response force ({actual.value}) doesn't match expected force "
                f"({expected.value})"
            )
            recommendations.append(
                f"Consider revising question to better elicit {expected.value} responses"
            )
            score -= penalties["force_mismatch"]

        validation = mapping.validation_rules
        length = len(response_text)

        if length < validation.min_response_length:
            violations.append(
                f"Response too short ({length} < {validation.min_response_length} characters)"
            )
            recommendations.append("Encourage more detailed responses")
            score -= penalties["too_short"]

        if length > validation.max_response_length:
            violations.append(
                f"Response too long ({length} > {validation.max_response_length} characters)"
            )
            recommendations.append("Consider breaking into multiple questions")
            score -= penalties["too_long"]

        if validation.required_keywords:
            lowered = response_text.lower()
            found = [k for k in validation.required_keywords if k.lower() in lowered]
            if not found:
                violations.append(
                    "No required keywords found: "
                    + ", ".join(validation.required_keywords)
                )
                recommendations.append(
                    "Question may not be effectively prompting desired information"
                )
                score -= penalties["missing_keywords"]

        actual_sentiment = classification.sentiment.label
        if (
            validation.expected_sentiment is not None
            and validation.expected_sentiment != actual_sentiment
        ):
            violations.append(
                f"Sentiment mismatch: expected {validation.expected_sentiment.value}, "
                f"got {actual_sentiment.value}"
            )
            score -= penalties["sentiment_mismatch"]

        score = max(0, score)

        logger.debug(
            "response_validated",
            question_id=question_id,
            validation_score=score,
            violation_count=len(violations),
        )

        return ResponseValidationResult(
            is_valid=not violations,
            validation_score=score,
            violations=violations,
            recommendations=recommendations,
        )

    # ══════════════════════════════════════════════════════════════════════
    # 3. calculate_force_distribution
    # ══════════════════════════════════════════════════════════════════════

    async def calculate_force_distribution(
        self,
        survey_id: str,
        question_id: str,
        responses: list[ClassifiedResponse],
        organization_id: Optional[str] = None,
    ) -> ForceDistributionResult:
        """Compare the primary forces of ``responses`` with the question's
        expected force and upsert the result for (survey, question).

        Percentages are rounded per force, so they need not sum to 100.

        Raises
        ------
        EmptyInputError
            If ``responses`` is empty.
        """
        log = logger.bind(survey_id=survey_id, question_id=question_id)

        if not responses:
            raise EmptyInputError("No responses provided for distribution calculation")

        mapping = await self._store.get_mapping(question_id)
        expected_force = mapping.expected_force if mapping else rules.DEFAULT_FORCE

        total = len(responses)
        counts = {force: 0 for force in FORCE_ORDER}
        for response in responses:
            counts[response.classification.primary_force] += 1

        actual_distribution = {
            force: int(round_half_up(100 * counts[force] / total))
            for force in FORCE_ORDER
        }
        accuracy_score = int(round_half_up(100 * counts[expected_force] / total))

        deviation_analysis = self._analyze_deviations(
            expected_force, actual_distribution, responses, accuracy_score
        )

        result = ForceDistributionResult(
            expected_force=expected_force,
            actual_distribution=actual_distribution,
            total_responses=total,
            accuracy_score=accuracy_score,
            deviation_analysis=deviation_analysis,
        )

        await self._store.upsert_distribution(
            survey_id, question_id, result, organization_id=organization_id
        )

        log.info(
            "distribution_calculated",
            expected_force=expected_force.value,
            total_responses=total,
            accuracy_score=accuracy_score,
            deviations=len(deviation_analysis.primary_deviations),
        )
        return result

    # ══════════════════════════════════════════════════════════════════════
    # 4. validate_force_completion
    # ══════════════════════════════════════════════════════════════════════

    async def validate_force_completion(
        self, questions: list[QuestionInput]
    ) -> ForceCompletionReport:
        """Check how well a question set covers the five forces.

        Every question is mapped (creating mappings as needed).  The balance
        score penalises deviation from an even one-fifth split per force.
        """
        if not questions:
            return ForceCompletionReport(
                all_forces_covered=False,
                missing_forces=list(FORCE_ORDER),
                force_coverage={force: ForceCoverage() for force in FORCE_ORDER},
                balance_score=0,
                recommendations=["Add questions to cover all JTBD forces"],
            )

        mappings = await asyncio.gather(
            *(self.map_question_to_force(q) for q in questions)
        )

        force_coverage: dict[Force, ForceCoverage] = {}
        for force in FORCE_ORDER:
            matched = [
                (q, m) for q, m in zip(questions, mappings) if m.expected_force == force
            ]
            confidences = [m.confidence for _, m in matched]
            force_coverage[force] = ForceCoverage(
                question_count=len(matched),
                question_ids=[q.id for q, _ in matched],
                coverage_quality=self._coverage_quality(confidences),
            )

        missing_forces = [f for f in FORCE_ORDER if force_coverage[f].question_count == 0]

        total = len(questions)
        expected_per_force = total / len(FORCE_ORDER)
        variance = sum(
            (force_coverage[f].question_count - expected_per_force) ** 2
            for f in FORCE_ORDER
        ) / len(FORCE_ORDER)
        raw_balance = clamp(100 - variance * rules.BALANCE_VARIANCE_PENALTY, 0, 100)
        balance_score = int(round_half_up(raw_balance))

        # Thresholds apply to the unrounded score; 69.6 still needs rebalancing.
        recommendations = self._completion_recommendations(
            force_coverage, missing_forces, raw_balance, total
        )

        logger.info(
            "force_completion_validated",
            total_questions=total,
            missing_forces=[f.value for f in missing_forces],
            balance_score=balance_score,
        )

        return ForceCompletionReport(
            all_forces_covered=not missing_forces,
            missing_forces=missing_forces,
            force_coverage=force_coverage,
            balance_score=balance_score,
            recommendations=recommendations,
        )

    # ══════════════════════════════════════════════════════════════════════
    # Internal helpers
    # ══════════════════════════════════════════════════════════════════════

    def _analyze_question(self, text: str, category: str) -> tuple[Force, int, int]:
        """Return ``(expected_force, confidence, keyword_score)``.

        A force scores ``matches × base_confidence``; the winner must score
        strictly higher than every earlier force, so ties keep the earlier
        force in canonical order.  No matches at all falls back to
        ``demographic`` with confidence 1.
        """
        text_lower = text.lower()
        category_lower = category.lower()

        best_force = rules.DEFAULT_FORCE
        best_score = 0
        confidence = rules.DEFAULT_CONFIDENCE

        for force in FORCE_ORDER:
            pattern = rules.FORCE_PATTERNS[force]
            matches = sum(
                1
                for keyword in pattern.keywords
                if keyword in text_lower or keyword in category_lower
            )
            score = matches * pattern.base_confidence
            if score > best_score:
                best_force = force
                best_score = score
                confidence = min(rules.MAX_CONFIDENCE, pattern.base_confidence + matches)

        return best_force, confidence, best_score

    def _generate_validation_rules(self, force: Force) -> ValidationRules:
        template = rules.VALIDATION_TEMPLATES[force]
        return ValidationRules(
            required_keywords=list(template.required_keywords),
            expected_sentiment=template.expected_sentiment,
            min_response_length=template.min_response_length,
            max_response_length=template.max_response_length,
            domain_specific_rules=list(template.domain_specific_rules),
        )

    def _analyze_deviations(
        self,
        expected_force: Force,
        actual_distribution: dict[Force, int],
        responses: list[ClassifiedResponse],
        accuracy_score: int,
    ) -> DeviationAnalysis:
        primary_deviations: list[PrimaryDeviation] = []
        for force in FORCE_ORDER:
            percentage = actual_distribution[force]
            if force == expected_force or percentage < rules.DEVIATION_MIN_PERCENTAGE:
                continue
            samples = [
                r.response_id
                for r in responses
                if r.classification.primary_force == force
            ][: rules.DEVIATION_SAMPLE_SIZE]
            primary_deviations.append(
                PrimaryDeviation(
                    actual_force=force,
                    percentage=percentage,
                    sample_responses=samples,
                )
            )

        reasons: list[str] = []
        recommendations: list[str] = []

        if accuracy_score < rules.LOW_ACCURACY_THRESHOLD:
            reasons.append("Question may not be effectively prompting the expected force")
            recommendations.append(
                "Consider revising question wording to better align with intended force"
            )

        if len(primary_deviations) > rules.MAX_PRIMARY_DEVIATIONS:
            reasons.append("Responses are distributed across multiple forces")
            recommendations.append("Question may be too broad or ambiguous")

        if actual_distribution[Force.DEMOGRAPHIC] > rules.DEMOGRAPHIC_DOMINANCE_THRESHOLD:
            reasons.append("Many responses classified as demographic rather than behavioral")
            recommendations.append(
                "Add more context to prompt specific experiences or opinions"
            )

        return DeviationAnalysis(
            primary_deviations=primary_deviations,
            deviation_reasons=reasons,
            recommendations=recommendations,
        )

    def _coverage_quality(self, confidences: list[int]) -> str:
        """Rate coverage of one force from its questions' mapping confidences.

        Tiers, checked in order
        -----------------------
        0 questions                          : poor
        1 question,  mean confidence < 3     : fair
        >= 1 question, mean confidence >= 3  : good
        >= 2 questions, mean confidence >= 4 : excellent
        otherwise                            : fair

        ``good`` is checked first, so every set that would qualify for
        ``excellent`` is already rated ``good``.
        """
        count = len(confidences)
        if count == 0:
            return "poor"

        mean_confidence = sum(confidences) / count
        if count == 1 and mean_confidence < rules.GOOD_COVERAGE_CONFIDENCE:
            return "fair"
        if mean_confidence >= rules.GOOD_COVERAGE_CONFIDENCE:
            return "good"
        if (
            count >= rules.EXCELLENT_COVERAGE_QUESTIONS
            and mean_confidence >= rules.EXCELLENT_COVERAGE_CONFIDENCE
        ):
            return "excellent"
        return "fair"

    def _completion_recommendations(
        self,
        force_coverage: dict[Force, ForceCoverage],
        missing_forces: list[Force],
        balance_score: float,
        total_questions: int,
    ) -> list[str]:
        recommendations: list[str] = []

        for force in missing_forces:
            recommendations.append(
                f"Add questions to cover {rules.FORCE_LABELS[force]} force"
            )

        for force in FORCE_ORDER:
            coverage = force_coverage[force]
            if coverage.coverage_quality == "poor" and coverage.question_count > 0:
                recommendations.append(
                    f"Improve question quality for {rules.FORCE_LABELS[force]} force"
                )

        if balance_score < rules.LOW_BALANCE_THRESHOLD:
            recommendations.append(
                "Rebalance questions across JTBD forces for more comprehensive analysis"
            )

        if total_questions < rules.MIN_RECOMMENDED_QUESTIONS:
            recommendations.append("Consider adding more questions for deeper insights")
        elif total_questions > rules.MAX_RECOMMENDED_QUESTIONS:
            recommendations.append(
                "Survey may be too long - consider prioritizing key questions"
            )

        return recommendations


def _to_mapping_result(mapping: QuestionMapping) -> MappingResult:
    return MappingResult(
        expected_force=mapping.expected_force,
        confidence=mapping.confidence_level,
        rationale=mapping.mapping_rationale,
        validation_rules=mapping.validation_rules,
    )
