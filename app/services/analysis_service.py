"""
Readiness JTBD — AnalysisService: force scoring and survey aggregation.

Scoring is a synchronous fold over already-classified responses; only
:meth:`AnalysisService.aggregate_force_scores` and the response-analysis
helpers touch the injected store.

Force score
-----------
For the responses whose primary *or* secondary forces include ``force``::

    average    = Σ(strength × weight) / Σ(weight)      weight = 2 primary, 1 secondary
    confidence = clamp(1, 5, matched/total × 5 × (1 − var(strengths) / 25))

``var`` is the population variance of the matched strength scores.  Both
values are rounded half-up to two decimals; the strength tier is read from
the unrounded average.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Optional

import structlog

from app.errors import EmptyInputError
from app.schemas.jtbd import (
    FORCE_ORDER,
    AggregateForceScoreResult,
    ClassifiedResponse,
    Force,
    ForceBalance,
    ForceScoreResult,
    ForceSummary,
    ResponseAnalysisPage,
    ResponseClassification,
    ResponseForceProfile,
)
from app.services import force_rules as rules
from app.services.force_store import ForceStore
from app.utils.numeric import clamp, population_variance, round_half_up

logger = structlog.get_logger("readiness.analysis_service")


class AnalysisService:
    """Scores JTBD forces across classified responses and aggregates them
    into survey-level summaries."""

    def __init__(self, store: ForceStore) -> None:
        self._store = store

    # ══════════════════════════════════════════════════════════════════════
    # 1. calculate_force_score
    # ══════════════════════════════════════════════════════════════════════

    def calculate_force_score(
        self, responses: list[ClassifiedResponse], force: Force
    ) -> ForceScoreResult:
        """Weighted strength of ``force`` across ``responses``.

        Returns all zeros with strength ``weak`` when no response relates to
        ``force`` (including an empty list).
        """
        matched = [r.classification for r in responses if r.classification.relates_to(force)]
        if not matched:
            return ForceScoreResult(
                average_score=0.0, total_responses=0, confidence=0.0, strength="weak"
            )

        total_score = 0.0
        total_weight = 0
        for classification in matched:
            weight = (
                rules.PRIMARY_WEIGHT
                if classification.primary_force == force
                else rules.SECONDARY_WEIGHT
            )
            total_score += classification.force_strength_score * weight
            total_weight += weight

        average = total_score / total_weight

        variance = population_variance([c.force_strength_score for c in matched])
        confidence = clamp(
            len(matched) / len(responses) * 5 * (1 - variance / rules.VARIANCE_DIVISOR),
            1.0,
            5.0,
        )

        return ForceScoreResult(
            average_score=round_half_up(average, 2),
            total_responses=len(matched),
            confidence=round_half_up(confidence, 2),
            strength=_strength_tier(average),
        )

    # ══════════════════════════════════════════════════════════════════════
    # 2. analyze_response_forces
    # ══════════════════════════════════════════════════════════════════════

    def analyze_response_forces(
        self,
        question_text: str,
        response_text: str,
        classification: ResponseClassification,
    ) -> ResponseForceProfile:
        """Spread one response's strength over all five forces.

        The primary force takes the full strength score and each secondary
        force at least 60% of it.  Force-specific detail blocks then add a
        bonus of up to 2 points to their force.
        """
        strength = classification.force_strength_score
        distribution: dict[Force, float] = {force: 0.0 for force in FORCE_ORDER}
        distribution[classification.primary_force] = strength

        secondary_weight = strength * rules.SECONDARY_PROFILE_FACTOR
        for force in classification.secondary_forces:
            distribution[force] = max(distribution[force], secondary_weight)

        for force in FORCE_ORDER:
            rule = rules.INDICATOR_RULES[force]
            detail = getattr(classification, rule.detail_field)
            if detail is not None:
                distribution[force] += _indicator_score(rule, detail)

        reasoning = (
            f"Primary force: {classification.primary_force.value} ({strength:g}/5). "
            f"{classification.reasoning}"
        )

        logger.debug(
            "response_forces_analyzed",
            primary_force=classification.primary_force.value,
            question_length=len(question_text),
            response_length=len(response_text),
        )

        return ResponseForceProfile(
            primary_force=classification.primary_force,
            secondary_forces=list(classification.secondary_forces),
            force_distribution=distribution,
            reasoning=reasoning,
        )

    # ══════════════════════════════════════════════════════════════════════
    # 3. aggregate_force_scores
    # ══════════════════════════════════════════════════════════════════════

    async def aggregate_force_scores(
        self,
        organization_id: str,
        survey_id: str,
        responses: list[ClassifiedResponse],
    ) -> AggregateForceScoreResult:
        """Score every force over ``responses``, derive the dominant force,
        push/resistance balance and insights, and upsert the aggregate row
        for ``survey_id``.

        Raises
        ------
        EmptyInputError
            If ``responses`` is empty.
        """
        log = logger.bind(survey_id=survey_id, organization_id=organization_id)

        if not responses:
            raise EmptyInputError("No responses provided for aggregation")

        overall_scores: dict[Force, ForceSummary] = {}
        for force in FORCE_ORDER:
            score = self.calculate_force_score(responses, force)
            overall_scores[force] = ForceSummary(
                **score.model_dump(),
                top_themes=self._top_themes(responses, force),
            )

        # max() keeps the first of equal maxima, so FORCE_ORDER is the tie-break.
        dominant_force = max(FORCE_ORDER, key=lambda f: overall_scores[f].average_score)

        force_balance = ForceBalance(
            push_forces=_mean([overall_scores[f].average_score for f in rules.PUSH_FORCES]),
            resistance_forces=_mean(
                [overall_scores[f].average_score for f in rules.RESISTANCE_FORCES]
            ),
            neutral_forces=overall_scores[Force.DEMOGRAPHIC].average_score,
        )

        result = AggregateForceScoreResult(
            overall_scores=overall_scores,
            dominant_force=dominant_force,
            force_balance=force_balance,
            insights=self._generate_insights(overall_scores, force_balance, dominant_force),
        )

        await self._store.upsert_aggregate(survey_id, organization_id, result)

        log.info(
            "aggregate_calculated",
            total_responses=len(responses),
            dominant_force=dominant_force.value,
            push=force_balance.push_forces,
            resistance=force_balance.resistance_forces,
        )
        return result

    # ══════════════════════════════════════════════════════════════════════
    # 4. Response analyses
    # ══════════════════════════════════════════════════════════════════════

    async def store_response_analysis(
        self,
        organization_id: str,
        survey_id: str,
        response_id: str,
        question_id: str,
        response_text: str,
        classification: ResponseClassification,
    ) -> None:
        await self._store.save_response_analysis(
            organization_id=organization_id,
            survey_id=survey_id,
            response_id=response_id,
            question_id=question_id,
            user_response=response_text,
            classification=classification,
        )
        logger.info(
            "response_analysis_stored",
            survey_id=survey_id,
            response_id=response_id,
            primary_force=classification.primary_force.value,
        )

    async def list_response_analyses(
        self,
        survey_id: str,
        question_id: Optional[str] = None,
        force: Optional[Force] = None,
    ) -> list[ClassifiedResponse]:
        """Stored analyses for a survey in insertion order, optionally
        narrowed to one question and/or to responses related to ``force``."""
        analyses = await self._store.list_response_analyses(survey_id, question_id)
        if force is None:
            return analyses
        return [a for a in analyses if a.classification.relates_to(force)]

    async def page_response_analyses(
        self,
        survey_id: str,
        question_id: Optional[str] = None,
        force: Optional[Force] = None,
        limit: int = rules.DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> ResponseAnalysisPage:
        """Newest-first page of the filtered analyses.

        ``total`` counts every analysis that passes the filters, and
        ``has_more`` is true while ``offset + limit < total``.
        """
        analyses = await self.list_response_analyses(survey_id, question_id, force)
        newest_first = analyses[::-1]
        total = len(newest_first)
        return ResponseAnalysisPage(
            data=newest_first[offset:offset + limit],
            total=total,
            has_more=offset + limit < total,
        )

    # ── Internal helpers ────────────────────────────────────────────────

    def _top_themes(self, responses: list[ClassifiedResponse], force: Force) -> list[str]:
        themes: Counter[str] = Counter()
        for response in responses:
            classification = response.classification
            if classification.relates_to(force):
                themes.update(classification.key_themes)
                themes.update(classification.related_themes)
        # Counter.most_common is stable for equal counts (first-seen order).
        return [theme for theme, _ in themes.most_common(rules.TOP_THEME_COUNT)]

    def _generate_insights(
        self,
        overall_scores: dict[Force, ForceSummary],
        force_balance: ForceBalance,
        dominant_force: Force,
    ) -> list[str]:
        insights = [
            f"The dominant JTBD force is {rules.FORCE_LABELS[dominant_force]} "
            f"with a score of {overall_scores[dominant_force].average_score:g}/5"
        ]

        push_vs_resistance = force_balance.push_forces - force_balance.resistance_forces
        if push_vs_resistance > rules.BALANCE_MARGIN:
            insights.append("Strong push forces indicate high motivation for change")
        elif push_vs_resistance < -rules.BALANCE_MARGIN:
            insights.append("Strong resistance forces may hinder adoption")
        else:
            insights.append(
                "Push and resistance forces are balanced - careful change management needed"
            )

        avg_confidence = _mean([overall_scores[f].confidence for f in FORCE_ORDER])
        if avg_confidence >= rules.HIGH_CONFIDENCE_THRESHOLD:
            insights.append("High confidence in analysis results based on response quality")
        elif avg_confidence < rules.LOW_CONFIDENCE_THRESHOLD:
            insights.append("Lower confidence suggests need for additional data collection")

        return insights


def _strength_tier(average: float) -> str:
    for threshold, tier in rules.STRENGTH_TIERS:
        if average >= threshold:
            return tier
    return rules.WEAKEST_TIER


def _indicator_score(rule: rules.IndicatorRule, detail: dict[str, Any]) -> float:
    score = rule.base
    for indicator in rule.bonuses:
        if _lookup(detail, indicator.path) == indicator.value:
            score += indicator.bonus
    return min(rules.INDICATOR_CAP, score)


def _lookup(detail: dict[str, Any], path: tuple[str, ...]) -> Any:
    value: Any = detail
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _mean(values: list[float]) -> float:
    return sum(values) / len(values)
