"""Shared pytest fixtures for the JTBD force engine tests."""
from typing import Optional

import pytest

from app.schemas.jtbd import (
    AggregateForceScoreResult,
    ClassifiedResponse,
    Force,
    ForceDistributionResult,
    QuestionMapping,
    ResponseClassification,
    SentimentLabel,
)
from app.services.analysis_service import AnalysisService
from app.services.mapping_service import MappingService


class InMemoryForceStore:
    """Dict-backed ForceStore; upserts overwrite by natural key."""

    def __init__(self):
        self.mappings: dict[str, QuestionMapping] = {}
        self.distributions: dict[tuple[str, str], ForceDistributionResult] = {}
        self.aggregates: dict[str, AggregateForceScoreResult] = {}
        self.analyses: dict[str, dict] = {}
        self.upsert_mapping_calls = 0

    async def get_mapping(self, question_id: str) -> Optional[QuestionMapping]:
        return self.mappings.get(question_id)

    async def upsert_mapping(self, mapping: QuestionMapping) -> QuestionMapping:
        self.upsert_mapping_calls += 1
        self.mappings[mapping.question_id] = mapping
        return mapping

    async def upsert_distribution(self, survey_id, question_id, distribution, organization_id=None):
        self.distributions[(survey_id, question_id)] = distribution

    async def upsert_aggregate(self, survey_id, organization_id, aggregate):
        self.aggregates[survey_id] = aggregate

    async def save_response_analysis(
        self, organization_id, survey_id, response_id, question_id, user_response, classification
    ):
        # dict keeps first-insert position on overwrite, matching created_at ordering
        self.analyses[response_id] = {
            "survey_id": survey_id,
            "question_id": question_id,
            "user_response": user_response,
            "classification": classification,
        }

    async def list_response_analyses(self, survey_id, question_id=None):
        return [
            ClassifiedResponse(response_id=response_id, classification=row["classification"])
            for response_id, row in self.analyses.items()
            if row["survey_id"] == survey_id
            and (question_id is None or row["question_id"] == question_id)
        ]


def make_classification(
    primary: Force,
    strength: float = 3.0,
    secondary: tuple = (),
    confidence: float = 3.0,
    sentiment: SentimentLabel = SentimentLabel.NEUTRAL,
    key_themes: tuple = (),
    related_themes: tuple = (),
    **details,
) -> ResponseClassification:
    return ResponseClassification(
        primary_force=primary,
        secondary_forces=tuple(secondary),
        force_strength_score=strength,
        confidence_score=confidence,
        reasoning="test classification",
        key_themes=tuple(key_themes),
        related_themes=tuple(related_themes),
        sentiment={"label": sentiment},
        **details,
    )


def make_response(response_id: str, primary: Force, strength: float = 3.0, **kwargs) -> ClassifiedResponse:
    return ClassifiedResponse(
        response_id=response_id,
        classification=make_classification(primary, strength, **kwargs),
    )


@pytest.fixture
def store():
    return InMemoryForceStore()


@pytest.fixture
def mapping_service(store):
    return MappingService(store)


@pytest.fixture
def analysis_service(store):
    return AnalysisService(store)


@pytest.fixture
def worked_example_responses():
    """Three responses: two pain_of_old (4, 5), one pull_of_new (2) with
    pain_of_old as a secondary force."""
    return [
        make_response("r1", Force.PAIN_OF_OLD, 4.0),
        make_response("r2", Force.PAIN_OF_OLD, 5.0),
        make_response("r3", Force.PULL_OF_NEW, 2.0, secondary=(Force.PAIN_OF_OLD,)),
    ]
