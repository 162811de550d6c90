"""Unit tests for SqlForceStore against a fake async session factory."""
from types import SimpleNamespace

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from app.errors import PersistenceError
from app.schemas.jtbd import (
    AggregateForceScoreResult,
    DeviationAnalysis,
    Force,
    ForceBalance,
    ForceDistributionResult,
    QuestionMapping,
    ValidationRules,
)
from app.services.force_store import SqlForceStore
from conftest import make_classification

DRIVER_ERROR = OperationalError("SELECT 1", {}, Exception("connection refused"))


class FakeResult:
    def __init__(self, rows):
        self._rows = rows

    def scalar_one_or_none(self):
        return self._rows[0] if self._rows else None

    def scalars(self):
        return self

    def all(self):
        return list(self._rows)


class FakeSession:
    def __init__(self, factory):
        self._factory = factory

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def execute(self, stmt):
        if self._factory.error is not None:
            raise self._factory.error
        self._factory.statements.append(stmt)
        return FakeResult(self._factory.rows)

    async def commit(self):
        self._factory.commits += 1


class FakeSessionFactory:
    """Stands in for ``async_sessionmaker``; records executed statements."""

    def __init__(self, rows=(), error=None):
        self.rows = list(rows)
        self.error = error
        self.statements = []
        self.commits = 0

    def __call__(self):
        return FakeSession(self)


def _sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


def _mapping() -> QuestionMapping:
    return QuestionMapping(
        question_id="q-1",
        question_text="What manual steps slow you down?",
        expected_force=Force.PAIN_OF_OLD,
        confidence_level=5,
        mapping_rationale="Mapped to pain_of_old based on keyword analysis. Score: 8",
        validation_rules=ValidationRules(expected_sentiment="negative"),
    )


def _distribution() -> ForceDistributionResult:
    return ForceDistributionResult(
        expected_force=Force.PAIN_OF_OLD,
        actual_distribution={force: 0 for force in Force},
        total_responses=0,
        accuracy_score=0,
        deviation_analysis=DeviationAnalysis(),
    )


def _aggregate() -> AggregateForceScoreResult:
    return AggregateForceScoreResult(
        overall_scores={},
        dominant_force=Force.PAIN_OF_OLD,
        force_balance=ForceBalance(push_forces=0, resistance_forces=0, neutral_forces=0),
        insights=[],
    )


class TestUpsertTargets:
    """Each write is an upsert keyed on the row's natural key."""

    @pytest.mark.asyncio
    async def test_mapping_conflicts_on_question_id(self):
        factory = FakeSessionFactory()
        await SqlForceStore(factory).upsert_mapping(_mapping())
        assert "ON CONFLICT (question_id) DO UPDATE" in _sql(factory.statements[0])
        assert factory.commits == 1

    @pytest.mark.asyncio
    async def test_distribution_conflicts_on_survey_question_constraint(self):
        factory = FakeSessionFactory()
        await SqlForceStore(factory).upsert_distribution("s1", "q1", _distribution(), "org")
        assert (
            "ON CONFLICT ON CONSTRAINT uq_distribution_survey_question DO UPDATE"
            in _sql(factory.statements[0])
        )

    @pytest.mark.asyncio
    async def test_aggregate_conflicts_on_survey_id(self):
        factory = FakeSessionFactory()
        await SqlForceStore(factory).upsert_aggregate("s1", "org", _aggregate())
        assert "ON CONFLICT (survey_id) DO UPDATE" in _sql(factory.statements[0])

    @pytest.mark.asyncio
    async def test_response_analysis_conflicts_on_response_id(self):
        factory = FakeSessionFactory()
        await SqlForceStore(factory).save_response_analysis(
            "org", "s1", "r1", "q1", "text", make_classification(Force.PULL_OF_NEW)
        )
        assert "ON CONFLICT (response_id) DO UPDATE" in _sql(factory.statements[0])


class TestReads:
    """Rows are converted back into schema models."""

    @pytest.mark.asyncio
    async def test_get_mapping_missing_returns_none(self):
        assert await SqlForceStore(FakeSessionFactory()).get_mapping("q-1") is None

    @pytest.mark.asyncio
    async def test_get_mapping_from_row(self):
        row = SimpleNamespace(**_mapping().model_dump(mode="json"))
        mapping = await SqlForceStore(FakeSessionFactory(rows=[row])).get_mapping("q-1")
        assert mapping == _mapping()

    @pytest.mark.asyncio
    async def test_list_response_analyses_from_rows(self):
        classification = make_classification(Force.ANXIETY_OF_NEW, 4.0)
        row = SimpleNamespace(
            response_id="r1", analysis_data=classification.model_dump(mode="json")
        )
        listed = await SqlForceStore(FakeSessionFactory(rows=[row])).list_response_analyses("s1")
        assert [r.response_id for r in listed] == ["r1"]
        assert listed[0].classification == classification


class TestDriverErrors:
    """SQLAlchemy failures surface as PersistenceError with the cause chained."""

    @pytest.fixture
    def failing_store(self):
        return SqlForceStore(FakeSessionFactory(error=DRIVER_ERROR))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "call",
        [
            lambda store: store.get_mapping("q-1"),
            lambda store: store.upsert_mapping(_mapping()),
            lambda store: store.upsert_distribution("s1", "q1", _distribution()),
            lambda store: store.upsert_aggregate("s1", "org", _aggregate()),
            lambda store: store.save_response_analysis(
                "org", "s1", "r1", "q1", "text", make_classification(Force.PAIN_OF_OLD)
            ),
            lambda store: store.list_response_analyses("s1"),
        ],
        ids=[
            "get_mapping",
            "upsert_mapping",
            "upsert_distribution",
            "upsert_aggregate",
            "save_response_analysis",
            "list_response_analyses",
        ],
    )
    async def test_error_is_wrapped(self, failing_store, call):
        with pytest.raises(PersistenceError) as exc_info:
            await call(failing_store)
        assert exc_info.value.__cause__ is DRIVER_ERROR
