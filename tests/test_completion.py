"""Unit tests for MappingService.validate_force_completion."""
import pytest

from app.schemas.jtbd import FORCE_ORDER, Force, QuestionInput

ONE_PER_FORCE = [
    QuestionInput(id="q-pain", text="What manual steps slow you down?"),
    QuestionInput(id="q-pull", text="Where could AI help you automate and streamline?"),
    QuestionInput(id="q-anchor", text="What budget approval is needed?"),
    QuestionInput(id="q-anxiety", text="Do you worry about privacy?"),
    QuestionInput(id="q-demo", text="Which department is your role in?"),
]


def _pain_questions(count):
    return [
        QuestionInput(id=f"p{i}", text="Which manual error wastes the most time?")
        for i in range(count)
    ]


class TestForceCompletion:
    """Tests for coverage, balance and recommendations."""

    @pytest.mark.asyncio
    async def test_empty_question_set(self, mapping_service, store):
        report = await mapping_service.validate_force_completion([])
        assert report.all_forces_covered is False
        assert report.missing_forces == list(FORCE_ORDER)
        assert report.balance_score == 0
        assert report.recommendations == ["Add questions to cover all JTBD forces"]
        assert all(c.coverage_quality == "poor" for c in report.force_coverage.values())
        assert store.mappings == {}

    @pytest.mark.asyncio
    async def test_even_split_is_perfectly_balanced(self, mapping_service):
        report = await mapping_service.validate_force_completion(ONE_PER_FORCE)
        assert report.all_forces_covered is True
        assert report.missing_forces == []
        assert report.balance_score == 100
        assert report.force_coverage[Force.ANXIETY_OF_NEW].question_ids == ["q-anxiety"]
        assert all(c.coverage_quality == "good" for c in report.force_coverage.values())
        assert report.recommendations == ["Consider adding more questions for deeper insights"]

    @pytest.mark.asyncio
    async def test_every_question_is_mapped(self, mapping_service, store):
        await mapping_service.validate_force_completion(ONE_PER_FORCE)
        assert set(store.mappings) == {q.id for q in ONE_PER_FORCE}

    @pytest.mark.asyncio
    async def test_missing_forces_and_good_coverage(self, mapping_service):
        """Two pain questions: expected 0.4 per force, variance 0.64 → 94."""
        report = await mapping_service.validate_force_completion(_pain_questions(2))
        assert report.all_forces_covered is False
        assert report.missing_forces == [
            Force.PULL_OF_NEW,
            Force.ANCHORS_TO_OLD,
            Force.ANXIETY_OF_NEW,
            Force.DEMOGRAPHIC,
        ]
        pain = report.force_coverage[Force.PAIN_OF_OLD]
        assert pain.question_count == 2
        assert pain.question_ids == ["p0", "p1"]
        assert pain.coverage_quality == "good"
        assert report.balance_score == 94
        assert report.recommendations == [
            "Add questions to cover pull of new force",
            "Add questions to cover anchors to old force",
            "Add questions to cover anxiety of new force",
            "Add questions to cover demographic force",
            "Consider adding more questions for deeper insights",
        ]

    @pytest.mark.asyncio
    async def test_lopsided_set_needs_rebalancing(self, mapping_service):
        report = await mapping_service.validate_force_completion(_pain_questions(10))
        assert report.balance_score == 0
        assert (
            "Rebalance questions across JTBD forces for more comprehensive analysis"
            in report.recommendations
        )
        assert "Consider adding more questions for deeper insights" not in report.recommendations

    @pytest.mark.asyncio
    async def test_long_survey(self, mapping_service):
        questions = [
            QuestionInput(id=f"{q.id}-{i}", text=q.text)
            for i in range(6)
            for q in ONE_PER_FORCE
        ]
        report = await mapping_service.validate_force_completion(questions)
        assert report.balance_score == 100
        assert report.recommendations == [
            "Survey may be too long - consider prioritizing key questions"
        ]

    @pytest.mark.asyncio
    async def test_low_confidence_question_is_fair(self, mapping_service):
        report = await mapping_service.validate_force_completion(
            [QuestionInput(id="q-none", text="Describe your weekend.")]
        )
        assert report.force_coverage[Force.DEMOGRAPHIC].coverage_quality == "fair"

    @pytest.mark.asyncio
    async def test_balance_score_bounds(self, mapping_service):
        for count in (1, 3, 7, 15):
            report = await mapping_service.validate_force_completion(_pain_questions(count))
            assert 0 <= report.balance_score <= 100

    @pytest.mark.asyncio
    async def test_high_confidence_pair_rates_good(self, mapping_service):
        questions = [
            QuestionInput(id="a", text="What manual errors and slow steps waste time?"),
            QuestionInput(id="b", text="Which manual problem is most difficult?"),
        ]
        report = await mapping_service.validate_force_completion(questions)
        pain = report.force_coverage[Force.PAIN_OF_OLD]
        assert pain.question_count == 2
        assert pain.coverage_quality == "good"
        assert all(
            c.coverage_quality != "excellent" for c in report.force_coverage.values()
        )

    @pytest.mark.asyncio
    async def test_rebalance_uses_unrounded_score(self, mapping_service):
        """4 pain + 3 pull: variance 3.04 → 69.6, reported as 70."""
        questions = _pain_questions(4) + [
            QuestionInput(id=f"u{i}", text="Where could AI help you automate and streamline?")
            for i in range(3)
        ]
        report = await mapping_service.validate_force_completion(questions)
        assert report.force_coverage[Force.PAIN_OF_OLD].question_count == 4
        assert report.force_coverage[Force.PULL_OF_NEW].question_count == 3
        assert report.balance_score == 70
        assert report.recommendations == [
            "Add questions to cover anchors to old force",
            "Add questions to cover anxiety of new force",
            "Add questions to cover demographic force",
            "Rebalance questions across JTBD forces for more comprehensive analysis",
            "Consider adding more questions for deeper insights",
        ]
