"""Unit tests for AnalysisService survey aggregation and stored analyses."""
import pytest

from app.errors import EmptyInputError
from app.schemas.jtbd import FORCE_ORDER, Force
from conftest import make_classification, make_response


class TestAggregateForceScores:
    """Tests for the survey-level aggregate."""

    @pytest.mark.asyncio
    async def test_worked_example(self, analysis_service, store, worked_example_responses):
        result = await analysis_service.aggregate_force_scores(
            "org-1", "survey-1", worked_example_responses
        )
        assert result.dominant_force == Force.PAIN_OF_OLD
        assert list(result.overall_scores) == list(FORCE_ORDER)
        assert result.overall_scores[Force.PAIN_OF_OLD].average_score == 4.0
        assert result.overall_scores[Force.PULL_OF_NEW].average_score == 2.0
        assert result.force_balance.push_forces == 3.0
        assert result.force_balance.resistance_forces == 0.0
        assert result.force_balance.neutral_forces == 0.0
        assert result.insights == [
            "The dominant JTBD force is pain of old with a score of 4/5",
            "Strong push forces indicate high motivation for change",
            "Lower confidence suggests need for additional data collection",
        ]
        assert store.aggregates["survey-1"] == result

    @pytest.mark.asyncio
    async def test_empty_responses_raise(self, analysis_service, store):
        with pytest.raises(EmptyInputError):
            await analysis_service.aggregate_force_scores("org-1", "survey-1", [])
        assert store.aggregates == {}

    @pytest.mark.asyncio
    async def test_tie_goes_to_earlier_force(self, analysis_service):
        responses = [
            make_response("r1", Force.ANCHORS_TO_OLD, 3.0),
            make_response("r2", Force.PULL_OF_NEW, 3.0),
        ]
        result = await analysis_service.aggregate_force_scores("org", "s", responses)
        assert result.dominant_force == Force.PULL_OF_NEW

    @pytest.mark.asyncio
    async def test_resistance_insight(self, analysis_service):
        responses = [
            make_response("r1", Force.ANCHORS_TO_OLD, 5.0),
            make_response("r2", Force.ANXIETY_OF_NEW, 5.0),
        ]
        result = await analysis_service.aggregate_force_scores("org", "s", responses)
        assert result.force_balance.resistance_forces == 5.0
        assert "Strong resistance forces may hinder adoption" in result.insights

    @pytest.mark.asyncio
    async def test_balanced_insight(self, analysis_service):
        responses = [make_response("r1", Force.DEMOGRAPHIC, 2.0)]
        result = await analysis_service.aggregate_force_scores("org", "s", responses)
        assert result.dominant_force == Force.DEMOGRAPHIC
        assert result.force_balance.neutral_forces == 2.0
        assert (
            "Push and resistance forces are balanced - careful change management needed"
            in result.insights
        )

    @pytest.mark.asyncio
    async def test_high_confidence_insight(self, analysis_service):
        others = (Force.PULL_OF_NEW, Force.ANCHORS_TO_OLD, Force.ANXIETY_OF_NEW, Force.DEMOGRAPHIC)
        responses = [
            make_response(f"r{i}", Force.PAIN_OF_OLD, 4.0, secondary=others) for i in range(3)
        ]
        result = await analysis_service.aggregate_force_scores("org", "s", responses)
        assert all(summary.confidence == 5.0 for summary in result.overall_scores.values())
        assert result.insights[-1] == (
            "High confidence in analysis results based on response quality"
        )

    @pytest.mark.asyncio
    async def test_middle_confidence_adds_no_statement(self, analysis_service):
        others = (Force.PULL_OF_NEW, Force.ANCHORS_TO_OLD)
        responses = [
            make_response(f"r{i}", Force.PAIN_OF_OLD, 4.0, secondary=others) for i in range(2)
        ]
        # Three forces at 5.0, two at 0 → mean confidence 3.0
        result = await analysis_service.aggregate_force_scores("org", "s", responses)
        assert len(result.insights) == 2

    @pytest.mark.asyncio
    async def test_top_themes_by_frequency(self, analysis_service):
        responses = [
            make_response("r1", Force.PAIN_OF_OLD, key_themes=("reporting", "manual work")),
            make_response("r2", Force.PAIN_OF_OLD, key_themes=("manual work", "spreadsheets")),
            make_response(
                "r3",
                Force.PULL_OF_NEW,
                secondary=(Force.PAIN_OF_OLD,),
                related_themes=("reporting",),
            ),
            make_response("r4", Force.ANXIETY_OF_NEW, key_themes=("job loss",)),
        ]
        result = await analysis_service.aggregate_force_scores("org", "s", responses)
        assert result.overall_scores[Force.PAIN_OF_OLD].top_themes == [
            "reporting",
            "manual work",
            "spreadsheets",
        ]
        assert result.overall_scores[Force.ANXIETY_OF_NEW].top_themes == ["job loss"]

    @pytest.mark.asyncio
    async def test_top_themes_capped_at_five(self, analysis_service):
        responses = [
            make_response("r1", Force.PULL_OF_NEW, key_themes=("a", "b", "c", "d", "e", "f")),
        ]
        result = await analysis_service.aggregate_force_scores("org", "s", responses)
        assert result.overall_scores[Force.PULL_OF_NEW].top_themes == ["a", "b", "c", "d", "e"]

    @pytest.mark.asyncio
    async def test_reaggregation_overwrites_row(self, analysis_service, store, worked_example_responses):
        await analysis_service.aggregate_force_scores("org", "s", worked_example_responses)
        second = await analysis_service.aggregate_force_scores(
            "org", "s", worked_example_responses[2:]
        )
        assert len(store.aggregates) == 1
        assert store.aggregates["s"] == second
        assert second.overall_scores[Force.PAIN_OF_OLD].total_responses == 1


class TestResponseAnalyses:
    """Tests for storing and listing classified responses."""

    @pytest.mark.asyncio
    async def test_store_and_list(self, analysis_service):
        await analysis_service.store_response_analysis(
            "org", "s1", "r1", "q1", "Too many manual steps",
            make_classification(Force.PAIN_OF_OLD, 4.0),
        )
        await analysis_service.store_response_analysis(
            "org", "s1", "r2", "q2", "Would love automation",
            make_classification(Force.PULL_OF_NEW, 3.0, secondary=(Force.PAIN_OF_OLD,)),
        )
        await analysis_service.store_response_analysis(
            "org", "s2", "r3", "q1", "Other survey",
            make_classification(Force.DEMOGRAPHIC),
        )

        listed = await analysis_service.list_response_analyses("s1")
        assert [r.response_id for r in listed] == ["r1", "r2"]

        by_question = await analysis_service.list_response_analyses("s1", question_id="q2")
        assert [r.response_id for r in by_question] == ["r2"]

    @pytest.mark.asyncio
    async def test_force_filter_includes_secondary(self, analysis_service):
        await analysis_service.store_response_analysis(
            "org", "s1", "r1", "q1", "a", make_classification(Force.PAIN_OF_OLD)
        )
        await analysis_service.store_response_analysis(
            "org", "s1", "r2", "q1", "b",
            make_classification(Force.PULL_OF_NEW, secondary=(Force.PAIN_OF_OLD,)),
        )
        await analysis_service.store_response_analysis(
            "org", "s1", "r3", "q1", "c", make_classification(Force.DEMOGRAPHIC)
        )
        pain = await analysis_service.list_response_analyses("s1", force=Force.PAIN_OF_OLD)
        assert [r.response_id for r in pain] == ["r1", "r2"]

    @pytest.mark.asyncio
    async def test_restoring_same_response_overwrites(self, analysis_service, store):
        await analysis_service.store_response_analysis(
            "org", "s1", "r1", "q1", "a", make_classification(Force.PAIN_OF_OLD)
        )
        await analysis_service.store_response_analysis(
            "org", "s1", "r1", "q1", "a", make_classification(Force.ANXIETY_OF_NEW)
        )
        listed = await analysis_service.list_response_analyses("s1")
        assert len(listed) == 1
        assert listed[0].classification.primary_force == Force.ANXIETY_OF_NEW

    @pytest.mark.asyncio
    async def test_page_is_newest_first_with_totals(self, analysis_service):
        for i in range(5):
            await analysis_service.store_response_analysis(
                "org", "s1", f"r{i}", "q1", "a", make_classification(Force.PAIN_OF_OLD)
            )
        page = await analysis_service.page_response_analyses("s1", limit=2, offset=1)
        assert [r.response_id for r in page.data] == ["r3", "r2"]
        assert page.total == 5
        assert page.has_more is True

        last = await analysis_service.page_response_analyses("s1", limit=2, offset=4)
        assert [r.response_id for r in last.data] == ["r0"]
        assert last.has_more is False

    @pytest.mark.asyncio
    async def test_page_total_counts_filtered_analyses(self, analysis_service):
        await analysis_service.store_response_analysis(
            "org", "s1", "r1", "q1", "a", make_classification(Force.PAIN_OF_OLD)
        )
        await analysis_service.store_response_analysis(
            "org", "s1", "r2", "q1", "b", make_classification(Force.DEMOGRAPHIC)
        )
        page = await analysis_service.page_response_analyses("s1", force=Force.DEMOGRAPHIC)
        assert [r.response_id for r in page.data] == ["r2"]
        assert page.total == 1
        assert page.has_more is False
