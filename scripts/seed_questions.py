"""Map the canonical AI-readiness survey questions to JTBD forces and print
the resulting coverage report."""
import asyncio
import sys
sys.path.insert(0, ".")

from app.database import get_engine
from app.schemas.jtbd import FORCE_ORDER, QuestionInput
from app.services.force_store import SqlForceStore
from app.services.mapping_service import MappingService

TEMPLATE_ID = "ai_readiness_v1"

READINESS_QUESTIONS = [
    # ── Current state ───────────────────────────────────────────────
    {
        "id": "ai_usage_current",
        "text": (
            "What AI tools are you already using - both at work and at home? "
            "Which are you using most frequently (e.g. several times a week)?"
        ),
        "category": "pull_of_new",
    },
    {
        "id": "ai_confidence_competence",
        "text": "How competent and confident do you feel using AI to augment your work?",
        "category": "pull_of_new",
    },
    {
        "id": "business_purpose_clarity",
        "text": (
            "How clear do you feel on our business purpose and how AI can help us "
            "achieve it or get us there faster?"
        ),
        "category": "pull_of_new",
    },
    {
        "id": "transformation_success",
        "text": (
            "What do you hope to gain from this AI transformation programme? "
            "What does success look like for you and the team?"
        ),
        "category": "pull_of_new",
    },
    # ── Pain of the old ─────────────────────────────────────────────
    {
        "id": "pain_friction_moment",
        "text": (
            "Tell us about a moment recently when your current tools, processes or "
            "ways of working got in the way of doing great work. What happened?"
        ),
        "category": "pain_of_old",
    },
    {
        "id": "pain_time_consuming",
        "text": (
            "What parts of your work feel disproportionately time-consuming or "
            "effortful, especially compared to the value they deliver?"
        ),
        "category": "pain_of_old",
    },
    # ── Pull of the new ─────────────────────────────────────────────
    {
        "id": "pull_ai_unlocks",
        "text": (
            "If AI could work exactly how you needed it to, what would it unlock "
            "for you, your team, or your clients?"
        ),
        "category": "pull_of_new",
    },
    {
        "id": "pull_easier_faster",
        "text": (
            "What's one part of your work you'd love to make easier, faster, or more "
            "impactful, even if you're not sure how AI could help yet?"
        ),
        "category": "pull_of_new",
    },
    {
        "id": "pull_hand_over",
        "text": (
            "If an AI assistant could take care of one thing for you brilliantly "
            "with no limitations, what would you hand over?"
        ),
        "category": "pull_of_new",
    },
    # ── Anchors to the old ──────────────────────────────────────────
    {
        "id": "anchors_business_usual",
        "text": (
            "Even when better tools or ideas are available, what tends to keep things "
            "'business as usual' in your team or organisation?"
        ),
        "category": "anchors_to_old",
    },
    {
        "id": "anchors_stopping_adoption",
        "text": "What would realistically stop someone in your team from trying a new AI tool tomorrow?",
        "category": "anchors_to_old",
    },
    {
        "id": "anchors_permission",
        "text": "Who needs to say yes (or stay quiet) for experimentation to happen?",
        "category": "anchors_to_old",
    },
    # ── Anxiety of the new ──────────────────────────────────────────
    {
        "id": "anxiety_concerns",
        "text": (
            "When it comes to adopting new AI tools or ways of working, what concerns "
            "come up for you, emotionally, practically, or professionally?"
        ),
        "category": "anxiety_of_new",
    },
    {
        "id": "anxiety_bad_experience",
        "text": (
            "Have you ever tried an AI tool that left you feeling unsure, disappointed, "
            "or exposed? What happened?"
        ),
        "category": "anxiety_of_new",
    },
    # ── Experimentation ─────────────────────────────────────────────
    {
        "id": "experimentation_role",
        "text": (
            "What role do you tend to play when your team is exploring something new? "
            "(Observer / Cautious Tester / Curious Explorer / Experimentation Lead)"
        ),
        "category": "pull_of_new",
    },
    {
        "id": "experimentation_feeling",
        "text": "How does experimenting with something new make you feel?",
        "category": "pull_of_new",
    },
]


async def seed():
    service = MappingService(SqlForceStore())
    questions = [
        QuestionInput(survey_template_id=TEMPLATE_ID, **q) for q in READINESS_QUESTIONS
    ]

    for question in questions:
        mapping = await service.map_question_to_force(question)
        print(
            f"  {question.id}: {mapping.expected_force.value} "
            f"(confidence {mapping.confidence})"
        )

    report = await service.validate_force_completion(questions)
    print()
    print(f"All forces covered: {report.all_forces_covered}")
    print(f"Balance score: {report.balance_score}/100")
    for force in FORCE_ORDER:
        coverage = report.force_coverage[force]
        print(
            f"  {force.value:<16} {coverage.question_count:>2} questions  "
            f"[{coverage.coverage_quality}]"
        )
    for recommendation in report.recommendations:
        print(f"  - {recommendation}")

    await get_engine().dispose()
    print("Done mapping questions.")


if __name__ == "__main__":
    asyncio.run(seed())
