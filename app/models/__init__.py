"""
Readiness JTBD — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from app.models.jtbd import (
    AggregateForceScore,
    ForceDistribution,
    QuestionForceMapping,
    ResponseAnalysis,
)

__all__ = [
    "QuestionForceMapping",
    "ForceDistribution",
    "AggregateForceScore",
    "ResponseAnalysis",
]
