"""
Readiness JTBD — Force mapping, distribution, aggregate and response-analysis
models.

Question, survey and organization identifiers are opaque strings owned by the
survey platform; this service never joins against those tables.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class QuestionForceMapping(Base):
    __tablename__ = "jtbd_question_mappings"

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    question_id: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    organization_id: Mapped[str | None] = mapped_column(String, nullable=True)
    survey_template_id: Mapped[str | None] = mapped_column(String, nullable=True)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_category: Mapped[str] = mapped_column(String, nullable=False, default="")
    expected_force: Mapped[str] = mapped_column(String, nullable=False)
    confidence_level: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="1-5"
    )
    mapping_rationale: Mapped[str] = mapped_column(Text, nullable=False)
    validation_rules: Mapped[dict] = mapped_column(JSONB, nullable=False)
    created_by: Mapped[str] = mapped_column(String, nullable=False, default="system")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<QuestionForceMapping q={self.question_id} "
            f"force={self.expected_force} conf={self.confidence_level}>"
        )


class ForceDistribution(Base):
    __tablename__ = "jtbd_force_distributions"
    __table_args__ = (
        UniqueConstraint("survey_id", "question_id", name="uq_distribution_survey_question"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[str | None] = mapped_column(String, nullable=True)
    survey_id: Mapped[str] = mapped_column(String, nullable=False)
    question_id: Mapped[str] = mapped_column(String, nullable=False)
    expected_force: Mapped[str] = mapped_column(String, nullable=False)
    actual_distribution: Mapped[dict] = mapped_column(
        JSONB, nullable=False, comment="force -> percentage 0-100"
    )
    total_responses: Mapped[int] = mapped_column(Integer, nullable=False)
    accuracy_score: Mapped[int] = mapped_column(Integer, nullable=False)
    deviation_analysis: Mapped[dict] = mapped_column(JSONB, nullable=False)
    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<ForceDistribution survey={self.survey_id} q={self.question_id} "
            f"accuracy={self.accuracy_score}>"
        )


class AggregateForceScore(Base):
    __tablename__ = "jtbd_aggregate_scores"

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[str] = mapped_column(String, nullable=False)
    survey_id: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    overall_scores: Mapped[dict] = mapped_column(JSONB, nullable=False)
    dominant_force: Mapped[str] = mapped_column(String, nullable=False)
    force_balance: Mapped[dict] = mapped_column(JSONB, nullable=False)
    insights: Mapped[list] = mapped_column(JSONB, nullable=False)
    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<AggregateForceScore survey={self.survey_id} dominant={self.dominant_force}>"


class ResponseAnalysis(Base):
    """One LLM-classified survey response."""

    __tablename__ = "jtbd_response_analyses"

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[str] = mapped_column(String, nullable=False)
    survey_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    response_id: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    question_id: Mapped[str] = mapped_column(String, nullable=False)
    user_response: Mapped[str] = mapped_column(Text, nullable=False)
    primary_force: Mapped[str] = mapped_column(String, nullable=False)
    secondary_forces: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    analysis_data: Mapped[dict] = mapped_column(
        JSONB, nullable=False, comment="full ResponseClassification payload"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ResponseAnalysis response={self.response_id} force={self.primary_force}>"
