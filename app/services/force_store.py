"""
Readiness JTBD — Force Store: persistence boundary for the force pipeline.

The services depend only on the :class:`ForceStore` protocol and receive an
implementation through their constructor.  :class:`SqlForceStore` is the
production implementation on PostgreSQL; every write is an
``INSERT ... ON CONFLICT DO UPDATE`` keyed on the row's natural key, so a
repeated or concurrent call converges on the same row (last write wins).

Any ``SQLAlchemyError`` is re-raised as :class:`~app.errors.PersistenceError`
with the driver error chained.  Nothing is retried or swallowed here.
"""

from __future__ import annotations

from typing import Optional, Protocol

import structlog
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import get_session_factory
from app.errors import PersistenceError
from app.models.jtbd import (
    AggregateForceScore,
    ForceDistribution,
    QuestionForceMapping,
    ResponseAnalysis,
)
from app.schemas.jtbd import (
    AggregateForceScoreResult,
    ClassifiedResponse,
    ForceDistributionResult,
    QuestionMapping,
    ResponseClassification,
)

logger = structlog.get_logger("readiness.force_store")


class ForceStore(Protocol):
    async def get_mapping(self, question_id: str) -> Optional[QuestionMapping]: ...

    async def upsert_mapping(self, mapping: QuestionMapping) -> QuestionMapping: ...

    async def upsert_distribution(
        self,
        survey_id: str,
        question_id: str,
        distribution: ForceDistributionResult,
        organization_id: Optional[str] = None,
    ) -> None: ...

    async def upsert_aggregate(
        self,
        survey_id: str,
        organization_id: str,
        aggregate: AggregateForceScoreResult,
    ) -> None: ...

    async def save_response_analysis(
        self,
        organization_id: str,
        survey_id: str,
        response_id: str,
        question_id: str,
        user_response: str,
        classification: ResponseClassification,
    ) -> None: ...

    async def list_response_analyses(
        self,
        survey_id: str,
        question_id: Optional[str] = None,
    ) -> list[ClassifiedResponse]: ...


class SqlForceStore:
    """SQLAlchemy-backed :class:`ForceStore`.

    Each call opens (and commits/closes) its own session from
    ``session_factory`` so the store can be shared across concurrent
    requests.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self._session_factory = session_factory or get_session_factory()

    # ── Mappings ────────────────────────────────────────────────────────

    async def get_mapping(self, question_id: str) -> Optional[QuestionMapping]:
        stmt = select(QuestionForceMapping).where(
            QuestionForceMapping.question_id == question_id,
            QuestionForceMapping.is_active.is_(True),
        )
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error("get_mapping_failed", question_id=question_id, error=str(exc))
            raise PersistenceError(f"Failed to load mapping for {question_id}") from exc

        if row is None:
            return None
        return QuestionMapping.model_validate(row)

    async def upsert_mapping(self, mapping: QuestionMapping) -> QuestionMapping:
        values = mapping.model_dump(mode="json")
        stmt = pg_insert(QuestionForceMapping).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[QuestionForceMapping.question_id],
            set_={
                **{k: v for k, v in values.items() if k != "question_id"},
                "updated_at": func.now(),
            },
        )
        await self._execute(stmt, "upsert_mapping", question_id=mapping.question_id)
        return mapping

    # ── Distributions / aggregates ─────────────────────────────────────

    async def upsert_distribution(
        self,
        survey_id: str,
        question_id: str,
        distribution: ForceDistributionResult,
        organization_id: Optional[str] = None,
    ) -> None:
        payload = distribution.model_dump(mode="json")
        values = {
            "organization_id": organization_id,
            "survey_id": survey_id,
            "question_id": question_id,
            **payload,
        }
        stmt = pg_insert(ForceDistribution).values(**values)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_distribution_survey_question",
            set_={
                "organization_id": organization_id,
                **payload,
                "calculated_at": func.now(),
            },
        )
        await self._execute(
            stmt, "upsert_distribution", survey_id=survey_id, question_id=question_id
        )

    async def upsert_aggregate(
        self,
        survey_id: str,
        organization_id: str,
        aggregate: AggregateForceScoreResult,
    ) -> None:
        payload = aggregate.model_dump(mode="json")
        values = {"organization_id": organization_id, "survey_id": survey_id, **payload}
        stmt = pg_insert(AggregateForceScore).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AggregateForceScore.survey_id],
            set_={
                "organization_id": organization_id,
                **payload,
                "calculated_at": func.now(),
            },
        )
        await self._execute(stmt, "upsert_aggregate", survey_id=survey_id)

    # ── Response analyses ──────────────────────────────────────────────

    async def save_response_analysis(
        self,
        organization_id: str,
        survey_id: str,
        response_id: str,
        question_id: str,
        user_response: str,
        classification: ResponseClassification,
    ) -> None:
        analysis_data = classification.model_dump(mode="json")
        values = {
            "organization_id": organization_id,
            "survey_id": survey_id,
            "response_id": response_id,
            "question_id": question_id,
            "user_response": user_response,
            "primary_force": classification.primary_force.value,
            "secondary_forces": [f.value for f in classification.secondary_forces],
            "analysis_data": analysis_data,
        }
        stmt = pg_insert(ResponseAnalysis).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ResponseAnalysis.response_id],
            set_={k: v for k, v in values.items() if k != "response_id"},
        )
        await self._execute(stmt, "save_response_analysis", response_id=response_id)

    async def list_response_analyses(
        self,
        survey_id: str,
        question_id: Optional[str] = None,
    ) -> list[ClassifiedResponse]:
        stmt = (
            select(ResponseAnalysis)
            .where(ResponseAnalysis.survey_id == survey_id)
            .order_by(ResponseAnalysis.created_at.asc(), ResponseAnalysis.response_id.asc())
        )
        if question_id is not None:
            stmt = stmt.where(ResponseAnalysis.question_id == question_id)

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            logger.error("list_response_analyses_failed", survey_id=survey_id, error=str(exc))
            raise PersistenceError(f"Failed to list analyses for survey {survey_id}") from exc

        return [
            ClassifiedResponse(
                response_id=row.response_id,
                classification=ResponseClassification.model_validate(row.analysis_data),
            )
            for row in rows
        ]

    # ── Internal helpers ────────────────────────────────────────────────

    async def _execute(self, stmt, operation: str, **context) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error(f"{operation}_failed", error=str(exc), **context)
            raise PersistenceError(f"{operation} failed: {exc}") from exc

        logger.debug(f"{operation}_complete", **context)
