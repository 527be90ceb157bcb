from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from src.infrastructure.db.models import (
    AssessmentRecord,
    CefrLevel,
    EvaluationStatus,
    Skill,
)

if TYPE_CHECKING:
    from sqlalchemy import Select

logger = structlog.get_logger()


class AssessmentRecordRepository:
    """Storage collaborator for assessment records.

    Every write commits and refreshes the instance so server-generated columns
    are loaded before the session hands the object back to async callers.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, record: AssessmentRecord) -> AssessmentRecord:
        self.session.add(record)
        await self.session.commit()
        await self.session.refresh(record)
        logger.debug("assessment_record_created", record_id=record.id)
        return record

    async def get(self, record_id: str) -> AssessmentRecord | None:
        return await self.session.get(AssessmentRecord, record_id)

    async def find_most_recent(
        self,
        *,
        user_id: str,
        skill: Skill,
        level: CefrLevel,
        language: str,
    ) -> AssessmentRecord | None:
        stmt: Select[tuple[AssessmentRecord]] = (
            select(AssessmentRecord)
            .where(
                AssessmentRecord.user_id == user_id,
                AssessmentRecord.skill == skill,
                AssessmentRecord.level == level,
                AssessmentRecord.language == language,
            )
            .order_by(AssessmentRecord.submitted_at.desc())
            .limit(1)
        )
        return await self.session.scalar(stmt)

    async def find_all(
        self,
        *,
        user_id: str,
        skill: Skill | None = None,
        level: CefrLevel | None = None,
        language: str | None = None,
        newest_first: bool = False,
    ) -> list[AssessmentRecord]:
        stmt: Select[tuple[AssessmentRecord]] = select(AssessmentRecord).where(
            AssessmentRecord.user_id == user_id
        )
        stmt = self._apply_filters(stmt, skill=skill, level=level, language=language)
        order = (
            AssessmentRecord.submitted_at.desc() if newest_first else AssessmentRecord.submitted_at
        )
        stmt = stmt.order_by(order)
        return list((await self.session.execute(stmt)).scalars().all())

    async def find_by_status(
        self,
        status: EvaluationStatus,
        *,
        skill: Skill | None = None,
        level: CefrLevel | None = None,
        language: str | None = None,
    ) -> list[AssessmentRecord]:
        stmt: Select[tuple[AssessmentRecord]] = select(AssessmentRecord).where(
            AssessmentRecord.status == status
        )
        stmt = self._apply_filters(stmt, skill=skill, level=level, language=language)
        stmt = stmt.order_by(AssessmentRecord.submitted_at)
        return list((await self.session.execute(stmt)).scalars().all())

    async def update_if_status(
        self,
        record_id: str,
        expected: EvaluationStatus,
        values: dict[str, Any],
    ) -> AssessmentRecord | None:
        """Apply ``values`` only while the stored status is still ``expected``.

        Returns the refreshed record, or ``None`` when another writer got there
        first (or the record is gone).
        """
        stmt = (
            update(AssessmentRecord)
            .where(AssessmentRecord.id == record_id, AssessmentRecord.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        if result.rowcount == 0:
            logger.debug("assessment_record_update_skipped", record_id=record_id)
            return None

        logger.debug("assessment_record_updated", record_id=record_id, fields=sorted(values))
        return await self.session.get(AssessmentRecord, record_id, populate_existing=True)

    async def rollback(self) -> None:
        await self.session.rollback()

    @staticmethod
    def _apply_filters(
        stmt: Select[tuple[AssessmentRecord]],
        *,
        skill: Skill | None,
        level: CefrLevel | None,
        language: str | None,
    ) -> Select[tuple[AssessmentRecord]]:
        if skill is not None:
            stmt = stmt.where(AssessmentRecord.skill == skill)
        if level is not None:
            stmt = stmt.where(AssessmentRecord.level == level)
        if language is not None:
            stmt = stmt.where(AssessmentRecord.language == language)
        return stmt
