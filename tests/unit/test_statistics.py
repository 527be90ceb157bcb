"""History ordering, record visibility and statistics aggregation."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from src.domain.models import User
from src.domain.services.evaluation import RecordNotFoundError
from src.domain.services.statistics import StatisticsService, aggregate_statistics
from src.infrastructure.db.models import CefrLevel, EvaluationStatus, Skill
from src.infrastructure.repositories.assessment_records import AssessmentRecordRepository

from tests.utils import make_record

T0 = datetime(2026, 9, 1, 9, 0, tzinfo=UTC)


def week(n: int) -> datetime:
    return T0 + timedelta(weeks=n)


class TestAggregateStatistics:
    def test_average_min_max_and_count(self) -> None:
        records = [
            make_record(score=60.0, submitted_at=week(0)),
            make_record(score=80.0, submitted_at=week(1), window_key="r1"),
            make_record(score=100.0, submitted_at=week(2), window_key="r2"),
        ]

        stats = aggregate_statistics(records)

        assert stats["total_count"] == 3
        assert stats["average_score"] == 80.0
        assert stats["lowest_score"] == 60.0
        assert stats["highest_score"] == 100.0
        assert stats["latest_score"] == 100.0

    def test_empty_set_is_all_zeros(self) -> None:
        stats = aggregate_statistics([])

        assert stats == {
            "total_count": 0,
            "average_score": 0.0,
            "highest_score": 0.0,
            "lowest_score": 0.0,
            "latest_score": 0.0,
            "progress_over_time": [],
            "by_level": {},
            "by_language": {},
        }

    def test_pending_records_are_counted_but_not_scored(self) -> None:
        records = [
            make_record(skill=Skill.SPEAKING, score=70.0, submitted_at=week(0)),
            make_record(
                skill=Skill.SPEAKING,
                score=None,
                status=EvaluationStatus.PENDING,
                submitted_at=week(1),
            ),
        ]

        stats = aggregate_statistics(records)

        assert stats["total_count"] == 2
        assert stats["average_score"] == 70.0
        assert stats["latest_score"] is None
        assert stats["highest_score"] == 70.0
        assert len(stats["progress_over_time"]) == 1
        assert stats["by_level"]["B1"]["count"] == 2

    def test_only_pending_records_have_no_latest_score(self) -> None:
        records = [
            make_record(
                skill=Skill.SPEAKING,
                score=None,
                status=EvaluationStatus.PENDING,
                submitted_at=week(0),
            )
        ]

        stats = aggregate_statistics(records)

        assert stats["total_count"] == 1
        assert stats["average_score"] == 0.0
        assert stats["latest_score"] is None
        assert stats["by_language"]["english"]["latest_score"] is None

    def test_supervisor_score_replaces_automated_score(self) -> None:
        record = make_record(
            score=40.0,
            status=EvaluationStatus.EVALUATED,
            supervisor_score=90.0,
            submitted_at=week(0),
        )

        assert aggregate_statistics([record])["average_score"] == 90.0

    def test_progress_is_chronological_regardless_of_input_order(self) -> None:
        records = [
            make_record(score=90.0, submitted_at=week(2), language="french"),
            make_record(score=50.0, submitted_at=week(0)),
            make_record(score=70.0, submitted_at=week(1), level=CefrLevel.A2),
        ]

        stats = aggregate_statistics(records)

        assert [point["score"] for point in stats["progress_over_time"]] == [50.0, 70.0, 90.0]
        assert stats["progress_over_time"][0] == {
            "date": week(0).isoformat(),
            "score": 50.0,
            "level": "B1",
            "language": "english",
            "skill": "reading",
        }
        assert stats["latest_score"] == 90.0

    def test_groups_by_level_and_language(self) -> None:
        records = [
            make_record(score=50.0, submitted_at=week(0), level=CefrLevel.B2),
            make_record(score=71.0, submitted_at=week(1), level=CefrLevel.A2),
            make_record(score=74.0, submitted_at=week(2), level=CefrLevel.A2, language="french"),
        ]

        stats = aggregate_statistics(records)

        assert list(stats["by_level"]) == ["A2", "B2"]
        assert stats["by_level"]["A2"] == {
            "count": 2,
            "average_score": 72.5,
            "highest_score": 74.0,
            "lowest_score": 71.0,
            "latest_score": 74.0,
        }
        assert stats["by_language"]["english"]["count"] == 2
        assert stats["by_language"]["french"]["latest_score"] == 74.0

    def test_average_is_rounded_to_two_decimals(self) -> None:
        records = [
            make_record(score=score, submitted_at=week(i))
            for i, score in enumerate([70.0, 70.0, 71.0])
        ]

        assert aggregate_statistics(records)["average_score"] == 70.33


class TestStatisticsService:
    async def test_history_is_newest_first_and_filtered_by_skill(
        self, session: AsyncSession
    ) -> None:
        repo = AssessmentRecordRepository(session)
        oldest = await repo.create(make_record(submitted_at=week(0)))
        newest = await repo.create(make_record(submitted_at=week(2), window_key=oldest.id))
        writing = await repo.create(make_record(skill=Skill.WRITING, submitted_at=week(1)))
        await repo.create(make_record(user_id="student-2", submitted_at=week(3)))
        service = StatisticsService(session)

        history = await service.get_history("student-1")
        reading_only = await service.get_history("student-1", skill=Skill.READING)

        assert [r.id for r in history] == [newest.id, writing.id, oldest.id]
        assert [r.id for r in reading_only] == [newest.id, oldest.id]

    async def test_statistics_filters_are_case_normalized(self, session: AsyncSession) -> None:
        repo = AssessmentRecordRepository(session)
        await repo.create(make_record(score=60.0, submitted_at=week(0)))
        await repo.create(make_record(score=90.0, submitted_at=week(1), language="french"))

        stats = await StatisticsService(session).get_statistics(
            "student-1", skill=Skill.READING, level="b1", language="FRENCH"
        )

        assert stats["total_count"] == 1
        assert stats["average_score"] == 90.0

    async def test_no_matching_records_returns_zeros(self, session: AsyncSession) -> None:
        stats = await StatisticsService(session).get_statistics("nobody")

        assert stats["total_count"] == 0
        assert stats["average_score"] == 0.0

    async def test_students_only_see_their_own_records(self, session: AsyncSession) -> None:
        repo = AssessmentRecordRepository(session)
        record = await repo.create(make_record(user_id="student-1", submitted_at=week(0)))
        service = StatisticsService(session)

        owner = User(user_id="student-1", roles=["student"])
        other = User(user_id="student-2", roles=["student"])
        supervisor = User(user_id="supervisor-1", roles=["supervisor"])

        assert (await service.get_record(record.id, owner)).id == record.id
        assert (await service.get_record(record.id, supervisor)).id == record.id
        with pytest.raises(RecordNotFoundError):
            await service.get_record(record.id, other)
        with pytest.raises(RecordNotFoundError):
            await service.get_record("missing", owner)
