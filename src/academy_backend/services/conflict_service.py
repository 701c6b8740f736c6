'''
Teacher slot conflict detection.

A slot is taken when the teacher already has a non-cancelled lesson at the
exact same date AND start time. Lessons that merely overlap (different start
times, long durations) are NOT treated as conflicts.

The check is read-then-act: between a check and the write that follows, a
concurrent session can still book the same slot. Double-booking a tutor is
recoverable, so no lock is taken.
'''
from datetime import date, time
from typing import Annotated, Iterable, Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.logger import log
from ..core.wallet import SLOT_HOLDING_STATUSES
from ..database import models as db_models
from ..database.engine import get_db_session
from ..models import lesson as lesson_models


class ConflictService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    def _base_query(self, teacher_id: UUID):
        return select(
            db_models.ScheduledLessons.id,
            db_models.ScheduledLessons.student_id,
            db_models.Students.name,
            db_models.ScheduledLessons.scheduled_date,
            db_models.ScheduledLessons.scheduled_time,
        ).join(
            db_models.Students, db_models.Students.id == db_models.ScheduledLessons.student_id
        ).filter(
            db_models.ScheduledLessons.teacher_id == teacher_id,
            db_models.ScheduledLessons.status.in_([s.value for s in SLOT_HOLDING_STATUSES])
        )

    @staticmethod
    def _to_conflict(row) -> lesson_models.ConflictingLesson:
        return lesson_models.ConflictingLesson(
            lesson_id=row[0],
            student_id=row[1],
            student_name=row[2],
            scheduled_date=row[3],
            scheduled_time=row[4]
        )

    async def check_conflict(
        self,
        teacher_id: UUID,
        lesson_date: date,
        lesson_time: time,
        exclude_lesson_id: Optional[UUID] = None
    ) -> lesson_models.ConflictInfo:
        """
        Reports the lessons occupying (teacher, date, time). The lesson being
        moved is excluded when `exclude_lesson_id` is given.
        """
        stmt = self._base_query(teacher_id).filter(
            db_models.ScheduledLessons.scheduled_date == lesson_date,
            db_models.ScheduledLessons.scheduled_time == lesson_time
        )
        if exclude_lesson_id:
            stmt = stmt.filter(db_models.ScheduledLessons.id != exclude_lesson_id)

        rows = (await self.db.execute(stmt)).all()
        conflicts = [self._to_conflict(row) for row in rows]
        if conflicts:
            log.info(f"Teacher {teacher_id} already booked on {lesson_date} at {lesson_time} ({len(conflicts)} lesson(s)).")
        return lesson_models.ConflictInfo(has_conflict=bool(conflicts), conflicts=conflicts)

    async def find_conflicts(
        self,
        teacher_id: UUID,
        slots: Iterable[tuple[date, time]]
    ) -> list[lesson_models.ConflictingLesson]:
        """
        Batch version used before generating a whole package: one query for
        all requested dates, then exact (date, time) matching.
        """
        wanted = set(slots)
        if not wanted:
            return []
        stmt = self._base_query(teacher_id).filter(
            db_models.ScheduledLessons.scheduled_date.in_(sorted({d for d, _ in wanted}))
        ).order_by(db_models.ScheduledLessons.scheduled_date, db_models.ScheduledLessons.scheduled_time)

        rows = (await self.db.execute(stmt)).all()
        return [self._to_conflict(row) for row in rows if (row[3], row[4]) in wanted]
