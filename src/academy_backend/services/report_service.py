'''
Derived read views: per-student lesson counts and teacher workload/payroll.
Nothing here writes to the database.
'''
import calendar
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.config import settings
from ..common.exceptions import ValidationError
from ..common.logger import log
from ..core.schedule import academy_today, day_of_week_for
from ..database import models as db_models
from ..database.db_enums import LessonStatus, WorkloadPeriod
from ..database.engine import get_db_session
from ..models import report as report_models
from .student_service import StudentService, TeacherService

_CENTS = Decimal('0.01')


def period_bounds(period: WorkloadPeriod, reference_date: date) -> tuple[date, date]:
    """
    Inclusive (start, end) of the day, Sunday-based week or calendar month
    containing `reference_date`.
    """
    if period == WorkloadPeriod.DAY:
        return reference_date, reference_date
    if period == WorkloadPeriod.WEEK:
        start = reference_date - timedelta(days=day_of_week_for(reference_date))
        return start, start + timedelta(days=6)
    last_day = calendar.monthrange(reference_date.year, reference_date.month)[1]
    return reference_date.replace(day=1), reference_date.replace(day=last_day)


def compute_pay(total_minutes: int, hourly_rate: Decimal) -> Decimal:
    """pay = hours * hourly rate, rounded to cents."""
    return (Decimal(total_minutes) / Decimal(60) * Decimal(hourly_rate)).quantize(_CENTS, rounding=ROUND_HALF_UP)


class ReportService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    def _minutes_expr(self):
        # Lessons saved without a duration count as a default-length lesson.
        return func.coalesce(
            func.sum(func.coalesce(db_models.ScheduledLessons.duration_minutes, settings.DEFAULT_LESSON_DURATION_MINUTES)),
            0
        )

    async def get_student_lesson_counts(self, student_id: UUID) -> report_models.StudentLessonCounts:
        student = await StudentService(self.db).get_student_orm(student_id)
        stmt = select(
            db_models.ScheduledLessons.status,
            func.count(db_models.ScheduledLessons.id)
        ).filter(
            db_models.ScheduledLessons.student_id == student_id
        ).group_by(db_models.ScheduledLessons.status)

        counts = {status: count for status, count in (await self.db.execute(stmt)).all()}
        return report_models.StudentLessonCounts(
            student_id=student.id,
            wallet_balance=student.wallet_balance,
            reserved_credits=student.reserved_credits,
            status=student.status,
            **{s.value: counts.get(s.value, 0) for s in LessonStatus}
        )

    async def get_teacher_workload(
        self,
        teacher_id: UUID,
        period: WorkloadPeriod = WorkloadPeriod.MONTH,
        reference_date: Optional[date] = None
    ) -> report_models.TeacherWorkload:
        """Completed lessons, hours and pay of one teacher for the period around `reference_date`."""
        teacher = await TeacherService(self.db).get_teacher_orm(teacher_id)
        start, end = period_bounds(period, reference_date or academy_today())

        stmt = select(
            func.count(db_models.ScheduledLessons.id),
            self._minutes_expr()
        ).filter(
            db_models.ScheduledLessons.teacher_id == teacher_id,
            db_models.ScheduledLessons.status == LessonStatus.COMPLETED.value,
            db_models.ScheduledLessons.scheduled_date.between(start, end)
        )
        lessons_taken, total_minutes = (await self.db.execute(stmt)).one()
        total_minutes = int(total_minutes or 0)

        return report_models.TeacherWorkload(
            teacher_id=teacher.id,
            teacher_name=teacher.name,
            period=period,
            start_date=start,
            end_date=end,
            lessons_taken=lessons_taken,
            total_minutes=total_minutes,
            rate_per_lesson=teacher.rate_per_lesson,
            amount_due=compute_pay(total_minutes, teacher.rate_per_lesson)
        )

    async def get_payroll(self, start_date: date, end_date: date) -> list[report_models.TeacherWorkload]:
        """Workload of every teacher with completed lessons in [start_date, end_date]."""
        if start_date > end_date:
            raise ValidationError("start_date must not be after end_date.")
        log.info(f"Computing payroll from {start_date} to {end_date}.")

        stmt = select(
            db_models.Teachers,
            func.count(db_models.ScheduledLessons.id),
            self._minutes_expr()
        ).join(
            db_models.ScheduledLessons, db_models.ScheduledLessons.teacher_id == db_models.Teachers.id
        ).filter(
            db_models.ScheduledLessons.status == LessonStatus.COMPLETED.value,
            db_models.ScheduledLessons.scheduled_date.between(start_date, end_date)
        ).group_by(db_models.Teachers.id).order_by(db_models.Teachers.name)

        payroll = []
        for teacher, lessons_taken, total_minutes in (await self.db.execute(stmt)).all():
            total_minutes = int(total_minutes or 0)
            payroll.append(report_models.TeacherWorkload(
                teacher_id=teacher.id,
                teacher_name=teacher.name,
                start_date=start_date,
                end_date=end_date,
                lessons_taken=lessons_taken,
                total_minutes=total_minutes,
                rate_per_lesson=teacher.rate_per_lesson,
                amount_due=compute_pay(total_minutes, teacher.rate_per_lesson)
            ))
        return payroll
