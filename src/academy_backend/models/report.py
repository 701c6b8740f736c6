'''
Read-only dashboard models.
'''
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, computed_field

from ..database.db_enums import StudentStatus, WorkloadPeriod

class StudentLessonCounts(BaseModel):
    student_id: UUID
    scheduled: int = 0
    rescheduled: int = 0
    completed: int = 0
    absent: int = 0
    cancelled: int = 0
    wallet_balance: int
    reserved_credits: int
    status: StudentStatus

    @computed_field
    @property
    def available_credits(self) -> int:
        return self.wallet_balance - self.reserved_credits

class TeacherWorkload(BaseModel):
    """
    Completed lessons and pay for a teacher over a period.
    pay = hours * rate_per_lesson, where rate_per_lesson is an hourly rate.
    """
    teacher_id: UUID
    teacher_name: str
    period: WorkloadPeriod | None = None
    start_date: date
    end_date: date
    lessons_taken: int
    total_minutes: int
    rate_per_lesson: Decimal
    amount_due: Decimal

    @computed_field
    @property
    def hours(self) -> float:
        return round(self.total_minutes / 60, 2)

class AuditReport(BaseModel):
    issues_found: int
    issues: list[str]
    timestamp: datetime
