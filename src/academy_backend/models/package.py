'''
Package API Models
'''
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..core.schedule import WeeklySlot, get_day_name
from ..database.db_enums import PackageStatus
from .lesson import LessonRead
from .user import StudentRead

# --- Shared ---

class WeeklySlotInput(BaseModel):
    """One entry of the weekly pattern. 0=Sunday ... 6=Saturday."""
    day_of_week: int = Field(..., ge=0, le=6)
    time_slot: time

    def to_slot(self) -> WeeklySlot:
        return WeeklySlot(day_of_week=self.day_of_week, time_slot=self.time_slot)

class WeeklySlotRead(BaseModel):
    day_of_week: int
    time_slot: time
    timezone: str

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def day_name(self) -> str:
        return get_day_name(self.day_of_week)


# --- API Write Models (Input) ---

class PackageCreate(BaseModel):
    """
    A purchase (or renewal) of a block of lessons with its weekly pattern.
    """
    student_id: UUID
    teacher_id: UUID
    amount_paid: Decimal = Field(..., ge=0)
    lessons_purchased: int = Field(..., gt=0)
    lesson_duration_minutes: int = Field(..., gt=0)
    start_date: date
    weekly_slots: list[WeeklySlotInput] = []
    allow_conflicts: bool = Field(False, description="Admin override for double-booked slots.")

class PackageRenew(PackageCreate):
    """
    A renewal. With `use_previous_schedule` the weekly pattern of the
    student's latest package is copied and `weekly_slots` may be empty.
    """
    use_previous_schedule: bool = True
    previous_package_id: Optional[UUID] = None

class WeeklyScheduleUpdate(BaseModel):
    weekly_slots: list[WeeklySlotInput]

class PackageClose(BaseModel):
    release_pending: bool = Field(False, description="Cancel remaining pending lessons and release their credits.")


# --- API Read Models (Output) ---

class PackageRead(BaseModel):
    id: UUID
    student_id: UUID
    teacher_id: Optional[UUID] = None
    amount_paid: Decimal
    lessons_purchased: int
    lesson_duration_minutes: int
    start_date: date
    next_payment_date: Optional[date] = None
    debt_covered: int
    is_renewal: bool
    status: PackageStatus
    completed_date: Optional[date] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class PackageWithLessons(BaseModel):
    """What a package creation or renewal hands back to the caller."""
    package: PackageRead
    weekly_slots: list[WeeklySlotRead]
    lessons: list[LessonRead]
    student: StudentRead

class PackageSummary(BaseModel):
    package: PackageRead
    weekly_slots: list[WeeklySlotRead]
    lessons: list[LessonRead]
    counts: dict[str, int]
