'''
Lesson instance API Models
'''
from datetime import date, datetime, time
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..database.db_enums import LessonStatus

# --- API Read Models (Output) ---

class LessonRead(BaseModel):
    """A single dated lesson instance."""
    id: UUID
    package_id: Optional[UUID] = None
    student_id: UUID
    teacher_id: Optional[UUID] = None
    scheduled_date: date
    scheduled_time: time
    duration_minutes: int
    status: LessonStatus
    is_bonus: bool
    notes: Optional[str] = None
    version_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class ConflictingLesson(BaseModel):
    lesson_id: UUID
    student_id: UUID
    student_name: str
    scheduled_date: date
    scheduled_time: time

class ConflictInfo(BaseModel):
    """Result of a teacher slot check."""
    has_conflict: bool
    conflicts: list[ConflictingLesson] = []


# --- API Write Models (Input) ---

class LessonCreate(BaseModel):
    """
    An ad-hoc lesson. Non-bonus lessons must be backed by an available
    purchased credit; bonus lessons never touch the wallet.
    """
    student_id: UUID
    teacher_id: UUID
    package_id: Optional[UUID] = None
    scheduled_date: date
    scheduled_time: time
    duration_minutes: int = Field(..., gt=0)
    is_bonus: bool = False
    notes: Optional[str] = None
    allow_conflict: bool = Field(False, description="Admin override for a double-booked slot.")

class LessonStatusUpdate(BaseModel):
    """Marks attendance (or cancels) a lesson."""
    status: LessonStatus
    notes: Optional[str] = None
    expected_version: Optional[int] = Field(None, description="Optimistic concurrency check.")
    force: bool = Field(False, description="Administrative edit outside the normal transitions.")

class LessonReschedule(BaseModel):
    new_date: date
    new_time: time
    expected_version: Optional[int] = None

class LessonDetailsUpdate(BaseModel):
    duration_minutes: Optional[int] = Field(None, gt=0)
    notes: Optional[str] = None
    expected_version: Optional[int] = None

    @model_validator(mode='after')
    def validate_not_empty(self) -> 'LessonDetailsUpdate':
        if self.duration_minutes is None and self.notes is None:
            raise ValueError('Provide duration_minutes and/or notes to update.')
        return self
