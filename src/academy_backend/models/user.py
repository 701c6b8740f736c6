'''
Pydantic models for teachers and students.
'''
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..database.db_enums import StudentStatus

# --- API Read Models (Output) ---

class TeacherRead(BaseModel):
    """
    A teacher as returned by the API.
    `rate_per_lesson` keeps its historical name but holds an HOURLY rate.
    """
    id: UUID
    name: str
    email: Optional[str] = None
    rate_per_lesson: Decimal = Field(..., description="Hourly pay rate (historical field name).")

    model_config = ConfigDict(from_attributes=True)

class StudentRead(BaseModel):
    """A student with both wallet counters and the derived access tier."""
    id: UUID
    name: str
    phone: Optional[str] = None
    parent_phone: Optional[str] = None
    teacher_id: Optional[UUID] = None
    wallet_balance: int
    reserved_credits: int
    status: StudentStatus
    total_paid: Decimal
    number_of_renewals: int
    current_package_id: Optional[UUID] = None
    version_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def available_credits(self) -> int:
        """Credits that can still be booked as new lessons."""
        return self.wallet_balance - self.reserved_credits


# --- API Write Models (Input) ---

class TeacherCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    rate_per_lesson: Decimal = Field(Decimal("0"), ge=0, description="Hourly pay rate.")

class StudentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    parent_phone: Optional[str] = None
    teacher_id: Optional[UUID] = None

class FreeLessonsGrant(BaseModel):
    """Free lessons credited directly to a student's wallet."""
    lessons: int = Field(..., gt=0)
    reason: Optional[str] = None

class StudentStatusOverride(BaseModel):
    """An administrative correction of the derived status."""
    status: StudentStatus
    reason: Optional[str] = None
