from typing import Any, Optional

from sqlalchemy import JSON, CheckConstraint, Date, DateTime, Enum, ForeignKeyConstraint, Index, Integer, Numeric, PrimaryKeyConstraint, SmallInteger, String, Text, Time, Uuid, Boolean
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import datetime
import decimal
import uuid


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    pass


class Teachers(Base):
    __tablename__ = 'teachers'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='teachers_pkey'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    # Stored under its historical name, but the value is an HOURLY rate.
    rate_per_lesson: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2), default=decimal.Decimal('0'))
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)

    students: Mapped[list['Students']] = relationship('Students', back_populates='teacher')


class Students(Base):
    __tablename__ = 'students'
    __table_args__ = (
        CheckConstraint('reserved_credits >= 0', name='students_reserved_credits_check'),
        ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='SET NULL', name='students_teacher_id_fkey'),
        PrimaryKeyConstraint('id', name='students_pkey'),
        Index('idx_students_teacher_id', 'teacher_id')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    parent_phone: Mapped[Optional[str]] = mapped_column(String(50))
    teacher_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    wallet_balance: Mapped[int] = mapped_column(Integer, default=0)
    reserved_credits: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(Enum('Active', 'Grace', 'Blocked', name='student_status_enum'), default='Blocked')
    total_paid: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2), default=decimal.Decimal('0'))
    number_of_renewals: Mapped[int] = mapped_column(Integer, default=0)
    current_package_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)

    __mapper_args__ = {'version_id_col': version_id}

    teacher: Mapped[Optional['Teachers']] = relationship('Teachers', back_populates='students')
    packages: Mapped[list['Packages']] = relationship('Packages', back_populates='student')
    scheduled_lessons: Mapped[list['ScheduledLessons']] = relationship('ScheduledLessons', back_populates='student')


class Packages(Base):
    __tablename__ = 'packages'
    __table_args__ = (
        CheckConstraint('lessons_purchased > 0', name='packages_lessons_purchased_check'),
        CheckConstraint('lesson_duration_minutes > 0', name='packages_lesson_duration_check'),
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='packages_student_id_fkey'),
        ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='SET NULL', name='packages_teacher_id_fkey'),
        PrimaryKeyConstraint('id', name='packages_pkey'),
        Index('idx_packages_student_id', 'student_id')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    teacher_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    amount_paid: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2))
    lessons_purchased: Mapped[int] = mapped_column(Integer)
    lesson_duration_minutes: Mapped[int] = mapped_column(Integer)
    start_date: Mapped[datetime.date] = mapped_column(Date)
    next_payment_date: Mapped[Optional[datetime.date]] = mapped_column(Date)
    debt_covered: Mapped[int] = mapped_column(Integer, default=0)
    is_renewal: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(Enum('Active', 'Completed', name='package_status_enum'), default='Active')
    completed_date: Mapped[Optional[datetime.date]] = mapped_column(Date)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)

    student: Mapped['Students'] = relationship('Students', back_populates='packages')
    lesson_schedules: Mapped[list['LessonSchedules']] = relationship(
        'LessonSchedules', back_populates='package', cascade='all, delete-orphan',
        order_by='[LessonSchedules.day_of_week, LessonSchedules.time_slot]'
    )
    scheduled_lessons: Mapped[list['ScheduledLessons']] = relationship('ScheduledLessons', back_populates='package')


class LessonSchedules(Base):
    """The weekly template of a package. Only read at generation time."""
    __tablename__ = 'lesson_schedules'
    __table_args__ = (
        CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='lesson_schedules_day_of_week_check'),
        ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='CASCADE', name='lesson_schedules_package_id_fkey'),
        PrimaryKeyConstraint('id', name='lesson_schedules_pkey')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    package_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    day_of_week: Mapped[int] = mapped_column(SmallInteger)  # 0=Sunday ... 6=Saturday
    time_slot: Mapped[datetime.time] = mapped_column(Time)
    timezone: Mapped[str] = mapped_column(String(64))

    package: Mapped['Packages'] = relationship('Packages', back_populates='lesson_schedules')


class ScheduledLessons(Base):
    __tablename__ = 'scheduled_lessons'
    __table_args__ = (
        CheckConstraint('duration_minutes > 0', name='scheduled_lessons_duration_check'),
        ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='CASCADE', name='scheduled_lessons_package_id_fkey'),
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='scheduled_lessons_student_id_fkey'),
        ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='SET NULL', name='scheduled_lessons_teacher_id_fkey'),
        PrimaryKeyConstraint('id', name='scheduled_lessons_pkey'),
        Index('idx_scheduled_lessons_teacher_slot', 'teacher_id', 'scheduled_date', 'scheduled_time'),
        Index('idx_scheduled_lessons_student_id', 'student_id'),
        Index('idx_scheduled_lessons_package_id', 'package_id')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    package_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    teacher_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    scheduled_date: Mapped[datetime.date] = mapped_column(Date)
    scheduled_time: Mapped[datetime.time] = mapped_column(Time)
    duration_minutes: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(
        Enum('scheduled', 'completed', 'absent', 'cancelled', 'rescheduled', name='lesson_status_enum'),
        default='scheduled'
    )
    is_bonus: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)

    __mapper_args__ = {'version_id_col': version_id}

    package: Mapped[Optional['Packages']] = relationship('Packages', back_populates='scheduled_lessons')
    student: Mapped['Students'] = relationship('Students', back_populates='scheduled_lessons')
    teacher: Mapped[Optional['Teachers']] = relationship('Teachers')


class AuditLogs(Base):
    __tablename__ = 'audit_logs'
    __table_args__ = (
        ForeignKeyConstraint(['target_student_id'], ['students.id'], ondelete='SET NULL', name='audit_logs_target_student_id_fkey'),
        PrimaryKeyConstraint('id', name='audit_logs_pkey')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action: Mapped[str] = mapped_column(
        Enum('add_free_lessons', 'status_override', 'forced_lesson_status', 'package_closed', name='audit_action_enum')
    )
    target_student_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)
