'''
Lesson instance store: creation, attendance marking, rescheduling and
deletion of dated lessons. Every change that affects credits goes through
core.wallet so the student's counters cannot drift from the lessons.
'''
from datetime import date, time
from typing import Annotated, Optional
from uuid import UUID, uuid4

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.exceptions import ConflictError, InsufficientCreditError, NotFoundError, StateError, ValidationError
from ..common.logger import log
from ..core import wallet
from ..core.schedule import academy_today
from ..database import models as db_models
from ..database.db_enums import AuditAction, LessonStatus, PackageStatus, StudentStatus
from ..database.engine import get_db_session
from ..database.utils import check_expected_version, flush_or_conflict
from ..models import lesson as lesson_models
from ..models import user as user_models
from .conflict_service import ConflictService
from .student_service import StudentService, TeacherService


class LessonService:
    """
    Service for individual lesson instances.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        student_service: Annotated[StudentService, Depends(StudentService)],
        conflict_service: Annotated[ConflictService, Depends(ConflictService)]
    ):
        self.db = db
        self.student_service = student_service
        self.conflict_service = conflict_service

    # --- 1. Internal Fetchers ---

    async def _get_lesson_internal(self, lesson_id: UUID) -> db_models.ScheduledLessons:
        """Re-reads the lesson row so transitions are decided on its current status."""
        stmt = select(db_models.ScheduledLessons).filter(
            db_models.ScheduledLessons.id == lesson_id
        ).execution_options(populate_existing=True)
        lesson = (await self.db.execute(stmt)).scalars().first()
        if not lesson:
            raise NotFoundError(f"Lesson {lesson_id} not found.")
        return lesson

    # --- 2. Internal Ledger Operations ---

    def build_lesson(
        self,
        student: db_models.Students,
        teacher_id: UUID,
        package_id: Optional[UUID],
        lesson_date: date,
        lesson_time: time,
        duration_minutes: int,
        is_bonus: bool = False,
        notes: Optional[str] = None
    ) -> db_models.ScheduledLessons:
        """
        Adds a new pending lesson to the session and reserves its credit.
        Callers are responsible for the credit and conflict admission checks.
        """
        lesson = db_models.ScheduledLessons(
            id=uuid4(),
            package_id=package_id,
            student_id=student.id,
            teacher_id=teacher_id,
            scheduled_date=lesson_date,
            scheduled_time=lesson_time,
            duration_minutes=duration_minutes,
            status=LessonStatus.SCHEDULED.value,
            is_bonus=is_bonus,
            notes=notes
        )
        self.db.add(lesson)
        state = wallet.apply_transition(
            StudentService.wallet_state_of(student), None, LessonStatus.SCHEDULED, is_bonus
        )
        StudentService.apply_wallet_state(student, state)
        return lesson

    def transition_lesson(
        self,
        lesson: db_models.ScheduledLessons,
        student: db_models.Students,
        new_status: LessonStatus
    ):
        """Moves a lesson to `new_status` and applies the matching wallet delta."""
        old_status = LessonStatus(lesson.status)
        state = wallet.apply_transition(
            StudentService.wallet_state_of(student), old_status, new_status, lesson.is_bonus
        )
        lesson.status = new_status.value
        StudentService.apply_wallet_state(student, state)

    # --- 3. API-Facing Write Methods ---

    async def create_lesson(self, data: lesson_models.LessonCreate) -> lesson_models.LessonRead:
        """
        Adds one ad-hoc lesson. A regular lesson must be backed by an unused
        purchased credit and is refused for Blocked students; a bonus lesson
        is free and skips the credit check.
        """
        log.info(f"Creating ad-hoc lesson for student {data.student_id} on {data.scheduled_date} {data.scheduled_time}.")
        try:
            student = await self.student_service.get_student_orm(data.student_id)
            await TeacherService(self.db).get_teacher_orm(data.teacher_id)

            if not data.is_bonus:
                available = StudentService.wallet_state_of(student).available_credits
                if student.status == StudentStatus.BLOCKED.value or available < 1:
                    log.warning(
                        f"Refused new lesson for student {student.id}: status={student.status}, "
                        f"available credits={available}."
                    )
                    raise InsufficientCreditError(
                        f"Student has no available purchased credit (status {student.status}, "
                        f"balance {student.wallet_balance}, reserved {student.reserved_credits})."
                    )

            package_id = data.package_id
            if package_id is None and not data.is_bonus:
                package_id = student.current_package_id
            if package_id is None and not data.is_bonus:
                raise ValidationError("A regular lesson must belong to a package; mark it as a bonus lesson otherwise.")

            if package_id is not None:
                package = await self.db.get(db_models.Packages, package_id)
                if not package:
                    raise NotFoundError(f"Package {package_id} not found.")
                if package.student_id != student.id:
                    raise ValidationError("The package does not belong to this student.")
                if package.status == PackageStatus.COMPLETED.value and not data.is_bonus:
                    raise StateError("Cannot add a regular lesson to a completed package.")

            if not data.allow_conflict:
                info = await self.conflict_service.check_conflict(data.teacher_id, data.scheduled_date, data.scheduled_time)
                if info.has_conflict:
                    raise ConflictError(
                        "The teacher already has a lesson at this date and time.",
                        conflicts=[c.model_dump(mode='json') for c in info.conflicts]
                    )

            lesson = self.build_lesson(
                student=student,
                teacher_id=data.teacher_id,
                package_id=package_id,
                lesson_date=data.scheduled_date,
                lesson_time=data.scheduled_time,
                duration_minutes=data.duration_minutes,
                is_bonus=data.is_bonus,
                notes=data.notes
            )
            await flush_or_conflict(self.db, f"Student {student.id}")
            return lesson_models.LessonRead.model_validate(lesson)

        except (ValidationError, StateError, ConflictError, NotFoundError):
            raise
        except Exception as e:
            log.error(f"Error in create_lesson for student {data.student_id}: {e}", exc_info=True)
            raise

    async def update_status(self, lesson_id: UUID, data: lesson_models.LessonStatusUpdate) -> lesson_models.LessonRead:
        """
        Marks a lesson completed/absent/cancelled. Consuming a credit the
        lesson already reserved is always allowed, even for a Blocked
        student. Repeating the current status changes nothing in the wallet.
        `force` is the administrative escape hatch for correcting history;
        it still cannot make a Blocked student spend a credit the lesson
        was not already holding.
        """
        log.info(f"Updating lesson {lesson_id} status to '{data.status.value}'.")
        lesson = await self._get_lesson_internal(lesson_id)
        check_expected_version(lesson.version_id, data.expected_version, f"Lesson {lesson_id}")

        old_status = LessonStatus(lesson.status)
        if old_status == data.status:
            if data.notes is not None:
                lesson.notes = data.notes
                await flush_or_conflict(self.db, f"Lesson {lesson_id}")
            return lesson_models.LessonRead.model_validate(lesson)

        allowed = wallet.is_transition_allowed(old_status, data.status)
        if not allowed and not data.force:
            log.warning(f"Rejected transition {old_status.value} -> {data.status.value} for lesson {lesson_id}.")
            raise StateError(f"Cannot change a lesson from '{old_status.value}' to '{data.status.value}'.")

        student = await self.student_service.get_student_orm(lesson.student_id)
        if (
            not allowed
            and student.status == StudentStatus.BLOCKED.value
            and wallet.takes_new_credit(old_status, data.status, lesson.is_bonus)
        ):
            log.warning(f"Refused forced {old_status.value} -> {data.status.value} for Blocked student {student.id}.")
            raise InsufficientCreditError(
                f"Student is Blocked; lesson {lesson_id} holds no credit to move into '{data.status.value}'."
            )

        self.transition_lesson(lesson, student, data.status)
        if data.notes is not None:
            lesson.notes = data.notes

        if not allowed:
            log.warning(f"FORCED transition {old_status.value} -> {data.status.value} for lesson {lesson_id}.")
            self.db.add(db_models.AuditLogs(
                id=uuid4(),
                action=AuditAction.FORCED_LESSON_STATUS.value,
                target_student_id=student.id,
                details={
                    "lesson_id": str(lesson.id),
                    "from_status": old_status.value,
                    "to_status": data.status.value,
                }
            ))

        await flush_or_conflict(self.db, f"Lesson {lesson_id}")
        return lesson_models.LessonRead.model_validate(lesson)

    async def reschedule_lesson(self, lesson_id: UUID, data: lesson_models.LessonReschedule) -> lesson_models.LessonRead:
        """
        Moves a pending lesson to a new date/time in place. The new slot is
        checked for conflicts first; the wallet is not touched.
        """
        log.info(f"Rescheduling lesson {lesson_id} to {data.new_date} {data.new_time}.")
        lesson = await self._get_lesson_internal(lesson_id)
        check_expected_version(lesson.version_id, data.expected_version, f"Lesson {lesson_id}")

        if not wallet.is_pending(lesson.status):
            raise StateError(f"Only pending lessons can be rescheduled; this one is '{lesson.status}'.")

        if lesson.teacher_id is not None:
            info = await self.conflict_service.check_conflict(
                lesson.teacher_id, data.new_date, data.new_time, exclude_lesson_id=lesson.id
            )
            if info.has_conflict:
                log.warning(f"Reschedule of lesson {lesson_id} refused: slot taken.")
                raise ConflictError(
                    "The teacher already has a lesson at the requested date and time.",
                    conflicts=[c.model_dump(mode='json') for c in info.conflicts]
                )

        lesson.scheduled_date = data.new_date
        lesson.scheduled_time = data.new_time
        lesson.status = LessonStatus.RESCHEDULED.value
        await flush_or_conflict(self.db, f"Lesson {lesson_id}")
        return lesson_models.LessonRead.model_validate(lesson)

    async def update_lesson_details(self, lesson_id: UUID, data: lesson_models.LessonDetailsUpdate) -> lesson_models.LessonRead:
        """Edits duration and notes of a pending lesson. Not a wallet event."""
        lesson = await self._get_lesson_internal(lesson_id)
        check_expected_version(lesson.version_id, data.expected_version, f"Lesson {lesson_id}")
        if not wallet.is_pending(lesson.status):
            raise StateError(f"Only pending lessons can be edited; this one is '{lesson.status}'.")

        if data.duration_minutes is not None:
            lesson.duration_minutes = data.duration_minutes
        if data.notes is not None:
            lesson.notes = data.notes
        await flush_or_conflict(self.db, f"Lesson {lesson_id}")
        return lesson_models.LessonRead.model_validate(lesson)

    async def delete_lesson(self, lesson_id: UUID) -> user_models.StudentRead:
        """
        Removes a pending lesson and releases its reserved credit. Completed
        and absent lessons are history and cannot be deleted.
        """
        log.info(f"Deleting lesson {lesson_id}.")
        lesson = await self._get_lesson_internal(lesson_id)
        if not wallet.is_pending(lesson.status):
            log.warning(f"Refused to delete lesson {lesson_id} in status '{lesson.status}'.")
            raise StateError(f"Only pending lessons can be deleted; this one is '{lesson.status}'.")

        student = await self.student_service.get_student_orm(lesson.student_id)
        state = wallet.apply_transition(
            StudentService.wallet_state_of(student), LessonStatus(lesson.status), None, lesson.is_bonus
        )
        StudentService.apply_wallet_state(student, state)
        await self.db.delete(lesson)
        await flush_or_conflict(self.db, f"Lesson {lesson_id}")
        return user_models.StudentRead.model_validate(student)

    # --- 4. Read Methods ---

    async def get_lesson(self, lesson_id: UUID) -> lesson_models.LessonRead:
        return lesson_models.LessonRead.model_validate(await self._get_lesson_internal(lesson_id))

    async def list_lessons(
        self,
        student_id: Optional[UUID] = None,
        teacher_id: Optional[UUID] = None,
        package_id: Optional[UUID] = None,
        lesson_date: Optional[date] = None,
        status: Optional[LessonStatus] = None
    ) -> list[lesson_models.LessonRead]:
        stmt = select(db_models.ScheduledLessons).order_by(
            db_models.ScheduledLessons.scheduled_date,
            db_models.ScheduledLessons.scheduled_time
        )
        if student_id:
            stmt = stmt.filter(db_models.ScheduledLessons.student_id == student_id)
        if teacher_id:
            stmt = stmt.filter(db_models.ScheduledLessons.teacher_id == teacher_id)
        if package_id:
            stmt = stmt.filter(db_models.ScheduledLessons.package_id == package_id)
        if lesson_date:
            stmt = stmt.filter(db_models.ScheduledLessons.scheduled_date == lesson_date)
        if status:
            stmt = stmt.filter(db_models.ScheduledLessons.status == status.value)
        result = await self.db.execute(stmt)
        return [lesson_models.LessonRead.model_validate(l) for l in result.scalars().all()]

    async def list_unmarked_lessons(
        self,
        teacher_id: Optional[UUID] = None,
        before: Optional[date] = None
    ) -> list[lesson_models.LessonRead]:
        """Past lessons that were never marked (still pending)."""
        before = before or academy_today()
        stmt = select(db_models.ScheduledLessons).filter(
            db_models.ScheduledLessons.scheduled_date < before,
            db_models.ScheduledLessons.status.in_([s.value for s in wallet.PENDING_STATUSES])
        ).order_by(db_models.ScheduledLessons.scheduled_date, db_models.ScheduledLessons.scheduled_time)
        if teacher_id:
            stmt = stmt.filter(db_models.ScheduledLessons.teacher_id == teacher_id)
        result = await self.db.execute(stmt)
        return [lesson_models.LessonRead.model_validate(l) for l in result.scalars().all()]
