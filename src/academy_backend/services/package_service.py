'''
Package lifecycle: purchase/renewal with schedule generation, completion
sweeps, manual close and weekly template edits.
'''
from datetime import date, timedelta
from typing import Annotated, Optional
from uuid import UUID, uuid4

from fastapi import Depends
from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.config import settings
from ..common.exceptions import ConflictError, NotFoundError, StateError, ValidationError
from ..common.logger import log
from ..core import schedule, wallet
from ..database import models as db_models
from ..database.db_enums import AuditAction, LessonStatus, PackageStatus
from ..database.engine import get_db_session
from ..database.utils import flush_or_conflict
from ..models import lesson as lesson_models
from ..models import package as package_models
from ..models import user as user_models
from .conflict_service import ConflictService
from .lesson_service import LessonService
from .student_service import StudentService, TeacherService


class PackageService:
    """
    Service for lesson packages and the lessons generated from them.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        student_service: Annotated[StudentService, Depends(StudentService)],
        lesson_service: Annotated[LessonService, Depends(LessonService)],
        conflict_service: Annotated[ConflictService, Depends(ConflictService)]
    ):
        self.db = db
        self.student_service = student_service
        self.lesson_service = lesson_service
        self.conflict_service = conflict_service

    # --- 1. Internal Fetchers ---

    async def _get_package_internal(self, package_id: UUID) -> db_models.Packages:
        stmt = select(db_models.Packages).filter(
            db_models.Packages.id == package_id
        ).execution_options(populate_existing=True)
        package = (await self.db.execute(stmt)).scalars().first()
        if not package:
            raise NotFoundError(f"Package {package_id} not found.")
        return package

    async def _get_slots(self, package_id: UUID) -> list[db_models.LessonSchedules]:
        stmt = select(db_models.LessonSchedules).filter(
            db_models.LessonSchedules.package_id == package_id
        ).order_by(db_models.LessonSchedules.day_of_week, db_models.LessonSchedules.time_slot)
        return list((await self.db.execute(stmt)).scalars().all())

    async def _get_lessons(self, package_id: UUID, statuses=None) -> list[db_models.ScheduledLessons]:
        stmt = select(db_models.ScheduledLessons).filter(
            db_models.ScheduledLessons.package_id == package_id
        ).order_by(db_models.ScheduledLessons.scheduled_date, db_models.ScheduledLessons.scheduled_time)
        if statuses is not None:
            stmt = stmt.filter(db_models.ScheduledLessons.status.in_([s.value for s in statuses]))
        return list((await self.db.execute(stmt)).scalars().all())

    async def _latest_package_id(self, student_id: UUID) -> Optional[UUID]:
        stmt = select(db_models.Packages.id).filter(
            db_models.Packages.student_id == student_id
        ).order_by(db_models.Packages.start_date.desc(), db_models.Packages.created_at.desc()).limit(1)
        return (await self.db.execute(stmt)).scalars().first()

    def _add_slot_rows(self, package_id: UUID, slots: list[schedule.WeeklySlot]) -> list[db_models.LessonSchedules]:
        rows = [
            db_models.LessonSchedules(
                id=uuid4(),
                package_id=package_id,
                day_of_week=slot.day_of_week,
                time_slot=slot.time_slot,
                timezone=settings.ACADEMY_TIMEZONE
            )
            for slot in slots
        ]
        self.db.add_all(rows)
        return rows

    # --- 2. Purchase / Renewal ---

    async def create_or_renew(
        self,
        data: package_models.PackageCreate,
        weekly_slots: Optional[list[schedule.WeeklySlot]] = None,
        is_renewal: Optional[bool] = None
    ) -> package_models.PackageWithLessons:
        """
        Creates a package and generates all of its lessons in one unit of
        work. Everything is validated before anything is written: a bad
        template, an over-limit count or a double-booked teacher slot leaves
        the student untouched.

        The purchased lessons are credited immediately and each generated
        lesson reserves one of them, so a fresh package leaves the
        student's available credits unchanged.
        """
        log.info(
            f"Creating package for student {data.student_id}: {data.lessons_purchased} lesson(s) "
            f"from {data.start_date}."
        )
        try:
            student = await self.student_service.get_student_orm(data.student_id)
            teacher = await TeacherService(self.db).get_teacher_orm(data.teacher_id)

            slots = weekly_slots if weekly_slots is not None else [s.to_slot() for s in data.weekly_slots]
            slots = schedule.validate_weekly_slots(slots)
            planned = schedule.expand_schedule(
                slots, data.lessons_purchased, data.start_date, data.lesson_duration_minutes
            )

            if not data.allow_conflicts:
                conflicts = await self.conflict_service.find_conflicts(
                    teacher.id, [(p.scheduled_date, p.scheduled_time) for p in planned]
                )
                if conflicts:
                    log.warning(f"Package for student {student.id} refused: {len(conflicts)} teacher slot conflict(s).")
                    raise ConflictError(
                        f"{len(conflicts)} generated lesson(s) collide with the teacher's existing lessons.",
                        conflicts=[c.model_dump(mode='json') for c in conflicts]
                    )

            if is_renewal is None:
                is_renewal = await self._latest_package_id(student.id) is not None

            # --- All checks passed; write everything ---
            package = db_models.Packages(
                id=uuid4(),
                student_id=student.id,
                teacher_id=teacher.id,
                amount_paid=data.amount_paid,
                lessons_purchased=data.lessons_purchased,
                lesson_duration_minutes=data.lesson_duration_minutes,
                start_date=data.start_date,
                next_payment_date=data.start_date + timedelta(days=settings.NEXT_PAYMENT_INTERVAL_DAYS),
                debt_covered=wallet.debt_covered_by_purchase(student.wallet_balance, data.lessons_purchased),
                is_renewal=is_renewal,
                status=PackageStatus.ACTIVE.value,
                completed_date=None
            )
            self.db.add(package)
            slot_rows = self._add_slot_rows(package.id, slots)

            StudentService.apply_wallet_state(
                student, wallet.add_credits(StudentService.wallet_state_of(student), data.lessons_purchased)
            )
            lessons = [
                self.lesson_service.build_lesson(
                    student=student,
                    teacher_id=teacher.id,
                    package_id=package.id,
                    lesson_date=p.scheduled_date,
                    lesson_time=p.scheduled_time,
                    duration_minutes=p.duration_minutes
                )
                for p in planned
            ]

            student.total_paid = (student.total_paid or 0) + data.amount_paid
            if is_renewal:
                student.number_of_renewals = (student.number_of_renewals or 0) + 1
            student.current_package_id = package.id
            student.teacher_id = teacher.id

            await flush_or_conflict(self.db, f"Student {student.id}")
            log.info(
                f"Package {package.id} created with {len(lessons)} lesson(s); "
                f"debt covered: {package.debt_covered}, renewal: {is_renewal}."
            )

            return package_models.PackageWithLessons(
                package=package_models.PackageRead.model_validate(package),
                weekly_slots=[package_models.WeeklySlotRead.model_validate(s) for s in slot_rows],
                lessons=[lesson_models.LessonRead.model_validate(l) for l in lessons],
                student=user_models.StudentRead.model_validate(student)
            )

        except (ValidationError, ConflictError, NotFoundError):
            raise
        except Exception as e:
            log.error(f"Error in create_or_renew for student {data.student_id}: {e}", exc_info=True)
            raise

    async def renew_package(self, data: package_models.PackageRenew) -> package_models.PackageWithLessons:
        """
        Renewal of an existing student. With `use_previous_schedule` and no
        explicit slots, the weekly pattern of the previous package is reused.
        Finished earlier packages are marked Completed afterwards.
        """
        slots = None
        if data.use_previous_schedule and not data.weekly_slots:
            previous_id = data.previous_package_id or await self._latest_package_id(data.student_id)
            if previous_id is None:
                raise ValidationError("Student has no previous package to copy the schedule from.")
            previous = await self._get_package_internal(previous_id)
            if previous.student_id != data.student_id:
                raise ValidationError("The previous package does not belong to this student.")
            slots = [
                schedule.WeeklySlot(day_of_week=row.day_of_week, time_slot=row.time_slot)
                for row in await self._get_slots(previous.id)
            ]
            log.info(f"Renewal for student {data.student_id} reuses {len(slots)} slot(s) of package {previous.id}.")

        result = await self.create_or_renew(data, weekly_slots=slots, is_renewal=True)
        await self.refresh_package_statuses(student_id=data.student_id)
        return result

    # --- 3. Lifecycle ---

    async def refresh_package_statuses(self, student_id: Optional[UUID] = None) -> list[package_models.PackageRead]:
        """
        Marks Active packages whose lessons are all terminal as Completed.
        Returns the packages that changed. Packages without any lessons are
        left alone.
        """
        stmt = select(db_models.Packages).filter(db_models.Packages.status == PackageStatus.ACTIVE.value)
        if student_id:
            stmt = stmt.filter(db_models.Packages.student_id == student_id)
        packages = {p.id: p for p in (await self.db.execute(stmt)).scalars().all()}
        if not packages:
            return []

        pending_values = [s.value for s in wallet.PENDING_STATUSES]
        counts_stmt = select(
            db_models.ScheduledLessons.package_id,
            func.count(db_models.ScheduledLessons.id),
            func.sum(case((db_models.ScheduledLessons.status.in_(pending_values), 1), else_=0))
        ).filter(
            db_models.ScheduledLessons.package_id.in_(list(packages))
        ).group_by(db_models.ScheduledLessons.package_id)

        completed = []
        today = schedule.academy_today()
        for package_id, total, pending in (await self.db.execute(counts_stmt)).all():
            if total and not pending:
                package = packages[package_id]
                package.status = PackageStatus.COMPLETED.value
                package.completed_date = today
                completed.append(package)

        if completed:
            await self.db.flush()
            log.info(f"Marked {len(completed)} package(s) as Completed.")
        return [package_models.PackageRead.model_validate(p) for p in completed]

    async def close_package(self, package_id: UUID, data: package_models.PackageClose) -> package_models.PackageSummary:
        """
        Manually completes a package. Pending lessons block the close unless
        `release_pending` is set, in which case they are cancelled and their
        credits released.
        """
        log.info(f"Closing package {package_id} (release_pending={data.release_pending}).")
        package = await self._get_package_internal(package_id)
        if package.status == PackageStatus.COMPLETED.value:
            raise StateError(f"Package {package_id} is already completed.")

        pending = await self._get_lessons(package_id, statuses=wallet.PENDING_STATUSES)
        if pending and not data.release_pending:
            log.warning(f"Refused to close package {package_id}: {len(pending)} pending lesson(s).")
            raise StateError(
                f"Package has {len(pending)} pending lesson(s); mark them or close with release_pending."
            )

        student = await self.student_service.get_student_orm(package.student_id)
        for lesson in pending:
            self.lesson_service.transition_lesson(lesson, student, LessonStatus.CANCELLED)

        package.status = PackageStatus.COMPLETED.value
        package.completed_date = schedule.academy_today()
        self.db.add(db_models.AuditLogs(
            id=uuid4(),
            action=AuditAction.PACKAGE_CLOSED.value,
            target_student_id=student.id,
            details={"package_id": str(package.id), "released_lessons": len(pending)}
        ))
        await flush_or_conflict(self.db, f"Package {package_id}")
        return await self.get_package_summary(package_id)

    async def update_weekly_schedule(
        self,
        package_id: UUID,
        data: package_models.WeeklyScheduleUpdate
    ) -> list[package_models.WeeklySlotRead]:
        """
        Replaces the weekly template. Lessons already generated keep their
        dates; the template is only read again by a renewal.
        """
        package = await self._get_package_internal(package_id)
        if package.status == PackageStatus.COMPLETED.value:
            raise StateError("Cannot change the schedule of a completed package.")
        slots = schedule.validate_weekly_slots([s.to_slot() for s in data.weekly_slots])

        log.info(f"Replacing weekly schedule of package {package_id} with {len(slots)} slot(s).")
        await self.db.execute(
            delete(db_models.LessonSchedules).where(db_models.LessonSchedules.package_id == package_id)
        )
        rows = self._add_slot_rows(package_id, slots)
        await self.db.flush()
        return [package_models.WeeklySlotRead.model_validate(r) for r in rows]

    # --- 4. Read Methods ---

    async def get_package(self, package_id: UUID) -> package_models.PackageRead:
        return package_models.PackageRead.model_validate(await self._get_package_internal(package_id))

    async def list_packages(
        self,
        student_id: Optional[UUID] = None,
        status: Optional[PackageStatus] = None
    ) -> list[package_models.PackageRead]:
        stmt = select(db_models.Packages).order_by(db_models.Packages.start_date, db_models.Packages.created_at)
        if student_id:
            stmt = stmt.filter(db_models.Packages.student_id == student_id)
        if status:
            stmt = stmt.filter(db_models.Packages.status == status.value)
        result = await self.db.execute(stmt)
        return [package_models.PackageRead.model_validate(p) for p in result.scalars().all()]

    async def get_package_summary(self, package_id: UUID) -> package_models.PackageSummary:
        package = await self._get_package_internal(package_id)
        lessons = await self._get_lessons(package_id)
        counts = {status.value: 0 for status in LessonStatus}
        for lesson in lessons:
            counts[lesson.status] += 1
        return package_models.PackageSummary(
            package=package_models.PackageRead.model_validate(package),
            weekly_slots=[package_models.WeeklySlotRead.model_validate(s) for s in await self._get_slots(package_id)],
            lessons=[lesson_models.LessonRead.model_validate(l) for l in lessons],
            counts=counts
        )
