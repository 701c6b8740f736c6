import pytest
from datetime import date, time, timedelta
from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

# --- Import models and services ---
from src.academy_backend.common.config import settings
from src.academy_backend.common.exceptions import ConflictError, StateError, ValidationError
from src.academy_backend.database import models as db_models
from src.academy_backend.database.db_enums import AuditAction, LessonStatus, PackageStatus, StudentStatus
from src.academy_backend.models import lesson as lesson_models
from src.academy_backend.models import package as package_models
from src.academy_backend.services.lesson_service import LessonService
from src.academy_backend.services.package_service import PackageService
from src.academy_backend.services.student_service import StudentService
from tests.constants import EXPECTED_MON_WED_DATES, MONDAY, WEDNESDAY, THURSDAY_START, SLOT_TIME
from tests.database import factories

from pprint import pp as pprint


async def mark_all(lesson_service: LessonService, lessons, status=LessonStatus.COMPLETED):
    for lesson in lessons:
        await lesson_service.update_status(lesson.id, lesson_models.LessonStatusUpdate(status=status))


@pytest.mark.anyio
class TestPackageServiceCREATE:

    async def test_create_generates_lessons_and_funds_wallet(
        self,
        package_service: PackageService,
        package_request: package_models.PackageCreate
    ):
        result = await package_service.create_or_renew(package_request)
        pprint(result.model_dump())

        assert [l.scheduled_date for l in result.lessons] == EXPECTED_MON_WED_DATES
        assert all(l.status == LessonStatus.SCHEDULED for l in result.lessons)
        assert all(l.duration_minutes == 60 for l in result.lessons)
        assert all(l.package_id == result.package.id for l in result.lessons)

        student = result.student
        assert student.wallet_balance == 8
        assert student.reserved_credits == 8
        assert student.available_credits == 0
        assert student.status == StudentStatus.ACTIVE
        assert student.total_paid == Decimal("400.00")
        assert student.current_package_id == result.package.id
        assert student.number_of_renewals == 0

        package = result.package
        assert package.status == PackageStatus.ACTIVE
        assert package.is_renewal is False
        assert package.debt_covered == 0
        assert package.next_payment_date == THURSDAY_START + timedelta(days=30)

        assert [(s.day_of_week, s.day_name) for s in result.weekly_slots] == [(MONDAY, "Monday"), (WEDNESDAY, "Wednesday")]
        assert all(s.timezone == settings.ACADEMY_TIMEZONE for s in result.weekly_slots)

    async def test_four_lesson_scenario_credits_wallet_immediately(
        self,
        package_service: PackageService,
        test_student: db_models.Students,
        test_teacher: db_models.Teachers
    ):
        """Mon/Wed 18:00 from a Thursday, 4 lessons of 45 minutes."""
        request = package_models.PackageCreate(
            student_id=test_student.id,
            teacher_id=test_teacher.id,
            amount_paid=Decimal("200"),
            lessons_purchased=4,
            lesson_duration_minutes=45,
            start_date=THURSDAY_START,
            weekly_slots=[
                package_models.WeeklySlotInput(day_of_week=WEDNESDAY, time_slot=time(18, 0)),
                package_models.WeeklySlotInput(day_of_week=MONDAY, time_slot=time(18, 0)),
            ]
        )
        result = await package_service.create_or_renew(request)

        assert [(l.scheduled_date, l.scheduled_time) for l in result.lessons] == [
            (date(2025, 1, 6), time(18, 0)),
            (date(2025, 1, 8), time(18, 0)),
            (date(2025, 1, 13), time(18, 0)),
            (date(2025, 1, 15), time(18, 0)),
        ]
        assert result.student.wallet_balance == 4

    async def test_purchase_pays_back_debt_first(
        self,
        db_session: AsyncSession,
        package_service: PackageService,
        package_request: package_models.PackageCreate,
        test_student: db_models.Students
    ):
        test_student.wallet_balance = -2
        await db_session.flush()

        result = await package_service.create_or_renew(package_request)

        assert result.package.debt_covered == 2
        assert result.student.wallet_balance == 6
        assert result.student.available_credits == -2

    async def test_conflicting_package_is_rejected_as_a_whole(
        self,
        db_session: AsyncSession,
        package_service: PackageService,
        funded_package: package_models.PackageWithLessons,
        package_request: package_models.PackageCreate,
        other_student: db_models.Students
    ):
        """Another student on the same teacher slots: nothing is written."""
        clashing = package_request.model_copy(update={"student_id": other_student.id})

        with pytest.raises(ConflictError) as e:
            await package_service.create_or_renew(clashing)

        print(e.value.to_dict())
        assert len(e.value.conflicts) == 8
        assert {c["student_id"] for c in e.value.conflicts} == {str(funded_package.student.id)}

        await db_session.refresh(other_student)
        assert other_student.wallet_balance == 0
        assert other_student.reserved_credits == 0
        assert other_student.current_package_id is None
        packages = await package_service.list_packages(student_id=other_student.id)
        assert packages == []

    async def test_admin_can_override_conflicts(
        self,
        package_service: PackageService,
        funded_package: package_models.PackageWithLessons,
        package_request: package_models.PackageCreate,
        other_student: db_models.Students
    ):
        clashing = package_request.model_copy(update={"student_id": other_student.id, "allow_conflicts": True})
        result = await package_service.create_or_renew(clashing)
        assert len(result.lessons) == 8

    async def test_cancelled_lessons_do_not_block_a_slot(
        self,
        package_service: PackageService,
        lesson_service: LessonService,
        funded_package: package_models.PackageWithLessons,
        package_request: package_models.PackageCreate,
        other_student: db_models.Students
    ):
        await mark_all(lesson_service, funded_package.lessons, LessonStatus.CANCELLED)
        result = await package_service.create_or_renew(
            package_request.model_copy(update={"student_id": other_student.id})
        )
        assert len(result.lessons) == 8

    async def test_empty_pattern_is_rejected_without_changes(
        self,
        db_session: AsyncSession,
        package_service: PackageService,
        package_request: package_models.PackageCreate,
        test_student: db_models.Students
    ):
        with pytest.raises(ValidationError):
            await package_service.create_or_renew(package_request.model_copy(update={"weekly_slots": []}))

        await db_session.refresh(test_student)
        assert test_student.wallet_balance == 0
        assert test_student.status == StudentStatus.BLOCKED.value

    async def test_count_above_limit_is_rejected(
        self,
        package_service: PackageService,
        package_request: package_models.PackageCreate
    ):
        too_many = package_request.model_copy(update={"lessons_purchased": settings.MAX_LESSONS_PER_PACKAGE + 1})
        with pytest.raises(ValidationError):
            await package_service.create_or_renew(too_many)

    async def test_second_purchase_counts_as_renewal(
        self,
        package_service: PackageService,
        funded_package: package_models.PackageWithLessons,
        package_request: package_models.PackageCreate
    ):
        later = package_request.model_copy(update={"start_date": date(2025, 2, 2)})
        result = await package_service.create_or_renew(later)

        assert result.package.is_renewal is True
        assert result.student.number_of_renewals == 1
        assert result.student.wallet_balance == 16
        assert result.student.total_paid == Decimal("800.00")


@pytest.mark.anyio
class TestPackageServiceRENEW:

    async def test_renew_copies_previous_schedule_and_completes_old_package(
        self,
        package_service: PackageService,
        lesson_service: LessonService,
        funded_package: package_models.PackageWithLessons,
        package_request: package_models.PackageCreate
    ):
        await mark_all(lesson_service, funded_package.lessons)

        renewal = package_models.PackageRenew(
            **package_request.model_dump(exclude={"weekly_slots", "start_date", "lessons_purchased"}),
            start_date=date(2025, 2, 2),
            lessons_purchased=4
        )
        result = await package_service.renew_package(renewal)
        pprint(result.model_dump())

        assert [(s.day_of_week, s.time_slot) for s in result.weekly_slots] == [(MONDAY, SLOT_TIME), (WEDNESDAY, SLOT_TIME)]
        assert [l.scheduled_date for l in result.lessons] == [
            date(2025, 2, 3), date(2025, 2, 5), date(2025, 2, 10), date(2025, 2, 12)
        ]
        assert result.package.is_renewal is True
        assert result.student.number_of_renewals == 1
        # 8 bought, 8 used, 4 bought again
        assert result.student.wallet_balance == 4
        assert result.student.reserved_credits == 4

        old = await package_service.get_package(funded_package.package.id)
        assert old.status == PackageStatus.COMPLETED
        assert old.completed_date is not None

    async def test_renew_without_previous_package_is_rejected(
        self,
        package_service: PackageService,
        package_request: package_models.PackageCreate
    ):
        renewal = package_models.PackageRenew(**package_request.model_dump(exclude={"weekly_slots"}))
        with pytest.raises(ValidationError):
            await package_service.renew_package(renewal)

    async def test_renew_with_explicit_slots(
        self,
        package_service: PackageService,
        funded_package: package_models.PackageWithLessons,
        package_request: package_models.PackageCreate
    ):
        renewal = package_models.PackageRenew(
            **package_request.model_dump(exclude={"weekly_slots", "start_date"}),
            start_date=date(2025, 2, 2),
            weekly_slots=[package_models.WeeklySlotInput(day_of_week=0, time_slot=time(10, 0))]
        )
        result = await package_service.renew_package(renewal)
        assert [s.day_of_week for s in result.weekly_slots] == [0]
        assert result.lessons[0].scheduled_date == date(2025, 2, 2)


@pytest.mark.anyio
class TestPackageServiceLIFECYCLE:

    async def test_refresh_leaves_packages_with_pending_lessons(
        self,
        package_service: PackageService,
        funded_package: package_models.PackageWithLessons
    ):
        changed = await package_service.refresh_package_statuses()
        assert changed == []

    async def test_refresh_completes_fully_marked_package(
        self,
        package_service: PackageService,
        lesson_service: LessonService,
        funded_package: package_models.PackageWithLessons
    ):
        await mark_all(lesson_service, funded_package.lessons[:6])
        await mark_all(lesson_service, funded_package.lessons[6:], LessonStatus.ABSENT)

        changed = await package_service.refresh_package_statuses(student_id=funded_package.student.id)

        assert [p.id for p in changed] == [funded_package.package.id]
        assert changed[0].status == PackageStatus.COMPLETED

    async def test_close_with_pending_lessons_is_refused(
        self,
        package_service: PackageService,
        funded_package: package_models.PackageWithLessons
    ):
        with pytest.raises(StateError):
            await package_service.close_package(funded_package.package.id, package_models.PackageClose())

        package = await package_service.get_package(funded_package.package.id)
        assert package.status == PackageStatus.ACTIVE

    async def test_close_releasing_pending_lessons(
        self,
        db_session: AsyncSession,
        package_service: PackageService,
        lesson_service: LessonService,
        student_service: StudentService,
        funded_package: package_models.PackageWithLessons
    ):
        await mark_all(lesson_service, funded_package.lessons[:2])

        summary = await package_service.close_package(
            funded_package.package.id, package_models.PackageClose(release_pending=True)
        )
        pprint(summary.counts)

        assert summary.package.status == PackageStatus.COMPLETED
        assert summary.counts[LessonStatus.COMPLETED.value] == 2
        assert summary.counts[LessonStatus.CANCELLED.value] == 6
        assert summary.counts[LessonStatus.SCHEDULED.value] == 0

        student = await student_service.get_student(funded_package.student.id)
        assert student.wallet_balance == 6
        assert student.reserved_credits == 0
        assert student.available_credits == 6

        logs = (await db_session.execute(
            select(db_models.AuditLogs).filter(db_models.AuditLogs.action == AuditAction.PACKAGE_CLOSED.value)
        )).scalars().all()
        assert len(logs) == 1
        assert logs[0].details["released_lessons"] == 6

    async def test_close_completed_package_is_refused(
        self,
        package_service: PackageService,
        funded_package: package_models.PackageWithLessons
    ):
        await package_service.close_package(funded_package.package.id, package_models.PackageClose(release_pending=True))
        with pytest.raises(StateError):
            await package_service.close_package(funded_package.package.id, package_models.PackageClose(release_pending=True))

    async def test_update_weekly_schedule_keeps_generated_lessons(
        self,
        package_service: PackageService,
        lesson_service: LessonService,
        funded_package: package_models.PackageWithLessons
    ):
        slots = await package_service.update_weekly_schedule(
            funded_package.package.id,
            package_models.WeeklyScheduleUpdate(weekly_slots=[
                package_models.WeeklySlotInput(day_of_week=2, time_slot=time(9, 30))
            ])
        )
        assert [(s.day_of_week, s.time_slot) for s in slots] == [(2, time(9, 30))]

        lessons = await lesson_service.list_lessons(package_id=funded_package.package.id)
        assert [l.scheduled_date for l in lessons] == EXPECTED_MON_WED_DATES

        summary = await package_service.get_package_summary(funded_package.package.id)
        assert len(summary.weekly_slots) == 1

    async def test_summary_counts(
        self,
        package_service: PackageService,
        lesson_service: LessonService,
        funded_package: package_models.PackageWithLessons
    ):
        await mark_all(lesson_service, funded_package.lessons[:1])
        await mark_all(lesson_service, funded_package.lessons[1:2], LessonStatus.ABSENT)

        summary = await package_service.get_package_summary(funded_package.package.id)
        assert summary.counts == {
            "scheduled": 6, "completed": 1, "absent": 1, "cancelled": 0, "rescheduled": 0
        }
        assert len(summary.lessons) == 8

    async def test_list_packages_by_status(
        self,
        package_service: PackageService,
        funded_package: package_models.PackageWithLessons
    ):
        active = await package_service.list_packages(status=PackageStatus.ACTIVE)
        completed = await package_service.list_packages(status=PackageStatus.COMPLETED)
        assert [p.id for p in active] == [funded_package.package.id]
        assert completed == []
