'''
Pytest configuration for the FastAPI application.

This file sets up fixtures for:
1. Forcing the application into TEST_MODE before any code is imported.
2. Providing a fresh in-memory database and session for each test.
3. Providing a FastAPI TestClient for endpoint testing.
4. Providing instances of all service classes, pre-injected with the test session.
'''

import os

# Must happen before the settings object is created on import.
os.environ["TEST_MODE"] = "True"
os.environ["DATABASE_URL_TEST"] = "sqlite+aiosqlite:///:memory:"

import pytest
from decimal import Decimal
from typing import AsyncGenerator

# --- FastAPI & Testing Imports ---
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine
from sqlalchemy.pool import StaticPool

# --- Constant Imports ----
from tests.constants import (
    THURSDAY_START,
    MONDAY, WEDNESDAY,
    SLOT_TIME,
)
from tests.database import factories

# --- Application Imports ---
from src.academy_backend.main import app
from src.academy_backend.common.config import settings
from src.academy_backend.database import models as db_models
from src.academy_backend.database.engine import build_session_factory
from src.academy_backend.models import package as package_models
from src.academy_backend.services.student_service import StudentService, TeacherService
from src.academy_backend.services.conflict_service import ConflictService
from src.academy_backend.services.lesson_service import LessonService
from src.academy_backend.services.package_service import PackageService
from src.academy_backend.services.report_service import ReportService
from src.academy_backend.services.audit_service import AuditService


@pytest.fixture(scope="session")
def anyio_backend():
    """
    Override the default 'anyio_backend' fixture.
    1. Forces the backend to 'asyncio'.
    2. Promotes the scope to 'session'.
    """
    return "asyncio"


@pytest.fixture(scope="function")
def client() -> TestClient:
    """
    Endpoint test client.

    Entering the TestClient runs the app's lifespan, which creates a new
    in-memory database (TEST_MODE also creates the tables). Shutdown
    disposes the engine, so every test starts from an empty database.
    """
    assert settings.TEST_MODE is True, \
        "TEST_MODE was not set to True! Check your .env file or environment."

    with TestClient(app) as test_client:
        yield test_client


# --- 1. Database Fixtures (For Service Tests) ---

@pytest.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """A private in-memory database with all tables created."""
    engine = create_async_engine(
        settings.DATABASE_URL_TEST,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(db_models.Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """
    Provides a single session for service-level tests. The factories are
    bound to it for the duration of the test.
    """
    session = build_session_factory(db_engine)()
    factories.test_db_session = session
    try:
        yield session
    finally:
        factories.test_db_session = None
        await session.rollback()
        await session.close()


# --- 2. SERVICE FIXTURES ---

@pytest.fixture(scope="function")
def teacher_service(db_session: AsyncSession) -> TeacherService:
    return TeacherService(db=db_session)

@pytest.fixture(scope="function")
def student_service(db_session: AsyncSession) -> StudentService:
    return StudentService(db=db_session)

@pytest.fixture(scope="function")
def conflict_service(db_session: AsyncSession) -> ConflictService:
    return ConflictService(db=db_session)

@pytest.fixture(scope="function")
def lesson_service(
    db_session: AsyncSession,
    student_service: StudentService,
    conflict_service: ConflictService
) -> LessonService:
    return LessonService(db=db_session, student_service=student_service, conflict_service=conflict_service)

@pytest.fixture(scope="function")
def package_service(
    db_session: AsyncSession,
    student_service: StudentService,
    lesson_service: LessonService,
    conflict_service: ConflictService
) -> PackageService:
    return PackageService(
        db=db_session,
        student_service=student_service,
        lesson_service=lesson_service,
        conflict_service=conflict_service
    )

@pytest.fixture(scope="function")
def report_service(db_session: AsyncSession) -> ReportService:
    return ReportService(db=db_session)

@pytest.fixture(scope="function")
def audit_service(db_session: AsyncSession) -> AuditService:
    return AuditService(db=db_session)


# --- 3. DATA FIXTURES ---

@pytest.fixture(scope="function")
async def test_teacher(db_session: AsyncSession) -> db_models.Teachers:
    """A teacher paid 60.00 per hour."""
    teacher = factories.TeacherFactory(rate_per_lesson=Decimal("60.00"))
    await db_session.flush()
    return teacher

@pytest.fixture(scope="function")
async def other_teacher(db_session: AsyncSession) -> db_models.Teachers:
    teacher = factories.TeacherFactory(rate_per_lesson=Decimal("40.00"))
    await db_session.flush()
    return teacher

@pytest.fixture(scope="function")
async def test_student(db_session: AsyncSession, test_teacher: db_models.Teachers) -> db_models.Students:
    """A student with an empty wallet."""
    student = factories.StudentFactory(teacher_id=test_teacher.id)
    await db_session.flush()
    return student

@pytest.fixture(scope="function")
async def other_student(db_session: AsyncSession, test_teacher: db_models.Teachers) -> db_models.Students:
    student = factories.StudentFactory(teacher_id=test_teacher.id)
    await db_session.flush()
    return student

@pytest.fixture(scope="function")
def package_request(
    test_student: db_models.Students,
    test_teacher: db_models.Teachers
) -> package_models.PackageCreate:
    """8 lessons on Monday and Wednesday at 16:00, bought on a Thursday."""
    return package_models.PackageCreate(
        student_id=test_student.id,
        teacher_id=test_teacher.id,
        amount_paid=Decimal("400.00"),
        lessons_purchased=8,
        lesson_duration_minutes=60,
        start_date=THURSDAY_START,
        weekly_slots=[
            package_models.WeeklySlotInput(day_of_week=MONDAY, time_slot=SLOT_TIME),
            package_models.WeeklySlotInput(day_of_week=WEDNESDAY, time_slot=SLOT_TIME),
        ]
    )

@pytest.fixture(scope="function")
async def funded_package(
    package_service: PackageService,
    package_request: package_models.PackageCreate
) -> package_models.PackageWithLessons:
    """The student after buying the default 8-lesson package."""
    return await package_service.create_or_renew(package_request)
