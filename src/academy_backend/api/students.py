'''
API endpoints for the student roster and wallet corrections.
'''
from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..database.db_enums import StudentStatus
from ..models import report as report_models
from ..models import user as user_models
from ..services.report_service import ReportService
from ..services.student_service import StudentService


class StudentsAPI:
    """
    A class to encapsulate endpoints for Students.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/students",
            tags=["Students"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.create_student,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=user_models.StudentRead)
        self.router.add_api_route(
                "/",
                self.list_students,
                methods=["GET"],
                response_model=List[user_models.StudentRead])
        self.router.add_api_route(
                "/{student_id}",
                self.get_student,
                methods=["GET"],
                response_model=user_models.StudentRead)
        self.router.add_api_route(
                "/{student_id}/lesson-counts",
                self.get_lesson_counts,
                methods=["GET"],
                response_model=report_models.StudentLessonCounts)
        self.router.add_api_route(
                "/{student_id}/free-lessons",
                self.grant_free_lessons,
                methods=["POST"],
                response_model=user_models.StudentRead)
        self.router.add_api_route(
                "/{student_id}/status",
                self.override_status,
                methods=["PATCH"],
                response_model=user_models.StudentRead)

    async def create_student(
        self,
        student_data: user_models.StudentCreate,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> user_models.StudentRead:
        """
        Creates a student with an empty wallet (and therefore Blocked until
        a package is bought).
        """
        return await student_service.create_student(student_data)

    async def list_students(
        self,
        student_service: Annotated[StudentService, Depends(StudentService)],
        teacher_id: Annotated[UUID | None, Query(description="Optional filter for Teacher ID")] = None,
        student_status: Annotated[StudentStatus | None, Query(alias="status", description="Optional filter for wallet status")] = None
    ) -> List[user_models.StudentRead]:
        return await student_service.list_students(teacher_id=teacher_id, status=student_status)

    async def get_student(
        self,
        student_id: UUID,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> user_models.StudentRead:
        return await student_service.get_student(student_id)

    async def get_lesson_counts(
        self,
        student_id: UUID,
        report_service: Annotated[ReportService, Depends(ReportService)]
    ) -> report_models.StudentLessonCounts:
        """Number of lessons per status alongside the wallet figures."""
        return await report_service.get_student_lesson_counts(student_id)

    async def grant_free_lessons(
        self,
        student_id: UUID,
        grant_data: user_models.FreeLessonsGrant,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> user_models.StudentRead:
        """
        Adds free lessons to the wallet. The grant is written to the audit log.
        """
        return await student_service.grant_free_lessons(student_id, grant_data)

    async def override_status(
        self,
        student_id: UUID,
        override_data: user_models.StudentStatusOverride,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> user_models.StudentRead:
        """
        Manually sets Active/Grace/Blocked. The next wallet change recomputes it.
        """
        return await student_service.override_status(student_id, override_data)


# Instantiate the class and export its router
students_api = StudentsAPI()
router = students_api.router
