'''
API endpoints for teachers and their workload.
'''
from datetime import date
from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..database.db_enums import WorkloadPeriod
from ..models import report as report_models
from ..models import user as user_models
from ..services.report_service import ReportService
from ..services.student_service import TeacherService


class TeachersAPI:
    """
    A class to encapsulate endpoints for Teachers.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/teachers",
            tags=["Teachers"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.create_teacher,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=user_models.TeacherRead)
        self.router.add_api_route(
                "/",
                self.list_teachers,
                methods=["GET"],
                response_model=List[user_models.TeacherRead])
        self.router.add_api_route(
                "/{teacher_id}/workload",
                self.get_workload,
                methods=["GET"],
                response_model=report_models.TeacherWorkload)

    async def create_teacher(
        self,
        teacher_data: user_models.TeacherCreate,
        teacher_service: Annotated[TeacherService, Depends(TeacherService)]
    ) -> user_models.TeacherRead:
        """
        Creates a teacher. `rate_per_lesson` is an hourly rate.
        """
        return await teacher_service.create_teacher(teacher_data)

    async def list_teachers(
        self,
        teacher_service: Annotated[TeacherService, Depends(TeacherService)]
    ) -> List[user_models.TeacherRead]:
        return await teacher_service.list_teachers()

    async def get_workload(
        self,
        teacher_id: UUID,
        report_service: Annotated[ReportService, Depends(ReportService)],
        period: Annotated[WorkloadPeriod, Query(description="day, week (Sunday-based) or month")] = WorkloadPeriod.MONTH,
        reference_date: Annotated[date | None, Query(description="Any date inside the period. Defaults to today.")] = None
    ) -> report_models.TeacherWorkload:
        """
        Completed lessons, hours and pay (hours x hourly rate) for a teacher.
        """
        return await report_service.get_teacher_workload(teacher_id, period, reference_date)


# Instantiate the class and export its router
teachers_api = TeachersAPI()
router = teachers_api.router
