'''
API endpoints for individual lessons: ad-hoc booking, attendance marking,
rescheduling and deletion.
'''
from datetime import date, time
from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..database.db_enums import LessonStatus
from ..models import lesson as lesson_models
from ..models import user as user_models
from ..services.conflict_service import ConflictService
from ..services.lesson_service import LessonService


class LessonsAPI:
    """
    A class to encapsulate endpoints for Lessons.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/lessons",
            tags=["Lessons"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.create_lesson,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=lesson_models.LessonRead)
        self.router.add_api_route(
                "/",
                self.list_lessons,
                methods=["GET"],
                response_model=List[lesson_models.LessonRead])
        # Static paths must be registered before "/{lesson_id}"
        self.router.add_api_route(
                "/unmarked",
                self.list_unmarked_lessons,
                methods=["GET"],
                response_model=List[lesson_models.LessonRead])
        self.router.add_api_route(
                "/conflicts",
                self.check_conflict,
                methods=["GET"],
                response_model=lesson_models.ConflictInfo)
        self.router.add_api_route(
                "/{lesson_id}",
                self.get_lesson,
                methods=["GET"],
                response_model=lesson_models.LessonRead)
        self.router.add_api_route(
                "/{lesson_id}/status",
                self.mark_lesson,
                methods=["PATCH"],
                response_model=lesson_models.LessonRead)
        self.router.add_api_route(
                "/{lesson_id}/reschedule",
                self.reschedule_lesson,
                methods=["PATCH"],
                response_model=lesson_models.LessonRead)
        self.router.add_api_route(
                "/{lesson_id}",
                self.update_lesson,
                methods=["PATCH"],
                response_model=lesson_models.LessonRead)
        self.router.add_api_route(
                "/{lesson_id}",
                self.delete_lesson,
                methods=["DELETE"],
                response_model=user_models.StudentRead)

    async def create_lesson(
        self,
        lesson_data: lesson_models.LessonCreate,
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ) -> lesson_models.LessonRead:
        """
        Books a single extra lesson. Regular lessons need an available credit;
        bonus lessons are free.
        """
        return await lesson_service.create_lesson(lesson_data)

    async def list_lessons(
        self,
        lesson_service: Annotated[LessonService, Depends(LessonService)],
        student_id: Annotated[UUID | None, Query(description="Optional filter for Student ID")] = None,
        teacher_id: Annotated[UUID | None, Query(description="Optional filter for Teacher ID")] = None,
        package_id: Annotated[UUID | None, Query(description="Optional filter for Package ID")] = None,
        lesson_date: Annotated[date | None, Query(alias="date", description="Optional filter for a single day")] = None,
        lesson_status: Annotated[LessonStatus | None, Query(alias="status", description="Optional filter for lesson status")] = None
    ) -> List[lesson_models.LessonRead]:
        return await lesson_service.list_lessons(
            student_id=student_id,
            teacher_id=teacher_id,
            package_id=package_id,
            lesson_date=lesson_date,
            status=lesson_status
        )

    async def list_unmarked_lessons(
        self,
        lesson_service: Annotated[LessonService, Depends(LessonService)],
        teacher_id: Annotated[UUID | None, Query(description="Optional filter for Teacher ID")] = None,
        before: Annotated[date | None, Query(description="Lessons strictly before this date. Defaults to today.")] = None
    ) -> List[lesson_models.LessonRead]:
        """Past lessons nobody has marked yet."""
        return await lesson_service.list_unmarked_lessons(teacher_id=teacher_id, before=before)

    async def check_conflict(
        self,
        conflict_service: Annotated[ConflictService, Depends(ConflictService)],
        teacher_id: UUID,
        lesson_date: Annotated[date, Query(alias="date")],
        lesson_time: Annotated[time, Query(alias="time")],
        exclude_lesson_id: UUID | None = None
    ) -> lesson_models.ConflictInfo:
        """Checks whether a teacher already has a lesson at an exact date and time."""
        return await conflict_service.check_conflict(teacher_id, lesson_date, lesson_time, exclude_lesson_id)

    async def get_lesson(
        self,
        lesson_id: UUID,
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ) -> lesson_models.LessonRead:
        return await lesson_service.get_lesson(lesson_id)

    async def mark_lesson(
        self,
        lesson_id: UUID,
        status_data: lesson_models.LessonStatusUpdate,
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ) -> lesson_models.LessonRead:
        """
        Marks a lesson completed, absent or cancelled and updates the wallet.
        Repeating the current status is a no-op.
        """
        return await lesson_service.update_status(lesson_id, status_data)

    async def reschedule_lesson(
        self,
        lesson_id: UUID,
        reschedule_data: lesson_models.LessonReschedule,
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ) -> lesson_models.LessonRead:
        """
        Moves a pending lesson. Returns 409 with the colliding lessons if the
        teacher is already booked at the new time.
        """
        return await lesson_service.reschedule_lesson(lesson_id, reschedule_data)

    async def update_lesson(
        self,
        lesson_id: UUID,
        update_data: lesson_models.LessonDetailsUpdate,
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ) -> lesson_models.LessonRead:
        return await lesson_service.update_lesson_details(lesson_id, update_data)

    async def delete_lesson(
        self,
        lesson_id: UUID,
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ) -> user_models.StudentRead:
        """
        Deletes a pending lesson and releases its credit.
        Returns the student with the updated wallet.
        """
        return await lesson_service.delete_lesson(lesson_id)


# Instantiate the class and export its router
lessons_api = LessonsAPI()
router = lessons_api.router
