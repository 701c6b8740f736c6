'''
API endpoints for lesson packages: purchase, renewal, close and schedule edits.
'''
from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..database.db_enums import PackageStatus
from ..models import package as package_models
from ..services.package_service import PackageService


class PackagesAPI:
    """
    A class to encapsulate endpoints for Packages.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/packages",
            tags=["Packages"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.create_package,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=package_models.PackageWithLessons)
        self.router.add_api_route(
                "/renew",
                self.renew_package,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=package_models.PackageWithLessons)
        self.router.add_api_route(
                "/refresh-status",
                self.refresh_statuses,
                methods=["POST"],
                response_model=List[package_models.PackageRead])
        self.router.add_api_route(
                "/",
                self.list_packages,
                methods=["GET"],
                response_model=List[package_models.PackageRead])
        self.router.add_api_route(
                "/{package_id}",
                self.get_package,
                methods=["GET"],
                response_model=package_models.PackageRead)
        self.router.add_api_route(
                "/{package_id}/summary",
                self.get_package_summary,
                methods=["GET"],
                response_model=package_models.PackageSummary)
        self.router.add_api_route(
                "/{package_id}/schedule",
                self.update_schedule,
                methods=["PUT"],
                response_model=List[package_models.WeeklySlotRead])
        self.router.add_api_route(
                "/{package_id}/close",
                self.close_package,
                methods=["PATCH"],
                response_model=package_models.PackageSummary)

    async def create_package(
        self,
        package_data: package_models.PackageCreate,
        package_service: Annotated[PackageService, Depends(PackageService)]
    ) -> package_models.PackageWithLessons:
        """
        Records a purchase and generates every lesson from the weekly pattern.
        Fails as a whole (409) if any generated lesson collides with the
        teacher's existing lessons, unless `allow_conflicts` is set.
        """
        return await package_service.create_or_renew(package_data)

    async def renew_package(
        self,
        renew_data: package_models.PackageRenew,
        package_service: Annotated[PackageService, Depends(PackageService)]
    ) -> package_models.PackageWithLessons:
        """
        Renews a student's package, optionally reusing the previous weekly pattern.
        """
        return await package_service.renew_package(renew_data)

    async def refresh_statuses(
        self,
        package_service: Annotated[PackageService, Depends(PackageService)],
        student_id: Annotated[UUID | None, Query(description="Optional filter for Student ID")] = None
    ) -> List[package_models.PackageRead]:
        """
        Marks packages whose lessons are all marked as Completed.
        Returns the packages that changed.
        """
        return await package_service.refresh_package_statuses(student_id=student_id)

    async def list_packages(
        self,
        package_service: Annotated[PackageService, Depends(PackageService)],
        student_id: Annotated[UUID | None, Query(description="Optional filter for Student ID")] = None,
        package_status: Annotated[PackageStatus | None, Query(alias="status", description="Optional filter for package status")] = None
    ) -> List[package_models.PackageRead]:
        return await package_service.list_packages(student_id=student_id, status=package_status)

    async def get_package(
        self,
        package_id: UUID,
        package_service: Annotated[PackageService, Depends(PackageService)]
    ) -> package_models.PackageRead:
        return await package_service.get_package(package_id)

    async def get_package_summary(
        self,
        package_id: UUID,
        package_service: Annotated[PackageService, Depends(PackageService)]
    ) -> package_models.PackageSummary:
        """The package with its weekly pattern, lessons and lesson counts per status."""
        return await package_service.get_package_summary(package_id)

    async def update_schedule(
        self,
        package_id: UUID,
        schedule_data: package_models.WeeklyScheduleUpdate,
        package_service: Annotated[PackageService, Depends(PackageService)]
    ) -> List[package_models.WeeklySlotRead]:
        """
        Replaces the weekly pattern. Already generated lessons are not moved.
        """
        return await package_service.update_weekly_schedule(package_id, schedule_data)

    async def close_package(
        self,
        package_id: UUID,
        close_data: package_models.PackageClose,
        package_service: Annotated[PackageService, Depends(PackageService)]
    ) -> package_models.PackageSummary:
        return await package_service.close_package(package_id, close_data)


# Instantiate the class and export its router
packages_api = PackagesAPI()
router = packages_api.router
