'''
API endpoints for payroll and the wallet audit.
'''
from datetime import date
from typing import Annotated, List

from fastapi import APIRouter, Depends, Query

from ..models import report as report_models
from ..services.audit_service import AuditService
from ..services.report_service import ReportService


class ReportsAPI:
    """
    A class to encapsulate read-only reporting endpoints.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/reports",
            tags=["Reports"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/payroll",
                self.get_payroll,
                methods=["GET"],
                response_model=List[report_models.TeacherWorkload])
        self.router.add_api_route(
                "/audit",
                self.run_audit,
                methods=["GET"],
                response_model=report_models.AuditReport)

    async def get_payroll(
        self,
        report_service: Annotated[ReportService, Depends(ReportService)],
        start_date: Annotated[date, Query(description="First day, inclusive")],
        end_date: Annotated[date, Query(description="Last day, inclusive")]
    ) -> List[report_models.TeacherWorkload]:
        """Hours and pay per teacher for completed lessons in the range."""
        return await report_service.get_payroll(start_date, end_date)

    async def run_audit(
        self,
        audit_service: Annotated[AuditService, Depends(AuditService)]
    ) -> report_models.AuditReport:
        """
        Recomputes every wallet from purchases, grants and lessons and lists
        mismatches. Read-only.
        """
        return await audit_service.run_audit()


# Instantiate the class and export its router
reports_api = ReportsAPI()
router = reports_api.router
