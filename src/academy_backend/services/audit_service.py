'''
Read-only consistency audit of the lesson wallet.

Recomputes every student's counters from purchases, free-lesson grants and
lesson rows and reports anything that does not match what is stored. Meant
to run as a daily job or on demand; it never repairs anything itself.
'''
from collections import defaultdict
from datetime import datetime, timezone
from typing import Annotated

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.logger import log
from ..core import wallet
from ..database import models as db_models
from ..database.db_enums import AuditAction
from ..database.engine import get_db_session
from ..models import report as report_models


class AuditService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    async def _purchased_by_student(self) -> dict:
        stmt = select(
            db_models.Packages.student_id,
            func.sum(db_models.Packages.lessons_purchased)
        ).group_by(db_models.Packages.student_id)
        return {sid: int(total or 0) for sid, total in (await self.db.execute(stmt)).all()}

    async def _audit_entries(self) -> tuple[dict, dict]:
        """Free lessons granted per student and the latest manual status per student."""
        stmt = select(db_models.AuditLogs).filter(
            db_models.AuditLogs.action.in_([AuditAction.ADD_FREE_LESSONS.value, AuditAction.STATUS_OVERRIDE.value])
        ).order_by(db_models.AuditLogs.created_at)

        granted = defaultdict(int)
        overrides = {}
        for entry in (await self.db.execute(stmt)).scalars().all():
            details = entry.details or {}
            if entry.action == AuditAction.ADD_FREE_LESSONS.value:
                granted[entry.target_student_id] += int(details.get("lessons", 0))
            else:
                overrides[entry.target_student_id] = details.get("new_status")
        return granted, overrides

    async def _lesson_counts_by_student(self) -> tuple[dict, dict]:
        stmt = select(
            db_models.ScheduledLessons.student_id,
            db_models.ScheduledLessons.status,
            func.count(db_models.ScheduledLessons.id)
        ).filter(
            db_models.ScheduledLessons.is_bonus.is_(False)
        ).group_by(db_models.ScheduledLessons.student_id, db_models.ScheduledLessons.status)

        consumed = defaultdict(int)
        reserved = defaultdict(int)
        for sid, status, count in (await self.db.execute(stmt)).all():
            effect = wallet.credit_effect(status)
            consumed[sid] += effect.consumed * count
            reserved[sid] += effect.reserved * count
        return consumed, reserved

    async def _duplicate_pending_lessons(self) -> list[str]:
        stmt = select(
            db_models.ScheduledLessons.student_id,
            db_models.ScheduledLessons.scheduled_date,
            db_models.ScheduledLessons.scheduled_time,
            func.count(db_models.ScheduledLessons.id)
        ).filter(
            db_models.ScheduledLessons.status.in_([s.value for s in wallet.PENDING_STATUSES])
        ).group_by(
            db_models.ScheduledLessons.student_id,
            db_models.ScheduledLessons.scheduled_date,
            db_models.ScheduledLessons.scheduled_time
        ).having(func.count(db_models.ScheduledLessons.id) > 1)

        return [
            f"Student {sid} has {count} pending lessons on {day} at {slot}."
            for sid, day, slot, count in (await self.db.execute(stmt)).all()
        ]

    async def run_audit(self) -> report_models.AuditReport:
        log.info("Starting wallet audit.")
        purchased = await self._purchased_by_student()
        granted, overrides = await self._audit_entries()
        consumed, reserved = await self._lesson_counts_by_student()

        issues = []
        students = (await self.db.execute(select(db_models.Students).order_by(db_models.Students.name))).scalars().all()
        for student in students:
            expected_balance = purchased.get(student.id, 0) + granted[student.id] - consumed[student.id]
            if student.wallet_balance != expected_balance:
                issues.append(
                    f"Wallet mismatch for {student.name} ({student.id}): stored {student.wallet_balance}, "
                    f"expected {expected_balance}."
                )
            if student.reserved_credits != reserved[student.id]:
                issues.append(
                    f"Reserved credit mismatch for {student.name} ({student.id}): stored {student.reserved_credits}, "
                    f"expected {reserved[student.id]}."
                )
            expected_status = wallet.derive_student_status(student.wallet_balance).value
            if student.status != expected_status and overrides.get(student.id) != student.status:
                issues.append(
                    f"Status mismatch for {student.name} ({student.id}): stored {student.status}, "
                    f"balance {student.wallet_balance} implies {expected_status}."
                )

        issues.extend(await self._duplicate_pending_lessons())

        if issues:
            log.warning(f"Wallet audit found {len(issues)} issue(s).")
        else:
            log.info("Wallet audit passed.")
        return report_models.AuditReport(
            issues_found=len(issues),
            issues=issues,
            timestamp=datetime.now(timezone.utc)
        )
