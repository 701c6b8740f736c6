'''
Roster services: teachers, students and the persisted side of the wallet.
'''
from typing import Annotated, Optional
from uuid import UUID, uuid4

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.exceptions import NotFoundError
from ..common.logger import log
from ..core import wallet
from ..database import models as db_models
from ..database.db_enums import AuditAction, StudentStatus
from ..database.engine import get_db_session
from ..database.utils import flush_or_conflict
from ..models import user as user_models


class TeacherService:
    """
    Service for the teachers that own lessons.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    async def get_teacher_orm(self, teacher_id: UUID) -> db_models.Teachers:
        teacher = await self.db.get(db_models.Teachers, teacher_id)
        if not teacher:
            raise NotFoundError(f"Teacher {teacher_id} not found.")
        return teacher

    async def create_teacher(self, data: user_models.TeacherCreate) -> user_models.TeacherRead:
        log.info(f"Creating teacher '{data.name}'.")
        teacher = db_models.Teachers(
            id=uuid4(),
            name=data.name,
            email=data.email,
            rate_per_lesson=data.rate_per_lesson
        )
        self.db.add(teacher)
        await self.db.flush()
        return user_models.TeacherRead.model_validate(teacher)

    async def list_teachers(self) -> list[user_models.TeacherRead]:
        result = await self.db.execute(select(db_models.Teachers).order_by(db_models.Teachers.name))
        return [user_models.TeacherRead.model_validate(t) for t in result.scalars().all()]


class StudentService:
    """
    Service for the student roster. Owns every write to a student's wallet
    counters so that the status is always recomputed with them.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    # --- 1. Internal Fetchers ---

    async def get_student_orm(self, student_id: UUID) -> db_models.Students:
        """
        Fetches a student, re-reading the row so wallet decisions are made
        on the current counters rather than a cached copy.
        """
        stmt = select(db_models.Students).filter(
            db_models.Students.id == student_id
        ).execution_options(populate_existing=True)
        student = (await self.db.execute(stmt)).scalars().first()
        if not student:
            raise NotFoundError(f"Student {student_id} not found.")
        return student

    # --- 2. Wallet Persistence ---

    @staticmethod
    def wallet_state_of(student: db_models.Students) -> wallet.WalletState:
        return wallet.WalletState(
            wallet_balance=student.wallet_balance,
            reserved_credits=student.reserved_credits
        )

    @staticmethod
    def apply_wallet_state(student: db_models.Students, state: wallet.WalletState):
        """Writes new counters and recomputes the derived status."""
        if (state.wallet_balance, state.reserved_credits) != (student.wallet_balance, student.reserved_credits):
            log.info(
                f"Wallet for student {student.id}: balance {student.wallet_balance} -> {state.wallet_balance}, "
                f"reserved {student.reserved_credits} -> {state.reserved_credits}"
            )
        student.wallet_balance = state.wallet_balance
        student.reserved_credits = state.reserved_credits
        student.status = wallet.derive_student_status(state.wallet_balance).value

    # --- 3. API-Facing Methods ---

    async def create_student(self, data: user_models.StudentCreate) -> user_models.StudentRead:
        log.info(f"Creating student '{data.name}'.")
        if data.teacher_id is not None:
            await TeacherService(self.db).get_teacher_orm(data.teacher_id)

        student = db_models.Students(
            id=uuid4(),
            name=data.name,
            phone=data.phone,
            parent_phone=data.parent_phone,
            teacher_id=data.teacher_id,
            wallet_balance=0,
            reserved_credits=0,
            total_paid=0,
            number_of_renewals=0,
            status=wallet.derive_student_status(0).value
        )
        self.db.add(student)
        await self.db.flush()
        return user_models.StudentRead.model_validate(student)

    async def get_student(self, student_id: UUID) -> user_models.StudentRead:
        return user_models.StudentRead.model_validate(await self.get_student_orm(student_id))

    async def list_students(
        self,
        teacher_id: Optional[UUID] = None,
        status: Optional[StudentStatus] = None
    ) -> list[user_models.StudentRead]:
        stmt = select(db_models.Students).order_by(db_models.Students.name)
        if teacher_id:
            stmt = stmt.filter(db_models.Students.teacher_id == teacher_id)
        if status:
            stmt = stmt.filter(db_models.Students.status == status.value)
        result = await self.db.execute(stmt)
        return [user_models.StudentRead.model_validate(s) for s in result.scalars().all()]

    async def grant_free_lessons(self, student_id: UUID, data: user_models.FreeLessonsGrant) -> user_models.StudentRead:
        """
        Credits free lessons straight into the wallet and records the grant
        in the audit log (the audit job counts these as purchases).
        """
        log.info(f"Granting {data.lessons} free lesson(s) to student {student_id}.")
        student = await self.get_student_orm(student_id)
        old_balance = student.wallet_balance

        self.apply_wallet_state(student, wallet.add_credits(self.wallet_state_of(student), data.lessons))
        self.db.add(db_models.AuditLogs(
            id=uuid4(),
            action=AuditAction.ADD_FREE_LESSONS.value,
            target_student_id=student.id,
            details={
                "student_name": student.name,
                "lessons": data.lessons,
                "reason": data.reason,
                "old_balance": old_balance,
                "new_balance": student.wallet_balance,
            }
        ))
        await flush_or_conflict(self.db, f"Student {student_id}")
        return user_models.StudentRead.model_validate(student)

    async def override_status(self, student_id: UUID, data: user_models.StudentStatusOverride) -> user_models.StudentRead:
        """
        Administrative correction of the access tier. The next wallet change
        recomputes the status from the balance again.
        """
        student = await self.get_student_orm(student_id)
        log.warning(f"Manual status override for student {student_id}: {student.status} -> {data.status.value}")
        self.db.add(db_models.AuditLogs(
            id=uuid4(),
            action=AuditAction.STATUS_OVERRIDE.value,
            target_student_id=student.id,
            details={
                "old_status": student.status,
                "new_status": data.status.value,
                "wallet_balance": student.wallet_balance,
                "reason": data.reason,
            }
        ))
        student.status = data.status.value
        await flush_or_conflict(self.db, f"Student {student_id}")
        return user_models.StudentRead.model_validate(student)
