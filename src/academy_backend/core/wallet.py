'''
The lesson wallet ledger.

Pure functions only: given a lesson's status change, compute how the
student's two counters move and which access tier the result falls into.
No database access happens here; the services persist whatever this
module returns.

Counters:
    wallet_balance   - credits purchased/granted minus credits consumed.
    reserved_credits - pending (scheduled/rescheduled) non-bonus lessons.
    available        - wallet_balance - reserved_credits, i.e. what can
                       still be booked.
'''
from dataclasses import dataclass
from typing import Optional

from ..common.config import settings
from ..database.db_enums import LessonStatus, StudentStatus

PENDING_STATUSES = frozenset({LessonStatus.SCHEDULED, LessonStatus.RESCHEDULED})
CONSUMED_STATUSES = frozenset({LessonStatus.COMPLETED, LessonStatus.ABSENT})
TERMINAL_STATUSES = frozenset({LessonStatus.COMPLETED, LessonStatus.ABSENT, LessonStatus.CANCELLED})

# Statuses that hold a teacher's slot (anything not cancelled).
SLOT_HOLDING_STATUSES = PENDING_STATUSES | CONSUMED_STATUSES

ALLOWED_TRANSITIONS: dict[LessonStatus, frozenset[LessonStatus]] = {
    LessonStatus.SCHEDULED: frozenset({
        LessonStatus.COMPLETED, LessonStatus.ABSENT, LessonStatus.CANCELLED, LessonStatus.RESCHEDULED
    }),
    LessonStatus.RESCHEDULED: frozenset({
        LessonStatus.COMPLETED, LessonStatus.ABSENT, LessonStatus.CANCELLED, LessonStatus.RESCHEDULED
    }),
    LessonStatus.COMPLETED: frozenset(),
    LessonStatus.ABSENT: frozenset(),
    LessonStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class WalletState:
    wallet_balance: int
    reserved_credits: int

    @property
    def available_credits(self) -> int:
        return self.wallet_balance - self.reserved_credits


@dataclass(frozen=True)
class CreditEffect:
    """How much of one credit a lesson in a given status is holding."""
    consumed: int
    reserved: int


_NO_EFFECT = CreditEffect(consumed=0, reserved=0)


def credit_effect(status: Optional[LessonStatus], is_bonus: bool = False) -> CreditEffect:
    """
    The credit held by a single lesson. `None` stands for a lesson that does
    not exist (before creation, after deletion).
    """
    if status is None or is_bonus:
        return _NO_EFFECT
    status = LessonStatus(status)
    if status in PENDING_STATUSES:
        return CreditEffect(consumed=0, reserved=1)
    if status in CONSUMED_STATUSES:
        return CreditEffect(consumed=1, reserved=0)
    return _NO_EFFECT


def is_pending(status: LessonStatus | str) -> bool:
    return LessonStatus(status) in PENDING_STATUSES


def is_transition_allowed(from_status: LessonStatus | str, to_status: LessonStatus | str) -> bool:
    """Same-status moves are always allowed; they are idempotent no-ops."""
    from_status = LessonStatus(from_status)
    to_status = LessonStatus(to_status)
    if from_status == to_status:
        return True
    return to_status in ALLOWED_TRANSITIONS[from_status]


def apply_transition(
    state: WalletState,
    from_status: Optional[LessonStatus],
    to_status: Optional[LessonStatus],
    is_bonus: bool = False
) -> WalletState:
    """
    Moves the wallet counters for one lesson going from `from_status` to
    `to_status`. Creation is `from_status=None`, deletion is `to_status=None`.

    Each lesson holds at most one credit, so the delta is simply the
    difference between what the lesson held before and after.
    """
    before = credit_effect(from_status, is_bonus)
    after = credit_effect(to_status, is_bonus)
    return WalletState(
        wallet_balance=state.wallet_balance - (after.consumed - before.consumed),
        reserved_credits=state.reserved_credits + (after.reserved - before.reserved),
    )


def takes_new_credit(
    from_status: Optional[LessonStatus],
    to_status: Optional[LessonStatus],
    is_bonus: bool = False
) -> bool:
    """True when a lesson that held no credit starts reserving or consuming one."""
    return credit_effect(from_status, is_bonus) == _NO_EFFECT and credit_effect(to_status, is_bonus) != _NO_EFFECT


def add_credits(state: WalletState, lessons: int) -> WalletState:
    """Purchased or granted lessons enter the wallet immediately."""
    return WalletState(
        wallet_balance=state.wallet_balance + lessons,
        reserved_credits=state.reserved_credits,
    )


def derive_student_status(
    balance: int,
    grace_threshold: Optional[int] = None,
    block_threshold: Optional[int] = None
) -> StudentStatus:
    """
    Active if balance > grace threshold, Grace if block < balance <= grace,
    Blocked if balance <= block threshold.
    """
    grace = settings.WALLET_GRACE_THRESHOLD if grace_threshold is None else grace_threshold
    block = settings.WALLET_BLOCK_THRESHOLD if block_threshold is None else block_threshold
    if balance > grace:
        return StudentStatus.ACTIVE
    if balance > block:
        return StudentStatus.GRACE
    return StudentStatus.BLOCKED


def debt_covered_by_purchase(balance: int, lessons_purchased: int) -> int:
    """Part of a new purchase that only pays back an overdrawn wallet."""
    if balance >= 0:
        return 0
    return min(abs(balance), lessons_purchased)
