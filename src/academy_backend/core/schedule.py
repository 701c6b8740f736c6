'''
Expands a package's weekly pattern into concrete dated lessons.
'''
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from ..common.config import settings
from ..common.exceptions import ValidationError

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@dataclass(frozen=True, order=True)
class WeeklySlot:
    day_of_week: int  # 0=Sunday ... 6=Saturday
    time_slot: time


@dataclass(frozen=True)
class PlannedLesson:
    scheduled_date: date
    scheduled_time: time
    duration_minutes: int


def academy_today() -> date:
    """Today's date on the academy's clock, not the server's."""
    return datetime.now(ZoneInfo(settings.ACADEMY_TIMEZONE)).date()


def day_of_week_for(value: date) -> int:
    """Sunday-based weekday index (0=Sunday ... 6=Saturday)."""
    return value.isoweekday() % 7


def get_day_name(day_of_week: int) -> str:
    if 0 <= day_of_week <= 6:
        return DAY_NAMES[day_of_week]
    raise ValueError("day_of_week must be between 0 and 6")


def validate_weekly_slots(weekly_slots: Iterable[WeeklySlot]) -> list[WeeklySlot]:
    """
    Checks the weekly template and returns it sorted by (day, time).
    Raises ValidationError for an empty template, a bad weekday or a
    duplicated slot.
    """
    slots = list(weekly_slots)
    if not slots:
        raise ValidationError("At least one weekly schedule slot is required.")

    for slot in slots:
        if not 0 <= slot.day_of_week <= 6:
            raise ValidationError(f"day_of_week must be between 0 and 6, got {slot.day_of_week}.")

    if len(set(slots)) != len(slots):
        raise ValidationError("Weekly schedule contains the same day and time more than once.")

    return sorted(slots)


def expand_schedule(
    weekly_slots: Iterable[WeeklySlot],
    lessons_purchased: int,
    start_date: date,
    duration_minutes: int,
    max_lessons: Optional[int] = None
) -> list[PlannedLesson]:
    """
    Walks forward one day at a time from `start_date` and emits a lesson for
    every slot whose weekday matches, in (date, time) order, until
    `lessons_purchased` lessons exist. A slot earlier in the week than the
    start date rolls to the following week, never backwards.
    """
    slots = validate_weekly_slots(weekly_slots)
    limit = settings.MAX_LESSONS_PER_PACKAGE if max_lessons is None else max_lessons

    if lessons_purchased <= 0:
        raise ValidationError("lessons_purchased must be a positive number.")
    if lessons_purchased > limit:
        raise ValidationError(f"lessons_purchased cannot exceed {limit}.")
    if duration_minutes <= 0:
        raise ValidationError("duration_minutes must be a positive number.")

    times_by_day: dict[int, list[time]] = {}
    for slot in slots:
        times_by_day.setdefault(slot.day_of_week, []).append(slot.time_slot)

    planned: list[PlannedLesson] = []
    current = start_date
    while len(planned) < lessons_purchased:
        for slot_time in times_by_day.get(day_of_week_for(current), []):
            planned.append(PlannedLesson(current, slot_time, duration_minutes))
            if len(planned) == lessons_purchased:
                break
        current += timedelta(days=1)

    return planned
