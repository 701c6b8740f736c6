'''
Static enums mirroring the labels stored in the database.
'''
import enum


class ListableEnum(str, enum.Enum):
    """A custom Enum base class that can list all member names."""
    @classmethod
    def get_all_names(cls) -> list[str]:
        return [member.value for member in cls]


class StudentStatus(ListableEnum):
    ACTIVE = "Active"
    GRACE = "Grace"
    BLOCKED = "Blocked"


class PackageStatus(ListableEnum):
    ACTIVE = "Active"
    COMPLETED = "Completed"


class LessonStatus(ListableEnum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    ABSENT = "absent"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class AuditAction(ListableEnum):
    ADD_FREE_LESSONS = "add_free_lessons"
    STATUS_OVERRIDE = "status_override"
    FORCED_LESSON_STATUS = "forced_lesson_status"
    PACKAGE_CLOSED = "package_closed"


class WorkloadPeriod(ListableEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
