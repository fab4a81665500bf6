from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Role labels carried by an authenticated principal."""

    STUDENT = "Student"
    TEACHER = "Teacher"
    SUPERVISOR = "Supervisor"
    WALI_KELAS = "WaliKelas"
    WAKA = "Waka"
    KEPALA_SEKOLAH = "KepalaSekolah"
    PIKET = "Piket"
    ADMIN = "Admin"


class AssignmentStatus(str, Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    ON_HOLD = "OnHold"


class PlacementType(str, Enum):
    """Onsite placements are geofenced; flexible ones are not."""

    ONSITE = "Onsite"
    FLEXIBLE = "Flexible"


class SessionStatus(str, Enum):
    """Attendance session states.

    NotStarted is implicit (no row yet) and never persisted.
    """

    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    AUTO_CLOSED = "AutoClosed"
    CORRECTED = "Corrected"
    ABSENT = "Absent"

    @property
    def is_open(self) -> bool:
        return self is SessionStatus.IN_PROGRESS


class ApprovalStatus(str, Enum):
    """Manual attendance request workflow states."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class LeavePermitStatus(str, Enum):
    """Leave permit workflow states."""

    OPEN = "Open"
    PROSES = "Proses"
    CLOSE = "Close"
    DITOLAK = "Ditolak"


class LeaveType(str, Enum):
    INDIVIDUAL = "Individual"
    GROUP = "Group"


class RequesterType(str, Enum):
    STUDENT = "Student"
    TEACHER = "Teacher"


class Decision(str, Enum):
    APPROVED = "Approved"
    REJECTED = "Rejected"
