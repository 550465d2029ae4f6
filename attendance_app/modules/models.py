"""
Domain Models - Classroom QR Attendance

Plain data structures shared by the verification and reporting modules.
Students and courses are owned by the user/course management side of the
system; this package only reads them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Optional, Tuple


@dataclass(frozen=True)
class Student:
    """Data structure for a student as seen by attendance reporting."""
    id: str
    first_name: str
    last_name: str
    id_number: str = ''
    email: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.last_name}, {self.first_name}"


@dataclass(frozen=True)
class Course:
    """Course snapshot with the set of enrolled student ids."""
    id: str
    course_code: str
    course_name: str
    enrolled_student_ids: FrozenSet[str] = field(default_factory=frozenset)

    def is_enrolled(self, student_id: str) -> bool:
        return student_id in self.enrolled_student_ids


@dataclass(frozen=True)
class ScanRecord:
    """One accepted scan inside an attendance session."""
    student_id: str
    scanned_at: datetime


@dataclass(frozen=True)
class AttendanceSession:
    """
    One QR-generation event for a course.

    ``generated_at`` is the chronological key of the session and the source
    of its report column label. ``scans`` keeps arrival order and holds at
    most one record per student.
    """
    id: str
    course_id: str
    generated_at: datetime
    expires_at: Optional[datetime] = None
    scans: Tuple[ScanRecord, ...] = ()

    @property
    def scanned_student_ids(self) -> FrozenSet[str]:
        return frozenset(scan.student_id for scan in self.scans)


@dataclass(frozen=True)
class ScanAttempt:
    """A single scan as presented by a student; consumed once by the verifier."""
    raw_payload: str
    claimed_course_id: str
    student_id: str
    presented_at: datetime
