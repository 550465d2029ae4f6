"""
Report Aggregator Module - Classroom QR Attendance

Builds the presence matrix behind every attendance report: sessions sorted
chronologically as columns, the roster sorted alphabetically as rows, and a
Present/Absent value for every cell.

The matrix is a pure function of its inputs and is recomputed for each
report request rather than cached.
"""

import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

import pandas as pd

from attendance_app.modules.models import AttendanceSession, Course, Student
from attendance_app.modules.timeutils import session_date_label


class Presence(Enum):
    PRESENT = 'Present'
    ABSENT = 'Absent'


def collation_key(value: str) -> str:
    """
    Case- and accent-insensitive sort key.

    Decomposes the text, drops combining marks and case-folds it, so that
    "émile" sorts with "Emile" independent of the process locale.
    """
    decomposed = unicodedata.normalize('NFKD', value or '')
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def roster_sort_key(student: Student) -> Tuple[str, str, str, str]:
    # Exact names break ties between names that only differ by case or accents.
    return (
        collation_key(student.last_name),
        collation_key(student.first_name),
        student.last_name,
        student.first_name
    )


def sort_sessions(sessions: Iterable[AttendanceSession]) -> List[AttendanceSession]:
    """Ascending by generation time; sorted() is stable so ties keep arrival order."""
    return sorted(sessions, key=lambda session: session.generated_at)


def sort_roster(roster: Iterable[Student]) -> List[Student]:
    return sorted(roster, key=roster_sort_key)


@dataclass(frozen=True)
class ReportMatrix:
    """
    Student x session presence grid for one course.

    ``presence`` maps student id -> session id -> Presence and is defined for
    every pair in ``sorted_students`` x ``sorted_sessions``.
    """
    course: Course
    sorted_sessions: Tuple[AttendanceSession, ...]
    sorted_students: Tuple[Student, ...]
    presence: Mapping[str, Mapping[str, Presence]]

    @property
    def is_empty(self) -> bool:
        return not self.sorted_sessions

    def cell(self, student: Student, session: AttendanceSession) -> Presence:
        return self.presence[student.id][session.id]

    def is_present(self, student: Student, session: AttendanceSession) -> bool:
        return self.cell(student, session) is Presence.PRESENT

    def present_count(self, session: AttendanceSession) -> int:
        return sum(1 for student in self.sorted_students if self.is_present(student, session))

    def total_present(self) -> int:
        return sum(self.present_count(session) for session in self.sorted_sessions)

    def rows(self) -> List[Tuple[Student, List[Presence]]]:
        """One (student, cells) pair per roster entry, cells in column order."""
        return [
            (student, [self.cell(student, session) for session in self.sorted_sessions])
            for student in self.sorted_students
        ]

    def session_labels(self, tz=None) -> List[str]:
        return [session_date_label(session.generated_at, tz) for session in self.sorted_sessions]

    def to_dataframe(self, tz=None) -> pd.DataFrame:
        """
        Presence grid as a DataFrame of "Present"/"Absent" strings.

        Rows are indexed by "Last, First" in roster order. Columns are session
        labels; two sessions on the same day share a label, so columns are
        positional rather than unique.
        """
        data = [[presence.value for presence in cells] for _, cells in self.rows()]
        frame = pd.DataFrame(
            data,
            index=pd.Index([student.display_name for student in self.sorted_students], name='Student Name'),
            columns=self.session_labels(tz),
            dtype=object
        )
        frame.insert(0, 'ID Number', [student.id_number for student in self.sorted_students])
        return frame


def build_matrix(course: Course, sessions: Sequence[AttendanceSession],
                 roster: Sequence[Student]) -> ReportMatrix:
    """
    Build the presence matrix for a course.

    Args:
        course (Course): Course the report is for
        sessions (Sequence[AttendanceSession]): Sessions in arrival order
        roster (Sequence[Student]): Enrolled students, any order

    Returns:
        ReportMatrix: Sorted, total presence matrix. Empty inputs give a
        matrix with zero columns or zero rows, never an error.
    """
    sorted_sessions = tuple(sort_sessions(sessions))
    sorted_students = tuple(sort_roster(roster))
    scanned = {session.id: session.scanned_student_ids for session in sorted_sessions}

    presence: Dict[str, Dict[str, Presence]] = {}
    for student in sorted_students:
        presence[student.id] = {
            session.id: Presence.PRESENT if student.id in scanned[session.id] else Presence.ABSENT
            for session in sorted_sessions
        }

    return ReportMatrix(
        course=course,
        sorted_sessions=sorted_sessions,
        sorted_students=sorted_students,
        presence=presence
    )
