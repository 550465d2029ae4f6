"""
Attendance statistics derived from a presence matrix.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from attendance_app.modules.report_aggregator import ReportMatrix
from attendance_app.modules.timeutils import session_date_label


@dataclass(frozen=True)
class Stats:
    total_students: int
    total_sessions: int
    avg_attendance: int
    attendance_rate: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def round_half_up(numerator: int, denominator: int) -> int:
    """
    Round a non-negative fraction to the nearest integer, halves going up.

    Integer arithmetic keeps exact ties exact: 5/2 -> 3, 1/2 -> 1, 7/4 -> 2.
    """
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    return (2 * numerator + denominator) // (2 * denominator)


def compute_stats(matrix: ReportMatrix) -> Stats:
    """
    Summarize a presence matrix.

    ``avg_attendance`` is present students per session and
    ``attendance_rate`` is the percentage of filled cells; both are 0 when
    there is nothing to divide by.
    """
    total_students = len(matrix.sorted_students)
    total_sessions = len(matrix.sorted_sessions)
    total_present = matrix.total_present()

    avg_attendance = round_half_up(total_present, total_sessions) if total_sessions else 0

    cells = total_sessions * total_students
    attendance_rate = round_half_up(100 * total_present, cells) if cells else 0

    return Stats(
        total_students=total_students,
        total_sessions=total_sessions,
        avg_attendance=avg_attendance,
        attendance_rate=attendance_rate
    )


def chart_series(matrix: ReportMatrix, limit: int = 5, tz=None) -> Dict[str, List[Any]]:
    """
    Labels and present counts of the most recent sessions, for charting.

    Args:
        matrix (ReportMatrix): Aggregated report data
        limit (int): Number of trailing sessions to keep
        tz: Display timezone for the labels

    Returns:
        Dict[str, List[Any]]: {'labels': ["Jan 5", ...], 'data': [3, ...]}
    """
    sessions = list(matrix.sorted_sessions)
    if limit and len(sessions) > limit:
        sessions = sessions[-limit:]

    return {
        'labels': [session_date_label(s.generated_at, tz, include_year=False) for s in sessions],
        'data': [matrix.present_count(s) for s in sessions]
    }
