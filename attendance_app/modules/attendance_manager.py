"""
Attendance Manager Module - Classroom QR Attendance

This module ties the attendance components together for the web layer. It
issues QR codes for class sessions, records student scans through the
verifier, and produces course attendance reports.

Features:
- Session creation and QR code issuance
- Scan verification and recording
- Presence matrix, statistics and chart data per course
- CSV report export with timestamped file names
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from attendance_app.modules.attendance_store import AttendanceStore
from attendance_app.modules.csv_serializer import report_filename, to_csv
from attendance_app.modules.models import Course, ScanAttempt
from attendance_app.modules.qr_token import QRToken, QRTokenIssuer
from attendance_app.modules.report_aggregator import ReportMatrix, build_matrix
from attendance_app.modules.scan_verifier import Accept, ScanResult, ScanVerifier
from attendance_app.modules.statistics import Stats, chart_series, compute_stats
from attendance_app.modules.timeutils import format_timestamp, utcnow

NO_RECORDS_MESSAGE = 'No attendance records found for this course'


class CourseNotFoundError(LookupError):
    """Raised when an operation names a course the store does not know."""


@dataclass
class AttendanceReport:
    """Everything a report request returns for one course."""
    matrix: ReportMatrix
    stats: Stats
    csv_text: str
    filename: str
    chart: Dict[str, List[Any]] = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return not self.matrix.is_empty

    def to_dict(self, tz=None) -> Dict[str, Any]:
        frame = self.matrix.to_dataframe(tz)
        course = self.matrix.course
        result = {
            'course': {
                'id': course.id,
                'course_code': course.course_code,
                'course_name': course.course_name
            },
            'sessions': [
                {
                    'id': session.id,
                    'generated_at': format_timestamp(session.generated_at),
                    'label': label
                }
                for session, label in zip(self.matrix.sorted_sessions, self.matrix.session_labels(tz))
            ],
            'rows': [
                {
                    'student_id': student.id,
                    'id_number': row.iloc[0],
                    'student_name': name,
                    'attendance': list(row.iloc[1:])
                }
                for student, (name, row) in zip(self.matrix.sorted_students, frame.iterrows())
            ],
            'stats': self.stats.to_dict(),
            'chart': self.chart,
            'filename': self.filename
        }
        if not self.has_data:
            result['message'] = NO_RECORDS_MESSAGE
        return result


class AttendanceManager:
    """
    Coordinates QR issuance, scan recording and reporting for courses.
    """

    def __init__(self, store: AttendanceStore, qr_issuer: Optional[QRTokenIssuer] = None,
                 default_expiry_minutes: Optional[int] = 15, display_timezone=None,
                 chart_sessions: int = 5):
        """
        Initialize the attendance manager.

        Args:
            store (AttendanceStore): Attendance record store
            qr_issuer (QRTokenIssuer): Renderer for QR images
            default_expiry_minutes (int): Lifetime of issued codes; None for no expiry
            display_timezone: Timezone used for report labels
            chart_sessions (int): Number of recent sessions in chart data
        """
        self.store = store
        self.verifier = ScanVerifier(store)
        self.qr_issuer = qr_issuer or QRTokenIssuer()
        self.default_expiry_minutes = default_expiry_minutes
        self.display_timezone = display_timezone
        self.chart_sessions = chart_sessions
        self.logger = logging.getLogger(__name__)

    def _require_course(self, course_id: str) -> Course:
        course = self.store.get_course(course_id)
        if course is None:
            raise CourseNotFoundError(f"Course not found: {course_id}")
        return course

    def issue_qr_code(self, course_id: str, expires_in_minutes: Optional[int] = None,
                      with_caption: bool = False, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Open a new attendance session for a course and render its QR code.

        Args:
            course_id (str): Course the code is for
            expires_in_minutes (int): Overrides the default lifetime
            with_caption (bool): Draw the course code under the QR image
            now (datetime): Generation time, defaults to the current UTC time

        Returns:
            Dict[str, Any]: Session id, payload, expiry and base64 image
        """
        course = self._require_course(course_id)
        generated_at = now or utcnow()

        minutes = expires_in_minutes if expires_in_minutes is not None else self.default_expiry_minutes
        expires_at = generated_at + timedelta(minutes=minutes) if minutes else None

        session = self.store.create_session(course.id, generated_at, expires_at)
        token = QRToken(
            session_id=session.id,
            course_id=course.id,
            course_code=course.course_code,
            expires_at=session.expires_at
        )
        rendered = self.qr_issuer.render(token, caption=course.course_code if with_caption else None)

        self.logger.info(f"QR code issued for course {course.course_code}, session {session.id}")
        return {
            'session_id': session.id,
            'course_id': course.id,
            'course_code': course.course_code,
            'generated_at': format_timestamp(session.generated_at),
            'expires_at': format_timestamp(session.expires_at) if session.expires_at else None,
            'qr_data': rendered['qr_data'],
            'image_base64': rendered['image_base64']
        }

    def record_scan(self, attempt: ScanAttempt) -> ScanResult:
        """
        Verify a scan attempt and record it when accepted.

        Input errors come back as Reject values; StoreError propagates so a
        failed write is never reported as present.
        """
        course = self._require_course(attempt.claimed_course_id)
        result = self.verifier.verify(attempt, course)

        if isinstance(result, Accept):
            self.logger.info(
                f"Attendance recorded: student {attempt.student_id}, "
                f"course {course.course_code}, session {result.session_id}"
            )
        else:
            self.logger.info(
                f"Scan not recorded for student {attempt.student_id} "
                f"in course {course.course_code}: {result.reason.value}"
            )
        return result

    def build_report_matrix(self, course_id: str) -> ReportMatrix:
        course = self._require_course(course_id)
        sessions = self.store.list_sessions(course.id)
        roster = self.store.list_enrolled(course.id)
        return build_matrix(course, sessions, roster)

    def generate_report(self, course_id: str, now: Optional[datetime] = None) -> AttendanceReport:
        """
        Build the full attendance report for a course.

        Args:
            course_id (str): Course to report on
            now (datetime): Timestamp used in the export file name

        Returns:
            AttendanceReport: matrix, stats, CSV text and chart data
        """
        matrix = self.build_report_matrix(course_id)
        course = matrix.course

        report = AttendanceReport(
            matrix=matrix,
            stats=compute_stats(matrix),
            csv_text=to_csv(course.course_name, matrix, self.display_timezone),
            filename=report_filename(course.course_code, now or utcnow()),
            chart=chart_series(matrix, limit=self.chart_sessions, tz=self.display_timezone)
        )

        if report.has_data:
            self.logger.info(
                f"Attendance report generated for {course.course_code}: "
                f"{report.stats.total_students} students, {report.stats.total_sessions} sessions"
            )
        else:
            self.logger.info(f"No attendance sessions for course {course.course_code}")
        return report

    def save_report(self, report: AttendanceReport, output_dir: str) -> str:
        """
        Write a report's CSV text to disk.

        Args:
            report (AttendanceReport): Generated report
            output_dir (str): Directory for the file

        Returns:
            str: Path of the written file
        """
        os.makedirs(output_dir, exist_ok=True)
        file_path = os.path.join(output_dir, report.filename)
        with open(file_path, 'w', encoding='utf-8', newline='') as f:
            f.write(report.csv_text)

        self.logger.info(f"Attendance report saved to {file_path}")
        return file_path
