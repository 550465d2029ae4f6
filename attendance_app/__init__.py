# Classroom QR Attendance - App Package
"""
Attendance verification and reporting engine for QR code based classroom
attendance. Students scan a lecturer-issued QR code; reports pivot the
recorded scans into a per-student presence matrix.
"""

__version__ = "1.0.0"
__description__ = "QR code classroom attendance verification and reporting"

# Import core components for easy access
from .modules.attendance_manager import AttendanceManager, AttendanceReport, CourseNotFoundError
from .modules.attendance_store import (
    AppendResult,
    AttendanceStore,
    InMemoryAttendanceStore,
    SQLiteAttendanceStore,
    StoreError,
)
from .modules.csv_serializer import parse_csv, to_csv
from .modules.models import AttendanceSession, Course, ScanAttempt, ScanRecord, Student
from .modules.qr_token import ParseError, QRToken, QRTokenIssuer, is_valid, parse_token
from .modules.report_aggregator import Presence, ReportMatrix, build_matrix
from .modules.scan_verifier import Accept, Reject, RejectReason, ScanVerifier
from .modules.statistics import Stats, compute_stats

__all__ = [
    'Accept',
    'AppendResult',
    'AttendanceManager',
    'AttendanceReport',
    'AttendanceSession',
    'AttendanceStore',
    'Course',
    'CourseNotFoundError',
    'InMemoryAttendanceStore',
    'ParseError',
    'Presence',
    'QRToken',
    'QRTokenIssuer',
    'Reject',
    'RejectReason',
    'ReportMatrix',
    'SQLiteAttendanceStore',
    'ScanAttempt',
    'ScanRecord',
    'ScanVerifier',
    'Stats',
    'StoreError',
    'Student',
    'build_matrix',
    'compute_stats',
    'is_valid',
    'parse_csv',
    'parse_token',
    'to_csv',
]
