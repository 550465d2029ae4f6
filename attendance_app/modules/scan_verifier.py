"""
Scan Verifier Module - Classroom QR Attendance

Decides whether a scanned QR code produces an attendance record. Checks run
in a fixed order and the first failure wins; nothing is written unless every
check passes.

Check order:
1. Payload parses into a token
2. Token course matches the course the student is scanning for
3. Student is enrolled in that course
4. Token has not expired at the time it was presented
5. Token refers to a session of that course, and that session has not
   expired either
6. Student has not already scanned the session (atomic with the append)
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from attendance_app.modules.attendance_store import AppendResult, AttendanceStore
from attendance_app.modules.models import Course, ScanAttempt
from attendance_app.modules.qr_token import ParseError, QRToken, is_valid, parse_token
from attendance_app.modules.timeutils import format_timestamp


class RejectReason(Enum):
    MALFORMED_PAYLOAD = 'MalformedPayload'
    WRONG_COURSE = 'WrongCourse'
    NOT_ENROLLED = 'NotEnrolled'
    EXPIRED = 'Expired'
    ALREADY_SCANNED = 'AlreadyScanned'

    @property
    def is_input_error(self) -> bool:
        return self is not RejectReason.ALREADY_SCANNED


@dataclass(frozen=True)
class Accept:
    session_id: str
    student_id: str
    scanned_at: datetime

    accepted = True

    def to_dict(self):
        return {
            'success': True,
            'message': 'Attendance recorded successfully',
            'session_id': self.session_id,
            'student_id': self.student_id,
            'scanned_at': format_timestamp(self.scanned_at)
        }


@dataclass(frozen=True)
class Reject:
    reason: RejectReason
    detail: str

    accepted = False

    def to_dict(self):
        return {
            'success': False,
            'message': self.detail,
            'error_type': self.reason.value
        }


ScanResult = Union[Accept, Reject]

EXPIRED_MESSAGE = 'This QR code has expired. Please ask your lecturer to generate a new one.'


def check_attempt(attempt: ScanAttempt, course: Course,
                  token: Union[QRToken, ParseError]) -> Optional[Reject]:
    """
    Run the stateless checks against a parsed payload.

    Args:
        attempt (ScanAttempt): The scan being verified
        course (Course): Snapshot of the claimed course
        token (QRToken | ParseError): Result of parsing the payload

    Returns:
        Reject for the first failing check, or None when all pass
    """
    if isinstance(token, ParseError):
        return Reject(RejectReason.MALFORMED_PAYLOAD, token.message)

    if token.course_id != attempt.claimed_course_id or token.course_id != course.id:
        return Reject(
            RejectReason.WRONG_COURSE,
            f"This QR code is for {token.course_code or 'another course'}. "
            f"You are trying to mark attendance for {course.course_code}."
        )

    if not course.is_enrolled(attempt.student_id):
        return Reject(
            RejectReason.NOT_ENROLLED,
            f"You are not enrolled in {course.course_code or 'this course'}. "
            f"Attendance cannot be marked."
        )

    if token.expires_at is not None and not is_valid(token, attempt.presented_at):
        return Reject(RejectReason.EXPIRED, EXPIRED_MESSAGE)

    return None


class ScanVerifier:
    """
    Verifies scan attempts and appends accepted scans to the store.

    Holds no state of its own; the store is the only shared resource.
    Store failures propagate as ``StoreError``.
    """

    def __init__(self, store: AttendanceStore):
        self.store = store
        self.logger = logging.getLogger(__name__)

    def verify(self, attempt: ScanAttempt, course: Course) -> ScanResult:
        token = parse_token(attempt.raw_payload)

        rejection = check_attempt(attempt, course, token)
        if rejection is not None:
            return rejection

        session = self.store.get_session(token.session_id)
        if session is None or session.course_id != course.id:
            self.logger.debug(f"Scan names unknown session {token.session_id} for course {course.id}")
            return Reject(
                RejectReason.MALFORMED_PAYLOAD,
                'Invalid QR code: unknown attendance session'
            )

        # The stored expiry also binds payloads that dropped or altered expiresAt.
        if not is_valid(replace(token, expires_at=session.expires_at), attempt.presented_at):
            return Reject(RejectReason.EXPIRED, EXPIRED_MESSAGE)

        result = self.store.append_scan(session.id, attempt.student_id, attempt.presented_at)
        if result is AppendResult.ALREADY_EXISTS:
            self.logger.debug(f"Duplicate scan: student {attempt.student_id}, session {session.id}")
            return Reject(
                RejectReason.ALREADY_SCANNED,
                'Attendance already recorded for this session.'
            )

        return Accept(session.id, attempt.student_id, attempt.presented_at)
