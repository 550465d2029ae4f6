"""
Attendance Store Module - Classroom QR Attendance

This module holds the attendance record store: one session per QR-generation
event, each carrying the students who scanned it. Appends are atomic
insert-if-absent operations so that two concurrent scans by the same student
can never both be recorded.

Features:
- Store interface used by the verifier and the report builder
- SQLite implementation with thread-local connections
- Idempotent schema creation
- UNIQUE(session_id, student_id) duplicate protection
- In-memory implementation with per-session locks
"""

import logging
import os
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional

from attendance_app.modules.models import AttendanceSession, Course, ScanRecord, Student
from attendance_app.modules.timeutils import ensure_utc, format_timestamp, parse_timestamp


class StoreError(Exception):
    """Raised when the backing store cannot complete an operation."""


class AppendResult(Enum):
    OK = 'ok'
    ALREADY_EXISTS = 'already_exists'


class AttendanceStore(ABC):
    """Narrow interface over attendance persistence."""

    @abstractmethod
    def append_scan(self, session_id: str, student_id: str, scanned_at: datetime) -> AppendResult:
        """Atomically record a scan unless the student already scanned this session."""

    @abstractmethod
    def list_sessions(self, course_id: str) -> List[AttendanceSession]:
        """Sessions of a course in creation order."""

    @abstractmethod
    def list_enrolled(self, course_id: str) -> List[Student]:
        """Students enrolled in a course."""

    @abstractmethod
    def get_course(self, course_id: str) -> Optional[Course]:
        pass

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[AttendanceSession]:
        pass

    @abstractmethod
    def create_session(self, course_id: str, generated_at: datetime,
                       expires_at: Optional[datetime] = None) -> AttendanceSession:
        pass

    # Roster seeding, normally performed by user and course management.

    @abstractmethod
    def add_student(self, student: Student) -> None:
        pass

    @abstractmethod
    def add_course(self, course_id: str, course_code: str, course_name: str) -> None:
        pass

    @abstractmethod
    def enroll_student(self, course_id: str, student_id: str) -> None:
        pass


def _new_session_id() -> str:
    return uuid.uuid4().hex


class SQLiteAttendanceStore(AttendanceStore):
    """
    SQLite-backed attendance store.

    Connections are kept per thread and reused. Every public method wraps
    ``sqlite3.Error`` in ``StoreError`` so callers see one failure kind.
    """

    def __init__(self, db_path: str):
        """
        Initialize the store with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file, or ':memory:'
        """
        self.db_path = str(db_path)
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()

        directory = os.path.dirname(self.db_path)
        if directory and self.db_path != ':memory:':
            os.makedirs(directory, exist_ok=True)

        self.initialize_database()

    @contextmanager
    def get_connection(self):
        """
        Context manager yielding this thread's connection.

        Yields:
            sqlite3.Connection: Database connection object
        """
        if not hasattr(self._local, 'connection'):
            self._local.connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=30.0
            )
            self._local.connection.row_factory = sqlite3.Row
            self._local.connection.execute("PRAGMA foreign_keys = ON")

        try:
            yield self._local.connection
        except Exception:
            self._local.connection.rollback()
            raise

    @contextmanager
    def transaction(self):
        """
        Context manager for a transaction with automatic rollback on error.

        Yields:
            sqlite3.Connection: Database connection within transaction
        """
        with self.get_connection() as conn:
            yield conn
            conn.commit()

    def initialize_database(self):
        """
        Create the attendance tables. Safe to call repeatedly.
        """
        try:
            with self.transaction() as conn:
                cursor = conn.cursor()

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS students (
                        id VARCHAR(64) PRIMARY KEY,
                        first_name VARCHAR(50) NOT NULL,
                        last_name VARCHAR(50) NOT NULL,
                        id_number VARCHAR(20),
                        email VARCHAR(100)
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS courses (
                        id VARCHAR(64) PRIMARY KEY,
                        course_code VARCHAR(20) NOT NULL,
                        course_name VARCHAR(100) NOT NULL
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS enrollments (
                        course_id VARCHAR(64) NOT NULL,
                        student_id VARCHAR(64) NOT NULL,
                        PRIMARY KEY (course_id, student_id),
                        FOREIGN KEY (course_id) REFERENCES courses(id),
                        FOREIGN KEY (student_id) REFERENCES students(id)
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS attendance_sessions (
                        id VARCHAR(64) PRIMARY KEY,
                        course_id VARCHAR(64) NOT NULL,
                        generated_at TIMESTAMP NOT NULL,
                        expires_at TIMESTAMP,
                        seq INTEGER NOT NULL,
                        FOREIGN KEY (course_id) REFERENCES courses(id)
                    )
                """)

                # The unique constraint is the duplicate check.
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS attendance_scans (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        session_id VARCHAR(64) NOT NULL,
                        student_id VARCHAR(64) NOT NULL,
                        scanned_at TIMESTAMP NOT NULL,
                        FOREIGN KEY (session_id) REFERENCES attendance_sessions(id),
                        UNIQUE(session_id, student_id)
                    )
                """)

                cursor.execute("CREATE INDEX IF NOT EXISTS idx_sessions_course ON attendance_sessions(course_id)")
                cursor.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_seq ON attendance_sessions(seq)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_scans_session ON attendance_scans(session_id)")

            self.logger.info("Attendance database initialized")

        except sqlite3.Error as e:
            self.logger.error(f"Failed to initialize database: {str(e)}")
            raise StoreError(f"Failed to initialize database: {e}") from e

    def execute_query(self, query, params=(), fetch_all=True):
        """
        Execute a SELECT query and return results.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters
            fetch_all (bool): Whether to fetch all results or just one

        Returns:
            list or dict: Query results
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.execute(query, params)
                if fetch_all:
                    return [dict(row) for row in cursor.fetchall()]
                row = cursor.fetchone()
                return dict(row) if row else None

        except sqlite3.Error as e:
            self.logger.error(f"Query execution failed: {str(e)}")
            raise StoreError(str(e)) from e

    def execute_update(self, query, params=()):
        try:
            with self.transaction() as conn:
                cursor = conn.execute(query, params)
                return cursor.rowcount

        except sqlite3.Error as e:
            self.logger.error(f"Update execution failed: {str(e)}")
            raise StoreError(str(e)) from e

    def append_scan(self, session_id: str, student_id: str, scanned_at: datetime) -> AppendResult:
        if self.get_session_row(session_id) is None:
            raise StoreError(f"Unknown attendance session: {session_id}")

        try:
            with self.transaction() as conn:
                conn.execute(
                    """INSERT INTO attendance_scans (session_id, student_id, scanned_at)
                       VALUES (?, ?, ?)""",
                    (session_id, student_id, format_timestamp(scanned_at))
                )
            return AppendResult.OK

        except sqlite3.IntegrityError:
            return AppendResult.ALREADY_EXISTS
        except sqlite3.Error as e:
            self.logger.error(f"Failed to append scan for session {session_id}: {str(e)}")
            raise StoreError(f"Failed to record attendance: {e}") from e

    def get_session_row(self, session_id: str) -> Optional[Dict]:
        return self.execute_query(
            "SELECT * FROM attendance_sessions WHERE id = ?",
            (session_id,),
            fetch_all=False
        )

    def _load_scans(self, session_ids: Iterable[str]) -> Dict[str, List[ScanRecord]]:
        ids = list(session_ids)
        scans: Dict[str, List[ScanRecord]] = {session_id: [] for session_id in ids}
        if not ids:
            return scans

        placeholders = ','.join('?' for _ in ids)
        rows = self.execute_query(
            f"""SELECT session_id, student_id, scanned_at FROM attendance_scans
                WHERE session_id IN ({placeholders})
                ORDER BY id""",
            tuple(ids)
        )
        for row in rows:
            scans[row['session_id']].append(
                ScanRecord(row['student_id'], parse_timestamp(row['scanned_at']))
            )
        return scans

    @staticmethod
    def _session_from_row(row: Dict, scans: List[ScanRecord]) -> AttendanceSession:
        return AttendanceSession(
            id=row['id'],
            course_id=row['course_id'],
            generated_at=parse_timestamp(row['generated_at']),
            expires_at=parse_timestamp(row['expires_at']) if row['expires_at'] else None,
            scans=tuple(scans)
        )

    def get_session(self, session_id: str) -> Optional[AttendanceSession]:
        row = self.get_session_row(session_id)
        if row is None:
            return None
        return self._session_from_row(row, self._load_scans([session_id])[session_id])

    def list_sessions(self, course_id: str) -> List[AttendanceSession]:
        rows = self.execute_query(
            "SELECT * FROM attendance_sessions WHERE course_id = ? ORDER BY seq",
            (course_id,)
        )
        scans = self._load_scans(row['id'] for row in rows)
        return [self._session_from_row(row, scans[row['id']]) for row in rows]

    def list_enrolled(self, course_id: str) -> List[Student]:
        rows = self.execute_query(
            """SELECT s.* FROM students s
               JOIN enrollments e ON e.student_id = s.id
               WHERE e.course_id = ?
               ORDER BY s.rowid""",
            (course_id,)
        )
        return [
            Student(
                id=row['id'],
                first_name=row['first_name'],
                last_name=row['last_name'],
                id_number=row['id_number'] or '',
                email=row['email']
            )
            for row in rows
        ]

    def get_course(self, course_id: str) -> Optional[Course]:
        row = self.execute_query(
            "SELECT * FROM courses WHERE id = ?",
            (course_id,),
            fetch_all=False
        )
        if row is None:
            return None

        enrolled = self.execute_query(
            "SELECT student_id FROM enrollments WHERE course_id = ?",
            (course_id,)
        )
        return Course(
            id=row['id'],
            course_code=row['course_code'],
            course_name=row['course_name'],
            enrolled_student_ids=frozenset(item['student_id'] for item in enrolled)
        )

    def create_session(self, course_id: str, generated_at: datetime,
                       expires_at: Optional[datetime] = None) -> AttendanceSession:
        session_id = _new_session_id()
        try:
            with self.transaction() as conn:
                # seq is assigned inside the INSERT so it is read under the write lock
                conn.execute(
                    """INSERT INTO attendance_sessions (id, course_id, generated_at, expires_at, seq)
                       VALUES (?, ?, ?, ?,
                               (SELECT COALESCE(MAX(seq), 0) + 1 FROM attendance_sessions))""",
                    (
                        session_id,
                        course_id,
                        format_timestamp(generated_at),
                        format_timestamp(expires_at) if expires_at else None
                    )
                )
        except sqlite3.Error as e:
            self.logger.error(f"Failed to create session for course {course_id}: {str(e)}")
            raise StoreError(f"Failed to create attendance session: {e}") from e

        return AttendanceSession(
            id=session_id,
            course_id=course_id,
            generated_at=ensure_utc(generated_at),
            expires_at=ensure_utc(expires_at) if expires_at else None
        )

    def add_student(self, student: Student) -> None:
        self.execute_update(
            """INSERT INTO students (id, first_name, last_name, id_number, email)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   first_name = excluded.first_name,
                   last_name = excluded.last_name,
                   id_number = excluded.id_number,
                   email = excluded.email""",
            (student.id, student.first_name, student.last_name, student.id_number, student.email)
        )

    def add_course(self, course_id: str, course_code: str, course_name: str) -> None:
        self.execute_update(
            """INSERT INTO courses (id, course_code, course_name) VALUES (?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   course_code = excluded.course_code,
                   course_name = excluded.course_name""",
            (course_id, course_code, course_name)
        )

    def enroll_student(self, course_id: str, student_id: str) -> None:
        self.execute_update(
            "INSERT OR IGNORE INTO enrollments (course_id, student_id) VALUES (?, ?)",
            (course_id, student_id)
        )

    def close_all_connections(self):
        """Close this thread's connection."""
        if hasattr(self._local, 'connection'):
            self._local.connection.close()
            del self._local.connection


class InMemoryAttendanceStore(AttendanceStore):
    """
    Dict-backed store. Check-and-append runs under a lock owned by the
    session, so scans for different sessions never contend.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._students: Dict[str, Student] = {}
        self._courses: Dict[str, Dict] = {}
        self._enrollments: Dict[str, List[str]] = {}
        self._sessions: Dict[str, Dict] = {}
        self._session_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._session_locks.setdefault(session_id, threading.Lock())

    def append_scan(self, session_id: str, student_id: str, scanned_at: datetime) -> AppendResult:
        session = self._sessions.get(session_id)
        if session is None:
            raise StoreError(f"Unknown attendance session: {session_id}")

        with self._lock_for(session_id):
            if any(scan.student_id == student_id for scan in session['scans']):
                return AppendResult.ALREADY_EXISTS
            session['scans'].append(ScanRecord(student_id, ensure_utc(scanned_at)))
            return AppendResult.OK

    def _snapshot(self, session_id: str) -> AttendanceSession:
        session = self._sessions[session_id]
        with self._lock_for(session_id):
            scans = tuple(session['scans'])
        return AttendanceSession(
            id=session_id,
            course_id=session['course_id'],
            generated_at=session['generated_at'],
            expires_at=session['expires_at'],
            scans=scans
        )

    def list_sessions(self, course_id: str) -> List[AttendanceSession]:
        with self._registry_lock:
            session_ids = [sid for sid, s in self._sessions.items() if s['course_id'] == course_id]
        return [self._snapshot(session_id) for session_id in session_ids]

    def list_enrolled(self, course_id: str) -> List[Student]:
        return [
            self._students[student_id]
            for student_id in self._enrollments.get(course_id, [])
            if student_id in self._students
        ]

    def get_course(self, course_id: str) -> Optional[Course]:
        course = self._courses.get(course_id)
        if course is None:
            return None
        return Course(
            id=course_id,
            course_code=course['course_code'],
            course_name=course['course_name'],
            enrolled_student_ids=frozenset(self._enrollments.get(course_id, []))
        )

    def get_session(self, session_id: str) -> Optional[AttendanceSession]:
        if session_id not in self._sessions:
            return None
        return self._snapshot(session_id)

    def create_session(self, course_id: str, generated_at: datetime,
                       expires_at: Optional[datetime] = None) -> AttendanceSession:
        session_id = _new_session_id()
        with self._registry_lock:
            self._sessions[session_id] = {
                'course_id': course_id,
                'generated_at': ensure_utc(generated_at),
                'expires_at': ensure_utc(expires_at) if expires_at else None,
                'scans': []
            }
        return self._snapshot(session_id)

    def add_student(self, student: Student) -> None:
        self._students[student.id] = student

    def add_course(self, course_id: str, course_code: str, course_name: str) -> None:
        self._courses[course_id] = {'course_code': course_code, 'course_name': course_name}
        self._enrollments.setdefault(course_id, [])

    def enroll_student(self, course_id: str, student_id: str) -> None:
        enrolled = self._enrollments.setdefault(course_id, [])
        if student_id not in enrolled:
            enrolled.append(student_id)
