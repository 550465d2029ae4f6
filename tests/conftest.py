"""Shared fixtures for the attendance tests."""
from datetime import datetime, timezone

import pytest

from app import create_app
from attendance_app.modules.attendance_manager import AttendanceManager
from attendance_app.modules.attendance_store import InMemoryAttendanceStore, SQLiteAttendanceStore
from attendance_app.modules.models import Student

CLASS_START = datetime(2025, 1, 5, 9, 0, tzinfo=timezone.utc)

STUDENTS = [
    Student(id='S1', first_name='S1', last_name='Lee', id_number='1001', email='s1@school.edu'),
    Student(id='S2', first_name='S2', last_name='Park', id_number='1002', email='s2@school.edu'),
]


def seed_course(store, course_id='CS101', course_code='CS101', course_name='Intro to CS',
                students=STUDENTS):
    """Create a course and enroll the given students."""
    store.add_course(course_id, course_code, course_name)
    for student in students:
        store.add_student(student)
        store.enroll_student(course_id, student.id)
    return store.get_course(course_id)


@pytest.fixture(params=['memory', 'sqlite'])
def store(request, tmp_path):
    """Both store implementations, seeded with CS101 and CS201."""
    if request.param == 'memory':
        backing = InMemoryAttendanceStore()
    else:
        backing = SQLiteAttendanceStore(str(tmp_path / 'attendance.db'))

    seed_course(backing)
    seed_course(backing, course_id='CS201', course_code='CS201', course_name='Data Structures',
                students=STUDENTS[:1])
    yield backing

    if request.param == 'sqlite':
        backing.close_all_connections()


@pytest.fixture
def course(store):
    return store.get_course('CS101')


@pytest.fixture
def manager(store):
    return AttendanceManager(store, default_expiry_minutes=15)


@pytest.fixture
def app(tmp_path):
    """Create test app backed by a temporary SQLite file."""
    store = SQLiteAttendanceStore(str(tmp_path / 'app.db'))
    seed_course(store)
    app = create_app('testing', store=store)
    yield app
    store.close_all_connections()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()
