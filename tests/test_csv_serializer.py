"""Tests for the attendance CSV export."""
from datetime import datetime, timedelta, timezone

import pytest

from attendance_app.modules.csv_serializer import parse_csv, report_filename, to_csv
from attendance_app.modules.models import AttendanceSession, Course, ScanRecord, Student
from attendance_app.modules.report_aggregator import build_matrix

COURSE = Course(id='CS101', course_code='CS101', course_name='Intro to CS',
                enrolled_student_ids=frozenset({'S1', 'S2'}))
DAY1 = datetime(2025, 1, 5, 9, 0, tzinfo=timezone.utc)
ROSTER = [
    Student(id='S2', first_name='S2', last_name='Park', id_number='1002'),
    Student(id='S1', first_name='S1', last_name='Lee', id_number='1001'),
]


def session(session_id, generated_at, *student_ids):
    return AttendanceSession(
        id=session_id,
        course_id='CS101',
        generated_at=generated_at,
        scans=tuple(ScanRecord(sid, generated_at) for sid in student_ids)
    )


def test_single_session_document():
    matrix = build_matrix(COURSE, [session('x', DAY1, 'S1')], ROSTER)
    assert to_csv('Intro to CS', matrix) == (
        '"Course: Intro to CS"\n'
        '"ID Number","Student Name","Jan 5, 2025"\n'
        '"1001","Lee, S1","Present"\n'
        '"1002","Park, S2","Absent"\n'
    )


def test_columns_follow_chronological_order():
    sessions = [session('b', datetime(2025, 2, 14, tzinfo=timezone.utc), 'S2'), session('a', DAY1, 'S1')]
    text = to_csv('Intro to CS', build_matrix(COURSE, sessions, ROSTER))
    lines = text.splitlines()

    assert lines[1] == '"ID Number","Student Name","Jan 5, 2025","Feb 14, 2025"'
    assert lines[2] == '"1001","Lee, S1","Present","Absent"'
    assert lines[3] == '"1002","Park, S2","Absent","Present"'


def test_embedded_quotes_are_doubled():
    roster = [Student(id='S1', first_name='Jo "JJ"', last_name="O'Neil", id_number='10"01')]
    matrix = build_matrix(COURSE, [session('x', DAY1, 'S1')], roster)
    text = to_csv('Intro "Honors"', matrix)
    lines = text.splitlines()

    assert lines[0] == '"Course: Intro ""Honors"""'
    assert lines[2] == '"10""01","O\'Neil, Jo ""JJ""","Present"'


def test_missing_id_number_is_blank():
    roster = [Student(id='S1', first_name='A', last_name='Lee')]
    text = to_csv('Intro to CS', build_matrix(COURSE, [session('x', DAY1)], roster))
    assert text.splitlines()[2] == '"","Lee, A","Absent"'


def test_no_sessions_has_header_only_columns():
    text = to_csv('Intro to CS', build_matrix(COURSE, [], ROSTER))
    assert text.splitlines() == [
        '"Course: Intro to CS"',
        '"ID Number","Student Name"',
        '"1001","Lee, S1"',
        '"1002","Park, S2"',
    ]


def test_labels_can_use_display_timezone():
    evening = datetime(2025, 1, 5, 20, 0, tzinfo=timezone.utc)
    text = to_csv('Intro to CS', build_matrix(COURSE, [session('x', evening)], ROSTER), tz='Asia/Manila')
    assert '"Jan 6, 2025"' in text.splitlines()[1]


def test_parse_back_reproduces_grid():
    sessions = [
        session('a', DAY1, 'S1'),
        session('b', DAY1 + timedelta(days=2), 'S1', 'S2'),
        session('c', DAY1 + timedelta(days=9)),
    ]
    matrix = build_matrix(COURSE, sessions, ROSTER)
    course_name, labels, rows = parse_csv(to_csv('Intro, to CS', matrix))

    assert course_name == 'Intro, to CS'
    assert labels == ['Jan 5, 2025', 'Jan 7, 2025', 'Jan 14, 2025']
    for (student, cells), row in zip(matrix.rows(), rows):
        assert row[:2] == [student.id_number, student.display_name]
        assert row[2:] == [presence.value for presence in cells]


@pytest.mark.parametrize('text', [
    '',
    '"Course: Intro"\n',
    '"Title"\n"ID Number","Student Name"\n',
    '"Course: Intro"\n"Name","ID"\n',
])
def test_parse_rejects_non_reports(text):
    with pytest.raises(ValueError):
        parse_csv(text)


def test_report_filename():
    generated = datetime(2025, 1, 5, 9, 30, 15, 250000, tzinfo=timezone.utc)
    assert report_filename('CS101', generated) == 'CS101_Attendance_2025-01-05T09-30-15-250Z.csv'
