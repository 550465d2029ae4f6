"""Tests for presence matrix construction."""
from datetime import datetime, timedelta, timezone

from attendance_app.modules.models import AttendanceSession, Course, ScanRecord, Student
from attendance_app.modules.report_aggregator import (
    Presence,
    build_matrix,
    collation_key,
    sort_roster,
)

COURSE = Course(id='CS101', course_code='CS101', course_name='Intro to CS',
                enrolled_student_ids=frozenset({'S1', 'S2', 'S3'}))
DAY1 = datetime(2025, 1, 5, 9, 0, tzinfo=timezone.utc)


def student(student_id, first, last, id_number=''):
    return Student(id=student_id, first_name=first, last_name=last, id_number=id_number)


def session(session_id, generated_at, *student_ids):
    return AttendanceSession(
        id=session_id,
        course_id='CS101',
        generated_at=generated_at,
        scans=tuple(ScanRecord(sid, generated_at + timedelta(minutes=1)) for sid in student_ids)
    )


def names(students):
    return [s.display_name for s in students]


def test_roster_sorted_case_insensitively_by_last_name():
    roster = [student('1', 'Zara', 'Ali'), student('2', 'amy', 'Smith')]
    assert names(sort_roster(reversed(roster))) == ['Ali, Zara', 'Smith, amy']


def test_lowercase_last_name_sorts_among_capitalized():
    roster = [student('1', 'Ann', 'zimmer'), student('2', 'Bob', 'Young'), student('3', 'Cy', 'adams')]
    assert names(sort_roster(roster)) == ['adams, Cy', 'Young, Bob', 'zimmer, Ann']


def test_first_name_breaks_last_name_ties():
    roster = [student('1', 'bea', 'Cruz'), student('2', 'Al', 'cruz')]
    assert names(sort_roster(roster)) == ['cruz, Al', 'Cruz, bea']


def test_accented_names_sort_with_plain_letters():
    roster = [student('1', 'Ana', 'Zapata'), student('2', 'Luis', 'Álvarez'), student('3', 'Eva', 'Bravo')]
    assert names(sort_roster(roster)) == ['Álvarez, Luis', 'Bravo, Eva', 'Zapata, Ana']


def test_collation_key_folds_case_and_accents():
    assert collation_key('Émile') == collation_key('emile')


def test_sessions_sorted_chronologically():
    later = session('b', DAY1 + timedelta(days=7))
    earlier = session('a', DAY1)
    matrix = build_matrix(COURSE, [later, earlier], [])
    assert [s.id for s in matrix.sorted_sessions] == ['a', 'b']


def test_equal_timestamps_keep_arrival_order():
    first = session('first', DAY1)
    second = session('second', DAY1)
    matrix = build_matrix(COURSE, [first, second], [])
    assert [s.id for s in matrix.sorted_sessions] == ['first', 'second']


def test_presence_matrix_is_total():
    roster = [student('S1', 'A', 'Lee'), student('S2', 'B', 'Park'), student('S3', 'C', 'Kim')]
    sessions = [session('x', DAY1, 'S1'), session('y', DAY1 + timedelta(days=1), 'S1', 'S3')]
    matrix = build_matrix(COURSE, sessions, roster)

    for s in matrix.sorted_students:
        for col in matrix.sorted_sessions:
            assert matrix.cell(s, col) in (Presence.PRESENT, Presence.ABSENT)

    grid = {s.id: [p.value for p in cells] for s, cells in matrix.rows()}
    assert grid == {
        'S1': ['Present', 'Present'],
        'S2': ['Absent', 'Absent'],
        'S3': ['Absent', 'Present'],
    }


def test_scans_from_students_not_on_roster_are_ignored():
    roster = [student('S1', 'A', 'Lee')]
    matrix = build_matrix(COURSE, [session('x', DAY1, 'S1', 'DROPPED')], roster)
    assert matrix.present_count(matrix.sorted_sessions[0]) == 1


def test_empty_sessions_give_zero_columns():
    matrix = build_matrix(COURSE, [], [student('S1', 'A', 'Lee')])
    assert matrix.is_empty
    assert matrix.rows()[0][1] == []


def test_empty_roster_gives_zero_rows():
    matrix = build_matrix(COURSE, [session('x', DAY1, 'S1')], [])
    assert matrix.rows() == []
    assert matrix.total_present() == 0


def test_build_is_deterministic():
    roster = [student('S2', 'B', 'Park'), student('S1', 'A', 'Lee')]
    sessions = [session('y', DAY1 + timedelta(days=1), 'S2'), session('x', DAY1, 'S1')]
    assert build_matrix(COURSE, sessions, roster) == build_matrix(COURSE, sessions, roster)


def test_dataframe_view():
    roster = [student('S2', 'S2', 'Park', '1002'), student('S1', 'S1', 'Lee', '1001')]
    matrix = build_matrix(COURSE, [session('x', DAY1, 'S1')], roster)
    frame = matrix.to_dataframe()

    assert list(frame.index) == ['Lee, S1', 'Park, S2']
    assert list(frame.columns) == ['ID Number', 'Jan 5, 2025']
    assert frame.iloc[0].tolist() == ['1001', 'Present']
    assert frame.iloc[1].tolist() == ['1002', 'Absent']


def test_session_labels_use_display_timezone():
    late_evening = datetime(2025, 1, 5, 23, 30, tzinfo=timezone.utc)
    matrix = build_matrix(COURSE, [session('x', late_evening)], [])
    assert matrix.session_labels() == ['Jan 5, 2025']
    assert matrix.session_labels('Asia/Manila') == ['Jan 6, 2025']
