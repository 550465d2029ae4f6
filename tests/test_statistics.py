"""Tests for attendance statistics."""
from datetime import datetime, timedelta, timezone

import pytest

from attendance_app.modules.models import AttendanceSession, Course, ScanRecord, Student
from attendance_app.modules.report_aggregator import build_matrix
from attendance_app.modules.statistics import Stats, chart_series, compute_stats, round_half_up

COURSE = Course(id='CS101', course_code='CS101', course_name='Intro to CS')
DAY1 = datetime(2025, 1, 5, 9, 0, tzinfo=timezone.utc)


def roster(count):
    return [Student(id=f'S{i}', first_name=f'S{i}', last_name=f'Last{i:02d}') for i in range(1, count + 1)]


def sessions(*attendees):
    return [
        AttendanceSession(
            id=f'sess-{day}',
            course_id='CS101',
            generated_at=DAY1 + timedelta(days=day),
            scans=tuple(ScanRecord(sid, DAY1 + timedelta(days=day)) for sid in ids)
        )
        for day, ids in enumerate(attendees)
    ]


@pytest.mark.parametrize('numerator, denominator, expected', [
    (0, 3, 0),
    (1, 2, 1),
    (5, 2, 3),
    (3, 2, 2),
    (7, 4, 2),
    (5, 4, 1),
    (250, 100, 3),
    (249, 100, 2),
])
def test_round_half_up(numerator, denominator, expected):
    assert round_half_up(numerator, denominator) == expected


def test_round_half_up_rejects_zero_denominator():
    with pytest.raises(ValueError):
        round_half_up(1, 0)


def test_empty_session_list():
    stats = compute_stats(build_matrix(COURSE, [], roster(3)))
    assert stats == Stats(total_students=3, total_sessions=0, avg_attendance=0, attendance_rate=0)


def test_empty_roster():
    stats = compute_stats(build_matrix(COURSE, sessions(['S1']), []))
    assert stats == Stats(total_students=0, total_sessions=1, avg_attendance=0, attendance_rate=0)


def test_one_of_two_present():
    stats = compute_stats(build_matrix(COURSE, sessions(['S1']), roster(2)))
    assert stats.to_dict() == {
        'total_students': 2,
        'total_sessions': 1,
        'avg_attendance': 1,
        'attendance_rate': 50,
    }


def test_average_rounds_half_up():
    # 3 present over 2 sessions = 1.5
    stats = compute_stats(build_matrix(COURSE, sessions(['S1', 'S2'], ['S1']), roster(3)))
    assert stats.avg_attendance == 2
    # 3 of 6 cells
    assert stats.attendance_rate == 50


def test_rate_rounds_to_nearest_percent():
    # 1 of 3 cells = 33.33%, 2 of 3 = 66.67%
    assert compute_stats(build_matrix(COURSE, sessions(['S1']), roster(3))).attendance_rate == 33
    assert compute_stats(build_matrix(COURSE, sessions(['S1', 'S2']), roster(3))).attendance_rate == 67


def test_rate_exact_half_percent_rounds_up():
    # 1 of 8 cells = 12.5%
    stats = compute_stats(build_matrix(COURSE, sessions(['S1']), roster(8)))
    assert stats.attendance_rate == 13
    # 1 present over 2 sessions = 0.5
    assert compute_stats(build_matrix(COURSE, sessions(['S1'], []), roster(8))).avg_attendance == 1


def test_scans_outside_roster_do_not_count():
    stats = compute_stats(build_matrix(COURSE, sessions(['S1', 'GHOST']), roster(2)))
    assert stats.avg_attendance == 1
    assert stats.attendance_rate == 50


def test_chart_series_keeps_last_five_sessions():
    matrix = build_matrix(COURSE, sessions(*[['S1']] * 4, ['S1', 'S2'], [], ['S2']), roster(2))
    series = chart_series(matrix)

    assert series['labels'] == ['Jan 7', 'Jan 8', 'Jan 9', 'Jan 10', 'Jan 11']
    assert series['data'] == [1, 1, 2, 0, 1]


def test_chart_series_with_few_sessions():
    matrix = build_matrix(COURSE, sessions(['S1']), roster(2))
    assert chart_series(matrix) == {'labels': ['Jan 5'], 'data': [1]}
