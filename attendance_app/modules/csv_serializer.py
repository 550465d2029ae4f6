"""
CSV Serializer Module - Classroom QR Attendance

Renders a presence matrix into the attendance CSV document that lecturers
open in a spreadsheet tool:

    "Course: Intro to CS"
    "ID Number","Student Name","Jan 5, 2025"
    "1001","Lee, S1","Present"

Every field is quoted so names and date labels containing commas stay in one
cell; embedded quotes are doubled.
"""

import csv
import io
from datetime import datetime
from typing import List, Tuple

from attendance_app.modules.report_aggregator import ReportMatrix
from attendance_app.modules.timeutils import format_timestamp

COURSE_PREFIX = 'Course: '
HEADER_FIELDS = ['ID Number', 'Student Name']


def _writer(buffer: io.StringIO):
    return csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator='\n')


def to_csv(course_name: str, matrix: ReportMatrix, tz=None) -> str:
    """
    Serialize a report matrix to CSV text.

    Args:
        course_name (str): Course name for the title line
        matrix (ReportMatrix): Aggregated report data
        tz: Display timezone for the session labels (UTC when omitted)

    Returns:
        str: Complete CSV document ending with a newline
    """
    buffer = io.StringIO()
    writer = _writer(buffer)

    writer.writerow([f"{COURSE_PREFIX}{course_name}"])
    writer.writerow(HEADER_FIELDS + matrix.session_labels(tz))

    for student, cells in matrix.rows():
        writer.writerow(
            [student.id_number or '', student.display_name] + [presence.value for presence in cells]
        )

    return buffer.getvalue()


def parse_csv(text: str) -> Tuple[str, List[str], List[List[str]]]:
    """
    Read an attendance CSV back into its parts.

    Returns:
        Tuple of (course name, session labels, rows). Each row is
        [id number, student name, cell, ...].

    Raises:
        ValueError: if the text is not an attendance report
    """
    records = list(csv.reader(io.StringIO(text)))
    if len(records) < 2:
        raise ValueError("Attendance report must have a title and a header row")

    title = records[0][0] if records[0] else ''
    if not title.startswith(COURSE_PREFIX):
        raise ValueError("Missing course title line")

    header = records[1]
    if header[:2] != HEADER_FIELDS:
        raise ValueError("Unexpected header row")

    return title[len(COURSE_PREFIX):], header[2:], records[2:]


def report_filename(course_code: str, generated_at: datetime) -> str:
    """
    File name for an exported report, e.g.
    ``CS101_Attendance_2025-01-05T09-30-00-000Z.csv``.
    """
    stamp = format_timestamp(generated_at)
    stamp = stamp.replace(':', '-').replace('.', '-')
    return f"{course_code}_Attendance_{stamp}.csv"
