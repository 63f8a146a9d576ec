"""Shared fixtures: a records context pinned to 1 March 2024 (Spring 2024)."""

from datetime import date

import pytest

from campus_records.config import RecordsSettings
from campus_records.context import RecordsContext
from campus_records.domain.calendar import Season, Semester

TODAY = date(2024, 3, 1)
SPRING_2024 = Semester(year=2024, season=Season.SPRING)
FALL_2023 = Semester(year=2023, season=Season.FALL)


@pytest.fixture
def settings() -> RecordsSettings:
    return RecordsSettings(_env_file=None)


@pytest.fixture
def records(settings) -> RecordsContext:
    return RecordsContext(settings, clock=lambda: TODAY)


def add_student(records: RecordsContext, student_id: str, first: str, last: str, **fields):
    return records.students.create(
        student_id=student_id,
        first_name=first,
        last_name=last,
        email=fields.pop("email", f"{first}.{last}@example.edu"),
        enrollment_date=fields.pop("enrollment_date", date(2023, 9, 1)),
        **fields,
    )


def add_course(records: RecordsContext, code: str, credits: int = 3, **fields):
    return records.courses.create(
        course_code=code,
        name=fields.pop("name", f"Course {code}"),
        credits=credits,
        department=fields.pop("department", "Computer Science"),
        instructor=fields.pop("instructor", "Dr. Hopper"),
        **fields,
    )


@pytest.fixture
def student(records):
    return add_student(records, "S1001", "Ada", "Lovelace")


@pytest.fixture
def catalog(records):
    """CS101 -> CS201 prerequisite chain plus an independent MATH101."""
    return {
        "CS101": add_course(records, "CS101", 3, name="Intro to Programming"),
        "CS201": add_course(records, "CS201", 3, name="Data Structures", prerequisites={"CS101"}),
        "MATH101": add_course(records, "MATH101", 4, name="Calculus I", department="Mathematics"),
    }
