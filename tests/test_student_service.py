from datetime import date

import pytest
from conftest import FALL_2023, SPRING_2024, TODAY, add_course, add_student

from campus_records.context import RecordsContext
from campus_records.domain.entities import StudentStatus
from campus_records.domain.exceptions import (
    DuplicateKeyError,
    ErrorCode,
    StudentNotFoundError,
    ValidationError,
)


def test_create_stores_an_active_student(records, student):
    assert student.status is StudentStatus.ACTIVE
    assert records.students.get("S1001") is student
    assert student.enrollments == ()
    assert student.gpa_history == {}


def test_duplicate_student_id_is_a_validation_error(records, student):
    with pytest.raises(DuplicateKeyError) as exc_info:
        add_student(records, "S1001", "Someone", "Else")
    assert isinstance(exc_info.value, ValidationError)
    assert exc_info.value.error_code is ErrorCode.ENTITY_ALREADY_EXISTS
    assert len(records.students.all()) == 1


def test_missing_and_unknown_fields_are_rejected(records):
    with pytest.raises(ValidationError):
        records.students.create(student_id="S2", first_name="Alan", email="a@b.edu")
    with pytest.raises(ValidationError):
        add_student(records, "S3", "Alan", "Turing", nickname="Prof")
    with pytest.raises(ValidationError):
        add_student(records, "S4", "Alan", "Turing", enrollments=())


def test_update_replaces_value_and_preserves_status(records, student):
    records.students.set_status("S1001", StudentStatus.ON_LEAVE)
    updated = records.students.update("S1001", phone_number="555-0100", last_name="King")

    assert updated.status is StudentStatus.ON_LEAVE
    assert updated.phone_number == "555-0100"
    assert records.students.get("S1001").last_name == "King"
    assert student.last_name == "Lovelace"


def test_update_guards(records, student):
    with pytest.raises(StudentNotFoundError):
        records.students.update("S9999", first_name="Nobody")
    with pytest.raises(ValidationError):
        records.students.update("S1001", student_id="S2000")
    with pytest.raises(ValidationError):
        records.students.update("S1001", email="broken")
    assert records.students.get("S1001").email == "ada.lovelace@example.edu"


def test_deactivate_is_idempotent(records, student):
    first = records.students.deactivate("S1001")
    second = records.students.deactivate("S1001")
    assert first.status is second.status is StudentStatus.INACTIVE
    assert "S1001" in records.students.store


def test_listing_is_ordered_by_last_then_first_name(records):
    add_student(records, "S1", "Zoe", "Adams")
    add_student(records, "S2", "Amy", "Baker")
    add_student(records, "S3", "Ann", "Adams")
    assert [s.student_id for s in records.students.all()] == ["S3", "S1", "S2"]


def test_search_by_name_matches_first_last_or_full(records, student):
    add_student(records, "S2", "Charles", "Babbage")
    assert records.students.search_by_name("ADA") == [student]
    assert records.students.search_by_name("ada love") == [student]
    assert [s.student_id for s in records.students.search_by_name("a")] == ["S2", "S1001"]
    assert records.students.search_by_name("hopper") == []


def test_by_status(records, student):
    add_student(records, "S2", "Charles", "Babbage")
    records.students.set_status("S2", StudentStatus.GRADUATED)
    assert [s.student_id for s in records.students.by_status(StudentStatus.GRADUATED)] == ["S2"]


def test_gpa_range_bounds_are_validated(records):
    with pytest.raises(ValidationError):
        records.students.by_gpa_range(3.5, 2.0)
    with pytest.raises(ValidationError):
        records.students.by_gpa_range(-0.5, 2.0)
    with pytest.raises(ValidationError):
        records.students.by_gpa_range(2.0, 4.5)


def test_gpa_range_uses_current_semester_gpa(records, student, catalog):
    add_student(records, "S2", "Charles", "Babbage")
    first = records.enrollments.enroll("S1001", "CS101", SPRING_2024)
    second = records.enrollments.enroll("S2", "CS101", SPRING_2024)
    records.enrollments.record_grade(first.enrollment_id, "A")
    records.enrollments.record_grade(second.enrollment_id, "C")

    assert [s.student_id for s in records.students.by_gpa_range(3.5, 4.0)] == ["S1001"]
    assert [s.student_id for s in records.students.by_gpa_range(0.0, 4.0)] == ["S2", "S1001"]


def test_top_by_gpa_ties_keep_store_order(records, catalog):
    add_student(records, "S1", "Zed", "Young")
    add_student(records, "S2", "Amy", "Adams")
    add_student(records, "S3", "Bea", "Brown")
    for student_id, letter in [("S1", "B"), ("S2", "B"), ("S3", "A")]:
        enrollment = records.enrollments.enroll(student_id, "CS101", SPRING_2024)
        records.enrollments.record_grade(enrollment.enrollment_id, letter)

    assert [s.student_id for s in records.students.top_by_gpa(3)] == ["S3", "S1", "S2"]


def test_current_semester_calendar_rule(records, student, catalog):
    enrollment = records.enrollments.enroll("S1001", "CS101", FALL_2023)
    records.enrollments.record_grade(enrollment.enrollment_id, "B")

    assert records.students.current_semester() == SPRING_2024
    assert records.students.current_gpa("S1001") == 0.0


def test_current_semester_latest_enrollment_rule(settings):
    records = RecordsContext.create(
        settings, clock=lambda: TODAY, current_semester_rule="latest_enrollment"
    )
    add_student(records, "S1001", "Ada", "Lovelace")
    add_student(records, "S2", "Charles", "Babbage")
    add_course(records, "CS101")
    enrollment = records.enrollments.enroll("S1001", "CS101", FALL_2023)
    records.enrollments.record_grade(enrollment.enrollment_id, "B")

    assert records.students.current_semester(records.students.get("S1001")) == FALL_2023
    assert records.students.current_gpa("S1001") == 3.0
    # No enrollments: falls back to the calendar
    assert records.students.current_semester(records.students.get("S2")) == SPRING_2024


def test_statistics(records, student, catalog):
    add_student(records, "S2", "Charles", "Babbage", enrollment_date=date(2020, 9, 1))
    records.students.set_status("S2", StudentStatus.GRADUATED)
    enrollment = records.enrollments.enroll("S1001", "CS101", SPRING_2024)
    records.enrollments.record_grade(enrollment.enrollment_id, "A")

    stats = records.students.statistics()
    assert stats["total"] == 2
    assert stats["active"] == 1
    assert stats["graduated"] == 1
    assert stats["average_gpa"] == pytest.approx(2.0)
    assert stats["total_credits_earned"] == 3
