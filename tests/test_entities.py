from datetime import date

import pydantic
import pytest
from conftest import SPRING_2024, TODAY, add_course, add_student

from campus_records.domain.academic import (
    Course,
    CourseLevel,
    Enrollment,
    EnrollmentStatus,
    make_enrollment_id,
)
from campus_records.domain.entities import Student, StudentStatus
from campus_records.domain.exceptions import ValidationError
from campus_records.domain.grading import Grade


@pytest.mark.parametrize("credits", [1, 2, 3, 4, 5, 6])
def test_course_accepts_credits_within_bounds(records, credits):
    assert add_course(records, f"CS{credits}00", credits).credits == credits


@pytest.mark.parametrize("credits", [0, 7, -1])
def test_course_rejects_credits_outside_bounds(records, credits):
    with pytest.raises(ValidationError):
        add_course(records, "CS999", credits)


def test_course_credit_bounds_follow_settings(settings):
    context = {**settings.validation_context(), "max_course_credits": 8}
    course = Course.model_validate(
        {
            "course_code": "LAB400",
            "name": "Research Lab",
            "credits": 8,
            "department": "Physics",
            "instructor": "Dr. Meitner",
        },
        context=context,
    )
    assert course.credits == 8


def test_course_level_is_derived_from_code(records):
    assert add_course(records, "CS101").level is CourseLevel.UNDERGRADUATE
    assert add_course(records, "CS550").level is CourseLevel.GRADUATE
    assert add_course(records, "SEMINAR").level is CourseLevel.UNDERGRADUATE


def test_prerequisites_accept_delimited_text(records):
    course = add_course(records, "CS301", prerequisites="CS101; CS201,MATH101")
    assert course.prerequisites == frozenset({"CS101", "CS201", "MATH101"})
    assert course.meets_prerequisites({"CS101", "CS201", "MATH101", "ENG101"})
    assert course.missing_prerequisites({"CS101"}) == ["CS201", "MATH101"]


def test_course_cannot_require_itself(records):
    with pytest.raises(ValidationError):
        add_course(records, "CS301", prerequisites={"CS301"})


def test_student_email_is_validated_and_lowercased(records):
    student = add_student(records, "S1", "Grace", "Hopper", email="Grace.Hopper@Navy.MIL")
    assert student.email == "grace.hopper@navy.mil"
    with pytest.raises(ValidationError) as exc_info:
        add_student(records, "S2", "Alan", "Turing", email="not-an-email")
    assert exc_info.value.field == "email"


@pytest.mark.parametrize("student_id", ["S_1", "S 1", ""])
def test_identifiers_reject_separators_and_blanks(records, student_id):
    with pytest.raises(ValidationError):
        add_student(records, student_id, "Alan", "Turing")


def test_future_dates_are_rejected(records):
    with pytest.raises(ValidationError):
        add_student(records, "S3", "Alan", "Turing", enrollment_date=date(2024, 3, 2))
    with pytest.raises(ValidationError):
        add_student(records, "S4", "Alan", "Turing", date_of_birth=date(2030, 1, 1))


def test_entities_are_frozen(student):
    with pytest.raises(pydantic.ValidationError):
        student.first_name = "Augusta"


def test_identity_is_by_natural_key(student):
    renamed = student.evolve(context={"today": TODAY}, first_name="Augusta")
    assert renamed == student
    assert hash(renamed) == hash(student)
    assert renamed.first_name == "Augusta"
    assert student.first_name == "Ada"
    assert renamed.full_name == "Augusta Lovelace"


def test_gpa_history_must_lie_within_bounds(student):
    with pytest.raises(pydantic.ValidationError):
        student.evolve(context={"today": TODAY}, gpa_history={"Fall 2023": 4.5})


def test_enrollment_id_format():
    assert make_enrollment_id("S1001", "CS101", SPRING_2024) == "S1001_CS101_SPRING_2024"


def test_enrollment_state_rules(records, student, catalog):
    enrollment = Enrollment.open(student, catalog["CS101"], SPRING_2024, TODAY)
    assert enrollment.status is EnrollmentStatus.ACTIVE
    assert enrollment.student.enrollments == ()
    assert enrollment.quality_points == 0.0

    with pytest.raises(pydantic.ValidationError):
        enrollment.evolve(context={"today": TODAY}, grade=Grade.A)
    with pytest.raises(pydantic.ValidationError):
        enrollment.evolve(context={"today": TODAY}, status=EnrollmentStatus.COMPLETED)
    with pytest.raises(pydantic.ValidationError):
        enrollment.evolve(
            context={"today": TODAY}, status=EnrollmentStatus.INCOMPLETE, grade=Grade.B
        )
    with pytest.raises(pydantic.ValidationError):
        enrollment.evolve(context={"today": TODAY}, enrollment_id="S1001_CS101_FALL_2024")

    completed = enrollment.evolve(
        context={"today": TODAY}, status=EnrollmentStatus.COMPLETED, grade=Grade.A_MINUS
    )
    assert completed.quality_points == pytest.approx(3.7 * 3)
    assert completed.is_completed


def test_student_index_is_unique_by_enrollment_id(student, catalog):
    enrollment = Enrollment.open(student, catalog["CS101"], SPRING_2024, TODAY)
    indexed = student.with_enrollment(enrollment, {"today": TODAY})
    again = indexed.with_enrollment(enrollment, {"today": TODAY})
    assert len(again.enrollments) == 1
    assert again.detached().enrollments == ()
    assert isinstance(again, Student)


def test_student_status_enrollment_permissions():
    assert StudentStatus.ACTIVE.can_enroll
    assert StudentStatus.ON_LEAVE.can_enroll
    assert not StudentStatus.SUSPENDED.can_enroll
    assert not StudentStatus.GRADUATED.can_enroll
