"""
Academic Domain Models

Courses and enrollments. An Enrollment is the unit of the grading state
machine; it is never mutated, each transition yields a replacement record
with the same identifier.
"""

import re
from datetime import date
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from campus_records.domain.calendar import Semester
from campus_records.domain.entities import (
    RecordEntity,
    Student,
    check_identifier,
    validation_today,
)
from campus_records.domain.grading import Grade

DEFAULT_MIN_COURSE_CREDITS = 1
DEFAULT_MAX_COURSE_CREDITS = 6

_UNDERGRADUATE_NUMBER = re.compile(r"[1-4]\d{2}")
_GRADUATE_NUMBER = re.compile(r"[5-9]\d{2}")


class CourseLevel(str, Enum):
    """Academic course level."""

    UNDERGRADUATE = "Undergraduate"
    GRADUATE = "Graduate"
    DOCTORAL = "Doctoral"
    CONTINUING_EDUCATION = "Continuing Education"

    @classmethod
    def from_course_code(cls, course_code: str) -> "CourseLevel":
        """
        Derive the level from the number embedded in a course code.

        100-499 is undergraduate, 500-999 graduate; codes without a
        three-digit course number default to undergraduate.
        """
        if _UNDERGRADUATE_NUMBER.search(course_code):
            return cls.UNDERGRADUATE
        if _GRADUATE_NUMBER.search(course_code):
            return cls.GRADUATE
        return cls.UNDERGRADUATE


class CourseStatus(str, Enum):
    """Course offering status."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"
    CANCELLED = "Cancelled"
    FULL = "Full"
    ARCHIVED = "Archived"

    @property
    def accepts_enrollment(self) -> bool:
        return self is CourseStatus.ACTIVE


class EnrollmentStatus(str, Enum):
    """Enrollment state. Active is the only non-terminal state."""

    ACTIVE = "Active"
    COMPLETED = "Completed"
    WITHDRAWN = "Withdrawn"
    DROPPED = "Dropped"
    INCOMPLETE = "Incomplete"

    @property
    def is_active(self) -> bool:
        return self is EnrollmentStatus.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self is not EnrollmentStatus.ACTIVE


class Course(RecordEntity):
    """
    Course catalog entry.

    Credit bounds come from the validation context (policy configuration)
    and default to 1..6.
    """

    course_code: str = Field(..., description="Unique course code (e.g., CS101)")
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    credits: int = Field(..., description="Credit hours")
    department: str = Field(..., min_length=1, max_length=100)
    instructor: str = Field(..., min_length=1, max_length=100)
    status: CourseStatus = Field(default=CourseStatus.ACTIVE)
    prerequisites: frozenset[str] = Field(
        default_factory=frozenset, description="Prerequisite course codes"
    )
    schedule: dict[str, str] = Field(default_factory=dict, description="Day -> time")

    @field_validator("course_code")
    @classmethod
    def validate_course_code(cls, v: str) -> str:
        return check_identifier(v, "Course code")

    @field_validator("prerequisites", mode="before")
    @classmethod
    def normalize_prerequisites(cls, v: Any) -> Any:
        if v is None:
            return frozenset()
        if isinstance(v, str):
            v = [part for part in re.split(r"[;,]", v)]
        return frozenset(code.strip() for code in v if code and code.strip())

    @field_validator("schedule", mode="before")
    @classmethod
    def normalize_schedule(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def record_id(self) -> str:
        return self.course_code

    @property
    def level(self) -> CourseLevel:
        return CourseLevel.from_course_code(self.course_code)

    @property
    def is_available(self) -> bool:
        return self.status.accepts_enrollment

    def validate_business_rules(self, context: dict[str, Any]) -> None:
        min_credits = context.get("min_course_credits", DEFAULT_MIN_COURSE_CREDITS)
        max_credits = context.get("max_course_credits", DEFAULT_MAX_COURSE_CREDITS)
        if not min_credits <= self.credits <= max_credits:
            raise ValueError(
                f"Credits must be between {min_credits} and {max_credits}, got {self.credits}"
            )
        if self.course_code in self.prerequisites:
            raise ValueError(f"Course {self.course_code} cannot be its own prerequisite")

    def meets_prerequisites(self, completed_course_codes: set[str] | frozenset[str]) -> bool:
        """True when every prerequisite is among the completed codes."""
        return self.prerequisites <= set(completed_course_codes)

    def missing_prerequisites(self, completed_course_codes: set[str] | frozenset[str]) -> list[str]:
        return sorted(self.prerequisites - set(completed_course_codes))


def make_enrollment_id(student_id: str, course_code: str, semester: Semester) -> str:
    """
    Build the deterministic enrollment key.

    Format: ``{student_id}_{course_code}_{SEASON}_{year}``, e.g.
    ``S1001_CS101_SPRING_2024``.
    """
    return f"{student_id}_{course_code}_{semester.season.name}_{semester.year}"


class Enrollment(RecordEntity):
    """
    A student's enrollment in a course for one semester.

    Holds detached snapshots of the student and course as of the last
    transition.
    """

    enrollment_id: str = Field(..., min_length=1)
    student: Student
    course: Course
    semester: Semester
    enrollment_date: date
    grade: Grade | None = Field(default=None)
    notes: str | None = Field(default=None, max_length=2000)
    status: EnrollmentStatus = Field(default=EnrollmentStatus.ACTIVE)

    @property
    def record_id(self) -> str:
        return self.enrollment_id

    @property
    def credits(self) -> int:
        return self.course.credits

    @property
    def student_id(self) -> str:
        return self.student.student_id

    @property
    def course_code(self) -> str:
        return self.course.course_code

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def is_completed(self) -> bool:
        return self.grade is not None and self.status is EnrollmentStatus.COMPLETED

    @property
    def quality_points(self) -> float:
        """Grade points times course credits; 0.0 while ungraded."""
        if self.grade is None:
            return 0.0
        return self.grade.quality_points * self.course.credits

    def validate_business_rules(self, context: dict[str, Any]) -> None:
        expected = make_enrollment_id(
            self.student.student_id, self.course.course_code, self.semester
        )
        if self.enrollment_id != expected:
            raise ValueError(
                f"Enrollment ID {self.enrollment_id!r} does not match {expected!r}"
            )
        if self.student.enrollments:
            raise ValueError("Enrollment must hold a detached student snapshot")
        if self.enrollment_date > validation_today(context):
            raise ValueError("Enrollment date cannot be in the future")

        if self.status is EnrollmentStatus.ACTIVE and self.grade is not None:
            raise ValueError("An active enrollment cannot carry a grade")
        if self.status is EnrollmentStatus.COMPLETED and (
            self.grade is None or self.grade is Grade.INCOMPLETE
        ):
            raise ValueError("A completed enrollment requires a final grade")
        if self.status is EnrollmentStatus.INCOMPLETE and self.grade is not Grade.INCOMPLETE:
            raise ValueError("An incomplete enrollment must carry grade I")

    @classmethod
    def open(
        cls,
        student: Student,
        course: Course,
        semester: Semester,
        enrollment_date: date,
        context: dict[str, Any] | None = None,
    ) -> "Enrollment":
        """Create a new Active enrollment with its deterministic identifier."""
        return cls.model_validate(
            {
                "enrollment_id": make_enrollment_id(
                    student.student_id, course.course_code, semester
                ),
                "student": student.detached(),
                "course": course,
                "semester": semester,
                "enrollment_date": enrollment_date,
                "status": EnrollmentStatus.ACTIVE,
            },
            context=context,
        )


# Student and Enrollment refer to each other; resolve the forward reference now.
Student.model_rebuild(_types_namespace={"Enrollment": Enrollment, "Student": Student})
Enrollment.model_rebuild()
