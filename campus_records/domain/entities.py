"""
Core Entity Hierarchy

RecordEntity → Person → Student

Features:
- Natural-key identity (equality and hashing by identifier)
- Genuine immutability: entities are frozen, updates produce new values
- Business-rule validation on every construction, including replacements
"""

import re
from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from campus_records.domain.calendar import Semester
from campus_records.domain.grading import calculate_credits_earned, calculate_gpa

if TYPE_CHECKING:
    from campus_records.domain.academic import Enrollment

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")

# Underscore separates the parts of an enrollment key, so identifiers may not contain one.
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")

DEFAULT_MIN_GPA = 0.0
DEFAULT_MAX_GPA = 4.0


def validation_today(context: dict[str, Any] | None) -> date:
    """The reference date for "not in the future" checks."""
    if context and context.get("today") is not None:
        return context["today"]
    return date.today()


def check_identifier(value: str, label: str) -> str:
    if not value:
        raise ValueError(f"{label} is required")
    if not IDENTIFIER_PATTERN.match(value):
        raise ValueError(f"{label} may contain only letters, digits and hyphens: {value!r}")
    return value


class StudentStatus(str, Enum):
    """Student lifecycle status."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"
    GRADUATED = "Graduated"
    SUSPENDED = "Suspended"
    DROPPED = "Dropped"
    ON_LEAVE = "On Leave"

    @property
    def can_enroll(self) -> bool:
        """Only active students and students on leave may take new courses."""
        return self in (StudentStatus.ACTIVE, StudentStatus.ON_LEAVE)


class RecordEntity(BaseModel, ABC):
    """
    Base abstract entity for everything kept in a record store.

    Entities are frozen. A change is expressed with ``evolve``, which builds a
    new, fully validated value carrying the same identifier; stores then swap
    the stored value in one step.
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        use_enum_values=False,
        extra="forbid",
    )

    @property
    @abstractmethod
    def record_id(self) -> str:
        """Natural identifier used as the store key."""

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.record_id))

    def __eq__(self, other: object) -> bool:
        """Equality based on natural identifier and type."""
        if not isinstance(other, RecordEntity):
            return NotImplemented
        return type(self) is type(other) and self.record_id == other.record_id

    @abstractmethod
    def validate_business_rules(self, context: dict[str, Any]) -> None:
        """
        Validate entity-specific business rules.

        Args:
            context: Validation context (policy bounds, reference date)

        Raises:
            ValueError: If business rules are violated
        """

    @model_validator(mode="after")
    def _check_business_rules(self, info: ValidationInfo) -> "RecordEntity":
        self.validate_business_rules(info.context or {})
        return self

    def evolve(self, context: dict[str, Any] | None = None, **changes: Any) -> "RecordEntity":
        """
        Produce a replacement value with some fields changed.

        Args:
            context: Validation context passed to the validators
            **changes: Field values to override

        Returns:
            A new validated entity of the same type

        Raises:
            pydantic.ValidationError: If the replacement is invalid
        """
        data = {name: getattr(self, name) for name in type(self).model_fields}
        data.update(changes)
        return type(self).model_validate(data, context=context)


class Person(RecordEntity, ABC):
    """Personal and contact information shared by people in the record system."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., description="Primary email address")
    phone_number: str | None = Field(default=None, max_length=20)
    address: str | None = Field(default=None, max_length=300)
    date_of_birth: date | None = Field(default=None)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError(f"Invalid email format: {v!r}")
        return v.lower()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def sort_key(self) -> tuple[str, str]:
        """Listing order: last name, then first name."""
        return (self.last_name.lower(), self.first_name.lower())


class Student(Person):
    """
    Student record.

    ``enrollments`` is a back-reference index kept current by the enrollment
    engine. Each Enrollment holds a detached copy of the student (empty index),
    so the object graph never forms a cycle.
    """

    student_id: str = Field(..., description="Institution student ID")
    enrollment_date: date = Field(..., description="Date the student joined the institution")
    status: StudentStatus = Field(default=StudentStatus.ACTIVE)
    enrollments: tuple["Enrollment", ...] = Field(default=())
    gpa_history: dict[str, float] = Field(
        default_factory=dict, description="Semester label -> GPA"
    )

    @field_validator("student_id")
    @classmethod
    def validate_student_id(cls, v: str) -> str:
        return check_identifier(v, "Student ID")

    @property
    def record_id(self) -> str:
        return self.student_id

    def validate_business_rules(self, context: dict[str, Any]) -> None:
        today = validation_today(context)
        if self.enrollment_date > today:
            raise ValueError("Enrollment date cannot be in the future")
        if self.date_of_birth is not None and self.date_of_birth > today:
            raise ValueError("Date of birth cannot be in the future")

        min_gpa = context.get("min_gpa", DEFAULT_MIN_GPA)
        max_gpa = context.get("max_gpa", DEFAULT_MAX_GPA)
        for label, gpa in self.gpa_history.items():
            if not min_gpa <= gpa <= max_gpa:
                raise ValueError(
                    f"GPA for {label} must be between {min_gpa} and {max_gpa}, got {gpa}"
                )

        seen: set[str] = set()
        for enrollment in self.enrollments:
            if enrollment.student.student_id != self.student_id:
                raise ValueError(
                    f"Enrollment {enrollment.enrollment_id} belongs to another student"
                )
            if enrollment.enrollment_id in seen:
                raise ValueError(f"Duplicate enrollment {enrollment.enrollment_id}")
            seen.add(enrollment.enrollment_id)

    def detached(self) -> "Student":
        """This student without the enrollment index, as held by an Enrollment."""
        if not self.enrollments:
            return self
        return self.model_copy(update={"enrollments": ()})

    def with_enrollment(
        self, enrollment: "Enrollment", context: dict[str, Any] | None = None
    ) -> "Student":
        """Replacement value with ``enrollment`` added or swapped in by ID."""
        kept = tuple(
            e for e in self.enrollments if e.enrollment_id != enrollment.enrollment_id
        )
        return self.evolve(context=context, enrollments=(*kept, enrollment))

    def enrollments_in(self, semester: Semester) -> list["Enrollment"]:
        return [e for e in self.enrollments if e.semester == semester]

    def gpa_for(self, semester: Semester) -> float:
        """GPA for one semester (0.0 with nothing countable)."""
        return calculate_gpa(self.enrollments_in(semester))

    def cumulative_gpa(self) -> float:
        """GPA across every semester."""
        return calculate_gpa(self.enrollments)

    def credits_earned(self) -> int:
        return calculate_credits_earned(self.enrollments)

    def completed_course_codes(self) -> frozenset[str]:
        """Codes of courses the student has passed."""
        return frozenset(
            e.course.course_code
            for e in self.enrollments
            if e.grade is not None and e.grade.is_passing
        )

    def latest_semester(self) -> Semester | None:
        if not self.enrollments:
            return None
        return max(e.semester for e in self.enrollments)
