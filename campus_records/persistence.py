"""
Persistence Contract

The engine performs no file I/O. A storage collaborator (CSV import/export,
backup/restore) implements ``RecordSource`` for loading and consumes
``RecordSnapshot`` for saving. Enrollments cross this boundary as flat
records that reference students and courses by identifier; the context
re-resolves them against the stores on load.
"""

from datetime import date
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from campus_records.domain.academic import Course, Enrollment, EnrollmentStatus
from campus_records.domain.calendar import Semester
from campus_records.domain.entities import Student
from campus_records.domain.grading import Grade


class EnrollmentRecord(BaseModel):
    """Flat, storage-friendly form of an Enrollment."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    enrollment_id: str
    student_id: str
    course_code: str
    semester: Semester
    enrollment_date: date
    grade: Grade | None = None
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    notes: str | None = None

    @classmethod
    def from_enrollment(cls, enrollment: Enrollment) -> "EnrollmentRecord":
        return cls(
            enrollment_id=enrollment.enrollment_id,
            student_id=enrollment.student_id,
            course_code=enrollment.course_code,
            semester=enrollment.semester,
            enrollment_date=enrollment.enrollment_date,
            grade=enrollment.grade,
            status=enrollment.status,
            notes=enrollment.notes,
        )


@runtime_checkable
class RecordSource(Protocol):
    """Anything able to supply previously saved records."""

    def load_students(self) -> list[Student]: ...

    def load_courses(self) -> list[Course]: ...

    def load_enrollments(self) -> list[EnrollmentRecord]: ...


class RecordSnapshot(BaseModel):
    """
    Point-in-time export of every store.

    Students are detached (empty enrollment index); enrollments are flat.
    """

    model_config = ConfigDict(frozen=True)

    students: list[Student] = Field(default_factory=list)
    courses: list[Course] = Field(default_factory=list)
    enrollments: list[EnrollmentRecord] = Field(default_factory=list)
    taken_on: date | None = None
