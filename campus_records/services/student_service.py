"""
Student Service

Student record management: validated creation, replacement-style updates,
status transitions and side-effect-free listings.
"""

from collections.abc import Callable
from datetime import date
from typing import Any

import pydantic
import structlog

from campus_records.concurrency.locking import CoordinatingLock
from campus_records.config import RecordsSettings
from campus_records.domain.calendar import Semester
from campus_records.domain.entities import Student, StudentStatus
from campus_records.domain.exceptions import (
    DuplicateKeyError,
    StudentNotFoundError,
    ValidationError,
)
from campus_records.domain.reports import student_statistics, top_students_by_gpa
from campus_records.stores import RecordStore

logger = structlog.get_logger(__name__)

# Fields only the enrollment engine may change.
_ENGINE_OWNED_FIELDS = frozenset({"enrollments"})


class StudentService:
    """Service owning the student store."""

    def __init__(
        self,
        settings: RecordsSettings,
        lock: CoordinatingLock,
        clock: Callable[[], date] = date.today,
    ):
        """
        Initialize student service.

        Args:
            settings: Policy configuration (GPA bounds, current-semester rule)
            lock: Coordinating lock shared with the other services
            clock: Source of "today"
        """
        self.settings = settings
        self.lock = lock
        self.clock = clock
        self.store: RecordStore[Student] = RecordStore("Student")

    def validation_context(self) -> dict[str, Any]:
        return {**self.settings.validation_context(), "today": self.clock()}

    def create(self, **fields: Any) -> Student:
        """
        Create a new active student.

        Args:
            **fields: student_id, first_name, last_name, email, enrollment_date
                and optional phone_number, address, date_of_birth

        Returns:
            Student: The stored student

        Raises:
            DuplicateKeyError: If the student ID already exists
            ValidationError: If required fields are missing or malformed
        """
        self._reject_engine_owned(fields)
        fields.setdefault("status", StudentStatus.ACTIVE)

        with self.lock.guard("student.create"):
            student = self._build(fields)
            if student.student_id in self.store:
                raise DuplicateKeyError("Student", student.student_id, field="student_id")
            self.store.insert(student)

        logger.info("Student created", student_id=student.student_id, email=student.email)
        return student

    def add(self, student: Student) -> Student:
        """
        Store an already-built student (e.g. one supplied by a persistence loader).

        Raises:
            DuplicateKeyError: If the student ID already exists
        """
        with self.lock.guard("student.add"):
            if student.student_id in self.store:
                raise DuplicateKeyError("Student", student.student_id, field="student_id")
            self.store.insert(student)
        return student

    def update(self, student_id: str, /, **fields: Any) -> Student:
        """
        Replace a student with updated fields.

        Status, enrollments and GPA history are preserved unless overridden.

        Raises:
            StudentNotFoundError: If the student does not exist
            ValidationError: If the updated value is invalid
        """
        self._reject_engine_owned(fields)
        if "student_id" in fields and fields["student_id"] != student_id:
            raise ValidationError(
                "Student ID cannot be changed", field="student_id", value=fields["student_id"]
            )
        fields.pop("student_id", None)

        with self.lock.guard("student.update"):
            existing = self.get(student_id)
            updated = self._evolve(existing, **fields)
            self.store.swap(updated)

        logger.info("Student updated", student_id=student_id, fields=sorted(fields))
        return updated

    def get(self, student_id: str) -> Student:
        """
        Get a student by ID.

        Raises:
            StudentNotFoundError: If the student does not exist
        """
        student = self.store.find(student_id)
        if student is None:
            raise StudentNotFoundError(student_id)
        return student

    def set_status(self, student_id: str, status: StudentStatus) -> Student:
        """Transition a student to ``status`` (re-applied even if unchanged)."""
        with self.lock.guard("student.set_status"):
            existing = self.get(student_id)
            updated = self._evolve(existing, status=status)
            self.store.swap(updated)

        logger.info(
            "Student status changed",
            student_id=student_id,
            old_status=existing.status.value,
            new_status=status.value,
        )
        return updated

    def deactivate(self, student_id: str) -> Student:
        """Soft delete: set status to Inactive. Students are never removed."""
        return self.set_status(student_id, StudentStatus.INACTIVE)

    def replace(self, student: Student) -> Student:
        """
        Swap in a new value for an existing student.

        Used by the enrollment engine to keep the enrollment index current.

        Raises:
            StudentNotFoundError: If the student does not exist
        """
        with self.lock.guard("student.replace"):
            self.get(student.student_id)
            self.store.swap(student)
        return student

    # Queries

    def all(self, predicate: Callable[[Student], bool] | None = None) -> list[Student]:
        """All students matching ``predicate``, ordered by last then first name."""
        return sorted(self.store.values(predicate), key=lambda s: s.sort_key)

    def search_by_name(self, text: str) -> list[Student]:
        """Case-insensitive substring match against first, last or full name."""
        term = text.strip().lower()
        return self.all(
            lambda s: term in s.first_name.lower()
            or term in s.last_name.lower()
            or term in s.full_name.lower()
        )

    def by_status(self, status: StudentStatus) -> list[Student]:
        return self.all(lambda s: s.status is status)

    def by_gpa_range(self, min_gpa: float, max_gpa: float) -> list[Student]:
        """
        Students whose current GPA lies in [min_gpa, max_gpa].

        Raises:
            ValidationError: If the range is inverted or outside the configured GPA bounds
        """
        if min_gpa > max_gpa:
            raise ValidationError(
                f"Minimum GPA {min_gpa} exceeds maximum GPA {max_gpa}", field="min_gpa"
            )
        if min_gpa < self.settings.min_gpa or max_gpa > self.settings.max_gpa:
            raise ValidationError(
                f"GPA range must lie within {self.settings.min_gpa}-{self.settings.max_gpa}",
                field="gpa_range",
                value=f"{min_gpa}-{max_gpa}",
            )
        return self.all(lambda s: min_gpa <= self.current_gpa(s) <= max_gpa)

    def current_semester(self, student: Student | None = None) -> Semester:
        """
        The semester "current" GPA figures refer to.

        By default the calendar rule applies (today's month). With
        ``current_semester_rule = "latest_enrollment"`` the student's most
        recent enrollment semester is used when there is one.
        """
        if self.settings.current_semester_rule == "latest_enrollment" and student is not None:
            latest = student.latest_semester()
            if latest is not None:
                return latest
        return Semester.containing(self.clock())

    def current_gpa(self, student: Student | str) -> float:
        if isinstance(student, str):
            student = self.get(student)
        return student.gpa_for(self.current_semester(student))

    def top_by_gpa(self, n: int) -> list[Student]:
        """Highest current GPAs first; ties keep store order."""
        return top_students_by_gpa(self.store.values(), n, self.current_semester)

    def statistics(self) -> dict[str, Any]:
        return student_statistics(self.store.values(), self.current_semester)

    def all_students(self) -> list[Student]:
        """Snapshot for export collaborators."""
        return self.all()

    # Helpers

    def _build(self, fields: dict[str, Any]) -> Student:
        try:
            return Student.model_validate(fields, context=self.validation_context())
        except pydantic.ValidationError as e:
            raise ValidationError.from_pydantic("Student", e) from e

    def _evolve(self, student: Student, **changes: Any) -> Student:
        try:
            return student.evolve(context=self.validation_context(), **changes)
        except pydantic.ValidationError as e:
            raise ValidationError.from_pydantic("Student", e) from e

    @staticmethod
    def _reject_engine_owned(fields: dict[str, Any]) -> None:
        owned = _ENGINE_OWNED_FIELDS.intersection(fields)
        if owned:
            raise ValidationError(
                f"Field managed by the enrollment engine: {', '.join(sorted(owned))}",
                field=sorted(owned)[0],
            )
