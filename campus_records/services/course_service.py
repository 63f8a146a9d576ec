"""
Course Service

Course catalog management. Courses are never removed; deactivation is a
status change.
"""

from collections.abc import Callable, Iterable
from datetime import date
from typing import Any

import pydantic
import structlog

from campus_records.concurrency.locking import CoordinatingLock
from campus_records.config import RecordsSettings
from campus_records.domain.academic import Course, CourseLevel, CourseStatus
from campus_records.domain.exceptions import (
    CourseNotFoundError,
    DuplicateKeyError,
    ValidationError,
)
from campus_records.domain.reports import course_statistics, eligible_courses
from campus_records.stores import RecordStore

logger = structlog.get_logger(__name__)


class CourseService:
    """Service owning the course store."""

    def __init__(
        self,
        settings: RecordsSettings,
        lock: CoordinatingLock,
        clock: Callable[[], date] = date.today,
    ):
        self.settings = settings
        self.lock = lock
        self.clock = clock
        self.store: RecordStore[Course] = RecordStore("Course")

    def validation_context(self) -> dict[str, Any]:
        return {**self.settings.validation_context(), "today": self.clock()}

    def create(self, **fields: Any) -> Course:
        """
        Create a new active course.

        Args:
            **fields: course_code, name, credits, department, instructor and
                optional description, prerequisites, schedule

        Returns:
            Course: The stored course

        Raises:
            DuplicateKeyError: If the course code already exists
            ValidationError: If fields are missing or malformed
        """
        fields.setdefault("status", CourseStatus.ACTIVE)

        with self.lock.guard("course.create"):
            course = self._build(fields)
            if course.course_code in self.store:
                raise DuplicateKeyError("Course", course.course_code, field="course_code")
            self.store.insert(course)

        logger.info(
            "Course created",
            course_code=course.course_code,
            credits=course.credits,
            department=course.department,
        )
        return course

    def add(self, course: Course) -> Course:
        """Store an already-built course (persistence loading)."""
        with self.lock.guard("course.add"):
            if course.course_code in self.store:
                raise DuplicateKeyError("Course", course.course_code, field="course_code")
            self.store.insert(course)
        return course

    def update(self, course_code: str, /, **fields: Any) -> Course:
        """
        Replace a course with updated fields, preserving status unless overridden.

        Raises:
            CourseNotFoundError: If the course does not exist
            ValidationError: If the code is changed or the result is invalid
        """
        if "course_code" in fields and fields["course_code"] != course_code:
            raise ValidationError(
                "Course code cannot be changed", field="course_code", value=fields["course_code"]
            )
        fields.pop("course_code", None)

        with self.lock.guard("course.update"):
            existing = self.get(course_code)
            updated = self._evolve(existing, **fields)
            self.store.swap(updated)

        logger.info("Course updated", course_code=course_code, fields=sorted(fields))
        return updated

    def get(self, course_code: str) -> Course:
        """
        Get a course by code.

        Raises:
            CourseNotFoundError: If the course does not exist
        """
        course = self.store.find(course_code)
        if course is None:
            raise CourseNotFoundError(course_code)
        return course

    def set_status(self, course_code: str, status: CourseStatus) -> Course:
        with self.lock.guard("course.set_status"):
            existing = self.get(course_code)
            updated = self._evolve(existing, status=status)
            self.store.swap(updated)

        logger.info(
            "Course status changed",
            course_code=course_code,
            old_status=existing.status.value,
            new_status=status.value,
        )
        return updated

    def deactivate(self, course_code: str) -> Course:
        return self.set_status(course_code, CourseStatus.INACTIVE)

    # Queries

    def all(self, predicate: Callable[[Course], bool] | None = None) -> list[Course]:
        """All courses matching ``predicate``, ordered by course code."""
        return sorted(self.store.values(predicate), key=lambda c: c.course_code)

    def search_by_name(self, text: str) -> list[Course]:
        """Case-insensitive substring match against name or description."""
        term = text.strip().lower()
        return self.all(
            lambda c: term in c.name.lower() or term in c.description.lower()
        )

    def by_department(self, department: str) -> list[Course]:
        wanted = department.strip().lower()
        return self.all(lambda c: c.department.lower() == wanted)

    def by_instructor(self, instructor: str) -> list[Course]:
        wanted = instructor.strip().lower()
        return self.all(lambda c: c.instructor.lower() == wanted)

    def by_credit_range(self, min_credits: int, max_credits: int) -> list[Course]:
        """
        Courses with credits in [min_credits, max_credits].

        Raises:
            ValidationError: If the range is inverted
        """
        if min_credits > max_credits:
            raise ValidationError(
                f"Minimum credits {min_credits} exceed maximum credits {max_credits}",
                field="min_credits",
            )
        return self.all(lambda c: min_credits <= c.credits <= max_credits)

    def by_level(self, level: CourseLevel) -> list[Course]:
        return self.all(lambda c: c.level is level)

    def available(self) -> list[Course]:
        """Courses currently accepting enrollment."""
        return self.all(lambda c: c.is_available)

    def prerequisites_of(self, course_code: str) -> list[Course]:
        """
        Resolve a course's prerequisite codes to courses, ordered by code.

        Raises:
            CourseNotFoundError: If the course or one of its prerequisites is unknown
        """
        course = self.get(course_code)
        return [self.get(code) for code in sorted(course.prerequisites)]

    def meets_prerequisites(self, course_code: str, completed_course_codes: Iterable[str]) -> bool:
        return self.get(course_code).meets_prerequisites(frozenset(completed_course_codes))

    def eligible_for(self, completed_course_codes: Iterable[str]) -> list[Course]:
        """Active courses whose prerequisites the completed codes satisfy."""
        return eligible_courses(self.store.values(), frozenset(completed_course_codes))

    def statistics(self) -> dict[str, Any]:
        return course_statistics(self.store.values())

    def all_courses(self) -> list[Course]:
        """Snapshot for export collaborators."""
        return self.all()

    # Helpers

    def _build(self, fields: dict[str, Any]) -> Course:
        try:
            return Course.model_validate(fields, context=self.validation_context())
        except pydantic.ValidationError as e:
            raise ValidationError.from_pydantic("Course", e) from e

    def _evolve(self, course: Course, **changes: Any) -> Course:
        try:
            return course.evolve(context=self.validation_context(), **changes)
        except pydantic.ValidationError as e:
            raise ValidationError.from_pydantic("Course", e) from e
