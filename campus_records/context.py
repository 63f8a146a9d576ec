"""
Records Context

Explicit wiring of settings, the coordinating lock, the clock and the three
services. Callers create one context per record set and pass it around
instead of reaching for module-level singletons.
"""

from collections.abc import Callable
from datetime import date
from typing import Any

import structlog

from campus_records.concurrency.locking import CoordinatingLock
from campus_records.config import RecordsSettings, load_settings
from campus_records.domain.academic import Course
from campus_records.domain.entities import Student
from campus_records.persistence import EnrollmentRecord, RecordSnapshot, RecordSource
from campus_records.services.course_service import CourseService
from campus_records.services.enrollment_service import EnrollmentService
from campus_records.services.student_service import StudentService
from campus_records.verification.enrollment_invariants import (
    InvariantMonitor,
    InvariantViolation,
)

logger = structlog.get_logger(__name__)


class RecordsContext:
    """Everything one record set needs, wired together."""

    def __init__(
        self,
        settings: RecordsSettings,
        clock: Callable[[], date] = date.today,
        lock: CoordinatingLock | None = None,
    ):
        """
        Initialize context.

        Args:
            settings: Policy configuration
            clock: Source of "today"; tests pin it to a fixed date
            lock: Coordinating lock (a fresh one by default)
        """
        self.settings = settings
        self.clock = clock
        self.lock = lock or CoordinatingLock()
        self.students = StudentService(settings, self.lock, clock)
        self.courses = CourseService(settings, self.lock, clock)
        self.enrollments = EnrollmentService(
            settings, self.lock, self.students, self.courses, clock
        )
        self.monitor = InvariantMonitor(settings.max_credits_per_semester)

    @classmethod
    def create(
        cls,
        settings: RecordsSettings | None = None,
        clock: Callable[[], date] = date.today,
        **overrides: Any,
    ) -> "RecordsContext":
        """
        Build a context, loading settings from the environment when none are given.

        Raises:
            ConfigurationError: If the settings are invalid
        """
        if settings is None:
            settings = load_settings(**overrides)
        elif overrides:
            settings = load_settings(**{**settings.model_dump(), **overrides})
        return cls(settings, clock=clock)

    def load(self, source: RecordSource) -> None:
        """
        Replace the record set with what ``source`` supplies.

        Students and courses are loaded first, then enrollment records are
        re-resolved against them and student indices rebuilt. On failure the
        previous record set is kept.

        Raises:
            DuplicateKeyError: If the source repeats a student ID or course code
            StudentNotFoundError: If an enrollment references an unknown student
            CourseNotFoundError: If an enrollment references an unknown course
        """
        # Collaborator I/O happens before the lock is taken.
        students = source.load_students()
        courses = source.load_courses()
        records = source.load_enrollments()

        with self.lock.guard("context.load"):
            previous = (
                self.students.store.values(),
                self.courses.store.values(),
                self.enrollments.store.values(),
            )
            self._reset((), (), ())
            try:
                for student in students:
                    self.students.add(student.detached())
                for course in courses:
                    self.courses.add(course)
                self.enrollments.restore(records)
            except BaseException:
                self._reset(*previous)
                raise

        logger.info(
            "Records loaded",
            students=len(students),
            courses=len(courses),
            enrollments=len(records),
        )

    def _reset(self, students, courses, enrollments) -> None:
        for store, values in (
            (self.students.store, students),
            (self.courses.store, courses),
            (self.enrollments.store, enrollments),
        ):
            store.clear()
            for value in values:
                store.insert(value)

    def snapshot(self) -> RecordSnapshot:
        """Point-in-time export of every store."""
        with self.lock.guard("context.snapshot"):
            return RecordSnapshot(
                students=[s.detached() for s in self.students.all()],
                courses=self.courses.all(),
                enrollments=[
                    EnrollmentRecord.from_enrollment(e) for e in self.enrollments.all()
                ],
                taken_on=self.clock(),
            )

    def update_student(self, student_id: str, /, **fields: Any) -> Student:
        """Update a student and re-point its enrollments at the new value."""
        with self.lock.guard("context.update_student"):
            self.students.update(student_id, **fields)
            return self.enrollments.refresh_student(student_id)

    def update_course(self, course_code: str, /, **fields: Any) -> Course:
        """Update a course and re-point its enrollments at the new value."""
        with self.lock.guard("context.update_course"):
            course = self.courses.update(course_code, **fields)
            self.enrollments.refresh_course(course_code)
            return course

    def verify(self) -> list[InvariantViolation]:
        """Re-check the enrollment invariants over the current stores."""
        with self.lock.guard("context.verify"):
            _, violations = self.monitor.verify_all(
                self.students.store.values(), self.enrollments.store.values()
            )
        return violations
