"""
Enrollment Service

Core enrollment business logic: policy-checked enrollment, the grading state
machine and GPA computation.

States: Active -> {Completed, Incomplete, Withdrawn, Dropped}. Terminal
states admit no further transition. Every transition replaces the stored
Enrollment and the student's enrollment index in one guarded step.
"""

from collections.abc import Callable, Iterable
from datetime import date
from typing import Any

import pydantic
import structlog

from campus_records.concurrency.locking import CoordinatingLock
from campus_records.config import RecordsSettings
from campus_records.domain.academic import (
    Enrollment,
    EnrollmentStatus,
    make_enrollment_id,
)
from campus_records.domain.calendar import Semester, coerce_semester
from campus_records.domain.entities import Student
from campus_records.domain.exceptions import (
    CreditLimitExceededError,
    DomainException,
    DuplicateEnrollmentError,
    EnrollmentNotFoundError,
    EnrollmentPolicyViolationError,
    InvalidEnrollmentError,
    PrerequisitesNotMetError,
    ValidationError,
)
from campus_records.domain.grading import (
    Grade,
    calculate_credits_earned,
    calculate_gpa,
    coerce_grade,
)
from campus_records.domain.policies import (
    RULE_COURSE_AVAILABILITY,
    RULE_CREDIT_LIMIT,
    RULE_DUPLICATE_ENROLLMENT,
    RULE_PREREQUISITES,
    RULE_STUDENT_STATUS,
    EnrollmentRequest,
    PolicyEngine,
    PolicyResult,
    create_default_enrollment_policy_engine,
)
from campus_records.domain.reports import enrollment_statistics
from campus_records.persistence import EnrollmentRecord
from campus_records.services.course_service import CourseService
from campus_records.services.student_service import StudentService
from campus_records.stores import RecordStore

logger = structlog.get_logger(__name__)

_GRADED_STATES = frozenset({EnrollmentStatus.COMPLETED, EnrollmentStatus.INCOMPLETE})


class EnrollmentService:
    """
    Service orchestrating enrollment with policy enforcement.

    Implements:
    - Policy-driven enrollment validation (fail-fast, priority order)
    - Grading state machine over immutable Enrollment values
    - Student enrollment index and GPA history maintenance
    """

    def __init__(
        self,
        settings: RecordsSettings,
        lock: CoordinatingLock,
        students: StudentService,
        courses: CourseService,
        clock: Callable[[], date] = date.today,
        policy_engine: PolicyEngine | None = None,
    ):
        """
        Initialize enrollment service.

        Args:
            settings: Policy configuration
            lock: Coordinating lock shared with the student and course services
            students: Student manager
            courses: Course manager
            clock: Source of "today" (enrollment dates, current semester)
            policy_engine: Enrollment policies; defaults to the institutional rules
        """
        self.settings = settings
        self.lock = lock
        self.students = students
        self.courses = courses
        self.clock = clock
        self.policy_engine = policy_engine or create_default_enrollment_policy_engine(
            max_credits=settings.max_credits_per_semester
        )
        self.store: RecordStore[Enrollment] = RecordStore("Enrollment")

    def validation_context(self) -> dict[str, Any]:
        return {**self.settings.validation_context(), "today": self.clock()}

    # Enrollment

    def enroll(
        self, student: Student | str, course_code: str, semester: Semester | str
    ) -> Enrollment:
        """
        Enroll a student in a course for a semester.

        Process:
        1. Resolve the course, then the student (current stored values)
        2. Evaluate the enrollment policies against one consistent snapshot
        3. Build the Active enrollment and store it
        4. Replace the student with the enrollment added to its index

        Args:
            student: Student value or student ID
            course_code: Course code
            semester: Semester or a label such as "Fall 2024"

        Returns:
            Enrollment: Created enrollment

        Raises:
            CourseNotFoundError: If the course does not exist
            StudentNotFoundError: If the student does not exist
            InvalidEnrollmentError: If the student or course is not eligible, or
                the enrollment already finished with a grade
            DuplicateEnrollmentError: If an active enrollment already exists
            CreditLimitExceededError: If the semester credit ceiling would be exceeded
            PrerequisitesNotMetError: If prerequisites are missing
        """
        semester = self._coerce_semester(semester)
        student_id = student if isinstance(student, str) else student.student_id

        with self.lock.guard("enrollment.enroll"):
            course = self.courses.get(course_code)
            current = self.students.get(student_id)
            enrollment_id = make_enrollment_id(current.student_id, course.course_code, semester)

            existing = self.store.find(enrollment_id)
            request = EnrollmentRequest(
                student=current,
                course=course,
                semester=semester,
                enrollment_id=enrollment_id,
                has_active_duplicate=existing is not None and existing.is_active,
                current_semester_credits=self.credit_load(current.student_id, semester),
                completed_course_codes=self.completed_course_codes(current.student_id),
            )

            allowed, results = self.policy_engine.evaluate_all(request)
            if not allowed:
                failed = next(r for r in results if not r.allowed)
                logger.info(
                    "Enrollment denied by policy",
                    student_id=current.student_id,
                    course_code=course.course_code,
                    semester=str(semester),
                    reason=failed.reason,
                )
                raise self._policy_error(failed, enrollment_id)

            # Only withdrawn or dropped records may be replaced; grades are kept.
            if existing is not None and existing.status in _GRADED_STATES:
                raise InvalidEnrollmentError(
                    f"Enrollment already finished as {existing.status.value}",
                    enrollment_id=enrollment_id,
                    context={"status": existing.status.value},
                )

            context = self.validation_context()
            enrollment = self._validated(
                lambda: Enrollment.open(current, course, semester, self.clock(), context)
            )
            updated_student = self._validated(
                lambda: self._with_gpa_history(
                    current.with_enrollment(enrollment, context), semester, context
                ),
                "Student",
            )

            # Nothing is written until every check and construction succeeded.
            self.store.swap(enrollment)
            self.students.replace(updated_student)

        logger.info(
            "Student enrolled",
            enrollment_id=enrollment.enrollment_id,
            student_id=student_id,
            course_code=course.course_code,
            semester=str(semester),
            replaced_terminal=existing is not None,
        )
        return enrollment

    # Grading state machine

    def record_grade(self, enrollment_id: str, grade: Grade | str, notes: str = "") -> Enrollment:
        """
        Record a final (or incomplete) grade.

        Grade I moves the enrollment to Incomplete, any other grade to
        Completed. The semester GPA is written into the student's GPA history.

        Raises:
            EnrollmentNotFoundError: If the enrollment does not exist
            InvalidEnrollmentError: If the enrollment is not Active
            ValidationError: If the grade letter is unknown
        """
        try:
            grade = coerce_grade(grade)
        except ValueError as e:
            raise ValidationError(str(e), field="grade", value=grade) from e

        status = (
            EnrollmentStatus.INCOMPLETE if grade is Grade.INCOMPLETE else EnrollmentStatus.COMPLETED
        )
        return self._transition(
            enrollment_id, "record grade", grade=grade, status=status, notes=notes or None
        )

    def withdraw(self, enrollment_id: str, reason: str = "") -> Enrollment:
        """
        Withdraw from an active enrollment (grade W).

        Raises:
            EnrollmentNotFoundError: If the enrollment does not exist
            InvalidEnrollmentError: If the enrollment is not Active
        """
        return self._transition(
            enrollment_id,
            "withdraw",
            grade=Grade.WITHDRAWAL,
            status=EnrollmentStatus.WITHDRAWN,
            notes=reason or None,
        )

    def drop(self, enrollment_id: str, reason: str = "") -> Enrollment:
        """
        Drop an active enrollment. Dropped enrollments carry no grade.

        Raises:
            EnrollmentNotFoundError: If the enrollment does not exist
            InvalidEnrollmentError: If the enrollment is not Active
        """
        return self._transition(
            enrollment_id,
            "drop",
            grade=None,
            status=EnrollmentStatus.DROPPED,
            notes=reason or None,
        )

    def _transition(self, enrollment_id: str, action: str, **changes: Any) -> Enrollment:
        with self.lock.guard(f"enrollment.{action.replace(' ', '_')}"):
            enrollment = self.get(enrollment_id)
            if not enrollment.is_active:
                raise InvalidEnrollmentError(
                    f"Cannot {action}: enrollment is {enrollment.status.value}",
                    enrollment_id=enrollment_id,
                    context={"status": enrollment.status.value},
                )

            student = self.students.get(enrollment.student_id)
            course = self.courses.get(enrollment.course_code)
            context = self.validation_context()

            updated = self._validated(
                lambda: enrollment.evolve(
                    context=context, student=student.detached(), course=course, **changes
                )
            )
            updated_student = self._validated(
                lambda: self._with_gpa_history(
                    student.with_enrollment(updated, context), updated.semester, context
                ),
                "Student",
            )

            self.store.swap(updated)
            self.students.replace(updated_student)

        logger.info(
            "Enrollment transitioned",
            enrollment_id=enrollment_id,
            action=action,
            old_status=enrollment.status.value,
            new_status=updated.status.value,
            grade=updated.grade.value if updated.grade else None,
        )
        return updated

    @staticmethod
    def _with_gpa_history(
        student: Student, semester: Semester, context: dict[str, Any]
    ) -> Student:
        """Record (or clear) the semester's GPA in the student's history."""
        history = dict(student.gpa_history)
        in_semester = student.enrollments_in(semester)
        if any(e.grade is not None and e.grade.counts_toward_gpa for e in in_semester):
            history[semester.label] = calculate_gpa(in_semester)
        else:
            history.pop(semester.label, None)
        if history == student.gpa_history:
            return student
        return student.evolve(context=context, gpa_history=history)

    # GPA and credits

    def semester_gpa(self, student_id: str, semester: Semester | str) -> float:
        semester = self._coerce_semester(semester)
        return calculate_gpa(
            self.store.values(lambda e: e.student_id == student_id and e.semester == semester)
        )

    def cumulative_gpa(self, student_id: str) -> float:
        return calculate_gpa(self.store.values(lambda e: e.student_id == student_id))

    def current_gpa(self, student_id: str) -> float:
        """GPA for the current semester (see ``StudentService.current_semester``)."""
        student = self.students.get(student_id)
        return self.semester_gpa(student_id, self.students.current_semester(student))

    def credits_earned(self, student_id: str) -> int:
        return calculate_credits_earned(self.store.values(lambda e: e.student_id == student_id))

    def credit_load(self, student_id: str, semester: Semester | str) -> int:
        """Credits of the student's Active enrollments in ``semester``."""
        semester = self._coerce_semester(semester)
        return sum(
            e.credits
            for e in self.store.values(
                lambda e: e.student_id == student_id and e.semester == semester and e.is_active
            )
        )

    def completed_course_codes(self, student_id: str) -> frozenset[str]:
        """Codes of courses the student passed."""
        return frozenset(
            e.course_code
            for e in self.store.values(lambda e: e.student_id == student_id)
            if e.grade is not None and e.grade.is_passing
        )

    # Queries

    def get(self, enrollment_id: str) -> Enrollment:
        """
        Get an enrollment by ID.

        Raises:
            EnrollmentNotFoundError: If the enrollment does not exist
        """
        enrollment = self.store.find(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(enrollment_id)
        return enrollment

    def all(self, predicate: Callable[[Enrollment], bool] | None = None) -> list[Enrollment]:
        """Enrollments ordered by semester, student last name, then course code."""
        return sorted(
            self.store.values(predicate),
            key=lambda e: (e.semester.sort_key, e.student.sort_key, e.course_code),
        )

    def by_student(self, student_id: str) -> list[Enrollment]:
        return sorted(
            self.store.values(lambda e: e.student_id == student_id),
            key=lambda e: (e.semester.sort_key, e.course_code),
        )

    def by_course(self, course_code: str) -> list[Enrollment]:
        return sorted(
            self.store.values(lambda e: e.course_code == course_code),
            key=lambda e: (e.semester.sort_key, e.student.sort_key),
        )

    def by_semester(self, semester: Semester | str) -> list[Enrollment]:
        semester = self._coerce_semester(semester)
        return sorted(
            self.store.values(lambda e: e.semester == semester),
            key=lambda e: e.student.sort_key,
        )

    def active(self) -> list[Enrollment]:
        return self.all(lambda e: e.is_active)

    def completed(self) -> list[Enrollment]:
        return self.all(lambda e: e.status is EnrollmentStatus.COMPLETED)

    def statistics(self) -> dict[str, Any]:
        return enrollment_statistics(self.store.values())

    def all_enrollments(self) -> list[Enrollment]:
        """Snapshot for export collaborators."""
        return self.all()

    # Reference maintenance

    def refresh_student(self, student_id: str) -> Student:
        """
        Re-point the student's enrollments at the current stored student.

        Call after replacing a student outside the engine (e.g. a name change).

        Raises:
            StudentNotFoundError: If the student does not exist
        """
        with self.lock.guard("enrollment.refresh_student"):
            student = self.students.get(student_id)
            context = self.validation_context()
            snapshot = student.detached()
            refreshed = [
                self._validated(lambda e=e: e.evolve(context=context, student=snapshot))
                for e in self.store.values(lambda e: e.student_id == student_id)
            ]
            updated_student = self._validated(
                lambda: student.evolve(context=context, enrollments=tuple(refreshed)), "Student"
            )
            for enrollment in refreshed:
                self.store.swap(enrollment)
            self.students.replace(updated_student)

        logger.debug("Student references refreshed", student_id=student_id, count=len(refreshed))
        return updated_student

    def refresh_course(self, course_code: str) -> list[Enrollment]:
        """
        Re-point enrollments in a course at the current stored course.

        Raises:
            CourseNotFoundError: If the course does not exist
        """
        with self.lock.guard("enrollment.refresh_course"):
            course = self.courses.get(course_code)
            context = self.validation_context()
            refreshed = [
                self._validated(lambda e=e: e.evolve(context=context, course=course))
                for e in self.store.values(lambda e: e.course_code == course_code)
            ]

            students: dict[str, Student] = {}
            for enrollment in refreshed:
                student = students.get(enrollment.student_id) or self.students.get(
                    enrollment.student_id
                )
                students[enrollment.student_id] = self._validated(
                    lambda s=student, e=enrollment: self._with_gpa_history(
                        s.with_enrollment(e, context), e.semester, context
                    ),
                    "Student",
                )

            for enrollment in refreshed:
                self.store.swap(enrollment)
            for student in students.values():
                self.students.replace(student)

        logger.debug("Course references refreshed", course_code=course_code, count=len(refreshed))
        return refreshed

    # Loading

    def restore(self, records: Iterable[EnrollmentRecord]) -> list[Enrollment]:
        """
        Rebuild enrollments from flat records and re-derive student indices.

        Each record's student and course are resolved from the stores; GPA
        history is recomputed from the restored grades.

        Raises:
            StudentNotFoundError: If a record references an unknown student
            CourseNotFoundError: If a record references an unknown course
            ValidationError: If a record is inconsistent
        """
        with self.lock.guard("enrollment.restore"):
            context = self.validation_context()
            restored: list[Enrollment] = []
            for record in records:
                student = self.students.get(record.student_id)
                course = self.courses.get(record.course_code)
                restored.append(
                    self._validated(
                        lambda r=record, s=student, c=course: Enrollment.model_validate(
                            {
                                "enrollment_id": r.enrollment_id,
                                "student": s.detached(),
                                "course": c,
                                "semester": r.semester,
                                "enrollment_date": r.enrollment_date,
                                "grade": r.grade,
                                "notes": r.notes,
                                "status": r.status,
                            },
                            context=context,
                        )
                    )
                )

            by_student: dict[str, list[Enrollment]] = {}
            for enrollment in restored:
                by_student.setdefault(enrollment.student_id, []).append(enrollment)

            updated_students = []
            for student_id, enrollments in by_student.items():
                student = self.students.get(student_id)
                merged = {e.enrollment_id: e for e in student.enrollments}
                merged.update({e.enrollment_id: e for e in enrollments})
                rebuilt = self._validated(
                    lambda s=student, m=merged: s.evolve(
                        context=context, enrollments=tuple(m.values())
                    ),
                    "Student",
                )
                for semester in {e.semester for e in enrollments}:
                    rebuilt = self._validated(
                        lambda s=rebuilt, sem=semester: self._with_gpa_history(s, sem, context),
                        "Student",
                    )
                updated_students.append(rebuilt)

            for enrollment in restored:
                self.store.swap(enrollment)
            for student in updated_students:
                self.students.replace(student)

        logger.info("Enrollments restored", count=len(restored), students=len(updated_students))
        return restored

    def clear(self) -> None:
        with self.lock.guard("enrollment.clear"):
            self.store.clear()

    # Helpers

    @staticmethod
    def _coerce_semester(semester: Semester | str) -> Semester:
        try:
            return coerce_semester(semester)
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e), field="semester", value=semester) from e

    @staticmethod
    def _validated(build: Callable[[], Any], entity_type: str = "Enrollment") -> Any:
        try:
            return build()
        except pydantic.ValidationError as e:
            raise ValidationError.from_pydantic(entity_type, e) from e

    @staticmethod
    def _policy_error(result: PolicyResult, enrollment_id: str) -> DomainException:
        """Map the first failed policy to its domain exception."""
        rules = result.violated_rules
        if RULE_STUDENT_STATUS in rules or RULE_COURSE_AVAILABILITY in rules:
            return InvalidEnrollmentError(
                result.reason, enrollment_id=enrollment_id, context=dict(result.metadata)
            )
        if RULE_DUPLICATE_ENROLLMENT in rules:
            return DuplicateEnrollmentError(enrollment_id)
        if RULE_CREDIT_LIMIT in rules:
            return CreditLimitExceededError(result.reason, context=dict(result.metadata))
        if RULE_PREREQUISITES in rules:
            return PrerequisitesNotMetError(
                result.reason, missing=result.metadata.get("missing_prerequisites", [])
            )
        return EnrollmentPolicyViolationError(result.reason, violated_rules=list(rules))
