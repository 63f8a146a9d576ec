"""
Runtime Verification: Enrollment Invariants

Whole-store checks of the invariants the enrollment engine maintains:

1. At most one Active enrollment per (student, course, semester).
2. A student's Active credits in one semester never exceed the ceiling.
3. Every stored enrollment appears, with the same state, in its student's
   enrollment index, and every index entry is stored.

The engine enforces these on every write; the monitor re-checks them over a
snapshot (after a load, in tests, or on demand).
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from campus_records.domain.academic import Enrollment
from campus_records.domain.calendar import Semester
from campus_records.domain.entities import Student

logger = structlog.get_logger(__name__)


class InvariantViolationType(Enum):
    """Types of invariant violations."""
    DUPLICATE_ACTIVE_ENROLLMENT = "duplicate_active_enrollment"
    CREDIT_LIMIT_EXCEEDED = "credit_limit_exceeded"
    INDEX_MISMATCH = "index_mismatch"
    ORPHAN_ENROLLMENT = "orphan_enrollment"


@dataclass
class InvariantViolation:
    """A single broken invariant."""
    type: InvariantViolationType
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "message": self.message, **self.details}


class InvariantMonitor:
    """
    Runtime monitor for enrollment invariants.

    Keeps running counts so callers can see how often checks ran and failed.
    """

    def __init__(self, max_credits_per_semester: int = 21):
        self.max_credits_per_semester = max_credits_per_semester
        self.violations: list[InvariantViolation] = []
        self.verification_count = 0
        self.violation_count = 0

    def verify_all(
        self, students: Iterable[Student], enrollments: Iterable[Enrollment]
    ) -> tuple[bool, list[InvariantViolation]]:
        """
        Verify every invariant over one snapshot of the stores.

        Args:
            students: Stored students (with their enrollment indices)
            enrollments: Stored enrollments

        Returns:
            Tuple of (all_valid, list_of_violations)
        """
        students = {s.student_id: s for s in students}
        enrollments = list(enrollments)

        violations = [
            *self._check_duplicates(students.values(), enrollments),
            *self._check_credit_ceiling(enrollments),
            *self._check_indices(students, enrollments),
        ]

        self.verification_count += 1
        if violations:
            self.violation_count += len(violations)
            self.violations.extend(violations)
            logger.warning(
                "Enrollment invariants violated",
                count=len(violations),
                types=sorted({v.type.value for v in violations}),
            )
        return len(violations) == 0, violations

    def _check_duplicates(
        self, students: Iterable[Student], enrollments: list[Enrollment]
    ) -> list[InvariantViolation]:
        violations = []
        # Index entries are checked too: the store is keyed by the triple already.
        sources = [("store", enrollments)] + [
            (f"index:{s.student_id}", list(s.enrollments)) for s in students
        ]
        for source, items in sources:
            seen: dict[tuple[str, str, Semester], str] = {}
            for e in items:
                if not e.is_active:
                    continue
                triple = (e.student_id, e.course_code, e.semester)
                if triple in seen:
                    violations.append(
                        InvariantViolation(
                            InvariantViolationType.DUPLICATE_ACTIVE_ENROLLMENT,
                            f"Student {e.student_id} holds two active enrollments in "
                            f"{e.course_code} for {e.semester}",
                            {"source": source, "enrollment_ids": [seen[triple], e.enrollment_id]},
                        )
                    )
                else:
                    seen[triple] = e.enrollment_id
        return violations

    def _check_credit_ceiling(self, enrollments: list[Enrollment]) -> list[InvariantViolation]:
        loads: dict[tuple[str, Semester], int] = {}
        for e in enrollments:
            if e.is_active:
                key = (e.student_id, e.semester)
                loads[key] = loads.get(key, 0) + e.credits

        return [
            InvariantViolation(
                InvariantViolationType.CREDIT_LIMIT_EXCEEDED,
                f"Student {student_id} carries {credits} active credits in {semester} "
                f"(limit {self.max_credits_per_semester})",
                {"student_id": student_id, "semester": str(semester), "credits": credits},
            )
            for (student_id, semester), credits in loads.items()
            if credits > self.max_credits_per_semester
        ]

    def _check_indices(
        self, students: dict[str, Student], enrollments: list[Enrollment]
    ) -> list[InvariantViolation]:
        violations = []
        stored = {e.enrollment_id: e for e in enrollments}

        for e in enrollments:
            student = students.get(e.student_id)
            if student is None:
                violations.append(
                    InvariantViolation(
                        InvariantViolationType.ORPHAN_ENROLLMENT,
                        f"Enrollment {e.enrollment_id} references unknown student {e.student_id}",
                        {"enrollment_id": e.enrollment_id},
                    )
                )
                continue
            indexed = {i.enrollment_id: i for i in student.enrollments}.get(e.enrollment_id)
            if indexed is None or (indexed.status, indexed.grade) != (e.status, e.grade):
                violations.append(
                    InvariantViolation(
                        InvariantViolationType.INDEX_MISMATCH,
                        f"Enrollment {e.enrollment_id} is missing or stale in the index of "
                        f"student {e.student_id}",
                        {"enrollment_id": e.enrollment_id},
                    )
                )

        for student in students.values():
            for indexed in student.enrollments:
                if indexed.enrollment_id not in stored:
                    violations.append(
                        InvariantViolation(
                            InvariantViolationType.INDEX_MISMATCH,
                            f"Student {student.student_id} indexes unknown enrollment "
                            f"{indexed.enrollment_id}",
                            {"enrollment_id": indexed.enrollment_id},
                        )
                    )
        return violations

    def get_statistics(self) -> dict[str, Any]:
        """Get monitoring statistics."""
        return {
            "verification_count": self.verification_count,
            "violation_count": self.violation_count,
            "max_credits_per_semester": self.max_credits_per_semester,
        }


def assert_enrollment_invariant(
    monitor: InvariantMonitor,
    students: Iterable[Student],
    enrollments: Iterable[Enrollment],
) -> None:
    """
    Assert that the snapshot satisfies every enrollment invariant.

    Raises:
        AssertionError: Listing every violation found
    """
    valid, violations = monitor.verify_all(students, enrollments)
    if not valid:
        raise AssertionError(
            "Enrollment invariant violated: " + "; ".join(v.message for v in violations)
        )
