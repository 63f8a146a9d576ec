"""
Query & Reporting

Side-effect-free statistics and transcript generation over entity values.
Every function here takes plain collections and returns plain values; the
presentation layer decides how to print them (``render_transcript`` is the
one plain-text rendering the engine owns).
"""

from collections import Counter
from collections.abc import Callable, Iterable
from datetime import date
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from campus_records.domain.academic import Course, CourseStatus, Enrollment, EnrollmentStatus
from campus_records.domain.calendar import Semester
from campus_records.domain.entities import Student, StudentStatus
from campus_records.domain.grading import Grade, calculate_credits_earned, calculate_gpa

logger = structlog.get_logger(__name__)

SemesterRule = Semester | Callable[[Student], Semester]


def _semester_for(student: Student, current_semester: SemesterRule) -> Semester:
    if isinstance(current_semester, Semester):
        return current_semester
    return current_semester(student)


def student_statistics(
    students: Iterable[Student], current_semester: SemesterRule
) -> dict[str, Any]:
    """
    Aggregate figures over a student population.

    Args:
        students: Students to summarize
        current_semester: Semester for "current GPA", or a per-student rule

    Returns:
        Dict with total, by_status, active, graduated, average_gpa and
        total_credits_earned
    """
    students = list(students)
    by_status = Counter(s.status.value for s in students)
    gpas = [s.gpa_for(_semester_for(s, current_semester)) for s in students]

    return {
        "total": len(students),
        "by_status": dict(sorted(by_status.items())),
        "active": by_status.get(StudentStatus.ACTIVE.value, 0),
        "graduated": by_status.get(StudentStatus.GRADUATED.value, 0),
        "average_gpa": sum(gpas) / len(gpas) if gpas else 0.0,
        "total_credits_earned": sum(s.credits_earned() for s in students),
    }


def course_statistics(courses: Iterable[Course]) -> dict[str, Any]:
    """Aggregate figures over the course catalog."""
    courses = list(courses)
    return {
        "total": len(courses),
        "active": sum(1 for c in courses if c.status is CourseStatus.ACTIVE),
        "by_department": dict(sorted(Counter(c.department for c in courses).items())),
        "by_level": dict(sorted(Counter(c.level.value for c in courses).items())),
        "average_credits": sum(c.credits for c in courses) / len(courses) if courses else 0.0,
    }


def enrollment_statistics(enrollments: Iterable[Enrollment]) -> dict[str, Any]:
    """
    Aggregate figures over enrollments.

    ``average_grade_points`` averages the point value of GPA-counting grades
    (unweighted by credits); 0.0 when there are none.
    """
    enrollments = list(enrollments)
    by_semester = Counter(e.semester for e in enrollments)
    counted = [
        e.grade.quality_points
        for e in enrollments
        if e.grade is not None and e.grade.counts_toward_gpa
    ]

    return {
        "total": len(enrollments),
        "active": sum(1 for e in enrollments if e.status is EnrollmentStatus.ACTIVE),
        "completed": sum(1 for e in enrollments if e.status is EnrollmentStatus.COMPLETED),
        "by_semester": {str(s): n for s, n in sorted(by_semester.items())},
        "by_course": dict(sorted(Counter(e.course_code for e in enrollments).items())),
        "average_grade_points": sum(counted) / len(counted) if counted else 0.0,
    }


def eligible_courses(
    courses: Iterable[Course], completed_course_codes: frozenset[str] | set[str]
) -> list[Course]:
    """Active courses whose prerequisites are all among the completed codes."""
    return sorted(
        (
            c
            for c in courses
            if c.is_available and c.meets_prerequisites(completed_course_codes)
        ),
        key=lambda c: c.course_code,
    )


def top_students_by_gpa(
    students: Iterable[Student], n: int, semester: SemesterRule
) -> list[Student]:
    """
    The ``n`` students with the highest GPA for ``semester``.

    The sort is stable: students with equal GPA keep their input order.
    """
    if n <= 0:
        return []
    ranked = sorted(students, key=lambda s: s.gpa_for(_semester_for(s, semester)), reverse=True)
    return ranked[:n]


class TranscriptRow(BaseModel):
    """One course line on a transcript."""

    model_config = ConfigDict(frozen=True)

    course_code: str
    course_name: str
    credits: int
    grade: Grade | None = None
    status: EnrollmentStatus


class TranscriptSemester(BaseModel):
    model_config = ConfigDict(frozen=True)

    semester: Semester
    rows: list[TranscriptRow] = Field(default_factory=list)
    gpa: float = 0.0


class Transcript(BaseModel):
    """Academic transcript for a single student."""

    model_config = ConfigDict(frozen=True)

    student_id: str
    student_name: str
    email: str
    status: StudentStatus
    semesters: list[TranscriptSemester] = Field(default_factory=list)
    cumulative_gpa: float = 0.0
    total_credits_earned: int = 0
    generated_on: date | None = None

    @property
    def rows(self) -> list[TranscriptRow]:
        return [row for term in self.semesters for row in term.rows]


def build_transcript(student: Student, generated_on: date | None = None) -> Transcript:
    """
    Build a transcript from a student's enrollment index.

    Semesters are listed in ascending order, rows within a semester by
    course code. The overall GPA is cumulative across all semesters.
    """
    by_semester: dict[Semester, list[TranscriptRow]] = {}
    for enrollment in student.enrollments:
        by_semester.setdefault(enrollment.semester, []).append(
            TranscriptRow(
                course_code=enrollment.course_code,
                course_name=enrollment.course.name,
                credits=enrollment.credits,
                grade=enrollment.grade,
                status=enrollment.status,
            )
        )

    semesters = [
        TranscriptSemester(
            semester=semester,
            rows=sorted(rows, key=lambda r: r.course_code),
            gpa=calculate_gpa(rows),
        )
        for semester, rows in sorted(by_semester.items())
    ]
    all_rows = [row for term in semesters for row in term.rows]

    transcript = Transcript(
        student_id=student.student_id,
        student_name=student.full_name,
        email=student.email,
        status=student.status,
        semesters=semesters,
        cumulative_gpa=calculate_gpa(all_rows),
        total_credits_earned=calculate_credits_earned(all_rows),
        generated_on=generated_on,
    )
    logger.debug(
        "Transcript built",
        student_id=student.student_id,
        semesters=len(semesters),
        rows=len(all_rows),
    )
    return transcript


def render_transcript(transcript: Transcript) -> str:
    """Assemble a plain-text transcript."""
    lines = [
        "ACADEMIC TRANSCRIPT",
        "=" * 60,
        f"Student: {transcript.student_name} ({transcript.student_id})",
        f"Email: {transcript.email}",
        f"Status: {transcript.status.value}",
    ]
    if transcript.generated_on is not None:
        lines.append(f"Generated: {transcript.generated_on.isoformat()}")

    for term in transcript.semesters:
        lines.append("")
        lines.append(str(term.semester))
        lines.append("-" * 60)
        for row in term.rows:
            grade = row.grade.value if row.grade is not None else "--"
            lines.append(
                f"{row.course_code:<10} {row.course_name[:30]:<30} "
                f"{row.credits:>2} cr  {grade:<3} {row.status.value}"
            )
        lines.append(f"Semester GPA: {term.gpa:.2f}")

    lines.append("")
    lines.append("=" * 60)
    lines.append(f"Cumulative GPA: {transcript.cumulative_gpa:.2f}")
    lines.append(f"Total Credits Earned: {transcript.total_credits_earned}")
    return "\n".join(lines)
