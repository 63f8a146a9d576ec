"""
Campus Records Domain Models

Frozen entities and value objects for the academic record engine.

Composition Relationships:
- Student has-many Enrollment (back-reference index kept by the engine)
- Enrollment holds a detached Student snapshot and a Course snapshot
- Course references prerequisite Courses by code
- Enrollment is placed in a Semester and may carry a Grade
"""

from campus_records.domain.exceptions import (
    ConfigurationError,
    CourseNotFoundError,
    CreditLimitExceededError,
    DomainException,
    DuplicateEnrollmentError,
    DuplicateKeyError,
    EnrollmentNotFoundError,
    EnrollmentPolicyViolationError,
    EntityNotFoundError,
    ErrorCode,
    InvalidEnrollmentError,
    PrerequisitesNotMetError,
    StudentNotFoundError,
    ValidationError,
)
from campus_records.domain.calendar import Season, Semester
from campus_records.domain.grading import Grade, calculate_credits_earned, calculate_gpa
from campus_records.domain.entities import Person, RecordEntity, Student, StudentStatus
from campus_records.domain.academic import (
    Course,
    CourseLevel,
    CourseStatus,
    Enrollment,
    EnrollmentStatus,
    make_enrollment_id,
)
from campus_records.domain.policies import (
    EnrollmentPolicy,
    EnrollmentRequest,
    PolicyEngine,
    PolicyResult,
    create_default_enrollment_policy_engine,
)
from campus_records.domain.reports import (
    Transcript,
    build_transcript,
    render_transcript,
)

__all__ = [
    # Exceptions
    "ConfigurationError",
    "CourseNotFoundError",
    "CreditLimitExceededError",
    "DomainException",
    "DuplicateEnrollmentError",
    "DuplicateKeyError",
    "EnrollmentNotFoundError",
    "EnrollmentPolicyViolationError",
    "EntityNotFoundError",
    "ErrorCode",
    "InvalidEnrollmentError",
    "PrerequisitesNotMetError",
    "StudentNotFoundError",
    "ValidationError",
    # Calendar and grading
    "Season",
    "Semester",
    "Grade",
    "calculate_gpa",
    "calculate_credits_earned",
    # Entities
    "RecordEntity",
    "Person",
    "Student",
    "StudentStatus",
    "Course",
    "CourseLevel",
    "CourseStatus",
    "Enrollment",
    "EnrollmentStatus",
    "make_enrollment_id",
    # Policies
    "EnrollmentPolicy",
    "EnrollmentRequest",
    "PolicyEngine",
    "PolicyResult",
    "create_default_enrollment_policy_engine",
    # Reports
    "Transcript",
    "build_transcript",
    "render_transcript",
]
