"""
Policy Engine & Enrollment Policies

Implements Strategy pattern for pluggable enrollment policies.
Each policy inspects an EnrollmentRequest snapshot and returns a PolicyResult;
the engine runs them in priority order and stops at the first denial.
"""

from abc import ABC, abstractmethod
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from campus_records.domain.academic import Course
from campus_records.domain.calendar import Semester
from campus_records.domain.entities import Student

logger = structlog.get_logger(__name__)

# Rule identifiers reported in PolicyResult.violated_rules
RULE_STUDENT_STATUS = "student_status"
RULE_COURSE_AVAILABILITY = "course_availability"
RULE_DUPLICATE_ENROLLMENT = "duplicate_enrollment"
RULE_CREDIT_LIMIT = "credit_limit"
RULE_PREREQUISITES = "prerequisite_requirement"


class PolicyResult(BaseModel):
    """Result of policy evaluation."""

    model_config = ConfigDict(frozen=True)

    allowed: bool = Field(..., description="Whether action is allowed")
    reason: str = Field(..., description="Human-readable reason")
    violated_rules: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class EnrollmentRequest(BaseModel):
    """
    Everything a policy may look at, gathered in one consistent read.

    Built by the enrollment engine while it holds the coordinating lock.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    student: Student
    course: Course
    semester: Semester
    enrollment_id: str
    has_active_duplicate: bool = False
    current_semester_credits: int = Field(default=0, ge=0)
    completed_course_codes: frozenset[str] = Field(default_factory=frozenset)


class EnrollmentPolicy(ABC):
    """
    Abstract base class for enrollment policies (Strategy pattern).

    Each concrete policy implements one enrollment rule.
    """

    def __init__(self, name: str, priority: int = 0):
        """
        Initialize policy.

        Args:
            name: Policy identifier
            priority: Execution priority (higher = earlier)
        """
        self.name = name
        self.priority = priority

    @abstractmethod
    def evaluate(self, request: EnrollmentRequest) -> PolicyResult:
        """
        Evaluate if enrollment is allowed.

        Args:
            request: Snapshot of the student, course and current load

        Returns:
            PolicyResult: Evaluation result
        """

    def __lt__(self, other: "EnrollmentPolicy") -> bool:
        """Compare policies by priority for sorting."""
        return self.priority > other.priority  # Higher priority first


class StudentStatusPolicy(EnrollmentPolicy):
    """Only students whose status permits enrollment may enroll."""

    def __init__(self, priority: int = 100):
        super().__init__("student_status_check", priority)

    def evaluate(self, request: EnrollmentRequest) -> PolicyResult:
        status = request.student.status
        if not status.can_enroll:
            return PolicyResult(
                allowed=False,
                reason=f"Student cannot enroll: {status.value}",
                violated_rules=[RULE_STUDENT_STATUS],
                metadata={"student_status": status.value},
            )
        return PolicyResult(allowed=True, reason="Student status permits enrollment")


class CourseAvailabilityPolicy(EnrollmentPolicy):
    """The course must be open for enrollment."""

    def __init__(self, priority: int = 90):
        super().__init__("course_availability_check", priority)

    def evaluate(self, request: EnrollmentRequest) -> PolicyResult:
        status = request.course.status
        if not status.accepts_enrollment:
            return PolicyResult(
                allowed=False,
                reason=f"Course is not available: {status.value}",
                violated_rules=[RULE_COURSE_AVAILABILITY],
                metadata={"course_status": status.value},
            )
        return PolicyResult(allowed=True, reason="Course accepts enrollment")


class DuplicateEnrollmentPolicy(EnrollmentPolicy):
    """A student may hold one active enrollment per course and semester."""

    def __init__(self, priority: int = 80):
        super().__init__("duplicate_enrollment_check", priority)

    def evaluate(self, request: EnrollmentRequest) -> PolicyResult:
        if request.has_active_duplicate:
            return PolicyResult(
                allowed=False,
                reason="Student already enrolled in this course for this semester",
                violated_rules=[RULE_DUPLICATE_ENROLLMENT],
                metadata={"enrollment_id": request.enrollment_id},
            )
        return PolicyResult(allowed=True, reason="No active enrollment for this course")


class CreditLimitPolicy(EnrollmentPolicy):
    """
    Policy that enforces credit hour limits per semester.

    Prevents students from overloading their schedule.
    """

    def __init__(self, max_credits: int = 21, priority: int = 70):
        super().__init__("credit_limit_check", priority)
        self.max_credits = max_credits

    def evaluate(self, request: EnrollmentRequest) -> PolicyResult:
        course_credits = request.course.credits
        current_credits = request.current_semester_credits
        total_credits = current_credits + course_credits

        if total_credits > self.max_credits:
            return PolicyResult(
                allowed=False,
                reason=f"Credit limit exceeded for {request.semester} "
                f"({total_credits}/{self.max_credits})",
                violated_rules=[RULE_CREDIT_LIMIT],
                metadata={
                    "max_credits": self.max_credits,
                    "current_credits": current_credits,
                    "course_credits": course_credits,
                    "total_credits": total_credits,
                },
            )

        return PolicyResult(
            allowed=True,
            reason=f"Within credit limit ({total_credits}/{self.max_credits})",
            metadata={"total_credits": total_credits},
        )


class PrerequisitePolicy(EnrollmentPolicy):
    """
    Policy that checks course prerequisites.

    Validates that student has passed all required prerequisite courses.
    """

    def __init__(self, priority: int = 60):
        super().__init__("prerequisite_check", priority)

    def evaluate(self, request: EnrollmentRequest) -> PolicyResult:
        course = request.course
        if not course.prerequisites:
            return PolicyResult(allowed=True, reason="No prerequisites required")

        missing = course.missing_prerequisites(request.completed_course_codes)
        if missing:
            return PolicyResult(
                allowed=False,
                reason=f"Prerequisites not met for course {course.course_code}: "
                f"missing {', '.join(missing)}",
                violated_rules=[RULE_PREREQUISITES],
                metadata={"missing_prerequisites": missing},
            )

        return PolicyResult(
            allowed=True,
            reason="All prerequisites satisfied",
            metadata={"prerequisites_checked": sorted(course.prerequisites)},
        )


class PolicyEngine:
    """
    Policy evaluation engine that coordinates multiple policies.

    Executes policies in priority order and stops at the first denial.
    """

    def __init__(self):
        self.policies: list[EnrollmentPolicy] = []

    def register_policy(self, policy: EnrollmentPolicy) -> None:
        """
        Register a policy with the engine.

        Args:
            policy: Policy to register
        """
        self.policies.append(policy)
        self.policies.sort()  # Sort by priority
        logger.debug("Policy registered", policy_name=policy.name, priority=policy.priority)

    def unregister_policy(self, policy_name: str) -> bool:
        """
        Unregister a policy.

        Args:
            policy_name: Name of policy to remove

        Returns:
            bool: True if policy was found and removed
        """
        initial_count = len(self.policies)
        self.policies = [p for p in self.policies if p.name != policy_name]
        return len(self.policies) < initial_count

    def evaluate_all(self, request: EnrollmentRequest) -> tuple[bool, list[PolicyResult]]:
        """
        Evaluate all registered policies.

        Args:
            request: Enrollment request snapshot

        Returns:
            Tuple of (all_allowed, list of results up to the first denial)
        """
        results: list[PolicyResult] = []

        for policy in self.policies:
            result = policy.evaluate(request)
            results.append(result)

            # Stop on first failure (fail-fast)
            if not result.allowed:
                logger.debug(
                    "Policy evaluation failed",
                    policy=policy.name,
                    enrollment_id=request.enrollment_id,
                    reason=result.reason,
                )
                return False, results

        return True, results

    def get_registered_policies(self) -> list[str]:
        """Get list of registered policy names."""
        return [p.name for p in self.policies]


def create_default_enrollment_policy_engine(max_credits: int = 21) -> PolicyEngine:
    """
    Create policy engine with the institutional enrollment rules.

    Order: student status, course availability, duplicate enrollment,
    credit ceiling, prerequisites.

    Args:
        max_credits: Per-semester credit ceiling

    Returns:
        PolicyEngine: Configured engine with standard policies
    """
    engine = PolicyEngine()

    engine.register_policy(StudentStatusPolicy(priority=100))
    engine.register_policy(CourseAvailabilityPolicy(priority=90))
    engine.register_policy(DuplicateEnrollmentPolicy(priority=80))
    engine.register_policy(CreditLimitPolicy(max_credits=max_credits, priority=70))
    engine.register_policy(PrerequisitePolicy(priority=60))

    return engine
