"""
Rich Domain Exceptions

Exception hierarchy for the academic record engine.
Every failure is raised synchronously at the point of detection and carries
an error code plus structured context for the presentation layer.
"""

from enum import Enum
from typing import Any

import pydantic


class ErrorCode(str, Enum):
    """Standard error codes for domain exceptions."""

    # Domain errors
    DOMAIN_VALIDATION_ERROR = "DOMAIN_VALIDATION_ERROR"
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    ENTITY_ALREADY_EXISTS = "ENTITY_ALREADY_EXISTS"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"

    # Enrollment errors
    DUPLICATE_ENROLLMENT = "DUPLICATE_ENROLLMENT"
    ENROLLMENT_POLICY_VIOLATION = "ENROLLMENT_POLICY_VIOLATION"
    CREDIT_LIMIT_EXCEEDED = "CREDIT_LIMIT_EXCEEDED"
    PREREQUISITE_NOT_MET = "PREREQUISITE_NOT_MET"

    # System errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class DomainException(Exception):
    """
    Base class for all domain exceptions.

    Provides structured error information with error codes and context.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize domain exception.

        Args:
            message: Human-readable error message
            error_code: Standard error code
            context: Additional context data
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a plain dictionary for collaborators."""
        result = {
            "error": self.error_code.value,
            "message": self.message,
            "type": type(self).__name__,
        }
        if self.context:
            result["context"] = self.context
        return result


class ValidationError(DomainException):
    """Raised when entity fields are missing or malformed."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.DOMAIN_VALIDATION_ERROR),
            context=context,
            **kwargs
        )
        self.field = field

    @classmethod
    def from_pydantic(
        cls, entity_type: str, error: pydantic.ValidationError
    ) -> "ValidationError":
        """Wrap a pydantic validation failure, keeping the first offending field."""
        details = error.errors(include_url=False)
        first = details[0] if details else {}
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        reason = first.get("msg", str(error))
        return cls(
            f"Invalid {entity_type}: {reason}",
            field=field,
            context={
                "entity_type": entity_type,
                "errors": [
                    {
                        "field": ".".join(str(part) for part in d.get("loc", ())),
                        "message": d.get("msg", ""),
                    }
                    for d in details
                ],
            },
            cause=error,
        )


class DuplicateKeyError(ValidationError):
    """Raised when attempting to create an entity whose identifier already exists."""

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        **kwargs
    ):
        message = kwargs.pop("message", None) or f"{entity_type} already exists (ID: {entity_id})"

        context = kwargs.pop("context", {})
        context["entity_type"] = entity_type
        context["entity_id"] = entity_id

        super().__init__(
            message,
            field=kwargs.pop("field", None),
            error_code=kwargs.pop("error_code", ErrorCode.ENTITY_ALREADY_EXISTS),
            context=context,
            **kwargs
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class DuplicateEnrollmentError(DuplicateKeyError):
    """Raised when an active enrollment already exists for a (student, course, semester)."""

    def __init__(self, enrollment_id: str, **kwargs):
        super().__init__(
            "Enrollment",
            enrollment_id,
            message=kwargs.pop("message", None)
            or f"Student already actively enrolled (ID: {enrollment_id})",
            error_code=ErrorCode.DUPLICATE_ENROLLMENT,
            **kwargs
        )


class EntityNotFoundError(DomainException):
    """Raised when a student, course or enrollment is absent."""

    entity_type = "Entity"

    def __init__(
        self,
        entity_id: str | None = None,
        **kwargs
    ):
        message = kwargs.pop("message", None) or f"{self.entity_type} not found"
        if entity_id:
            message += f" (ID: {entity_id})"

        context = kwargs.pop("context", {})
        context["entity_type"] = self.entity_type
        if entity_id:
            context["entity_id"] = entity_id

        super().__init__(
            message=message,
            error_code=ErrorCode.ENTITY_NOT_FOUND,
            context=context,
            **kwargs
        )
        self.entity_id = entity_id


class StudentNotFoundError(EntityNotFoundError):
    entity_type = "Student"


class CourseNotFoundError(EntityNotFoundError):
    entity_type = "Course"


class EnrollmentNotFoundError(EntityNotFoundError):
    entity_type = "Enrollment"


class InvalidEnrollmentError(DomainException):
    """Raised on an illegal state transition or an ineligible student/course."""

    def __init__(
        self,
        message: str,
        enrollment_id: str | None = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if enrollment_id:
            context["enrollment_id"] = enrollment_id

        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_STATE_TRANSITION,
            context=context,
            **kwargs
        )
        self.enrollment_id = enrollment_id


class EnrollmentPolicyViolationError(DomainException):
    """Raised when enrollment policies are violated."""

    def __init__(
        self,
        reason: str,
        violated_rules: list[str] | None = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if violated_rules:
            context["violated_rules"] = violated_rules

        super().__init__(
            message=reason,
            error_code=kwargs.pop("error_code", ErrorCode.ENROLLMENT_POLICY_VIOLATION),
            context=context,
            **kwargs
        )
        self.reason = reason
        self.violated_rules = violated_rules or []


class CreditLimitExceededError(EnrollmentPolicyViolationError):
    """Raised when an enrollment would push a semester load over the credit ceiling."""

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            reason,
            violated_rules=kwargs.pop("violated_rules", None) or ["credit_limit"],
            error_code=ErrorCode.CREDIT_LIMIT_EXCEEDED,
            **kwargs
        )


class PrerequisitesNotMetError(EnrollmentPolicyViolationError):
    """Raised when a student has not passed every prerequisite of a course."""

    def __init__(self, reason: str, missing: list[str] | None = None, **kwargs):
        context = kwargs.pop("context", {})
        if missing:
            context["missing_prerequisites"] = missing

        super().__init__(
            reason,
            violated_rules=kwargs.pop("violated_rules", None) or ["prerequisite_requirement"],
            error_code=ErrorCode.PREREQUISITE_NOT_MET,
            context=context,
            **kwargs
        )
        self.missing = missing or []


class ConfigurationError(DomainException):
    """Raised when policy configuration is invalid."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            **kwargs
        )
