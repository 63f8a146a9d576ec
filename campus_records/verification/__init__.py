"""Runtime verification of enrollment invariants."""

from campus_records.verification.enrollment_invariants import (
    InvariantMonitor,
    InvariantViolation,
    InvariantViolationType,
    assert_enrollment_invariant,
)

__all__ = [
    "InvariantMonitor",
    "InvariantViolation",
    "InvariantViolationType",
    "assert_enrollment_invariant",
]
