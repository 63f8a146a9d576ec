import pytest
from conftest import SPRING_2024, add_course

from campus_records.domain.entities import StudentStatus
from campus_records.domain.policies import (
    RULE_COURSE_AVAILABILITY,
    RULE_CREDIT_LIMIT,
    RULE_PREREQUISITES,
    RULE_STUDENT_STATUS,
    CreditLimitPolicy,
    EnrollmentRequest,
    PrerequisitePolicy,
    create_default_enrollment_policy_engine,
)


@pytest.fixture
def request_for(student, catalog):
    def build(course_code="CS101", **overrides):
        fields = {
            "student": student,
            "course": catalog[course_code],
            "semester": SPRING_2024,
            "enrollment_id": f"S1001_{course_code}_SPRING_2024",
        }
        fields.update(overrides)
        return EnrollmentRequest(**fields)

    return build


def test_default_engine_runs_policies_in_priority_order():
    engine = create_default_enrollment_policy_engine()
    assert engine.get_registered_policies() == [
        "student_status_check",
        "course_availability_check",
        "duplicate_enrollment_check",
        "credit_limit_check",
        "prerequisite_check",
    ]


def test_all_policies_pass(request_for):
    allowed, results = create_default_enrollment_policy_engine().evaluate_all(request_for())
    assert allowed
    assert len(results) == 5
    assert all(r.allowed for r in results)


def test_evaluation_stops_at_first_denial(request_for, student):
    suspended = student.evolve(status=StudentStatus.SUSPENDED)
    allowed, results = create_default_enrollment_policy_engine().evaluate_all(
        request_for("CS201", student=suspended)
    )
    assert not allowed
    assert len(results) == 1
    assert results[0].violated_rules == [RULE_STUDENT_STATUS]


def test_course_availability(records, request_for):
    closed = records.courses.deactivate("CS101")
    allowed, results = create_default_enrollment_policy_engine().evaluate_all(
        request_for(course=closed)
    )
    assert not allowed
    assert results[-1].violated_rules == [RULE_COURSE_AVAILABILITY]


def test_credit_limit_policy_boundary(request_for):
    policy = CreditLimitPolicy(max_credits=21)
    assert policy.evaluate(request_for(current_semester_credits=18)).allowed
    denied = policy.evaluate(request_for(current_semester_credits=19))
    assert not denied.allowed
    assert denied.violated_rules == [RULE_CREDIT_LIMIT]
    assert denied.metadata["total_credits"] == 22


def test_prerequisite_policy_reports_missing_codes(records, request_for):
    add_course(records, "CS301", prerequisites={"CS101", "CS201"})
    course = records.courses.get("CS301")
    policy = PrerequisitePolicy()

    denied = policy.evaluate(request_for(course=course, completed_course_codes={"CS101"}))
    assert denied.violated_rules == [RULE_PREREQUISITES]
    assert denied.metadata["missing_prerequisites"] == ["CS201"]
    assert policy.evaluate(
        request_for(course=course, completed_course_codes={"CS101", "CS201"})
    ).allowed


def test_unregister_policy(request_for):
    engine = create_default_enrollment_policy_engine()
    assert engine.unregister_policy("prerequisite_check")
    assert not engine.unregister_policy("prerequisite_check")
    allowed, _ = engine.evaluate_all(request_for("CS201"))
    assert allowed
