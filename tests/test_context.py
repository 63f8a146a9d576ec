from dataclasses import dataclass, field

import pytest
from conftest import FALL_2023, SPRING_2024, TODAY, add_student

from campus_records.context import RecordsContext
from campus_records.domain.academic import EnrollmentStatus
from campus_records.domain.exceptions import (
    ConfigurationError,
    DuplicateKeyError,
    StudentNotFoundError,
)
from campus_records.domain.grading import Grade
from campus_records.persistence import EnrollmentRecord, RecordSource


@dataclass
class MemorySource:
    students: list = field(default_factory=list)
    courses: list = field(default_factory=list)
    enrollments: list = field(default_factory=list)

    def load_students(self):
        return list(self.students)

    def load_courses(self):
        return list(self.courses)

    def load_enrollments(self):
        return list(self.enrollments)


@pytest.fixture
def populated(records, student, catalog):
    add_student(records, "S2", "Charles", "Babbage")
    intro = records.enrollments.enroll("S1001", "CS101", FALL_2023)
    records.enrollments.record_grade(intro.enrollment_id, Grade.A_MINUS, "solid")
    records.enrollments.enroll("S1001", "CS201", SPRING_2024)
    records.enrollments.enroll("S2", "MATH101", SPRING_2024)
    return records


def test_snapshot_is_flat(populated):
    snapshot = populated.snapshot()

    assert snapshot.taken_on == TODAY
    assert [s.student_id for s in snapshot.students] == ["S2", "S1001"]
    assert all(s.enrollments == () for s in snapshot.students)
    assert [c.course_code for c in snapshot.courses] == ["CS101", "CS201", "MATH101"]
    first = snapshot.enrollments[0]
    assert first == EnrollmentRecord(
        enrollment_id="S1001_CS101_FALL_2023",
        student_id="S1001",
        course_code="CS101",
        semester=FALL_2023,
        enrollment_date=TODAY,
        grade=Grade.A_MINUS,
        status=EnrollmentStatus.COMPLETED,
        notes="solid",
    )


def test_load_round_trips_a_snapshot(populated, settings):
    snapshot = populated.snapshot()
    source = MemorySource(snapshot.students, snapshot.courses, snapshot.enrollments)
    assert isinstance(source, RecordSource)

    restored = RecordsContext(settings, clock=lambda: TODAY)
    restored.load(source)

    assert restored.snapshot() == snapshot
    ada = restored.students.get("S1001")
    assert {e.enrollment_id for e in ada.enrollments} == {
        "S1001_CS101_FALL_2023",
        "S1001_CS201_SPRING_2024",
    }
    assert ada.gpa_history == pytest.approx({"Fall 2023": 3.7})
    assert restored.enrollments.credit_load("S1001", SPRING_2024) == 3
    assert restored.verify() == []


def test_load_rejects_dangling_references_and_keeps_previous_records(populated):
    before = populated.snapshot()
    source = MemorySource(
        before.students,
        before.courses,
        [
            EnrollmentRecord(
                enrollment_id="S9_CS101_SPRING_2024",
                student_id="S9",
                course_code="CS101",
                semester=SPRING_2024,
                enrollment_date=TODAY,
            )
        ],
    )
    with pytest.raises(StudentNotFoundError):
        populated.load(source)
    assert populated.snapshot() == before


def test_load_rejects_duplicate_students(populated):
    before = populated.snapshot()
    with pytest.raises(DuplicateKeyError):
        populated.load(MemorySource(before.students * 2, before.courses, []))
    assert len(populated.enrollments.store) == 3


def test_load_keeps_previous_records_on_malformed_items(populated):
    before = populated.snapshot()
    with pytest.raises(AttributeError):
        populated.load(MemorySource([*before.students, object()], before.courses, []))
    assert populated.snapshot() == before
    assert populated.verify() == []


def test_create_applies_overrides(settings):
    context = RecordsContext.create(settings, clock=lambda: TODAY, max_credits_per_semester=18)
    assert context.settings.max_credits_per_semester == 18
    assert context.monitor.max_credits_per_semester == 18


def test_create_rejects_inconsistent_settings(settings):
    with pytest.raises(ConfigurationError):
        RecordsContext.create(settings, min_gpa=3.0, max_gpa=2.0)


def test_services_share_one_lock(records):
    assert records.students.lock is records.courses.lock is records.enrollments.lock
    assert not records.lock.is_held()
