from dataclasses import dataclass

import pytest

from campus_records.domain.grading import (
    Grade,
    calculate_credits_earned,
    calculate_gpa,
    coerce_grade,
)


@dataclass
class Work:
    grade: Grade | None
    credits: int


def test_from_letter_is_case_insensitive_and_trims():
    assert Grade.from_letter(" b+ ") is Grade.B_PLUS
    assert Grade.from_letter("np") is Grade.NO_PASS
    assert coerce_grade("A-") is Grade.A_MINUS


def test_from_letter_rejects_unknown_letters():
    with pytest.raises(ValueError):
        Grade.from_letter("E")


@pytest.mark.parametrize(
    "points, expected",
    [(4.0, Grade.A_PLUS), (3.3, Grade.B_PLUS), (3.29, Grade.B_PLUS), (1.0, Grade.D), (0.5, Grade.F)],
)
def test_from_points_rounds_to_one_decimal(points, expected):
    assert Grade.from_points(points) is expected


def test_grade_classification():
    assert not Grade.INCOMPLETE.is_passing
    assert not Grade.WITHDRAWAL.counts_toward_gpa
    assert Grade.PASS.is_passing and not Grade.PASS.counts_toward_gpa
    assert Grade.D.is_passing and Grade.D.counts_toward_gpa
    assert Grade.B_PLUS.quality_points == 3.3


def test_gpa_is_credit_weighted():
    gpa = calculate_gpa([Work(Grade.A, 3), Work(Grade.B, 4)])
    assert gpa == pytest.approx(24 / 7)


def test_gpa_ignores_ungraded_and_non_counting_work():
    items = [Work(Grade.A, 3), Work(None, 4), Work(Grade.PASS, 2), Work(Grade.WITHDRAWAL, 3)]
    assert calculate_gpa(items) == 4.0


def test_gpa_with_nothing_countable_is_exactly_zero():
    assert calculate_gpa([]) == 0.0
    assert calculate_gpa([Work(Grade.PASS, 3), Work(Grade.INCOMPLETE, 3)]) == 0.0


def test_credits_earned_counts_passing_grades_only():
    items = [Work(Grade.A, 3), Work(Grade.F, 4), Work(Grade.PASS, 2), Work(None, 3)]
    assert calculate_credits_earned(items) == 5
