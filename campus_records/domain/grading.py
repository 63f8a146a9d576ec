"""
Grades and GPA Arithmetic

Letter grades with quality-point values, and the credit-weighted GPA
formula shared by students, the enrollment engine and transcripts.
"""

from collections.abc import Iterable
from enum import Enum
from typing import Protocol


class Grade(str, Enum):
    """Letter grade; the value is the letter as printed on a transcript."""

    A_PLUS = "A+"
    A = "A"
    A_MINUS = "A-"
    B_PLUS = "B+"
    B = "B"
    B_MINUS = "B-"
    C_PLUS = "C+"
    C = "C"
    C_MINUS = "C-"
    D_PLUS = "D+"
    D = "D"
    F = "F"
    INCOMPLETE = "I"
    WITHDRAWAL = "W"
    PASS = "P"
    NO_PASS = "NP"

    @property
    def quality_points(self) -> float:
        """Numeric value on the 4.0 scale."""
        return _QUALITY_POINTS[self]

    @property
    def is_passing(self) -> bool:
        return self not in _NOT_PASSING

    @property
    def counts_toward_gpa(self) -> bool:
        return self not in _NOT_COUNTED

    @classmethod
    def from_letter(cls, letter: str) -> "Grade":
        """
        Convert a letter such as "b+" or " NP " to a Grade.

        Raises:
            ValueError: If the letter is not a known grade
        """
        normalized = letter.strip().upper()
        for grade in cls:
            if grade.value == normalized:
                return grade
        raise ValueError(f"Invalid grade: {letter}")

    @classmethod
    def from_points(cls, value: float) -> "Grade":
        """Map a quality-point value back to a letter grade; unknown values map to F."""
        return _BY_POINTS.get(round(value, 1), cls.F)


_QUALITY_POINTS: dict[Grade, float] = {
    Grade.A_PLUS: 4.0,
    Grade.A: 4.0,
    Grade.A_MINUS: 3.7,
    Grade.B_PLUS: 3.3,
    Grade.B: 3.0,
    Grade.B_MINUS: 2.7,
    Grade.C_PLUS: 2.3,
    Grade.C: 2.0,
    Grade.C_MINUS: 1.7,
    Grade.D_PLUS: 1.3,
    Grade.D: 1.0,
    Grade.F: 0.0,
    Grade.INCOMPLETE: 0.0,
    Grade.WITHDRAWAL: 0.0,
    Grade.PASS: 3.0,
    Grade.NO_PASS: 0.0,
}

_NOT_PASSING = frozenset({Grade.F, Grade.NO_PASS, Grade.INCOMPLETE, Grade.WITHDRAWAL})
_NOT_COUNTED = frozenset({Grade.INCOMPLETE, Grade.WITHDRAWAL, Grade.PASS, Grade.NO_PASS})

# A+ and A share 4.0; the reverse lookup yields A+.
_BY_POINTS: dict[float, Grade] = {
    4.0: Grade.A_PLUS,
    3.7: Grade.A_MINUS,
    3.3: Grade.B_PLUS,
    3.0: Grade.B,
    2.7: Grade.B_MINUS,
    2.3: Grade.C_PLUS,
    2.0: Grade.C,
    1.7: Grade.C_MINUS,
    1.3: Grade.D_PLUS,
    1.0: Grade.D,
}


def coerce_grade(value: "Grade | str") -> Grade:
    """Accept a Grade or its letter."""
    if isinstance(value, Grade):
        return value
    return Grade.from_letter(value)


class GradedWork(Protocol):
    """Anything carrying a grade and a credit count (an Enrollment, a transcript row)."""

    @property
    def grade(self) -> Grade | None: ...

    @property
    def credits(self) -> int: ...


def calculate_gpa(items: Iterable[GradedWork]) -> float:
    """
    Credit-weighted GPA over graded, GPA-counting work.

    Returns exactly 0.0 when nothing counts.
    """
    total_points = 0.0
    total_credits = 0
    for item in items:
        grade = item.grade
        if grade is None or not grade.counts_toward_gpa:
            continue
        total_points += grade.quality_points * item.credits
        total_credits += item.credits

    if total_credits == 0:
        return 0.0
    return total_points / total_credits


def calculate_credits_earned(items: Iterable[GradedWork]) -> int:
    """Sum of credits for work with a passing grade."""
    return sum(
        item.credits for item in items if item.grade is not None and item.grade.is_passing
    )
