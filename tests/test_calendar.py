from datetime import date

import pytest

from campus_records.domain.calendar import Season, Semester, coerce_semester


def test_semesters_order_year_major_season_minor():
    semesters = [
        Semester.of(2024, "Fall"),
        Semester.of(2023, "Fall"),
        Semester.of(2024, "Spring"),
        Semester.of(2024, "Summer"),
    ]
    assert [str(s) for s in sorted(semesters)] == [
        "Fall 2023",
        "Spring 2024",
        "Summer 2024",
        "Fall 2024",
    ]


def test_semesters_are_hashable_values():
    assert Semester.of(2024, Season.SPRING) == Semester.parse("spring 2024")
    assert len({Semester.of(2024, "Spring"), Semester.parse("SPRING 2024")}) == 1


def test_next_and_previous_wrap_across_years():
    fall = Semester.of(2023, "Fall")
    assert fall.next() == Semester.of(2024, "Spring")
    assert Semester.of(2024, "Spring").previous() == fall
    assert Semester.of(2024, "Spring").next() == Semester.of(2024, "Summer")


@pytest.mark.parametrize(
    "day, expected",
    [
        (date(2024, 1, 15), "Spring 2024"),
        (date(2024, 5, 31), "Spring 2024"),
        (date(2024, 6, 1), "Summer 2024"),
        (date(2024, 8, 31), "Summer 2024"),
        (date(2024, 9, 1), "Fall 2024"),
        (date(2024, 12, 31), "Fall 2024"),
    ],
)
def test_containing_uses_month_rule(day, expected):
    assert Semester.containing(day).label == expected


def test_parse_rejects_malformed_labels():
    with pytest.raises(ValueError):
        Semester.parse("2024 Spring")
    with pytest.raises(ValueError):
        Semester.parse("Winter 2024")


def test_coerce_semester_accepts_labels_only():
    assert coerce_semester("Fall 2023") == Semester.of(2023, "Fall")
    with pytest.raises(TypeError):
        coerce_semester(2023)
