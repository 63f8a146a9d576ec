"""
Academic Calendar

Semester value object with chronological ordering and sequencing.
"""

from datetime import date
from enum import Enum
from functools import total_ordering
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Season(str, Enum):
    """Academic season, declared in chronological order within a year."""

    SPRING = "Spring"
    SUMMER = "Summer"
    FALL = "Fall"

    @property
    def ordinal(self) -> int:
        return _SEASON_ORDER.index(self)

    @classmethod
    def parse(cls, value: str) -> "Season":
        """Parse a season name case-insensitively ("fall", "FALL", "Fall")."""
        normalized = value.strip().upper()
        try:
            return cls[normalized]
        except KeyError:
            raise ValueError(f"Invalid season: {value}") from None


_SEASON_ORDER = (Season.SPRING, Season.SUMMER, Season.FALL)


@total_ordering
class Semester(BaseModel):
    """
    A (year, season) pair.

    Semesters are ordered year-major, season-minor, which is what transcripts
    and enrollment listings sort by.
    """

    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1900, le=9999)
    season: Season

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Semester):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Semester):
            return NotImplemented
        return self.sort_key == other.sort_key

    def __hash__(self) -> int:
        return hash(self.sort_key)

    def __str__(self) -> str:
        return f"{self.season.value} {self.year}"

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.year, self.season.ordinal)

    @property
    def label(self) -> str:
        """Display label used as the GPA history key (e.g. "Fall 2024")."""
        return str(self)

    def next(self) -> "Semester":
        """Get the following semester."""
        if self.season is Season.FALL:
            return Semester(year=self.year + 1, season=Season.SPRING)
        return Semester(year=self.year, season=_SEASON_ORDER[self.season.ordinal + 1])

    def previous(self) -> "Semester":
        """Get the preceding semester."""
        if self.season is Season.SPRING:
            return Semester(year=self.year - 1, season=Season.FALL)
        return Semester(year=self.year, season=_SEASON_ORDER[self.season.ordinal - 1])

    @classmethod
    def of(cls, year: int, season: Season | str) -> "Semester":
        """Build a semester from a year and a season enum or name."""
        if isinstance(season, str) and not isinstance(season, Season):
            season = Season.parse(season)
        return cls(year=year, season=season)

    @classmethod
    def parse(cls, value: str) -> "Semester":
        """
        Parse a semester label such as "Spring 2024" or "FALL 2023".

        Raises:
            ValueError: If the label is malformed
        """
        parts = value.split()
        if len(parts) != 2 or not parts[1].isdigit():
            raise ValueError(f"Invalid semester label: {value!r}")
        return cls.of(int(parts[1]), parts[0])

    @classmethod
    def containing(cls, day: date) -> "Semester":
        """
        Get the semester a calendar date falls in.

        Months 1-5 are Spring, 6-8 Summer and 9-12 Fall.
        """
        if day.month <= 5:
            return cls(year=day.year, season=Season.SPRING)
        if day.month <= 8:
            return cls(year=day.year, season=Season.SUMMER)
        return cls(year=day.year, season=Season.FALL)


def coerce_semester(value: Any) -> Semester:
    """Accept a Semester or a "Season YYYY" label."""
    if isinstance(value, Semester):
        return value
    if isinstance(value, str):
        return Semester.parse(value)
    raise TypeError(f"Expected Semester or label, got {type(value).__name__}")
