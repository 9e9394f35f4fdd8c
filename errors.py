"""Exception taxonomy for the league metrics engine.

All of these are recoverable: they are raised where a data problem is detected
and handled at the nearest seam (row dropped, season skipped, odds reconciled,
ratio defined as zero). None of them escape the engine's public entry points.
"""

from __future__ import annotations

from typing import Optional


class LeagueDataError(ValueError):
    """Base exception for league data problems."""


class MissingDataError(LeagueDataError):
    """A season lacks matchups, league metadata, rosters, or users."""

    def __init__(self, season: Optional[int], missing: list[str]) -> None:
        self.season = season
        self.missing = list(missing)
        super().__init__(f"Season {season} is missing {', '.join(self.missing)}")


class MalformedRecordError(LeagueDataError):
    """A single matchup row has an unparsable week or a non-numeric score."""

    def __init__(self, message: str, record: Optional[dict] = None) -> None:
        self.record = record
        super().__init__(message)


class InconsistentOddsError(LeagueDataError):
    """Probability-derived and spread-derived moneylines disagree."""

    def __init__(self, expected: int, actual: int, gap: float) -> None:
        self.expected = expected
        self.actual = actual
        self.gap = gap
        super().__init__(f"Moneyline {actual} disagrees with spread-implied {expected} (gap {gap:.3f})")


class DegenerateInputError(LeagueDataError):
    """A ratio would divide by zero."""
