"""Display-only odds board: moneylines, spreads and totals for one matchup.

Moneylines come from the model's win probability with the configured vig.
The spread is built separately from the probability edge, the scoring gap and
the power-score gap. A second set of moneylines is read off the spread through
an empirical band table; when the two sets disagree beyond tolerance the
spread-derived prices win and the override is logged.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from config import settings
from errors import InconsistentOddsError
from records import NormalizedSeason
from win_probability import deterministic_unit, numeric_id

logger = logging.getLogger(__name__)

DEFAULT_GAME_TOTAL = 220.0
MIN_TOTAL = 150.0
MAX_TOTAL = 300.0
STANDARD_ODDS = -110

# (max spread, fair win probability of the favourite)
SPREAD_PROBABILITY_BANDS: List[Tuple[float, float]] = [
    (1.0, 0.525),
    (2.5, 0.58),
    (3.5, 0.62),
    (4.5, 0.66),
    (6.5, 0.70),
    (7.5, 0.73),
    (9.5, 0.76),
    (10.5, 0.78),
    (13.5, 0.82),
    (16.5, 0.85),
    (20.0, 0.88),
    (24.0, 0.91),
]
LONGSHOT_SPREAD_PROBABILITY = 0.94


def probability_to_american(probability: float) -> int:
    if not 0.0 < probability < 1.0:
        raise ValueError(f"Probability must be strictly between 0 and 1, got {probability}")
    if probability >= 0.5:
        return int(round(-100 * probability / (1 - probability)))
    return int(round(100 * (1 - probability) / probability))


def implied_probability(american_odds: float) -> float:
    if american_odds < 0:
        return -american_odds / (-american_odds + 100)
    return 100 / (american_odds + 100)


def decimal_odds(probability: float) -> float:
    return 1.0 / probability


def odds_in_cents(american_odds: float) -> float:
    """Distance from even money: -110 -> -10, +120 -> +20."""

    return american_odds - 100 if american_odds >= 100 else american_odds + 100


def apply_vig(probability: float, vig: Optional[float] = None) -> float:
    """Inflate a favourite's probability by half the vig, deflate an underdog's."""

    margin = float(vig if vig is not None else settings.get("vig"))
    if probability >= 0.5:
        return min(0.95, probability + margin / 2)
    return max(0.05, probability - margin / 2)


def moneyline_from_probability(probability: float, vig: Optional[float] = None) -> Tuple[int, int]:
    """American prices for both sides given side A's fair probability."""

    return (
        probability_to_american(apply_vig(probability, vig)),
        probability_to_american(apply_vig(1 - probability, vig)),
    )


def spread_to_probability(spread: float) -> float:
    magnitude = abs(spread)
    for limit, probability in SPREAD_PROBABILITY_BANDS:
        if magnitude <= limit:
            return probability
    return LONGSHOT_SPREAD_PROBABILITY


def spread_to_moneyline(spread_a: float, vig: Optional[float] = None) -> Tuple[int, int]:
    """Moneylines implied by side A's spread (negative = A favoured)."""

    favourite_probability = spread_to_probability(spread_a)
    probability_a = favourite_probability if spread_a <= 0 else 1 - favourite_probability
    return moneyline_from_probability(probability_a, vig)


def spread_stage_multiplier(games_played: int) -> float:
    if games_played <= 2:
        return 0.7
    if games_played <= 4:
        return 1.5
    if games_played <= 8:
        return 2.5
    if games_played <= 12:
        return 3.0
    return 3.5


def soft_cap(value: float, games_played: int) -> float:
    """Asymptotically squash margins beyond ``25 + 2 * games`` points."""

    ceiling = 25 + 2 * games_played
    magnitude = abs(value)
    if magnitude <= ceiling:
        return value
    excess = magnitude - ceiling
    capped = ceiling + excess / (1 + excess / 20)
    return math.copysign(capped, value)


def compute_spread(
    probability_a: float,
    scoring_diff: float,
    power_diff: float,
    games_played: int,
    roster_a: str,
    roster_b: str,
) -> float:
    """Side A's projected margin in points (positive = A expected to win), rounded to 0.5."""

    raw = (probability_a - 0.5) * 15 + scoring_diff * 0.4 + power_diff * 0.1
    raw *= spread_stage_multiplier(games_played)
    seed = numeric_id(roster_a) * 29 + numeric_id(roster_b) * 31
    raw *= 1 + (deterministic_unit(seed) - 0.5) * 0.3
    raw = soft_cap(raw, games_played)
    margin = round(abs(raw) * 2) / 2
    if margin < 0.5:
        return 0.0
    return math.copysign(margin, raw)


def spread_odds(probability_a: float, spread: float, games_played: int) -> int:
    if games_played <= 2:
        stage = 0.6
    elif games_played <= 4:
        stage = 0.8
    elif games_played <= 8:
        stage = 0.95
    else:
        stage = 1.0
    confidence = abs(probability_a - 0.5) * 2 * stage
    odds = STANDARD_ODDS
    if confidence < 0.15:
        odds = -105
    elif confidence < 0.3:
        odds = -108
    elif confidence > 0.7:
        odds = -115
    if abs(spread) > 20:
        odds = max(odds, -108)
    return odds


def pickem_moneyline(probability_a: float) -> Tuple[int, int]:
    if probability_a == 0.5:
        return -105, -105
    if probability_a > 0.5:
        return -110, -105
    return -105, -110


def check_odds_consistency(
    probability_line: int,
    spread_line: int,
    *,
    tolerance_cents: Optional[float] = None,
    tolerance_probability: Optional[float] = None,
) -> None:
    """Raise :class:`InconsistentOddsError` when two prices for one side disagree."""

    cents = float(tolerance_cents if tolerance_cents is not None else settings.get("odds_tolerance_cents"))
    prob_tolerance = float(
        tolerance_probability if tolerance_probability is not None else settings.get("odds_tolerance_probability")
    )
    cents_gap = abs(odds_in_cents(probability_line) - odds_in_cents(spread_line))
    probability_gap = abs(implied_probability(probability_line) - implied_probability(spread_line))
    if cents_gap > cents or probability_gap >= prob_tolerance:
        raise InconsistentOddsError(expected=spread_line, actual=probability_line, gap=probability_gap)


def reconcile_moneylines(
    from_probability: Tuple[int, int],
    from_spread: Tuple[int, int],
    *,
    tolerance_cents: Optional[float] = None,
    tolerance_probability: Optional[float] = None,
) -> Tuple[Tuple[int, int], bool]:
    """Keep probability-derived prices unless they stray from the spread-derived ones."""

    try:
        for probability_line, spread_line in zip(from_probability, from_spread):
            check_odds_consistency(
                probability_line,
                spread_line,
                tolerance_cents=tolerance_cents,
                tolerance_probability=tolerance_probability,
            )
    except InconsistentOddsError as exc:
        logger.warning("Using spread-derived moneyline: %s", exc)
        return from_spread, True
    return from_probability, False


def league_historical_average(
    seasons: Sequence[NormalizedSeason],
    current_season: int,
    count: Optional[int] = None,
) -> float:
    """Mean combined points per game over the trailing completed seasons."""

    window = int(count if count is not None else settings.get("history_seasons_for_totals"))
    previous = sorted((s for s in seasons if s.season < current_season), key=lambda s: s.season)[-window:]
    averages = []
    for season in previous:
        totals = [g.team1_score + g.team2_score for g in season.games(regular_season_only=True)]
        if totals:
            averages.append(float(np.mean(totals)))
    return float(np.mean(averages)) if averages else DEFAULT_GAME_TOTAL


def project_total(average_a: float, average_b: float, historical_total: float, games_played: int) -> float:
    if games_played <= 3:
        historical_weight = 0.7
    elif games_played <= 6:
        historical_weight = 0.5
    else:
        historical_weight = 0.3
    current = average_a + average_b
    if average_a <= 0 or average_b <= 0:
        current = historical_total
    total = historical_weight * historical_total + (1 - historical_weight) * current
    total = max(MIN_TOTAL, min(MAX_TOTAL, total))
    return round(total * 2) / 2


@dataclass(frozen=True)
class MarketQuote:
    roster_a: str
    roster_b: str
    win_probability_a: float
    moneyline_a: int
    moneyline_b: int
    spread: float
    spread_odds: int
    total: float
    over_odds: int = STANDARD_ODDS
    under_odds: int = STANDARD_ODDS
    favorite: Optional[str] = None
    reconciled: bool = False
    season: Optional[int] = None
    week: Optional[int] = None

    @property
    def win_probability_b(self) -> float:
        return 1 - self.win_probability_a

    @property
    def implied_probability_a(self) -> float:
        return implied_probability(self.moneyline_a)

    @property
    def implied_probability_b(self) -> float:
        return implied_probability(self.moneyline_b)

    @property
    def hold(self) -> float:
        return self.implied_probability_a + self.implied_probability_b - 1

    def to_dict(self) -> Dict[str, object]:
        payload = asdict(self)
        payload.update(
            win_probability_b=self.win_probability_b,
            implied_probability_a=self.implied_probability_a,
            implied_probability_b=self.implied_probability_b,
            hold=self.hold,
        )
        return payload


def build_market_quote(
    probability_a: float,
    *,
    roster_a: str,
    roster_b: str,
    average_a: float,
    average_b: float,
    power_a: float = 0.0,
    power_b: float = 0.0,
    games_played: int = 0,
    historical_total: float = DEFAULT_GAME_TOTAL,
    vig: Optional[float] = None,
    season: Optional[int] = None,
    week: Optional[int] = None,
) -> MarketQuote:
    """Turn side A's win probability and both scoring profiles into a full board.

    ``spread`` is quoted from side A's perspective in sportsbook sign: a
    negative number means A is favoured by that many points.
    """

    margin = compute_spread(
        probability_a,
        average_a - average_b,
        power_a - power_b,
        games_played,
        roster_a,
        roster_b,
    )
    line = -margin
    if margin == 0:
        moneylines = pickem_moneyline(probability_a)
        reconciled = False
        favourite = None
    else:
        moneylines, reconciled = reconcile_moneylines(
            moneyline_from_probability(probability_a, vig),
            spread_to_moneyline(line, vig),
        )
        favourite = roster_a if margin > 0 else roster_b

    return MarketQuote(
        roster_a=roster_a,
        roster_b=roster_b,
        win_probability_a=probability_a,
        moneyline_a=moneylines[0],
        moneyline_b=moneylines[1],
        spread=line if line else 0.0,
        spread_odds=spread_odds(probability_a, margin, games_played),
        total=project_total(average_a, average_b, historical_total, games_played),
        favorite=favourite,
        reconciled=reconciled,
        season=season,
        week=week,
    )


__all__ = [
    "MarketQuote",
    "probability_to_american",
    "implied_probability",
    "decimal_odds",
    "apply_vig",
    "moneyline_from_probability",
    "spread_to_probability",
    "spread_to_moneyline",
    "compute_spread",
    "spread_odds",
    "check_odds_consistency",
    "reconcile_moneylines",
    "league_historical_average",
    "project_total",
    "build_market_quote",
]
