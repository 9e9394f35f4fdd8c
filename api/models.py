"""Pydantic schemas used by the API endpoints."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class ConfigResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    knobs: Dict[str, Any]


class ConfigUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    updates: Dict[str, Any] = Field(default_factory=dict)


class LeagueMetadataResponse(CamelModel):
    last_reload: datetime
    source: str
    seasons: List[int]
    skipped_seasons: Dict[str, List[str]] = Field(default_factory=dict)
    current_season: Optional[int] = None
    current_week: Optional[int] = None
    owner_count: int
    settings: Dict[str, Any]


class LeagueReloadRequest(CamelModel):
    sheet_path: Optional[str] = None


class SeasonStatusValue(str, Enum):
    in_progress = "in_progress"
    complete = "complete"


class SeasonMetricRow(CamelModel):
    season: int
    roster_id: str
    owner_id: Optional[str] = None
    team_name: str
    wins: int
    losses: int
    ties: int
    regular_season_wins: int
    regular_season_losses: int
    regular_season_ties: int
    points_for: float
    points_against: float
    regular_season_points_for: float
    total_games: int
    average_score: float
    win_percentage: float
    raw_dpr: float
    adjusted_dpr: float
    all_play_wins: int
    all_play_losses: int
    all_play_ties: int
    all_play_win_percentage: float
    expected_wins: float
    luck_rating: float
    high_score: float
    low_score: float
    top_score_weeks_count: int
    weekly_top2_scores_count: int
    blowout_wins: int
    blowout_losses: int
    slim_wins: int
    slim_losses: int
    is_champion: bool
    is_runner_up: bool
    is_third_place: bool
    is_points_champion: bool
    is_points_runner_up: bool
    is_third_place_points: bool
    made_playoffs: bool
    rank: Union[int, str]
    points_rank: Union[int, str]


class PowerRow(CamelModel):
    roster_id: str
    team_name: str
    power_score: float
    elo: float
    momentum: float
    recent_form: float
    strength_of_schedule: float
    win_percentage: float
    average_score: float
    point_differential: float
    luck_rating: float
    games_played: int
    elo_timeline: List[Tuple[int, float]] = Field(default_factory=list)


class SeasonMetricsResponse(CamelModel):
    season: int
    status: SeasonStatusValue
    playoff_ranks: Dict[str, Union[int, str]]
    rows: List[SeasonMetricRow]
    power: List[PowerRow]


class CareerRow(CamelModel):
    owner_id: str
    team_name: str
    seasons: List[int]
    seasons_played: int
    wins: int
    losses: int
    ties: int
    points_for: float
    points_against: float
    total_games: int
    average_score: float
    win_percentage: float
    raw_dpr: float
    adjusted_dpr: float
    all_play_wins: int
    all_play_losses: int
    all_play_ties: int
    all_play_win_percentage: float
    luck_rating: float
    high_score: float
    low_score: float
    highest_seasonal_points_avg: float
    lowest_seasonal_points_avg: float
    top_score_weeks_count: int
    weekly_top2_scores_count: int
    blowout_wins: int
    blowout_losses: int
    slim_wins: int
    slim_losses: int
    championships: int
    runner_ups: int
    third_places: int
    points_championships: int
    points_runner_ups: int
    third_place_points: int
    playoff_appearances_count: int


class CareerResponse(CamelModel):
    items: List[CareerRow]
    total: int


class MilestoneRow(CamelModel):
    milestone: str
    threshold: float
    owner_id: str
    team_name: str
    season: int
    week: int
    order: int


class MilestoneResponse(CamelModel):
    items: List[MilestoneRow]
    total: int


class VersusRow(CamelModel):
    owner_id: str
    opponent_id: str
    team_name: str
    opponent_name: str
    games: int
    wins: int
    losses: int
    ties: int
    win_percentage: float
    points_for: float
    points_against: float


class VersusResponse(CamelModel):
    items: List[VersusRow]
    total: int


class StreakRow(CamelModel):
    owner_id: str
    team_name: str
    longest_win_streak: int
    longest_loss_streak: int
    current_streak: int


class StreakResponse(CamelModel):
    items: List[StreakRow]
    total: int


class MarketQuoteModel(CamelModel):
    roster_a: str
    roster_b: str
    team_a: str
    team_b: str
    win_probability_a: float
    win_probability_b: float
    moneyline_a: int
    moneyline_b: int
    implied_probability_a: float
    implied_probability_b: float
    hold: float
    spread: float
    spread_odds: int
    total: float
    over_odds: int
    under_odds: int
    favorite: Optional[str] = None
    reconciled: bool = False
    season: Optional[int] = None
    week: Optional[int] = None


class WeekMarketsResponse(CamelModel):
    season: int
    week: int
    markets: List[MarketQuoteModel]


class MatchupQuoteRequest(CamelModel):
    season: int
    roster_a: str
    roster_b: str
    week: Optional[int] = Field(default=None, ge=1)
    vig: Optional[float] = Field(default=None, ge=0.0, lt=0.5)


class MatchupQuoteResponse(CamelModel):
    quote: MarketQuoteModel
    breakdown: Dict[str, Any]


class PlayoffTeamOdds(CamelModel):
    roster_id: str
    owner_id: Optional[str] = None
    team_name: str
    wins: int
    losses: int
    ties: int
    points_for: float
    games_played: int
    power_score: float
    playoff_probability: float
    seed_distribution: List[int]
    average_seed: Optional[float] = None
    championship_probability: float
    american_odds: Optional[int] = None
    decimal_odds: Optional[float] = None
    eliminated: bool
    eliminated_from_record: bool
    eliminated_from_points: bool
    max_possible_wins: int
    remaining_games: int


class PlayoffSimulationMeta(CamelModel):
    runs: int
    remaining_weeks: int
    playoff_spots: int
    seed: Optional[int] = None


class PlayoffOddsResponse(CamelModel):
    season: int
    teams: List[PlayoffTeamOdds]
    simulation: PlayoffSimulationMeta


class PlayoffJobRequest(CamelModel):
    season: Optional[int] = None
    simulations: Optional[int] = Field(default=None, ge=1, le=100000)
    seed: Optional[int] = None


class JobStatus(str, Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


class JobInfo(CamelModel):
    job_id: str
    job_type: str
    status: JobStatus
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class JobListResponse(CamelModel):
    items: List[JobInfo]
    total: int


class JobCreatedResponse(CamelModel):
    job_id: str
    status: JobStatus
