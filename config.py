"""Runtime configuration knobs for the league metrics and odds engine.

Every tunable used by the engine lives in a thread-safe :class:`SettingsManager`
so the API layer can adjust vig, simulation sizes, or Elo parameters without a
restart. Engine functions read ``settings.get(...)`` at call time and also accept
explicit keyword overrides, which is what the tests use.
"""

from __future__ import annotations

from threading import RLock
from typing import Any, Dict


class SettingsManager:
    """Thread-safe accessor for mutable engine knobs.

    The manager stores a copy of the default settings and exposes ``get``/``set``
    helpers. ``snapshot`` returns a plain dictionary that can be embedded in API
    responses without risking mid-request mutation.
    """

    def __init__(self, defaults: Dict[str, Any]) -> None:
        self._defaults = dict(defaults)
        self._settings = dict(defaults)
        self._lock = RLock()

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._settings.keys())

    def get(self, name: str) -> Any:
        with self._lock:
            if name not in self._settings:
                raise KeyError(f"Unknown setting '{name}'")
            return self._settings[name]

    def set(self, name: str, value: Any) -> None:
        with self._lock:
            if name not in self._settings:
                raise KeyError(f"Unknown setting '{name}'")
            if name == "bracket_fallback_order" and value not in BRACKET_FALLBACK_ORDERS:
                raise ValueError(
                    f"bracket_fallback_order must be one of {sorted(BRACKET_FALLBACK_ORDERS)}"
                )
            self._settings[name] = value

    def reset(self, name: str | None = None) -> None:
        with self._lock:
            if name is None:
                self._settings = dict(self._defaults)
                return
            if name not in self._defaults:
                raise KeyError(f"Unknown setting '{name}'")
            self._settings[name] = self._defaults[name]

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._settings)


BRACKET_FALLBACK_ORDERS = {"roster_id", "standings"}

_DEFAULT_SETTINGS: Dict[str, Any] = {
    "vig": 0.045,
    "championship_vig": 0.10,
    "elo_initial_rating": 1500.0,
    "elo_k_factor": 32.0,
    "momentum_games": 6,
    "win_probability_momentum_games": 4,
    "recent_form_games": 4,
    "regular_season_games": 14,
    "default_playoff_week_start": 15,
    "default_playoff_rounds": 3,
    "playoff_record_seeds": 4,
    "playoff_wildcard_seeds": 2,
    "elimination_min_games": 8,
    "sim_trials_preview": 250,
    "sim_trials_precision": 3000,
    "dpr_cache_ttl_seconds": 30.0,
    "odds_tolerance_cents": 50,
    "odds_tolerance_probability": 0.05,
    "bracket_fallback_order": "roster_id",
    "history_seasons_for_totals": 3,
}

SETTINGS_HELP: Dict[str, str] = {
    "vig": "Book margin applied to matchup moneylines; half is added to the favourite's probability and half removed from the underdog's.",
    "championship_vig": "Multiplicative margin applied to championship futures before conversion to American odds.",
    "elo_initial_rating": "Rating every roster starts each season with.",
    "elo_k_factor": "Maximum Elo swing from a single game.",
    "momentum_games": "How many recent games feed the momentum term of the power score.",
    "win_probability_momentum_games": "How many recent games feed the momentum differential of the win-probability model.",
    "recent_form_games": "Window (in games) used for recent-form win rate.",
    "regular_season_games": "Regular-season length for elimination checks run without a season schedule; a loaded season uses its playoff start week.",
    "default_playoff_week_start": "First playoff week when the league metadata does not provide one.",
    "default_playoff_rounds": "Playoff rounds assumed when no winners bracket is available.",
    "playoff_record_seeds": "Seeds awarded strictly by record under hybrid seeding.",
    "playoff_wildcard_seeds": "Wildcard seeds awarded by points-for among the remaining rosters.",
    "elimination_min_games": "Games a roster must have played before elimination is evaluated.",
    "sim_trials_preview": "Monte Carlo trials for interactive (preview-speed) requests.",
    "sim_trials_precision": "Monte Carlo trials for background (precision-grade) jobs.",
    "dpr_cache_ttl_seconds": "Lifetime of memoized DPR team profiles keyed by (season, week).",
    "odds_tolerance_cents": "Largest moneyline gap (in cents) tolerated between probability-derived and spread-derived prices.",
    "odds_tolerance_probability": "Largest implied-probability gap tolerated between probability-derived and spread-derived prices.",
    "bracket_fallback_order": "Ordering for bracket participants left unranked: 'roster_id' (ascending id) or 'standings' (regular-season points).",
    "history_seasons_for_totals": "Completed seasons averaged into the league scoring baseline used for totals.",
}

settings = SettingsManager(_DEFAULT_SETTINGS)
