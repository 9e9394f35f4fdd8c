"""Route registration helpers."""

from . import config, health, jobs, league, markets, metrics, playoffs  # noqa: F401

__all__ = [
    "config",
    "health",
    "jobs",
    "league",
    "markets",
    "metrics",
    "playoffs",
]
