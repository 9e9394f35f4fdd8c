from __future__ import annotations

from pathlib import Path

import pytest
from fastapi import HTTPException

from api.utils import load_context
from context import ContextManager, LeagueSource, load_league_source
from records import RawSeason

SHEET = """Season,Week,Team1,Team1Score,Team2,Team2Score
2021,1,Hawks,100,Owls,90
2021,2,Hawks,95,Owls,99
"""


@pytest.fixture
def no_source(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SLEEPER_LEAGUE_ID", raising=False)
    monkeypatch.delenv("LEAGUE_SHEET_CSV", raising=False)


def test_sheet_backed_context(tmp_path: Path, no_source: None) -> None:
    path = tmp_path / "league.csv"
    path.write_text(SHEET)
    manager = ContextManager(sheet_path=path)
    ctx = manager.get()
    assert manager.get() is ctx
    assert ctx.source == str(path)
    meta = manager.metadata()
    assert meta["seasons"] == [2021]
    assert meta["current_season"] == 2021
    assert meta["owner_count"] == 2
    assert meta["settings"]["vig"] == ctx.settings_snapshot["vig"]


def test_reload_swaps_context(raw_2022: RawSeason, no_source: None) -> None:
    manager = ContextManager(loader=lambda: LeagueSource(seasons=[raw_2022], name="first"))
    first = manager.get()
    first.model.profiles(first.report.season(2022).normalized)
    assert len(first.model.cache) == 1

    second = manager.reload(loader=lambda: LeagueSource(seasons=[], name="second"))
    assert second is not first
    assert manager.get().source == "second"
    assert len(first.model.cache) == 0
    assert manager.metadata()["seasons"] == []


def test_missing_source_is_unavailable(no_source: None) -> None:
    with pytest.raises(RuntimeError):
        load_league_source()
    with pytest.raises(HTTPException) as excinfo:
        load_context(ContextManager())
    assert excinfo.value.status_code == 503


def test_upstream_auth_failure_is_bad_gateway(no_source: None) -> None:
    def denied() -> LeagueSource:
        raise PermissionError("Unauthorized request to /league/1.")

    with pytest.raises(HTTPException) as excinfo:
        load_context(ContextManager(loader=denied))
    assert excinfo.value.status_code == 502
