"""Playoff bracket parsing and final-finish ranking.

Bracket trees follow Sleeper's layout: each node has a round ``r``, a slot
``m``, the two sides ``t1``/``t2``, the result ``w``/``l``, an optional
placement tag ``p`` (1 = championship, 3 = third place, ...) and optional
feeder references ``t1_from``/``t2_from`` such as ``{"w": 1}`` or ``{"l": 2}``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from config import BRACKET_FALLBACK_ORDERS, settings
from records import roster_sort_key
from season_metrics import NOT_AVAILABLE, Rank, SeasonalMetric, SeasonStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BracketMatch:
    round: int
    match_slot: int
    team1: Optional[str] = None
    team2: Optional[str] = None
    winner: Optional[str] = None
    loser: Optional[str] = None
    placement: Optional[int] = None
    team1_from: Optional[str] = None
    team2_from: Optional[str] = None
    bye_teams: Tuple[str, ...] = ()

    @property
    def is_resolved(self) -> bool:
        return self.winner is not None and self.loser is not None

    @property
    def is_loser_fed(self) -> bool:
        return "l" in (self.team1_from, self.team2_from)

    @property
    def has_feeders(self) -> bool:
        return self.team1_from is not None or self.team2_from is not None

    def participants(self) -> List[str]:
        seen: List[str] = []
        for roster_id in (self.team1, self.team2, self.winner, self.loser, *self.bye_teams):
            if roster_id is not None and roster_id not in seen:
                seen.append(roster_id)
        return seen


def _roster(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    return text or None


def _int(value: Any) -> Optional[int]:
    try:
        if value is None or value == "":
            return None
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _feeder(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        for key in ("w", "l"):
            if key in value:
                return key
    if isinstance(value, str) and value in ("w", "l"):
        return value
    return None


def parse_bracket(entries: Iterable[Mapping[str, Any]]) -> List[BracketMatch]:
    """Parse raw bracket nodes, skipping any without a usable round number."""

    matches: List[BracketMatch] = []
    for index, entry in enumerate(entries, start=1):
        round_number = _int(entry.get("r"))
        if round_number is None:
            logger.warning("Skipping bracket node without a round: %r", entry)
            continue
        byes = tuple(rid for rid in (_roster(b) for b in entry.get("bye_teams") or []) if rid)
        matches.append(
            BracketMatch(
                round=round_number,
                match_slot=_int(entry.get("m")) or index,
                team1=_roster(entry.get("t1")),
                team2=_roster(entry.get("t2")),
                winner=_roster(entry.get("w")),
                loser=_roster(entry.get("l")),
                placement=_int(entry.get("p")),
                team1_from=_feeder(entry.get("t1_from")),
                team2_from=_feeder(entry.get("t2_from")),
                bye_teams=byes,
            )
        )
    return matches


def bracket_participants(*trees: Sequence[BracketMatch]) -> List[str]:
    seen: List[str] = []
    for tree in trees:
        for match in tree:
            for roster_id in match.participants():
                if roster_id not in seen:
                    seen.append(roster_id)
    return seen


def championship_match(bracket: Sequence[BracketMatch]) -> Optional[BracketMatch]:
    """Locate the title game of a bracket tree.

    A node tagged ``placement == 1`` wins outright. Otherwise the candidates are
    the final-round nodes not fed by losers; resolved nodes are preferred, then
    the highest slot.
    """

    if not bracket:
        return None
    tagged = [m for m in bracket if m.placement == 1]
    if tagged:
        return tagged[0]
    final_round = max(m.round for m in bracket)
    candidates = [m for m in bracket if m.round == final_round]
    if any(m.has_feeders for m in candidates):
        winner_fed = [m for m in candidates if not m.is_loser_fed]
        candidates = winner_fed or candidates
    return max(candidates, key=lambda m: (m.is_resolved, m.match_slot))


def third_place_match(
    bracket: Sequence[BracketMatch],
    final: Optional[BracketMatch] = None,
) -> Optional[BracketMatch]:
    tagged = [m for m in bracket if m.placement == 3]
    if tagged:
        return tagged[0]
    final = final or championship_match(bracket)
    if final is None:
        return None
    same_round = [m for m in bracket if m.round == final.round and m is not final]
    loser_fed = [m for m in same_round if m.is_loser_fed]
    if loser_fed:
        return loser_fed[0]
    adjacent = [m for m in same_round if abs(m.match_slot - final.match_slot) == 1 and not m.has_feeders]
    return adjacent[0] if adjacent else None


def season_status(winners_bracket: Sequence[BracketMatch]) -> SeasonStatus:
    final = championship_match(winners_bracket)
    if final is not None and final.is_resolved:
        return SeasonStatus.COMPLETE
    return SeasonStatus.IN_PROGRESS


def _assign(ranks: Dict[str, int], roster_id: Optional[str], rank: int) -> None:
    if roster_id is None:
        return
    if roster_id not in ranks or ranks[roster_id] > rank:
        ranks[roster_id] = rank


def _points_key(metrics: Mapping[str, SeasonalMetric], roster_id: str) -> Tuple[float, Tuple[int, Any]]:
    metric = metrics.get(roster_id)
    points = metric.regular_season_points_for if metric else 0.0
    return (-points, roster_sort_key(roster_id))


def _rank_tree(
    tree: Sequence[BracketMatch],
    start: int,
    ranks: Dict[str, int],
    metrics: Mapping[str, SeasonalMetric],
) -> None:
    placed = [m for m in tree if m.placement is not None and m.is_resolved]
    if placed:
        for match in sorted(placed, key=lambda m: m.placement):
            _assign(ranks, match.winner, start + match.placement - 1)
            _assign(ranks, match.loser, start + match.placement)
        return

    final = championship_match(tree)
    if final is None or not final.is_resolved:
        return
    _assign(ranks, final.winner, start)
    _assign(ranks, final.loser, start + 1)

    third = third_place_match(tree, final)
    if third is not None and third.is_resolved:
        _assign(ranks, third.winner, start + 2)
        _assign(ranks, third.loser, start + 3)
        return

    # No consolation game: order the semifinal losers by regular-season points.
    finalists = {final.winner, final.loser}
    semifinal_losers = [
        m.loser
        for m in tree
        if m.round == final.round - 1 and m.is_resolved and m.winner in finalists
    ]
    for offset, roster_id in enumerate(sorted(semifinal_losers, key=lambda rid: _points_key(metrics, rid))):
        _assign(ranks, roster_id, start + 2 + offset)


def _fallback_sorted(
    roster_ids: Iterable[str],
    metrics: Mapping[str, SeasonalMetric],
    order: str,
) -> List[str]:
    if order == "standings":
        def key(roster_id: str):
            metric = metrics.get(roster_id)
            if metric is None:
                return (1, 0.0, 0.0, roster_sort_key(roster_id))
            return (0, -metric.win_percentage, -metric.points_for, roster_sort_key(roster_id))

        return sorted(roster_ids, key=key)
    return sorted(roster_ids, key=roster_sort_key)


def rank_playoff_finishes(
    winners_bracket: Sequence[BracketMatch],
    losers_bracket: Sequence[BracketMatch] = (),
    metrics: Optional[Mapping[str, SeasonalMetric]] = None,
    *,
    fallback_order: Optional[str] = None,
) -> Dict[str, Rank]:
    """Assign a unique final finish to every roster that appears in a bracket.

    Ranks come from placement tags where present, then from the title and
    third-place games. The losers tree continues numbering after every
    winners-tree participant. Participants left unranked fill the remaining
    positions in ``fallback_order`` ("roster_id" or "standings"), and the
    result is compressed to 1..N. When neither tree has a decided match, every
    participant gets ``"N/A"``.
    """

    metrics = metrics or {}
    order = fallback_order or settings.get("bracket_fallback_order")
    if order not in BRACKET_FALLBACK_ORDERS:
        raise ValueError(f"Unknown bracket fallback order '{order}'")

    participants = bracket_participants(winners_bracket, losers_bracket)
    if not any(m.is_resolved for m in list(winners_bracket) + list(losers_bracket)):
        return {roster_id: NOT_AVAILABLE for roster_id in participants}

    ranks: Dict[str, int] = {}
    _rank_tree(winners_bracket, 1, ranks, metrics)
    _rank_tree(losers_bracket, len(bracket_participants(winners_bracket)) + 1, ranks, metrics)

    pending = _fallback_sorted([rid for rid in participants if rid not in ranks], metrics, order)
    if pending:
        logger.info("Ranking %d bracket participant(s) by %s fallback", len(pending), order)
    used = set(ranks.values())
    top = max(used) if used else 0
    for value in range(1, top + 1):
        if value not in used and pending:
            ranks[pending.pop(0)] = value
    for roster_id in pending:
        top += 1
        ranks[roster_id] = top

    ordered = sorted(ranks, key=lambda rid: (ranks[rid], roster_sort_key(rid)))
    return {roster_id: position for position, roster_id in enumerate(ordered, start=1)}


__all__ = [
    "BracketMatch",
    "parse_bracket",
    "bracket_participants",
    "championship_match",
    "third_place_match",
    "season_status",
    "rank_playoff_finishes",
]
