"""
Standings calculator: league and group tables derived from completed matches.

Rows are projections: they are recomputed from matches (and card events for the
fair-play criterion) on every call and are never stored as ground truth.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence

from matchday.services.competition_config import (
    CRITERION_FAIR_PLAY,
    CRITERION_POINTS,
    DEFAULT_CRITERIA,
    MatchRules,
)
from matchday.services.exceptions import DataIntegrityError, InvalidConfigurationError
from matchday.services.match_lifecycle import STATUS_CANCELLED, STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_SCHEDULED
from matchday.services.tiebreakers import TiebreakContext, resolve_order

logger = logging.getLogger(__name__)


@dataclass
class HeadToHead:
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0


@dataclass
class StandingsRow:
    team_id: Hashable
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0
    fair_play_points: int = 0
    position: int = 0
    group: Optional[str] = None
    tie_broken_randomly: bool = False
    head_to_head: Dict[Hashable, HeadToHead] = field(default_factory=dict)

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["goal_difference"] = self.goal_difference
        data["head_to_head"] = {str(k): v for k, v in data["head_to_head"].items()}
        return data


def _effective_criteria(criteria: Optional[Sequence[str]]) -> List[str]:
    chain = list(criteria) if criteria else list(DEFAULT_CRITERIA)
    # Points always lead, wherever (or whether) the chain lists them
    return [CRITERION_POINTS] + [c for c in chain if c != CRITERION_POINTS]


def _fair_play_totals(
    events: Iterable[Any], match_ids: set, weights: Mapping[str, int]
) -> Dict[Hashable, int]:
    totals: Dict[Hashable, int] = Counter()
    for ev in events:
        if ev.match_id not in match_ids:
            continue
        totals[ev.team_id] += weights.get(ev.event_type, 0)
    return totals


def compute_standings(
    team_ids: Sequence[Hashable],
    matches: Iterable[Any],
    rules: Optional[MatchRules] = None,
    criteria: Optional[Sequence[str]] = None,
    events: Iterable[Any] = (),
    fair_play_points: Optional[Mapping[str, int]] = None,
    random_seed: str = "",
    strict: bool = False,
    group: Optional[str] = None,
) -> List[StandingsRow]:
    """
    Fold completed matches into one row per team and order the rows.

    Only matches with status "completed" count. A completed match that references a
    team outside team_ids, or that has no score, raises DataIntegrityError.

    The fairPlay criterion needs fair_play_points (event_type -> disciplinary points);
    there is no default weighting.
    """
    rules = rules or MatchRules()
    chain = _effective_criteria(criteria)
    if CRITERION_FAIR_PLAY in chain and not fair_play_points:
        raise InvalidConfigurationError("fairPlay criterion requires explicit fair_play_points weights")

    if len(set(team_ids)) != len(team_ids):
        raise DataIntegrityError("Duplicate team ids in standings input")
    rows: Dict[Hashable, StandingsRow] = {tid: StandingsRow(team_id=tid, group=group) for tid in team_ids}

    completed = [m for m in matches if m.status == STATUS_COMPLETED]
    for m in completed:
        for tid in (m.home_team_id, m.away_team_id):
            if tid not in rows:
                raise DataIntegrityError(f"Match {m.id} references unknown team {tid}")
        if m.home_score is None or m.away_score is None:
            raise DataIntegrityError(f"Completed match {m.id} has no score")

        for tid, opp, scored, conceded in (
            (m.home_team_id, m.away_team_id, m.home_score, m.away_score),
            (m.away_team_id, m.home_team_id, m.away_score, m.home_score),
        ):
            row = rows[tid]
            h2h = row.head_to_head.setdefault(opp, HeadToHead())
            row.played += 1
            h2h.played += 1
            row.goals_for += scored
            row.goals_against += conceded
            h2h.goals_for += scored
            h2h.goals_against += conceded
            if scored > conceded:
                row.won += 1
                h2h.won += 1
                row.points += rules.points_for_win
            elif scored == conceded:
                row.drawn += 1
                h2h.drawn += 1
                row.points += rules.points_for_draw
            else:
                row.lost += 1
                h2h.lost += 1
                row.points += rules.points_for_loss

    if fair_play_points:
        totals = _fair_play_totals(events, {m.id for m in completed}, fair_play_points)
        for tid, row in rows.items():
            row.fair_play_points = totals.get(tid, 0)

    outcome = resolve_order(
        list(rows.values()),
        chain,
        TiebreakContext(completed_matches=completed, random_seed=random_seed, strict=strict),
    )

    ordered = []
    for position, tid in enumerate(outcome.ordered_team_ids, start=1):
        row = rows[tid]
        row.position = position
        row.tie_broken_randomly = tid in outcome.randomly_ordered
        ordered.append(row)
    return ordered


def compute_group_standings(
    groups: Mapping[str, Sequence[Hashable]],
    matches: Iterable[Any],
    rules: Optional[MatchRules] = None,
    criteria: Optional[Sequence[str]] = None,
    events: Iterable[Any] = (),
    fair_play_points: Optional[Mapping[str, int]] = None,
    random_seed: str = "",
    strict: bool = False,
) -> Dict[str, List[StandingsRow]]:
    """One table per group label; only matches carrying that group label are counted."""
    matches = list(matches)
    events = list(events)
    tables: Dict[str, List[StandingsRow]] = {}
    for label in sorted(groups.keys()):
        group_matches = [m for m in matches if m.group == label]
        tables[label] = compute_standings(
            list(groups[label]),
            group_matches,
            rules=rules,
            criteria=criteria,
            events=events,
            fair_play_points=fair_play_points,
            random_seed=random_seed,
            strict=strict,
            group=label,
        )
    return tables


def tournament_statistics(matches: Iterable[Any]) -> Dict[str, Any]:
    """Match counts by status and goal totals over completed matches."""
    matches = list(matches)
    by_status = Counter(m.status for m in matches)
    completed = [m for m in matches if m.status == STATUS_COMPLETED and m.home_score is not None]
    total_goals = sum((m.home_score or 0) + (m.away_score or 0) for m in completed)
    return {
        "total_matches": len(matches),
        "scheduled": by_status.get(STATUS_SCHEDULED, 0),
        "in_progress": by_status.get(STATUS_IN_PROGRESS, 0),
        "completed": by_status.get(STATUS_COMPLETED, 0),
        "cancelled": by_status.get(STATUS_CANCELLED, 0),
        "total_goals": total_goals,
        "average_goals_per_match": round(total_goals / len(completed), 2) if completed else 0.0,
    }
