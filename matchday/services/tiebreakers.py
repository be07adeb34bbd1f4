"""
Tiebreaker resolution for standings.

A criteria chain (e.g. points → headToHead → goalDifference → goalsFor) is applied
to a set of teams: each criterion splits the set into sub-groups of equal value,
and only sub-groups that are still tied move on to the next criterion.

The "random" criterion is a deterministic fallback: teams are ordered by a
SHA-256 digest of (seed, team_id). It is also applied implicitly when the
configured chain runs out. Reaching it is logged and reported to the caller,
since it means the configured chain was insufficient.
"""

from __future__ import annotations

import hashlib
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterable, List, Sequence, Set, Tuple

from matchday.services.competition_config import (
    CRITERION_FAIR_PLAY,
    CRITERION_GOAL_DIFFERENCE,
    CRITERION_GOALS_FOR,
    CRITERION_HEAD_TO_HEAD,
    CRITERION_POINTS,
    CRITERION_RANDOM,
    TIEBREAKER_CRITERIA,
)
from matchday.services.exceptions import InvalidConfigurationError, TieUnresolvedError

logger = logging.getLogger(__name__)


@dataclass
class TiebreakContext:
    """Inputs the criteria need beyond the standings rows themselves."""
    completed_matches: Sequence[Any] = ()
    random_seed: str = ""
    strict: bool = False


@dataclass
class TiebreakOutcome:
    ordered_team_ids: List[Hashable]
    # Teams whose final position was decided by the random fallback
    randomly_ordered: Set[Hashable] = field(default_factory=set)


def random_key(team_id: Hashable, seed: str = "") -> str:
    """Stable pseudo-random sort key for a team."""
    return hashlib.sha256(f"{seed}:{team_id}".encode("utf-8")).hexdigest()


def head_to_head_record(
    team_ids: Iterable[Hashable], completed_matches: Sequence[Any]
) -> Dict[Hashable, Tuple[int, int]]:
    """
    Aggregate (goal_difference, goals_for) per team over matches played only
    between teams of the given set.
    """
    subset = set(team_ids)
    gd: Dict[Hashable, int] = defaultdict(int)
    gf: Dict[Hashable, int] = defaultdict(int)
    for m in completed_matches:
        if m.home_team_id not in subset or m.away_team_id not in subset:
            continue
        if m.home_score is None or m.away_score is None:
            continue
        gf[m.home_team_id] += m.home_score
        gf[m.away_team_id] += m.away_score
        gd[m.home_team_id] += m.home_score - m.away_score
        gd[m.away_team_id] += m.away_score - m.home_score
    return {tid: (gd[tid], gf[tid]) for tid in subset}


def _criterion_values(criterion: str, rows: Sequence[Any], context: TiebreakContext) -> Dict[Hashable, Any]:
    """Value per team for one criterion; higher is better."""
    if criterion == CRITERION_POINTS:
        return {r.team_id: r.points for r in rows}
    if criterion == CRITERION_GOAL_DIFFERENCE:
        return {r.team_id: r.goal_difference for r in rows}
    if criterion == CRITERION_GOALS_FOR:
        return {r.team_id: r.goals_for for r in rows}
    if criterion == CRITERION_FAIR_PLAY:
        return {r.team_id: -r.fair_play_points for r in rows}
    if criterion == CRITERION_HEAD_TO_HEAD:
        return head_to_head_record([r.team_id for r in rows], context.completed_matches)
    raise InvalidConfigurationError(f"Unknown tiebreaker criterion: {criterion}")


def _order_randomly(rows: Sequence[Any], context: TiebreakContext, outcome: TiebreakOutcome) -> List[Any]:
    team_ids = [r.team_id for r in rows]
    logger.warning(
        "Random tiebreaker used for teams %s; configured criteria could not separate them", team_ids
    )
    if context.strict:
        raise TieUnresolvedError(team_ids)
    outcome.randomly_ordered.update(team_ids)
    return sorted(rows, key=lambda r: (random_key(r.team_id, context.random_seed), str(r.team_id)))


def _resolve(rows: List[Any], criteria: Sequence[str], context: TiebreakContext, outcome: TiebreakOutcome) -> List[Any]:
    if len(rows) <= 1:
        return list(rows)
    if not criteria or criteria[0] == CRITERION_RANDOM:
        return _order_randomly(rows, context, outcome)

    criterion, rest = criteria[0], criteria[1:]
    values = _criterion_values(criterion, rows, context)

    buckets: Dict[Any, List[Any]] = defaultdict(list)
    for row in rows:
        buckets[values[row.team_id]].append(row)

    ordered: List[Any] = []
    for value in sorted(buckets.keys(), reverse=True):
        bucket = buckets[value]
        if len(bucket) == 1:
            ordered.extend(bucket)
        elif criterion == CRITERION_HEAD_TO_HEAD and len(bucket) < len(rows):
            # Mutual results depend on who is in the group: recompute on the smaller group
            ordered.extend(_resolve(bucket, criteria, context, outcome))
        else:
            ordered.extend(_resolve(bucket, rest, context, outcome))
    return ordered


def validate_criteria(criteria: Sequence[str]) -> List[str]:
    unknown = [c for c in criteria if c not in TIEBREAKER_CRITERIA]
    if unknown:
        raise InvalidConfigurationError(f"Unknown tiebreaker criteria: {unknown}")
    return list(criteria)


def resolve_order(rows: Sequence[Any], criteria: Sequence[str], context: TiebreakContext) -> TiebreakOutcome:
    """
    Order standings rows by the criteria chain.

    Rows need team_id, points, goal_difference, goals_for and fair_play_points.
    The result is a strict total order: if the chain is exhausted the random
    fallback decides (see module docstring).
    """
    criteria = validate_criteria(criteria)
    outcome = TiebreakOutcome(ordered_team_ids=[])
    ordered = _resolve(list(rows), criteria, context, outcome)
    outcome.ordered_team_ids = [r.team_id for r in ordered]
    return outcome


def compare_teams(row_a: Any, row_b: Any, criteria: Sequence[str], context: TiebreakContext) -> int:
    """
    Rank two teams against each other.

    Returns -1 when row_a ranks higher, 1 when row_b ranks higher. Never 0:
    the random fallback always decides.
    """
    outcome = resolve_order([row_a, row_b], criteria, context)
    return -1 if outcome.ordered_team_ids[0] == row_a.team_id else 1
