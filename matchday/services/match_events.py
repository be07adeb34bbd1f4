"""
Match event recorder: validation, timeline and derived player statistics.

Events are append-only: a correction is a removal followed by a new event.
Recording is possible once a match is in progress and until its result is fully
confirmed. Ordering by (half, minute, added time) is applied when reading.

Halves: 1 and 2 regular time, 3 and 4 extra time, 5 penalty shoot-out.
"""

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence

from matchday.services.competition_config import MatchRules
from matchday.services.exceptions import InvalidEventError
from matchday.services.match_lifecycle import STATUS_CANCELLED, STATUS_SCHEDULED, is_fully_confirmed

logger = logging.getLogger(__name__)

EVENT_GOAL = "goal"
EVENT_OWN_GOAL = "own-goal"
EVENT_YELLOW_CARD = "yellow-card"
EVENT_RED_CARD = "red-card"
EVENT_SECOND_YELLOW = "second-yellow"
EVENT_PENALTY_GOAL = "penalty-goal"
EVENT_PENALTY_MISSED = "penalty-missed"
EVENT_PENALTY_SAVED = "penalty-saved"
EVENT_SUBSTITUTION_IN = "substitution-in"
EVENT_SUBSTITUTION_OUT = "substitution-out"
EVENT_INJURY = "injury"
EVENT_ASSIST = "assist"

EVENT_TYPES = frozenset(
    {
        EVENT_GOAL,
        EVENT_OWN_GOAL,
        EVENT_YELLOW_CARD,
        EVENT_RED_CARD,
        EVENT_SECOND_YELLOW,
        EVENT_PENALTY_GOAL,
        EVENT_PENALTY_MISSED,
        EVENT_PENALTY_SAVED,
        EVENT_SUBSTITUTION_IN,
        EVENT_SUBSTITUTION_OUT,
        EVENT_INJURY,
        EVENT_ASSIST,
    }
)

REQUIRES_SECONDARY_PLAYER = frozenset({EVENT_ASSIST, EVENT_SUBSTITUTION_IN, EVENT_SUBSTITUTION_OUT})
SHOOTOUT_EVENTS = frozenset({EVENT_PENALTY_GOAL, EVENT_PENALTY_MISSED, EVENT_PENALTY_SAVED})

HALF_MIN = 1
HALF_MAX = 5
EXTRA_TIME_HALVES = (3, 4)
SHOOTOUT_HALF = 5
MINUTE_MAX = 120
ADDED_TIME_MAX = 15
COORDINATE_MAX = 100


def _ensure_recording_open(match: Any) -> None:
    if match.status in (STATUS_SCHEDULED, STATUS_CANCELLED):
        raise InvalidEventError(f"Cannot record events for a {match.status} match")
    if is_fully_confirmed(match):
        raise InvalidEventError(f"Match {match.id} result is fully confirmed; events are locked")


def _validate_coordinates(coordinates: Optional[Dict[str, Any]]) -> None:
    if coordinates is None:
        return
    if not isinstance(coordinates, dict):
        raise InvalidEventError("coordinates must be an object with x and y")
    for axis in ("x", "y"):
        value = coordinates.get(axis)
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise InvalidEventError(f"coordinates.{axis} must be a number")
        if not 0 <= value <= COORDINATE_MAX:
            raise InvalidEventError(f"coordinates.{axis} must be within [0, {COORDINATE_MAX}]")


def validate_event(match: Any, event: Any, rules: Optional[MatchRules] = None) -> None:
    """Field-level checks of an event against its match. Raises InvalidEventError."""
    if event.match_id is not None and event.match_id != match.id:
        raise InvalidEventError(f"Event belongs to match {event.match_id}, not {match.id}")
    if event.event_type not in EVENT_TYPES:
        raise InvalidEventError(f"Unknown event type: {event.event_type}")
    if event.team_id not in (match.home_team_id, match.away_team_id):
        raise InvalidEventError("Team is not part of this match")
    if event.player_id is None:
        raise InvalidEventError("player_id is required")

    if event.half is None or not HALF_MIN <= event.half <= HALF_MAX:
        raise InvalidEventError(f"half must be within [{HALF_MIN}, {HALF_MAX}]")
    if event.minute is None or not 0 <= event.minute <= MINUTE_MAX:
        raise InvalidEventError(f"minute must be within [0, {MINUTE_MAX}]")
    added_time = event.added_time or 0
    if not 0 <= added_time <= ADDED_TIME_MAX:
        raise InvalidEventError(f"added_time must be within [0, {ADDED_TIME_MAX}]")

    if event.half == SHOOTOUT_HALF and event.event_type not in SHOOTOUT_EVENTS:
        raise InvalidEventError(f"Only penalty events can occur in a shoot-out, got {event.event_type}")
    if rules is not None:
        if event.half in EXTRA_TIME_HALVES and not rules.use_extra_time:
            raise InvalidEventError("Extra time is not played in this tournament")
        if event.half == SHOOTOUT_HALF and not rules.use_penalty_shootout:
            raise InvalidEventError("Penalty shoot-outs are not played in this tournament")

    if event.event_type in REQUIRES_SECONDARY_PLAYER:
        if event.secondary_player_id is None:
            raise InvalidEventError(f"{event.event_type} requires secondary_player_id")
        if event.secondary_player_id == event.player_id:
            raise InvalidEventError("secondary_player_id must differ from player_id")

    _validate_coordinates(event.coordinates)


def _check_second_yellow(event: Any, existing_events: Sequence[Any]) -> None:
    """A second yellow should follow a first one; inconsistencies are reported, not rejected."""
    if event.event_type != EVENT_SECOND_YELLOW:
        return
    has_yellow = any(
        e.event_type == EVENT_YELLOW_CARD and e.player_id == event.player_id for e in existing_events
    )
    if not has_yellow:
        logger.warning(
            "Second yellow for player %s in match %s without an earlier yellow card",
            event.player_id,
            event.match_id,
        )


def add_event(
    match: Any, event: Any, existing_events: Sequence[Any] = (), rules: Optional[MatchRules] = None
) -> Any:
    """
    Validate an event for recording and return it unchanged.

    Rejected (InvalidEventError) while the match is scheduled or cancelled, and once
    its result is fully confirmed.
    """
    _ensure_recording_open(match)
    validate_event(match, event, rules)
    _check_second_yellow(event, existing_events)
    return event


def remove_event(match: Any, event_id: Any, events: Sequence[Any]) -> Any:
    """Return the event to delete; same locking rules as add_event."""
    _ensure_recording_open(match)
    for e in events:
        if e.id == event_id and e.match_id == match.id:
            return e
    raise InvalidEventError(f"Event {event_id} not found for match {match.id}")


def timeline(events: Iterable[Any]) -> List[Any]:
    """Events in display order: (half, minute, added time), recording order within ties."""
    return sorted(events, key=lambda e: (e.half or 0, e.minute or 0, e.added_time or 0))


# =============================================================================
# Derived views
# =============================================================================

@dataclass
class ScoreTally:
    home: int = 0
    away: int = 0
    home_penalties: int = 0
    away_penalties: int = 0


def tally_score(match: Any, events: Iterable[Any]) -> ScoreTally:
    """
    Score reconstructed from events. Own goals count for the opponent of the
    team the event is recorded against; penalty goals in half 5 count towards
    the shoot-out only.
    """
    tally = ScoreTally()
    for e in events:
        if e.match_id != match.id:
            continue
        is_home = e.team_id == match.home_team_id
        if e.event_type == EVENT_PENALTY_GOAL and e.half == SHOOTOUT_HALF:
            if is_home:
                tally.home_penalties += 1
            else:
                tally.away_penalties += 1
        elif e.event_type in (EVENT_GOAL, EVENT_PENALTY_GOAL):
            if is_home:
                tally.home += 1
            else:
                tally.away += 1
        elif e.event_type == EVENT_OWN_GOAL:
            if is_home:
                tally.away += 1
            else:
                tally.home += 1
    return tally


@dataclass
class PlayerStats:
    player_id: Hashable
    team_id: Hashable
    goals: int = 0
    assists: int = 0
    own_goals: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    penalties_scored: int = 0
    penalties_missed: int = 0
    penalties_saved: int = 0
    substitutions_in: int = 0
    substitutions_out: int = 0
    injuries: int = 0
    matches: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


PLAYER_STAT_FIELDS = (
    "goals",
    "assists",
    "own_goals",
    "yellow_cards",
    "red_cards",
    "penalties_scored",
    "penalties_missed",
    "penalties_saved",
    "matches",
)

# event type -> counter incremented for event.player_id
_STAT_FOR_EVENT = {
    EVENT_GOAL: "goals",
    EVENT_OWN_GOAL: "own_goals",
    EVENT_YELLOW_CARD: "yellow_cards",
    EVENT_RED_CARD: "red_cards",
    EVENT_SECOND_YELLOW: "red_cards",
    EVENT_PENALTY_MISSED: "penalties_missed",
    EVENT_PENALTY_SAVED: "penalties_saved",
    EVENT_SUBSTITUTION_IN: "substitutions_in",
    EVENT_SUBSTITUTION_OUT: "substitutions_out",
    EVENT_INJURY: "injuries",
    EVENT_ASSIST: "assists",
}


def player_statistics(events: Iterable[Any]) -> Dict[Hashable, PlayerStats]:
    """
    Per-player totals over the given events.

    An assist event credits its player_id (the secondary player is the scorer).
    A penalty goal in regular or extra time is both a goal and a penalty scored;
    in a shoot-out it only counts as a penalty scored.
    """
    stats: Dict[Hashable, PlayerStats] = {}
    appearances: Dict[Hashable, set] = defaultdict(set)
    for e in events:
        if e.player_id is None:
            continue
        row = stats.get(e.player_id)
        if row is None:
            row = stats[e.player_id] = PlayerStats(player_id=e.player_id, team_id=e.team_id)
        appearances[e.player_id].add(e.match_id)

        if e.event_type == EVENT_PENALTY_GOAL:
            row.penalties_scored += 1
            if e.half != SHOOTOUT_HALF:
                row.goals += 1
        else:
            name = _STAT_FOR_EVENT.get(e.event_type)
            if name:
                setattr(row, name, getattr(row, name) + 1)

    for player_id, row in stats.items():
        row.matches = len(appearances[player_id])
    return stats


def rank_players(stats: Dict[Hashable, PlayerStats], stat: str = "goals", limit: Optional[int] = None) -> List[PlayerStats]:
    if stat not in PLAYER_STAT_FIELDS:
        raise ValueError(f"Unknown statistic '{stat}'; expected one of {list(PLAYER_STAT_FIELDS)}")
    ranked = sorted(stats.values(), key=lambda s: (-getattr(s, stat), str(s.player_id)))
    ranked = [s for s in ranked if getattr(s, stat) > 0]
    return ranked[:limit] if limit else ranked
