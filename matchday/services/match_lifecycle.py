"""
Match lifecycle: status state machine, score editing and result confirmation.

All functions are pure. They validate against the current match and return a
patch (field name -> new value) for the persistence layer to apply. A raised
error means the match must be left untouched.

Status graph:
    scheduled   -> in-progress | cancelled
    in-progress -> completed   | cancelled
    completed, cancelled: terminal

Confirmation: once completed, the home and away representatives and the referee
(only when one is assigned) each confirm independently. Each role owns its own
flag + timestamp fields, so concurrent confirmations by different roles never
touch the same column. "Fully confirmed" is derived, never stored.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Collection, Dict, Hashable, List, Optional, Tuple

from matchday.services.competition_config import KNOCKOUT_PHASES
from matchday.services.exceptions import (
    ConfirmationError,
    InvalidScoreError,
    InvalidStatusTransitionError,
    MatchLockedError,
)

logger = logging.getLogger(__name__)

STATUS_SCHEDULED = "scheduled"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

MATCH_STATUSES = (STATUS_SCHEDULED, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_CANCELLED)

ALLOWED_TRANSITIONS: Dict[str, frozenset] = {
    STATUS_SCHEDULED: frozenset({STATUS_IN_PROGRESS, STATUS_CANCELLED}),
    STATUS_IN_PROGRESS: frozenset({STATUS_COMPLETED, STATUS_CANCELLED}),
    STATUS_COMPLETED: frozenset(),
    STATUS_CANCELLED: frozenset(),
}

ROLE_HOME = "home"
ROLE_AWAY = "away"
ROLE_REFEREE = "referee"
ROLE_ORGANIZER = "organizer"

CONFIRMATION_ROLES = (ROLE_HOME, ROLE_AWAY, ROLE_REFEREE, ROLE_ORGANIZER)

# role -> (flag field, timestamp field)
CONFIRMATION_FIELDS: Dict[str, Tuple[str, str]] = {
    ROLE_HOME: ("home_confirmed", "home_confirmed_at"),
    ROLE_AWAY: ("away_confirmed", "away_confirmed_at"),
    ROLE_REFEREE: ("referee_confirmed", "referee_confirmed_at"),
}

SCORE_FIELDS = (
    "home_score",
    "away_score",
    "half_time_home_score",
    "half_time_away_score",
    "has_penalties",
    "home_penalty_score",
    "away_penalty_score",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Status transitions
# =============================================================================

def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_status_transition(current: str, new: str) -> None:
    if new not in MATCH_STATUSES or not can_transition(current, new):
        raise InvalidStatusTransitionError(current, new)


def transition_patch(match: Any, new_status: str) -> Dict[str, Any]:
    """
    Patch moving the match to new_status.

    Completing a match requires both scores to be recorded first; standings
    cannot count a completed match without a result.
    """
    current = match.status
    validate_status_transition(current, new_status)
    if new_status == STATUS_COMPLETED and (match.home_score is None or match.away_score is None):
        raise InvalidStatusTransitionError(current, new_status)
    logger.info("Match %s: %s -> %s", match.id, current, new_status)
    return {"status": new_status}


# =============================================================================
# Confirmation
# =============================================================================

def applicable_roles(match: Any) -> List[str]:
    roles = [ROLE_HOME, ROLE_AWAY]
    if match.referee_id is not None:
        roles.append(ROLE_REFEREE)
    return roles


def is_fully_confirmed(match: Any) -> bool:
    if match.status != STATUS_COMPLETED:
        return False
    return all(getattr(match, CONFIRMATION_FIELDS[role][0]) for role in applicable_roles(match))


def pending_roles(match: Any) -> List[str]:
    return [role for role in applicable_roles(match) if not getattr(match, CONFIRMATION_FIELDS[role][0])]


def confirm_patch(
    match: Any,
    role: str,
    requesting_user_id: Optional[Hashable] = None,
    authorized_user_ids: Optional[Collection[Hashable]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Patch recording a confirmation by `role`.

    authorized_user_ids, when given, lists the users allowed to act for the role
    (team owner, assigned referee, tournament organizer); requesting_user_id must be
    among them. The organizer role confirms every applicable role at once.

    Repeating a confirmation is a no-op: the returned patch is empty.
    """
    if role not in CONFIRMATION_ROLES:
        raise ConfirmationError(f"Invalid role '{role}'; expected one of {list(CONFIRMATION_ROLES)}")
    if match.status != STATUS_COMPLETED:
        raise ConfirmationError("Can only confirm completed matches")
    if role == ROLE_REFEREE and match.referee_id is None:
        raise ConfirmationError("Match has no assigned referee")
    if authorized_user_ids is not None and requesting_user_id not in authorized_user_ids:
        raise ConfirmationError(f"User {requesting_user_id} may not confirm as {role}", unauthorized=True)

    roles = applicable_roles(match) if role == ROLE_ORGANIZER else [role]
    now = now or _utcnow()
    patch: Dict[str, Any] = {}
    for r in roles:
        flag, stamp = CONFIRMATION_FIELDS[r]
        if not getattr(match, flag):
            patch[flag] = True
            patch[stamp] = now

    if patch:
        logger.info("Match %s confirmed by %s (user %s)", match.id, role, requesting_user_id)
        if all(patch.get(CONFIRMATION_FIELDS[r][0]) or getattr(match, CONFIRMATION_FIELDS[r][0]) for r in applicable_roles(match)):
            logger.info("Match %s result fully confirmed", match.id)
    return patch


def reset_confirmations_patch() -> Dict[str, Any]:
    patch: Dict[str, Any] = {}
    for flag, stamp in CONFIRMATION_FIELDS.values():
        patch[flag] = False
        patch[stamp] = None
    return patch


def ensure_editable(match: Any) -> None:
    """Scores and events may change until the result is fully confirmed."""
    if is_fully_confirmed(match):
        raise MatchLockedError(f"Match {match.id} result is fully confirmed")


# =============================================================================
# Scores
# =============================================================================

@dataclass
class ScoreUpdate:
    """Requested score change; None leaves a field unchanged."""
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    half_time_home_score: Optional[int] = None
    half_time_away_score: Optional[int] = None
    has_penalties: Optional[bool] = None
    home_penalty_score: Optional[int] = None
    away_penalty_score: Optional[int] = None


def score_patch(match: Any, update: ScoreUpdate, use_penalty_shootout: bool = True) -> Dict[str, Any]:
    """
    Patch applying a score update.

    Allowed only while the match is in progress or completed and not yet fully
    confirmed. Penalty scores exist only when has_penalties is set, which in turn
    requires a knockout match and a level score. Any change to a score field
    clears all confirmations.
    """
    if match.status not in (STATUS_IN_PROGRESS, STATUS_COMPLETED):
        raise InvalidScoreError(f"Cannot update score for a {match.status} match")
    ensure_editable(match)

    merged = {name: getattr(match, name) for name in SCORE_FIELDS}
    for name in SCORE_FIELDS:
        value = getattr(update, name)
        if value is not None:
            merged[name] = value

    for name in SCORE_FIELDS:
        if name == "has_penalties":
            continue
        if merged[name] is not None and merged[name] < 0:
            raise InvalidScoreError(f"{name} must be >= 0")

    if merged["has_penalties"]:
        if match.phase not in KNOCKOUT_PHASES:
            raise InvalidScoreError(f"Penalties only decide knockout matches, not {match.phase} matches")
        if not use_penalty_shootout:
            raise InvalidScoreError("Penalty shoot-outs are disabled for this tournament")
        if merged["home_score"] is None or merged["home_score"] != merged["away_score"]:
            raise InvalidScoreError("Penalties require a level score")
        home_pen, away_pen = merged["home_penalty_score"], merged["away_penalty_score"]
        if home_pen is not None and away_pen is not None and home_pen == away_pen:
            raise InvalidScoreError("A penalty shoot-out must produce a winner")
    else:
        merged["has_penalties"] = False
        merged["home_penalty_score"] = None
        merged["away_penalty_score"] = None

    patch = {name: merged[name] for name in SCORE_FIELDS if merged[name] != getattr(match, name)}
    if patch and any(getattr(match, CONFIRMATION_FIELDS[r][0]) for r in CONFIRMATION_FIELDS):
        logger.info("Match %s score changed; confirmations reset", match.id)
        patch.update(reset_confirmations_patch())
    return patch


def match_winner(match: Any) -> Optional[Hashable]:
    """Winning team id of a completed match, or None for a draw."""
    if match.status != STATUS_COMPLETED or match.home_score is None or match.away_score is None:
        return None
    if match.home_score > match.away_score:
        return match.home_team_id
    if match.away_score > match.home_score:
        return match.away_team_id
    if match.has_penalties and match.home_penalty_score is not None and match.away_penalty_score is not None:
        if match.home_penalty_score > match.away_penalty_score:
            return match.home_team_id
        if match.away_penalty_score > match.home_penalty_score:
            return match.away_team_id
    return None
