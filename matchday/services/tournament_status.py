"""
Tournament status and team registration rules.

Statuses move forward only:
    draft -> published -> registration-open -> registration-closed -> in-progress -> completed
Any status except completed may move to cancelled. completed and cancelled are terminal.
"""

import logging
from typing import Any, Dict, Hashable, Iterable

from matchday.services.exceptions import RegistrationError, TournamentStatusError

logger = logging.getLogger(__name__)

TOURNAMENT_DRAFT = "draft"
TOURNAMENT_PUBLISHED = "published"
TOURNAMENT_REGISTRATION_OPEN = "registration-open"
TOURNAMENT_REGISTRATION_CLOSED = "registration-closed"
TOURNAMENT_IN_PROGRESS = "in-progress"
TOURNAMENT_COMPLETED = "completed"
TOURNAMENT_CANCELLED = "cancelled"

STATUS_ORDER = (
    TOURNAMENT_DRAFT,
    TOURNAMENT_PUBLISHED,
    TOURNAMENT_REGISTRATION_OPEN,
    TOURNAMENT_REGISTRATION_CLOSED,
    TOURNAMENT_IN_PROGRESS,
    TOURNAMENT_COMPLETED,
)
TOURNAMENT_STATUSES = STATUS_ORDER + (TOURNAMENT_CANCELLED,)

REGISTRATION_STATUSES = (TOURNAMENT_DRAFT, TOURNAMENT_PUBLISHED, TOURNAMENT_REGISTRATION_OPEN)

REGISTRATION_PENDING = "pending"
REGISTRATION_APPROVED = "approved"
REGISTRATION_REJECTED = "rejected"
REGISTRATION_WITHDRAWN = "withdrawn"


def validate_team_bounds(min_teams: int, max_teams: int) -> None:
    if min_teams < 2:
        raise TournamentStatusError(f"min_teams must be >= 2, got {min_teams}")
    if min_teams > max_teams:
        raise TournamentStatusError(f"min_teams ({min_teams}) must be <= max_teams ({max_teams})")


def validate_tournament_transition(
    current: str, new: str, approved_team_count: int = 0, min_teams: int = 2, match_count: int = 0
) -> None:
    """
    Raise TournamentStatusError unless current -> new is allowed.

    Starting the tournament also requires enough approved teams and a schedule.
    """
    if new not in TOURNAMENT_STATUSES:
        raise TournamentStatusError(f"Invalid status '{new}'")
    if current in (TOURNAMENT_COMPLETED, TOURNAMENT_CANCELLED):
        raise TournamentStatusError(f"Cannot change status from {current} to {new}")
    if new == TOURNAMENT_CANCELLED:
        return
    if STATUS_ORDER.index(new) <= STATUS_ORDER.index(current):
        raise TournamentStatusError(f"Cannot change status from {current} to {new}")

    if new == TOURNAMENT_IN_PROGRESS:
        if approved_team_count < min_teams:
            raise TournamentStatusError(
                f"Need at least {min_teams} teams to start the tournament, but only {approved_team_count} are approved"
            )
        if match_count == 0:
            raise TournamentStatusError("No matches scheduled for this tournament")


def tournament_status_patch(tournament: Any, new: str, approved_team_count: int = 0, match_count: int = 0) -> Dict[str, Any]:
    validate_tournament_transition(
        tournament.status,
        new,
        approved_team_count=approved_team_count,
        min_teams=tournament.min_teams,
        match_count=match_count,
    )
    logger.info("Tournament %s: %s -> %s", tournament.id, tournament.status, new)
    return {"status": new}


def validate_registration(tournament: Any, team_id: Hashable, registrations: Iterable[Any]) -> None:
    """
    A team may register while the tournament is draft, published or
    registration-open, once, and only while approved registrations are below max_teams.
    """
    if tournament.status not in REGISTRATION_STATUSES:
        raise RegistrationError(f"Registration is closed (tournament is {tournament.status})")
    registrations = list(registrations)
    active = [r for r in registrations if r.status not in (REGISTRATION_REJECTED, REGISTRATION_WITHDRAWN)]
    if any(r.team_id == team_id for r in active):
        raise RegistrationError(f"Team {team_id} is already registered")
    approved = sum(1 for r in registrations if r.status == REGISTRATION_APPROVED)
    if approved >= tournament.max_teams:
        raise RegistrationError("Tournament has reached maximum team limit")
