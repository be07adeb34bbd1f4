"""
Match runtime: status, scores, result confirmation and match events.
The schedule itself is never mutated here.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from matchday.database import get_session
from matchday.models.match import Match
from matchday.models.match_event import MatchEvent
from matchday.models.team import Team
from matchday.models.tournament import Tournament
from matchday.routes.errors import http_error
from matchday.services import persistence
from matchday.services.exceptions import CompetitionError
from matchday.services.match_events import add_event, remove_event, tally_score, timeline
from matchday.services.match_lifecycle import (
    ROLE_AWAY,
    ROLE_HOME,
    ROLE_ORGANIZER,
    ROLE_REFEREE,
    STATUS_COMPLETED,
    ScoreUpdate,
    confirm_patch,
    is_fully_confirmed,
    pending_roles,
    score_patch,
    transition_patch,
)

router = APIRouter()


class MatchResponse(BaseModel):
    id: int
    tournament_id: int
    home_team_id: int
    away_team_id: int
    referee_id: Optional[int] = None
    scheduled_date: Optional[datetime] = None
    location: Optional[str] = None
    field: Optional[str] = None
    phase: str
    group: Optional[str] = None
    round: int
    sequence: int
    status: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    half_time_home_score: Optional[int] = None
    half_time_away_score: Optional[int] = None
    has_penalties: bool = False
    home_penalty_score: Optional[int] = None
    away_penalty_score: Optional[int] = None
    home_confirmed: bool = False
    away_confirmed: bool = False
    referee_confirmed: bool = False
    fully_confirmed: bool = False
    pending_confirmations: List[str] = []


def match_to_response(m: Match) -> MatchResponse:
    return MatchResponse(
        id=m.id,
        tournament_id=m.tournament_id,
        home_team_id=m.home_team_id,
        away_team_id=m.away_team_id,
        referee_id=m.referee_id,
        scheduled_date=m.scheduled_date,
        location=m.location,
        field=m.field,
        phase=m.phase,
        group=m.group,
        round=m.round,
        sequence=m.sequence,
        status=m.status,
        home_score=m.home_score,
        away_score=m.away_score,
        half_time_home_score=m.half_time_home_score,
        half_time_away_score=m.half_time_away_score,
        has_penalties=m.has_penalties,
        home_penalty_score=m.home_penalty_score,
        away_penalty_score=m.away_penalty_score,
        home_confirmed=m.home_confirmed,
        away_confirmed=m.away_confirmed,
        referee_confirmed=m.referee_confirmed,
        fully_confirmed=is_fully_confirmed(m),
        pending_confirmations=pending_roles(m) if m.status == STATUS_COMPLETED else [],
    )


class MatchStatusUpdate(BaseModel):
    status: str


class MatchScoreUpdate(BaseModel):
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    half_time_home_score: Optional[int] = None
    half_time_away_score: Optional[int] = None
    has_penalties: Optional[bool] = None
    home_penalty_score: Optional[int] = None
    away_penalty_score: Optional[int] = None


class ConfirmRequest(BaseModel):
    role: str
    requesting_user_id: Optional[int] = None


class MatchEventCreate(BaseModel):
    event_type: str
    team_id: int
    player_id: Optional[int] = None
    secondary_player_id: Optional[int] = None
    half: int
    minute: int
    added_time: int = 0
    description: Optional[str] = None
    coordinates: Optional[Dict[str, Any]] = None


class MatchEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    match_id: int
    event_type: str
    team_id: int
    player_id: Optional[int] = None
    secondary_player_id: Optional[int] = None
    half: int
    minute: int
    added_time: int = 0
    description: Optional[str] = None
    coordinates: Optional[Dict[str, Any]] = None
    created_at: datetime


def _get_match(session: Session, match_id: int) -> Match:
    match = session.get(Match, match_id)
    if not match:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


def _authorized_users(session: Session, match: Match, role: str) -> List[int]:
    """User ids allowed to confirm as `role`: team owner, assigned referee or organizer."""
    if role == ROLE_HOME:
        team = session.get(Team, match.home_team_id)
        return [team.owner_id] if team and team.owner_id is not None else []
    if role == ROLE_AWAY:
        team = session.get(Team, match.away_team_id)
        return [team.owner_id] if team and team.owner_id is not None else []
    if role == ROLE_REFEREE:
        return [match.referee_id] if match.referee_id is not None else []
    if role == ROLE_ORGANIZER:
        tournament = session.get(Tournament, match.tournament_id)
        return [tournament.organizer_id] if tournament and tournament.organizer_id is not None else []
    return []


def _apply(session: Session, match: Match, patch: Dict[str, Any]) -> MatchResponse:
    updated = persistence.update_match(session, match.id, patch)
    return match_to_response(updated)


@router.get("/matches/{match_id}", response_model=MatchResponse)
def get_match(match_id: int, session: Session = Depends(get_session)):
    return match_to_response(_get_match(session, match_id))


@router.patch("/matches/{match_id}/status", response_model=MatchResponse)
def update_match_status(match_id: int, payload: MatchStatusUpdate, session: Session = Depends(get_session)):
    match = _get_match(session, match_id)
    try:
        patch = transition_patch(match, payload.status)
    except CompetitionError as e:
        raise http_error(e)
    return _apply(session, match, patch)


@router.patch("/matches/{match_id}/score", response_model=MatchResponse)
def update_match_score(match_id: int, payload: MatchScoreUpdate, session: Session = Depends(get_session)):
    match = _get_match(session, match_id)
    try:
        rules = persistence.tournament_config(match.tournament).rules
        patch = score_patch(match, ScoreUpdate(**payload.model_dump()), use_penalty_shootout=rules.use_penalty_shootout)
    except CompetitionError as e:
        raise http_error(e)
    return _apply(session, match, patch)


@router.post("/matches/{match_id}/confirm", response_model=MatchResponse)
def confirm_match(match_id: int, payload: ConfirmRequest, session: Session = Depends(get_session)):
    """
    Record a result confirmation. When requesting_user_id is given it must belong
    to the role (team owner, assigned referee or tournament organizer).
    """
    match = _get_match(session, match_id)
    authorized = None
    if payload.requesting_user_id is not None:
        authorized = _authorized_users(session, match, payload.role)
    try:
        patch = confirm_patch(
            match,
            payload.role,
            requesting_user_id=payload.requesting_user_id,
            authorized_user_ids=authorized,
        )
    except CompetitionError as e:
        raise http_error(e)
    return _apply(session, match, patch)


# ============================================================================
# Events
# ============================================================================


@router.get("/matches/{match_id}/events", response_model=List[MatchEventResponse])
def list_match_events(match_id: int, session: Session = Depends(get_session)):
    """Match timeline: events by half, minute and added time."""
    _get_match(session, match_id)
    return timeline(persistence.load_events(session, [match_id]))


@router.post("/matches/{match_id}/events", response_model=MatchEventResponse, status_code=201)
def create_match_event(match_id: int, payload: MatchEventCreate, session: Session = Depends(get_session)):
    match = _get_match(session, match_id)
    event = MatchEvent(match_id=match_id, **payload.model_dump())
    try:
        rules = persistence.tournament_config(match.tournament).rules
        add_event(match, event, persistence.load_events(session, [match_id]), rules=rules)
    except CompetitionError as e:
        raise http_error(e)
    return persistence.append_event(session, event)


@router.delete("/matches/{match_id}/events/{event_id}", status_code=204)
def delete_match_event(match_id: int, event_id: int, session: Session = Depends(get_session)):
    match = _get_match(session, match_id)
    events = persistence.load_events(session, [match_id])
    if not any(e.id == event_id for e in events):
        raise HTTPException(status_code=404, detail="Event not found")
    try:
        event = remove_event(match, event_id, events)
    except CompetitionError as e:
        raise http_error(e)
    persistence.remove_event(session, event)


@router.get("/matches/{match_id}/tally")
def get_match_tally(match_id: int, session: Session = Depends(get_session)) -> Dict[str, int]:
    """Score reconstructed from the recorded events."""
    match = _get_match(session, match_id)
    tally = tally_score(match, persistence.load_events(session, [match_id]))
    return {
        "home": tally.home,
        "away": tally.away,
        "home_penalties": tally.home_penalties,
        "away_penalties": tally.away_penalties,
    }
