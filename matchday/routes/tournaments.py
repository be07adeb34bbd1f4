from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlmodel import Session

from matchday.database import get_session
from matchday.models.team import Team
from matchday.models.tournament import Tournament
from matchday.routes.errors import http_error
from matchday.routes.matches import MatchResponse, match_to_response
from matchday.services import persistence
from matchday.services.bracket_progression import advance_knockout, bracket_view, champion
from matchday.services.competition_config import (
    FORMAT_GROUP_KNOCKOUT,
    GROUP_FORMATS,
    KNOCKOUT_PHASES,
    load_competition_config,
)
from matchday.services.exceptions import CompetitionError, InvalidConfigurationError
from matchday.services.match_events import player_statistics, rank_players
from matchday.services.match_lifecycle import STATUS_CANCELLED, STATUS_COMPLETED
from matchday.services.schedule_generator import assign_dates, build_schedule, seed_from_group_standings, seed_knockout
from matchday.services.standings import StandingsRow, compute_group_standings, compute_standings, tournament_statistics
from matchday.services.tournament_status import (
    REGISTRATION_APPROVED,
    REGISTRATION_PENDING,
    TOURNAMENT_CANCELLED,
    TOURNAMENT_COMPLETED,
    tournament_status_patch,
    validate_registration,
    validate_team_bounds,
)

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class TournamentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    location: Optional[str] = None
    organizer_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_teams: int = 2
    max_teams: int = 16
    tournament_structure: Dict[str, Any] = Field(default_factory=dict, alias="tournamentStructure")
    rules: Dict[str, Any] = Field(default_factory=dict)
    tiebreaker_rules: Dict[str, Any] = Field(default_factory=dict, alias="tiebreakerRules")

    @model_validator(mode="after")
    def validate_tournament(self):
        if not self.name.strip():
            raise ValueError("name is required")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        try:
            validate_team_bounds(self.min_teams, self.max_teams)
            load_competition_config(self.tournament_structure, self.rules, self.tiebreaker_rules)
        except CompetitionError as e:
            raise ValueError(str(e)) from e
        return self


class TournamentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    location: Optional[str] = None
    organizer_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    format: str
    status: str
    min_teams: int
    max_teams: int
    structure_json: Optional[Dict[str, Any]] = None
    rules_json: Optional[Dict[str, Any]] = None
    tiebreaker_rules_json: Optional[Dict[str, Any]] = None
    created_at: datetime


class StatusUpdate(BaseModel):
    status: str


class TeamRegistrationRequest(BaseModel):
    name: str
    owner_id: Optional[int] = None
    seed: Optional[int] = None
    approve: bool = True


class RegistrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    team_id: int
    status: str
    seed: Optional[int] = None
    group: Optional[str] = None


class ScheduleRequest(BaseModel):
    start_date: Optional[date] = None
    seeding: Optional[List[int]] = None
    rng_seed: Optional[int] = None
    manual_dates: Optional[List[datetime]] = None


class ScheduleResponse(BaseModel):
    kept: int
    replaced: int
    matches: List[MatchResponse]
    byes: List[int] = Field(default_factory=list)  # knockout teams that skip round 1


class StandingsRowResponse(BaseModel):
    position: int
    team_id: int
    played: int
    won: int
    drawn: int
    lost: int
    goals_for: int
    goals_against: int
    goal_difference: int
    points: int
    fair_play_points: int = 0
    group: Optional[str] = None
    tie_broken_randomly: bool = False


class StandingsResponse(BaseModel):
    format: str
    table: Optional[List[StandingsRowResponse]] = None
    groups: Optional[Dict[str, List[StandingsRowResponse]]] = None


class BracketAdvanceRequest(BaseModel):
    start_date: Optional[date] = None


def _get_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def _row_response(row: StandingsRow) -> StandingsRowResponse:
    return StandingsRowResponse(
        position=row.position,
        team_id=row.team_id,
        played=row.played,
        won=row.won,
        drawn=row.drawn,
        lost=row.lost,
        goals_for=row.goals_for,
        goals_against=row.goals_against,
        goal_difference=row.goal_difference,
        points=row.points,
        fair_play_points=row.fair_play_points,
        group=row.group,
        tie_broken_randomly=row.tie_broken_randomly,
    )


# ============================================================================
# Tournament
# ============================================================================


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(payload: TournamentCreate, session: Session = Depends(get_session)):
    structure = dict(payload.tournament_structure)
    config = load_competition_config(structure, payload.rules, payload.tiebreaker_rules)
    tournament = Tournament(
        name=payload.name.strip(),
        location=payload.location,
        organizer_id=payload.organizer_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        min_teams=payload.min_teams,
        max_teams=payload.max_teams,
        format=config.format,
        structure_json=structure,
        rules_json=payload.rules,
        tiebreaker_rules_json=payload.tiebreaker_rules,
    )
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    return _get_tournament(session, tournament_id)


@router.patch("/tournaments/{tournament_id}/status", response_model=TournamentResponse)
def update_tournament_status(tournament_id: int, payload: StatusUpdate, session: Session = Depends(get_session)):
    tournament = _get_tournament(session, tournament_id)
    approved = len(persistence.load_teams(session, tournament_id))
    match_count = len(persistence.load_matches(session, tournament_id))
    try:
        patch = tournament_status_patch(tournament, payload.status, approved_team_count=approved, match_count=match_count)
    except CompetitionError as e:
        raise http_error(e)

    for name, value in patch.items():
        setattr(tournament, name, value)
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


# ============================================================================
# Registration
# ============================================================================


@router.post("/tournaments/{tournament_id}/teams", response_model=RegistrationResponse, status_code=201)
def register_team(tournament_id: int, payload: TeamRegistrationRequest, session: Session = Depends(get_session)):
    """Create a team and register it for the tournament."""
    tournament = _get_tournament(session, tournament_id)
    if not payload.name.strip():
        raise HTTPException(status_code=422, detail="name is required")

    team = Team(name=payload.name.strip(), owner_id=payload.owner_id)
    session.add(team)
    session.flush()
    try:
        validate_registration(tournament, team.id, persistence.load_registrations(session, tournament_id))
    except CompetitionError as e:
        session.rollback()
        raise http_error(e)

    status = REGISTRATION_APPROVED if payload.approve else REGISTRATION_PENDING
    return persistence.register_team(session, tournament_id, team.id, status=status, seed=payload.seed)


@router.get("/tournaments/{tournament_id}/teams", response_model=List[RegistrationResponse])
def list_registrations(tournament_id: int, session: Session = Depends(get_session)):
    _get_tournament(session, tournament_id)
    return persistence.load_registrations(session, tournament_id)


# ============================================================================
# Schedule
# ============================================================================


@router.post("/tournaments/{tournament_id}/schedule", response_model=ScheduleResponse)
def generate_tournament_schedule(
    tournament_id: int, payload: ScheduleRequest, session: Session = Depends(get_session)
):
    """
    Generate (or regenerate) the first-stage fixtures.

    Regeneration replaces only matches still in "scheduled" status; completed and
    in-progress matches are kept.
    """
    tournament = _get_tournament(session, tournament_id)
    if tournament.status in (TOURNAMENT_COMPLETED, TOURNAMENT_CANCELLED):
        raise HTTPException(status_code=422, detail=f"Cannot schedule a {tournament.status} tournament")

    try:
        config = persistence.tournament_config(tournament)
        schedule = build_schedule(
            persistence.load_teams(session, tournament_id),
            config.tournament_structure,
            start_date=payload.start_date or tournament.start_date or date.today(),
            seeding=payload.seeding,
            rng_seed=payload.rng_seed if payload.rng_seed is not None else tournament_id,
            manual_dates=payload.manual_dates,
            tournament_id=tournament_id,
        )
    except CompetitionError as e:
        raise http_error(e)

    result = persistence.replace_scheduled_matches(session, tournament_id, schedule.fixtures, byes=schedule.byes)
    return ScheduleResponse(
        kept=result["kept"],
        replaced=result["replaced"],
        matches=[match_to_response(m) for m in result["matches"]],
        byes=schedule.byes,
    )


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchResponse])
def list_matches(
    tournament_id: int,
    status: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
):
    _get_tournament(session, tournament_id)
    return [match_to_response(m) for m in persistence.load_matches(session, tournament_id, status)]


# ============================================================================
# Standings / bracket / statistics (read-only projections)
# ============================================================================


@router.get("/tournaments/{tournament_id}/standings", response_model=StandingsResponse)
def get_standings(tournament_id: int, session: Session = Depends(get_session)):
    tournament = _get_tournament(session, tournament_id)
    try:
        config = persistence.tournament_config(tournament)
        matches = persistence.load_matches(session, tournament_id)
        events = persistence.load_events(session, [m.id for m in matches])
        options = dict(
            rules=config.rules,
            criteria=config.tiebreaker_rules.criteria,
            events=events,
            fair_play_points=config.tiebreaker_rules.fair_play_points,
            random_seed=str(tournament_id),
        )
        if config.format in GROUP_FORMATS:
            tables = compute_group_standings(persistence.load_groups(session, tournament_id), matches, **options)
            return StandingsResponse(
                format=config.format,
                groups={label: [_row_response(r) for r in rows] for label, rows in tables.items()},
            )
        league_matches = [m for m in matches if m.phase not in KNOCKOUT_PHASES]
        rows = compute_standings(persistence.load_teams(session, tournament_id), league_matches, **options)
    except CompetitionError as e:
        raise http_error(e)
    return StandingsResponse(format=config.format, table=[_row_response(r) for r in rows])


@router.get("/tournaments/{tournament_id}/bracket")
def get_bracket(tournament_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    _get_tournament(session, tournament_id)
    matches = persistence.load_matches(session, tournament_id)
    rounds = bracket_view(matches, byes=persistence.load_byes(session, tournament_id))
    return {
        "rounds": [
            {
                "round": r.round,
                "name": r.name,
                "phase": r.phase,
                "matches": [vars(m) for m in r.matches],
                "byes": r.byes,
            }
            for r in rounds
        ],
        "champion_team_id": champion(matches),
    }


@router.post("/tournaments/{tournament_id}/bracket/advance", response_model=List[MatchResponse])
def advance_bracket(
    tournament_id: int, payload: BracketAdvanceRequest, session: Session = Depends(get_session)
):
    """
    Create the next knockout round from the latest completed one.

    For group-knockout tournaments with no knockout match yet, the first knockout
    round is seeded from the group tables. Teams holding a bye for the latest
    round are carried in from storage; an odd entrant count hands out a new bye.
    """
    tournament = _get_tournament(session, tournament_id)
    try:
        config = persistence.tournament_config(tournament)
        matches = persistence.load_matches(session, tournament_id)
        knockout = [m for m in matches if m.phase in KNOCKOUT_PHASES]
        stored_byes = persistence.load_byes(session, tournament_id)

        if not knockout:
            if config.format != FORMAT_GROUP_KNOCKOUT:
                raise InvalidConfigurationError("No knockout round to advance from")
            if any(m.status not in (STATUS_COMPLETED, STATUS_CANCELLED) for m in matches):
                raise InvalidConfigurationError("Group stage is not finished")
            tables = compute_group_standings(
                persistence.load_groups(session, tournament_id),
                matches,
                rules=config.rules,
                criteria=config.tiebreaker_rules.criteria,
                events=persistence.load_events(session, [m.id for m in matches]),
                fair_play_points=config.tiebreaker_rules.fair_play_points,
                random_seed=str(tournament_id),
            )
            qualifiers = seed_from_group_standings(tables, config.tournament_structure.advancing_teams_count)
            next_round_number = max((m.round for m in matches), default=0) + 1
            seeded = seed_knockout(qualifiers, seeding=qualifiers, round_number=next_round_number)
        else:
            latest = max(m.round for m in knockout)
            next_round_number = latest + 1
            seeded = advance_knockout(
                [m for m in knockout if m.round == latest], byes=stored_byes.get(latest, [])
            )

        drafts = assign_dates(seeded.fixtures, start_date=payload.start_date or date.today())
    except CompetitionError as e:
        raise http_error(e)

    created = persistence.save_matches(
        session, drafts, tournament_id=tournament_id, byes=seeded.byes, bye_round=next_round_number
    )
    return [match_to_response(m) for m in created]


@router.get("/tournaments/{tournament_id}/statistics")
def get_tournament_statistics(tournament_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    _get_tournament(session, tournament_id)
    return tournament_statistics(persistence.load_matches(session, tournament_id))


@router.get("/tournaments/{tournament_id}/player-stats")
def get_player_stats(
    tournament_id: int,
    stat: str = Query(default="goals"),
    limit: Optional[int] = Query(default=None, ge=1),
    session: Session = Depends(get_session),
) -> List[Dict[str, Any]]:
    _get_tournament(session, tournament_id)
    matches = persistence.load_matches(session, tournament_id)
    stats = player_statistics(persistence.load_events(session, [m.id for m in matches]))
    try:
        ranked = rank_players(stats, stat=stat, limit=limit)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return [s.to_dict() for s in ranked]
