"""
Persistence collaborator for the competition engine (SQLModel).

The engine emits drafts and patches; this module is the only place they reach
the database. Schedule regeneration replaces the "scheduled" fixtures of a
tournament in a single transaction, under a row lock on the tournament so two
concurrent regenerations cannot interleave.

Knockout byes are stored as KnockoutBye rows (one per team and skipped round)
so bracket advancement can bring the bye team back without the client
remembering it.
"""

import logging
from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence

from sqlmodel import Session, select

from matchday.models.knockout_bye import KnockoutBye
from matchday.models.match import Match
from matchday.models.match_event import MatchEvent
from matchday.models.tournament import Tournament
from matchday.models.tournament_team import TournamentTeam
from matchday.services.competition_config import CompetitionConfig, load_competition_config
from matchday.services.schedule_generator import MatchDraft, plan_regeneration
from matchday.services.tournament_status import REGISTRATION_APPROVED

logger = logging.getLogger(__name__)


def tournament_config(tournament: Tournament) -> CompetitionConfig:
    structure = dict(tournament.structure_json or {})
    structure.setdefault("format", tournament.format)
    return load_competition_config(structure, tournament.rules_json, tournament.tiebreaker_rules_json)


def load_registrations(session: Session, tournament_id: int) -> List[TournamentTeam]:
    return list(
        session.exec(
            select(TournamentTeam).where(TournamentTeam.tournament_id == tournament_id).order_by(TournamentTeam.id)
        ).all()
    )


def load_teams(session: Session, tournament_id: int, status: Optional[str] = REGISTRATION_APPROVED) -> List[int]:
    """
    Team ids of the tournament's roster in deterministic order: seeded teams
    first (by seed), then the rest by registration order.
    """
    registrations = [r for r in load_registrations(session, tournament_id) if status is None or r.status == status]
    registrations.sort(key=lambda r: (r.seed is None, r.seed or 0, r.id))
    return [r.team_id for r in registrations]


def load_groups(session: Session, tournament_id: int) -> Dict[str, List[int]]:
    """Group label -> team ids, taken from the group-stage fixtures."""
    groups: Dict[str, List[int]] = {}
    for m in load_matches(session, tournament_id):
        if m.group is None:
            continue
        members = groups.setdefault(m.group, [])
        for tid in (m.home_team_id, m.away_team_id):
            if tid not in members:
                members.append(tid)
    return groups


def load_matches(session: Session, tournament_id: int, status: Optional[str] = None) -> List[Match]:
    query = select(Match).where(Match.tournament_id == tournament_id)
    if status is not None:
        query = query.where(Match.status == status)
    query = query.order_by(Match.round, Match.sequence, Match.id)
    return list(session.exec(query).all())


def load_events(session: Session, match_ids: Iterable[int]) -> List[MatchEvent]:
    match_ids = list(match_ids)
    if not match_ids:
        return []
    return list(
        session.exec(select(MatchEvent).where(MatchEvent.match_id.in_(match_ids)).order_by(MatchEvent.id)).all()
    )


def _match_from_draft(draft: MatchDraft, tournament_id: Optional[int] = None) -> Match:
    return Match(
        tournament_id=tournament_id if tournament_id is not None else draft.tournament_id,
        home_team_id=draft.home_team_id,
        away_team_id=draft.away_team_id,
        phase=draft.phase,
        group=draft.group,
        round=draft.round,
        sequence=draft.sequence,
        scheduled_date=draft.scheduled_date,
        location=draft.location,
        field=draft.field,
        status=draft.status,
    )


def load_byes(session: Session, tournament_id: int) -> Dict[int, List[int]]:
    """Skipped round -> team ids holding a bye for it."""
    rows = session.exec(
        select(KnockoutBye).where(KnockoutBye.tournament_id == tournament_id).order_by(KnockoutBye.round, KnockoutBye.id)
    ).all()
    byes: Dict[int, List[int]] = {}
    for row in rows:
        byes.setdefault(row.round, []).append(row.team_id)
    return byes


def _add_byes(session: Session, tournament_id: int, team_ids: Sequence[Hashable], round_number: int) -> None:
    for team_id in team_ids:
        session.add(KnockoutBye(tournament_id=tournament_id, team_id=team_id, round=round_number))
        logger.info("Tournament %s: team %s has a bye in round %d", tournament_id, team_id, round_number)


def save_matches(
    session: Session,
    drafts: Sequence[MatchDraft],
    tournament_id: Optional[int] = None,
    byes: Sequence[Hashable] = (),
    bye_round: Optional[int] = None,
) -> List[Match]:
    """Insert the drafts, and the byes of round bye_round, in one commit."""
    matches = [_match_from_draft(d, tournament_id) for d in drafts]
    for m in matches:
        session.add(m)
    if byes:
        owner = tournament_id if tournament_id is not None else drafts[0].tournament_id
        _add_byes(session, owner, byes, bye_round if bye_round is not None else drafts[0].round)
    session.commit()
    for m in matches:
        session.refresh(m)
    return matches


def replace_scheduled_matches(
    session: Session,
    tournament_id: int,
    drafts: Sequence[MatchDraft],
    byes: Sequence[Hashable] = (),
    bye_round: int = 1,
) -> Dict[str, Any]:
    """
    Atomically replace the tournament's "scheduled" matches with new drafts.

    Completed, in-progress and cancelled matches are never touched; drafts that
    repeat an already played pairing are skipped. Byes follow the fixtures: a
    round that already has a kept match keeps its stored byes, every other
    round's byes are replaced. Either every delete and insert is committed or
    none is.
    """
    try:
        # Serialise regenerations of the same tournament (no-op on SQLite)
        session.exec(select(Tournament).where(Tournament.id == tournament_id).with_for_update()).first()

        existing = load_matches(session, tournament_id)
        plan = plan_regeneration(existing, drafts)
        kept = set(plan.keep_ids)
        locked_rounds = {m.round for m in existing if m.id in kept}
        for match_id in plan.replace_ids:
            match = session.get(Match, match_id)
            session.delete(match)

        for bye in session.exec(select(KnockoutBye).where(KnockoutBye.tournament_id == tournament_id)).all():
            if bye.round not in locked_rounds:
                session.delete(bye)
        # Deletes must hit the table before a regenerated draw re-inserts the same bye
        session.flush()
        if bye_round not in locked_rounds:
            _add_byes(session, tournament_id, byes, bye_round)

        created = [_match_from_draft(d, tournament_id) for d in plan.new_drafts]
        for m in created:
            session.add(m)
        session.commit()
    except Exception:
        session.rollback()
        raise

    for m in created:
        session.refresh(m)
    logger.info(
        "Tournament %s schedule regenerated: kept %d, replaced %d, created %d",
        tournament_id,
        len(plan.keep_ids),
        len(plan.replace_ids),
        len(created),
    )
    return {"kept": len(plan.keep_ids), "replaced": len(plan.replace_ids), "matches": created}


def update_match(session: Session, match_id: int, patch: Dict[str, Any]) -> Optional[Match]:
    """Apply an engine patch. Only the patched columns are written."""
    match = session.get(Match, match_id)
    if match is None:
        return None
    if not patch:
        return match
    for name, value in patch.items():
        setattr(match, name, value)
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def append_event(session: Session, event: MatchEvent) -> MatchEvent:
    session.add(event)
    session.commit()
    session.refresh(event)
    return event


def remove_event(session: Session, event: MatchEvent) -> None:
    logger.info("Removing event %s (%s) from match %s", event.id, event.event_type, event.match_id)
    session.delete(event)
    session.commit()


def register_team(
    session: Session, tournament_id: int, team_id: int, status: str = REGISTRATION_APPROVED, seed: Optional[int] = None
) -> TournamentTeam:
    """Create the registration, or revive a withdrawn/rejected one for the same team."""
    registration = session.exec(
        select(TournamentTeam).where(
            TournamentTeam.tournament_id == tournament_id, TournamentTeam.team_id == team_id
        )
    ).first()
    if registration is None:
        registration = TournamentTeam(tournament_id=tournament_id, team_id=team_id)
    registration.status = status
    registration.seed = seed
    session.add(registration)
    session.commit()
    session.refresh(registration)
    return registration
