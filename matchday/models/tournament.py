from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from matchday.models.match import Match
    from matchday.models.tournament_team import TournamentTeam


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    location: Optional[str] = None
    organizer_id: Optional[int] = Field(default=None, index=True)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    # league | group | knockout | group-knockout | double-elimination (mirrors structure_json["format"])
    format: str = Field(default="league")
    status: str = Field(default="draft")  # see services.tournament_status
    min_teams: int = Field(default=2)
    max_teams: int = Field(default=16)

    # Stored verbatim as submitted (camelCase keys); parsed by services.competition_config
    structure_json: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    rules_json: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    tiebreaker_rules_json: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow, sa_column_kwargs={"onupdate": _utcnow})

    # Relationships
    matches: List["Match"] = Relationship(back_populates="tournament")
    registrations: List["TournamentTeam"] = Relationship(back_populates="tournament")
