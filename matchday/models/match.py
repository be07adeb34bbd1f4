from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from matchday.models.match_event import MatchEvent
    from matchday.models.tournament import Tournament


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    home_team_id: int = Field(foreign_key="team.id")
    away_team_id: int = Field(foreign_key="team.id")
    referee_id: Optional[int] = Field(default=None)  # None: referee confirmation not required

    scheduled_date: Optional[datetime] = Field(default=None)
    location: Optional[str] = Field(default=None)
    field: Optional[str] = Field(default=None)

    phase: str  # "league" | "group" | "round64" ... "semifinal" | "final"
    group: Optional[str] = Field(default=None)  # set only for phase "group"
    round: int = Field(default=1)
    sequence: int = Field(default=0)  # order within the generated schedule / bracket round

    status: str = Field(default="scheduled", index=True)  # scheduled | in-progress | completed | cancelled

    home_score: Optional[int] = Field(default=None)
    away_score: Optional[int] = Field(default=None)
    half_time_home_score: Optional[int] = Field(default=None)
    half_time_away_score: Optional[int] = Field(default=None)
    has_penalties: bool = Field(default=False)
    home_penalty_score: Optional[int] = Field(default=None)
    away_penalty_score: Optional[int] = Field(default=None)

    # One flag + timestamp per role; each is written independently
    home_confirmed: bool = Field(default=False)
    home_confirmed_at: Optional[datetime] = Field(default=None)
    away_confirmed: bool = Field(default=False)
    away_confirmed_at: Optional[datetime] = Field(default=None)
    referee_confirmed: bool = Field(default=False)
    referee_confirmed_at: Optional[datetime] = Field(default=None)

    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="matches")
    events: List["MatchEvent"] = Relationship(back_populates="match")
