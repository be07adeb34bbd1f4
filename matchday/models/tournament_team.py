from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from matchday.models.team import Team
    from matchday.models.tournament import Tournament


class TournamentTeam(SQLModel, table=True):
    __tablename__ = "tournamentteam"
    __table_args__ = (SAUniqueConstraint("tournament_id", "team_id", name="uq_tournament_team"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    status: str = Field(default="pending")  # "pending" | "approved" | "rejected" | "withdrawn"
    seed: Optional[int] = Field(default=None)  # 1-based; orders the roster for scheduling
    group: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="registrations")
    team: "Team" = Relationship(back_populates="registrations")
