from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class KnockoutBye(SQLModel, table=True):
    """A team that skips one knockout round and enters the next one directly."""

    __tablename__ = "knockoutbye"
    __table_args__ = (SAUniqueConstraint("tournament_id", "round", "team_id", name="uq_knockout_bye"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    team_id: int = Field(foreign_key="team.id")
    round: int  # the round skipped, same numbering as Match.round
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
