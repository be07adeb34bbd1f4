from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from matchday.models.tournament_team import TournamentTeam


class Team(SQLModel, table=True):
    """Participant as seen by the competition engine: an id and a display name."""

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    owner_id: Optional[int] = Field(default=None, index=True)  # team representative (confirms results)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    registrations: List["TournamentTeam"] = Relationship(back_populates="team")
