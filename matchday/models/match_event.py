from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from matchday.models.match import Match


class MatchEvent(SQLModel, table=True):
    __tablename__ = "matchevent"

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: Optional[int] = Field(default=None, foreign_key="match.id", index=True)
    event_type: str  # see services.match_events.EVENT_TYPES
    team_id: int = Field(foreign_key="team.id")
    player_id: Optional[int] = Field(default=None)
    secondary_player_id: Optional[int] = Field(default=None)  # assist: scorer; substitution: other player

    half: int  # 1-2 regular, 3-4 extra time, 5 penalty shoot-out
    minute: int
    added_time: int = Field(default=0)

    description: Optional[str] = Field(default=None)
    coordinates: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    match: Optional["Match"] = Relationship(back_populates="events")
