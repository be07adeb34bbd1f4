from matchday.models.knockout_bye import KnockoutBye
from matchday.models.match import Match
from matchday.models.match_event import MatchEvent
from matchday.models.team import Team
from matchday.models.tournament import Tournament
from matchday.models.tournament_team import TournamentTeam

__all__ = [
    "Tournament",
    "Team",
    "TournamentTeam",
    "Match",
    "MatchEvent",
    "KnockoutBye",
]
