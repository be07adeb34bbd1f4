"""
Competition configuration: tournament structure, match rules and tiebreaker rules.

Payloads are accepted verbatim as stored by the organizer UI (camelCase keys,
e.g. {"tournamentStructure": {"teamsPerGroup": 4}}); snake_case names work too.
"""

from typing import Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from matchday.services.exceptions import InvalidConfigurationError

# =============================================================================
# Enumerations
# =============================================================================

FORMAT_LEAGUE = "league"
FORMAT_GROUP = "group"
FORMAT_KNOCKOUT = "knockout"
FORMAT_GROUP_KNOCKOUT = "group-knockout"
FORMAT_DOUBLE_ELIMINATION = "double-elimination"

CompetitionFormat = Literal["league", "group", "knockout", "group-knockout", "double-elimination"]

GROUP_FORMATS = frozenset({FORMAT_GROUP, FORMAT_GROUP_KNOCKOUT})
KNOCKOUT_FORMATS = frozenset({FORMAT_KNOCKOUT, FORMAT_DOUBLE_ELIMINATION})

# Match phases
PHASE_LEAGUE = "league"
PHASE_GROUP = "group"
PHASE_ROUND64 = "round64"
PHASE_ROUND32 = "round32"
PHASE_ROUND16 = "round16"
PHASE_QUARTERFINAL = "quarterfinal"
PHASE_SEMIFINAL = "semifinal"
PHASE_FINAL = "final"

KNOCKOUT_PHASES = frozenset(
    {PHASE_ROUND64, PHASE_ROUND32, PHASE_ROUND16, PHASE_QUARTERFINAL, PHASE_SEMIFINAL, PHASE_FINAL}
)

CRITERION_POINTS = "points"
CRITERION_HEAD_TO_HEAD = "headToHead"
CRITERION_GOAL_DIFFERENCE = "goalDifference"
CRITERION_GOALS_FOR = "goalsFor"
CRITERION_FAIR_PLAY = "fairPlay"
CRITERION_RANDOM = "random"

TIEBREAKER_CRITERIA = frozenset(
    {
        CRITERION_POINTS,
        CRITERION_HEAD_TO_HEAD,
        CRITERION_GOAL_DIFFERENCE,
        CRITERION_GOALS_FOR,
        CRITERION_FAIR_PLAY,
        CRITERION_RANDOM,
    }
)

DEFAULT_CRITERIA = [CRITERION_POINTS, CRITERION_HEAD_TO_HEAD, CRITERION_GOAL_DIFFERENCE, CRITERION_GOALS_FOR]
DEFAULT_TEAMS_PER_GROUP = 4


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class TournamentStructure(_CamelModel):
    format: CompetitionFormat = FORMAT_LEAGUE
    group_count: Optional[int] = Field(default=None, ge=1)
    teams_per_group: int = Field(default=DEFAULT_TEAMS_PER_GROUP, ge=2)
    advancing_teams_count: int = Field(default=2, ge=1)


class MatchRules(_CamelModel):
    match_duration: int = Field(
        default=90,
        ge=1,
        validation_alias=AliasChoices("matchDuration", "matchDurationMinutes", "match_duration"),
    )
    points_for_win: int = 3
    points_for_draw: int = 1
    points_for_loss: int = 0
    substitutes_allowed: bool = True
    use_extra_time: bool = False
    use_penalty_shootout: bool = True


class TiebreakerRules(_CamelModel):
    criteria: List[str] = Field(default_factory=lambda: list(DEFAULT_CRITERIA))
    # Disciplinary weights per event type, e.g. {"yellow-card": 1, "red-card": 2}.
    fair_play_points: Optional[Dict[str, int]] = None

    @field_validator("criteria")
    @classmethod
    def validate_criteria(cls, v: List[str]) -> List[str]:
        unknown = [c for c in v if c not in TIEBREAKER_CRITERIA]
        if unknown:
            raise ValueError(f"Unknown tiebreaker criteria: {unknown}")
        if len(set(v)) != len(v):
            raise ValueError("Tiebreaker criteria must not repeat")
        return v

    @model_validator(mode="after")
    def validate_fair_play_weights(self):
        if CRITERION_FAIR_PLAY in self.criteria and not self.fair_play_points:
            raise ValueError("fairPlay criterion requires explicit fairPlayPoints weights")
        return self


class CompetitionConfig(_CamelModel):
    tournament_structure: TournamentStructure = Field(default_factory=TournamentStructure)
    rules: MatchRules = Field(default_factory=MatchRules)
    tiebreaker_rules: TiebreakerRules = Field(default_factory=TiebreakerRules)

    @property
    def format(self) -> str:
        return self.tournament_structure.format


def load_competition_config(
    structure: Optional[dict] = None,
    rules: Optional[dict] = None,
    tiebreaker_rules: Optional[dict] = None,
) -> CompetitionConfig:
    """
    Build a CompetitionConfig from the three stored JSON blobs.

    Raises InvalidConfigurationError (not pydantic's ValidationError) so engine
    callers only deal with competition errors.
    """
    try:
        return CompetitionConfig(
            tournament_structure=TournamentStructure.model_validate(structure or {}),
            rules=MatchRules.model_validate(rules or {}),
            tiebreaker_rules=TiebreakerRules.model_validate(tiebreaker_rules or {}),
        )
    except ValidationError as e:
        raise InvalidConfigurationError(str(e)) from e
