"""
Competition engine errors.

Validation errors are raised before anything is changed; engine functions
return patches or new records, so a raised error always means "nothing happened".
"""


class CompetitionError(Exception):
    """Base exception for competition engine errors"""
    pass


class InvalidConfigurationError(CompetitionError):
    """Tournament structure, rules or tiebreaker configuration is unusable"""
    pass


class InsufficientTeamsError(CompetitionError):
    """Fewer than two teams at schedule-generation time"""

    def __init__(self, team_count: int, required: int = 2):
        self.team_count = team_count
        self.required = required
        super().__init__(f"At least {required} teams are required, got {team_count}")


class InvalidStatusTransitionError(CompetitionError):
    """Illegal match status change"""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change match status from {current} to {requested}")


class InvalidEventError(CompetitionError):
    """Malformed or inconsistent match event"""
    pass


class UnevenBracketError(CompetitionError):
    """Bracket round that cannot be paired into a next round"""
    pass


class TieUnresolvedError(CompetitionError):
    """
    Informational: the configured tiebreaker chain could not separate teams and
    the deterministic random fallback was used.
    """

    def __init__(self, team_ids):
        self.team_ids = list(team_ids)
        super().__init__(f"Tie between {self.team_ids} was resolved by the random fallback")


class DataIntegrityError(CompetitionError):
    """Input data is inconsistent (unknown team, missing score on a completed match, ...)"""
    pass


class UndecidedMatchError(CompetitionError):
    """A knockout match has no winner (level score and no penalty shoot-out)"""
    pass


class MatchLockedError(CompetitionError):
    """Match result is fully confirmed and can no longer be edited"""
    pass


class ConfirmationError(CompetitionError):
    """Result confirmation was rejected"""

    def __init__(self, message: str, unauthorized: bool = False):
        self.unauthorized = unauthorized
        super().__init__(message)


class TournamentStatusError(CompetitionError):
    """Illegal tournament status change or precondition not met"""
    pass


class RegistrationError(CompetitionError):
    """Team registration rejected"""
    pass


class InvalidScoreError(CompetitionError):
    """Score update rejected (wrong match status, negative values, inconsistent penalties)"""
    pass
