"""
Bracket progression — advances knockout winners into the next round.

Matches 2k and 2k+1 of a round feed the home and away slots of match k of the
next round. Teams holding a bye are appended after the winners. When winners
plus byes still leave an odd count, the last winner sits the next round out
with a bye of its own. Round names are relative to the total number of rounds
(the last round is always the final), counting byes as first-round entrants.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Mapping, Optional, Sequence

from matchday.services.competition_config import KNOCKOUT_PHASES
from matchday.services.exceptions import UndecidedMatchError, UnevenBracketError
from matchday.services.match_lifecycle import STATUS_COMPLETED, match_winner
from matchday.services.schedule_generator import KnockoutSeeding, MatchDraft, knockout_phase_label

logger = logging.getLogger(__name__)

ROUND_NAMES = {
    0: "final",
    1: "semifinal",
    2: "quarterfinal",
    3: "roundOf16",
    4: "roundOf32",
    5: "roundOf64",
}


def round_name(round_index: int, total_rounds: int) -> str:
    """Human-readable name of round `round_index` (1-based) out of `total_rounds`."""
    return ROUND_NAMES.get(total_rounds - round_index, f"Round {round_index}")


def total_rounds_for(participants: int) -> int:
    """Rounds needed to reduce `participants` entrants to one champion."""
    if participants < 2:
        return 0
    return math.ceil(math.log2(participants))


def winner_of(match: Any) -> Hashable:
    if match.status != STATUS_COMPLETED:
        raise UndecidedMatchError(f"Match {match.id} is not completed")
    winner = match_winner(match)
    if winner is None:
        raise UndecidedMatchError(f"Match {match.id} ended level without a penalty shoot-out winner")
    return winner


def _pair(entrants: Sequence[Hashable], round_number: int, phase: str, tournament_id: Any) -> List[MatchDraft]:
    return [
        MatchDraft(
            home_team_id=entrants[k],
            away_team_id=entrants[k + 1],
            phase=phase,
            round=round_number,
            sequence=k // 2 + 1,
            tournament_id=tournament_id,
        )
        for k in range(0, len(entrants), 2)
    ]


def next_round(completed_round_matches: Sequence[Any], byes: Sequence[Hashable] = ()) -> List[MatchDraft]:
    """
    Drafts for the round after `completed_round_matches` (given in bracket order).

    Every match must be completed with a winner. The entrant count (winners plus
    byes) must be even, otherwise the bracket cannot be paired.
    """
    matches = list(completed_round_matches)
    if not matches:
        raise UnevenBracketError("No matches to advance from")

    entrants = [winner_of(m) for m in matches] + list(byes)
    if len(entrants) < 2:
        raise UnevenBracketError("A single winner remains; the bracket is complete")
    if len(entrants) % 2 == 1:
        raise UnevenBracketError(
            f"Round has {len(matches)} matches and {len(byes)} byes; an odd number of entrants cannot be paired"
        )

    next_round_number = max(m.round for m in matches) + 1
    phase = knockout_phase_label(len(entrants))
    drafts = _pair(entrants, next_round_number, phase, getattr(matches[0], "tournament_id", None))
    logger.info("Advanced %d entrants into round %d (%s)", len(entrants), next_round_number, phase)
    return drafts


def advance_knockout(completed_round_matches: Sequence[Any], byes: Sequence[Hashable] = ()) -> KnockoutSeeding:
    """
    Like next_round(), but any entrant count of two or more can be paired.

    With an odd count the last winner gets a bye into the round after. Carried
    byes always play, so no team sits out two rounds in a row. The phase is
    named after the full entrant count, bye included.
    """
    matches = list(completed_round_matches)
    if not matches:
        raise UnevenBracketError("No matches to advance from")

    winners = [winner_of(m) for m in matches]
    entrants = winners + list(byes)
    if len(entrants) < 2:
        raise UnevenBracketError("A single winner remains; the bracket is complete")

    next_round_number = max(m.round for m in matches) + 1
    phase = knockout_phase_label(len(entrants))
    new_byes: List[Hashable] = []
    if len(entrants) % 2 == 1:
        new_byes.append(winners[-1])
        entrants = winners[:-1] + list(byes)
        logger.info("Knockout round %d: %s receives a bye", next_round_number, new_byes[0])

    fixtures = _pair(entrants, next_round_number, phase, getattr(matches[0], "tournament_id", None))
    logger.info("Advanced %d entrants into round %d (%s)", len(winners) + len(byes), next_round_number, phase)
    return KnockoutSeeding(fixtures=fixtures, byes=new_byes)


@dataclass
class BracketMatch:
    match_id: Any
    home_team_id: Hashable
    away_team_id: Hashable
    home_score: Optional[int]
    away_score: Optional[int]
    status: str
    winner_team_id: Optional[Hashable] = None


@dataclass
class BracketRound:
    round: int
    name: str
    phase: str
    matches: List[BracketMatch] = field(default_factory=list)
    byes: List[Hashable] = field(default_factory=list)


def bracket_view(
    matches: Sequence[Any], byes: Optional[Mapping[int, Sequence[Hashable]]] = None
) -> List[BracketRound]:
    """
    Knockout matches grouped by round, named relative to the bracket size.

    byes maps a round number to the teams that skip it. First-round byes count
    towards the bracket size.
    """
    byes = byes or {}
    knockout = [m for m in matches if m.phase in KNOCKOUT_PHASES]
    if not knockout:
        return []

    by_round: Dict[int, List[Any]] = defaultdict(list)
    for m in knockout:
        by_round[m.round].append(m)

    first_round = min(by_round)
    first_round_entrants = 2 * len(by_round[first_round]) + len(byes.get(first_round, ()))
    total = max(max(by_round) - first_round + 1, total_rounds_for(first_round_entrants))

    view = []
    for rnd in sorted(by_round):
        round_matches = sorted(by_round[rnd], key=lambda m: (m.sequence or 0, str(m.id)))
        view.append(
            BracketRound(
                round=rnd,
                name=round_name(rnd - first_round + 1, total),
                phase=round_matches[0].phase,
                matches=[
                    BracketMatch(
                        match_id=m.id,
                        home_team_id=m.home_team_id,
                        away_team_id=m.away_team_id,
                        home_score=m.home_score,
                        away_score=m.away_score,
                        status=m.status,
                        winner_team_id=match_winner(m),
                    )
                    for m in round_matches
                ],
                byes=list(byes.get(rnd, ())),
            )
        )
    return view


def champion(matches: Sequence[Any]) -> Optional[Hashable]:
    """Winner of the completed final, if there is one."""
    finals = [m for m in matches if m.phase == "final" and m.status == STATUS_COMPLETED]
    if len(finals) != 1:
        return None
    return match_winner(finals[0])
