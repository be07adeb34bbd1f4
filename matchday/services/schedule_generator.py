"""
Schedule generator — fixture lists for league, group and knockout formats.

Produces MatchDraft records only; persisting them (and replacing the unplayed
fixture set atomically) is the persistence layer's job.

Pairing strategies:
- Round robin (league): every unordered pair once, home = earlier team in the
  roster order. Round numbers follow the circle method so each round is a valid
  matchday.
- Group distribution (group, group-knockout): contiguous slices of the roster
  (after any caller shuffling) labelled A, B, C...; round robin inside each group.
- Knockout seeding (knockout, double-elimination, second stage of group-knockout):
  consecutive entrants (2k, 2k+1) meet; with an odd count the last entrant gets a bye.

Slotting: 3 matches per day from 15:00, 2 hours apart, batches every 2 days,
unless the caller supplies explicit dates.
"""

from __future__ import annotations

import logging
import math
import random
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from matchday.services.competition_config import (
    FORMAT_DOUBLE_ELIMINATION,
    FORMAT_GROUP,
    FORMAT_GROUP_KNOCKOUT,
    FORMAT_KNOCKOUT,
    FORMAT_LEAGUE,
    PHASE_FINAL,
    PHASE_GROUP,
    PHASE_LEAGUE,
    PHASE_QUARTERFINAL,
    PHASE_ROUND16,
    PHASE_ROUND32,
    PHASE_ROUND64,
    PHASE_SEMIFINAL,
    TournamentStructure,
)
from matchday.services.exceptions import DataIntegrityError, InsufficientTeamsError, InvalidConfigurationError
from matchday.services.match_lifecycle import STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_SCHEDULED

logger = logging.getLogger(__name__)

MAX_GROUPS = 26


@dataclass
class MatchDraft:
    home_team_id: Hashable
    away_team_id: Hashable
    phase: str
    round: int = 1
    group: Optional[str] = None
    sequence: int = 0
    scheduled_date: Optional[datetime] = None
    location: Optional[str] = None
    field: Optional[str] = None
    tournament_id: Optional[Any] = None
    status: str = STATUS_SCHEDULED

    def __post_init__(self):
        if self.home_team_id == self.away_team_id:
            raise DataIntegrityError(f"A team cannot play itself ({self.home_team_id})")
        if self.round < 1:
            raise DataIntegrityError(f"round must be >= 1, got {self.round}")


@dataclass
class SlottingPolicy:
    matches_per_day: int = 3
    first_kickoff: time = time(15, 0)
    days_between_batches: int = 2
    hours_between_slots: int = 2

    def slot(self, start_date: date, index: int) -> datetime:
        """Kick-off time of the index-th fixture (0-based)."""
        batch, slot_in_day = divmod(index, self.matches_per_day)
        day = start_date + timedelta(days=batch * self.days_between_batches)
        kickoff = datetime.combine(day, self.first_kickoff)
        return kickoff + timedelta(hours=slot_in_day * self.hours_between_slots)


@dataclass
class KnockoutSeeding:
    fixtures: List[MatchDraft]
    byes: List[Hashable] = field(default_factory=list)


@dataclass
class GeneratedSchedule:
    """First-stage fixtures, plus the teams that skip round 1 of a knockout"""
    fixtures: List[MatchDraft]
    byes: List[Hashable] = field(default_factory=list)


@dataclass
class RegenerationPlan:
    keep_ids: List[Any]
    replace_ids: List[Any]
    new_drafts: List[MatchDraft]


# =============================================================================
# Round robin
# =============================================================================

def round_robin_count(n: int) -> int:
    return n * (n - 1) // 2


def round_robin_rounds(team_ids: Sequence[Hashable]) -> Dict[frozenset, int]:
    """
    Circle method: map each unordered pair to its round number (1-based).
    Odd rosters get a phantom entrant; whoever meets it sits the round out.
    """
    entrants: List[Optional[Hashable]] = list(team_ids)
    if len(entrants) % 2 == 1:
        entrants.append(None)
    n = len(entrants)
    rounds: Dict[frozenset, int] = {}
    rotating = entrants[1:]
    for round_number in range(1, n):
        lineup = [entrants[0]] + rotating
        for i in range(n // 2):
            a, b = lineup[i], lineup[n - 1 - i]
            if a is not None and b is not None:
                rounds[frozenset((a, b))] = round_number
        rotating = rotating[-1:] + rotating[:-1]
    return rounds


def round_robin(
    team_ids: Sequence[Hashable], phase: str = PHASE_LEAGUE, group: Optional[str] = None
) -> List[MatchDraft]:
    """n(n-1)/2 fixtures; home = team_ids[i], away = team_ids[j] for i < j."""
    rounds = round_robin_rounds(team_ids)
    drafts = []
    for i in range(len(team_ids)):
        for j in range(i + 1, len(team_ids)):
            home, away = team_ids[i], team_ids[j]
            drafts.append(
                MatchDraft(
                    home_team_id=home,
                    away_team_id=away,
                    phase=phase,
                    group=group,
                    round=rounds[frozenset((home, away))],
                )
            )
    # Stable: within a round, roster order is preserved
    drafts.sort(key=lambda d: d.round)
    return drafts


# =============================================================================
# Groups
# =============================================================================

def group_label(index: int) -> str:
    return chr(ord("A") + index)


def distribute_groups(
    team_ids: Sequence[Hashable], teams_per_group: int = 4, group_count: Optional[int] = None
) -> Dict[str, List[Hashable]]:
    """
    Contiguous slices of the roster. group_count, when set, decides the slice
    size (ceil(n / group_count)); otherwise teams_per_group does.
    """
    if group_count:
        size = math.ceil(len(team_ids) / group_count)
    else:
        size = teams_per_group
    if size < 2:
        raise InvalidConfigurationError(f"Groups need at least 2 teams, got slice size {size}")
    slices = [list(team_ids[i:i + size]) for i in range(0, len(team_ids), size)]
    if len(slices) > MAX_GROUPS:
        raise InvalidConfigurationError(f"At most {MAX_GROUPS} groups are supported, got {len(slices)}")
    groups = {group_label(i): members for i, members in enumerate(slices)}
    for label, members in groups.items():
        if len(members) < 2:
            logger.warning("Group %s has a single team (%s); it has no fixtures", label, members)
    return groups


def group_stage(groups: Mapping[str, Sequence[Hashable]]) -> List[MatchDraft]:
    drafts: List[MatchDraft] = []
    for label in sorted(groups.keys()):
        drafts.extend(round_robin(list(groups[label]), phase=PHASE_GROUP, group=label))
    # Interleave groups matchday by matchday
    drafts.sort(key=lambda d: (d.round, d.group))
    return drafts


# =============================================================================
# Knockout
# =============================================================================

def knockout_phase_label(participants: int) -> str:
    """Phase label for a knockout round with this many entrants."""
    if participants <= 2:
        return PHASE_FINAL
    if participants > 32:
        return PHASE_ROUND64
    if participants > 16:
        return PHASE_ROUND32
    if participants > 8:
        return PHASE_ROUND16
    if participants > 4:
        return PHASE_QUARTERFINAL
    return PHASE_SEMIFINAL


def seed_knockout(
    team_ids: Sequence[Hashable],
    seeding: Optional[Sequence[Hashable]] = None,
    rng_seed: Optional[Any] = None,
    round_number: int = 1,
) -> KnockoutSeeding:
    """
    Pair entrants (2k, 2k+1) in seeding order.

    Without an explicit seeding the roster is shuffled with random.Random(rng_seed),
    so the same seed always produces the same draw. With an odd entrant count the
    last entrant receives a bye: no fixture, it goes straight to the next round.
    """
    if len(team_ids) < 2:
        raise InsufficientTeamsError(len(team_ids))

    if seeding is not None:
        if Counter(seeding) != Counter(team_ids):
            raise DataIntegrityError("Seeding must list every team exactly once")
        order = list(seeding)
    else:
        order = list(team_ids)
        random.Random(rng_seed).shuffle(order)

    phase = knockout_phase_label(len(order))
    byes: List[Hashable] = []
    if len(order) % 2 == 1:
        byes.append(order.pop())
        logger.info("Knockout round %d: %s receives a bye", round_number, byes[0])

    fixtures = [
        MatchDraft(home_team_id=order[k], away_team_id=order[k + 1], phase=phase, round=round_number)
        for k in range(0, len(order), 2)
    ]
    return KnockoutSeeding(fixtures=fixtures, byes=byes)


def seed_from_group_standings(
    tables: Mapping[str, Sequence[Any]], advancing_per_group: int
) -> List[Hashable]:
    """
    Knockout seeding order for the second stage of a group-knockout tournament.

    Qualifiers are ranked by group position then group label (all winners, then
    all runners-up, ...), and the list is folded so the best meets the worst:
    [q1, qN, q2, qN-1, ...]. Consecutive pairs become first-round fixtures.
    """
    if advancing_per_group < 1:
        raise InvalidConfigurationError("advancingTeamsCount must be >= 1")
    qualifiers: List[Hashable] = []
    for position in range(advancing_per_group):
        for label in sorted(tables.keys()):
            rows = tables[label]
            if position < len(rows):
                qualifiers.append(rows[position].team_id)

    folded: List[Hashable] = []
    lo, hi = 0, len(qualifiers) - 1
    while lo <= hi:
        folded.append(qualifiers[lo])
        if lo != hi:
            folded.append(qualifiers[hi])
        lo += 1
        hi -= 1
    return folded


# =============================================================================
# Dates
# =============================================================================

def assign_dates(
    drafts: Sequence[MatchDraft],
    start_date: Optional[date] = None,
    policy: Optional[SlottingPolicy] = None,
    manual_dates: Optional[Sequence[datetime]] = None,
) -> List[MatchDraft]:
    """
    Dated copies of the drafts, numbered 1..N.

    manual_dates (one per draft, in order) bypasses the slotting policy entirely.
    """
    if manual_dates is not None:
        if len(manual_dates) != len(drafts):
            raise InvalidConfigurationError(
                f"Manual scheduling needs one date per fixture ({len(drafts)}), got {len(manual_dates)}"
            )
        return [replace(d, sequence=i + 1, scheduled_date=manual_dates[i]) for i, d in enumerate(drafts)]

    if start_date is None:
        raise InvalidConfigurationError("start_date is required for automatic slotting")
    if isinstance(start_date, datetime):
        start_date = start_date.date()
    policy = policy or SlottingPolicy()
    return [replace(d, sequence=i + 1, scheduled_date=policy.slot(start_date, i)) for i, d in enumerate(drafts)]


# =============================================================================
# Entry point
# =============================================================================

def generate_schedule(
    team_ids: Sequence[Hashable],
    structure: TournamentStructure,
    start_date: Optional[date] = None,
    seeding: Optional[Sequence[Hashable]] = None,
    rng_seed: Optional[Any] = None,
    manual_dates: Optional[Sequence[datetime]] = None,
    policy: Optional[SlottingPolicy] = None,
    tournament_id: Optional[Any] = None,
) -> List[MatchDraft]:
    """Fixture list for the tournament's first stage (see build_schedule)."""
    return build_schedule(
        team_ids,
        structure,
        start_date=start_date,
        seeding=seeding,
        rng_seed=rng_seed,
        manual_dates=manual_dates,
        policy=policy,
        tournament_id=tournament_id,
    ).fixtures


def build_schedule(
    team_ids: Sequence[Hashable],
    structure: TournamentStructure,
    start_date: Optional[date] = None,
    seeding: Optional[Sequence[Hashable]] = None,
    rng_seed: Optional[Any] = None,
    manual_dates: Optional[Sequence[datetime]] = None,
    policy: Optional[SlottingPolicy] = None,
    tournament_id: Optional[Any] = None,
) -> GeneratedSchedule:
    """
    First-stage fixtures together with any knockout bye.

    A bye (odd knockout entrant count) produces no fixture. The bye team enters
    the bracket in round 2, so callers must keep it alongside the fixtures.
    """
    team_ids = list(team_ids)
    if len(team_ids) < 2:
        raise InsufficientTeamsError(len(team_ids))
    if len(set(team_ids)) != len(team_ids):
        raise DataIntegrityError("Duplicate team ids in roster")

    fmt = structure.format
    byes: List[Hashable] = []
    if fmt == FORMAT_LEAGUE:
        drafts = round_robin(team_ids)
    elif fmt in (FORMAT_GROUP, FORMAT_GROUP_KNOCKOUT):
        groups = distribute_groups(team_ids, structure.teams_per_group, structure.group_count)
        drafts = group_stage(groups)
    elif fmt in (FORMAT_KNOCKOUT, FORMAT_DOUBLE_ELIMINATION):
        seeded = seed_knockout(team_ids, seeding=seeding, rng_seed=rng_seed)
        drafts, byes = seeded.fixtures, seeded.byes
    else:
        raise InvalidConfigurationError(f"Unknown tournament format: {fmt}")

    drafts = assign_dates(drafts, start_date=start_date, policy=policy, manual_dates=manual_dates)
    if tournament_id is not None:
        drafts = [replace(d, tournament_id=tournament_id) for d in drafts]

    logger.info("Generated %d fixtures for %d teams (format=%s)", len(drafts), len(team_ids), fmt)
    return GeneratedSchedule(fixtures=drafts, byes=byes)


def _pairing_key(home: Hashable, away: Hashable, phase: str, group: Optional[str]) -> Tuple:
    return (frozenset((home, away)), phase, group)


def plan_regeneration(existing_matches: Iterable[Any], drafts: Sequence[MatchDraft]) -> RegenerationPlan:
    """
    Decide what a schedule regeneration does to the stored fixtures.

    Only "scheduled" matches are replaced. Completed, in-progress and cancelled
    matches are kept, and drafts repeating a pairing that is already completed or
    under way are dropped so the fixture is not played twice.
    """
    keep_ids: List[Any] = []
    replace_ids: List[Any] = []
    played = set()
    for m in existing_matches:
        if m.status == STATUS_SCHEDULED:
            replace_ids.append(m.id)
            continue
        keep_ids.append(m.id)
        if m.status in (STATUS_COMPLETED, STATUS_IN_PROGRESS):
            played.add(_pairing_key(m.home_team_id, m.away_team_id, m.phase, m.group))

    new_drafts = [d for d in drafts if _pairing_key(d.home_team_id, d.away_team_id, d.phase, d.group) not in played]
    return RegenerationPlan(keep_ids=keep_ids, replace_ids=replace_ids, new_drafts=new_drafts)
