"""Knockout advancement and round naming."""
from types import SimpleNamespace

import pytest

from matchday.services.bracket_progression import (
    advance_knockout,
    bracket_view,
    champion,
    next_round,
    round_name,
    winner_of,
)
from matchday.services.exceptions import UndecidedMatchError, UnevenBracketError


def _ko(mid, home, away, hs, as_, round=1, phase="quarterfinal", status="completed", **extra):
    fields = dict(
        id=mid,
        tournament_id=1,
        home_team_id=home,
        away_team_id=away,
        home_score=hs,
        away_score=as_,
        has_penalties=False,
        home_penalty_score=None,
        away_penalty_score=None,
        status=status,
        round=round,
        phase=phase,
        sequence=mid,
    )
    fields.update(extra)
    return SimpleNamespace(**fields)


def _home_wins_round(count, round=1, phase="round16"):
    return [_ko(i + 1, 100 + 2 * i, 101 + 2 * i, 1, 0, round=round, phase=phase) for i in range(count)]


class TestNextRound:
    def test_halving_down_to_the_final(self):
        first = _home_wins_round(8)
        quarter = next_round(first)
        assert len(quarter) == 4
        assert {d.phase for d in quarter} == {"quarterfinal"}
        assert {d.round for d in quarter} == {2}

        completed_quarter = [
            _ko(10 + i, d.home_team_id, d.away_team_id, 2, 1, round=2, phase=d.phase) for i, d in enumerate(quarter)
        ]
        semi = next_round(completed_quarter)
        assert len(semi) == 2
        assert {d.phase for d in semi} == {"semifinal"}

        completed_semi = [
            _ko(20 + i, d.home_team_id, d.away_team_id, 0, 3, round=3, phase=d.phase) for i, d in enumerate(semi)
        ]
        final = next_round(completed_semi)
        assert len(final) == 1
        assert final[0].phase == "final"
        assert final[0].round == 4

    def test_adjacent_winners_meet(self):
        matches = [_ko(1, 1, 2, 2, 0), _ko(2, 3, 4, 0, 1), _ko(3, 5, 6, 3, 2), _ko(4, 7, 8, 1, 4)]
        drafts = next_round(matches)
        assert [(d.home_team_id, d.away_team_id) for d in drafts] == [(1, 4), (5, 8)]
        assert [d.sequence for d in drafts] == [1, 2]

    def test_penalty_winner_advances(self):
        decided = _ko(1, 1, 2, 1, 1, has_penalties=True, home_penalty_score=5, away_penalty_score=4)
        assert winner_of(decided) == 1
        drafts = next_round([decided, _ko(2, 3, 4, 2, 0)])
        assert drafts[0].home_team_id == 1

    def test_odd_match_count(self):
        with pytest.raises(UnevenBracketError):
            next_round(_home_wins_round(3))

    def test_bye_completes_an_odd_round(self):
        drafts = next_round(_home_wins_round(3), byes=[999])
        assert len(drafts) == 2
        assert drafts[-1].away_team_id == 999

    def test_empty_round(self):
        with pytest.raises(UnevenBracketError):
            next_round([])

    def test_undecided_match(self):
        with pytest.raises(UndecidedMatchError):
            next_round([_ko(1, 1, 2, 1, 1), _ko(2, 3, 4, 1, 0)])

    def test_match_not_completed(self):
        with pytest.raises(UndecidedMatchError):
            next_round([_ko(1, 1, 2, None, None, status="in-progress"), _ko(2, 3, 4, 1, 0)])


class TestAdvanceKnockout:
    def test_even_entrants_match_next_round(self):
        seeded = advance_knockout(_home_wins_round(4))
        assert seeded.byes == []
        assert [(d.home_team_id, d.away_team_id) for d in seeded.fixtures] == [(100, 102), (104, 106)]

    def test_carried_bye_meets_a_winner(self):
        seeded = advance_knockout([_ko(1, 1, 2, 2, 0, phase="semifinal")], byes=[3])
        assert seeded.byes == []
        assert [(d.home_team_id, d.away_team_id, d.phase, d.round) for d in seeded.fixtures] == [(1, 3, "final", 2)]

    def test_odd_entrants_give_the_last_winner_a_bye(self):
        # five-team draw after its first round: winners 1 and 3, team 5 held a bye
        seeded = advance_knockout([_ko(1, 1, 2, 1, 0), _ko(2, 3, 4, 1, 0)], byes=[5])
        assert seeded.byes == [3]
        assert [(d.home_team_id, d.away_team_id) for d in seeded.fixtures] == [(1, 5)]
        assert seeded.fixtures[0].phase == "semifinal"
        assert seeded.fixtures[0].tournament_id == 1

    def test_three_winners(self):
        seeded = advance_knockout(_home_wins_round(3))
        assert seeded.byes == [104]
        assert [(d.home_team_id, d.away_team_id) for d in seeded.fixtures] == [(100, 102)]

    def test_lone_winner_ends_the_bracket(self):
        with pytest.raises(UnevenBracketError):
            advance_knockout([_ko(1, 1, 2, 2, 0, round=2, phase="final")])


class TestRoundNames:
    @pytest.mark.parametrize(
        "index,total,name",
        [
            (4, 4, "final"),
            (3, 4, "semifinal"),
            (2, 4, "quarterfinal"),
            (1, 4, "roundOf16"),
            (1, 5, "roundOf32"),
            (1, 6, "roundOf64"),
            (1, 7, "Round 1"),
        ],
    )
    def test_round_name(self, index, total, name):
        assert round_name(index, total) == name


class TestBracketView:
    def test_rounds_named_and_champion(self):
        semis = [_ko(1, 1, 2, 2, 0, phase="semifinal"), _ko(2, 3, 4, 1, 1, phase="semifinal", has_penalties=True,
                                                              home_penalty_score=3, away_penalty_score=4)]
        final = _ko(3, 1, 4, 0, 2, round=2, phase="final")
        view = bracket_view(semis + [final])
        assert [r.name for r in view] == ["semifinal", "final"]
        assert view[0].matches[1].winner_team_id == 4
        assert champion(semis + [final]) == 4

    def test_no_champion_before_final(self):
        assert champion([_ko(1, 1, 2, 2, 0, phase="semifinal")]) is None

    def test_league_matches_are_ignored(self):
        assert bracket_view([_ko(1, 1, 2, 2, 0, phase="league")]) == []

    def test_first_round_bye_sizes_the_bracket(self):
        # three entrants: the only first-round match is a semifinal
        semi = _ko(1, 1, 2, 2, 0, phase="semifinal")
        view = bracket_view([semi], byes={1: [3]})
        assert [(r.name, r.phase) for r in view] == [("semifinal", "semifinal")]
        assert view[0].byes == [3]

        final = _ko(2, 1, 3, 0, 1, round=2, phase="final")
        view = bracket_view([semi, final], byes={1: [3]})
        assert [r.name for r in view] == ["semifinal", "final"]
        assert view[1].byes == []

    def test_five_entrant_bracket(self):
        quarters = [_ko(1, 1, 2, 1, 0), _ko(2, 3, 4, 1, 0)]
        view = bracket_view(quarters, byes={1: [5]})
        assert [(r.name, r.phase) for r in view] == [("quarterfinal", "quarterfinal")]
