"""Standings tables and the tiebreaker chain."""
from types import SimpleNamespace

import pytest

from matchday.services.competition_config import MatchRules
from matchday.services.exceptions import DataIntegrityError, InvalidConfigurationError, TieUnresolvedError
from matchday.services.standings import compute_group_standings, compute_standings, tournament_statistics
from matchday.services.tiebreakers import TiebreakContext, compare_teams, head_to_head_record, random_key


def _result(mid, home, away, hs, as_, status="completed", group=None):
    return SimpleNamespace(
        id=mid, home_team_id=home, away_team_id=away, home_score=hs, away_score=as_, status=status, group=group
    )


def _event(match_id, team_id, event_type):
    return SimpleNamespace(match_id=match_id, team_id=team_id, event_type=event_type)


# Results of the four-team league used across several tests
SCENARIO_A = [
    _result(1, "T1", "T2", 2, 0),
    _result(2, "T3", "T4", 1, 1),
    _result(3, "T1", "T3", 3, 1),
    _result(4, "T2", "T4", 0, 0),
    _result(5, "T1", "T4", 4, 0),
    _result(6, "T2", "T3", 1, 0),
]


class TestComputeStandings:
    def test_league_scenario(self):
        rows = compute_standings(["T1", "T2", "T3", "T4"], SCENARIO_A)
        top = rows[0]
        assert top.team_id == "T1"
        assert (top.played, top.won, top.drawn, top.lost) == (3, 3, 0, 0)
        assert top.points == 9
        assert top.goal_difference == 9
        assert [r.team_id for r in rows] == ["T1", "T2", "T4", "T3"]
        assert [r.position for r in rows] == [1, 2, 3, 4]

    def test_totals_are_consistent(self):
        rules = MatchRules(points_for_win=2, points_for_draw=1, points_for_loss=0)
        for row in compute_standings(["T1", "T2", "T3", "T4"], SCENARIO_A, rules=rules):
            assert row.played == row.won + row.drawn + row.lost
            assert row.points == row.won * 2 + row.drawn * 1 + row.lost * 0

    def test_only_completed_matches_count(self):
        matches = SCENARIO_A + [_result(7, "T3", "T1", 5, 0, status="in-progress")]
        rows = compute_standings(["T1", "T2", "T3", "T4"], matches)
        assert rows[0].played == 3

    def test_unknown_team_is_data_integrity_error(self):
        with pytest.raises(DataIntegrityError):
            compute_standings(["T1", "T2"], [_result(1, "T1", "T9", 1, 0)])

    def test_completed_without_score_is_data_integrity_error(self):
        with pytest.raises(DataIntegrityError):
            compute_standings(["T1", "T2"], [_result(1, "T1", "T2", None, None)])

    def test_deterministic(self):
        first = [r.team_id for r in compute_standings(["T1", "T2", "T3", "T4"], SCENARIO_A)]
        second = [r.team_id for r in compute_standings(["T4", "T3", "T2", "T1"], list(reversed(SCENARIO_A)))]
        assert first == second

    def test_head_to_head_before_goal_difference(self):
        # A and B level on points; B has the better goal difference but lost to A
        matches = [
            _result(1, "A", "B", 1, 0),
            _result(2, "B", "C", 5, 0),
            _result(3, "A", "D", 0, 1),
            _result(4, "D", "C", 0, 0),
        ]
        rows = compute_standings(["A", "B", "C", "D"], matches, criteria=["points", "headToHead", "goalDifference"])
        assert [r.team_id for r in rows] == ["D", "A", "B", "C"]

        rows = compute_standings(["A", "B", "C", "D"], matches, criteria=["points", "goalDifference"])
        assert [r.team_id for r in rows] == ["D", "B", "A", "C"]

    def test_points_is_always_first(self):
        rows = compute_standings(["T1", "T2", "T3", "T4"], SCENARIO_A, criteria=["goalsFor"])
        assert rows[0].team_id == "T1"

    def test_points_moved_ahead_of_goal_difference(self):
        # B has the best goal difference, A the most points
        matches = [
            _result(1, "A", "B", 1, 0),
            _result(2, "A", "C", 1, 0),
            _result(3, "B", "C", 5, 0),
        ]
        rows = compute_standings(["A", "B", "C"], matches, criteria=["goalDifference", "points"])
        assert [r.team_id for r in rows] == ["A", "B", "C"]

    def test_fair_play_requires_weights(self):
        with pytest.raises(InvalidConfigurationError):
            compute_standings(["A", "B"], [], criteria=["points", "fairPlay"])

    def test_fair_play_orders_fewer_cards_first(self):
        matches = [_result(1, "A", "B", 1, 1)]
        events = [_event(1, "A", "red-card"), _event(1, "B", "yellow-card")]
        rows = compute_standings(
            ["A", "B"],
            matches,
            criteria=["points", "goalDifference", "fairPlay"],
            events=events,
            fair_play_points={"yellow-card": 1, "red-card": 2},
        )
        assert [r.team_id for r in rows] == ["B", "A"]
        assert rows[1].fair_play_points == 2
        assert not rows[0].tie_broken_randomly

    def test_random_fallback_is_flagged(self):
        rows = compute_standings(["A", "B"], [], random_seed="cup")
        assert all(r.tie_broken_randomly for r in rows)
        expected = sorted(["A", "B"], key=lambda t: random_key(t, "cup"))
        assert [r.team_id for r in rows] == expected

    def test_strict_raises_on_random_fallback(self):
        with pytest.raises(TieUnresolvedError):
            compute_standings(["A", "B"], [], strict=True)


class TestGroupStandings:
    def test_one_table_per_group(self):
        matches = [
            _result(1, 1, 2, 2, 0, group="A"),
            _result(2, 3, 4, 0, 1, group="B"),
        ]
        tables = compute_group_standings({"A": [1, 2], "B": [3, 4]}, matches)
        assert list(tables) == ["A", "B"]
        assert tables["A"][0].team_id == 1
        assert tables["B"][0].team_id == 4
        assert tables["B"][0].group == "B"


class TestTiebreakers:
    def test_head_to_head_only_counts_mutual_matches(self):
        record = head_to_head_record(["T2", "T4"], SCENARIO_A)
        assert record == {"T2": (0, 0), "T4": (0, 0)}
        record = head_to_head_record(["T1", "T2"], SCENARIO_A)
        assert record == {"T1": (2, 2), "T2": (-2, 0)}

    def test_compare_teams_never_ties(self):
        a = SimpleNamespace(team_id="A", points=3, goal_difference=0, goals_for=0, fair_play_points=0)
        b = SimpleNamespace(team_id="B", points=3, goal_difference=0, goals_for=0, fair_play_points=0)
        context = TiebreakContext(random_seed="x")
        assert compare_teams(a, b, ["points"], context) in (-1, 1)
        assert compare_teams(a, b, ["points"], context) == -compare_teams(b, a, ["points"], context)

    def test_compare_by_goal_difference(self):
        a = SimpleNamespace(team_id="A", points=3, goal_difference=1, goals_for=2, fair_play_points=0)
        b = SimpleNamespace(team_id="B", points=3, goal_difference=2, goals_for=2, fair_play_points=0)
        assert compare_teams(a, b, ["points", "goalDifference"], TiebreakContext()) == 1


def test_tournament_statistics():
    matches = SCENARIO_A + [_result(7, "T1", "T2", None, None, status="scheduled")]
    stats = tournament_statistics(matches)
    assert stats["total_matches"] == 7
    assert stats["completed"] == 6
    assert stats["scheduled"] == 1
    assert stats["total_goals"] == 13
    assert stats["average_goals_per_match"] == round(13 / 6, 2)
