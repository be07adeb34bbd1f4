"""Match event validation, timeline and derived statistics."""
import logging
from types import SimpleNamespace

import pytest

from matchday.services.competition_config import MatchRules
from matchday.services.exceptions import InvalidEventError
from matchday.services.match_events import (
    add_event,
    player_statistics,
    rank_players,
    remove_event,
    tally_score,
    timeline,
)


def _match(status="in-progress", **extra):
    fields = dict(
        id=1,
        home_team_id=10,
        away_team_id=20,
        referee_id=None,
        status=status,
        home_confirmed=False,
        away_confirmed=False,
        referee_confirmed=False,
    )
    fields.update(extra)
    return SimpleNamespace(**fields)


_next_id = iter(range(1, 10_000))


def _event(event_type="goal", team_id=10, player_id=101, half=1, minute=10, **extra):
    fields = dict(
        id=next(_next_id),
        match_id=1,
        event_type=event_type,
        team_id=team_id,
        player_id=player_id,
        secondary_player_id=None,
        half=half,
        minute=minute,
        added_time=0,
        coordinates=None,
    )
    fields.update(extra)
    return SimpleNamespace(**fields)


class TestAddEvent:
    def test_valid_goal(self):
        event = _event()
        assert add_event(_match(), event) is event

    @pytest.mark.parametrize("status", ["scheduled", "cancelled"])
    def test_rejected_before_kickoff_and_when_cancelled(self, status):
        with pytest.raises(InvalidEventError):
            add_event(_match(status=status), _event())

    def test_allowed_after_completion_until_fully_confirmed(self):
        match = _match(status="completed", home_confirmed=True)
        add_event(match, _event())
        match.away_confirmed = True
        with pytest.raises(InvalidEventError):
            add_event(match, _event())

    def test_team_must_play_in_the_match(self):
        with pytest.raises(InvalidEventError):
            add_event(_match(), _event(team_id=30))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"minute": -1},
            {"minute": 121},
            {"added_time": 16},
            {"half": 0},
            {"half": 6},
            {"event_type": "dive"},
            {"player_id": None},
        ],
    )
    def test_field_limits(self, overrides):
        with pytest.raises(InvalidEventError):
            add_event(_match(), _event(**overrides))

    def test_boundaries_are_inclusive(self):
        add_event(_match(), _event(minute=120, added_time=15, half=4))
        add_event(_match(), _event(minute=0))

    @pytest.mark.parametrize("event_type", ["assist", "substitution-in", "substitution-out"])
    def test_secondary_player_required(self, event_type):
        with pytest.raises(InvalidEventError):
            add_event(_match(), _event(event_type=event_type))
        add_event(_match(), _event(event_type=event_type, secondary_player_id=202))

    def test_coordinates_within_pitch(self):
        add_event(_match(), _event(coordinates={"x": 50, "y": 99.5}))
        with pytest.raises(InvalidEventError):
            add_event(_match(), _event(coordinates={"x": 101, "y": 5}))

    def test_shootout_half_only_takes_penalties(self):
        with pytest.raises(InvalidEventError):
            add_event(_match(), _event(event_type="goal", half=5))
        add_event(_match(), _event(event_type="penalty-saved", half=5))

    def test_rules_disable_extra_time(self):
        with pytest.raises(InvalidEventError):
            add_event(_match(), _event(half=3), rules=MatchRules(use_extra_time=False))
        add_event(_match(), _event(half=3), rules=MatchRules(use_extra_time=True))

    def test_second_yellow_without_yellow_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="matchday.services.match_events"):
            add_event(_match(), _event(event_type="second-yellow"))
        assert "without an earlier yellow" in caplog.text

    def test_second_yellow_after_yellow_is_quiet(self, caplog):
        yellow = _event(event_type="yellow-card")
        with caplog.at_level(logging.WARNING, logger="matchday.services.match_events"):
            add_event(_match(), _event(event_type="second-yellow"), existing_events=[yellow])
        assert caplog.text == ""


class TestRemoveEvent:
    def test_remove_returns_the_event(self):
        event = _event()
        assert remove_event(_match(), event.id, [event]) is event

    def test_unknown_event(self):
        with pytest.raises(InvalidEventError):
            remove_event(_match(), 99999, [_event()])

    def test_locked_after_full_confirmation(self):
        event = _event()
        match = _match(status="completed", home_confirmed=True, away_confirmed=True)
        with pytest.raises(InvalidEventError):
            remove_event(match, event.id, [event])


def test_timeline_orders_by_half_minute_added_time():
    late = _event(half=2, minute=90, added_time=3)
    stoppage = _event(half=1, minute=45, added_time=2)
    early = _event(half=2, minute=50)
    first_half = _event(half=1, minute=45)
    assert timeline([late, stoppage, early, first_half]) == [first_half, stoppage, early, late]


def test_tally_counts_own_goals_for_the_opponent():
    events = [
        _event(event_type="goal", team_id=10),
        _event(event_type="own-goal", team_id=10),
        _event(event_type="penalty-goal", team_id=20),
        _event(event_type="penalty-goal", team_id=10, half=5),
        _event(event_type="penalty-missed", team_id=20, half=5),
    ]
    tally = tally_score(_match(), events)
    assert (tally.home, tally.away) == (1, 2)
    assert (tally.home_penalties, tally.away_penalties) == (1, 0)


class TestPlayerStatistics:
    def test_totals_per_player(self):
        events = [
            _event(event_type="goal", player_id=1),
            _event(event_type="goal", player_id=1, match_id=2),
            _event(event_type="penalty-goal", player_id=1),
            _event(event_type="penalty-goal", player_id=1, half=5),
            _event(event_type="assist", player_id=2, secondary_player_id=1),
            _event(event_type="yellow-card", player_id=3),
            _event(event_type="second-yellow", player_id=3),
        ]
        stats = player_statistics(events)
        assert stats[1].goals == 3
        assert stats[1].penalties_scored == 2
        assert stats[1].matches == 2
        assert stats[2].assists == 1
        assert stats[3].yellow_cards == 1
        assert stats[3].red_cards == 1

    def test_rank_by_statistic(self):
        events = [_event(player_id=1), _event(player_id=2), _event(player_id=2), _event(event_type="injury", player_id=3)]
        ranked = rank_players(player_statistics(events), stat="goals")
        assert [s.player_id for s in ranked] == [2, 1]
        assert [s.player_id for s in rank_players(player_statistics(events), limit=1)] == [2]

    def test_unknown_statistic(self):
        with pytest.raises(ValueError):
            rank_players({}, stat="dribbles")
