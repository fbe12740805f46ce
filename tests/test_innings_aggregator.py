"""
Tests for the full-replay innings aggregator.

Batters 1 and 2 open against bowler 12; 13 is a second bowler and 14 a
fielder.
"""
import random

from scorebook.engine.events import BallEvent, Extras, Wicket, WicketKind
from scorebook.engine.innings import InningsAggregator, MatchContext, recompute

ROSTER = {
    1: "Opener A",
    2: "Opener B",
    3: "First Drop",
    12: "Quick",
    13: "Spinner",
    14: "Keeper",
}


def delivery(seq, runs=0, striker=1, non_striker=2, bowler=12, wides=0, no_balls=0,
             byes=0, leg_byes=0, penalty=0, wicket=None, free_hit=False) -> BallEvent:
    return BallEvent(
        sequence=seq,
        striker_id=striker,
        non_striker_id=non_striker,
        bowler_id=bowler,
        runs_off_bat=runs,
        extras=Extras(wides=wides, no_balls=no_balls, byes=byes, leg_byes=leg_byes, penalty=penalty),
        wicket=wicket,
        free_hit=free_hit,
    )


def bowled(player_id) -> Wicket:
    return Wicket(kind=WicketKind.BOWLED, dismissed_player_id=player_id, credited_to_bowler=True)


def dot_over(start_seq=1, bowler=12, striker=1, non_striker=2) -> list[BallEvent]:
    return [delivery(start_seq + i, bowler=bowler, striker=striker, non_striker=non_striker) for i in range(6)]


def replay(events, **context):
    return recompute(events, MatchContext(**context), ROSTER)


class TestSingleDeliveries:
    """The boundary, wide and no-ball scenarios."""

    def test_boundary(self):
        snap = replay([delivery(1, runs=4)])
        assert snap.total_runs == 4
        assert snap.legal_balls == 1
        assert snap.overs == "0.1"
        striker = snap.batter(1)
        assert (striker.runs, striker.balls, striker.fours) == (4, 1, 1)
        assert snap.bowler(12).runs_conceded == 4
        assert snap.bowler(12).balls_bowled == 1

    def test_wide(self):
        snap = replay([delivery(1, wides=1)])
        assert snap.total_runs == 1
        assert snap.legal_balls == 0
        assert snap.overs == "0.0"
        assert snap.batter(1).balls == 0
        bowler = snap.bowler(12)
        assert (bowler.runs_conceded, bowler.wides, bowler.balls_bowled) == (1, 1, 0)
        assert snap.extras["wides"] == 1

    def test_boundary_over(self):
        events = [delivery(i, runs=r) for i, r in enumerate((1, 0, 4, 0, 2, 6), start=1)]
        snap = replay(events)
        assert snap.total_runs == 13
        assert snap.overs == "1.0"
        assert snap.current_run_rate == 13.0
        assert snap.bowler(12).runs_conceded == 13
        assert (snap.batter(1).fours, snap.batter(1).sixes) == (1, 1)

    def test_wide_for_two(self):
        snap = replay([delivery(1, wides=2)])
        assert snap.total_runs == 2
        assert snap.legal_balls == 0
        assert snap.batter(1).balls == 0
        bowler = snap.bowler(12)
        assert (bowler.runs_conceded, bowler.wides, bowler.balls_bowled) == (2, 2, 0)

    def test_no_ball_hit_for_four(self):
        snap = replay([delivery(1, runs=4, no_balls=1)])
        assert snap.total_runs == 5
        assert snap.legal_balls == 0
        striker = snap.batter(1)
        assert (striker.runs, striker.balls, striker.fours) == (4, 1, 1)
        assert snap.bowler(12).runs_conceded == 5
        assert snap.bowler(12).no_balls == 1
        assert snap.next_ball_free_hit

    def test_byes_are_not_charged_to_bowler(self):
        snap = replay([delivery(1, byes=2), delivery(2, leg_byes=1)])
        assert snap.total_runs == 3
        assert snap.bowler(12).runs_conceded == 0
        assert snap.batter(1).runs == 0
        assert snap.batter(1).balls == 2

    def test_six_counts(self):
        snap = replay([delivery(1, runs=6)])
        assert snap.batter(1).sixes == 1
        assert snap.batter(1).fours == 0


class TestWickets:
    def test_wicket_resets_partnership(self):
        snap = replay([
            delivery(1, runs=1),
            delivery(2, striker=2, non_striker=1, wicket=bowled(2)),
        ])
        assert snap.total_wickets == 1
        assert (snap.partnership.runs, snap.partnership.balls) == (0, 0)
        fow = snap.fall_of_wickets[0]
        assert (fow.wicket, fow.score, fow.over, fow.player_id) == (1, 1, "0.2", 2)
        assert fow.dismissal == "b Quick"
        assert snap.bowler(12).wickets == 1
        assert snap.current_striker_id is None
        assert snap.current_non_striker_id == 1

    def test_run_out_not_credited_to_bowler(self):
        run_out = Wicket(kind=WicketKind.RUN_OUT, dismissed_player_id=2, credited_to_bowler=False, fielder_id=14)
        snap = replay([delivery(1, runs=1, wicket=run_out)])
        assert snap.total_wickets == 1
        assert snap.bowler(12).wickets == 0
        assert snap.batter(1).runs == 1
        out = snap.batter(2)
        assert out.dismissed
        assert out.dismissal == "run out (Keeper)"
        assert out.balls == 0

    def test_run_out_off_a_no_ball(self):
        run_out = Wicket(kind=WicketKind.RUN_OUT, dismissed_player_id=1, credited_to_bowler=False)
        snap = replay([delivery(1, no_balls=1, runs=1, wicket=run_out)])
        assert snap.total_wickets == 1
        assert snap.legal_balls == 0
        assert snap.bowler(12).wickets == 0

    def test_run_out_off_a_wide(self):
        run_out = Wicket(kind=WicketKind.RUN_OUT, dismissed_player_id=2, credited_to_bowler=False)
        snap = replay([delivery(1, wides=2, wicket=run_out)])
        assert snap.total_wickets == 1
        assert snap.total_runs == 2
        assert snap.legal_balls == 0
        assert snap.bowler(12).wickets == 0
        assert snap.batter(2).dismissed

    def test_dismissal_texts(self):
        aggregator = InningsAggregator(ROSTER)
        caught = delivery(1, wicket=Wicket(WicketKind.CAUGHT, 1, True, fielder_id=14))
        caught_by_bowler = delivery(1, wicket=Wicket(WicketKind.CAUGHT, 1, True, fielder_id=12))
        stumped = delivery(1, bowler=13, wicket=Wicket(WicketKind.STUMPED, 1, True, fielder_id=14))
        lbw = delivery(1, wicket=Wicket(WicketKind.LBW, 1, True))
        assert aggregator.dismissal_text(caught) == "c Keeper b Quick"
        assert aggregator.dismissal_text(caught_by_bowler) == "c & b Quick"
        assert aggregator.dismissal_text(stumped) == "st Keeper b Spinner"
        assert aggregator.dismissal_text(lbw) == "lbw b Quick"

    def test_catch_without_fielder(self):
        caught = delivery(1, wicket=Wicket(WicketKind.CAUGHT, 1, True))
        assert InningsAggregator(ROSTER).dismissal_text(caught) == "c ? b Quick"

    def test_retired_hurt_is_not_a_wicket(self):
        retired = Wicket(kind=WicketKind.RETIRED_HURT, dismissed_player_id=1, credited_to_bowler=False)
        snap = replay([delivery(1, runs=2), delivery(2, wicket=retired)])
        assert snap.total_wickets == 0
        assert snap.fall_of_wickets == []
        batter = snap.batter(1)
        assert batter.not_out is True
        assert not batter.dismissed
        assert batter.dismissal == "retired hurt"
        assert (snap.partnership.runs, snap.partnership.balls) == (0, 0)

    def test_all_out_caps_wickets(self):
        events = [
            delivery(i, striker=i, non_striker=11, wicket=bowled(i))
            for i in range(1, 12)
        ]
        snap = replay(events[:10])
        assert snap.total_wickets == 10
        assert snap.innings_complete
        assert snap.end_reason == "all_out"
        assert snap.batter(11).not_out is True

        over_the_limit = replay(events)
        assert over_the_limit.total_wickets == 10
        assert len(over_the_limit.fall_of_wickets) == 10


class TestOvers:
    def test_over_complete_requires_bowler_change(self):
        snap = replay(dot_over())
        assert snap.overs == "1.0"
        assert snap.over_complete
        assert snap.bowler_must_change
        assert snap.current_bowler_id is None
        assert snap.last_over_bowler_id == 12

    def test_extras_do_not_complete_an_over(self):
        snap = replay(dot_over()[:5] + [delivery(6, wides=1)])
        assert snap.overs == "0.5"
        assert not snap.over_complete
        assert snap.current_bowler_id == 12

    def test_maiden(self):
        snap = replay(dot_over())
        assert snap.bowler(12).maidens == 1

    def test_wide_spoils_maiden(self):
        snap = replay([delivery(1, wides=1)] + dot_over(start_seq=2))
        assert snap.bowler(12).maidens == 0

    def test_byes_do_not_spoil_maiden(self):
        events = dot_over()
        events[2] = delivery(3, byes=2)
        snap = replay(events)
        assert snap.bowler(12).maidens == 1
        assert snap.total_runs == 2

    def test_strike_changes_at_end_of_over(self):
        snap = replay(dot_over())
        assert snap.current_striker_id == 2
        assert snap.current_non_striker_id == 1

    def test_odd_runs_swap_strike(self):
        snap = replay([delivery(1, runs=1)])
        assert snap.current_striker_id == 2
        assert snap.current_non_striker_id == 1

    def test_odd_runs_on_last_ball_keep_strike(self):
        events = dot_over()
        events[5] = delivery(6, runs=1)
        snap = replay(events)
        assert snap.current_striker_id == 1

    def test_extras_stay_in_current_over(self):
        events = dot_over() + [delivery(7, wides=1, bowler=13, striker=2, non_striker=1)]
        snap = replay(events)
        assert [o.over_number for o in snap.recent_overs] == [1, 2]
        second = snap.recent_overs[1]
        assert second.legal_balls == 0
        assert second.balls[0].value == "wd"
        assert snap.recent_overs[0].is_locked
        assert [b.value for b in snap.current_over_balls] == ["wd"]

    def test_ball_badges(self):
        run_out = Wicket(kind=WicketKind.RUN_OUT, dismissed_player_id=2, credited_to_bowler=False)
        snap = replay([
            delivery(1, wides=3),
            delivery(2, no_balls=1, runs=2),
            delivery(3, leg_byes=2),
            delivery(4, byes=1),
            delivery(5, runs=3),
            delivery(6, runs=1, wicket=run_out),
        ])
        assert [b.value for b in snap.recent_overs[0].balls] == ["wd+2", "nb+2", "2lb", "1b", "3", "W"]

    def test_overs_progress_after_every_delivery(self):
        snap = replay([delivery(1, runs=4), delivery(2, wides=1), delivery(3, runs=1)])
        assert [p["runs"] for p in snap.overs_progress] == [4, 5, 6]
        assert [p["over"] for p in snap.overs_progress] == ["0.1", "0.1", "0.2"]


class TestFreeHit:
    def test_free_hit_follows_no_ball(self):
        assert replay([delivery(1, no_balls=1)]).next_ball_free_hit

    def test_free_hit_survives_wides(self):
        assert replay([delivery(1, no_balls=1), delivery(2, wides=1)]).next_ball_free_hit

    def test_free_hit_used_by_legal_ball(self):
        snap = replay([delivery(1, no_balls=1), delivery(2, wides=1), delivery(3, runs=2)])
        assert not snap.next_ball_free_hit


class TestContext:
    def test_second_innings_required_rate(self):
        events = [delivery(i, runs=1, striker=1 if i % 2 else 2, non_striker=2 if i % 2 else 1) for i in range(1, 7)]
        snap = replay(events, innings_number=2, target=20, overs_limit=2)
        assert snap.target == 20
        assert snap.remaining_runs == 14
        assert snap.remaining_balls == 6
        assert snap.required_run_rate == 14.0

    def test_first_innings_has_no_chase_fields(self):
        snap = replay([delivery(1, runs=2)], overs_limit=20)
        assert snap.target is None
        assert snap.remaining_runs is None
        assert snap.remaining_balls is None
        assert snap.required_run_rate is None

    def test_unknown_overs_limit_leaves_fields_null(self):
        snap = replay([delivery(1, runs=2)], innings_number=2, target=50)
        assert snap.remaining_runs == 48
        assert snap.remaining_balls is None
        assert snap.required_run_rate is None
        assert snap.projected_total is None

    def test_projection(self):
        snap = replay([delivery(i, runs=2) for i in range(1, 7)], overs_limit=20)
        assert snap.current_run_rate == 12.0
        assert snap.projected_total == 12 + 12 * 19

    def test_target_reached(self):
        snap = replay([delivery(1, runs=6)], innings_number=2, target=5, overs_limit=20)
        assert snap.innings_complete
        assert snap.end_reason == "target_reached"
        assert snap.required_run_rate == 0.0
        assert snap.remaining_runs == 0
        assert snap.batter(1).not_out is True
        assert snap.batter(2).not_out is True

    def test_overs_exhausted(self):
        snap = replay(dot_over(), overs_limit=1)
        assert snap.innings_complete
        assert snap.end_reason == "overs_exhausted"

    def test_closed_by_scorer(self):
        snap = replay([delivery(1)], innings_closed=True)
        assert snap.innings_complete
        assert snap.end_reason == "closed"

    def test_scorer_overrides_crease(self):
        snap = replay(dot_over(), current_striker_id=3, current_non_striker_id=2, current_bowler_id=13)
        assert snap.current_striker_id == 3
        assert snap.current_non_striker_id == 2
        assert snap.current_bowler_id == 13
        assert snap.over_complete
        assert snap.last_over_bowler_id == 12
        assert not snap.bowler_must_change

    def test_last_bowler_cannot_be_kept_for_next_over(self):
        snap = replay(dot_over(), current_bowler_id=12)
        assert snap.current_bowler_id is None
        assert snap.bowler_must_change

    def test_unknown_player_gets_placeholder(self):
        snap = replay([delivery(1, striker=99)])
        assert snap.batter(99).name == "Player #99"


class TestReplayProperties:
    def _innings(self):
        caught = Wicket(kind=WicketKind.CAUGHT, dismissed_player_id=2, credited_to_bowler=True, fielder_id=14)
        return [
            delivery(1, runs=4),
            delivery(2, wides=2),
            delivery(3, runs=1),
            delivery(4, striker=2, non_striker=1, leg_byes=1),
            delivery(5, no_balls=1, runs=2),
            delivery(6, byes=4),
            delivery(7, runs=6),
            delivery(8, penalty=5),
            delivery(9, striker=1, non_striker=2, runs=0),
            delivery(10, striker=2, non_striker=1, bowler=13, wicket=caught),
            delivery(11, striker=3, non_striker=1, bowler=13, runs=2),
        ]

    def test_deterministic(self):
        events = self._innings()
        assert replay(events).to_dict() == replay(events).to_dict()

    def test_order_of_input_does_not_matter(self):
        events = self._innings()
        shuffled = list(events)
        random.Random(7).shuffle(shuffled)
        assert replay(shuffled).to_dict() == replay(events).to_dict()

    def test_no_op_edit_is_idempotent(self):
        events = self._innings()
        edited = list(events)
        edited[4] = events[4].with_sequence(events[4].sequence)
        assert replay(edited).to_dict() == replay(events).to_dict()

    def test_total_is_sum_of_deliveries(self):
        events = self._innings()
        assert replay(events).total_runs == sum(e.total_runs for e in events)

    def test_ball_accounting(self):
        snap = replay(self._innings())
        charged = sum(b.runs_conceded for b in snap.bowlers)
        extras = snap.extras
        assert charged + extras["byes"] + extras["leg_byes"] + extras["penalty"] == snap.total_runs

    def test_overs_match_legal_balls(self):
        snap = replay(self._innings())
        legal = sum(1 for e in self._innings() if e.is_legal)
        assert snap.legal_balls == legal
        assert sum(b.balls_bowled for b in snap.bowlers) == legal

    def test_batting_order(self):
        snap = replay(self._innings())
        assert [b.player_id for b in snap.batters] == [1, 2, 3]

    def test_empty_innings(self):
        snap = replay([])
        assert snap.total_runs == 0
        assert snap.overs == "0.0"
        assert snap.last_ball_summary is None
        assert snap.current_run_rate == 0.0
