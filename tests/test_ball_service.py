"""
Tests for the ball ingestion service against an in-memory database.
"""
import threading

import pytest
from sqlalchemy.exc import SQLAlchemyError

from scorebook.engine.ball_service import BallService
from scorebook.engine.errors import BallValidationError, NotFoundError, PersistenceError
from scorebook.models import Ball, Innings, Match, MatchStatus, PlayerMatchSummaryRecord
from tests.conftest import AWAY_TEAM_ID, HOME_TEAM_ID, seed_match


def raw_ball(runs=0, striker=1, non_striker=2, bowler=12, **fields) -> dict:
    data = {"striker_id": striker, "non_striker_id": non_striker, "bowler_id": bowler, "runs_off_bat": runs}
    data.update(fields)
    return data


@pytest.fixture
def service(session, locks):
    return BallService(session, locks=locks)


@pytest.fixture
def innings(service, match):
    return service.start_innings(match.id, HOME_TEAM_ID, striker_id=1, non_striker_id=2, bowler_id=12)


def stored_sequences(session, innings_id) -> list[int]:
    return [b.sequence for b in session.query(Ball).filter_by(innings_id=innings_id).order_by(Ball.sequence)]


class TestStartInnings:
    def test_first_innings(self, service, match, innings):
        assert innings.innings_number == 1
        assert innings.bowling_team_id == AWAY_TEAM_ID
        assert innings.target is None
        assert match.status == MatchStatus.LIVE

    def test_snapshot_reports_openers_before_first_ball(self, service, match, innings):
        snapshot = service.get_snapshot(match.id, 1)
        assert snapshot["current_striker_id"] == 1
        assert snapshot["current_non_striker_id"] == 2
        assert snapshot["current_bowler_id"] == 12

    def test_second_innings_target_from_first(self, service, match, innings):
        service.append_ball(match.id, 1, raw_ball(runs=4))
        service.append_ball(match.id, 1, raw_ball(runs=6))
        second = service.start_innings(match.id, AWAY_TEAM_ID)
        assert second.innings_number == 2
        assert second.target == 11

    def test_same_team_cannot_bat_twice(self, service, match, innings):
        with pytest.raises(BallValidationError):
            service.start_innings(match.id, HOME_TEAM_ID)

    def test_unknown_match(self, service, teams):
        with pytest.raises(NotFoundError):
            service.start_innings(999, HOME_TEAM_ID)


class TestAppend:
    def test_sequences_assigned_in_order(self, service, session, match, innings):
        results = [service.append_ball(match.id, 1, raw_ball()) for _ in range(3)]
        assert [r.sequence for r in results] == [1, 2, 3]
        assert stored_sequences(session, innings.id) == [1, 2, 3]

    def test_snapshot_stored_and_score_mirrored(self, service, session, match, innings):
        result = service.append_ball(match.id, 1, raw_ball(runs=4))
        assert result.snapshot.total_runs == 4
        stored = session.get(Innings, innings.id)
        assert stored.total_runs == 4
        assert stored.legal_balls == 1
        assert stored.overs_display == "0.1"
        assert stored.snapshot.data["total_runs"] == 4
        assert stored.snapshot.ball_count == 1

    def test_roster_names_in_snapshot(self, service, match, innings):
        result = service.append_ball(match.id, 1, raw_ball(runs=1))
        assert result.snapshot.batter(1).name == "Hawk 1"
        assert result.snapshot.bowler(12).name == "Viper 12"

    def test_sixth_legal_ball_signals_bowler_change(self, service, match, innings):
        for _ in range(5):
            assert not service.append_ball(match.id, 1, raw_ball()).over_complete
        result = service.append_ball(match.id, 1, raw_ball())
        assert result.over_complete
        assert result.bowler_must_change
        assert result.snapshot.current_bowler_id is None

    def test_invalid_ball_writes_nothing(self, service, session, match, innings):
        with pytest.raises(BallValidationError) as exc:
            service.append_ball(match.id, 1, raw_ball(extraType="wide", wicketType="bowled"))
        assert "Wide cannot be a wicket (except run-out)" in exc.value.errors
        assert stored_sequences(session, innings.id) == []

    def test_unknown_innings(self, service, match, innings):
        with pytest.raises(NotFoundError):
            service.append_ball(match.id, 2, raw_ball())

    def test_bowler_dismissal_on_free_hit_rejected(self, service, match, innings):
        service.append_ball(match.id, 1, raw_ball(extraType="no-ball"))
        with pytest.raises(BallValidationError):
            service.append_ball(match.id, 1, raw_ball(wicketType="bowled"))

    def test_run_out_on_free_hit_accepted(self, service, match, innings):
        service.append_ball(match.id, 1, raw_ball(extraType="no-ball"))
        result = service.append_ball(match.id, 1, raw_ball(runs=1, wicket={"kind": "run-out", "dismissed_player_id": 2}))
        assert result.snapshot.total_wickets == 1

    def test_complete_innings_rejects_more_balls(self, service, session, teams):
        short = seed_match(session, overs_limit=1)
        service.start_innings(short.id, HOME_TEAM_ID)
        for _ in range(6):
            service.append_ball(short.id, 1, raw_ball())
        assert short.status == MatchStatus.INNINGS_BREAK
        with pytest.raises(BallValidationError):
            service.append_ball(short.id, 1, raw_ball())

    def test_abandoned_match_rejects_balls(self, service, session, match, innings):
        match.status = MatchStatus.ABANDONED
        session.commit()
        with pytest.raises(BallValidationError):
            service.append_ball(match.id, 1, raw_ball())

    def test_injected_lock_registry_is_used(self, session, locks):
        assert BallService(session, locks=locks).locks is locks

    def test_append_holds_innings_lock(self, service, locks, match, innings):
        service.append_ball(match.id, 1, raw_ball())
        assert len(locks) == 1
        assert not locks.lock_for(match.id, 1).locked()


class TestCorrections:
    def test_undo_removes_last_ball(self, service, session, match, innings):
        service.append_ball(match.id, 1, raw_ball(runs=4))
        service.append_ball(match.id, 1, raw_ball(runs=6))
        snapshot = service.undo_last_ball(match.id, 1)
        assert snapshot.total_runs == 4
        assert stored_sequences(session, innings.id) == [1]
        assert session.get(Innings, innings.id).total_runs == 4

    def test_undo_then_append_reuses_sequence(self, service, match, innings):
        service.append_ball(match.id, 1, raw_ball())
        service.append_ball(match.id, 1, raw_ball())
        service.undo_last_ball(match.id, 1)
        assert service.append_ball(match.id, 1, raw_ball()).sequence == 2

    def test_undo_empty_innings(self, service, match, innings):
        with pytest.raises(NotFoundError):
            service.undo_last_ball(match.id, 1)

    def test_edit_rewrites_in_place(self, service, session, match, innings):
        service.append_ball(match.id, 1, raw_ball(runs=4))
        service.append_ball(match.id, 1, raw_ball(runs=1))
        snapshot = service.edit_ball(match.id, 1, 1, raw_ball(runs=6))
        assert snapshot.total_runs == 7
        assert snapshot.batter(1).sixes == 1
        assert snapshot.batter(1).fours == 0
        assert stored_sequences(session, innings.id) == [1, 2]

    def test_no_op_edit_leaves_snapshot_unchanged(self, service, match, innings):
        service.append_ball(match.id, 1, raw_ball(runs=4))
        before = service.append_ball(match.id, 1, raw_ball(runs=2)).snapshot.to_dict()
        after = service.edit_ball(match.id, 1, 1, raw_ball(runs=4)).to_dict()
        assert after == before

    def test_edit_validates(self, service, match, innings):
        service.append_ball(match.id, 1, raw_ball())
        with pytest.raises(BallValidationError):
            service.edit_ball(match.id, 1, 1, raw_ball(runs=-2))

    def test_edit_unknown_sequence(self, service, match, innings):
        with pytest.raises(NotFoundError):
            service.edit_ball(match.id, 1, 5, raw_ball())

    def test_delete_renumbers_tail(self, service, session, match, innings):
        for runs in (1, 2, 3):
            service.append_ball(match.id, 1, raw_ball(runs=runs))
        snapshot = service.delete_ball(match.id, 1, 2)
        assert snapshot.total_runs == 4
        assert stored_sequences(session, innings.id) == [1, 2]
        assert service.events(match.id, 1)[1].runs_off_bat == 3

    def test_recompute_rebuilds_snapshot(self, service, session, match, innings):
        service.append_ball(match.id, 1, raw_ball(runs=4))
        record = session.get(Innings, innings.id).snapshot
        record.data = {"total_runs": 999}
        session.commit()
        snapshot = service.recompute(match.id, 1)
        assert snapshot.total_runs == 4
        assert session.get(Innings, innings.id).snapshot.data["total_runs"] == 4


class TestFreeHitCorrections:
    def test_edit_to_bowled_on_free_hit_rejected(self, service, session, match, innings):
        service.append_ball(match.id, 1, raw_ball(extraType="no-ball"))
        service.append_ball(match.id, 1, raw_ball())
        with pytest.raises(BallValidationError):
            service.edit_ball(match.id, 1, 2, raw_ball(wicketType="bowled"))
        assert service.events(match.id, 1)[1].wicket is None

    def test_edit_to_no_ball_before_a_bowled_rejected(self, service, session, match, innings):
        service.append_ball(match.id, 1, raw_ball())
        service.append_ball(match.id, 1, raw_ball(wicketType="bowled"))
        with pytest.raises(BallValidationError):
            service.edit_ball(match.id, 1, 1, raw_ball(extraType="no-ball"))
        assert service.events(match.id, 1)[0].is_legal
        assert session.get(Innings, innings.id).wickets == 1

    def test_edit_run_out_on_free_hit_accepted(self, service, match, innings):
        service.append_ball(match.id, 1, raw_ball(extraType="no-ball"))
        service.append_ball(match.id, 1, raw_ball())
        snapshot = service.edit_ball(match.id, 1, 2, raw_ball(runs=1, wicket={"kind": "run-out", "dismissed_player_id": 2}))
        assert snapshot.total_wickets == 1

    def test_delete_that_leaves_bowled_on_free_hit_rejected(self, service, session, match, innings):
        service.append_ball(match.id, 1, raw_ball(extraType="no-ball"))
        service.append_ball(match.id, 1, raw_ball())
        service.append_ball(match.id, 1, raw_ball(wicketType="bowled"))
        with pytest.raises(BallValidationError):
            service.delete_ball(match.id, 1, 2)
        assert stored_sequences(session, innings.id) == [1, 2, 3]


class TestCrease:
    def test_override_until_next_ball(self, service, session, match, innings):
        service.append_ball(match.id, 1, raw_ball(wicketType="bowled"))
        snapshot = service.set_crease(match.id, 1, striker_id=3, non_striker_id=2, bowler_id=12)
        assert snapshot.current_striker_id == 3
        assert session.get(Innings, innings.id).snapshot.data["current_striker_id"] == 3

        service.append_ball(match.id, 1, raw_ball(striker=3))
        assert session.get(Innings, innings.id).current_striker_id is None

    def test_bowler_for_next_over_is_kept(self, service, match, innings):
        for _ in range(6):
            service.append_ball(match.id, 1, raw_ball())
        snapshot = service.set_crease(match.id, 1, bowler_id=13)
        assert snapshot.current_bowler_id == 13
        assert snapshot.over_complete
        assert not snapshot.bowler_must_change

    def test_only_passed_ids_change(self, service, session, match, innings):
        service.set_crease(match.id, 1, bowler_id=13)
        stored = session.get(Innings, innings.id)
        assert (stored.current_striker_id, stored.current_non_striker_id, stored.current_bowler_id) == (1, 2, 13)

    def test_new_striker_cannot_match_kept_non_striker(self, service, match, innings):
        with pytest.raises(BallValidationError):
            service.set_crease(match.id, 1, striker_id=2)

    def test_same_batter_at_both_ends(self, service, match, innings):
        with pytest.raises(BallValidationError):
            service.set_crease(match.id, 1, striker_id=4, non_striker_id=4)


class TestFailures:
    def test_persistence_failure_keeps_last_good_snapshot(self, service, session, match, innings, monkeypatch):
        service.append_ball(match.id, 1, raw_ball(runs=4))

        def failing_commit():
            raise SQLAlchemyError("database is locked")

        monkeypatch.setattr(session, "commit", failing_commit)
        with pytest.raises(PersistenceError):
            service.append_ball(match.id, 1, raw_ball(runs=6))
        monkeypatch.undo()

        stored = session.get(Innings, innings.id)
        assert stored.snapshot.data["total_runs"] == 4
        assert stored.total_runs == 4
        assert stored_sequences(session, innings.id) == [1]

    def test_lock_released_after_failure(self, service, locks, match, innings):
        with pytest.raises(BallValidationError):
            service.append_ball(match.id, 1, raw_ball(non_striker=1))
        with pytest.raises(NotFoundError):
            service.undo_last_ball(match.id, 1)
        assert not locks.lock_for(match.id, 1).locked()


class TestFinalize:
    def _play(self, service, match):
        """Home make 11 off one over, away chase it in two balls"""
        service.start_innings(match.id, HOME_TEAM_ID)
        for runs in (4, 0, 6, 1, 0, 0):
            service.append_ball(match.id, 1, raw_ball(runs=runs))
        service.start_innings(match.id, AWAY_TEAM_ID)
        for runs in (6, 6):
            service.append_ball(match.id, 2, raw_ball(runs=runs, striker=12, non_striker=13, bowler=11))

    def test_result_and_summaries(self, service, session, teams):
        match = seed_match(session, overs_limit=1)
        self._play(service, match)
        summaries = service.finalize_match(match.id)

        assert match.status == MatchStatus.FINISHED
        assert match.winner_id == AWAY_TEAM_ID
        assert match.result_summary == "Valley Vipers won by 10 wickets"
        assert len(summaries) == 22
        assert session.query(PlayerMatchSummaryRecord).filter_by(match_id=match.id).count() == 22

        by_player = {s.player_id: s for s in summaries}
        assert by_player[1].batting.runs == 11
        assert by_player[1].result == "lost"
        assert by_player[12].batting.sixes == 2
        assert by_player[12].bowling.runs_conceded == 11
        assert by_player[12].result == "won"
        assert by_player[5].batting is None

    def test_finalize_twice_replaces_summaries(self, service, session, teams):
        match = seed_match(session, overs_limit=1)
        self._play(service, match)
        service.finalize_match(match.id)
        service.finalize_match(match.id)
        assert session.query(PlayerMatchSummaryRecord).filter_by(match_id=match.id).count() == 22

    def test_stored_summaries_round_trip(self, service, session, teams):
        match = seed_match(session, overs_limit=1)
        self._play(service, match)
        service.finalize_match(match.id)
        stored = PlayerMatchSummaryRecord.summaries_for_player(session, 1)
        assert len(stored) == 1
        assert stored[0].batting.runs == 11
        assert stored[0].batting.not_out is True
        assert stored[0].batting.end.overs_complete
        assert stored[0].year == 2024

    def test_tie(self, service, session, teams):
        match = seed_match(session, overs_limit=1)
        service.start_innings(match.id, HOME_TEAM_ID)
        service.append_ball(match.id, 1, raw_ball(runs=4))
        service.start_innings(match.id, AWAY_TEAM_ID)
        service.append_ball(match.id, 2, raw_ball(runs=4, striker=12, non_striker=13, bowler=11))
        innings = service.get_innings(match.id, 2)
        innings.is_closed = True
        session.commit()
        service.finalize_match(match.id)
        assert match.is_tie
        assert match.result_summary == "Match tied"

    def test_waits_for_innings_writer(self, service, session, locks, teams):
        match = seed_match(session, overs_limit=1)
        self._play(service, match)
        match_id = match.id
        finished = []
        worker = threading.Thread(target=lambda: finished.append(service.finalize_match(match_id)))

        lock = locks.lock_for(match_id, 1)
        lock.acquire()
        try:
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
            assert finished == []
        finally:
            lock.release()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert len(finished[0]) == 22
        assert not locks.lock_for(match_id, 2).locked()

    def test_failure_rolls_back_everything(self, service, session, locks, teams, monkeypatch):
        match = seed_match(session, overs_limit=1)
        self._play(service, match)

        def broken_summaries(**kwargs):
            raise ValueError("lineup missing")

        monkeypatch.setattr("scorebook.engine.ball_service.build_match_summaries", broken_summaries)
        with pytest.raises(ValueError):
            service.finalize_match(match.id)

        stored = session.get(Match, match.id)
        assert stored.status == MatchStatus.LIVE
        assert stored.winner_id is None
        assert session.query(PlayerMatchSummaryRecord).filter_by(match_id=match.id).count() == 0
        assert not locks.lock_for(match.id, 1).locked()
        assert not locks.lock_for(match.id, 2).locked()
