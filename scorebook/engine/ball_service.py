"""
Ball Ingestion Service - the single writer path into an innings.

Every append / undo / edit / delete runs under the innings lock and inside
one transaction: validate, write the event log, replay the whole innings,
overwrite the snapshot, mirror the score onto the innings row, commit. If any
step fails the transaction is rolled back, so the stored snapshot is always
the one produced by the last successful write.
"""
import logging
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scorebook.engine.errors import BallValidationError, NotFoundError, PersistenceError
from scorebook.engine.events import BallEvent
from scorebook.engine.innings import InningsSnapshot, MatchContext, recompute
from scorebook.engine.locks import InningsLockRegistry, innings_locks
from scorebook.engine.summaries import PlayerMatchSummary, build_match_summaries
from scorebook.models.lineup import MatchLineup
from scorebook.models.match import Ball, Innings, Match, MatchStatus
from scorebook.models.player import Player, Team
from scorebook.models.snapshot import InningsSnapshotRecord
from scorebook.models.summary import PlayerMatchSummaryRecord
from scorebook.validators.ball_event_validator import BallEventValidator

logger = logging.getLogger(__name__)

# Scoring is only accepted while a match is in one of these states
_SCORING_STATUSES = (MatchStatus.UPCOMING, MatchStatus.LIVE, MatchStatus.INNINGS_BREAK)


@dataclass
class AppendResult:
    """Outcome of recording one delivery"""
    sequence: int
    snapshot: InningsSnapshot
    over_complete: bool
    bowler_must_change: bool

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "over_complete": self.over_complete,
            "bowler_must_change": self.bowler_must_change,
            "snapshot": self.snapshot.to_dict(),
        }


class BallService:
    """
    Records deliveries for a match and keeps its innings snapshots current.
    """

    def __init__(self, session: Session, locks: Optional[InningsLockRegistry] = None):
        self.session = session
        self.locks = locks if locks is not None else innings_locks

    # ---- lookups -------------------------------------------------------

    def get_match(self, match_id: int) -> Match:
        match = self.session.get(Match, match_id)
        if not match:
            raise NotFoundError(f"Match {match_id} not found")
        return match

    def get_innings(self, match_id: int, innings_number: int) -> Innings:
        innings = self.session.query(Innings).filter_by(
            match_id=match_id,
            innings_number=innings_number,
        ).first()
        if not innings:
            raise NotFoundError(f"Innings {innings_number} of match {match_id} not found")
        return innings

    def _balls(self, innings: Innings) -> list[Ball]:
        return self.session.query(Ball).filter_by(
            innings_id=innings.id
        ).order_by(Ball.sequence).all()

    def _get_ball(self, innings: Innings, sequence: int) -> Ball:
        ball = self.session.query(Ball).filter_by(innings_id=innings.id, sequence=sequence).first()
        if not ball:
            raise NotFoundError(f"Ball {sequence} of innings {innings.innings_number} not found")
        return ball

    def _next_sequence(self, innings: Innings) -> int:
        current = self.session.query(func.max(Ball.sequence)).filter(
            Ball.innings_id == innings.id
        ).scalar()
        return (current or 0) + 1

    def events(self, match_id: int, innings_number: int) -> list[BallEvent]:
        innings = self.get_innings(match_id, innings_number)
        return [ball.to_event() for ball in self._balls(innings)]

    @staticmethod
    def context_for(match: Match, innings: Innings) -> MatchContext:
        return MatchContext(
            innings_number=innings.innings_number,
            target=innings.target,
            overs_limit=match.overs_limit,
            abandoned=match.status == MatchStatus.ABANDONED,
            innings_closed=innings.is_closed,
            current_striker_id=innings.current_striker_id,
            current_non_striker_id=innings.current_non_striker_id,
            current_bowler_id=innings.current_bowler_id,
        )

    def roster_for(self, match: Match, events: list[BallEvent]) -> dict[int, str]:
        """Names for everyone in the lineups plus anyone named in the events"""
        player_ids = {entry.player_id for entry in match.lineups}
        for event in events:
            player_ids.update({event.striker_id, event.bowler_id})
            if event.non_striker_id is not None:
                player_ids.add(event.non_striker_id)
            if event.wicket is not None and event.wicket.fielder_id is not None:
                player_ids.add(event.wicket.fielder_id)
        if not player_ids:
            return {}
        players = self.session.query(Player).filter(Player.id.in_(player_ids)).all()
        return {p.id: p.name for p in players}

    # ---- replay --------------------------------------------------------

    def _replay(self, match: Match, innings: Innings) -> InningsSnapshot:
        events = [ball.to_event() for ball in self._balls(innings)]
        return recompute(events, self.context_for(match, innings), self.roster_for(match, events))

    def _store(self, match: Match, innings: Innings, snapshot: InningsSnapshot) -> None:
        """Overwrite the snapshot and mirror the score onto the innings row"""
        record = innings.snapshot
        if record is None:
            record = InningsSnapshotRecord(innings_id=innings.id)
            innings.snapshot = record
        record.data = snapshot.to_dict()
        record.ball_count = snapshot.ball_count
        record.updated_at = datetime.utcnow()

        innings.total_runs = snapshot.total_runs
        innings.wickets = snapshot.total_wickets
        innings.legal_balls = snapshot.legal_balls

        if snapshot.innings_complete and innings.innings_number == 1 and match.status == MatchStatus.LIVE:
            match.status = MatchStatus.INNINGS_BREAK
            logger.info("Match %s: first innings closed at %s (%s)", match.id, snapshot.score, snapshot.end_reason)

    def _commit(self, action: str, match_id: int, innings_number: int) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Failed to %s for match %s innings %s", action, match_id, innings_number)
            raise PersistenceError(f"Could not {action}: {exc}") from exc

    @contextmanager
    def _holding(self, match_id: int, innings_numbers: Iterable[int]):
        """Take several innings locks, always in ascending innings order"""
        with ExitStack() as stack:
            for number in sorted(set(innings_numbers)):
                stack.enter_context(self.locks.hold(match_id, number))
            yield

    def _write(self, action: str, match_id: int, innings_number, operation, hold: Optional[list[int]] = None):
        """
        Run one write operation under the innings lock, rolled back on any
        failure. hold lists the innings to lock when it is not just innings_number.
        """
        with self._holding(match_id, hold if hold is not None else [innings_number]):
            # Rows loaded before the lock may predate another writer's commit
            self.session.expire_all()
            try:
                result = operation()
                self.session.flush()
            except SQLAlchemyError as exc:
                self.session.rollback()
                logger.exception("Failed to %s for match %s innings %s", action, match_id, innings_number)
                raise PersistenceError(f"Could not {action}: {exc}") from exc
            except Exception:
                self.session.rollback()
                raise
            self._commit(action, match_id, innings_number)
            return result

    def _check_free_hits(self, match: Match, innings: Innings, events: list[BallEvent], positions: Iterable[int]) -> None:
        """Reject a bowler-credited dismissal that a correction has left on a free hit"""
        context = self.context_for(match, innings)
        errors = []
        for index in positions:
            if not 0 <= index < len(events):
                continue
            event = events[index]
            if event.wicket is None or not event.wicket.kind.credited_to_bowler:
                continue
            if recompute(events[:index], context).next_ball_free_hit:
                errors.append(f"Ball {event.sequence}: batter cannot be out {event.wicket.kind.value} on a free hit")
        if errors:
            raise BallValidationError(errors)

    @staticmethod
    def _validated(raw: Any, match_id: int, innings_number: int) -> BallEvent:
        result = BallEventValidator.validate(raw)
        if not result["ok"]:
            logger.warning(
                "Rejected delivery for match %s innings %s: %s",
                match_id, innings_number, "; ".join(result["errors"]),
            )
            raise BallValidationError(result["errors"])
        return result["normalized"]

    # ---- writes --------------------------------------------------------

    def append_ball(self, match_id: int, innings_number: int, raw: dict) -> AppendResult:
        """Validate, store and replay one new delivery"""
        event = self._validated(raw, match_id, innings_number)

        def operation() -> AppendResult:
            match = self.get_match(match_id)
            innings = self.get_innings(match_id, innings_number)
            if match.status not in _SCORING_STATUSES:
                raise BallValidationError([f"Match is {match.status.value}; no more deliveries can be recorded"])

            before = self._replay(match, innings)
            if before.innings_complete:
                raise BallValidationError([f"Innings is complete ({before.end_reason})"])
            if before.next_ball_free_hit and event.wicket is not None and event.wicket.kind.credited_to_bowler:
                raise BallValidationError([f"Batter cannot be out {event.wicket.kind.value} on a free hit"])

            sequence = self._next_sequence(innings)
            self.session.add(Ball.from_event(innings.id, sequence, event.with_sequence(sequence)))
            self.session.flush()

            # The delivery itself now says who is at the crease
            innings.current_striker_id = None
            innings.current_non_striker_id = None
            innings.current_bowler_id = None
            if match.status in (MatchStatus.UPCOMING, MatchStatus.INNINGS_BREAK):
                match.status = MatchStatus.LIVE

            snapshot = self._replay(match, innings)
            self._store(match, innings, snapshot)
            return AppendResult(
                sequence=sequence,
                snapshot=snapshot,
                over_complete=snapshot.over_complete,
                bowler_must_change=snapshot.bowler_must_change,
            )

        result = self._write("record delivery", match_id, innings_number, operation)
        logger.info(
            "Match %s innings %s: ball %s recorded, %s (%s ov)",
            match_id, innings_number, result.sequence, result.snapshot.score, result.snapshot.overs,
        )
        if result.over_complete:
            logger.info(
                "Match %s innings %s: over %s complete, bowler %s must change",
                match_id, innings_number, result.snapshot.overs, result.snapshot.last_over_bowler_id,
            )
        return result

    def undo_last_ball(self, match_id: int, innings_number: int) -> InningsSnapshot:
        """Remove the most recent delivery"""
        def operation() -> InningsSnapshot:
            match = self.get_match(match_id)
            innings = self.get_innings(match_id, innings_number)
            last = self.session.query(Ball).filter_by(
                innings_id=innings.id
            ).order_by(Ball.sequence.desc()).first()
            if not last:
                raise NotFoundError(f"Innings {innings_number} of match {match_id} has no deliveries to undo")
            logger.info("Match %s innings %s: undoing ball %s", match_id, innings_number, last.sequence)
            self.session.delete(last)
            self.session.flush()

            snapshot = self._replay(match, innings)
            self._store(match, innings, snapshot)
            return snapshot

        return self._write("undo delivery", match_id, innings_number, operation)

    def edit_ball(self, match_id: int, innings_number: int, sequence: int, raw: dict) -> InningsSnapshot:
        """Rewrite one delivery in place, keeping its sequence"""
        event = self._validated(raw, match_id, innings_number)

        def operation() -> InningsSnapshot:
            match = self.get_match(match_id)
            innings = self.get_innings(match_id, innings_number)
            ball = self._get_ball(innings, sequence)
            ball.apply_event(event.with_sequence(sequence))
            self.session.flush()
            # The edited ball and the one after it may now sit on a free hit
            self._check_free_hits(match, innings, [b.to_event() for b in self._balls(innings)], (sequence - 1, sequence))

            snapshot = self._replay(match, innings)
            self._store(match, innings, snapshot)
            return snapshot

        snapshot = self._write("edit delivery", match_id, innings_number, operation)
        logger.info("Match %s innings %s: ball %s edited, now %s", match_id, innings_number, sequence, snapshot.score)
        return snapshot

    def delete_ball(self, match_id: int, innings_number: int, sequence: int) -> InningsSnapshot:
        """Remove one delivery and close the gap in the sequence"""
        def operation() -> InningsSnapshot:
            match = self.get_match(match_id)
            innings = self.get_innings(match_id, innings_number)
            ball = self._get_ball(innings, sequence)
            self.session.delete(ball)
            self.session.flush()

            # Renumber one row at a time, lowest first, so the unique constraint holds
            for later in self.session.query(Ball).filter(
                Ball.innings_id == innings.id,
                Ball.sequence > sequence,
            ).order_by(Ball.sequence).all():
                later.sequence -= 1
                self.session.flush()
            self._check_free_hits(match, innings, [b.to_event() for b in self._balls(innings)], (sequence - 1,))

            snapshot = self._replay(match, innings)
            self._store(match, innings, snapshot)
            return snapshot

        snapshot = self._write("delete delivery", match_id, innings_number, operation)
        logger.info("Match %s innings %s: ball %s deleted, now %s", match_id, innings_number, sequence, snapshot.score)
        return snapshot

    def recompute(self, match_id: int, innings_number: int) -> InningsSnapshot:
        """Replay the stored events and overwrite the snapshot"""
        def operation() -> InningsSnapshot:
            match = self.get_match(match_id)
            innings = self.get_innings(match_id, innings_number)
            snapshot = self._replay(match, innings)
            self._store(match, innings, snapshot)
            return snapshot

        snapshot = self._write("recompute innings", match_id, innings_number, operation)
        logger.info("Match %s innings %s recomputed: %s", match_id, innings_number, snapshot.score)
        return snapshot

    def set_crease(
        self,
        match_id: int,
        innings_number: int,
        striker_id: Optional[int] = None,
        non_striker_id: Optional[int] = None,
        bowler_id: Optional[int] = None,
    ) -> InningsSnapshot:
        """
        Scorer override for the batters at the crease and the bowler (new
        batter, change of bowler). Only the ids passed are changed.
        """
        def operation() -> InningsSnapshot:
            match = self.get_match(match_id)
            innings = self.get_innings(match_id, innings_number)
            striker = striker_id if striker_id is not None else innings.current_striker_id
            non_striker = non_striker_id if non_striker_id is not None else innings.current_non_striker_id
            if striker is not None and striker == non_striker:
                raise BallValidationError(["Striker and non-striker must be different players"])
            if striker_id is not None:
                innings.current_striker_id = striker_id
            if non_striker_id is not None:
                innings.current_non_striker_id = non_striker_id
            if bowler_id is not None:
                innings.current_bowler_id = bowler_id

            snapshot = self._replay(match, innings)
            self._store(match, innings, snapshot)
            return snapshot

        return self._write("update crease", match_id, innings_number, operation)

    def start_innings(
        self,
        match_id: int,
        batting_team_id: int,
        target: Optional[int] = None,
        striker_id: Optional[int] = None,
        non_striker_id: Optional[int] = None,
        bowler_id: Optional[int] = None,
    ) -> Innings:
        """
        Open the next innings of a match. The second innings' target defaults
        to the first innings total plus one.
        """
        match = self.get_match(match_id)
        if batting_team_id not in (match.team1_id, match.team2_id):
            raise BallValidationError([f"Team {batting_team_id} is not playing match {match_id}"])

        previous = self.session.query(Innings).filter_by(match_id=match_id).order_by(
            Innings.innings_number.desc()
        ).first()
        innings_number = previous.innings_number + 1 if previous else 1
        if innings_number > 2:
            raise BallValidationError([f"Match {match_id} already has two innings"])
        if previous is not None and previous.batting_team_id == batting_team_id:
            raise BallValidationError([f"Team {batting_team_id} batted in the previous innings"])
        if target is None and previous is not None:
            target = previous.total_runs + 1

        bowling_team_id = match.team2_id if batting_team_id == match.team1_id else match.team1_id
        innings = Innings(
            match_id=match_id,
            innings_number=innings_number,
            batting_team_id=batting_team_id,
            bowling_team_id=bowling_team_id,
            target=target,
            current_striker_id=striker_id,
            current_non_striker_id=non_striker_id,
            current_bowler_id=bowler_id,
        )
        with self.locks.hold(match_id, innings_number):
            self.session.add(innings)
            if match.status in (MatchStatus.UPCOMING, MatchStatus.INNINGS_BREAK):
                match.status = MatchStatus.LIVE
            self._commit("start innings", match_id, innings_number)
        logger.info("Match %s: innings %s started, team %s batting, target %s",
                    match_id, innings_number, batting_team_id, target)
        return innings

    # ---- reads ---------------------------------------------------------

    def get_snapshot(self, match_id: int, innings_number: int) -> dict:
        """Latest stored snapshot. Readers take no lock."""
        match = self.get_match(match_id)
        innings = self.get_innings(match_id, innings_number)
        if innings.snapshot is not None:
            return innings.snapshot.data
        return self._replay(match, innings).to_dict()

    # ---- completion ----------------------------------------------------

    def _result(self, match: Match, snapshots: list[InningsSnapshot]) -> tuple[Optional[int], bool, Optional[str]]:
        """(winner team id, tied, result summary) from the innings snapshots"""
        if match.status == MatchStatus.ABANDONED or len(snapshots) < 2:
            return None, False, "No result" if match.status == MatchStatus.ABANDONED else None

        first, second = match.innings[0], match.innings[1]
        first_snap, second_snap = snapshots[0], snapshots[1]
        if second_snap.total_runs > first_snap.total_runs:
            winner = self.session.get(Team, second.batting_team_id)
            margin = 10 - second_snap.total_wickets
            return second.batting_team_id, False, f"{winner.name} won by {margin} wicket{'s' if margin != 1 else ''}"
        if second_snap.total_runs == first_snap.total_runs:
            return None, True, "Match tied"
        winner = self.session.get(Team, first.batting_team_id)
        margin = first_snap.total_runs - second_snap.total_runs
        return first.batting_team_id, False, f"{winner.name} won by {margin} run{'s' if margin != 1 else ''}"

    def finalize_match(self, match_id: int) -> list[PlayerMatchSummary]:
        """
        Close the match and (re)write one summary row per player from the
        innings snapshots. Safe to call again after a correction.
        """
        match = self.get_match(match_id)
        numbers = [innings.innings_number for innings in match.innings]

        def operation() -> tuple[list[PlayerMatchSummary], Optional[str]]:
            snapshots = []
            for innings in match.innings:
                snapshot = self._replay(match, innings)
                self._store(match, innings, snapshot)
                snapshots.append(snapshot)

            winner_id, tied, result_summary = self._result(match, snapshots)
            if match.status != MatchStatus.ABANDONED:
                match.status = MatchStatus.FINISHED
            match.winner_id = winner_id
            match.is_tie = tied
            match.result_summary = result_summary

            lineup = {
                entry.player_id: entry.team_id
                for entry in self.session.query(MatchLineup).filter_by(match_id=match_id).all()
            }
            summaries = build_match_summaries(
                match_id=match.id,
                snapshots=snapshots,
                lineup=lineup,
                status=match.status.value,
                match_date=match.match_date,
                winner_team_id=winner_id,
                tied=tied,
            )

            self.session.query(PlayerMatchSummaryRecord).filter_by(match_id=match_id).delete()
            for summary in summaries:
                self.session.add(PlayerMatchSummaryRecord.from_summary(summary, lineup.get(summary.player_id)))
            return summaries, result_summary

        label = ", ".join(map(str, numbers))
        summaries, result_summary = self._write("finalize match", match_id, label, operation, hold=numbers)

        logger.info("Match %s finalized: %s, %d player summaries", match_id, result_summary, len(summaries))
        return summaries
