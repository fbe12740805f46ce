"""
Innings Aggregator - full replay of an innings' ball events.

Every call rebuilds the snapshot from the complete, ordered event list; no
state survives between calls. A corrected or removed historical ball can
change every aggregate after it, so replaying from scratch is the only way
the snapshot stays a pure function of the event log.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Optional, Union

from scorebook.engine import rules
from scorebook.engine.events import BallEvent, WicketKind
from scorebook.engine.not_out import InningsEnd, is_not_out

logger = logging.getLogger(__name__)

PlayerLookup = Union[Mapping[int, str], Callable[[int], Optional[str]]]


@dataclass(frozen=True)
class MatchContext:
    """Match configuration supplied on every recompute"""
    innings_number: int = 1
    target: Optional[int] = None
    overs_limit: Optional[int] = None
    abandoned: bool = False
    innings_closed: bool = False  # declared / closed by the scorer

    # Scorer overrides for who is at the crease / bowling
    current_striker_id: Optional[int] = None
    current_non_striker_id: Optional[int] = None
    current_bowler_id: Optional[int] = None

    @property
    def is_chase(self) -> bool:
        return self.innings_number >= 2 and self.target is not None

    @property
    def max_balls(self) -> Optional[int]:
        if self.overs_limit is None:
            return None
        return self.overs_limit * rules.BALLS_PER_OVER


@dataclass
class BatterStat:
    """A batter's innings"""
    player_id: int
    name: str
    position: int
    runs: int = 0
    balls: int = 0  # legal balls + no-balls, never wides
    fours: int = 0
    sixes: int = 0
    dismissal: str = ""
    wicket_kind: Optional[str] = None
    dismissed: bool = False
    not_out: Optional[bool] = None

    @property
    def strike_rate(self) -> float:
        return rules.strike_rate(self.runs, self.balls)

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "name": self.name,
            "position": self.position,
            "runs": self.runs,
            "balls": self.balls,
            "fours": self.fours,
            "sixes": self.sixes,
            "strike_rate": round(self.strike_rate, 2),
            "dismissal": self.dismissal or None,
            "wicket_kind": self.wicket_kind,
            "dismissed": self.dismissed,
            "not_out": bool(self.not_out),
        }


@dataclass
class BowlerStat:
    """A bowler's figures"""
    player_id: int
    name: str
    balls_bowled: int = 0  # legal deliveries only
    runs_conceded: int = 0  # bat runs + wides + no-balls
    wickets: int = 0
    maidens: int = 0
    wides: int = 0
    no_balls: int = 0
    block_runs: int = field(default=0, repr=False)  # runs in the current six-ball block

    @property
    def overs(self) -> str:
        return rules.overs_from_balls(self.balls_bowled)

    @property
    def economy(self) -> float:
        return rules.economy_from_balls(self.runs_conceded, self.balls_bowled)

    @property
    def average(self) -> Optional[float]:
        return rules.bowling_average(self.runs_conceded, self.wickets)

    @property
    def strike_rate(self) -> Optional[float]:
        return rules.bowling_strike_rate(self.balls_bowled, self.wickets)

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "name": self.name,
            "balls_bowled": self.balls_bowled,
            "overs": self.overs,
            "runs_conceded": self.runs_conceded,
            "wickets": self.wickets,
            "maidens": self.maidens,
            "wides": self.wides,
            "no_balls": self.no_balls,
            "economy": round(self.economy, 2),
            "average": rules.round_or_none(self.average, 2),
            "strike_rate": rules.round_or_none(self.strike_rate, 1),
        }


@dataclass(frozen=True)
class FallOfWicket:
    wicket: int
    score: int
    over: str
    player_id: int
    name: str
    dismissal: str

    def to_dict(self) -> dict:
        return {
            "wicket": self.wicket,
            "score": self.score,
            "over": self.over,
            "player_id": self.player_id,
            "name": self.name,
            "dismissal": self.dismissal,
        }


@dataclass
class Partnership:
    runs: int = 0  # runs off the bat
    balls: int = 0  # legal balls

    def to_dict(self) -> dict:
        return {"runs": self.runs, "balls": self.balls, "overs": rules.overs_from_balls(self.balls)}


@dataclass(frozen=True)
class OverBall:
    """One delivery as displayed in an over timeline"""
    value: str  # '0', '4', 'W', 'wd', 'nb+1', '2lb', ...
    type: str  # normal / wide / noball / wicket / bye / legbye
    runs_off_bat: int = 0
    wicket_kind: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "type": self.type,
            "runs_off_bat": self.runs_off_bat,
            "wicket_kind": self.wicket_kind,
        }


@dataclass
class RecentOver:
    over_number: int  # 1-based
    balls: list[OverBall] = field(default_factory=list)
    extras: list[dict] = field(default_factory=list)  # wides / no-balls in this over
    total_runs: int = 0
    wickets: int = 0
    legal_balls: int = 0
    bowler_ids: list[int] = field(default_factory=list)

    @property
    def is_locked(self) -> bool:
        return self.legal_balls >= rules.BALLS_PER_OVER

    def to_dict(self) -> dict:
        return {
            "over_number": self.over_number,
            "balls": [b.to_dict() for b in self.balls],
            "extras": list(self.extras),
            "total_runs": self.total_runs,
            "wickets": self.wickets,
            "legal_balls": self.legal_balls,
            "bowler_ids": list(self.bowler_ids),
            "is_locked": self.is_locked,
        }


@dataclass
class InningsSnapshot:
    """Complete derived state of one innings"""
    innings_number: int
    total_runs: int
    total_wickets: int
    legal_balls: int
    overs: str
    balls_in_current_over: int
    current_run_rate: float
    target: Optional[int]
    remaining_runs: Optional[int]
    remaining_balls: Optional[int]
    required_run_rate: Optional[float]
    projected_total: Optional[int]
    extras: dict
    fall_of_wickets: list[FallOfWicket]
    batters: list[BatterStat]
    bowlers: list[BowlerStat]
    partnership: Partnership
    recent_overs: list[RecentOver]
    current_over_balls: list[OverBall]
    overs_progress: list[dict]
    last_ball_summary: Optional[str]
    next_ball_free_hit: bool
    current_striker_id: Optional[int]
    current_non_striker_id: Optional[int]
    current_bowler_id: Optional[int]
    over_complete: bool
    last_over_bowler_id: Optional[int]
    end: InningsEnd
    end_reason: Optional[str]
    ball_count: int

    @property
    def innings_complete(self) -> bool:
        return self.end.innings_complete

    @property
    def bowler_must_change(self) -> bool:
        return self.over_complete and self.current_bowler_id is None

    @property
    def score(self) -> str:
        return f"{self.total_runs}/{self.total_wickets}"

    def batter(self, player_id: int) -> Optional[BatterStat]:
        return next((b for b in self.batters if b.player_id == player_id), None)

    def bowler(self, player_id: int) -> Optional[BowlerStat]:
        return next((b for b in self.bowlers if b.player_id == player_id), None)

    def to_dict(self) -> dict:
        return {
            "innings_number": self.innings_number,
            "total_runs": self.total_runs,
            "total_wickets": self.total_wickets,
            "legal_balls": self.legal_balls,
            "overs": self.overs,
            "balls_in_current_over": self.balls_in_current_over,
            "current_run_rate": self.current_run_rate,
            "target": self.target,
            "remaining_runs": self.remaining_runs,
            "remaining_balls": self.remaining_balls,
            "required_run_rate": self.required_run_rate,
            "projected_total": self.projected_total,
            "extras": dict(self.extras),
            "fall_of_wickets": [f.to_dict() for f in self.fall_of_wickets],
            "batters": [b.to_dict() for b in self.batters],
            "bowlers": [b.to_dict() for b in self.bowlers],
            "partnership": self.partnership.to_dict(),
            "recent_overs": [o.to_dict() for o in self.recent_overs],
            "current_over_balls": [b.to_dict() for b in self.current_over_balls],
            "overs_progress": list(self.overs_progress),
            "last_ball_summary": self.last_ball_summary,
            "next_ball_free_hit": self.next_ball_free_hit,
            "current_striker_id": self.current_striker_id,
            "current_non_striker_id": self.current_non_striker_id,
            "current_bowler_id": self.current_bowler_id,
            "over_complete": self.over_complete,
            "last_over_bowler_id": self.last_over_bowler_id,
            "innings_complete": self.innings_complete,
            "end": self.end.to_dict(),
            "end_reason": self.end_reason,
            "ball_count": self.ball_count,
        }


def ball_badge(event: BallEvent) -> OverBall:
    """Timeline badge for one delivery. Wickets take precedence over extras."""
    wicket_kind = event.wicket.kind.value if event.wicket else None
    if event.is_wicket and event.wicket.kind.is_team_wicket:
        return OverBall("W", "wicket", event.runs_off_bat, wicket_kind)
    if event.is_wide:
        extra = event.total_runs - 1
        return OverBall(f"wd+{extra}" if extra > 0 else "wd", "wide", 0, wicket_kind)
    if event.is_no_ball:
        extra = event.total_runs - 1
        return OverBall(f"nb+{extra}" if extra > 0 else "nb", "noball", event.runs_off_bat, wicket_kind)
    if event.extras.leg_byes > 0:
        return OverBall(f"{event.extras.leg_byes}lb", "legbye", 0, wicket_kind)
    if event.extras.byes > 0:
        return OverBall(f"{event.extras.byes}b", "bye", 0, wicket_kind)
    return OverBall(str(event.runs_off_bat), "normal", event.runs_off_bat, wicket_kind)


class InningsAggregator:
    """
    Replays an innings. The roster is an explicit dependency: a mapping or a
    callable from player id to display name. Unknown ids get a placeholder.
    """

    def __init__(self, roster: Optional[PlayerLookup] = None):
        self._roster = roster or {}

    def player_name(self, player_id: Optional[int]) -> str:
        if player_id is None:
            return ""
        if callable(self._roster):
            name = self._roster(player_id)
        else:
            name = self._roster.get(player_id)
        return name or f"Player #{player_id}"

    def dismissal_text(self, event: BallEvent) -> str:
        wicket = event.wicket
        bowler = self.player_name(event.bowler_id)
        fielder = self.player_name(wicket.fielder_id) if wicket.fielder_id is not None else ""
        kind = wicket.kind

        if kind is WicketKind.BOWLED:
            return f"b {bowler}"
        if kind is WicketKind.CAUGHT:
            if wicket.fielder_id == event.bowler_id:
                return f"c & b {bowler}"
            return f"c {fielder or '?'} b {bowler}"
        if kind is WicketKind.CAUGHT_AND_BOWLED:
            return f"c & b {bowler}"
        if kind is WicketKind.LBW:
            return f"lbw b {bowler}"
        if kind is WicketKind.STUMPED:
            return f"st {fielder or 'keeper'} b {bowler}"
        if kind is WicketKind.HIT_WICKET:
            return f"hit wicket b {bowler}"
        if kind is WicketKind.RUN_OUT:
            return f"run out ({fielder})" if fielder else "run out"
        return {
            WicketKind.OBSTRUCTING: "obstructing the field",
            WicketKind.HANDLED_BALL: "handled the ball",
            WicketKind.HIT_BALL_TWICE: "hit the ball twice",
            WicketKind.TIMED_OUT: "timed out",
            WicketKind.RETIRED_HURT: "retired hurt",
            WicketKind.RETIRED_OUT: "retired out",
        }[kind]

    def _last_ball_summary(self, event: BallEvent) -> str:
        batter = self.player_name(event.striker_id)
        if event.is_wicket:
            dismissed = self.player_name(event.wicket.dismissed_player_id)
            if event.wicket.kind is WicketKind.RETIRED_HURT:
                return f"{dismissed} retired hurt"
            return f"Wicket! {dismissed} {self.dismissal_text(event)}"
        if event.runs_off_bat > 0:
            plural = "s" if event.runs_off_bat > 1 else ""
            return f"{batter} scores {event.runs_off_bat} run{plural}"
        if event.is_wide:
            plural = "s" if event.total_runs > 1 else ""
            return f"Wide ball, {event.total_runs} run{plural}"
        if event.is_no_ball:
            plural = "s" if event.total_runs > 1 else ""
            return f"No ball, {event.total_runs} run{plural}"
        if event.extras.byes or event.extras.leg_byes:
            kind = "leg byes" if event.extras.leg_byes else "byes"
            return f"{event.total_runs} {kind}"
        return "Dot ball"

    def recompute(self, events: Iterable[BallEvent], context: Optional[MatchContext] = None) -> InningsSnapshot:
        context = context or MatchContext()
        balls = sorted(events, key=lambda e: e.sequence)

        total_runs = 0
        wickets = 0
        legal_balls = 0
        partnership = Partnership()
        extras = {"wides": 0, "no_balls": 0, "byes": 0, "leg_byes": 0, "penalty": 0}
        fall_of_wickets: list[FallOfWicket] = []
        batters: dict[int, BatterStat] = {}
        bowlers: dict[int, BowlerStat] = {}
        overs: dict[int, RecentOver] = {}
        progress: list[dict] = []

        striker: Optional[int] = None
        non_striker: Optional[int] = None
        free_hit_pending = False

        def batter_row(player_id: int) -> BatterStat:
            if player_id not in batters:
                batters[player_id] = BatterStat(
                    player_id=player_id,
                    name=self.player_name(player_id),
                    position=len(batters) + 1,
                )
            return batters[player_id]

        for event in balls:
            is_free_hit = event.free_hit or free_hit_pending
            over_number = legal_balls // rules.BALLS_PER_OVER + 1

            if event.is_legal:
                legal_balls += 1
                partnership.balls += 1

            total_runs += event.total_runs
            partnership.runs += event.runs_off_bat
            for name in extras:
                extras[name] += getattr(event.extras, name)

            # Batting order follows first appearance at the crease
            bat = batter_row(event.striker_id)
            if event.non_striker_id is not None:
                batter_row(event.non_striker_id)
            bat.runs += event.runs_off_bat
            if not event.is_wide:
                bat.balls += 1
            if event.runs_off_bat == 4:
                bat.fours += 1
            elif event.runs_off_bat == 6:
                bat.sixes += 1

            bowler = bowlers.get(event.bowler_id)
            if bowler is None:
                bowler = bowlers[event.bowler_id] = BowlerStat(
                    player_id=event.bowler_id,
                    name=self.player_name(event.bowler_id),
                )
            bowler.runs_conceded += event.bowler_runs
            bowler.block_runs += event.bowler_runs
            bowler.wides += event.extras.wides
            bowler.no_balls += event.extras.no_balls
            if event.is_legal:
                bowler.balls_bowled += 1
                if bowler.balls_bowled % rules.BALLS_PER_OVER == 0:
                    if bowler.block_runs == 0:
                        bowler.maidens += 1
                    bowler.block_runs = 0

            over = overs.get(over_number)
            if over is None:
                over = overs[over_number] = RecentOver(over_number=over_number)
            badge = ball_badge(event)
            over.balls.append(badge)
            if not event.is_legal:
                over.extras.append({"badge": badge.value, "runs": event.total_runs})
            over.total_runs += event.total_runs
            if event.is_legal:
                over.legal_balls += 1
            if event.bowler_id not in over.bowler_ids:
                over.bowler_ids.append(event.bowler_id)

            # Strike: odd runs swap ends before any departure is applied
            striker, non_striker = event.striker_id, event.non_striker_id
            if event.runs_completed % 2 == 1:
                striker, non_striker = non_striker, striker

            wicket = event.wicket
            if wicket is not None:
                out = batter_row(wicket.dismissed_player_id)
                out.dismissal = self.dismissal_text(event)
                out.wicket_kind = wicket.kind.value
                out.dismissed = wicket.kind.is_team_wicket

                if wicket.kind.is_team_wicket and wickets < rules.MAX_WICKETS:
                    wickets += 1
                    over.wickets += 1
                    if wicket.credited_to_bowler:
                        bowler.wickets += 1
                    fall_of_wickets.append(FallOfWicket(
                        wicket=wickets,
                        score=total_runs,
                        over=rules.overs_from_balls(legal_balls),
                        player_id=wicket.dismissed_player_id,
                        name=out.name,
                        dismissal=out.dismissal,
                    ))

                # Any departure ends the partnership
                partnership = Partnership()
                if striker == wicket.dismissed_player_id:
                    striker = None
                elif non_striker == wicket.dismissed_player_id:
                    non_striker = None

            if event.is_legal and legal_balls % rules.BALLS_PER_OVER == 0:
                striker, non_striker = non_striker, striker

            progress.append({
                "over": rules.overs_from_balls(legal_balls),
                "balls": legal_balls,
                "runs": total_runs,
                "wickets": wickets,
            })

            # A no-ball makes the next delivery a free hit; it carries over wides and no-balls
            free_hit_pending = event.is_no_ball or (is_free_hit and not event.is_legal)

        end = self._innings_end(context, total_runs, wickets, legal_balls)
        for row in batters.values():
            row.not_out = is_not_out(row, end)

        snapshot = self._derive(
            context, balls, total_runs, wickets, legal_balls, partnership, extras,
            fall_of_wickets, batters, bowlers, overs, progress, free_hit_pending,
            striker, non_striker, end,
        )
        logger.debug(
            "Replayed innings %s: %d deliveries -> %s (%s ov)",
            context.innings_number, len(balls), snapshot.score, snapshot.overs,
        )
        return snapshot

    @staticmethod
    def _innings_end(context: MatchContext, total_runs: int, wickets: int, legal_balls: int) -> InningsEnd:
        all_out = wickets >= rules.MAX_WICKETS
        overs_complete = context.max_balls is not None and legal_balls >= context.max_balls
        target_reached = context.is_chase and total_runs >= context.target
        abandoned = context.abandoned
        return InningsEnd(
            innings_complete=all_out or overs_complete or target_reached or abandoned or context.innings_closed,
            target_reached=target_reached,
            overs_complete=overs_complete,
            all_out=all_out,
            abandoned=abandoned,
        )

    @staticmethod
    def _end_reason(context: MatchContext, end: InningsEnd) -> Optional[str]:
        if end.target_reached:
            return "target_reached"
        if end.all_out:
            return "all_out"
        if end.overs_complete:
            return "overs_exhausted"
        if end.abandoned:
            return "abandoned"
        if context.innings_closed:
            return "closed"
        return None

    def _derive(self, context, balls, total_runs, wickets, legal_balls, partnership, extras,
                fall_of_wickets, batters, bowlers, overs, progress, free_hit_pending,
                striker, non_striker, end) -> InningsSnapshot:
        current_run_rate = rules.run_rate(total_runs, legal_balls)

        target = remaining_runs = remaining_balls = required_rate = None
        if context.is_chase:
            target = context.target
            remaining_runs = max(target - total_runs, 0)
            if context.max_balls is not None:
                remaining_balls = 0 if end.innings_complete else max(context.max_balls - legal_balls, 0)
            if end.target_reached or end.innings_complete:
                required_rate = 0.0
            elif remaining_balls is not None:
                required_rate = rules.round_or_none(rules.required_run_rate(remaining_runs, remaining_balls), 2)

        projected_total = None
        if context.overs_limit is not None and legal_balls > 0:
            overs_left = context.overs_limit - legal_balls / rules.BALLS_PER_OVER
            if end.innings_complete or overs_left <= 0:
                projected_total = total_runs
            else:
                projected_total = round(total_runs + current_run_rate * overs_left)

        # Bowler who just completed an over must be replaced
        over_complete = False
        last_over_bowler_id = None
        current_bowler_id = context.current_bowler_id
        if balls:
            last = balls[-1]
            last_bowler = bowlers[last.bowler_id]
            if last.is_legal and last_bowler.balls_bowled > 0 and last_bowler.balls_bowled % rules.BALLS_PER_OVER == 0:
                over_complete = True
                last_over_bowler_id = last.bowler_id
                # A bowler already picked for the next over is kept
                if current_bowler_id == last.bowler_id:
                    current_bowler_id = None
            elif current_bowler_id is None:
                current_bowler_id = last.bowler_id

        recent_overs = [overs[n] for n in sorted(overs)]
        current_over_balls: list[OverBall] = []
        if recent_overs and not recent_overs[-1].is_locked:
            current_over_balls = list(recent_overs[-1].balls)

        return InningsSnapshot(
            innings_number=context.innings_number,
            total_runs=total_runs,
            total_wickets=wickets,
            legal_balls=legal_balls,
            overs=rules.overs_from_balls(legal_balls),
            balls_in_current_over=legal_balls % rules.BALLS_PER_OVER,
            current_run_rate=round(current_run_rate, 2),
            target=target,
            remaining_runs=remaining_runs,
            remaining_balls=remaining_balls,
            required_run_rate=required_rate,
            projected_total=projected_total,
            extras=extras,
            fall_of_wickets=fall_of_wickets,
            batters=sorted(batters.values(), key=lambda b: b.position),
            bowlers=list(bowlers.values()),
            partnership=partnership,
            recent_overs=recent_overs,
            current_over_balls=current_over_balls,
            overs_progress=progress,
            last_ball_summary=self._last_ball_summary(balls[-1]) if balls else None,
            next_ball_free_hit=free_hit_pending,
            current_striker_id=context.current_striker_id if context.current_striker_id is not None else striker,
            current_non_striker_id=(
                context.current_non_striker_id if context.current_non_striker_id is not None else non_striker
            ),
            current_bowler_id=current_bowler_id,
            over_complete=over_complete,
            last_over_bowler_id=last_over_bowler_id,
            end=end,
            end_reason=self._end_reason(context, end),
            ball_count=len(balls),
        )


def recompute(events: Iterable[BallEvent], context: Optional[MatchContext] = None,
              roster: Optional[PlayerLookup] = None) -> InningsSnapshot:
    """Full replay of one innings"""
    return InningsAggregator(roster).recompute(events, context)
