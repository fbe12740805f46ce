"""
Ball-by-ball event model.

The canonical delivery shape the innings aggregator consumes. Raw scorer
input is normalized into this shape by BallEventValidator before it is
stored, so nothing downstream has to deal with legacy field spellings.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional


class WicketKind(str, Enum):
    BOWLED = "bowled"
    CAUGHT = "caught"
    CAUGHT_AND_BOWLED = "caught-and-bowled"
    LBW = "lbw"
    RUN_OUT = "run-out"
    STUMPED = "stumped"
    HIT_WICKET = "hit-wicket"
    OBSTRUCTING = "obstructing"
    HANDLED_BALL = "handled-ball"
    HIT_BALL_TWICE = "hit-ball-twice"
    TIMED_OUT = "timed-out"
    RETIRED_HURT = "retired-hurt"
    RETIRED_OUT = "retired-out"

    @property
    def credited_to_bowler(self) -> bool:
        return self in BOWLER_CREDITED_KINDS

    @property
    def is_team_wicket(self) -> bool:
        """Retired hurt is the only departure that is not a wicket"""
        return self is not WicketKind.RETIRED_HURT


BOWLER_CREDITED_KINDS = frozenset({
    WicketKind.BOWLED,
    WicketKind.CAUGHT,
    WicketKind.CAUGHT_AND_BOWLED,
    WicketKind.LBW,
    WicketKind.STUMPED,
    WicketKind.HIT_WICKET,
})

# Dismissals still possible off a wide, a no-ball or a free hit
NON_BOWLER_KINDS = frozenset(WicketKind) - BOWLER_CREDITED_KINDS


@dataclass(frozen=True)
class Extras:
    wides: int = 0
    no_balls: int = 0
    byes: int = 0
    leg_byes: int = 0
    penalty: int = 0

    @property
    def total(self) -> int:
        return self.wides + self.no_balls + self.byes + self.leg_byes + self.penalty


@dataclass(frozen=True)
class Wicket:
    kind: WicketKind
    dismissed_player_id: int
    credited_to_bowler: bool
    fielder_id: Optional[int] = None


@dataclass(frozen=True)
class BallEvent:
    """A single delivery. Created once, never mutated."""

    sequence: int
    striker_id: int
    bowler_id: int
    non_striker_id: Optional[int] = None
    runs_off_bat: int = 0
    extras: Extras = field(default_factory=Extras)
    wicket: Optional[Wicket] = None
    free_hit: bool = False
    timestamp: Optional[datetime] = None

    @property
    def is_wide(self) -> bool:
        return self.extras.wides > 0

    @property
    def is_no_ball(self) -> bool:
        return self.extras.no_balls > 0

    @property
    def is_legal(self) -> bool:
        return not (self.is_wide or self.is_no_ball)

    @property
    def is_wicket(self) -> bool:
        return self.wicket is not None

    @property
    def total_runs(self) -> int:
        return self.runs_off_bat + self.extras.total

    @property
    def bowler_runs(self) -> int:
        """Runs charged to the bowler: bat runs plus wides and no-balls, never byes/leg-byes"""
        return self.runs_off_bat + self.extras.wides + self.extras.no_balls

    @property
    def runs_completed(self) -> int:
        """Runs ran or hit, excluding the one-run wide/no-ball penalty. Odd values swap strike."""
        ran = self.runs_off_bat + self.extras.byes + self.extras.leg_byes
        if self.is_wide:
            ran += self.extras.wides - 1
        if self.is_no_ball:
            ran += self.extras.no_balls - 1
        return ran

    def with_sequence(self, sequence: int) -> "BallEvent":
        return BallEvent(
            sequence=sequence,
            striker_id=self.striker_id,
            bowler_id=self.bowler_id,
            non_striker_id=self.non_striker_id,
            runs_off_bat=self.runs_off_bat,
            extras=self.extras,
            wicket=self.wicket,
            free_hit=self.free_hit,
            timestamp=self.timestamp,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.wicket is not None:
            data["wicket"]["kind"] = self.wicket.kind.value
        data["timestamp"] = self.timestamp.isoformat() if self.timestamp else None
        return data
