from typing import Optional, List
from sqlalchemy import String, Integer, ForeignKey, Enum, Date, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import date, datetime
import enum
from scorebook.database import Base
from scorebook.engine import rules
from scorebook.engine.events import BallEvent, Extras, Wicket, WicketKind


class MatchStatus(enum.Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    INNINGS_BREAK = "innings_break"
    FINISHED = "finished"
    ABANDONED = "abandoned"


class Match(Base):
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Teams
    team1_id: Mapped[int] = mapped_column(ForeignKey("teams.id"))
    team2_id: Mapped[int] = mapped_column(ForeignKey("teams.id"))
    team1: Mapped["Team"] = relationship("Team", foreign_keys=[team1_id])
    team2: Mapped["Team"] = relationship("Team", foreign_keys=[team2_id])

    # Match info
    venue: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    match_date: Mapped[date] = mapped_column(Date, default=date.today)
    overs_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Status
    status: Mapped[MatchStatus] = mapped_column(Enum(MatchStatus), default=MatchStatus.UPCOMING)

    # Result
    winner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teams.id"), nullable=True)
    is_tie: Mapped[bool] = mapped_column(default=False)
    result_summary: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Relationships
    innings: Mapped[List["Innings"]] = relationship(
        "Innings", back_populates="match", order_by="Innings.innings_number"
    )
    lineups: Mapped[List["MatchLineup"]] = relationship("MatchLineup", back_populates="match")

    @property
    def is_abandoned(self) -> bool:
        return self.status == MatchStatus.ABANDONED

    def __repr__(self):
        return f"<Match #{self.id} {self.team1_id} vs {self.team2_id} ({self.status.value})>"


class Innings(Base):
    __tablename__ = "innings"

    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(ForeignKey("matches.id"))
    match: Mapped["Match"] = relationship("Match", back_populates="innings")

    batting_team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"))
    bowling_team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"))

    innings_number: Mapped[int] = mapped_column(Integer)  # 1 or 2

    # Score, mirrored from the snapshot for standings consumers
    total_runs: Mapped[int] = mapped_column(Integer, default=0)
    wickets: Mapped[int] = mapped_column(Integer, default=0)
    legal_balls: Mapped[int] = mapped_column(Integer, default=0)

    # Target (for 2nd innings)
    target: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_closed: Mapped[bool] = mapped_column(default=False)

    # Scorer's view of the crease, overrides the derived striker/bowler
    current_striker_id: Mapped[Optional[int]] = mapped_column(ForeignKey("players.id"), nullable=True)
    current_non_striker_id: Mapped[Optional[int]] = mapped_column(ForeignKey("players.id"), nullable=True)
    current_bowler_id: Mapped[Optional[int]] = mapped_column(ForeignKey("players.id"), nullable=True)

    balls: Mapped[List["Ball"]] = relationship(
        "Ball", back_populates="innings", order_by="Ball.sequence", cascade="all, delete-orphan"
    )
    snapshot: Mapped[Optional["InningsSnapshotRecord"]] = relationship(
        "InningsSnapshotRecord", back_populates="innings", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint('match_id', 'innings_number', name='unique_match_innings'),
    )

    @property
    def overs_display(self) -> str:
        return rules.overs_from_balls(self.legal_balls)

    def __repr__(self):
        return f"<Innings {self.innings_number}: {self.total_runs}/{self.wickets} ({self.overs_display})>"


class Ball(Base):
    """One stored delivery. Rows are appended; undo/edit rewrite the tail."""
    __tablename__ = "ball_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    innings_id: Mapped[int] = mapped_column(ForeignKey("innings.id"), index=True)
    innings: Mapped["Innings"] = relationship("Innings", back_populates="balls")

    sequence: Mapped[int] = mapped_column(Integer)

    # Players involved
    striker_id: Mapped[int] = mapped_column(ForeignKey("players.id"))
    non_striker_id: Mapped[Optional[int]] = mapped_column(ForeignKey("players.id"), nullable=True)
    bowler_id: Mapped[int] = mapped_column(ForeignKey("players.id"))

    # Outcome
    runs_off_bat: Mapped[int] = mapped_column(Integer, default=0)

    # Extras
    wides: Mapped[int] = mapped_column(Integer, default=0)
    no_balls: Mapped[int] = mapped_column(Integer, default=0)
    byes: Mapped[int] = mapped_column(Integer, default=0)
    leg_byes: Mapped[int] = mapped_column(Integer, default=0)
    penalty: Mapped[int] = mapped_column(Integer, default=0)

    # Wicket
    wicket_kind: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    dismissed_player_id: Mapped[Optional[int]] = mapped_column(ForeignKey("players.id"), nullable=True)
    credited_to_bowler: Mapped[bool] = mapped_column(default=False)
    fielder_id: Mapped[Optional[int]] = mapped_column(ForeignKey("players.id"), nullable=True)

    free_hit: Mapped[bool] = mapped_column(default=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('innings_id', 'sequence', name='unique_innings_sequence'),
    )

    def to_event(self) -> BallEvent:
        wicket = None
        if self.wicket_kind:
            wicket = Wicket(
                kind=WicketKind(self.wicket_kind),
                dismissed_player_id=self.dismissed_player_id,
                credited_to_bowler=self.credited_to_bowler,
                fielder_id=self.fielder_id,
            )
        return BallEvent(
            sequence=self.sequence,
            striker_id=self.striker_id,
            non_striker_id=self.non_striker_id,
            bowler_id=self.bowler_id,
            runs_off_bat=self.runs_off_bat,
            extras=Extras(
                wides=self.wides,
                no_balls=self.no_balls,
                byes=self.byes,
                leg_byes=self.leg_byes,
                penalty=self.penalty,
            ),
            wicket=wicket,
            free_hit=self.free_hit,
            timestamp=self.timestamp,
        )

    def apply_event(self, event: BallEvent) -> None:
        """Copy a normalized event's fields onto this row (sequence excluded)"""
        self.striker_id = event.striker_id
        self.non_striker_id = event.non_striker_id
        self.bowler_id = event.bowler_id
        self.runs_off_bat = event.runs_off_bat
        self.wides = event.extras.wides
        self.no_balls = event.extras.no_balls
        self.byes = event.extras.byes
        self.leg_byes = event.extras.leg_byes
        self.penalty = event.extras.penalty
        self.wicket_kind = event.wicket.kind.value if event.wicket else None
        self.dismissed_player_id = event.wicket.dismissed_player_id if event.wicket else None
        self.credited_to_bowler = event.wicket.credited_to_bowler if event.wicket else False
        self.fielder_id = event.wicket.fielder_id if event.wicket else None
        self.free_hit = event.free_hit
        if event.timestamp is not None:
            self.timestamp = event.timestamp

    @classmethod
    def from_event(cls, innings_id: int, sequence: int, event: BallEvent) -> "Ball":
        ball = cls(innings_id=innings_id, sequence=sequence, timestamp=event.timestamp or datetime.utcnow())
        ball.apply_event(event)
        return ball

    def __repr__(self):
        return f"<Ball #{self.sequence}: {self.runs_off_bat} runs>"
