"""
Per-match player summaries, rebuilt whenever a match is finalized
"""
from typing import Optional
from datetime import date
from sqlalchemy import String, Integer, ForeignKey, Date, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from scorebook.database import Base
from scorebook.engine.not_out import InningsEnd
from scorebook.engine.summaries import BattingSummary, BowlingSummary, PlayerMatchSummary


class PlayerMatchSummaryRecord(Base):
    __tablename__ = "player_match_summaries"

    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(ForeignKey("matches.id"), index=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), index=True)
    team_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teams.id"), nullable=True)

    status: Mapped[str] = mapped_column(String(20))
    in_lineup: Mapped[bool] = mapped_column(default=True)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    match_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    result: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # won / lost / tied

    # Batting
    batted: Mapped[bool] = mapped_column(default=False)
    runs: Mapped[int] = mapped_column(Integer, default=0)
    balls: Mapped[int] = mapped_column(Integer, default=0)
    fours: Mapped[int] = mapped_column(Integer, default=0)
    sixes: Mapped[int] = mapped_column(Integer, default=0)
    not_out: Mapped[Optional[bool]] = mapped_column(nullable=True)
    dismissed: Mapped[Optional[bool]] = mapped_column(nullable=True)
    wicket_kind: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    innings_end: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Bowling
    bowled: Mapped[bool] = mapped_column(default=False)
    balls_bowled: Mapped[int] = mapped_column(Integer, default=0)
    runs_conceded: Mapped[int] = mapped_column(Integer, default=0)
    wickets: Mapped[int] = mapped_column(Integer, default=0)
    maidens: Mapped[int] = mapped_column(Integer, default=0)
    wides: Mapped[int] = mapped_column(Integer, default=0)
    no_balls: Mapped[int] = mapped_column(Integer, default=0)

    player = relationship("Player")

    __table_args__ = (
        UniqueConstraint('match_id', 'player_id', name='unique_match_player_summary'),
    )

    @classmethod
    def from_summary(cls, summary: PlayerMatchSummary, team_id: Optional[int]) -> "PlayerMatchSummaryRecord":
        record = cls(
            match_id=summary.match_id,
            player_id=summary.player_id,
            team_id=team_id,
            status=summary.status,
            in_lineup=summary.in_lineup,
            year=summary.year,
            match_date=summary.match_date,
            result=summary.result,
        )
        batting = summary.batting
        if batting is not None:
            record.batted = True
            record.runs = batting.runs
            record.balls = batting.balls
            record.fours = batting.fours
            record.sixes = batting.sixes
            record.not_out = batting.not_out
            record.dismissed = batting.dismissed
            record.wicket_kind = batting.wicket_kind
            record.innings_end = batting.end.to_dict() if batting.end else None
        bowling = summary.bowling
        if bowling is not None:
            record.bowled = True
            record.balls_bowled = bowling.balls_bowled
            record.runs_conceded = bowling.runs_conceded
            record.wickets = bowling.wickets
            record.maidens = bowling.maidens
            record.wides = bowling.wides
            record.no_balls = bowling.no_balls
        return record

    def to_summary(self) -> PlayerMatchSummary:
        batting = None
        if self.batted:
            batting = BattingSummary(
                runs=self.runs,
                balls=self.balls,
                fours=self.fours,
                sixes=self.sixes,
                not_out=self.not_out,
                dismissed=self.dismissed,
                wicket_kind=self.wicket_kind,
                end=InningsEnd.from_dict(self.innings_end),
            )
        bowling = None
        if self.bowled:
            bowling = BowlingSummary(
                balls_bowled=self.balls_bowled,
                runs_conceded=self.runs_conceded,
                wickets=self.wickets,
                maidens=self.maidens,
                wides=self.wides,
                no_balls=self.no_balls,
            )
        return PlayerMatchSummary(
            match_id=self.match_id,
            player_id=self.player_id,
            status=self.status,
            in_lineup=self.in_lineup,
            year=self.year,
            match_date=self.match_date,
            result=self.result,
            batting=batting,
            bowling=bowling,
        )

    @classmethod
    def summaries_for_player(cls, session, player_id: int) -> list[PlayerMatchSummary]:
        """All of a player's match summaries, oldest match first"""
        records = session.query(cls).filter_by(player_id=player_id).order_by(cls.match_date, cls.match_id).all()
        return [record.to_summary() for record in records]

    def __repr__(self):
        return f"<PlayerMatchSummary match={self.match_id} player={self.player_id}>"
