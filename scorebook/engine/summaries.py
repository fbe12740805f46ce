"""
Per-match player summaries.

A PlayerMatchSummary is one player's condensed result from one match,
derived from the innings snapshots when a match is finalized. It is the
unit season and career aggregation works on.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Optional

from scorebook.engine import rules
from scorebook.engine.events import WicketKind
from scorebook.engine.innings import InningsSnapshot
from scorebook.engine.not_out import InningsEnd

logger = logging.getLogger(__name__)

RESULT_WON = "won"
RESULT_LOST = "lost"
RESULT_TIED = "tied"


@dataclass(frozen=True)
class BattingSummary:
    runs: int = 0
    balls: int = 0  # legal balls + no-balls faced
    fours: int = 0
    sixes: int = 0
    not_out: Optional[bool] = None
    dismissed: Optional[bool] = None
    wicket_kind: Optional[str] = None
    status: Optional[str] = None
    end: Optional[InningsEnd] = None

    @property
    def was_dismissed(self) -> bool:
        if self.dismissed is True or self.not_out is False:
            return True
        return bool(self.wicket_kind) and self.wicket_kind != WicketKind.RETIRED_HURT.value

    @property
    def counts_as_innings(self) -> bool:
        return rules.counts_as_innings(self.balls, self.was_dismissed)


@dataclass(frozen=True)
class BowlingSummary:
    balls_bowled: int = 0  # legal deliveries
    runs_conceded: int = 0
    wickets: int = 0
    maidens: int = 0
    wides: int = 0
    no_balls: int = 0

    @property
    def bowled(self) -> bool:
        return self.balls_bowled > 0 or self.wickets > 0


@dataclass(frozen=True)
class PlayerMatchSummary:
    match_id: int
    player_id: int
    status: str = "finished"
    in_lineup: bool = True
    year: Optional[int] = None
    match_date: Optional[date] = None
    result: Optional[str] = None  # won / lost / tied, None for no result
    batting: Optional[BattingSummary] = None
    bowling: Optional[BowlingSummary] = None

    @property
    def season_year(self) -> Optional[int]:
        if self.year is not None:
            return self.year
        if self.match_date is not None:
            return self.match_date.year
        return None


def _result_for(team_id: Optional[int], winner_team_id: Optional[int], tied: bool) -> Optional[str]:
    if tied:
        return RESULT_TIED
    if winner_team_id is None or team_id is None:
        return None
    return RESULT_WON if team_id == winner_team_id else RESULT_LOST


def build_match_summaries(
    match_id: int,
    snapshots: Iterable[InningsSnapshot],
    lineup: Mapping[int, int],
    status: str,
    match_date: Optional[date] = None,
    winner_team_id: Optional[int] = None,
    tied: bool = False,
) -> list[PlayerMatchSummary]:
    """
    Condense innings snapshots into one summary per player.

    lineup maps player id -> team id for the confirmed playing XIs. Players
    who appear in the scorecards without being in a lineup (substitutes)
    still get a summary, flagged in_lineup=False.
    """
    batting: dict[int, BattingSummary] = {}
    bowling: dict[int, BowlingSummary] = {}

    for snapshot in snapshots:
        for row in snapshot.batters:
            if row.player_id in batting:
                logger.warning("Player %s batted twice in match %s; keeping first innings", row.player_id, match_id)
                continue
            batting[row.player_id] = BattingSummary(
                runs=row.runs,
                balls=row.balls,
                fours=row.fours,
                sixes=row.sixes,
                not_out=row.not_out,
                dismissed=row.dismissed,
                wicket_kind=row.wicket_kind,
                end=snapshot.end,
            )
        for row in snapshot.bowlers:
            previous = bowling.get(row.player_id, BowlingSummary())
            bowling[row.player_id] = BowlingSummary(
                balls_bowled=previous.balls_bowled + row.balls_bowled,
                runs_conceded=previous.runs_conceded + row.runs_conceded,
                wickets=previous.wickets + row.wickets,
                maidens=previous.maidens + row.maidens,
                wides=previous.wides + row.wides,
                no_balls=previous.no_balls + row.no_balls,
            )

    player_ids = list(lineup)
    for player_id in list(batting) + list(bowling):
        if player_id not in player_ids:
            player_ids.append(player_id)

    return [
        PlayerMatchSummary(
            match_id=match_id,
            player_id=player_id,
            status=status,
            in_lineup=player_id in lineup,
            year=match_date.year if match_date else None,
            match_date=match_date,
            result=_result_for(lineup.get(player_id), winner_team_id, tied),
            batting=batting.get(player_id),
            bowling=bowling.get(player_id),
        )
        for player_id in player_ids
    ]
