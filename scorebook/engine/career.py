"""
Season and career aggregation.

Groups a player's match summaries (by year for seasons, all of them for a
career) and hands each group to the batting/bowling calculators. The only
logic of its own is match counting.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Optional

from scorebook.engine.stats import (
    BattingCalculator, BowlingCalculator, PlayerBattingStats, PlayerBowlingStats,
)
from scorebook.engine.summaries import (
    PlayerMatchSummary, RESULT_WON, RESULT_LOST, RESULT_TIED,
)

# A match counts once it has gone live
COUNTED_STATUSES = frozenset({"live", "innings_break", "finished", "completed"})


def should_count_match(summary: PlayerMatchSummary, player_id: int) -> bool:
    """The player must be in the confirmed lineup and the match must have gone live"""
    if summary.player_id != player_id:
        return False
    if (summary.status or "").lower() not in COUNTED_STATUSES:
        return False
    return summary.in_lineup


def count_matches(summaries: Iterable[PlayerMatchSummary], player_id: int) -> int:
    return len({s.match_id for s in summaries if should_count_match(s, player_id)})


@dataclass
class SeasonStats:
    year: Optional[int]
    matches: int
    batting: PlayerBattingStats
    bowling: PlayerBowlingStats

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "matches": self.matches,
            "batting": self.batting.to_dict(),
            "bowling": self.bowling.to_dict(),
        }


@dataclass
class CareerStats:
    matches: int = 0
    batting: PlayerBattingStats = field(default_factory=PlayerBattingStats)
    bowling: PlayerBowlingStats = field(default_factory=PlayerBowlingStats)
    wins: int = 0
    losses: int = 0
    ties: int = 0

    @property
    def win_percentage(self) -> float:
        decided = self.wins + self.losses + self.ties
        if decided == 0:
            return 0.0
        return self.wins / decided * 100

    def to_dict(self) -> dict:
        return {
            "matches": self.matches,
            "batting": self.batting.to_dict(),
            "bowling": self.bowling.to_dict(),
            "wins": self.wins,
            "losses": self.losses,
            "ties": self.ties,
            "win_percentage": round(self.win_percentage, 2),
        }


def _player_summaries(summaries: Iterable[PlayerMatchSummary], player_id: int) -> list[PlayerMatchSummary]:
    return [s for s in summaries if s.player_id == player_id]


class SeasonAggregator:
    @staticmethod
    def aggregate(summaries: Iterable[PlayerMatchSummary], player_id: int) -> list[SeasonStats]:
        """One SeasonStats per year, newest first. Undated matches come last."""
        by_year: dict[Optional[int], list[PlayerMatchSummary]] = defaultdict(list)
        for summary in _player_summaries(summaries, player_id):
            by_year[summary.season_year].append(summary)

        seasons = [
            SeasonStats(
                year=year,
                matches=count_matches(items, player_id),
                batting=BattingCalculator.aggregate(s.batting for s in items),
                bowling=BowlingCalculator.aggregate(s.bowling for s in items),
            )
            for year, items in by_year.items()
        ]
        return sorted(seasons, key=lambda s: (s.year is None, -(s.year or 0)))


class CareerAggregator:
    @staticmethod
    def aggregate(summaries: Iterable[PlayerMatchSummary], player_id: int) -> CareerStats:
        items = _player_summaries(summaries, player_id)
        stats = CareerStats(
            matches=count_matches(items, player_id),
            batting=BattingCalculator.aggregate(s.batting for s in items),
            bowling=BowlingCalculator.aggregate(s.bowling for s in items),
        )
        for summary in items:
            if not should_count_match(summary, player_id):
                continue
            if summary.result == RESULT_WON:
                stats.wins += 1
            elif summary.result == RESULT_LOST:
                stats.losses += 1
            elif summary.result == RESULT_TIED:
                stats.ties += 1
        return stats
