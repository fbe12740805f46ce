"""
Batting and bowling statistics calculators.

Reduce a player's per-match summaries into aggregate figures using the
scoring rules. Both calculators are stateless.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from scorebook.engine import rules
from scorebook.engine.not_out import is_not_out, not_out_from_summary
from scorebook.engine.summaries import BattingSummary, BowlingSummary


@dataclass
class PlayerBattingStats:
    innings: int = 0
    not_outs: int = 0
    dismissals: int = 0
    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0
    fifties: int = 0
    hundreds: int = 0
    highest: int = 0
    highest_not_out: bool = False
    average: Optional[float] = None
    strike_rate: float = 0.0

    def to_dict(self) -> dict:
        return {
            "innings": self.innings,
            "not_outs": self.not_outs,
            "dismissals": self.dismissals,
            "runs": self.runs,
            "balls_faced": self.balls_faced,
            "fours": self.fours,
            "sixes": self.sixes,
            "fifties": self.fifties,
            "hundreds": self.hundreds,
            "highest": self.highest,
            "highest_not_out": self.highest_not_out,
            "average": rules.round_or_none(self.average, 2),
            "strike_rate": round(self.strike_rate, 2),
        }


@dataclass
class PlayerBowlingStats:
    innings: int = 0
    balls_bowled: int = 0
    runs_conceded: int = 0
    wickets: int = 0
    maidens: int = 0
    wides: int = 0
    no_balls: int = 0
    best: Optional[tuple[int, int]] = None  # (wickets, runs)
    five_wickets: int = 0
    economy: float = 0.0
    average: Optional[float] = None
    strike_rate: Optional[float] = None

    @property
    def overs(self) -> str:
        return rules.overs_from_balls(self.balls_bowled)

    def to_dict(self) -> dict:
        return {
            "innings": self.innings,
            "balls_bowled": self.balls_bowled,
            "overs": self.overs,
            "runs_conceded": self.runs_conceded,
            "wickets": self.wickets,
            "maidens": self.maidens,
            "wides": self.wides,
            "no_balls": self.no_balls,
            "best_wickets": self.best[0] if self.best else None,
            "best_runs": self.best[1] if self.best else None,
            "five_wickets": self.five_wickets,
            "economy": round(self.economy, 2),
            "average": rules.round_or_none(self.average, 2),
            "strike_rate": rules.round_or_none(self.strike_rate, 1),
        }


class BattingCalculator:
    @staticmethod
    def aggregate(summaries: Iterable[Optional[BattingSummary]]) -> PlayerBattingStats:
        """
        Innings count only when the batter faced a ball or was dismissed.
        Highest score: more runs wins; on equal runs the not-out instance wins.
        """
        stats = PlayerBattingStats()

        for summary in summaries:
            if summary is None:
                continue

            if summary.counts_as_innings:
                stats.innings += 1
                if summary.end is not None:
                    not_out = is_not_out(summary, summary.end)
                else:
                    not_out = not_out_from_summary(summary)

                if not_out:
                    stats.not_outs += 1
                else:
                    stats.dismissals += 1

                if summary.runs > stats.highest:
                    stats.highest = summary.runs
                    stats.highest_not_out = not_out
                elif summary.runs == stats.highest and not_out:
                    stats.highest_not_out = True

            stats.runs += summary.runs
            stats.balls_faced += summary.balls
            stats.fours += summary.fours
            stats.sixes += summary.sixes
            if rules.is_fifty(summary.runs):
                stats.fifties += 1
            if rules.is_hundred(summary.runs):
                stats.hundreds += 1

        stats.average = rules.batting_average(stats.runs, stats.innings, stats.not_outs)
        stats.strike_rate = rules.strike_rate(stats.runs, stats.balls_faced)
        return stats


class BowlingCalculator:
    @staticmethod
    def aggregate(summaries: Iterable[Optional[BowlingSummary]]) -> PlayerBowlingStats:
        """Best figures: most wickets, then fewest runs conceded"""
        stats = PlayerBowlingStats()

        for summary in summaries:
            if summary is None:
                continue

            if summary.bowled:
                stats.innings += 1
                figures = (summary.wickets, summary.runs_conceded)
                if stats.best is None or rules.compare_best_bowling(figures, stats.best) < 0:
                    stats.best = figures

            stats.balls_bowled += summary.balls_bowled
            stats.runs_conceded += summary.runs_conceded
            stats.wickets += summary.wickets
            stats.maidens += summary.maidens
            stats.wides += summary.wides
            stats.no_balls += summary.no_balls
            if summary.wickets >= rules.FIVE_WICKET_HAUL:
                stats.five_wickets += 1

        stats.economy = rules.economy_from_balls(stats.runs_conceded, stats.balls_bowled)
        stats.average = rules.bowling_average(stats.runs_conceded, stats.wickets)
        stats.strike_rate = rules.bowling_strike_rate(stats.balls_bowled, stats.wickets)
        return stats
