"""
Scoring rules - pure formulas for the official batting and bowling definitions.

Undefined statistics are returned as None, never as 0 or a large sentinel,
so callers cannot do arithmetic on them by accident. Rendering None as a
dash is a presentation concern (see format_average).
"""
import re
from typing import Optional

BALLS_PER_OVER = 6
MAX_WICKETS = 10

FIFTY = 50
HUNDRED = 100
FIVE_WICKET_HAUL = 5

UNDEFINED_SYMBOL = "-"

_OVERS_PATTERN = re.compile(r"^(\d+)(?:\.(\d))?$")


def batting_average(runs: int, innings: int, not_outs: int) -> Optional[float]:
    """Runs per dismissal. None when the batter has never been dismissed."""
    times_out = innings - not_outs
    if times_out <= 0:
        return None
    return runs / times_out


def strike_rate(runs: int, balls_faced: int) -> float:
    """Runs per 100 balls faced"""
    if balls_faced <= 0:
        return 0.0
    return (runs / balls_faced) * 100


def bowling_average(runs_conceded: int, wickets: int) -> Optional[float]:
    """Runs conceded per wicket. None with no wickets."""
    if wickets <= 0:
        return None
    return runs_conceded / wickets


def bowling_strike_rate(balls_bowled: int, wickets: int) -> Optional[float]:
    """Balls bowled per wicket. None with no wickets."""
    if wickets <= 0:
        return None
    return balls_bowled / wickets


def economy(runs_conceded: int, overs: float) -> float:
    """Runs conceded per over, overs given as a decimal (balls / 6)"""
    if overs <= 0:
        return 0.0
    return runs_conceded / overs


def economy_from_balls(runs_conceded: int, balls_bowled: int) -> float:
    return economy(runs_conceded, balls_bowled / BALLS_PER_OVER)


def run_rate(runs: int, legal_balls: int) -> float:
    """Runs per over"""
    if legal_balls <= 0:
        return 0.0
    return runs * BALLS_PER_OVER / legal_balls


def required_run_rate(runs_needed: int, balls_remaining: int) -> Optional[float]:
    """Runs per over needed from the remaining deliveries"""
    if runs_needed <= 0:
        return 0.0
    if balls_remaining <= 0:
        return None
    return runs_needed * BALLS_PER_OVER / balls_remaining


def overs_from_balls(balls: int) -> str:
    """18 -> '3.0', 19 -> '3.1'"""
    if balls < 0:
        raise ValueError(f"balls must be non-negative, got {balls}")
    return f"{balls // BALLS_PER_OVER}.{balls % BALLS_PER_OVER}"


def balls_from_overs(overs: str) -> int:
    """'3.1' -> 19. Exact inverse of overs_from_balls."""
    match = _OVERS_PATTERN.match(str(overs).strip())
    if not match:
        raise ValueError(f"Invalid overs value: {overs!r}")
    whole = int(match.group(1))
    part = int(match.group(2) or 0)
    if part >= BALLS_PER_OVER:
        raise ValueError(f"Ball part of overs must be 0-5, got {overs!r}")
    return whole * BALLS_PER_OVER + part


def is_fifty(runs: int) -> bool:
    return FIFTY <= runs < HUNDRED


def is_hundred(runs: int) -> bool:
    return runs >= HUNDRED


def counts_as_innings(balls_faced: int, dismissed: bool) -> bool:
    """
    An innings counts if the batter faced at least one ball (legal or no-ball),
    or was dismissed without facing (e.g. run out at the non-striker's end).
    """
    return balls_faced > 0 or dismissed


def compare_best_bowling(a: tuple[int, int], b: tuple[int, int]) -> int:
    """
    Compare (wickets, runs_conceded) figures.
    Negative when a is better, positive when b is better, 0 when equal.
    More wickets wins; equal wickets -> fewer runs wins.
    """
    a_wickets, a_runs = a
    b_wickets, b_runs = b
    if a_wickets != b_wickets:
        return b_wickets - a_wickets
    return a_runs - b_runs


# Presentation helpers - only used by the API/CLI layer

def format_average(value: Optional[float], digits: int = 2) -> str:
    if value is None:
        return UNDEFINED_SYMBOL
    return f"{value:.{digits}f}"


def format_highest_score(runs: int, not_out: bool) -> str:
    if runs <= 0 and not not_out:
        return UNDEFINED_SYMBOL
    return f"{runs}*" if not_out else str(runs)


def format_best_bowling(figures: Optional[tuple[int, int]]) -> str:
    if figures is None:
        return UNDEFINED_SYMBOL
    wickets, runs = figures
    return f"{wickets}/{runs}"


def round_or_none(value: Optional[float], digits: int = 2) -> Optional[float]:
    if value is None:
        return None
    return round(value, digits)
