"""
Scoring engine: rules, ball events, the innings aggregator and the
statistics calculators. Everything here except ball_service and locks is pure.
"""
from scorebook.engine.events import BallEvent, Extras, Wicket, WicketKind
from scorebook.engine.innings import InningsAggregator, InningsSnapshot, MatchContext, recompute
from scorebook.engine.not_out import InningsEnd, is_not_out
from scorebook.engine.stats import BattingCalculator, BowlingCalculator
from scorebook.engine.career import CareerAggregator, SeasonAggregator

__all__ = [
    "BallEvent",
    "Extras",
    "Wicket",
    "WicketKind",
    "InningsAggregator",
    "InningsSnapshot",
    "MatchContext",
    "recompute",
    "InningsEnd",
    "is_not_out",
    "BattingCalculator",
    "BowlingCalculator",
    "CareerAggregator",
    "SeasonAggregator",
]
