from scorebook.models.player import Player, Team
from scorebook.models.match import Match, MatchStatus, Innings, Ball
from scorebook.models.lineup import MatchLineup
from scorebook.models.snapshot import InningsSnapshotRecord
from scorebook.models.summary import PlayerMatchSummaryRecord

__all__ = [
    "Player",
    "Team",
    "Match",
    "MatchStatus",
    "Innings",
    "Ball",
    "MatchLineup",
    "InningsSnapshotRecord",
    "PlayerMatchSummaryRecord",
]
