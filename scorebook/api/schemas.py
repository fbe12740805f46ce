"""
Pydantic schemas for API request/response models
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from enum import Enum


# Enums
class MatchStatusEnum(str, Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    INNINGS_BREAK = "innings_break"
    FINISHED = "finished"
    ABANDONED = "abandoned"


# Team Schemas
class TeamCreate(BaseModel):
    name: str
    short_name: str


class TeamResponse(TeamCreate):
    id: int

    class Config:
        from_attributes = True


# Player Schemas
class PlayerCreate(BaseModel):
    name: str
    team_id: Optional[int] = None


class PlayerResponse(PlayerCreate):
    id: int

    class Config:
        from_attributes = True


# Match Schemas
class MatchCreate(BaseModel):
    team1_id: int
    team2_id: int
    venue: Optional[str] = None
    match_date: Optional[date] = None
    overs_limit: Optional[int] = Field(default=None, ge=1)


class MatchResponse(BaseModel):
    id: int
    team1_id: int
    team2_id: int
    venue: Optional[str]
    match_date: date
    overs_limit: Optional[int]
    status: str
    winner_id: Optional[int]
    is_tie: bool
    result_summary: Optional[str]


class LineupRequest(BaseModel):
    """Confirmed playing XI for one team, in batting order"""
    team_id: int
    player_ids: list[int]


class LineupEntryResponse(BaseModel):
    team_id: int
    player_id: int
    position: int

    class Config:
        from_attributes = True


class StatusRequest(BaseModel):
    status: MatchStatusEnum


# Innings Schemas
class StartInningsRequest(BaseModel):
    batting_team_id: int
    target: Optional[int] = Field(default=None, ge=1)
    striker_id: Optional[int] = None
    non_striker_id: Optional[int] = None
    bowler_id: Optional[int] = None


class CreaseRequest(BaseModel):
    striker_id: Optional[int] = None
    non_striker_id: Optional[int] = None
    bowler_id: Optional[int] = None


class InningsResponse(BaseModel):
    id: int
    match_id: int
    innings_number: int
    batting_team_id: int
    bowling_team_id: int
    target: Optional[int]
    is_closed: bool
    total_runs: int
    wickets: int
    legal_balls: int
    overs_display: str

    class Config:
        from_attributes = True


# Ball Schemas
class StoredBallResponse(BaseModel):
    """One delivery of the event log"""
    sequence: int
    striker_id: int
    non_striker_id: Optional[int]
    bowler_id: int
    runs_off_bat: int
    wides: int
    no_balls: int
    byes: int
    leg_byes: int
    penalty: int
    wicket_kind: Optional[str]
    dismissed_player_id: Optional[int]
    credited_to_bowler: bool
    fielder_id: Optional[int]
    free_hit: bool
    timestamp: Optional[datetime]

    class Config:
        from_attributes = True


class AppendResultResponse(BaseModel):
    sequence: int
    over_complete: bool
    bowler_must_change: bool
    snapshot: dict


class MatchSummaryResponse(BaseModel):
    match_id: int
    status: str
    result_summary: Optional[str]
    winner_id: Optional[int]
    is_tie: bool
    players: int


# Stats Schemas
class BattingStatsResponse(BaseModel):
    innings: int
    not_outs: int
    dismissals: int
    runs: int
    balls_faced: int
    fours: int
    sixes: int
    fifties: int
    hundreds: int
    highest: int
    highest_not_out: bool
    highest_display: str
    average: Optional[float]
    average_display: str
    strike_rate: float


class BowlingStatsResponse(BaseModel):
    innings: int
    balls_bowled: int
    overs: str
    runs_conceded: int
    wickets: int
    maidens: int
    wides: int
    no_balls: int
    best_wickets: Optional[int]
    best_runs: Optional[int]
    best_display: str
    five_wickets: int
    economy: float
    average: Optional[float]
    average_display: str
    strike_rate: Optional[float]


class SeasonStatsResponse(BaseModel):
    year: Optional[int]
    matches: int
    batting: BattingStatsResponse
    bowling: BowlingStatsResponse


class CareerStatsResponse(BaseModel):
    player_id: int
    name: str
    matches: int
    wins: int
    losses: int
    ties: int
    win_percentage: float
    batting: BattingStatsResponse
    bowling: BowlingStatsResponse
