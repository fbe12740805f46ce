"""
Player and team endpoints, plus season and career statistics
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from scorebook.database import get_db
from scorebook.engine import rules
from scorebook.engine.career import CareerAggregator, SeasonAggregator
from scorebook.engine.stats import PlayerBattingStats, PlayerBowlingStats
from scorebook.models.player import Player, Team
from scorebook.models.summary import PlayerMatchSummaryRecord
from scorebook.api.schemas import (
    PlayerCreate, PlayerResponse, TeamCreate, TeamResponse,
    BattingStatsResponse, BowlingStatsResponse, SeasonStatsResponse, CareerStatsResponse,
)

router = APIRouter(prefix="/players", tags=["Players"])
teams_router = APIRouter(prefix="/teams", tags=["Teams"])


def batting_response(stats: PlayerBattingStats) -> BattingStatsResponse:
    return BattingStatsResponse(
        **stats.to_dict(),
        highest_display=rules.format_highest_score(stats.highest, stats.highest_not_out),
        average_display=rules.format_average(stats.average),
    )


def bowling_response(stats: PlayerBowlingStats) -> BowlingStatsResponse:
    return BowlingStatsResponse(
        **stats.to_dict(),
        best_display=rules.format_best_bowling(stats.best),
        average_display=rules.format_average(stats.average),
    )


def _get_player(player_id: int, db: Session) -> Player:
    player = db.get(Player, player_id)
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")
    return player


@teams_router.post("/", response_model=TeamResponse, status_code=201)
def create_team(request: TeamCreate, db: Session = Depends(get_db)):
    team = Team(name=request.name, short_name=request.short_name)
    db.add(team)
    db.commit()
    db.refresh(team)
    return team


@teams_router.get("/", response_model=List[TeamResponse])
def list_teams(db: Session = Depends(get_db)):
    return db.query(Team).order_by(Team.name).all()


@router.post("/", response_model=PlayerResponse, status_code=201)
def create_player(request: PlayerCreate, db: Session = Depends(get_db)):
    if request.team_id is not None and not db.get(Team, request.team_id):
        raise HTTPException(status_code=404, detail="Team not found")
    player = Player(name=request.name, team_id=request.team_id)
    db.add(player)
    db.commit()
    db.refresh(player)
    return player


@router.get("/{player_id}", response_model=PlayerResponse)
def get_player(player_id: int, db: Session = Depends(get_db)):
    return _get_player(player_id, db)


@router.get("/{player_id}/career", response_model=CareerStatsResponse)
def get_career(player_id: int, db: Session = Depends(get_db)):
    """Career batting, bowling and results across every finalized match"""
    player = _get_player(player_id, db)
    summaries = PlayerMatchSummaryRecord.summaries_for_player(db, player_id)
    career = CareerAggregator.aggregate(summaries, player_id)
    return CareerStatsResponse(
        player_id=player.id,
        name=player.name,
        matches=career.matches,
        wins=career.wins,
        losses=career.losses,
        ties=career.ties,
        win_percentage=round(career.win_percentage, 2),
        batting=batting_response(career.batting),
        bowling=bowling_response(career.bowling),
    )


@router.get("/{player_id}/seasons", response_model=List[SeasonStatsResponse])
def get_seasons(player_id: int, db: Session = Depends(get_db)):
    """Per-season figures, newest season first"""
    _get_player(player_id, db)
    summaries = PlayerMatchSummaryRecord.summaries_for_player(db, player_id)
    return [
        SeasonStatsResponse(
            year=season.year,
            matches=season.matches,
            batting=batting_response(season.batting),
            bowling=bowling_response(season.bowling),
        )
        for season in SeasonAggregator.aggregate(summaries, player_id)
    ]
