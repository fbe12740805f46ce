from contextlib import contextmanager
from datetime import date

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from scorebook.config import settings
from scorebook.database import get_db
from scorebook.engine.ball_service import BallService
from scorebook.engine.errors import BallValidationError, NotFoundError, PersistenceError
from scorebook.models.lineup import MatchLineup
from scorebook.models.match import Match, MatchStatus
from scorebook.models.player import Player, Team
from scorebook.api.schemas import (
    MatchCreate, MatchResponse, LineupRequest, LineupEntryResponse, StatusRequest,
    StartInningsRequest, CreaseRequest, InningsResponse, StoredBallResponse,
    AppendResultResponse, MatchSummaryResponse,
)

router = APIRouter(prefix="/match", tags=["Live Scoring"])

MAX_LINEUP_SIZE = 11


@contextmanager
def service_errors():
    """Translate engine errors into HTTP responses"""
    try:
        yield
    except BallValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))


def _get_match(match_id: int, db: Session) -> Match:
    match = db.get(Match, match_id)
    if not match:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


def _match_response(match: Match) -> MatchResponse:
    return MatchResponse(
        id=match.id,
        team1_id=match.team1_id,
        team2_id=match.team2_id,
        venue=match.venue,
        match_date=match.match_date,
        overs_limit=match.overs_limit,
        status=match.status.value,
        winner_id=match.winner_id,
        is_tie=match.is_tie,
        result_summary=match.result_summary,
    )


@router.post("/", response_model=MatchResponse, status_code=201)
def create_match(request: MatchCreate, db: Session = Depends(get_db)):
    """Create a fixture between two teams"""
    if request.team1_id == request.team2_id:
        raise HTTPException(status_code=400, detail="A team cannot play itself")
    for team_id in (request.team1_id, request.team2_id):
        if not db.get(Team, team_id):
            raise HTTPException(status_code=404, detail=f"Team {team_id} not found")

    match = Match(
        team1_id=request.team1_id,
        team2_id=request.team2_id,
        venue=request.venue,
        match_date=request.match_date or date.today(),
        overs_limit=request.overs_limit or settings.DEFAULT_OVERS_LIMIT,
        status=MatchStatus.UPCOMING,
    )
    db.add(match)
    db.commit()
    db.refresh(match)
    return _match_response(match)


@router.get("/{match_id}", response_model=MatchResponse)
def get_match(match_id: int, db: Session = Depends(get_db)):
    return _match_response(_get_match(match_id, db))


@router.post("/{match_id}/lineup", response_model=list[LineupEntryResponse])
def set_lineup(match_id: int, request: LineupRequest, db: Session = Depends(get_db)):
    """Confirm a team's playing XI. Replaces any earlier lineup for that team."""
    match = _get_match(match_id, db)
    if request.team_id not in (match.team1_id, match.team2_id):
        raise HTTPException(status_code=400, detail="Team is not playing this match")

    errors = []
    if not request.player_ids:
        errors.append("Lineup cannot be empty")
    if len(request.player_ids) > MAX_LINEUP_SIZE:
        errors.append(f"Lineup has {len(request.player_ids)} players, max {MAX_LINEUP_SIZE}")
    if len(set(request.player_ids)) != len(request.player_ids):
        errors.append("Lineup lists a player more than once")
    found = {p.id for p in db.query(Player).filter(Player.id.in_(request.player_ids)).all()}
    missing = [pid for pid in request.player_ids if pid not in found]
    if missing:
        errors.append(f"Unknown players: {missing}")
    other_team = db.query(MatchLineup).filter(
        MatchLineup.match_id == match_id,
        MatchLineup.team_id != request.team_id,
        MatchLineup.player_id.in_(request.player_ids),
    ).count()
    if other_team:
        errors.append("A player cannot appear in both lineups")
    if errors:
        raise HTTPException(status_code=400, detail=errors)

    db.query(MatchLineup).filter_by(match_id=match_id, team_id=request.team_id).delete()
    entries = [
        MatchLineup(match_id=match_id, team_id=request.team_id, player_id=player_id, position=i + 1)
        for i, player_id in enumerate(request.player_ids)
    ]
    db.add_all(entries)
    db.commit()
    return entries


@router.get("/{match_id}/lineup", response_model=list[LineupEntryResponse])
def get_lineup(match_id: int, db: Session = Depends(get_db)):
    _get_match(match_id, db)
    return db.query(MatchLineup).filter_by(match_id=match_id).order_by(
        MatchLineup.team_id, MatchLineup.position
    ).all()


@router.post("/{match_id}/status", response_model=MatchResponse)
def set_status(match_id: int, request: StatusRequest, db: Session = Depends(get_db)):
    """Move a match to live, innings break, finished or abandoned"""
    match = _get_match(match_id, db)
    if match.status == MatchStatus.FINISHED and request.status.value != MatchStatus.FINISHED.value:
        raise HTTPException(status_code=400, detail="Match already finished")
    match.status = MatchStatus(request.status.value)
    db.commit()
    db.refresh(match)
    return _match_response(match)


@router.post("/{match_id}/innings", response_model=InningsResponse, status_code=201)
def start_innings(match_id: int, request: StartInningsRequest, db: Session = Depends(get_db)):
    """Open the next innings; the chase target defaults to first innings total + 1"""
    with service_errors():
        return BallService(db).start_innings(
            match_id,
            request.batting_team_id,
            target=request.target,
            striker_id=request.striker_id,
            non_striker_id=request.non_striker_id,
            bowler_id=request.bowler_id,
        )


@router.get("/{match_id}/innings/{innings_number}")
def get_innings_snapshot(match_id: int, innings_number: int, db: Session = Depends(get_db)):
    """Current scorecard of an innings"""
    with service_errors():
        return BallService(db).get_snapshot(match_id, innings_number)


@router.get("/{match_id}/innings/{innings_number}/balls", response_model=list[StoredBallResponse])
def list_balls(match_id: int, innings_number: int, db: Session = Depends(get_db)):
    """The innings event log, in sequence order"""
    with service_errors():
        service = BallService(db)
        innings = service.get_innings(match_id, innings_number)
        return list(innings.balls)


@router.post("/{match_id}/innings/{innings_number}/balls", response_model=AppendResultResponse, status_code=201)
def record_ball(match_id: int, innings_number: int, payload: dict = Body(...), db: Session = Depends(get_db)):
    """Record the next delivery"""
    with service_errors():
        result = BallService(db).append_ball(match_id, innings_number, payload)
    return result.to_dict()


@router.delete("/{match_id}/innings/{innings_number}/balls/last")
def undo_ball(match_id: int, innings_number: int, db: Session = Depends(get_db)):
    """Undo the most recent delivery"""
    with service_errors():
        return BallService(db).undo_last_ball(match_id, innings_number).to_dict()


@router.put("/{match_id}/innings/{innings_number}/balls/{sequence}")
def edit_ball(match_id: int, innings_number: int, sequence: int, payload: dict = Body(...),
              db: Session = Depends(get_db)):
    """Correct a recorded delivery"""
    with service_errors():
        return BallService(db).edit_ball(match_id, innings_number, sequence, payload).to_dict()


@router.delete("/{match_id}/innings/{innings_number}/balls/{sequence}")
def delete_ball(match_id: int, innings_number: int, sequence: int, db: Session = Depends(get_db)):
    """Remove a recorded delivery; later deliveries move up one place"""
    with service_errors():
        return BallService(db).delete_ball(match_id, innings_number, sequence).to_dict()


@router.put("/{match_id}/innings/{innings_number}/crease")
def set_crease(match_id: int, innings_number: int, request: CreaseRequest, db: Session = Depends(get_db)):
    """Set the batters at the crease and the bowler (new batter, change of bowler)"""
    with service_errors():
        return BallService(db).set_crease(
            match_id,
            innings_number,
            striker_id=request.striker_id,
            non_striker_id=request.non_striker_id,
            bowler_id=request.bowler_id,
        ).to_dict()


@router.post("/{match_id}/innings/{innings_number}/recompute")
def recompute_innings(match_id: int, innings_number: int, db: Session = Depends(get_db)):
    """Rebuild the snapshot from the event log"""
    with service_errors():
        return BallService(db).recompute(match_id, innings_number).to_dict()


@router.post("/{match_id}/finalize", response_model=MatchSummaryResponse)
def finalize_match(match_id: int, db: Session = Depends(get_db)):
    """Close the match and write per-player summaries for season and career stats"""
    with service_errors():
        summaries = BallService(db).finalize_match(match_id)
    match = _get_match(match_id, db)
    return MatchSummaryResponse(
        match_id=match.id,
        status=match.status.value,
        result_summary=match.result_summary,
        winner_id=match.winner_id,
        is_tie=match.is_tie,
        players=len(summaries),
    )
