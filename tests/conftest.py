"""
Shared fixtures: an in-memory database, a seeded match and an API client.
"""
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from scorebook.database import Base, get_db
from scorebook.engine.locks import InningsLockRegistry
from scorebook.models import Match, MatchLineup, MatchStatus, Player, Team

HOME_TEAM_ID = 1
AWAY_TEAM_ID = 2
HOME_PLAYERS = list(range(1, 12))   # 1-11
AWAY_PLAYERS = list(range(12, 23))  # 12-22


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def locks():
    return InningsLockRegistry()


def seed_teams(db):
    """Two teams of eleven with fixed ids"""
    db.add_all([
        Team(id=HOME_TEAM_ID, name="Harbour Hawks", short_name="HH"),
        Team(id=AWAY_TEAM_ID, name="Valley Vipers", short_name="VV"),
    ])
    for pid in HOME_PLAYERS:
        db.add(Player(id=pid, name=f"Hawk {pid}", team_id=HOME_TEAM_ID))
    for pid in AWAY_PLAYERS:
        db.add(Player(id=pid, name=f"Viper {pid}", team_id=AWAY_TEAM_ID))
    db.commit()


def seed_match(db, overs_limit=20, match_date=date(2024, 5, 4)) -> Match:
    """A match between the seeded teams with both lineups confirmed"""
    match = Match(
        team1_id=HOME_TEAM_ID,
        team2_id=AWAY_TEAM_ID,
        venue="Riverside Oval",
        match_date=match_date,
        overs_limit=overs_limit,
        status=MatchStatus.UPCOMING,
    )
    db.add(match)
    db.flush()
    for position, pid in enumerate(HOME_PLAYERS, start=1):
        db.add(MatchLineup(match_id=match.id, team_id=HOME_TEAM_ID, player_id=pid, position=position))
    for position, pid in enumerate(AWAY_PLAYERS, start=1):
        db.add(MatchLineup(match_id=match.id, team_id=AWAY_TEAM_ID, player_id=pid, position=position))
    db.commit()
    return match


@pytest.fixture
def teams(session):
    seed_teams(session)


@pytest.fixture
def match(session, teams):
    return seed_match(session)


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    # No context manager: the startup hook would create the on-disk database
    yield TestClient(app)
    app.dependency_overrides.clear()
