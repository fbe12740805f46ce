from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from scorebook.config import settings

DATABASE_URL = settings.DATABASE_URL

# Sync endpoints run on a thread pool, so SQLite connections cross threads
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=settings.SQL_ECHO, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine)


class Base(DeclarativeBase):
    pass


def init_db():
    """Create the scoring tables if they do not exist"""
    from scorebook.models import player, match, lineup, snapshot, summary  # noqa
    Base.metadata.create_all(bind=engine)


def get_session():
    """Session for the CLI and scripts; the caller closes it"""
    return SessionLocal()


def get_db():
    """Request-scoped session for FastAPI routes"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
