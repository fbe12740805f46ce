"""
Scorebook - Live Cricket Scoring API
"""
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scorebook import __version__
from scorebook.config import settings
from scorebook.database import init_db
from scorebook.logging_config import configure_logging
from scorebook.api.match import router as match_router
from scorebook.api.players import router as players_router, teams_router

configure_logging()
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Scorebook",
    description="Ball-by-ball cricket scoring and statistics API",
    version=__version__,
)

# CORS origins for the scoring and scoreboard frontends
default_origins = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]
default_origins.extend(settings.cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=default_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(teams_router, prefix="/api")
app.include_router(players_router, prefix="/api")
app.include_router(match_router, prefix="/api")


@app.on_event("startup")
def startup_event():
    """Initialize database on startup"""
    init_db()
    logger.info("Scorebook API %s started", __version__)


@app.get("/")
def root():
    """Health check endpoint"""
    return {
        "name": "Scorebook API",
        "version": __version__,
        "status": "running",
    }


@app.get("/api/health")
def health_check():
    """API health check"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
