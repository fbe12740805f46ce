"""
Logging setup shared by the API and the CLI
"""
import logging
from typing import Optional

from scorebook.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None, handler: Optional[logging.Handler] = None) -> None:
    """Configure the root logger once. The CLI passes a RichHandler."""
    level_name = (level or settings.LOG_LEVEL).upper()
    handlers = [handler] if handler is not None else None
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(message)s" if handler is not None else LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # SQLAlchemy is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
