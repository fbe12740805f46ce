"""
Domain exceptions raised by the scoring engine and ingestion service
"""


class ScorebookError(Exception):
    """Base class for engine errors"""


class BallValidationError(ScorebookError):
    """A delivery was structurally impossible and was not recorded"""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class NotFoundError(ScorebookError):
    """Match, innings or ball does not exist"""


class PersistenceError(ScorebookError):
    """Reading or writing the event log or snapshot failed. Safe to retry."""
