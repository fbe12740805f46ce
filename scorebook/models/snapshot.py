from datetime import datetime
from sqlalchemy import Integer, ForeignKey, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from scorebook.database import Base


class InningsSnapshotRecord(Base):
    """
    The current derived state of one innings.
    Overwritten on every recompute, never appended.
    """
    __tablename__ = "innings_snapshots"

    id: Mapped[int] = mapped_column(primary_key=True)
    innings_id: Mapped[int] = mapped_column(ForeignKey("innings.id"), unique=True)
    innings: Mapped["Innings"] = relationship("Innings", back_populates="snapshot")

    data: Mapped[dict] = mapped_column(JSON)
    ball_count: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<InningsSnapshot innings={self.innings_id} balls={self.ball_count}>"
