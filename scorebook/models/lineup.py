from sqlalchemy import Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from scorebook.database import Base


class MatchLineup(Base):
    """A player confirmed in a team's playing XI for one match"""
    __tablename__ = "match_lineups"

    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(ForeignKey("matches.id"))
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"))
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"))
    position: Mapped[int] = mapped_column(Integer)  # 1-11 batting order

    match = relationship("Match", back_populates="lineups")
    player = relationship("Player")

    __table_args__ = (
        UniqueConstraint('match_id', 'player_id', name='unique_player_lineup'),
    )

    def __repr__(self):
        return f"<MatchLineup match={self.match_id} team={self.team_id} player={self.player_id} pos={self.position}>"
