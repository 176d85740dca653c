# hctf/models/log.py
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from hctf.database import Base
from hctf.utils import utcnow


class Log(Base):
    """A team's flag submission against a challenge."""

    __tablename__ = "logs"

    log_id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.category_id"), nullable=True)
    level_id = Column(Integer, ForeignKey("levels.level_id"), nullable=True)
    challenge_id = Column(Integer, ForeignKey("challenges.challenge_id"), nullable=True)

    # "correct", "wrong", ...
    status = Column(String(20), nullable=False)
    flag = Column(String(255), nullable=False)
    # Points awarded for this submission (0 unless correct)
    score = Column(Float, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    team = relationship("Team", back_populates="logs")

    __table_args__ = (
        # Ranking and public lookups filter on correct logs per team
        Index("ix_logs_team_status", "team_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Log id={self.log_id} team={self.team_id} chal={self.challenge_id} status={self.status}>"
