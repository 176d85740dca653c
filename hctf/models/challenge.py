from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from hctf.database import Base
from hctf.utils import utcnow


class Challenge(Base):
    __tablename__ = "challenges"

    challenge_id = Column(Integer, primary_key=True, index=True)
    level_id = Column(Integer, ForeignKey("levels.level_id"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text)
    score = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    level = relationship("Level", back_populates="challenges")
