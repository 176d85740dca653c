from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship

from hctf.database import Base
from hctf.utils import utcnow


class Level(Base):
    __tablename__ = "levels"

    level_id = Column(Integer, primary_key=True, index=True)
    category_id = Column(
        Integer, ForeignKey("categories.category_id", ondelete="CASCADE"), nullable=False, index=True
    )
    level_name = Column(String(100), nullable=False)
    # Stored as naive UTC
    release_time = Column(DateTime, nullable=False)
    # Free-form release/visibility rules, opaque to this service beyond being JSON
    rules = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    category = relationship("Category", back_populates="levels")
    challenges = relationship(
        "Challenge",
        back_populates="level",
        order_by="Challenge.challenge_id",
    )

    def __repr__(self) -> str:
        return f"<Level id={self.level_id} category={self.category_id} name={self.level_name!r}>"
