from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from hctf.database import Base
from hctf.utils import utcnow


class Category(Base):
    __tablename__ = "categories"

    category_id = Column(Integer, primary_key=True, index=True)
    category_name = Column(String(100), unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    levels = relationship(
        "Level",
        back_populates="category",
        order_by="Level.level_id",
    )

    def __repr__(self) -> str:
        return f"<Category id={self.category_id} name={self.category_name!r}>"
