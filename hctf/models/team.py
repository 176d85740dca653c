from sqlalchemy import Column, Boolean, Integer, String, DateTime
from sqlalchemy.orm import relationship

from hctf.database import Base
from hctf.utils import utcnow


class Team(Base):
    __tablename__ = "teams"

    team_id = Column(Integer, primary_key=True, index=True)
    team_name = Column(String(100), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password = Column(String(255), nullable=False)
    admin = Column(Boolean, nullable=False, default=False)
    banned = Column(Boolean, nullable=False, default=False)
    # Wall-clock time in the service time zone
    sign_up_time = Column(DateTime)
    last_login_time = Column(DateTime)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    logs = relationship(
        "Log",
        back_populates="team",
        order_by="Log.created_at",
    )

    def __repr__(self) -> str:
        return f"<Team id={self.team_id} name={self.team_name!r} admin={self.admin} banned={self.banned}>"
