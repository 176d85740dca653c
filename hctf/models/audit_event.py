from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON

from hctf.database import Base
from hctf.utils import utcnow


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True)
    # Null for actions without an authenticated actor (registration)
    actor_id = Column(Integer, ForeignKey("teams.team_id", ondelete="SET NULL"), nullable=True)
    action = Column(String(64), nullable=False, index=True)
    targets = Column(JSON, nullable=False, default=list)
    outcome = Column(String(32), nullable=False)
    detail = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
