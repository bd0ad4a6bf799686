"""
Participant database model.

One row per (device, session) pair.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, UniqueConstraint
from waypoint.app.db.session import Base


class Participant(Base):
    """
    Participant model.

    last_seen_at is the only liveness signal; it is touched on every
    location submission that passes the session and membership checks.
    """
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    session_id = Column(Integer, ForeignKey('sessions.id', ondelete="CASCADE"), nullable=False, index=True)
    device_id = Column(String(128), nullable=False)

    display_name = Column(String(64), nullable=False)
    color = Column(String(7), nullable=False)

    joined_at = Column(DateTime, nullable=False)
    last_seen_at = Column(DateTime, nullable=False)

    # A device joins a given session at most once
    __table_args__ = (
        UniqueConstraint('device_id', 'session_id', name='uq_participants_device_session'),
    )

    def __repr__(self):
        return f"<Participant(id={self.id}, session_id={self.session_id}, name='{self.display_name}')>"
