"""
Presence database model.

Live location snapshot: the latest accepted sample per participant,
never a breadcrumb trail.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, Enum
from waypoint.app.db.session import Base
from waypoint.app.models.enums import DelayKind


class Presence(Base):
    """
    Presence model.

    participant_id is unique: the table holds at most one row per
    participant, written through upsert_by_owner(). The delay_* columns
    carry the self-declared delay annotation and are never touched by
    position updates.
    """
    __tablename__ = "presence"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # References
    participant_id = Column(
        Integer, ForeignKey('participants.id', ondelete="CASCADE"), nullable=False, unique=True
    )
    session_id = Column(Integer, ForeignKey('sessions.id', ondelete="CASCADE"), nullable=False, index=True)

    # GPS sample
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    heading = Column(Float, nullable=True)  # degrees
    speed = Column(Float, nullable=True)  # m/s
    accuracy = Column(Float, nullable=True)  # meters
    updated_at = Column(DateTime, nullable=False)

    # Delay annotation (present iff delay_kind is set)
    delay_kind = Column(Enum(DelayKind), nullable=True)
    delay_minutes = Column(Integer, nullable=True)
    delay_reported_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Presence(participant_id={self.participant_id}, lat={self.latitude}, lng={self.longitude})>"
