"""
Session database model.

A session is the bounded, time-limited coordination context every
participant, presence row and cached route belongs to.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum
from waypoint.app.db.session import Base
from waypoint.app.models.enums import SessionStatus


class GroupSession(Base):
    """
    Session model.

    Holds the shareable join code, the optional shared destination and the
    lifecycle window. The destination is present only when both coordinate
    columns are set.
    """
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    code = Column(String(6), nullable=False, unique=True, index=True)

    status = Column(Enum(SessionStatus), default=SessionStatus.ACTIVE, nullable=False, index=True)

    # Shared destination
    destination_latitude = Column(Float, nullable=True)
    destination_longitude = Column(Float, nullable=True)
    destination_name = Column(String(255), nullable=True)
    destination_updated_at = Column(DateTime, nullable=True)

    # Lifecycle (naive UTC)
    created_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    @property
    def has_destination(self) -> bool:
        return self.destination_latitude is not None and self.destination_longitude is not None

    def __repr__(self):
        return f"<GroupSession(id={self.id}, code='{self.code}', status='{self.status.value}')>"
