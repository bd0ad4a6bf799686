"""
Route cache database model.

Cached geometry and ETA from the external routing engine, one row per
participant.
"""

from sqlalchemy import Column, Integer, Float, Text, ForeignKey, DateTime
from waypoint.app.db.session import Base


class Route(Base):
    """
    Route model.

    Stores the origin and destination the route was computed against so
    drift and destination changes can be detected at read time.
    """
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # References
    participant_id = Column(
        Integer, ForeignKey('participants.id', ondelete="CASCADE"), nullable=False, unique=True
    )
    session_id = Column(Integer, ForeignKey('sessions.id', ondelete="CASCADE"), nullable=False, index=True)

    # Opaque to the engine (GeoJSON produced by the routing engine)
    geometry = Column(Text, nullable=False)
    distance_meters = Column(Float, nullable=False)
    duration_seconds = Column(Float, nullable=False)

    # Computation inputs
    origin_latitude = Column(Float, nullable=False)
    origin_longitude = Column(Float, nullable=False)
    destination_latitude = Column(Float, nullable=False)
    destination_longitude = Column(Float, nullable=False)
    computed_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<Route(participant_id={self.participant_id}, distance={self.distance_meters}, eta={self.duration_seconds})>"
