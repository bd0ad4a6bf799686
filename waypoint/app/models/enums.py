"""
Engine enumerations.

Session lifecycle, delay kinds, and the structured reasons returned by the
location gate and the route staleness policy.
"""

import enum


class SessionStatus(str, enum.Enum):
    """Session lifecycle status."""
    ACTIVE = "active"
    ENDED = "ended"


class DelayKind(str, enum.Enum):
    """
    Self-declared slowdown kinds.

    Closed set; a coordination signal only, never an ETA input.
    """
    TRAFFIC = "traffic"
    BLOCKED = "blocked"
    SLOW = "slow"
    OTHER = "other"


class RejectionReason(str, enum.Enum):
    """Why a location sample was not accepted (soft rejection)."""
    LOW_ACCURACY = "LowAccuracy"
    IMPOSSIBLE_SPEED = "ImpossibleSpeed"


class RecomputeReason(str, enum.Enum):
    """Route recomputation triggers, in evaluation order."""
    NO_ROUTE = "no_route"
    DESTINATION_CHANGED = "destination_changed"
    DRIFT = "drift"
    TIME_STALE = "time_stale"
