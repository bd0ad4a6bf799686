"""
Request dependencies for FastAPI.

The engine has no authentication beyond a stable per-device pseudo-identity.
It is read from the X-Device-ID header once per request and handed to the
services as an explicit DeviceIdentity value.
"""

from dataclasses import dataclass
from typing import Optional
from fastapi import Header
from waypoint.app.core.exceptions import MissingDeviceIdentityError


@dataclass(frozen=True)
class DeviceIdentity:
    """Resolved device identity for the current request."""
    device_id: str


async def get_device_identity(
    x_device_id: Optional[str] = Header(None, alias="X-Device-ID")
) -> DeviceIdentity:
    """
    FastAPI dependency resolving the caller's device identity.

    Raises:
        MissingDeviceIdentityError: 401 if the header is missing or blank
    """
    if x_device_id is None or not x_device_id.strip():
        raise MissingDeviceIdentityError()
    return DeviceIdentity(device_id=x_device_id.strip())
