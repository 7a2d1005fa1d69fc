"""
Inbound stream payloads.

Text frames carry JSON records. A record holding numeric ``lat`` and
``lng`` fields is a location update; anything else is tolerated and
dropped.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)


class CoordinatePayload(BaseModel):
    """Wire shape of a location record. Extra keys are allowed."""
    model_config = ConfigDict(strict=True, extra="allow", allow_inf_nan=False)

    lat: float
    lng: float


@dataclass(frozen=True)
class LocationUpdate:
    """A coordinate in decimal degrees."""
    latitude: float
    longitude: float


def decode_location(text: str) -> Optional[LocationUpdate]:
    """
    Decode a text frame.

    Returns:
        LocationUpdate if the frame is a JSON object with numeric
        lat/lng, otherwise None (malformed frames are logged)
    """
    try:
        record = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Dropping malformed message: {e}")
        return None

    if not isinstance(record, dict):
        logger.info(f"Received text: {text}")
        return None

    try:
        payload = CoordinatePayload.model_validate(record)
    except ValidationError:
        logger.info(f"Received json: {record}")
        return None

    update = LocationUpdate(latitude=float(payload.lat), longitude=float(payload.lng))
    logger.info(f"Received coordinates: ({update.longitude}, {update.latitude})")
    return update
