"""
WebSocket stream to a selected peer.

Provides:
- StreamClient, the single-connection owner
- StreamConnection, one aiohttp WebSocket session
- LocationUpdate decoding of inbound frames
"""

from .connection import (
    CloseKind,
    CloseReason,
    StreamConnection,
    StreamSink,
    classify_close,
)
from .client import ConnectionState, StreamClient
from .messages import LocationUpdate, decode_location

__all__ = [
    "CloseKind",
    "CloseReason",
    "StreamConnection",
    "StreamSink",
    "classify_close",
    "ConnectionState",
    "StreamClient",
    "LocationUpdate",
    "decode_location",
]
