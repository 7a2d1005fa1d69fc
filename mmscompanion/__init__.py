"""
MediaMetaStream Companion

Finds a MediaMetaStream service on the local network over mDNS, opens a
WebSocket stream to it and follows the coordinates it publishes.

Example:
    >>> from mmscompanion import Companion
    >>> companion = Companion()
    >>> await companion.start()
    >>> companion.select_peer_at(0)
"""

__version__ = "1.0.0"

from .config import Config, get_config
from .companion import Companion
from .discovery import Peer, DiscoveryRegistry, ZeroconfBackend
from .events import CompanionListener
from .stream import StreamClient, ConnectionState, CloseReason, LocationUpdate

__all__ = [
    "__version__",
    "Config",
    "get_config",
    "Companion",
    "Peer",
    "DiscoveryRegistry",
    "ZeroconfBackend",
    "CompanionListener",
    "StreamClient",
    "ConnectionState",
    "CloseReason",
    "LocationUpdate",
]
