"""
Stream client.

Owns at most one StreamConnection at a time and turns its callbacks into
state changes and listener events. There is no reconnect logic: when a
stream ends the client goes back to IDLE and listeners are told to offer
peer selection again.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

from ..config import DEFAULT_CONNECT_TIMEOUT, DEFAULT_STREAM_SCHEME
from ..discovery.models import Peer
from ..events import CompanionListener, dispatch
from .connection import CloseKind, CloseReason, StreamConnection, StreamSink
from .messages import decode_location

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle of the single stream connection."""
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"  # transient, collapses to IDLE


ConnectionFactory = Callable[..., StreamConnection]


class StreamClient(StreamSink):
    """
    Single-connection WebSocket client.

    Usage:
        client = StreamClient()
        client.add_listener(my_listener)
        client.connect(peer)      # returns immediately
        ...
        client.disconnect()
    """

    def __init__(
        self,
        scheme: str = DEFAULT_STREAM_SCHEME,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        heartbeat: Optional[float] = None,
        connection_factory: ConnectionFactory = StreamConnection,
    ):
        self.scheme = scheme
        self.connect_timeout = connect_timeout
        self.heartbeat = heartbeat
        self._connection_factory = connection_factory

        self._connection: Optional[StreamConnection] = None
        self._state = ConnectionState.IDLE
        self._peer: Optional[Peer] = None
        self._listeners: List[CompanionListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def peer(self) -> Optional[Peer]:
        """Peer of the current connection, if any."""
        return self._peer

    @property
    def connection(self) -> Optional[StreamConnection]:
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.OPEN

    def add_listener(self, listener: CompanionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: CompanionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def url_for(self, peer: Peer) -> str:
        return f"{self.scheme}://{peer.address}:{peer.port}"

    def connect(self, peer: Peer) -> bool:
        """
        Open a stream to ``peer`` unless one is already live.

        A connection that is connecting or open blocks the request; call
        disconnect() first to switch peers.

        Returns:
            True if a new connection attempt was started
        """
        if self._connection is not None and (
            self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN)
            or self._connection.is_connected
        ):
            logger.debug(f"Already connected, ignoring connect to {peer.endpoint}")
            return False

        url = self.url_for(peer)
        self._peer = peer
        self._state = ConnectionState.CONNECTING
        self._connection = self._connection_factory(
            url,
            self,
            connect_timeout=self.connect_timeout,
            heartbeat=self.heartbeat,
        )
        logger.info(f"Connecting to {peer.name} at {url}")
        self._connection.open()
        return True

    def disconnect(self) -> None:
        """Ask the current connection to close. Does not wait."""
        if self._connection is None:
            return
        logger.info("Disconnect requested")
        self._connection.close()

    # StreamSink

    def on_open(self) -> None:
        self._state = ConnectionState.OPEN
        logger.info("websocket is connected")
        dispatch(self._listeners, "connection_opened", self._peer)

    def on_close(self, reason: CloseReason) -> None:
        if reason.kind is CloseKind.CLEAN:
            logger.info(f"websocket disconnected: {reason}")
        else:
            logger.warning(f"websocket is disconnected: {reason}")

        self._connection = None
        self._peer = None
        self._state = ConnectionState.IDLE

        dispatch(self._listeners, "connection_closed", reason)

    def on_message(self, text: str) -> None:
        logger.debug(f"Received text: {text}")
        update = decode_location(text)
        if update is not None:
            dispatch(self._listeners, "location_update", update)

    def on_binary(self, data: bytes) -> None:
        logger.info(f"Received data: {len(data)}")
