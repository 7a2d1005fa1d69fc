"""
Companion application shell.

Wires the discovery registry and the stream client to the presentation
listeners and exposes the user actions: pick a peer, disconnect, browse
again.
"""

import logging
from typing import List, Optional

from .config import Config, get_config
from .discovery.backend import DiscoveryBackend
from .discovery.models import Peer
from .discovery.registry import DiscoveryRegistry
from .discovery.zeroconf_backend import ZeroconfBackend
from .events import CompanionListener
from .stream.client import ConnectionState, StreamClient

logger = logging.getLogger(__name__)


class Companion:
    """
    Discovery feeding a single stream connection.

    Usage:
        companion = Companion()
        companion.add_listener(ui)
        await companion.start()
        companion.select_peer(companion.peers[0])
        ...
        await companion.stop()
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        backend: Optional[DiscoveryBackend] = None,
        client: Optional[StreamClient] = None,
    ):
        self.config = config or get_config()
        self.registry = DiscoveryRegistry(
            backend or ZeroconfBackend(),
            browse_type=self.config.browse_type,
            resolve_timeout=self.config.resolve_timeout,
        )
        self.client = client or StreamClient(
            scheme=self.config.stream_scheme,
            connect_timeout=self.config.connect_timeout,
            heartbeat=self.config.heartbeat,
        )

    @property
    def peers(self) -> List[Peer]:
        return self.registry.peers

    @property
    def state(self) -> ConnectionState:
        return self.client.state

    def add_listener(self, listener: CompanionListener) -> None:
        self.registry.add_listener(listener)
        self.client.add_listener(listener)

    def remove_listener(self, listener: CompanionListener) -> None:
        self.registry.remove_listener(listener)
        self.client.remove_listener(listener)

    async def start(self) -> None:
        """Begin (or restart) discovery."""
        await self.registry.start_discovery()

    async def stop(self) -> None:
        self.client.disconnect()
        connection = self.client.connection
        if connection is not None:
            await connection.wait_closed()
        await self.registry.stop()

    def select_peer(self, peer: Peer) -> bool:
        """Connect to a chosen peer. No-op while a stream is live."""
        return self.client.connect(peer)

    def select_peer_at(self, index: int) -> Optional[Peer]:
        """
        Connect to the peer at a row of the peer list.

        Returns:
            The selected peer, or None if the row is out of range
        """
        peers = self.registry.peers
        if not 0 <= index < len(peers):
            logger.debug(f"Ignoring selection of row {index} ({len(peers)} peers)")
            return None

        peer = peers[index]
        self.select_peer(peer)
        return peer

    def find_peer(self, name: str) -> Optional[Peer]:
        """First peer whose instance name matches ``name``."""
        for peer in self.registry.peers:
            if peer.name == name:
                return peer
        return None

    def disconnect(self) -> None:
        self.client.disconnect()
