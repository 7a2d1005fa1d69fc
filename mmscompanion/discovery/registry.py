"""
Discovery registry.

Browses for the companion service type, pursues only the first announced
instance of each browse session, resolves it to an IPv4 endpoint and
publishes the result in an insertion-ordered, duplicate-free peer list.

All state lives on the event loop. Each call to start_discovery() opens a
new session; callbacks tagged with an older session id are dropped.
"""

import asyncio
import logging
from typing import Iterable, List, Optional

from ..config import DEFAULT_RESOLVE_TIMEOUT
from ..events import CompanionListener, dispatch
from .backend import DiscoveryBackend, DiscoverySink
from .models import Address, Peer, ServiceHandle, first_ipv4

logger = logging.getLogger(__name__)

BROWSE_TYPE = "_mms._tcp.local."


class DiscoveryRegistry(DiscoverySink):
    """
    Keeps the list of discovered peers.

    Usage:
        registry = DiscoveryRegistry(ZeroconfBackend())
        registry.add_listener(my_listener)
        await registry.start_discovery()
        # ... my_listener.peers_changed(peers) fires as peers resolve ...
        await registry.stop()
    """

    def __init__(
        self,
        backend: DiscoveryBackend,
        browse_type: str = BROWSE_TYPE,
        resolve_timeout: float = DEFAULT_RESOLVE_TIMEOUT,
    ):
        self.backend = backend
        self.browse_type = browse_type
        self.resolve_timeout = resolve_timeout

        self._peers: List[Peer] = []
        self._listeners: List[CompanionListener] = []
        self._session_id = 0
        self._current: Optional[ServiceHandle] = None
        self._resolve_task: Optional[asyncio.Task] = None

    @property
    def peers(self) -> List[Peer]:
        """Snapshot of the peer list in discovery order."""
        return list(self._peers)

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def current_service(self) -> Optional[ServiceHandle]:
        """The service being (or already) resolved in this session."""
        return self._current

    def add_listener(self, listener: CompanionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: CompanionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def start_discovery(self) -> None:
        """
        Start a fresh browse session.

        Forgets the service chosen by the previous session (the peer list
        is kept), abandons its resolution and restarts the browse. Safe to
        call repeatedly.
        """
        self._session_id += 1
        self._current = None
        self._cancel_resolution()

        try:
            await self.backend.stop_browse()
            await self.backend.start_browse(self.browse_type, self._session_id, self)
        except Exception as e:
            logger.warning(f"Failed to start browsing for {self.browse_type}: {e}")
            dispatch(self._listeners, "discovery_error", f"Browse failed: {e}")

    async def stop(self) -> None:
        """Stop browsing and release the backend."""
        self._session_id += 1
        self._current = None
        self._cancel_resolution()
        try:
            await self.backend.close()
        except Exception as e:
            logger.warning(f"Error while stopping discovery: {e}")

    def _cancel_resolution(self) -> None:
        if self._resolve_task is not None and not self._resolve_task.done():
            self._resolve_task.cancel()
        self._resolve_task = None

    def _is_stale(self, session_id: int) -> bool:
        return session_id != self._session_id

    # DiscoverySink

    def on_found(self, session_id: int, service: ServiceHandle) -> None:
        logger.info("Discovered the service")
        logger.info(f"- name: {service.name}")
        logger.info(f"- type: {service.service_type}")

        if self._is_stale(session_id):
            logger.debug(f"Ignoring announcement from stale session {session_id}")
            return

        # Only the first announced instance of a session is pursued
        if self._current is not None:
            return

        self._current = service
        self._resolve_task = asyncio.create_task(self._resolve(session_id, service))

    async def _resolve(self, session_id: int, service: ServiceHandle) -> None:
        try:
            result = await asyncio.wait_for(
                self.backend.resolve(service, self.resolve_timeout),
                timeout=self.resolve_timeout,
            )
        except asyncio.TimeoutError:
            self.on_error(session_id, service, f"timed out after {self.resolve_timeout}s")
            return
        except Exception as e:
            self.on_error(session_id, service, str(e))
            return

        if result is None:
            self.on_error(session_id, service, "service did not resolve")
            return

        addresses, port = result
        self.on_resolved(session_id, service, addresses, port)

    def on_resolved(
        self,
        session_id: int,
        service: ServiceHandle,
        addresses: Iterable[Address],
        port: int,
    ) -> None:
        if self._is_stale(session_id):
            logger.debug(f"Ignoring resolution of {service.name} from stale session {session_id}")
            return

        addresses = list(addresses)
        logger.info("Resolved service")
        logger.info(f"- addresses: {addresses}")
        logger.info(f"- port: {port}")

        ip = first_ipv4(addresses)
        if ip is None:
            logger.info("- Did not find IPv4 address")
            return
        logger.info(f"- IPv4: {ip}")

        peer = Peer(name=service.name, address=ip, port=port)
        if peer in self._peers:
            return

        self._peers.append(peer)
        dispatch(self._listeners, "peers_changed", self.peers)

    def on_error(self, session_id: int, service: Optional[ServiceHandle], message: str) -> None:
        if self._is_stale(session_id):
            return

        target = service.name if service else self.browse_type
        logger.warning(f"Discovery error for {target}: {message}")
        dispatch(self._listeners, "discovery_error", f"{target}: {message}")
