"""
Discovery substrate interfaces.

A DiscoveryBackend browses the network and resolves services; it reports
announcements to a DiscoverySink. Every callback carries the browse session
id it was started with so the sink can drop callbacks from superseded
sessions.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional, Sequence, Tuple

from .models import Address, ServiceHandle

ResolveResult = Tuple[Sequence[Address], int]


class DiscoverySink(ABC):
    """Receives discovery callbacks."""

    @abstractmethod
    def on_found(self, session_id: int, service: ServiceHandle) -> None:
        """A service instance was announced."""
        pass

    @abstractmethod
    def on_resolved(
        self,
        session_id: int,
        service: ServiceHandle,
        addresses: Iterable[Address],
        port: int,
    ) -> None:
        """A service instance was resolved to addresses and a port."""
        pass

    @abstractmethod
    def on_error(self, session_id: int, service: Optional[ServiceHandle], message: str) -> None:
        """Browsing or resolution failed."""
        pass


class DiscoveryBackend(ABC):
    """Abstract base for service browsing substrates."""

    @abstractmethod
    async def start_browse(self, browse_type: str, session_id: int, sink: DiscoverySink) -> None:
        """
        Begin browsing for ``browse_type``, replacing any running browse.

        Announcements are delivered with ``sink.on_found(session_id, ...)``
        on the event loop that called this method.
        """
        pass

    @abstractmethod
    async def stop_browse(self) -> None:
        """Stop the running browse, if any."""
        pass

    @abstractmethod
    async def resolve(self, service: ServiceHandle, timeout: float) -> Optional[ResolveResult]:
        """
        Resolve a service.

        Returns:
            (addresses, port), or None if the service could not be resolved
        """
        pass

    async def close(self) -> None:
        """Release backend resources."""
        await self.stop_browse()
