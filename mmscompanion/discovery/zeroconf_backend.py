"""
mDNS/DNS-SD backend built on python-zeroconf.

Browses with AsyncServiceBrowser and resolves with AsyncServiceInfo.
Browser handlers are marshalled onto the event loop that started the
browse, so the registry only ever sees callbacks on its own loop.
"""

import asyncio
import logging
from typing import Optional

from zeroconf import IPVersion, ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from .backend import DiscoveryBackend, DiscoverySink, ResolveResult
from .models import ServiceHandle

logger = logging.getLogger(__name__)


class ZeroconfBackend(DiscoveryBackend):
    """
    Browse-only zeroconf backend. Never registers a service.

    Usage:
        backend = ZeroconfBackend()
        await backend.start_browse("_mms._tcp.local.", 1, sink)
        ...
        await backend.close()
    """

    def __init__(self, zeroconf: Optional[AsyncZeroconf] = None):
        self._zeroconf = zeroconf
        self._owns_zeroconf = zeroconf is None
        self._browser: Optional[AsyncServiceBrowser] = None

    def _ensure_zeroconf(self) -> AsyncZeroconf:
        if self._zeroconf is None:
            self._zeroconf = AsyncZeroconf(ip_version=IPVersion.All)
        return self._zeroconf

    async def start_browse(self, browse_type: str, session_id: int, sink: DiscoverySink) -> None:
        await self.stop_browse()

        aiozc = self._ensure_zeroconf()
        loop = asyncio.get_running_loop()

        def on_service_state_change(
            zeroconf: Zeroconf,
            service_type: str,
            name: str,
            state_change: ServiceStateChange,
        ) -> None:
            if state_change is not ServiceStateChange.Added:
                return
            service = ServiceHandle.from_fqdn(name, service_type)
            loop.call_soon_threadsafe(sink.on_found, session_id, service)

        logger.info("Search about to begin")
        self._browser = AsyncServiceBrowser(
            aiozc.zeroconf,
            browse_type,
            handlers=[on_service_state_change],
        )

    async def stop_browse(self) -> None:
        if self._browser is None:
            return
        browser, self._browser = self._browser, None
        await browser.async_cancel()
        logger.info("Search stopped")

    async def resolve(self, service: ServiceHandle, timeout: float) -> Optional[ResolveResult]:
        aiozc = self._ensure_zeroconf()
        info = AsyncServiceInfo(service.service_type, service.fqdn)

        if not await info.async_request(aiozc.zeroconf, int(timeout * 1000)):
            return None
        if info.port is None:
            return None

        return info.addresses_by_version(IPVersion.All), info.port

    async def close(self) -> None:
        await self.stop_browse()
        if self._zeroconf is not None and self._owns_zeroconf:
            await self._zeroconf.async_close()
            self._zeroconf = None
