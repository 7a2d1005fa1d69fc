"""
Local network discovery for the companion.

Provides:
- Peer and ServiceHandle value types
- DiscoveryRegistry, the ordered peer list fed by browsing
- ZeroconfBackend, the mDNS/DNS-SD substrate
"""

from .models import Peer, ServiceHandle, first_ipv4
from .backend import DiscoveryBackend, DiscoverySink
from .registry import DiscoveryRegistry, BROWSE_TYPE
from .zeroconf_backend import ZeroconfBackend

__all__ = [
    "Peer",
    "ServiceHandle",
    "first_ipv4",
    "DiscoveryBackend",
    "DiscoverySink",
    "DiscoveryRegistry",
    "BROWSE_TYPE",
    "ZeroconfBackend",
]
