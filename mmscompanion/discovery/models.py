"""
Discovery data types.
"""

import ipaddress
from dataclasses import dataclass
from typing import Iterable, Optional, Union

Address = Union[bytes, str, ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True)
class Peer:
    """A resolved service instance. Identity is (name, address, port)."""
    name: str
    address: str  # dotted-quad IPv4
    port: int

    @property
    def endpoint(self) -> str:
        return f"{self.address}:{self.port}"


@dataclass(frozen=True)
class ServiceHandle:
    """An announced, not yet resolved, service instance."""
    name: str
    service_type: str
    fqdn: str

    @classmethod
    def from_fqdn(cls, fqdn: str, service_type: str) -> "ServiceHandle":
        """Build a handle from e.g. ``Kitchen._mms._tcp.local.``"""
        suffix = f".{service_type}"
        name = fqdn[:-len(suffix)] if fqdn.endswith(suffix) else fqdn
        return cls(name=name, service_type=service_type, fqdn=fqdn)


def first_ipv4(addresses: Iterable[Address]) -> Optional[str]:
    """
    Pick the first IPv4 entry from a resolved address set.

    Entries may be packed addresses (4 or 16 bytes), strings or
    ipaddress objects. IPv6 and undecodable entries are skipped.

    Returns:
        Dotted-quad string, or None if the set holds no IPv4 address
    """
    for addr in addresses:
        if isinstance(addr, ipaddress.IPv4Address):
            return str(addr)
        if isinstance(addr, (bytes, bytearray, str)):
            try:
                parsed = ipaddress.ip_address(bytes(addr) if isinstance(addr, bytearray) else addr)
            except ValueError:
                continue
            if parsed.version == 4:
                return str(parsed)
    return None
