"""
Tests for discovery: peer values, address selection and the registry.
"""

import asyncio
import ipaddress

import pytest

from mmscompanion.discovery.models import Peer, ServiceHandle, first_ipv4
from mmscompanion.discovery.registry import DiscoveryRegistry, BROWSE_TYPE
from mmscompanion.events import CompanionListener

from fakes import FakeBackend, RecordingListener, settle, v4, v6


class TestPeer:
    """Tests for the Peer value type."""

    def test_identity_is_full_tuple(self):
        """Peers are equal only when name, address and port all match."""
        a = Peer("Kitchen", "192.168.1.20", 8080)
        assert a == Peer("Kitchen", "192.168.1.20", 8080)
        assert a != Peer("Kitchen", "192.168.1.20", 8081)
        assert a != Peer("Hall", "192.168.1.20", 8080)
        assert len({a, Peer("Kitchen", "192.168.1.20", 8080)}) == 1

    def test_endpoint(self):
        """Test endpoint rendering."""
        assert Peer("Kitchen", "10.0.0.5", 9000).endpoint == "10.0.0.5:9000"

    def test_immutable(self):
        """Peers cannot be modified after creation."""
        peer = Peer("Kitchen", "10.0.0.5", 9000)
        with pytest.raises(AttributeError):
            peer.port = 1


class TestServiceHandle:
    """Tests for announced service handles."""

    def test_from_fqdn_strips_type(self):
        """Instance name is the fqdn without the service type."""
        handle = ServiceHandle.from_fqdn(f"Living Room.{BROWSE_TYPE}", BROWSE_TYPE)
        assert handle.name == "Living Room"
        assert handle.fqdn == f"Living Room.{BROWSE_TYPE}"
        assert handle.service_type == BROWSE_TYPE

    def test_from_fqdn_unexpected_suffix(self):
        """Names without the type suffix are kept whole."""
        handle = ServiceHandle.from_fqdn("odd-name", BROWSE_TYPE)
        assert handle.name == "odd-name"


class TestFirstIPv4:
    """Tests for address selection."""

    def test_skips_ipv6(self):
        """The first IPv4 entry wins, IPv6 entries are skipped."""
        addresses = [v6("fe80::1"), v4("192.168.1.20"), v4("192.168.1.21")]
        assert first_ipv4(addresses) == "192.168.1.20"

    def test_no_ipv4(self):
        """No IPv4 entry means no address."""
        assert first_ipv4([v6("fe80::1"), v6("2001:db8::2")]) is None
        assert first_ipv4([]) is None

    def test_mixed_representations(self):
        """Strings and ipaddress objects are accepted too."""
        assert first_ipv4(["::1", "10.0.0.7"]) == "10.0.0.7"
        assert first_ipv4([ipaddress.IPv4Address("172.16.0.3")]) == "172.16.0.3"
        assert first_ipv4([bytearray(v4("10.1.2.3"))]) == "10.1.2.3"

    def test_skips_garbage(self):
        """Entries of any other family or shape are skipped."""
        assert first_ipv4([b"\x01\x02", "not-an-ip", 42, v4("10.0.0.9")]) == "10.0.0.9"


class TestDiscoveryRegistry:
    """Tests for the discovery registry."""

    @pytest.mark.asyncio
    async def test_start_discovery_browses_service_type(self):
        """A browse for _mms._tcp in the local domain is started."""
        backend = FakeBackend()
        registry = DiscoveryRegistry(backend)

        await registry.start_discovery()

        assert backend.browses == [("_mms._tcp.local.", 1)]
        assert registry.session_id == 1

    @pytest.mark.asyncio
    async def test_only_first_announcement_is_resolved(self):
        """Instance A then B in one session: only A is resolved and listed."""
        backend = FakeBackend(results={
            "A": ([v4("192.168.1.10")], 8080),
            "B": ([v4("192.168.1.11")], 8080),
        })
        registry = DiscoveryRegistry(backend)
        await registry.start_discovery()

        backend.announce("A")
        backend.announce("B")
        await settle(registry._resolve_task)

        assert backend.resolved == ["A"]
        assert registry.peers == [Peer("A", "192.168.1.10", 8080)]

    @pytest.mark.asyncio
    async def test_peer_uses_first_ipv4(self):
        """The resolved peer carries the first IPv4 address."""
        backend = FakeBackend(results={
            "A": ([v6("fe80::1"), v4("10.0.0.2"), v4("10.0.0.3")], 9000),
        })
        registry = DiscoveryRegistry(backend)
        await registry.start_discovery()

        backend.announce("A")
        await settle(registry._resolve_task)

        assert registry.peers == [Peer("A", "10.0.0.2", 9000)]

    @pytest.mark.asyncio
    async def test_no_ipv4_creates_no_peer(self):
        """IPv6-only resolutions are dropped without an event."""
        backend = FakeBackend(results={"A": ([v6("fe80::1")], 9000)})
        registry = DiscoveryRegistry(backend)
        listener = RecordingListener()
        registry.add_listener(listener)
        await registry.start_discovery()

        backend.announce("A")
        await settle(registry._resolve_task)

        assert registry.peers == []
        assert listener.peer_lists == []

    @pytest.mark.asyncio
    async def test_listener_notified_with_ordered_list(self):
        """Each new peer publishes the whole list in discovery order."""
        backend = FakeBackend(results={
            "A": ([v4("10.0.0.2")], 9000),
            "B": ([v4("10.0.0.3")], 9000),
        })
        registry = DiscoveryRegistry(backend)
        listener = RecordingListener()
        registry.add_listener(listener)

        await registry.start_discovery()
        backend.announce("A")
        await settle(registry._resolve_task)

        await registry.start_discovery()
        backend.announce("B")
        await settle(registry._resolve_task)

        assert listener.peer_lists == [
            [Peer("A", "10.0.0.2", 9000)],
            [Peer("A", "10.0.0.2", 9000), Peer("B", "10.0.0.3", 9000)],
        ]

    @pytest.mark.asyncio
    async def test_duplicate_peer_not_added(self):
        """Resolving the same (name, address, port) again is a no-op."""
        backend = FakeBackend(results={"A": ([v4("10.0.0.2")], 9000)})
        registry = DiscoveryRegistry(backend)
        listener = RecordingListener()
        registry.add_listener(listener)

        for _ in range(3):
            await registry.start_discovery()
            backend.announce("A")
            await settle(registry._resolve_task)

        assert backend.resolved == ["A", "A", "A"]
        assert registry.peers == [Peer("A", "10.0.0.2", 9000)]
        assert len(listener.peer_lists) == 1

    @pytest.mark.asyncio
    async def test_changed_port_is_a_new_peer(self):
        """A different port is a different identity."""
        backend = FakeBackend(results={"A": ([v4("10.0.0.2")], 9000)})
        registry = DiscoveryRegistry(backend)

        await registry.start_discovery()
        backend.announce("A")
        await settle(registry._resolve_task)

        backend.results["A"] = ([v4("10.0.0.2")], 9001)
        await registry.start_discovery()
        backend.announce("A")
        await settle(registry._resolve_task)

        assert registry.peers == [Peer("A", "10.0.0.2", 9000), Peer("A", "10.0.0.2", 9001)]

    @pytest.mark.asyncio
    async def test_restart_keeps_peers_and_resets_choice(self):
        """start_discovery() keeps the list but allows a new first instance."""
        backend = FakeBackend(results={
            "A": ([v4("10.0.0.2")], 9000),
            "B": ([v4("10.0.0.3")], 9000),
        })
        registry = DiscoveryRegistry(backend)
        await registry.start_discovery()
        backend.announce("A")
        await settle(registry._resolve_task)
        assert registry.current_service.name == "A"

        await registry.start_discovery()
        assert registry.current_service is None
        assert registry.peers == [Peer("A", "10.0.0.2", 9000)]

        backend.announce("B")
        await settle(registry._resolve_task)
        assert [p.name for p in registry.peers] == ["A", "B"]
        assert backend.stop_calls == 2

    @pytest.mark.asyncio
    async def test_stale_announcement_ignored(self):
        """Announcements tagged with an old session are dropped."""
        backend = FakeBackend(results={"A": ([v4("10.0.0.2")], 9000)})
        registry = DiscoveryRegistry(backend)
        await registry.start_discovery()
        old_session = backend.session_id
        await registry.start_discovery()

        backend.announce("A", session_id=old_session)
        await settle()

        assert backend.resolved == []
        assert registry.current_service is None

    @pytest.mark.asyncio
    async def test_stale_resolution_ignored(self):
        """A late resolution from a superseded session never adds a peer."""
        backend = FakeBackend(results={"A": ([v4("10.0.0.2")], 9000)}, delay=10)
        registry = DiscoveryRegistry(backend)
        listener = RecordingListener()
        registry.add_listener(listener)
        await registry.start_discovery()
        old_session = backend.session_id

        backend.announce("A")
        await settle()
        pending = registry._resolve_task

        await registry.start_discovery()
        await settle()
        assert pending.cancelled()

        service = ServiceHandle.from_fqdn(f"A.{BROWSE_TYPE}", BROWSE_TYPE)
        registry.on_resolved(old_session, service, [v4("10.0.0.2")], 9000)
        registry.on_error(old_session, service, "late failure")

        assert registry.peers == []
        assert listener.peer_lists == []
        assert listener.errors == []

    @pytest.mark.asyncio
    async def test_resolve_timeout_drops_instance(self):
        """A resolution exceeding the bound is dropped and not retried."""
        backend = FakeBackend(results={"A": ([v4("10.0.0.2")], 9000)}, delay=10)
        registry = DiscoveryRegistry(backend, resolve_timeout=0.05)
        listener = RecordingListener()
        registry.add_listener(listener)
        await registry.start_discovery()

        backend.announce("A")
        await settle(registry._resolve_task)
        backend.announce("A")
        await settle()

        assert registry.peers == []
        assert backend.resolved == ["A"]
        assert len(listener.errors) == 1
        assert "timed out" in listener.errors[0]

    @pytest.mark.asyncio
    async def test_resolve_failure_is_not_fatal(self):
        """Backend errors and unresolved services are reported, not raised."""
        backend = FakeBackend(results={"A": OSError("no route"), "B": None})
        registry = DiscoveryRegistry(backend)
        listener = RecordingListener()
        registry.add_listener(listener)

        await registry.start_discovery()
        backend.announce("A")
        await settle(registry._resolve_task)

        await registry.start_discovery()
        backend.announce("B")
        await settle(registry._resolve_task)

        assert registry.peers == []
        assert len(listener.errors) == 2
        assert "no route" in listener.errors[0]

    @pytest.mark.asyncio
    async def test_browse_failure_is_reported(self):
        """A browse that cannot start produces an error event only."""
        backend = FakeBackend(fail_browse=True)
        registry = DiscoveryRegistry(backend)
        listener = RecordingListener()
        registry.add_listener(listener)

        await registry.start_discovery()

        assert len(listener.errors) == 1
        assert "multicast unavailable" in listener.errors[0]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_registry(self):
        """A listener raising from peers_changed does not stop others."""

        class Broken(CompanionListener):
            def peers_changed(self, peers):
                raise RuntimeError("render failed")

        backend = FakeBackend(results={"A": ([v4("10.0.0.2")], 9000)})
        registry = DiscoveryRegistry(backend)
        listener = RecordingListener()
        registry.add_listener(Broken())
        registry.add_listener(listener)
        await registry.start_discovery()

        backend.announce("A")
        await settle(registry._resolve_task)

        assert registry.peers == [Peer("A", "10.0.0.2", 9000)]
        assert len(listener.peer_lists) == 1

    @pytest.mark.asyncio
    async def test_stop_closes_backend(self):
        """stop() cancels resolution and closes the backend."""
        backend = FakeBackend(results={"A": ([v4("10.0.0.2")], 9000)}, delay=10)
        registry = DiscoveryRegistry(backend)
        await registry.start_discovery()
        backend.announce("A")
        await settle()
        pending = registry._resolve_task

        await registry.stop()
        await settle()

        assert backend.closed
        assert pending.cancelled()
