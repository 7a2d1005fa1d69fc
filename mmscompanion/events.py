"""
Presentation callback surface.

The UI layer (the CLI in this package, or any other front end) subclasses
CompanionListener and overrides the events it cares about. Discovery and
stream components fan events out through dispatch(), which keeps a failing
listener from unwinding into network callbacks.
"""

import logging
from typing import TYPE_CHECKING, Iterable, List

if TYPE_CHECKING:
    from .discovery.models import Peer
    from .stream.connection import CloseReason
    from .stream.messages import LocationUpdate

logger = logging.getLogger(__name__)


class CompanionListener:
    """Receives discovery and stream events. All methods default to no-ops."""

    def peers_changed(self, peers: List["Peer"]) -> None:
        pass

    def discovery_error(self, message: str) -> None:
        pass

    def connection_opened(self, peer: "Peer") -> None:
        pass

    def connection_closed(self, reason: "CloseReason") -> None:
        """The stream is gone; the user should choose a peer again."""
        pass

    def location_update(self, update: "LocationUpdate") -> None:
        pass


def dispatch(listeners: Iterable[CompanionListener], event: str, *args) -> None:
    """Call ``event`` on every listener, logging listener failures."""
    for listener in list(listeners):
        try:
            getattr(listener, event)(*args)
        except Exception as e:
            logger.error(f"Listener error in {event}: {e}", exc_info=True)
