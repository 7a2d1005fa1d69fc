"""
WebSocket stream connection.

One StreamConnection is one connect attempt to one peer. It runs a
background task that connects with aiohttp, pumps frames into a
StreamSink and reports exactly one on_close() when the attempt ends,
whatever the cause.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import aiohttp
from aiohttp import WSCloseCode

from ..config import DEFAULT_CONNECT_TIMEOUT

logger = logging.getLogger(__name__)


class CloseKind(Enum):
    """Why a stream ended. Used for reporting only."""
    CLEAN = "clean"
    PROTOCOL = "protocol"
    TRANSPORT = "transport"


@dataclass(frozen=True)
class CloseReason:
    """Classified cause of a closed stream."""
    kind: CloseKind
    message: str = ""
    code: Optional[int] = None

    @classmethod
    def clean(cls, message: str = "closed") -> "CloseReason":
        return cls(CloseKind.CLEAN, message)

    @classmethod
    def protocol(cls, message: str, code: Optional[int] = None) -> "CloseReason":
        return cls(CloseKind.PROTOCOL, message, code)

    @classmethod
    def transport(cls, message: str, code: Optional[int] = None) -> "CloseReason":
        return cls(CloseKind.TRANSPORT, message, code)

    @property
    def is_error(self) -> bool:
        return self.kind is not CloseKind.CLEAN

    def __str__(self) -> str:
        if self.code is not None:
            return f"{self.message} (code {self.code})"
        return self.message


NORMAL_CLOSE_CODES = {WSCloseCode.OK, WSCloseCode.GOING_AWAY}


def classify_close(code: Optional[int], requested: bool = False) -> CloseReason:
    """Classify a finished stream from its close code."""
    if requested:
        return CloseReason.clean("closed by client")
    if code is None or code in NORMAL_CLOSE_CODES:
        return CloseReason.clean("closed by peer")
    if code == WSCloseCode.ABNORMAL_CLOSURE:
        return CloseReason.transport("connection lost", code)
    return CloseReason.protocol("closed by peer with error", code)


class StreamSink(ABC):
    """Receives stream callbacks."""

    @abstractmethod
    def on_open(self) -> None:
        pass

    @abstractmethod
    def on_close(self, reason: CloseReason) -> None:
        pass

    @abstractmethod
    def on_message(self, text: str) -> None:
        pass

    @abstractmethod
    def on_binary(self, data: bytes) -> None:
        pass


class StreamConnection:
    """
    A single WebSocket session.

    open() and close() only schedule work; results arrive through the sink.
    """

    def __init__(
        self,
        url: str,
        sink: StreamSink,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        heartbeat: Optional[float] = None,
    ):
        self.url = url
        self.connect_timeout = connect_timeout
        self.heartbeat = heartbeat
        self._sink = sink
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None
        self._close_requested = False
        self._close_reported = False

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    def open(self) -> None:
        """Start connecting in the background."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run())
        self._task.add_done_callback(self._on_task_done)

    def close(self) -> None:
        """Request closure without waiting for it."""
        if self._close_requested:
            return
        self._close_requested = True

        if self._ws is not None and not self._ws.closed:
            self._close_task = asyncio.create_task(self._ws.close())
        elif self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the background task has finished."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        reason = CloseReason.clean()
        session = aiohttp.ClientSession()
        try:
            self._ws = await asyncio.wait_for(
                session.ws_connect(self.url, heartbeat=self.heartbeat),
                timeout=self.connect_timeout,
            )
            self._sink.on_open()
            reason = await self._receive_loop()
        except asyncio.CancelledError:
            reason = CloseReason.clean("connect cancelled")
        except asyncio.TimeoutError:
            reason = CloseReason.transport(f"connect timed out after {self.connect_timeout}s")
        except aiohttp.WSServerHandshakeError as e:
            reason = CloseReason.protocol(f"handshake rejected: {e.message}", e.status)
        except (aiohttp.ClientError, OSError) as e:
            reason = CloseReason.transport(str(e) or e.__class__.__name__)
        except Exception as e:
            logger.error(f"Unexpected stream error on {self.url}: {e}", exc_info=True)
            reason = CloseReason.transport(str(e) or e.__class__.__name__)
        finally:
            if self._close_task is not None:
                await asyncio.gather(self._close_task, return_exceptions=True)
            if self._ws is not None and not self._ws.closed:
                await self._ws.close()
            await session.close()
            self._report_close(reason)

    def _on_task_done(self, task: asyncio.Task) -> None:
        # A task cancelled before its first step never reaches _run's finally
        self._report_close(CloseReason.clean("connect cancelled"))

    def _report_close(self, reason: CloseReason) -> None:
        if self._close_reported:
            return
        self._close_reported = True
        self._sink.on_close(reason)

    async def _receive_loop(self) -> CloseReason:
        ws = self._ws
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self._sink.on_message(msg.data)
            elif msg.type == aiohttp.WSMsgType.BINARY:
                self._sink.on_binary(msg.data)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                if self._close_requested:
                    break
                error = ws.exception()
                return CloseReason.transport(str(error) if error else "stream error", ws.close_code)

        return classify_close(ws.close_code, self._close_requested)
