"""Live client connections.

``send`` never blocks: it hands the message to the connection and returns.
The WebSocket implementation queues outbound messages and a writer task
drains the queue, so emitting from synchronous code is safe.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from dispatch.identity import Principal

logger = structlog.get_logger(__name__)


class ConnectionClosed(Exception):
    """The connection can no longer accept messages."""


class Connection(ABC):
    """A client attached to the broadcast hub."""

    def __init__(self, connection_id: str | None = None) -> None:
        self.id = connection_id or uuid4().hex
        self.principal: Principal | None = None
        self.rooms: set[str] = set()
        self.closed = False

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None

    @abstractmethod
    def send(self, event: str, data) -> None:
        """Hand one message to the client. Raises ``ConnectionClosed``."""
        ...

    async def close(self, timeout: float = 5.0) -> None:
        self.closed = True


class MemoryConnection(Connection):
    """Records outbound messages. Used by tests and local tooling."""

    def __init__(self, connection_id: str | None = None) -> None:
        super().__init__(connection_id)
        self.sent: list[tuple[str, dict]] = []
        self.should_fail = False

    def send(self, event: str, data) -> None:
        if self.closed or self.should_fail:
            raise ConnectionClosed(self.id)
        self.sent.append((event, data))

    def received(self, event: str) -> list:
        """Payloads of every message sent under ``event``."""
        return [data for name, data in self.sent if name == event]


class WebSocketConnection(Connection):
    """A WebSocket client with its own outbound queue and writer task."""

    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        super().__init__(connection_id)
        self.websocket = websocket
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._writer: asyncio.Task | None = None

    def start(self) -> None:
        self._writer = self._loop.create_task(self._drain())

    def send(self, event: str, data) -> None:
        if self.closed:
            raise ConnectionClosed(self.id)
        envelope = json.dumps({"event": event, "data": data}, default=str)
        self._loop.call_soon_threadsafe(self._queue.put_nowait, envelope)

    async def _drain(self) -> None:
        while True:
            envelope = await self._queue.get()
            if envelope is None:
                break
            try:
                await self.websocket.send_text(envelope)
            except (WebSocketDisconnect, RuntimeError) as exc:
                logger.info("WebSocket writer stopped", connection_id=self.id, reason=repr(exc))
                self.closed = True
                break

    async def close(self, timeout: float = 5.0) -> None:
        """Stop accepting messages and wait for the queue to drain."""
        if self.closed and self._writer is None:
            return
        self.closed = True
        self._queue.put_nowait(None)
        if self._writer is None:
            return
        try:
            await asyncio.wait_for(self._writer, timeout)
        except TimeoutError:
            logger.warning("WebSocket queue not drained before timeout", connection_id=self.id)
            self._writer.cancel()
        self._writer = None
