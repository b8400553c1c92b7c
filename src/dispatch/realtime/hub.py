"""Real-time broadcast hub.

Clients connect over a socket, join rooms named after orders, partners and
restaurants, and receive whatever the services emit to those rooms. Delivery
partners also push location pings through the hub; a ping is relayed to the
order room only after checking that the sender holds the order (or is an
admin).

The hub is constructed explicitly and handed to everything that emits. It
must be started with ``init()`` before any route is registered and stopped
with ``shutdown()``, which drains every connection's outbound queue.

Delivery is best-effort. ``emit`` reports what happened in an ``Emission``
and never raises for delivery problems.
"""

import math
import threading
import time
from collections import defaultdict
from dataclasses import dataclass

import structlog
from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError

from dispatch.identity import Role, TokenVerifier
from dispatch.order.order import Order
from dispatch.realtime.connection import Connection, ConnectionClosed
from dispatch.realtime.rooms import order_room

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Emission:
    """Result of one emit to a room."""

    room: str
    event: str
    recipients: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _is_number(value) -> bool:
    # bool is an int subclass; true/false are not coordinates
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value)


class BroadcastHub:
    def __init__(self, domain: Domain, verifier: TokenVerifier) -> None:
        self.domain = domain
        self.verifier = verifier
        self._rooms: dict[str, set[Connection]] = defaultdict(set)
        self._connections: dict[str, Connection] = {}
        self._lock = threading.RLock()
        self._running = False

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    @property
    def is_running(self) -> bool:
        return self._running

    def init(self) -> None:
        self._running = True
        logger.info("Broadcast hub started")

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Stop emitting, drain outbound queues and drop every connection."""
        with self._lock:
            self._running = False
            connections = list(self._connections.values())
            self._connections.clear()
            self._rooms.clear()

        for connection in connections:
            await connection.close(timeout=timeout)
            connection.rooms.clear()
        logger.info("Broadcast hub stopped", connections_closed=len(connections))

    # -------------------------------------------------------------------
    # Connections and rooms
    # -------------------------------------------------------------------
    def connect(self, connection: Connection, token: str | None = None) -> Connection:
        """Attach a client. A missing or bad token leaves it unauthenticated."""
        connection.principal = self.verifier.identify(token)
        with self._lock:
            self._connections[connection.id] = connection

        logger.info(
            "Client connected",
            connection_id=connection.id,
            user_id=connection.principal.id if connection.principal else None,
            authenticated=connection.is_authenticated,
        )
        return connection

    def disconnect(self, connection: Connection) -> None:
        with self._lock:
            self._connections.pop(connection.id, None)
            for room in connection.rooms:
                members = self._rooms.get(room)
                if members is not None:
                    members.discard(connection)
                    if not members:
                        del self._rooms[room]
            connection.rooms.clear()
        logger.info("Client disconnected", connection_id=connection.id)

    def join(self, connection: Connection, room: str) -> None:
        with self._lock:
            self._rooms[room].add(connection)
            connection.rooms.add(room)
        logger.debug("Joined room", connection_id=connection.id, room=room)
        self._acknowledge(connection, "room:joined", room)

    def leave(self, connection: Connection, room: str) -> None:
        with self._lock:
            members = self._rooms.get(room)
            if members is not None:
                members.discard(connection)
                if not members:
                    del self._rooms[room]
            connection.rooms.discard(room)
        logger.debug("Left room", connection_id=connection.id, room=room)
        self._acknowledge(connection, "room:left", room)

    def members(self, room: str) -> list[Connection]:
        with self._lock:
            return list(self._rooms.get(room, ()))

    def _acknowledge(self, connection: Connection, event: str, room: str) -> None:
        try:
            connection.send(event, {"room": room})
        except ConnectionClosed:
            self.disconnect(connection)

    # -------------------------------------------------------------------
    # Emission
    # -------------------------------------------------------------------
    def emit(self, room: str, event: str, payload: dict) -> Emission:
        """Send ``event`` to every member of ``room``."""
        if not self._running:
            return Emission(room=room, event=event, error="Broadcast hub is not running")

        delivered = 0
        unreachable = []
        for connection in self.members(room):
            try:
                connection.send(event, payload)
                delivered += 1
            except ConnectionClosed:
                unreachable.append(connection)

        for connection in unreachable:
            self.disconnect(connection)

        if unreachable:
            return Emission(
                room=room,
                event=event,
                recipients=delivered,
                error=f"{len(unreachable)} connection(s) unreachable",
            )
        return Emission(room=room, event=event, recipients=delivered)

    # -------------------------------------------------------------------
    # Client messages
    # -------------------------------------------------------------------
    def receive(self, connection: Connection, message) -> list[Emission]:
        """Handle one ``{"event", "data"}`` envelope from a client."""
        if not isinstance(message, dict):
            logger.warning("Malformed client message", connection_id=connection.id)
            return []

        event = message.get("event")
        data = message.get("data")

        if event in ("joinOrder", "leaveOrder"):
            order_id = data.get("orderId") if isinstance(data, dict) else data
            if not order_id:
                return []
            if event == "joinOrder":
                self.join(connection, order_room(order_id))
            else:
                self.leave(connection, order_room(order_id))
            return []

        if event in ("joinRoom", "leaveRoom"):
            room = data.get("room") if isinstance(data, dict) else data
            if not room or not isinstance(room, str):
                return []
            if event == "joinRoom":
                self.join(connection, room)
            else:
                self.leave(connection, room)
            return []

        if event == "location:update":
            return self.handle_location_update(connection, data)

        logger.warning("Unknown client event", connection_id=connection.id, client_event=event)
        return []

    def handle_location_update(self, connection: Connection, payload) -> list[Emission]:
        """Relay a partner's location ping to the order room.

        Dropped (with a warning) when coordinates are not numbers, the sender
        is unauthenticated, the order is unknown, or the sender neither holds
        the order nor is an admin. The ownership check and the relay are not
        atomic: a ping racing a reassignment may still go out once.
        """
        if not isinstance(payload, dict) or not payload.get("orderId"):
            return []

        order_id = str(payload["orderId"])
        lat, lng = payload.get("lat"), payload.get("lng")

        if not (_is_number(lat) and _is_number(lng)):
            logger.warning("Invalid location payload", connection_id=connection.id, order_id=order_id)
            return []

        principal = connection.principal
        if principal is None:
            logger.warning("Unauthenticated location update", connection_id=connection.id, order_id=order_id)
            return []

        try:
            with self.domain.domain_context():
                order = self.domain.repository_for(Order).get(order_id)
                assigned_to = str(order.assigned_to) if order.assigned_to else None
        except ObjectNotFoundError:
            logger.warning("Order not found for tracking", order_id=order_id)
            return []

        if principal.role != Role.ADMIN.value and assigned_to != principal.id:
            logger.warning(
                "Unauthorized location update",
                sender_id=principal.id,
                order_id=order_id,
            )
            return []

        timestamp = payload.get("timestamp")
        if timestamp is None:
            timestamp = int(time.time() * 1000)
        data = {"orderId": order_id, "lat": lat, "lng": lng, "timestamp": timestamp}

        room = order_room(order_id)
        emissions = [
            self.emit(room, "tracking:update", data),
            self.emit(room, "order:location", data),
        ]
        logger.info("Location relayed", order_id=order_id, sender_id=principal.id, lat=lat, lng=lng)
        return emissions
