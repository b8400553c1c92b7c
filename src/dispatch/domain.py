"""Dispatch bounded context — Order Lifecycle, Delivery Assignment and Live Tracking.

Handles the order state machine (CQRS), delivery partner assignment against
the partner directory, and the real-time broadcast of order and location
updates. Restaurants, menu items and partner records are owned by upstream
systems; this context keeps the projections it needs to validate against.
"""

from protean.domain import Domain

dispatch = Domain(name="dispatch")
