"""BDD tests for placing, assigning, delivering and tracking an order."""

from pytest_bdd import parsers, scenarios, then, when

from dispatch.identity import Principal
from dispatch.realtime.connection import MemoryConnection

scenarios("features/order_dispatch.feature")


def principal_for(user) -> Principal:
    return Principal(id=str(user.id), role=user.role)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(
    parsers.cfparse('the customer orders {first_qty:d} "{first}" and {second_qty:d} "{second}"'),
    target_fixture="order",
)
def _(lifecycle, shopper, restaurant, dishes, first_qty, first, second_qty, second):
    lines = [
        {"menu_item_id": str(dishes[first].id), "quantity": first_qty},
        {"menu_item_id": str(dishes[second].id), "quantity": second_qty},
    ]
    return lifecycle.create(principal_for(shopper), str(restaurant.id), lines, "1 Main Street")


@when("the restaurant owner auto-assigns the order", target_fixture="order")
def _(engine, owner, order):
    return engine.auto_assign(principal_for(owner), str(order.id))


@when(parsers.cfparse('"{name}" completes the delivery'), target_fixture="order")
def _(engine, partners, order, name):
    return engine.complete(principal_for(partners[name]), str(order.id))


@when(parsers.cfparse('"{name}" sends a location ping for the order'))
def _(hub, verifier, partners, order, logs, name):
    sender = hub.connect(MemoryConnection(), verifier.issue(principal_for(partners[name])))
    hub.receive(
        sender,
        {"event": "location:update", "data": {"orderId": str(order.id), "lat": 12.97, "lng": 77.59}},
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the customer receives no location update")
def _(watcher):
    assert watcher.received("tracking:update") == []


@then(parsers.cfparse("the customer receives {count:d} location update"))
def _(watcher, count):
    assert len(watcher.received("tracking:update")) == count
    assert len(watcher.received("order:location")) == count


@then(parsers.cfparse('an "{message}" warning is logged'))
def _(logs, message):
    assert any(e["event"] == message and e["log_level"] == "warning" for e in logs)
