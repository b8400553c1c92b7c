"""Shared BDD fixtures and step definitions for order dispatch."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then
from structlog.testing import capture_logs

from dispatch.catalogue.menu_item import MenuItem
from dispatch.directory.user import User
from dispatch.identity import Principal
from dispatch.order.order import Order
from dispatch.realtime.connection import MemoryConnection


def principal_for(user) -> Principal:
    return Principal(id=str(user.id), role=user.role)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def partners():
    """Delivery partners by their scenario name."""
    return {}


@pytest.fixture()
def logs():
    with capture_logs() as entries:
        yield entries


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a restaurant serving "{first}" at {first_price:d} and "{second}" at {second_price:d}'),
    target_fixture="dishes",
)
def _(restaurant, first, first_price, second, second_price):
    repo = current_domain.repository_for(MenuItem)
    dishes = {}
    for name, price in ((first, first_price), (second, second_price)):
        item = MenuItem(restaurant_id=str(restaurant.id), name=name, price=float(price))
        repo.add(item)
        dishes[name] = item
    return dishes


@given(parsers.cfparse('an available delivery partner "{name}"'))
def _(partners, name):
    partner = User.register_partner(name=name, vehicle="bike")
    current_domain.repository_for(User).add(partner)
    partners[name] = partner


@given("a customer", target_fixture="shopper")
def _(customer):
    return customer


@given(
    parsers.cfparse('the customer has ordered {first_qty:d} "{first}" and {second_qty:d} "{second}"'),
    target_fixture="order",
)
def _(lifecycle, shopper, restaurant, dishes, first_qty, first, second_qty, second):
    lines = [
        {"menu_item_id": str(dishes[first].id), "quantity": first_qty},
        {"menu_item_id": str(dishes[second].id), "quantity": second_qty},
    ]
    return lifecycle.create(principal_for(shopper), str(restaurant.id), lines, "1 Main Street")


@given(parsers.cfparse('the order is assigned to "{name}"'), target_fixture="order")
def _(engine, owner, partners, order, name):
    return engine.assign(principal_for(owner), str(order.id), str(partners[name].id))


@given("the customer is watching the order", target_fixture="watcher")
def _(hub, verifier, shopper, order):
    watcher = hub.connect(MemoryConnection(), verifier.issue(principal_for(shopper)))
    hub.receive(watcher, {"event": "joinOrder", "data": str(order.id)})
    return watcher


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the order total is {total:d}"))
def _(order, total):
    assert order.total_price == total


@then(parsers.cfparse('the order status is "{status}"'))
def _(order, status):
    assert current_domain.repository_for(Order).get(order.id).status == status


@then(parsers.cfparse('the order is assigned to "{name}"'))
def _(order, partners, name):
    assert str(order.assigned_to) == str(partners[name].id)


@then(parsers.cfparse('partner "{name}" is unavailable'))
def _(partners, name):
    assert current_domain.repository_for(User).get(partners[name].id).is_available is False


@then(parsers.cfparse('partner "{name}" is available'))
def _(partners, name):
    assert current_domain.repository_for(User).get(partners[name].id).is_available is True
