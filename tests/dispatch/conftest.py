import os

import pytest

from dispatch.catalogue.menu_item import MenuItem
from dispatch.catalogue.restaurant import Restaurant
from dispatch.assignment.engine import AssignmentEngine
from dispatch.directory.user import User
from dispatch.identity import Principal, Role, TokenVerifier
from dispatch.notifier import Notifier
from dispatch.order.lifecycle import OrderLifecycle
from dispatch.publishing import InMemoryPublisher
from dispatch.realtime.hub import BroadcastHub

TEST_SECRET = "test-secret"


@pytest.fixture(scope="session")
def _dispatch_domain(request):
    """Initialize the dispatch domain once per session."""
    os.environ["PROTEAN_ENV"] = request.config.option.env

    from dispatch.domain import dispatch

    dispatch.init()
    return dispatch


@pytest.fixture(scope="session", autouse=True)
def setup_db(_dispatch_domain):
    from dispatch.utils.db import drop_db, setup_db

    setup_db(_dispatch_domain)

    yield

    drop_db(_dispatch_domain)


@pytest.fixture(autouse=True)
def run_around_tests(_dispatch_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _dispatch_domain.domain_context()
    ctx.push()

    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    for _, broker in current_domain.brokers.items():
        broker._data_reset()

    current_domain.event_store.store._data_reset()

    ctx.pop()


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------
@pytest.fixture()
def domain(_dispatch_domain):
    return _dispatch_domain


@pytest.fixture()
def verifier():
    return TokenVerifier(secret=TEST_SECRET, algorithm="HS256")


@pytest.fixture()
def publisher():
    return InMemoryPublisher()


@pytest.fixture()
def hub(domain, verifier):
    hub = BroadcastHub(domain, verifier)
    hub.init()
    return hub


@pytest.fixture()
def notifier(hub, publisher):
    return Notifier(hub, publisher)


# ---------------------------------------------------------------------------
# Catalogue and directory records
# ---------------------------------------------------------------------------
def _add_user(name: str, role: Role, **fields) -> User:
    from protean import current_domain

    if role is Role.DELIVERY_PARTNER:
        user = User.register_partner(name=name, email=f"{name.lower()}@example.com", vehicle="bike")
        if "is_available" in fields:
            user.is_available = fields["is_available"]
    else:
        user = User(name=name, email=f"{name.lower()}@example.com", role=role.value)
    current_domain.repository_for(User).add(user)
    return user


@pytest.fixture()
def owner():
    return _add_user("Olivia", Role.RESTAURANT_OWNER)


@pytest.fixture()
def customer():
    return _add_user("Carl", Role.CUSTOMER)


@pytest.fixture()
def admin():
    return _add_user("Ada", Role.ADMIN)


@pytest.fixture()
def partner():
    return _add_user("Priya", Role.DELIVERY_PARTNER)


@pytest.fixture()
def other_partner():
    return _add_user("Pavel", Role.DELIVERY_PARTNER)


@pytest.fixture()
def restaurant(owner):
    from protean import current_domain

    restaurant = Restaurant(name="Curry House", address="1 Spice Lane", owner_id=str(owner.id))
    current_domain.repository_for(Restaurant).add(restaurant)
    return restaurant


@pytest.fixture()
def menu(restaurant):
    """Two dishes: Thali at 100 and Lassi at 50."""
    from protean import current_domain

    repo = current_domain.repository_for(MenuItem)
    thali = MenuItem(restaurant_id=str(restaurant.id), name="Thali", price=100.0)
    lassi = MenuItem(restaurant_id=str(restaurant.id), name="Lassi", price=50.0)
    repo.add(thali)
    repo.add(lassi)
    return {"thali": thali, "lassi": lassi}


@pytest.fixture()
def order_lines(menu):
    return [
        {"menu_item_id": str(menu["thali"].id), "quantity": 2},
        {"menu_item_id": str(menu["lassi"].id), "quantity": 1},
    ]


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------
@pytest.fixture()
def lifecycle(notifier):
    return OrderLifecycle(notifier)


@pytest.fixture()
def engine(notifier):
    return AssignmentEngine(notifier)


@pytest.fixture()
def placed(lifecycle, customer, restaurant, order_lines):
    """A pending order worth 250 (2 x 100 + 1 x 50)."""
    principal = Principal(id=str(customer.id), role=customer.role)
    return lifecycle.create(principal, str(restaurant.id), order_lines, "1 Main Street")
