"""Application tests for the order lifecycle service."""

import threading

import pytest
from protean import current_domain
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from structlog.testing import capture_logs

from dispatch.catalogue.menu_item import MenuItem
from dispatch.directory.user import User
from dispatch.errors import ConflictError, ForbiddenError
from dispatch.identity import Principal
from dispatch.order.order import Order
from dispatch.realtime.connection import MemoryConnection
from dispatch.realtime.rooms import order_room, restaurant_room


def principal_for(user):
    return Principal(id=str(user.id), role=user.role)


class TestCreate:
    def test_total_from_live_prices(self, placed):
        assert placed.total_price == 250.0
        assert placed.status == "pending"

    def test_order_is_persisted(self, placed):
        stored = current_domain.repository_for(Order).get(placed.id)
        assert stored.total_price == 250.0
        assert len(stored.items) == 2

    def test_total_unchanged_after_menu_price_change(self, placed, menu):
        menu_repo = current_domain.repository_for(MenuItem)
        thali = menu_repo.get(menu["thali"].id)
        thali.price = 999.0
        menu_repo.add(thali)

        stored = current_domain.repository_for(Order).get(placed.id)
        assert stored.total_price == 250.0
        assert next(i for i in stored.items if i.name == "Thali").price == 100.0

    def test_publishes_order_created(self, placed, publisher):
        [message] = publisher.of_type("order.created")
        assert message["orderId"] == str(placed.id)
        assert message["totalPrice"] == 250.0

    def test_unknown_restaurant_is_not_found(self, lifecycle, customer, order_lines):
        with pytest.raises(ObjectNotFoundError):
            lifecycle.create(principal_for(customer), "missing", order_lines, "1 Main Street")

    def test_unknown_menu_item_is_invalid(self, lifecycle, customer, restaurant):
        with pytest.raises(ValidationError):
            lifecycle.create(
                principal_for(customer),
                str(restaurant.id),
                [{"menu_item_id": "ghost", "quantity": 1}],
                "1 Main Street",
            )

    def test_menu_item_from_other_restaurant_is_invalid(self, lifecycle, customer, restaurant):
        stranger = MenuItem(restaurant_id="another-restaurant", name="Pizza", price=10.0)
        current_domain.repository_for(MenuItem).add(stranger)
        with pytest.raises(ValidationError):
            lifecycle.create(
                principal_for(customer),
                str(restaurant.id),
                [{"menu_item_id": str(stranger.id), "quantity": 1}],
                "1 Main Street",
            )

    def test_zero_quantity_is_invalid(self, lifecycle, customer, restaurant, menu):
        with pytest.raises(ValidationError):
            lifecycle.create(
                principal_for(customer),
                str(restaurant.id),
                [{"menu_item_id": str(menu["thali"].id), "quantity": 0}],
                "1 Main Street",
            )

    def test_empty_items_are_invalid(self, lifecycle, customer, restaurant):
        with pytest.raises(ValidationError):
            lifecycle.create(principal_for(customer), str(restaurant.id), [], "1 Main Street")

    def test_blank_address_is_invalid(self, lifecycle, customer, restaurant, order_lines):
        with pytest.raises(ValidationError):
            lifecycle.create(principal_for(customer), str(restaurant.id), order_lines, "  ")

    def test_publisher_failure_does_not_fail_create(self, lifecycle, publisher, customer, restaurant, order_lines):
        publisher.configure(should_succeed=False)
        with capture_logs() as logs:
            order = lifecycle.create(principal_for(customer), str(restaurant.id), order_lines, "1 Main Street")
        assert current_domain.repository_for(Order).get(order.id).status == "pending"
        assert any(entry["event"] == "Event publish failed" for entry in logs)


class TestTransition:
    def test_owner_updates_status(self, lifecycle, owner, placed, publisher):
        order = lifecycle.transition(principal_for(owner), str(placed.id), "accepted")
        assert order.status == "accepted"
        [message] = publisher.of_type("order.status_updated")
        assert message["status"] == "accepted"
        assert message["actorId"] == str(owner.id)

    def test_hyphenated_token_is_normalized(self, lifecycle, owner, placed):
        order = lifecycle.transition(principal_for(owner), str(placed.id), "out-for-delivery")
        assert order.status == "out_for_delivery"

    def test_unknown_token_is_invalid(self, lifecycle, owner, placed):
        with pytest.raises(ValidationError):
            lifecycle.transition(principal_for(owner), str(placed.id), "teleported")

    def test_stranger_is_forbidden(self, lifecycle, customer, placed):
        with pytest.raises(ForbiddenError):
            lifecycle.transition(principal_for(customer), str(placed.id), "accepted")

    def test_assigned_partner_may_update(self, lifecycle, partner, placed):
        order = current_domain.repository_for(Order).get(placed.id)
        order.assigned_to = str(partner.id)
        current_domain.repository_for(Order).add(order)

        updated = lifecycle.transition(principal_for(partner), str(placed.id), "on-the-way")
        assert updated.status == "on_the_way"

    def test_missing_order_is_not_found(self, lifecycle, owner):
        with pytest.raises(ObjectNotFoundError):
            lifecycle.transition(principal_for(owner), "missing", "accepted")

    def test_off_graph_transition_is_accepted_and_logged(self, lifecycle, owner, placed):
        with capture_logs() as logs:
            order = lifecycle.transition(principal_for(owner), str(placed.id), "completed")
        assert order.status == "completed"
        assert any(entry["event"] == "Status change outside the driven graph" for entry in logs)

    def test_terminal_status_releases_partner(self, lifecycle, owner, partner, placed):
        users = current_domain.repository_for(User)
        users.set_availability(partner.id, False)
        order = current_domain.repository_for(Order).get(placed.id)
        order.assigned_to = str(partner.id)
        current_domain.repository_for(Order).add(order)

        lifecycle.transition(principal_for(owner), str(placed.id), "completed")
        assert users.get(partner.id).is_available is True

    def test_reopening_terminal_order_holds_partner(self, lifecycle, engine, owner, partner, placed):
        engine.accept(principal_for(partner), str(placed.id))
        engine.complete(principal_for(partner), str(placed.id))
        users = current_domain.repository_for(User)
        assert users.get(partner.id).is_available is True

        order = lifecycle.transition(principal_for(owner), str(placed.id), "out-for-delivery")

        assert order.is_assigned_to(str(partner.id))
        assert users.get(partner.id).is_available is False
        assert users.available_partners() == []

    def test_unreachable_watcher_does_not_fail_transition(self, lifecycle, hub, owner, placed):
        dead = MemoryConnection()
        hub.connect(dead)
        hub.join(dead, order_room(placed.id))
        dead.should_fail = True

        with capture_logs() as logs:
            order = lifecycle.transition(principal_for(owner), str(placed.id), "accepted")

        assert order.status == "accepted"
        assert current_domain.repository_for(Order).get(placed.id).status == "accepted"
        assert any(entry["event"] == "Broadcast failed" for entry in logs)

    def test_broadcasts_order_update(self, lifecycle, hub, owner, placed):
        watcher = MemoryConnection()
        hub.connect(watcher)
        hub.join(watcher, order_room(placed.id))

        lifecycle.transition(principal_for(owner), str(placed.id), "preparing")

        [update] = watcher.received("order:update")
        assert update["orderId"] == str(placed.id)
        assert update["status"] == "preparing"
        assert "updatedAt" in update


class TestCancel:
    def test_customer_cancels_pending_order(self, lifecycle, hub, customer, placed, publisher):
        kitchen = MemoryConnection()
        hub.connect(kitchen)
        hub.join(kitchen, restaurant_room(placed.restaurant_id))

        order = lifecycle.cancel(principal_for(customer), str(placed.id))

        assert order.status == "cancelled"
        assert kitchen.received("order:updated_by_customer") == [{"orderId": str(placed.id), "status": "cancelled"}]
        assert publisher.of_type("order.cancelled")[0]["customerId"] == str(customer.id)

    def test_cancel_after_acceptance_conflicts(self, lifecycle, owner, customer, placed):
        lifecycle.transition(principal_for(owner), str(placed.id), "accepted")
        with pytest.raises(ConflictError):
            lifecycle.cancel(principal_for(customer), str(placed.id))

    def test_other_customer_is_forbidden(self, lifecycle, owner, placed):
        with pytest.raises(ForbiddenError):
            lifecycle.cancel(principal_for(owner), str(placed.id))


class TestConcurrentWrites:
    def test_transition_racing_cancel_never_loses_a_write(self, domain, lifecycle, owner, customer, placed):
        barrier = threading.Barrier(2)
        outcomes = {}

        def run(name, action):
            with domain.domain_context():
                barrier.wait()
                try:
                    outcomes[name] = action().status
                except (ConflictError, ExpectedVersionError) as exc:
                    outcomes[name] = exc

        order_id = str(placed.id)
        threads = [
            threading.Thread(
                target=run, args=("transition", lambda: lifecycle.transition(principal_for(owner), order_id, "accepted"))
            ),
            threading.Thread(target=run, args=("cancel", lambda: lifecycle.cancel(principal_for(customer), order_id))),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        stored = current_domain.repository_for(Order).get(placed.id).status
        landed = {name: status for name, status in outcomes.items() if isinstance(status, str)}

        assert set(outcomes) == {"transition", "cancel"}
        assert landed
        if len(landed) == 2:
            # Both succeed only when the cancel committed first and the owner reopened it
            assert stored == "accepted"
        else:
            [status] = landed.values()
            assert stored == status


class TestListings:
    def test_list_mine_newest_first(self, lifecycle, customer, restaurant, order_lines):
        principal = principal_for(customer)
        first = lifecycle.create(principal, str(restaurant.id), order_lines, "1 Main Street")
        second = lifecycle.create(principal, str(restaurant.id), order_lines, "2 Main Street")

        orders = lifecycle.list_mine(principal)
        assert [str(o.id) for o in orders] == [str(second.id), str(first.id)]

    def test_owner_lists_restaurant_orders(self, lifecycle, owner, restaurant, placed):
        orders = lifecycle.list_for_restaurant(principal_for(owner), str(restaurant.id))
        assert [str(o.id) for o in orders] == [str(placed.id)]

    def test_non_owner_is_forbidden(self, lifecycle, customer, restaurant):
        with pytest.raises(ForbiddenError):
            lifecycle.list_for_restaurant(principal_for(customer), str(restaurant.id))

    def test_unknown_restaurant_is_not_found(self, lifecycle, owner):
        with pytest.raises(ObjectNotFoundError):
            lifecycle.list_for_restaurant(principal_for(owner), "missing")
