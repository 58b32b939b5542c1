"""Tests for order creation, stock reconciliation and status changes."""

import threading

import pytest

import customers
import inventory
import orders
from errors import (
    CustomerNotFoundError,
    InsufficientStockError,
    InvalidStatusTransitionError,
    ProductNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from schemas import CreateOrderRequest, OrderItemRequest, OrderUpdate, Product, ProductUpdate


def order_request(customer_id, *lines, **kwargs):
    items = []
    for line in lines:
        product_id, quantity = line[0], line[1]
        size = line[2] if len(line) > 2 else None
        items.append(OrderItemRequest(product_id=product_id, quantity=quantity, size=size))
    return CreateOrderRequest(customer_id=customer_id, items=items, **kwargs)


@pytest.fixture
def polo(store):
    return inventory.create_product(store, Product(
        name="Polo", color="Green", category="Casual",
        cost_price=10.0, selling_price=25.0, stock_level=4,
    ))


class TestCreateOrder:
    def test_decrements_stock_and_totals(self, store, customer, tee, polo):
        order = orders.create_order(store, order_request(customer.id, (tee.id, 2), (polo.id, 3)))

        assert inventory.get_product(store, tee.id).stock_level == 8
        assert inventory.get_product(store, polo.id).stock_level == 1
        assert order.total_selling == pytest.approx(19.99 * 2 + 25.0 * 3)
        assert order.total_cost == pytest.approx(8.5 * 2 + 10.0 * 3)
        assert order.profit == pytest.approx(order.total_selling - order.total_cost)
        assert order.status == "pending"
        assert order.id

    def test_item_snapshots(self, store, customer, tee):
        order = orders.create_order(store, order_request(customer.id, (tee.id, 2)))
        item = order.items[0]
        assert item.product_id == tee.id
        assert item.name == "Classic Cotton Tee"
        assert item.size == "M"
        assert item.color == "Black"
        assert item.unit_cost == 8.5
        assert item.unit_selling == 19.99
        assert item.total_selling == pytest.approx(39.98)
        assert item.profit == pytest.approx(39.98 - 17.0)

    def test_snapshots_survive_source_changes(self, store, customer, tee):
        order = orders.create_order(store, order_request(customer.id, (tee.id, 1)))
        inventory.update_product(store, tee.id, ProductUpdate(name="Renamed", selling_price=99))
        customers.delete_customer(store, customer.id)

        stored = orders.get_order(store, order.id)
        assert stored.items[0].name == "Classic Cotton Tee"
        assert stored.items[0].unit_selling == 19.99
        assert stored.customer.name == "John Smith"
        assert stored.shipping_address.city == "New York"

    def test_updates_customer_aggregates(self, store, customer, tee):
        orders.create_order(store, order_request(customer.id, (tee.id, 2)))
        updated = customers.get_customer(store, customer.id)
        assert updated.total_orders == customer.total_orders + 1
        assert updated.total_spent == pytest.approx(customer.total_spent + 39.98)

    def test_payment_fields_and_notes(self, store, customer, tee):
        order = orders.create_order(store, order_request(
            customer.id, (tee.id, 1), payment_method="card", payment_status="paid", notes="gift wrap"
        ))
        assert order.payment_method == "card"
        assert order.payment_status == "paid"
        assert order.notes == "gift wrap"


class TestCreateOrderFailures:
    def test_insufficient_stock_leaves_everything_untouched(self, store, customer, tee, polo):
        other = inventory.create_product(store, Product(
            name="After", cost_price=1, selling_price=2, stock_level=50
        ))
        request = order_request(customer.id, (tee.id, 2), (polo.id, 5), (other.id, 1))

        with pytest.raises(InsufficientStockError) as exc:
            orders.create_order(store, request)

        assert exc.value.available == 4
        assert exc.value.requested == 5
        assert "available 4, requested 5, for Polo" in str(exc.value)
        assert inventory.get_product(store, tee.id).stock_level == 10
        assert inventory.get_product(store, polo.id).stock_level == 4
        assert inventory.get_product(store, other.id).stock_level == 50
        assert store.count("order") == 0
        assert customers.get_customer(store, customer.id).total_orders == 0

    def test_repeated_lines_share_stock(self, store, customer, polo):
        with pytest.raises(InsufficientStockError) as exc:
            orders.create_order(store, order_request(customer.id, (polo.id, 3), (polo.id, 2)))
        assert exc.value.available == 1
        assert inventory.get_product(store, polo.id).stock_level == 4

    def test_unknown_product(self, store, customer, tee):
        with pytest.raises(ProductNotFoundError) as exc:
            orders.create_order(store, order_request(customer.id, (tee.id, 1), ("ghost", 1)))
        assert "ghost" in str(exc.value)
        assert inventory.get_product(store, tee.id).stock_level == 10

    def test_unknown_customer(self, store, tee):
        with pytest.raises(CustomerNotFoundError):
            orders.create_order(store, order_request("nobody", (tee.id, 1)))
        assert inventory.get_product(store, tee.id).stock_level == 10

    def test_empty_items(self, store, customer):
        with pytest.raises(ValidationError):
            orders.create_order(store, CreateOrderRequest(customer_id=customer.id, items=[]))

    def test_bulk_minimum_enforced(self, store, customer, sized_tee):
        with pytest.raises(ValidationError) as exc:
            orders.create_order(store, order_request(customer.id, (sized_tee.id, 19, "M"), bulk=True))
        assert "Current total: 19" in str(exc.value)

    def test_bulk_at_threshold_accepted(self, store, customer, sized_tee):
        order = orders.create_order(store, order_request(customer.id, (sized_tee.id, 20, "M"), bulk=True))
        assert sum(i.quantity for i in order.items) == 20

    def test_store_failure_rolls_back(self, store, customer, tee, monkeypatch):
        def unavailable(*args, **kwargs):
            raise StoreUnavailableError("Database error: down")

        monkeypatch.setattr(customers, "update_customer_aggregates", unavailable)

        with pytest.raises(StoreUnavailableError):
            orders.create_order(store, order_request(customer.id, (tee.id, 3)))

        assert inventory.get_product(store, tee.id).stock_level == 10
        assert store.count("order") == 0


class TestSizeVariants:
    def test_decrements_matching_size(self, store, customer, sized_tee):
        order = orders.create_order(store, order_request(customer.id, (sized_tee.id, 3, "S")))
        product = inventory.get_product(store, sized_tee.id)
        assert product.size_stock("S").stock_level == 2
        assert product.size_stock("M").stock_level == 30
        assert product.stock_level == 34
        assert order.items[0].size == "S"

    def test_checks_size_stock_not_total(self, store, customer, sized_tee):
        with pytest.raises(InsufficientStockError) as exc:
            orders.create_order(store, order_request(customer.id, (sized_tee.id, 3, "L")))
        assert exc.value.size == "L"
        assert exc.value.available == 2

    def test_size_required(self, store, customer, sized_tee):
        with pytest.raises(ValidationError):
            orders.create_order(store, order_request(customer.id, (sized_tee.id, 1)))

    def test_unknown_size(self, store, customer, sized_tee):
        with pytest.raises(ValidationError):
            orders.create_order(store, order_request(customer.id, (sized_tee.id, 1, "XS")))

    def test_size_on_unsized_product_rejected(self, store, customer, polo):
        with pytest.raises(ValidationError, match="not sold by size"):
            orders.create_order(store, order_request(customer.id, (polo.id, 1, "M")))
        assert inventory.require_product(store, polo.id).stock_level == 4
        assert orders.list_orders(store) == []


class TestStatus:
    @pytest.fixture
    def order(self, store, customer, tee):
        return orders.create_order(store, order_request(customer.id, (tee.id, 1)))

    def test_forward_path_stamps_dates(self, store, order):
        orders.update_order_status(store, order.id, "processing")
        shipped = orders.update_order_status(store, order.id, "shipped")
        assert shipped.shipping_date is not None
        delivered = orders.update_order_status(store, order.id, "delivered")
        assert delivered.delivery_date is not None
        assert delivered.payment_date is not None

    def test_skipping_a_step_rejected(self, store, order):
        with pytest.raises(InvalidStatusTransitionError):
            orders.update_order_status(store, order.id, "delivered")

    def test_cancel_from_shipped(self, store, order):
        orders.update_order_status(store, order.id, "processing")
        orders.update_order_status(store, order.id, "shipped")
        assert orders.update_order_status(store, order.id, "cancelled").status == "cancelled"

    def test_delivered_is_final(self, store, order):
        for status in ("processing", "shipped", "delivered"):
            orders.update_order_status(store, order.id, status)
        with pytest.raises(InvalidStatusTransitionError):
            orders.update_order_status(store, order.id, "cancelled")

    def test_same_status_is_noop(self, store, order):
        assert orders.update_order_status(store, order.id, "pending").status == "pending"

    def test_update_order_leaves_totals(self, store, order):
        updated = orders.update_order(store, order.id, OrderUpdate(notes="call first", status="processing"))
        assert updated.notes == "call first"
        assert updated.status == "processing"
        assert updated.total_selling == order.total_selling
        assert updated.items == order.items

    def test_update_order_rejects_null_required_field(self, store, order):
        with pytest.raises(ValidationError):
            orders.update_order(store, order.id, OrderUpdate(payment_status=None))
        assert orders.require_order(store, order.id).payment_status == "pending"
        assert [o.id for o in orders.list_orders(store)] == [order.id]

    def test_payment_status(self, store, order):
        assert orders.update_payment_status(store, order.id, "paid").payment_status == "paid"
        with pytest.raises(ValidationError):
            orders.update_payment_status(store, order.id, "lost")


class TestListing:
    def test_filters_and_bulk_display(self, store, customer, tee, sized_tee):
        small = orders.create_order(store, order_request(customer.id, (tee.id, 1)))
        big = orders.create_order(store, order_request(customer.id, (sized_tee.id, 5, "M")))
        orders.update_order_status(store, small.id, "processing")

        assert {o.id for o in orders.list_orders(store)} == {small.id, big.id}
        assert [o.id for o in orders.list_orders(store, status="processing")] == [small.id]
        assert [o.id for o in orders.list_bulk_orders(store)] == [big.id]
        assert len(orders.get_customer_orders(store, customer.id)) == 2
        assert orders.list_orders(store, search="john") != []
        assert orders.list_orders(store, min_items=2) == []

    def test_delete(self, store, customer, tee):
        order = orders.create_order(store, order_request(customer.id, (tee.id, 1)))
        orders.delete_order(store, order.id)
        assert orders.get_order(store, order.id) is None


class TestConcurrency:
    def test_parallel_orders_for_last_unit(self, store, customer):
        last = inventory.create_product(store, Product(
            name="Last One", cost_price=5.0, selling_price=12.0, stock_level=1,
        ))
        results = []
        barrier = threading.Barrier(8)

        def place():
            barrier.wait()
            try:
                orders.create_order(store, order_request(customer.id, (last.id, 1)))
                results.append("ok")
            except InsufficientStockError as e:
                results.append(type(e).__name__)

        threads = [threading.Thread(target=place) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1
        assert results.count("InsufficientStockError") == 7
        assert inventory.require_product(store, last.id).stock_level == 0
        assert store.count("order") == 1
        assert customers.require_customer(store, customer.id).total_orders == 1
