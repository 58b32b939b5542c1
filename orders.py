"""
Order processing

create_order checks every line against current stock before anything is
written, then applies the stock decrements, the order insert and the customer
totals as one store transaction. A failure at any point leaves products,
customers and orders as they were.
"""

import logging
import uuid
from typing import Dict, List, Optional, Tuple, get_args

from pydantic import ValidationError as SchemaError

import customers
import inventory
from classification import BULK_MIN_QUANTITY, is_bulk_eligible, is_bulk_for_display, total_quantity
from database import DocumentStore, utc_now
from errors import (
    InsufficientStockError,
    InvalidStatusTransitionError,
    InventoryError,
    OrderNotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from schemas import (
    CreateOrderRequest,
    CustomerSnapshot,
    Order,
    OrderItem,
    OrderItemRequest,
    OrderRecord,
    OrderUpdate,
    PaymentStatus,
    ProductRecord,
)

logger = logging.getLogger(__name__)

COLLECTION = "order"

# Legal status edges; anything else is rejected
STATUS_TRANSITIONS = {
    "pending": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered", "cancelled"},
    "delivered": set(),
    "cancelled": set(),
}

PlannedLine = Tuple[ProductRecord, OrderItemRequest, Optional[str]]


def _record(doc: dict) -> OrderRecord:
    return OrderRecord(**doc)


def _validate_request(request: CreateOrderRequest) -> None:
    if not request.customer_id:
        raise ValidationError("Customer ID is required")
    if not request.items:
        raise ValidationError("Order must have at least one item")
    for item in request.items:
        if not item.product_id:
            raise ValidationError("Every item needs a product_id")
        if item.quantity <= 0:
            raise ValidationError(f"Quantity must be positive, got {item.quantity} for {item.product_id}")
    if request.bulk and not is_bulk_eligible(request.items):
        raise ValidationError(
            f"Bulk orders require a minimum total quantity of {BULK_MIN_QUANTITY} items. "
            f"Current total: {total_quantity(request.items)}"
        )


def _plan_items(store: DocumentStore, items: List[OrderItemRequest]) -> List[PlannedLine]:
    """Resolve and stock-check every line without writing anything.

    Lines naming the same product (and size) draw from the same stock, so
    earlier lines are counted against later ones.
    """
    products: Dict[str, ProductRecord] = {}
    reserved: Dict[Tuple[str, Optional[str]], int] = {}
    planned = []
    for item in items:
        product = products.get(item.product_id) or inventory.get_product(store, item.product_id)
        if product is None:
            raise ProductNotFoundError(item.product_id)
        products[item.product_id] = product

        if product.sizes:
            if not item.size:
                offered = ", ".join(s.size for s in product.sizes)
                raise ValidationError(f"Product {product.name} is stocked by size; choose one of: {offered}")
            entry = product.size_stock(item.size)
            if entry is None:
                raise ValidationError(f"Product {product.name} has no size {item.size}")
            size, available, key = item.size, entry.stock_level, (product.id, item.size)
        else:
            if item.size and item.size != product.size:
                if product.size is None:
                    raise ValidationError(f"Product {product.name} is not sold by size")
                raise ValidationError(f"Product {product.name} is only available in size {product.size}")
            size, available, key = product.size, product.stock_level, (product.id, None)

        remaining = available - reserved.get(key, 0)
        if item.quantity > remaining:
            raise InsufficientStockError(product.name, remaining, item.quantity, size if product.sizes else None)
        reserved[key] = reserved.get(key, 0) + item.quantity
        planned.append((product, item, size))
    return planned


def _decrement(store: DocumentStore, product_id: str, size: Optional[str], quantity: int) -> None:
    current = inventory.require_product(store, product_id)
    if current.sizes:
        entry = current.size_stock(size)
        inventory.update_size_stock(store, product_id, size, entry.stock_level - quantity)
    else:
        inventory.update_stock(store, product_id, current.stock_level - quantity)


def _order_item(product: ProductRecord, item: OrderItemRequest, size: Optional[str]) -> OrderItem:
    total_cost = round(product.cost_price * item.quantity, 2)
    total_selling = round(product.selling_price * item.quantity, 2)
    return OrderItem(
        id=uuid.uuid4().hex,
        product_id=product.id,
        size=size,
        name=product.name,
        design=product.design,
        color=product.color,
        category=product.category,
        quantity=item.quantity,
        unit_cost=product.cost_price,
        unit_selling=product.selling_price,
        total_cost=total_cost,
        total_selling=total_selling,
        profit=round(total_selling - total_cost, 2),
    )


def create_order(store: DocumentStore, request: CreateOrderRequest) -> OrderRecord:
    _validate_request(request)
    try:
        with store.transaction():
            customer = customers.require_customer(store, request.customer_id)
            planned = _plan_items(store, request.items)

            items = []
            for product, item, size in planned:
                _decrement(store, product.id, size, item.quantity)
                items.append(_order_item(product, item, size))

            total_cost = round(sum(i.total_cost for i in items), 2)
            total_selling = round(sum(i.total_selling for i in items), 2)
            order = Order(
                customer_id=customer.id,
                customer=CustomerSnapshot(
                    id=customer.id, name=customer.name, email=customer.email, phone=customer.phone
                ),
                items=items,
                status="pending",
                total_cost=total_cost,
                total_selling=total_selling,
                profit=round(total_selling - total_cost, 2),
                order_date=utc_now(),
                shipping_address=customer.address,
                payment_method=request.payment_method,
                payment_status=request.payment_status,
                notes=request.notes,
            )
            oid = store.put(COLLECTION, order)
            customers.update_customer_aggregates(store, customer.id, total_selling, 1)
    except InventoryError as e:
        logger.warning("Order for customer %s rejected: %s", request.customer_id, e)
        raise

    logger.info(
        "Created order %s for customer %s: %d unit(s), total %.2f",
        oid, customer.id, total_quantity(items), total_selling,
    )
    return require_order(store, oid)


def list_orders(
    store: DocumentStore,
    status: Optional[str] = None,
    customer_id: Optional[str] = None,
    search: Optional[str] = None,
    min_items: Optional[int] = None,
) -> List[OrderRecord]:
    filt = {}
    if status and status != "all":
        filt["status"] = status
    if customer_id:
        filt["customer_id"] = customer_id
    orders = [_record(d) for d in store.query(COLLECTION, filt)]

    if search:
        term = search.lower()
        orders = [
            o for o in orders
            if term in o.id.lower()
            or term in o.customer.name.lower()
            or term in o.customer.email.lower()
        ]
    if min_items:
        orders = [o for o in orders if len(o.items) >= min_items]

    orders.sort(key=lambda o: o.order_date, reverse=True)
    return orders


def list_bulk_orders(store: DocumentStore, **filters) -> List[OrderRecord]:
    return [o for o in list_orders(store, **filters) if is_bulk_for_display(o.items)]


def get_customer_orders(store: DocumentStore, customer_id: str) -> List[OrderRecord]:
    return list_orders(store, customer_id=customer_id)


def get_order(store: DocumentStore, order_id: str) -> Optional[OrderRecord]:
    doc = store.get(COLLECTION, order_id)
    return _record(doc) if doc else None


def require_order(store: DocumentStore, order_id: str) -> OrderRecord:
    order = get_order(store, order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def _status_changes(order: OrderRecord, status: str) -> dict:
    if status not in STATUS_TRANSITIONS:
        raise ValidationError(f"Unknown order status: {status}")
    if status == order.status:
        return {}
    if status not in STATUS_TRANSITIONS[order.status]:
        raise InvalidStatusTransitionError(order.status, status)
    now = utc_now()
    changes = {"status": status}
    if status == "shipped" and order.shipping_date is None:
        changes["shipping_date"] = now
    if status == "delivered":
        if order.delivery_date is None:
            changes["delivery_date"] = now
        changes["payment_date"] = now
    return changes


def update_order(store: DocumentStore, order_id: str, payload: OrderUpdate) -> OrderRecord:
    """Apply the mutable fields of an order. Items and totals never change."""
    changes = payload.model_dump(exclude_unset=True)
    with store.transaction():
        order = require_order(store, order_id)
        if "status" in changes:
            status = changes.pop("status")
            if status is not None:
                changes.update(_status_changes(order, status))
        merged = {**order.model_dump(exclude={"id", "created_at", "updated_at"}), **changes}
        try:
            Order(**merged)
        except SchemaError as e:
            raise ValidationError(str(e)) from e
        doc = store.update(COLLECTION, order_id, changes)
    return _record(doc)


def update_order_status(store: DocumentStore, order_id: str, status: str) -> OrderRecord:
    with store.transaction():
        order = require_order(store, order_id)
        doc = store.update(COLLECTION, order_id, _status_changes(order, status))
    logger.info("Order %s: %s -> %s", order_id, order.status, status)
    return _record(doc)


def update_payment_status(store: DocumentStore, order_id: str, payment_status: str) -> OrderRecord:
    if payment_status not in get_args(PaymentStatus):
        raise ValidationError(f"Unknown payment status: {payment_status}")
    doc = store.update(COLLECTION, order_id, {"payment_status": payment_status})
    if doc is None:
        raise OrderNotFoundError(order_id)
    return _record(doc)


def delete_order(store: DocumentStore, order_id: str) -> None:
    if not store.delete(COLLECTION, order_id):
        raise OrderNotFoundError(order_id)
    logger.info("Deleted order %s", order_id)
