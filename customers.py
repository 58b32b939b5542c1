"""Customer store: customer records and their running order totals."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import ValidationError as SchemaError

from database import DocumentStore
from errors import CustomerNotFoundError, ValidationError
from schemas import Customer, CustomerIn, CustomerRecord, CustomerUpdate

logger = logging.getLogger(__name__)

COLLECTION = "customer"


def _record(doc: dict) -> CustomerRecord:
    return CustomerRecord(**doc)


def list_customers(store: DocumentStore, search: Optional[str] = None) -> List[CustomerRecord]:
    customers = [_record(d) for d in store.query(COLLECTION)]
    if search:
        term = search.lower()
        customers = [
            c for c in customers
            if term in c.name.lower() or term in c.email.lower() or term in c.phone.lower()
        ]
    customers.sort(key=lambda c: c.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
    return customers


def get_customer(store: DocumentStore, customer_id: str) -> Optional[CustomerRecord]:
    doc = store.get(COLLECTION, customer_id)
    return _record(doc) if doc else None


def require_customer(store: DocumentStore, customer_id: str) -> CustomerRecord:
    customer = get_customer(store, customer_id)
    if customer is None:
        raise CustomerNotFoundError(customer_id)
    return customer


def create_customer(store: DocumentStore, payload: CustomerIn) -> CustomerRecord:
    # Aggregates always start at zero; only orders move them
    cid = store.put(COLLECTION, Customer(**payload.model_dump()))
    logger.info("Created customer %s (%s)", cid, payload.name)
    return require_customer(store, cid)


def update_customer(store: DocumentStore, customer_id: str, payload: CustomerUpdate) -> CustomerRecord:
    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes and not changes["name"]:
        raise ValidationError("Customer name cannot be empty")
    with store.transaction():
        current = require_customer(store, customer_id)
        merged = {**current.model_dump(exclude={"id", "created_at", "updated_at"}), **changes}
        try:
            Customer(**merged)
        except SchemaError as e:
            raise ValidationError(str(e)) from e
        doc = store.update(COLLECTION, customer_id, changes)
    return _record(doc)


def delete_customer(store: DocumentStore, customer_id: str) -> None:
    """Remove a customer. Orders keep their own copy of the customer's details."""
    if not store.delete(COLLECTION, customer_id):
        raise CustomerNotFoundError(customer_id)
    logger.info("Deleted customer %s", customer_id)


def update_customer_aggregates(
    store: DocumentStore, customer_id: str, add_spent: float, add_order_count: int = 1
) -> CustomerRecord:
    with store.transaction():
        customer = require_customer(store, customer_id)
        doc = store.update(COLLECTION, customer_id, {
            "total_spent": round(customer.total_spent + add_spent, 2),
            "total_orders": customer.total_orders + add_order_count,
        })
    if doc is None:
        raise CustomerNotFoundError(customer_id)
    return _record(doc)


DEMO_CUSTOMERS = [
    Customer(
        name="John Smith",
        email="john@example.com",
        phone="+1-555-0123",
        address={
            "street": "123 Main St",
            "city": "New York",
            "state": "NY",
            "zip_code": "10001",
            "country": "USA",
        },
        preferred_contact_method="email",
    ),
    Customer(
        name="Sarah Johnson",
        email="sarah@example.com",
        phone="+1-555-0124",
        address={
            "street": "456 Oak Ave",
            "city": "Los Angeles",
            "state": "CA",
            "zip_code": "90210",
            "country": "USA",
        },
        preferred_contact_method="phone",
    ),
]


def seed_customers(store: DocumentStore) -> int:
    if store.count(COLLECTION) > 0:
        logger.info("Customer collection already has data, skipping seed")
        return 0
    for customer in DEMO_CUSTOMERS:
        store.put(COLLECTION, customer)
    logger.info("Seeded %d demo customer(s)", len(DEMO_CUSTOMERS))
    return len(DEMO_CUSTOMERS)
