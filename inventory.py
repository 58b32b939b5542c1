"""Product store: catalogue CRUD and stock levels."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import ValidationError as SchemaError

from database import DocumentStore
from errors import ProductNotFoundError, ValidationError
from schemas import Product, ProductRecord, ProductUpdate

logger = logging.getLogger(__name__)

COLLECTION = "product"

# Thresholds used by the stock_status list filter
LOW_STOCK_CEILING = 8


def _record(doc: dict) -> ProductRecord:
    return ProductRecord(**doc)


def _sort_key(product: ProductRecord):
    return product.updated_at or datetime.min.replace(tzinfo=timezone.utc)


def list_products(
    store: DocumentStore,
    category: Optional[str] = None,
    stock_status: Optional[str] = None,
    search: Optional[str] = None,
) -> List[ProductRecord]:
    products = [_record(d) for d in store.query(COLLECTION)]

    if category and category != "all":
        products = [p for p in products if p.category == category]

    if stock_status == "low_stock":
        products = [p for p in products if 0 < p.stock_level <= LOW_STOCK_CEILING]
    elif stock_status == "out_of_stock":
        products = [p for p in products if p.stock_level == 0]
    elif stock_status == "in_stock":
        products = [p for p in products if p.stock_level > LOW_STOCK_CEILING]

    if search:
        term = search.lower()
        products = [
            p for p in products
            if term in p.name.lower()
            or term in p.design.lower()
            or term in p.color.lower()
            or term in p.category.lower()
        ]

    products.sort(key=_sort_key, reverse=True)
    return products


def get_product(store: DocumentStore, product_id: str) -> Optional[ProductRecord]:
    doc = store.get(COLLECTION, product_id)
    return _record(doc) if doc else None


def require_product(store: DocumentStore, product_id: str) -> ProductRecord:
    product = get_product(store, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def create_product(store: DocumentStore, payload: Product) -> ProductRecord:
    pid = store.put(COLLECTION, payload)
    logger.info("Created product %s (%s)", pid, payload.name)
    return require_product(store, pid)


def update_product(store: DocumentStore, product_id: str, payload: ProductUpdate) -> ProductRecord:
    current = require_product(store, product_id)
    changes = payload.model_dump(exclude_unset=True)
    merged = {**current.model_dump(exclude={"id", "created_at", "updated_at"}), **changes}
    try:
        # Re-validate so stock_level follows any new size list
        product = Product(**merged)
    except SchemaError as e:
        raise ValidationError(str(e)) from e
    doc = store.update(COLLECTION, product_id, product.model_dump())
    if doc is None:
        raise ProductNotFoundError(product_id)
    return _record(doc)


def delete_product(store: DocumentStore, product_id: str) -> None:
    if not store.delete(COLLECTION, product_id):
        raise ProductNotFoundError(product_id)
    logger.info("Deleted product %s", product_id)


def update_stock(store: DocumentStore, product_id: str, new_level: int) -> ProductRecord:
    """Set the flat stock level of a product."""
    if new_level < 0:
        raise ValidationError(f"Stock level cannot be negative: {new_level}")
    product = require_product(store, product_id)
    if product.sizes:
        raise ValidationError(f"Product {product.name} tracks stock per size; give a size")
    doc = store.update(COLLECTION, product_id, {"stock_level": new_level})
    if doc is None:
        raise ProductNotFoundError(product_id)
    return _record(doc)


def update_size_stock(store: DocumentStore, product_id: str, size: str, new_level: int) -> ProductRecord:
    """Set the stock level of one size variant and re-total the product."""
    if new_level < 0:
        raise ValidationError(f"Stock level cannot be negative: {new_level}")
    product = require_product(store, product_id)
    entry = product.size_stock(size)
    if entry is None:
        raise ValidationError(f"Product {product.name} has no size {size}")
    entry.stock_level = new_level
    sizes = [s.model_dump() for s in product.sizes]
    doc = store.update(COLLECTION, product_id, {
        "sizes": sizes,
        "stock_level": sum(s["stock_level"] for s in sizes),
    })
    if doc is None:
        raise ProductNotFoundError(product_id)
    return _record(doc)


def set_stock(store: DocumentStore, product_id: str, new_level: int, size: Optional[str] = None) -> ProductRecord:
    if size:
        return update_size_stock(store, product_id, size, new_level)
    return update_stock(store, product_id, new_level)


def get_low_stock_products(store: DocumentStore) -> List[ProductRecord]:
    products = [
        p for p in list_products(store)
        if 0 < p.stock_level <= p.min_stock_level
    ]
    products.sort(key=lambda p: p.stock_level)
    return products


def bulk_update_min_stock(store: DocumentStore, min_stock_level: int) -> int:
    if min_stock_level < 0:
        raise ValidationError(f"Minimum stock level cannot be negative: {min_stock_level}")
    updated = 0
    with store.transaction():
        for doc in store.query(COLLECTION):
            store.update(COLLECTION, doc["id"], {"min_stock_level": min_stock_level})
            updated += 1
    logger.info("Set min_stock_level=%d on %d product(s)", min_stock_level, updated)
    return updated


DEMO_PRODUCTS = [
    Product(
        name="Classic Cotton Tee",
        design="Vintage Logo",
        color="Black",
        category="Casual",
        cost_price=8.5,
        selling_price=19.99,
        min_stock_level=10,
        tags=["cotton", "classic", "logo"],
        sizes=[
            {"size": "S", "stock_level": 10},
            {"size": "M", "stock_level": 15},
            {"size": "L", "stock_level": 12},
        ],
    ),
    Product(
        name="Sport Performance Tee",
        design="Athletic Stripe",
        size="L",
        color="Navy",
        category="Sports",
        cost_price=12.0,
        selling_price=24.99,
        stock_level=3,
        min_stock_level=5,
        tags=["athletic", "performance", "moisture-wicking"],
    ),
    Product(
        name="Premium Cotton Blend",
        design="Minimalist",
        size="S",
        color="White",
        category="Premium",
        cost_price=15.0,
        selling_price=34.99,
        stock_level=0,
        min_stock_level=8,
        tags=["premium", "soft", "blend"],
    ),
]


def seed_products(store: DocumentStore) -> int:
    if store.count(COLLECTION) > 0:
        logger.info("Product collection already has data, skipping seed")
        return 0
    for product in DEMO_PRODUCTS:
        store.put(COLLECTION, product)
    logger.info("Seeded %d demo product(s)", len(DEMO_PRODUCTS))
    return len(DEMO_PRODUCTS)
