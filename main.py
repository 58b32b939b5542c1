import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import analytics
import customers
import inventory
import orders
from database import DocumentStore, get_store, store
from errors import (
    InsufficientStockError,
    InvalidStatusTransitionError,
    InventoryError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from schemas import (
    CreateOrderRequest,
    CustomerIn,
    CustomerRecord,
    CustomerUpdate,
    DashboardStats,
    MinStockUpdate,
    OrderRecord,
    OrderUpdate,
    PaymentUpdate,
    Product,
    ProductRecord,
    ProductUpdate,
    StatusUpdate,
    StockUpdate,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "true").lower() not in ("0", "false", "no")

app = FastAPI(title="T-Shirt Inventory API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    InsufficientStockError: 409,
    InvalidStatusTransitionError: 409,
    StoreUnavailableError: 503,
}


def _status_for(exc: InventoryError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error_type": exc.kind})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ()) if p != 'body')}: {e.get('msg')}" for e in errors
    )
    return JSONResponse(status_code=422, content={"detail": detail, "error_type": ValidationError.kind})


@app.on_event("startup")
def seed_data():
    if not SEED_DEMO_DATA:
        return
    try:
        inventory.seed_products(store)
        customers.seed_customers(store)
    except StoreUnavailableError as e:
        logger.warning("Skipping demo data: %s", e)


@app.get("/")
def read_root():
    return {"message": "T-Shirt Inventory API running", "database": store.backend}


@app.get("/api/health")
def health():
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/test")
def test_database(db: DocumentStore = Depends(get_store)):
    response = {
        "backend": "✅ Running",
        "database": "⚠️  In-memory fallback",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": db.name,
        "connection_status": "Not Connected",
        "collections": []
    }
    if db.backend == "mongodb":
        response["connection_status"] = "Connected"
        try:
            response["collections"] = db.collection_names()[:10]
            response["database"] = "✅ Connected & Working"
        except StoreUnavailableError as e:
            response["database"] = f"⚠️  Connected but Error: {str(e)[:80]}"
    else:
        response["collections"] = db.collection_names()[:10]
    return response


# Inventory
@app.get("/api/inventory", response_model=List[ProductRecord])
def list_products(
    category: Optional[str] = None,
    stock_status: Optional[str] = None,
    search: Optional[str] = None,
    db: DocumentStore = Depends(get_store),
):
    return inventory.list_products(db, category=category, stock_status=stock_status, search=search)


@app.get("/api/inventory/alerts/low-stock", response_model=List[ProductRecord])
def low_stock_products(db: DocumentStore = Depends(get_store)):
    return inventory.get_low_stock_products(db)


@app.patch("/api/inventory/bulk-update-min-stock")
def bulk_update_min_stock(payload: MinStockUpdate, db: DocumentStore = Depends(get_store)):
    return {"updated_count": inventory.bulk_update_min_stock(db, payload.min_stock_level)}


@app.get("/api/inventory/{product_id}", response_model=ProductRecord)
def get_product(product_id: str, db: DocumentStore = Depends(get_store)):
    return inventory.require_product(db, product_id)


@app.post("/api/inventory", response_model=ProductRecord, status_code=201)
def create_product(payload: Product, db: DocumentStore = Depends(get_store)):
    return inventory.create_product(db, payload)


@app.put("/api/inventory/{product_id}", response_model=ProductRecord)
def update_product(product_id: str, payload: ProductUpdate, db: DocumentStore = Depends(get_store)):
    return inventory.update_product(db, product_id, payload)


@app.delete("/api/inventory/{product_id}")
def delete_product(product_id: str, db: DocumentStore = Depends(get_store)):
    inventory.delete_product(db, product_id)
    return {"deleted": product_id}


@app.patch("/api/inventory/{product_id}/stock", response_model=ProductRecord)
def update_stock(product_id: str, payload: StockUpdate, db: DocumentStore = Depends(get_store)):
    return inventory.set_stock(db, product_id, payload.stock_level, size=payload.size)


# Customers
@app.get("/api/customers", response_model=List[CustomerRecord])
def list_customers(search: Optional[str] = None, db: DocumentStore = Depends(get_store)):
    return customers.list_customers(db, search=search)


@app.get("/api/customers/{customer_id}", response_model=CustomerRecord)
def get_customer(customer_id: str, db: DocumentStore = Depends(get_store)):
    return customers.require_customer(db, customer_id)


@app.post("/api/customers", response_model=CustomerRecord, status_code=201)
def create_customer(payload: CustomerIn, db: DocumentStore = Depends(get_store)):
    return customers.create_customer(db, payload)


@app.put("/api/customers/{customer_id}", response_model=CustomerRecord)
def update_customer(customer_id: str, payload: CustomerUpdate, db: DocumentStore = Depends(get_store)):
    return customers.update_customer(db, customer_id, payload)


@app.delete("/api/customers/{customer_id}")
def delete_customer(customer_id: str, db: DocumentStore = Depends(get_store)):
    customers.delete_customer(db, customer_id)
    return {"deleted": customer_id}


@app.get("/api/customers/{customer_id}/orders", response_model=List[OrderRecord])
def customer_orders(customer_id: str, db: DocumentStore = Depends(get_store)):
    return orders.get_customer_orders(db, customer_id)


# Orders
@app.get("/api/orders", response_model=List[OrderRecord])
def list_orders(
    status: Optional[str] = None,
    customer_id: Optional[str] = None,
    search: Optional[str] = None,
    min_items: Optional[int] = None,
    db: DocumentStore = Depends(get_store),
):
    return orders.list_orders(db, status=status, customer_id=customer_id, search=search, min_items=min_items)


@app.post("/api/orders", response_model=OrderRecord, status_code=201)
def create_order(payload: CreateOrderRequest, db: DocumentStore = Depends(get_store)):
    return orders.create_order(db, payload)


@app.get("/api/bulk-orders", response_model=List[OrderRecord])
def list_bulk_orders(status: Optional[str] = None, search: Optional[str] = None, db: DocumentStore = Depends(get_store)):
    return orders.list_bulk_orders(db, status=status, search=search)


@app.post("/api/bulk-orders", response_model=OrderRecord, status_code=201)
def create_bulk_order(payload: CreateOrderRequest, db: DocumentStore = Depends(get_store)):
    return orders.create_order(db, payload.model_copy(update={"bulk": True}))


@app.get("/api/orders/{order_id}", response_model=OrderRecord)
def get_order(order_id: str, db: DocumentStore = Depends(get_store)):
    return orders.require_order(db, order_id)


@app.put("/api/orders/{order_id}", response_model=OrderRecord)
def update_order(order_id: str, payload: OrderUpdate, db: DocumentStore = Depends(get_store)):
    return orders.update_order(db, order_id, payload)


@app.patch("/api/orders/{order_id}/status", response_model=OrderRecord)
def update_order_status(order_id: str, payload: StatusUpdate, db: DocumentStore = Depends(get_store)):
    return orders.update_order_status(db, order_id, payload.status)


@app.patch("/api/orders/{order_id}/payment", response_model=OrderRecord)
def update_payment_status(order_id: str, payload: PaymentUpdate, db: DocumentStore = Depends(get_store)):
    return orders.update_payment_status(db, order_id, payload.payment_status)


@app.delete("/api/orders/{order_id}")
def delete_order(order_id: str, db: DocumentStore = Depends(get_store)):
    orders.delete_order(db, order_id)
    return {"deleted": order_id}


# Analytics
@app.get("/api/analytics/dashboard", response_model=DashboardStats)
def dashboard(db: DocumentStore = Depends(get_store)):
    return analytics.get_dashboard(db)


@app.get("/api/analytics/recent-orders", response_model=List[OrderRecord])
def recent_orders(limit: int = 5, db: DocumentStore = Depends(get_store)):
    return analytics.recent_orders(orders.list_orders(db), limit=limit)


@app.get("/api/analytics/low-stock", response_model=List[ProductRecord])
def low_stock_alerts(db: DocumentStore = Depends(get_store)):
    return inventory.get_low_stock_products(db)


@app.post("/api/seed-all")
def seed_all(db: DocumentStore = Depends(get_store)):
    return {
        "products": inventory.seed_products(db),
        "customers": customers.seed_customers(db),
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
