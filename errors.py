"""Domain exceptions for the inventory service."""

from typing import Optional


class InventoryError(Exception):
    """Base exception for all inventory service errors."""

    kind = "InventoryError"


class ValidationError(InventoryError):
    """Raised when a request is missing data or carries malformed values."""

    kind = "ValidationError"


class NotFoundError(InventoryError):
    """Raised when an id does not resolve to a stored document."""

    kind = "NotFound"
    entity = "Document"

    def __init__(self, doc_id: str):
        self.doc_id = doc_id
        super().__init__(f"{self.entity} not found: {doc_id}")


class ProductNotFoundError(NotFoundError):
    kind = "ProductNotFound"
    entity = "Product"


class CustomerNotFoundError(NotFoundError):
    kind = "CustomerNotFound"
    entity = "Customer"


class OrderNotFoundError(NotFoundError):
    kind = "OrderNotFound"
    entity = "Order"


class InsufficientStockError(InventoryError):
    """Raised when an order line asks for more units than are available."""

    kind = "InsufficientStock"

    def __init__(self, product_name: str, available: int, requested: int, size: Optional[str] = None):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        self.size = size
        label = f"{product_name} ({size})" if size else product_name
        super().__init__(f"Insufficient stock: available {available}, requested {requested}, for {label}")


class InvalidStatusTransitionError(InventoryError):
    """Raised when an order status change is not an edge of the status graph."""

    kind = "InvalidStatusTransition"

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move order from '{current}' to '{requested}'")


class StoreUnavailableError(InventoryError):
    """Raised when the underlying database call fails."""

    kind = "StoreUnavailable"
