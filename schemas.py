"""
Database Schemas for the T-Shirt Inventory App

Each top-level Pydantic model represents a collection in the document store.
The collection name is the lowercase of the class name (e.g., Product ->
"product"). The *Record variants are what the services hand back: the stored
fields plus the document id and timestamps.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

Size = Literal["XS", "S", "M", "L", "XL", "XXL"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentMethod = Literal["cash", "card", "bank_transfer", "paypal", "other"]
PaymentStatus = Literal["pending", "paid", "refunded"]
ContactMethod = Literal["email", "phone", "sms"]

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
DEFAULT_MIN_STOCK = 10


class SizeStock(BaseModel):
    size: Size
    stock_level: int = Field(0, ge=0)
    min_stock_level: int = Field(DEFAULT_MIN_STOCK, ge=0)


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"

    A product either carries one flat stock_level, or a list of per-size
    SizeStock entries; in the latter case stock_level is the sum of them.
    """
    name: str = Field(..., min_length=1, description="Display name")
    design: str = Field("", description="Design label")
    color: str = Field("", description="Garment color")
    category: str = Field("", description="Product category")
    size: Optional[Size] = Field(None, description="Size of a single-size product")
    cost_price: float = Field(..., ge=0, description="Unit cost")
    selling_price: float = Field(..., ge=0, description="Unit selling price")
    stock_level: int = Field(0, ge=0, description="Units available")
    min_stock_level: int = Field(DEFAULT_MIN_STOCK, ge=0, description="Low stock threshold")
    tags: List[str] = Field(default_factory=list)
    sizes: List[SizeStock] = Field(default_factory=list, description="Per-size stock")

    @model_validator(mode="after")
    def _sync_size_stock(self):
        if self.sizes:
            seen = [s.size for s in self.sizes]
            if len(seen) != len(set(seen)):
                raise ValueError("sizes must be unique within a product")
            self.stock_level = sum(s.stock_level for s in self.sizes)
        return self

    def size_stock(self, size: str) -> Optional[SizeStock]:
        for entry in self.sizes:
            if entry.size == size:
                return entry
        return None


class ProductRecord(Product):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    design: Optional[str] = None
    color: Optional[str] = None
    category: Optional[str] = None
    size: Optional[Size] = None
    cost_price: Optional[float] = Field(None, ge=0)
    selling_price: Optional[float] = Field(None, ge=0)
    stock_level: Optional[int] = Field(None, ge=0)
    min_stock_level: Optional[int] = Field(None, ge=0)
    tags: Optional[List[str]] = None
    sizes: Optional[List[SizeStock]] = None


class Address(BaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""


class CustomerIn(BaseModel):
    name: str = Field(..., min_length=1, description="Full name")
    email: EmailStr = Field(..., description="Email address")
    phone: str = Field("", description="Phone number")
    address: Address = Field(default_factory=Address)
    preferred_contact_method: ContactMethod = "email"
    notes: Optional[str] = None


class Customer(CustomerIn):
    """
    Customers collection schema
    Collection name: "customer"

    total_orders and total_spent are only changed by order creation.
    """
    total_orders: int = Field(0, ge=0)
    total_spent: float = Field(0.0, ge=0)


class CustomerRecord(Customer):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[Address] = None
    preferred_contact_method: Optional[ContactMethod] = None
    notes: Optional[str] = None


class CustomerSnapshot(BaseModel):
    """Customer fields copied into an order when it is created."""
    id: str
    name: str
    email: str
    phone: str = ""


class OrderItem(BaseModel):
    """Order line with the product fields and prices captured at order time."""
    id: str
    product_id: str
    size: Optional[str] = None
    name: str
    design: str = ""
    color: str = ""
    category: str = ""
    quantity: int = Field(..., ge=1)
    unit_cost: float
    unit_selling: float
    total_cost: float
    total_selling: float
    profit: float


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"

    Items and totals are fixed at creation; status, payment status, notes and
    the shipping/delivery dates may change afterwards.
    """
    customer_id: str
    customer: CustomerSnapshot
    items: List[OrderItem]
    status: OrderStatus = "pending"
    total_cost: float
    total_selling: float
    profit: float
    order_date: datetime
    shipping_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None
    payment_date: Optional[datetime] = None
    shipping_address: Address = Field(default_factory=Address)
    payment_method: PaymentMethod = "cash"
    payment_status: PaymentStatus = "pending"
    notes: Optional[str] = None


class OrderRecord(Order):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Requests

class OrderItemRequest(BaseModel):
    product_id: str
    size: Optional[str] = None
    quantity: int = Field(..., gt=0)


class CreateOrderRequest(BaseModel):
    customer_id: str
    items: List[OrderItemRequest]
    payment_method: PaymentMethod = "cash"
    payment_status: PaymentStatus = "pending"
    notes: Optional[str] = None
    bulk: bool = Field(False, description="Enforce the bulk minimum quantity")


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    notes: Optional[str] = None
    shipping_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None


class StatusUpdate(BaseModel):
    status: OrderStatus


class PaymentUpdate(BaseModel):
    payment_status: PaymentStatus


class StockUpdate(BaseModel):
    stock_level: int
    size: Optional[str] = None


class MinStockUpdate(BaseModel):
    min_stock_level: int = Field(..., ge=0)


# Analytics

class InventoryStats(BaseModel):
    total_items: int = 0
    low_stock_items: int = 0
    out_of_stock_items: int = 0
    total_inventory_value: float = 0.0


class OrderStats(BaseModel):
    total_orders: int = 0
    status_counts: Dict[str, int] = Field(default_factory=dict)
    pending_orders: int = 0
    completed_orders: int = 0
    total_revenue: float = 0.0
    total_profit: float = 0.0


class CustomerStats(BaseModel):
    total_customers: int = 0
    vip_customers: int = 0


class MonthlyTrendPoint(BaseModel):
    month: str
    profit: float = 0.0
    revenue: float = 0.0


class ProductSnapshot(BaseModel):
    id: str
    name: str = "Unknown Product"
    size: Optional[str] = None
    color: str = ""
    category: str = ""


class TopSellingItem(BaseModel):
    product: ProductSnapshot
    quantity_sold: int = 0
    revenue: float = 0.0


class DashboardStats(BaseModel):
    inventory: InventoryStats
    orders: OrderStats
    customers: CustomerStats
    monthly_profit_trend: List[MonthlyTrendPoint]
    top_selling_items: List[TopSellingItem]
