"""
Dashboard analytics

compute_dashboard is a pure fold over already-fetched orders, products and
customers. Empty input yields zero counts, six zero-filled trend months and no
top sellers.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import customers
import inventory
import orders
from database import DocumentStore
from schemas import (
    DEFAULT_MIN_STOCK,
    ORDER_STATUSES,
    CustomerRecord,
    CustomerStats,
    DashboardStats,
    InventoryStats,
    MonthlyTrendPoint,
    OrderRecord,
    OrderStats,
    ProductRecord,
    ProductSnapshot,
    TopSellingItem,
)

TREND_MONTHS = 6
TOP_SELLERS = 5
VIP_SPEND = 1000


def _month_key(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m")


def trailing_months(now: datetime, count: int = TREND_MONTHS) -> List[str]:
    """YYYY-MM keys for the last `count` calendar months, oldest first, ending at now."""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    keys = []
    for back in range(count - 1, -1, -1):
        year, month = divmod(now.year * 12 + (now.month - 1) - back, 12)
        keys.append(f"{year:04d}-{month + 1:02d}")
    return keys


def inventory_stats(products: Sequence[ProductRecord]) -> InventoryStats:
    return InventoryStats(
        total_items=len(products),
        # A zero minimum counts as unset
        low_stock_items=sum(1 for p in products if p.stock_level <= (p.min_stock_level or DEFAULT_MIN_STOCK)),
        out_of_stock_items=sum(1 for p in products if p.stock_level == 0),
        total_inventory_value=round(sum(p.stock_level * p.selling_price for p in products), 2),
    )


def order_stats(order_list: Sequence[OrderRecord]) -> OrderStats:
    counts = {status: 0 for status in ORDER_STATUSES}
    for order in order_list:
        counts[order.status] = counts.get(order.status, 0) + 1
    return OrderStats(
        total_orders=len(order_list),
        status_counts=counts,
        pending_orders=counts["pending"],
        completed_orders=counts["delivered"],
        total_revenue=round(sum(o.total_selling for o in order_list), 2),
        total_profit=round(sum(o.profit for o in order_list), 2),
    )


def customer_stats(customer_list: Sequence[CustomerRecord]) -> CustomerStats:
    return CustomerStats(
        total_customers=len(customer_list),
        vip_customers=sum(1 for c in customer_list if c.total_spent > VIP_SPEND),
    )


def monthly_trend(order_list: Sequence[OrderRecord], now: datetime) -> List[MonthlyTrendPoint]:
    buckets: Dict[str, Dict[str, float]] = {
        key: {"profit": 0.0, "revenue": 0.0} for key in trailing_months(now)
    }
    for order in order_list:
        bucket = buckets.get(_month_key(order.order_date))
        if bucket is None:
            continue
        bucket["profit"] += order.profit
        bucket["revenue"] += order.total_selling
    return [
        MonthlyTrendPoint(month=key, profit=round(v["profit"], 2), revenue=round(v["revenue"], 2))
        for key, v in buckets.items()
    ]


def top_selling_items(order_list: Sequence[OrderRecord], limit: int = TOP_SELLERS) -> List[TopSellingItem]:
    stats: Dict[str, TopSellingItem] = {}
    for order in order_list:
        for item in order.items:
            entry = stats.get(item.product_id)
            if entry is None:
                entry = stats[item.product_id] = TopSellingItem(
                    product=ProductSnapshot(
                        id=item.product_id,
                        name=item.name,
                        size=item.size,
                        color=item.color,
                        category=item.category,
                    ),
                )
            entry.quantity_sold += item.quantity
            entry.revenue = round(entry.revenue + item.total_selling, 2)
    ranked = sorted(stats.values(), key=lambda s: s.quantity_sold, reverse=True)
    return ranked[:limit]


def compute_dashboard(
    order_list: Sequence[OrderRecord],
    products: Sequence[ProductRecord],
    customer_list: Sequence[CustomerRecord],
    now: Optional[datetime] = None,
) -> DashboardStats:
    now = now or datetime.now(timezone.utc)
    return DashboardStats(
        inventory=inventory_stats(products),
        orders=order_stats(order_list),
        customers=customer_stats(customer_list),
        monthly_profit_trend=monthly_trend(order_list, now),
        top_selling_items=top_selling_items(order_list),
    )


def get_dashboard(store: DocumentStore, now: Optional[datetime] = None) -> DashboardStats:
    return compute_dashboard(
        orders.list_orders(store),
        inventory.list_products(store),
        customers.list_customers(store),
        now=now,
    )


def recent_orders(order_list: Sequence[OrderRecord], limit: int = 5) -> List[OrderRecord]:
    return sorted(order_list, key=lambda o: o.order_date, reverse=True)[:limit]
