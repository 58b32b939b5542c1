"""
Retail vs. bulk order classification

Two rules are in use and they are deliberately kept apart:

- is_bulk_eligible: 20 or more units in total. Gates whether a new order may be
  submitted as a bulk order.
- is_bulk_for_display: two or more line items, or any single line of 5+ units.
  Only used to group an existing order list on the bulk orders view.
"""

from typing import Any, Iterable, Literal

BULK_MIN_QUANTITY = 20
DISPLAY_MIN_LINES = 2
DISPLAY_MIN_LINE_QUANTITY = 5


def _quantity(item: Any) -> int:
    if isinstance(item, dict):
        return int(item.get("quantity", 0))
    return int(item.quantity)


def total_quantity(items: Iterable[Any]) -> int:
    return sum(_quantity(item) for item in items)


def is_bulk_eligible(items: Iterable[Any]) -> bool:
    return total_quantity(items) >= BULK_MIN_QUANTITY


def classify_order(items: Iterable[Any]) -> Literal["bulk", "retail"]:
    return "bulk" if is_bulk_eligible(items) else "retail"


def is_bulk_for_display(items: Iterable[Any]) -> bool:
    items = list(items)
    if len(items) >= DISPLAY_MIN_LINES:
        return True
    return any(_quantity(item) >= DISPLAY_MIN_LINE_QUANTITY for item in items)
