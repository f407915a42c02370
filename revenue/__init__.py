"""
Revenue items (product, service, subscription) and the stream that owns them.
"""

from .base import MonthlyCapacity, RevenueItem
from .items import Product, Service, Subscription, parse_revenue_item
from .stream import RevenueStream

__all__ = [
    "MonthlyCapacity",
    "RevenueItem",
    "Product",
    "Service",
    "Subscription",
    "parse_revenue_item",
    "RevenueStream",
]
