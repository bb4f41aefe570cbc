# sales/models/__init__.py

"""
SALES MODELS PACKAGE EXPORTS

Purpose:
- Central export surface for sales app models.
"""

from .fulfillment import Invoice, Shipment
from .order import Order, generate_order_number
from .order_item import OrderItem

__all__ = [
    "Order",
    "OrderItem",
    "Invoice",
    "Shipment",
    "generate_order_number",
]
