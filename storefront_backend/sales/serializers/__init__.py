from .order import (
    InvoiceSerializer,
    OrderDetailSerializer,
    OrderItemSerializer,
    OrderListSerializer,
    PublicOrderStatusSerializer,
    SendShipmentSerializer,
    ShipmentSerializer,
)

__all__ = [
    "OrderListSerializer",
    "OrderDetailSerializer",
    "OrderItemSerializer",
    "InvoiceSerializer",
    "ShipmentSerializer",
    "PublicOrderStatusSerializer",
    "SendShipmentSerializer",
]
