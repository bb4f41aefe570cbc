# store/models/__init__.py

from .checkout_options import Coupon, PaymentMethod, ShippingMethod
from .customer import Customer
from .store import Store

__all__ = [
    "Store",
    "Customer",
    "PaymentMethod",
    "ShippingMethod",
    "Coupon",
]
