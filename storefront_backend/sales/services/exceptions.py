# sales/services/exceptions.py

"""
SALES SERVICE ERRORS

Centralized domain errors for checkout pricing, order materialization
and order finalization.
"""


class SalesServiceError(Exception):
    """Base exception for all sales service failures."""


class PricingError(SalesServiceError):
    """Raised when a cart cannot be priced (unknown product, bad quantity...)."""


class EmptyOrderError(PricingError):
    """Raised when no valid line survives validation. Fatal to that order only."""


class InvalidCouponError(PricingError):
    """Raised when a coupon code is unknown, inactive, expired or below minimum."""


class CheckoutConfigurationError(SalesServiceError):
    """Raised when the selected payment/shipping method is unknown or inactive."""


class OrderReconstructionError(SalesServiceError):
    """Raised when an order cannot be rebuilt from gateway session data."""


class InvalidOrderTransitionError(SalesServiceError):
    """Raised when a staff action is not allowed for the order's current state."""
