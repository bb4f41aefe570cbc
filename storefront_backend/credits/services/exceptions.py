# credits/services/exceptions.py


class CreditPurchaseError(Exception):
    """Base exception for credit purchase failures."""


class InvalidCreditPricingError(CreditPurchaseError):
    """Requested credits do not match the price paid."""
