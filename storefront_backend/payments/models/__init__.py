from .payment_event import PaymentEvent

__all__ = ["PaymentEvent"]
