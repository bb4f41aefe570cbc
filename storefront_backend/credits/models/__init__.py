from .credit import CreditBalance, CreditTransaction

__all__ = ["CreditTransaction", "CreditBalance"]
