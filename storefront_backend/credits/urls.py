# credits/urls.py
"""
CREDITS API URLS

Base path (mounted in backend/urls.py):
    /api/credits/
"""

from __future__ import annotations

from django.urls import path

from credits.views.credits import (
    CreditBalanceView,
    CreditPurchaseView,
    CreditTransactionListView,
)

app_name = "credits"

urlpatterns = [
    path("purchase/", CreditPurchaseView.as_view(), name="credit-purchase"),
    path("balance/", CreditBalanceView.as_view(), name="credit-balance"),
    path("transactions/", CreditTransactionListView.as_view(), name="credit-transactions"),
]
