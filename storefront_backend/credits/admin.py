# credits/admin.py

from django.contrib import admin

from credits.models import CreditBalance, CreditTransaction


@admin.register(CreditTransaction)
class CreditTransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "store", "amount", "currency", "credits_amount", "status", "created_at")
    list_filter = ("status", "store")
    search_fields = ("stripe_payment_intent_id", "user__email")
    readonly_fields = ("stripe_payment_intent_id", "confirmation_email_sent_at", "completed_at", "created_at", "updated_at")


@admin.register(CreditBalance)
class CreditBalanceAdmin(admin.ModelAdmin):
    list_display = ("user", "store", "balance", "updated_at")
    search_fields = ("user__email",)
