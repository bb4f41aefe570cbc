# payments/admin.py

from django.contrib import admin

from payments.models import PaymentEvent


@admin.register(PaymentEvent)
class PaymentEventAdmin(admin.ModelAdmin):
    list_display = ("event_type", "event_id", "payment_reference", "processing_result", "deliveries", "created_at")
    list_filter = ("processing_result", "event_type")
    search_fields = ("event_id", "payment_reference")
    readonly_fields = [f.name for f in PaymentEvent._meta.fields]
