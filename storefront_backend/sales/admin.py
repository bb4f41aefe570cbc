# sales/admin.py

from django.contrib import admin

from sales.models import Invoice, Order, OrderItem, Shipment


# ======================================================
# ORDER ADMIN
# ======================================================


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    readonly_fields = (
        "product",
        "product_name",
        "product_sku",
        "quantity",
        "unit_price",
        "total_price",
        "selected_options",
    )

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "store",
        "status",
        "payment_status",
        "payment_provider",
        "total_amount",
        "currency",
        "confirmation_email_sent_at",
        "created_at",
    )
    list_filter = ("status", "payment_status", "payment_flow", "store", "created_at")
    search_fields = ("order_number", "payment_reference", "customer_email")
    readonly_fields = (
        "order_number",
        "payment_reference",
        "payment_provider",
        "payment_flow",
        "subtotal_amount",
        "tax_amount",
        "shipping_amount",
        "payment_fee_amount",
        "discount_amount",
        "total_amount",
        "confirmation_email_sent_at",
        "paid_at",
        "shipped_at",
        "created_at",
    )
    inlines = [OrderItemInline]


# ======================================================
# FULFILLMENT ADMIN
# ======================================================


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "order", "email_status", "sent_at", "created_at")
    search_fields = ("invoice_number", "order__order_number")
    list_filter = ("email_status",)


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    list_display = (
        "shipment_number",
        "order",
        "carrier",
        "tracking_number",
        "email_status",
        "created_at",
    )
    search_fields = ("shipment_number", "tracking_number", "order__order_number")
    list_filter = ("email_status",)
