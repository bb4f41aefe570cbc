# store/admin.py

from django.contrib import admin

from store.models import Coupon, Customer, PaymentMethod, ShippingMethod, Store


@admin.register(Store)
class StoreAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "currency", "tax_rate", "is_active", "created_at")
    list_filter = ("is_active", "currency")
    search_fields = ("name", "code", "domain")


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("email", "first_name", "last_name", "store", "created_at")
    list_filter = ("store",)
    search_fields = ("email", "first_name", "last_name")


@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "store", "provider", "payment_flow", "fee_amount", "is_active")
    list_filter = ("provider", "payment_flow", "is_active", "store")
    search_fields = ("code", "name")


@admin.register(ShippingMethod)
class ShippingMethodAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "store", "flat_rate", "free_shipping_min_order", "is_active")
    list_filter = ("is_active", "store")
    search_fields = ("code", "name")


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ("code", "store", "discount_type", "discount_value", "is_active", "valid_until")
    list_filter = ("discount_type", "is_active", "store")
    search_fields = ("code",)
