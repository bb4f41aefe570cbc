# products/admin.py
"""
=====================================================
PATH: products/admin.py
=====================================================

Admin rules:
- Product prices here are the ONLY prices checkout trusts.
- Options are edited inline on the product page.
"""

from django.contrib import admin

from products.models import Product, ProductOption


class ProductOptionInline(admin.TabularInline):
    model = ProductOption
    extra = 1
    fields = ("name", "price", "is_active")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "sku",
        "name",
        "store",
        "unit_price",
        "is_active",
        "created_at",
    )
    list_filter = ("is_active", "store", "created_at")
    search_fields = ("sku", "name")
    ordering = ("-created_at",)
    readonly_fields = ("created_at", "updated_at")

    inlines = [ProductOptionInline]
