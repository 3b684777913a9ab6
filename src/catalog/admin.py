from django.contrib import admin

from .models import EstablishmentProduct, Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "reference", "category", "crate_type", "unit_price", "is_active")
    list_filter = ("category", "crate_type", "is_active")
    search_fields = ("name", "reference")


@admin.register(EstablishmentProduct)
class EstablishmentProductAdmin(admin.ModelAdmin):
    list_display = ("product", "organization", "selling_price", "min_stock_alert", "is_active")
    list_filter = ("is_active",)
    search_fields = ("product__name", "organization__name")
    raw_id_fields = ("organization", "product")
