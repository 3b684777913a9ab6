from django.contrib import admin

from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    raw_id_fields = ("product",)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "client", "supplier", "status", "total_amount", "delivered_at", "created_at")
    list_filter = ("status",)
    search_fields = ("client__email", "client__name", "supplier__name")
    raw_id_fields = ("client", "supplier")
    inlines = [OrderItemInline]
