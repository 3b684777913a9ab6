from django.contrib import admin

from .models import CreditCustomer, CreditTransaction, CreditTransactionItem


@admin.register(CreditCustomer)
class CreditCustomerAdmin(admin.ModelAdmin):
    list_display = (
        "name", "organization", "phone", "credit_limit", "current_balance",
        "status", "last_payment_date", "is_active",
    )
    list_filter = ("status", "is_active")
    search_fields = ("name", "phone", "organization__name")
    raw_id_fields = ("organization",)
    readonly_fields = ("current_balance", "total_credited", "total_paid", "last_payment_date")


class CreditTransactionItemInline(admin.TabularInline):
    model = CreditTransactionItem
    extra = 0
    raw_id_fields = ("product",)


@admin.register(CreditTransaction)
class CreditTransactionAdmin(admin.ModelAdmin):
    list_display = ("transaction_date", "customer", "transaction_type", "amount", "payment_method", "created_by")
    list_filter = ("transaction_type", "payment_method")
    search_fields = ("customer__name",)
    raw_id_fields = ("customer", "organization", "daily_sheet", "created_by")
    date_hierarchy = "transaction_date"
    inlines = [CreditTransactionItemInline]

    def has_change_permission(self, request, obj=None):
        return False
