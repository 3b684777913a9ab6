from django.contrib import admin

from .models import DailyExpense, DailyPackaging, DailySheet, DailyStockLine


class DailyStockLineInline(admin.TabularInline):
    model = DailyStockLine
    extra = 0
    raw_id_fields = ("product",)


class DailyPackagingInline(admin.TabularInline):
    model = DailyPackaging
    extra = 0


class DailyExpenseInline(admin.TabularInline):
    model = DailyExpense
    extra = 0


@admin.register(DailySheet)
class DailySheetAdmin(admin.ModelAdmin):
    list_display = (
        "sheet_date", "organization", "status", "theoretical_revenue",
        "expenses_total", "cash_difference", "closed_at",
    )
    list_filter = ("status", "sheet_date")
    search_fields = ("organization__name",)
    raw_id_fields = ("organization", "closed_by")
    date_hierarchy = "sheet_date"
    inlines = [DailyStockLineInline, DailyPackagingInline, DailyExpenseInline]
