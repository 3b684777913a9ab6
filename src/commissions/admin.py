from django.contrib import admin

from .models import (
    SalesCommissionPayment,
    SalesCommissionSettings,
    SalesObjective,
    SalesRepresentative,
)


@admin.register(SalesRepresentative)
class SalesRepresentativeAdmin(admin.ModelAdmin):
    list_display = ("name", "phone", "email", "zone", "is_active")
    list_filter = ("is_active", "zone")
    search_fields = ("name", "phone", "email")
    raw_id_fields = ("user",)


@admin.register(SalesObjective)
class SalesObjectiveAdmin(admin.ModelAdmin):
    list_display = ("sales_rep", "period_year", "period_month", "objective_chr", "objective_depots")
    list_filter = ("period_year", "period_month")
    search_fields = ("sales_rep__name",)
    raw_id_fields = ("sales_rep", "created_by")


@admin.register(SalesCommissionSettings)
class SalesCommissionSettingsAdmin(admin.ModelAdmin):
    list_display = ("__str__", "ca_commission_enabled", "updated_at", "updated_by")
    raw_id_fields = ("updated_by",)

    def has_add_permission(self, request):
        return not SalesCommissionSettings.objects.exists()


@admin.register(SalesCommissionPayment)
class SalesCommissionPaymentAdmin(admin.ModelAdmin):
    list_display = ("sales_rep", "period_year", "period_month", "total_amount", "status", "validated_at", "paid_at")
    list_filter = ("status", "period_year", "period_month")
    search_fields = ("sales_rep__name",)
    raw_id_fields = ("sales_rep", "validated_by", "paid_by")
    readonly_fields = ("validated_at", "validated_by", "paid_at", "paid_by")
