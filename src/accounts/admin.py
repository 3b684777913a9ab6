from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin configuration for the custom User model."""

    # ------------------------------------------------------------------
    # List view
    # ------------------------------------------------------------------
    list_display = (
        "email",
        "name",
        "role",
        "approval_status",
        "registered_by_sales_rep",
        "is_active",
        "date_joined",
    )
    list_filter = ("role", "approval_status", "is_active", "is_staff")
    search_fields = ("email", "name", "business_name", "phone")
    ordering = ("name",)
    raw_id_fields = ("registered_by_sales_rep",)

    # ------------------------------------------------------------------
    # Detail / edit view
    # ------------------------------------------------------------------
    fieldsets = (
        (None, {"fields": ("email", "password")}),
        (
            _("Informations"),
            {"fields": ("name", "phone", "address", "business_name")},
        ),
        (
            _("Role et approbation"),
            {
                "fields": (
                    "role",
                    "is_approved",
                    "approval_status",
                    "approved_at",
                    "rejection_reason",
                    "registered_by_sales_rep",
                ),
            },
        ),
        (
            _("Permissions"),
            {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")},
        ),
    )
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "name", "role", "password1", "password2"),
            },
        ),
    )
