from django.contrib import admin

from .models import AuditLog, Organization, OrganizationMember


class OrganizationMemberInline(admin.TabularInline):
    model = OrganizationMember
    extra = 0
    raw_id_fields = ("user",)


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ("name", "type", "owner", "max_members", "is_active", "created_at")
    list_filter = ("type", "is_active")
    search_fields = ("name", "owner__email")
    raw_id_fields = ("owner",)
    inlines = [OrganizationMemberInline]


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "action", "entity_type", "entity_id", "actor", "organization")
    list_filter = ("action", "entity_type")
    search_fields = ("entity_id", "actor__email")
    readonly_fields = [f.name for f in AuditLog._meta.fields]

    def has_add_permission(self, request):
        return False
