# clinic_core/audit/admin.py
from django.contrib import admin

from clinic_core.audit.models import AuditEntry


@admin.register(AuditEntry)
class AuditEntryAdmin(admin.ModelAdmin):
    list_display = (
        "created_at",
        "action",
        "resource_type",
        "resource_id",
        "actor",
        "success",
        "ip_address",
    )
    list_filter = ("action", "resource_type", "success")
    search_fields = ("action", "resource_id", "ip_address")
    ordering = ("-created_at",)

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
