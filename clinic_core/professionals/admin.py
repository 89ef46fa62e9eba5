# clinic_core/professionals/admin.py
from django.contrib import admin

from clinic_core.professionals.models import Professional


@admin.register(Professional)
class ProfessionalAdmin(admin.ModelAdmin):
    list_display = ("full_name", "position", "specialty", "license_number", "is_active")
    list_filter = ("position", "is_active", "can_telemedicine")
    search_fields = ("full_name", "license_number", "specialty")
    ordering = ("full_name",)
    readonly_fields = ("national_id_enc", "national_id_digest", "phone_enc")

    def has_delete_permission(self, request, obj=None):
        return False
