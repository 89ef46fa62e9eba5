from django.contrib import admin

from clinic_core.appointments.models import Appointment


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ("scheduled_at", "status", "kind", "professional", "patient", "urgent")
    list_filter = ("status", "kind", "urgent")
    search_fields = ("patient__full_name", "professional__full_name")
    raw_id_fields = ("patient", "professional")
    readonly_fields = ("created_at", "updated_at", "checked_in_at", "completed_at", "cancelled_at")
    ordering = ("-scheduled_at",)

    def has_delete_permission(self, request, obj=None):
        return False
