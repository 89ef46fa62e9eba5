# clinic_core/patients/admin.py
from django.contrib import admin

from clinic_core.patients.models import Patient


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ("full_name", "city", "state", "is_active", "anonymized_at", "created_at")
    list_filter = ("is_active", "state", "lgpd_consent")
    search_fields = ("full_name",)
    ordering = ("full_name",)
    # envelope columns are opaque; never editable by hand
    readonly_fields = (
        "national_id_enc",
        "national_id_digest",
        "identity_document_enc",
        "phone_enc",
        "address_enc",
        "insurance_card_number_enc",
        "emergency_contact_phone_enc",
        "anonymized_at",
    )

    def has_delete_permission(self, request, obj=None):
        return False
