# clinic_core/patients/models.py
from django.conf import settings
from django.db import models

from clinic_core.common.models import UUIDModel


class Patient(UUIDModel):
    """
    Patient protected record, 1:1 with its Account.

    Columns ending in `_enc` hold envelopes only; PatientRepository is the one
    place that converts between them and plaintext. national_id_digest is the
    blind index that keeps national ids unique without decrypting.
    """
    account = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="patient_record",
    )

    full_name = models.CharField(max_length=255)
    national_id_enc = models.TextField()
    national_id_digest = models.CharField(max_length=64, unique=True, null=True, blank=True)
    identity_document_enc = models.TextField(null=True, blank=True)
    birth_date = models.DateField(null=True, blank=True)

    phone_enc = models.TextField(null=True, blank=True)
    address_enc = models.TextField(null=True, blank=True)
    city = models.CharField(max_length=120, blank=True)
    state = models.CharField(max_length=2, blank=True)
    postal_code = models.CharField(max_length=10, blank=True)

    health_plan = models.CharField(max_length=120, blank=True)
    insurance_card_number_enc = models.TextField(null=True, blank=True)

    emergency_contact_name = models.CharField(max_length=255, blank=True)
    emergency_contact_phone_enc = models.TextField(null=True, blank=True)

    medical_notes = models.TextField(blank=True)

    lgpd_consent = models.BooleanField(default=False)
    lgpd_consent_at = models.DateTimeField(null=True, blank=True)

    is_active = models.BooleanField(default=True, db_index=True)
    anonymized_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "patients_patient"
        indexes = [
            models.Index(fields=["is_active", "full_name"]),
        ]

    def __str__(self) -> str:
        return self.full_name

    @property
    def is_anonymized(self) -> bool:
        return self.anonymized_at is not None
