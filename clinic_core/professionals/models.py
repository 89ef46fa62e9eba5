# clinic_core/professionals/models.py
from django.conf import settings
from django.db import models

from clinic_core.common.models import UUIDModel
from clinic_core.iam.roles import Role


class Position(models.TextChoices):
    PHYSICIAN = "physician", "Physician"
    NURSE = "nurse", "Nurse"
    NURSING_TECHNICIAN = "nursing_technician", "Nursing technician"
    PHYSIOTHERAPIST = "physiotherapist", "Physiotherapist"
    PSYCHOLOGIST = "psychologist", "Psychologist"
    ADMIN = "admin", "Administrator"


def role_for_position(position: str) -> Role:
    if position == Position.PHYSICIAN:
        return Role.PHYSICIAN
    if position == Position.ADMIN:
        return Role.ADMIN
    return Role.NURSE


class Professional(UUIDModel):
    """
    Staff protected record, 1:1 with its Account.
    `_enc` columns hold envelopes only (see ProfessionalRepository).
    """
    account = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="professional_record",
    )

    full_name = models.CharField(max_length=255)
    national_id_enc = models.TextField()
    national_id_digest = models.CharField(max_length=64, unique=True, null=True, blank=True)
    license_number = models.CharField(max_length=32, unique=True, null=True, blank=True)
    specialty = models.CharField(max_length=120, blank=True, db_index=True)
    phone_enc = models.TextField(null=True, blank=True)

    position = models.CharField(max_length=32, choices=Position.choices)
    department = models.CharField(max_length=120, blank=True)
    hired_on = models.DateField(null=True, blank=True)
    working_hours = models.JSONField(default=dict, blank=True)

    can_prescribe = models.BooleanField(default=False)
    can_telemedicine = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        db_table = "professionals_professional"
        indexes = [
            models.Index(fields=["is_active", "specialty"]),
            models.Index(fields=["is_active", "full_name"]),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} ({self.position})"
