# clinic_core/iam/roles.py
from django.db import models


class Role(models.TextChoices):
    ADMIN = "admin", "Administrator"
    PHYSICIAN = "physician", "Physician"
    NURSE = "nurse", "Nurse"
    RECEPTIONIST = "receptionist", "Receptionist"
    PATIENT = "patient", "Patient"


ALL_ROLES = frozenset(Role)
STAFF_ROLES = frozenset({Role.ADMIN, Role.PHYSICIAN, Role.NURSE, Role.RECEPTIONIST})
CLINICAL_ROLES = frozenset({Role.PHYSICIAN, Role.NURSE})
