# clinic_core/patients/repository.py
"""
Storage boundary for patient records.

Plaintext never reaches the Patient model: to_storage() turns it into
envelope columns (plus the national-id digest) and from_storage() opens them
again into a PatientRecord.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from clinic_core.patients.models import Patient
from clinic_core.security.anonymize import GENERIC, NATIONAL_ID, PHONE

# plaintext field -> anonymize kind
SENSITIVE_FIELDS: dict[str, str] = {
    "national_id": NATIONAL_ID,
    "identity_document": GENERIC,
    "phone": PHONE,
    "address": GENERIC,
    "insurance_card_number": GENERIC,
    "emergency_contact_phone": PHONE,
}

PLAIN_FIELDS = (
    "full_name",
    "birth_date",
    "city",
    "state",
    "postal_code",
    "health_plan",
    "emergency_contact_name",
    "medical_notes",
    "lgpd_consent",
    "is_active",
)

ANONYMIZED_NAME = "Anonymized Patient"
ANONYMIZED_NATIONAL_ID = "***.***.***-**"
ANONYMIZED_NOTES = "Data anonymized under LGPD"


class AlreadyAnonymized(Exception):
    pass


@dataclass
class PatientRecord:
    id: UUID
    account_id: UUID
    full_name: str
    national_id: Optional[str]
    identity_document: Optional[str]
    birth_date: Optional[date]
    phone: Optional[str]
    address: Optional[str]
    city: str
    state: str
    postal_code: str
    health_plan: str
    insurance_card_number: Optional[str]
    emergency_contact_name: str
    emergency_contact_phone: Optional[str]
    medical_notes: str
    lgpd_consent: bool
    lgpd_consent_at: Optional[datetime]
    is_active: bool
    anonymized_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    def as_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class PatientRepository:
    def __init__(self, *, envelope):
        self.envelope = envelope

    def digest_national_id(self, national_id: Optional[str]) -> Optional[str]:
        return self.envelope.digest(national_id) if national_id else None

    def to_storage(self, values: dict[str, Any]) -> dict[str, Any]:
        columns: dict[str, Any] = {}
        for name in PLAIN_FIELDS:
            if name in values:
                columns[name] = values[name]
        for name in SENSITIVE_FIELDS:
            if name in values:
                plain = values[name] or None
                columns[f"{name}_enc"] = self.envelope.encode(plain)
                if name == "national_id":
                    columns["national_id_digest"] = self.digest_national_id(plain)
        if "lgpd_consent" in values:
            columns["lgpd_consent_at"] = timezone.now() if values["lgpd_consent"] else None
        return columns

    def from_storage(self, patient: Patient) -> PatientRecord:
        opened = {
            name: self.envelope.decode(getattr(patient, f"{name}_enc"))
            for name in SENSITIVE_FIELDS
        }
        return PatientRecord(
            id=patient.id,
            account_id=patient.account_id,
            full_name=patient.full_name,
            birth_date=patient.birth_date,
            city=patient.city,
            state=patient.state,
            postal_code=patient.postal_code,
            health_plan=patient.health_plan,
            emergency_contact_name=patient.emergency_contact_name,
            medical_notes=patient.medical_notes,
            lgpd_consent=patient.lgpd_consent,
            lgpd_consent_at=patient.lgpd_consent_at,
            is_active=patient.is_active,
            anonymized_at=patient.anonymized_at,
            created_at=patient.created_at,
            updated_at=patient.updated_at,
            **opened,
        )

    def national_id_taken(self, national_id: str, *, exclude_id=None) -> bool:
        qs = Patient.objects.filter(national_id_digest=self.digest_national_id(national_id))
        if exclude_id is not None:
            qs = qs.exclude(id=exclude_id)
        return qs.exists()

    def insert(self, *, account, values: dict[str, Any]) -> Patient:
        return Patient.objects.create(account=account, **self.to_storage(values))

    def apply(self, patient: Patient, values: dict[str, Any]) -> list[str]:
        columns = self.to_storage(values)
        for name, value in columns.items():
            setattr(patient, name, value)
        if columns:
            patient.save(update_fields=[*columns.keys(), "updated_at"])
        return sorted(columns.keys())

    @transaction.atomic
    def anonymize(self, patient_id) -> Patient:
        """
        Single UPDATE under a row lock: readers see the pre- or post-image, never a mix.
        Raises Patient.DoesNotExist when missing.
        """
        patient = Patient.objects.select_for_update().get(id=patient_id)
        if patient.anonymized_at is not None:
            raise AlreadyAnonymized(str(patient.id))
        placeholders = {
            "full_name": ANONYMIZED_NAME,
            "national_id_enc": self.envelope.encode(ANONYMIZED_NATIONAL_ID),
            "national_id_digest": None,
            "identity_document_enc": None,
            "phone_enc": None,
            "address_enc": None,
            "insurance_card_number_enc": None,
            "emergency_contact_name": "",
            "emergency_contact_phone_enc": None,
            "medical_notes": ANONYMIZED_NOTES,
            "is_active": False,
            "anonymized_at": timezone.now(),
            "updated_at": timezone.now(),
        }
        Patient.objects.filter(id=patient.id).update(**placeholders)
        patient.refresh_from_db()
        return patient
