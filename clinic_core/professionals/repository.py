# clinic_core/professionals/repository.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from clinic_core.professionals.models import Professional
from clinic_core.security.anonymize import NATIONAL_ID, PHONE

SENSITIVE_FIELDS: dict[str, str] = {
    "national_id": NATIONAL_ID,
    "phone": PHONE,
}

PLAIN_FIELDS = (
    "full_name",
    "license_number",
    "specialty",
    "position",
    "department",
    "hired_on",
    "working_hours",
    "can_prescribe",
    "can_telemedicine",
    "is_active",
)


@dataclass
class ProfessionalRecord:
    id: UUID
    account_id: UUID
    full_name: str
    national_id: Optional[str]
    license_number: Optional[str]
    specialty: str
    phone: Optional[str]
    position: str
    department: str
    hired_on: Optional[date]
    working_hours: dict
    can_prescribe: bool
    can_telemedicine: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ProfessionalRepository:
    def __init__(self, *, envelope):
        self.envelope = envelope

    def to_storage(self, values: dict[str, Any]) -> dict[str, Any]:
        columns = {name: values[name] for name in PLAIN_FIELDS if name in values}
        if "license_number" in columns:
            columns["license_number"] = columns["license_number"] or None
        for name in SENSITIVE_FIELDS:
            if name in values:
                plain = values[name] or None
                columns[f"{name}_enc"] = self.envelope.encode(plain)
                if name == "national_id":
                    columns["national_id_digest"] = self.envelope.digest(plain) if plain else None
        return columns

    def from_storage(self, professional: Professional) -> ProfessionalRecord:
        return ProfessionalRecord(
            id=professional.id,
            account_id=professional.account_id,
            full_name=professional.full_name,
            national_id=self.envelope.decode(professional.national_id_enc),
            license_number=professional.license_number,
            specialty=professional.specialty,
            phone=self.envelope.decode(professional.phone_enc),
            position=professional.position,
            department=professional.department,
            hired_on=professional.hired_on,
            working_hours=professional.working_hours,
            can_prescribe=professional.can_prescribe,
            can_telemedicine=professional.can_telemedicine,
            is_active=professional.is_active,
            created_at=professional.created_at,
            updated_at=professional.updated_at,
        )

    def national_id_taken(self, national_id: str, *, exclude_id=None) -> bool:
        qs = Professional.objects.filter(national_id_digest=self.envelope.digest(national_id))
        if exclude_id is not None:
            qs = qs.exclude(id=exclude_id)
        return qs.exists()

    def license_taken(self, license_number: str, *, exclude_id=None) -> bool:
        qs = Professional.objects.filter(license_number=license_number)
        if exclude_id is not None:
            qs = qs.exclude(id=exclude_id)
        return qs.exists()

    def insert(self, *, account, values: dict[str, Any]) -> Professional:
        return Professional.objects.create(account=account, **self.to_storage(values))

    def apply(self, professional: Professional, values: dict[str, Any]) -> list[str]:
        columns = self.to_storage(values)
        for name, value in columns.items():
            setattr(professional, name, value)
        if columns:
            professional.save(update_fields=[*columns.keys(), "updated_at"])
        return sorted(columns.keys())
