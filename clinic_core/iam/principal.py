# clinic_core/iam/principal.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from clinic_core.iam.roles import Role


@dataclass(frozen=True)
class Principal:
    """
    The caller as the access evaluator sees it: identity, role and the ids
    of the protected records the account owns.
    """
    account_id: UUID
    role: Role
    patient_id: Optional[UUID] = None
    professional_id: Optional[UUID] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def resolve_principal(account) -> Principal:
    from clinic_core.patients.models import Patient
    from clinic_core.professionals.models import Professional

    patient_id = Patient.objects.filter(account_id=account.id).values_list("id", flat=True).first()
    professional_id = Professional.objects.filter(account_id=account.id).values_list("id", flat=True).first()

    return Principal(
        account_id=account.id,
        role=Role(account.role),
        patient_id=patient_id,
        professional_id=professional_id,
    )
