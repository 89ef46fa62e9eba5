# clinic_core/patients/services.py
from __future__ import annotations

import logging
from typing import Any, Optional

from django.db import IntegrityError, transaction

from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.common.api.exceptions import ConflictError
from clinic_core.common.request_context import RequestContext
from clinic_core.iam.models import Account
from clinic_core.iam.roles import Role
from clinic_core.patients.models import Patient
from clinic_core.patients.repository import (
    SENSITIVE_FIELDS,
    AlreadyAnonymized,
    PatientRecord,
    PatientRepository,
)
from clinic_core.security.anonymize import NAME, NATIONAL_ID, anonymize

logger = logging.getLogger(__name__)

NATIONAL_ID_IN_USE = "A patient with this national ID already exists."
ALREADY_ANONYMIZED = "Patient data has already been anonymized."

# fields a patient may not change on their own record
PATIENT_LOCKED_FIELDS = frozenset({"national_id", "identity_document", "is_active"})


def _masked_diff(before: PatientRecord, values: dict[str, Any]) -> tuple[dict, dict]:
    previous: dict[str, Any] = {}
    current: dict[str, Any] = {}
    for name, new in values.items():
        old = getattr(before, name)
        if old == new:
            continue
        kind = SENSITIVE_FIELDS.get(name)
        if kind is not None:
            previous[name] = anonymize(old, kind)
            current[name] = anonymize(new, kind)
        else:
            previous[name] = old
            current[name] = new
    return previous, current


class PatientService:
    def __init__(self, *, audit, envelope, accounts):
        self.audit = audit
        self.accounts = accounts
        self.repository = PatientRepository(envelope=envelope)

    def read(self, patient: Patient) -> PatientRecord:
        return self.repository.from_storage(patient)

    def create_record(self, account: Account, values: dict[str, Any]) -> Patient:
        """Insert only; used inside an account-creating transaction."""
        if values.get("national_id") and self.repository.national_id_taken(values["national_id"]):
            raise ConflictError(NATIONAL_ID_IN_USE)
        try:
            with transaction.atomic():
                return self.repository.insert(account=account, values=values)
        except IntegrityError:
            raise ConflictError(NATIONAL_ID_IN_USE)

    def create(
        self,
        *,
        email: str,
        password: str,
        values: dict[str, Any],
        actor_id,
        request_context: Optional[RequestContext] = None,
    ) -> PatientRecord:
        with transaction.atomic():
            account = self.accounts.create(email=email, password=password, role=Role.PATIENT)
            patient = self.create_record(account, values)

        self.audit.record(
            actor_id,
            AuditAction.PATIENT_CREATED,
            ResourceType.PATIENT,
            patient.id,
            request_context=request_context,
            context={
                "account_id": str(account.id),
                "national_id": anonymize(values.get("national_id"), NATIONAL_ID),
            },
        )
        return self.read(patient)

    def update(
        self,
        patient: Patient,
        values: dict[str, Any],
        *,
        actor_id,
        actor_role: Role,
        request_context: Optional[RequestContext] = None,
    ) -> PatientRecord:
        if patient.is_anonymized:
            raise ConflictError(ALREADY_ANONYMIZED)

        if actor_role == Role.PATIENT:
            values = {k: v for k, v in values.items() if k not in PATIENT_LOCKED_FIELDS}

        national_id = values.get("national_id")
        if national_id and self.repository.national_id_taken(national_id, exclude_id=patient.id):
            raise ConflictError(NATIONAL_ID_IN_USE)

        before = self.read(patient)
        previous, current = _masked_diff(before, values)

        try:
            with transaction.atomic():
                changed = self.repository.apply(patient, values)
        except IntegrityError:
            raise ConflictError(NATIONAL_ID_IN_USE)

        self.audit.record(
            actor_id,
            AuditAction.PATIENT_UPDATED,
            ResourceType.PATIENT,
            patient.id,
            request_context=request_context,
            context={"changes": sorted(current.keys()), "columns": changed},
            previous=previous,
            current=current,
        )
        return self.read(patient)

    def deactivate(self, patient: Patient, *, actor_id, request_context: Optional[RequestContext] = None) -> Patient:
        with transaction.atomic():
            Patient.objects.filter(id=patient.id).update(is_active=False)
            Account.objects.filter(id=patient.account_id).update(is_active=False)
        patient.refresh_from_db(fields=["is_active", "updated_at"])

        self.audit.record(
            actor_id,
            AuditAction.PATIENT_DEACTIVATED,
            ResourceType.PATIENT,
            patient.id,
            request_context=request_context,
            context={"account_id": str(patient.account_id)},
        )
        return patient

    def anonymize(self, patient: Patient, *, actor_id, request_context: Optional[RequestContext] = None) -> Patient:
        """
        Irreversible. Every direct identifier is replaced with a fixed
        placeholder and the record is deactivated.
        """
        if patient.is_anonymized:
            raise ConflictError(ALREADY_ANONYMIZED)

        original_name = anonymize(patient.full_name, NAME)
        try:
            patient = self.repository.anonymize(patient.id)
        except AlreadyAnonymized:
            raise ConflictError(ALREADY_ANONYMIZED)
        logger.info("patient anonymized id=%s", patient.id)

        self.audit.record(
            actor_id,
            AuditAction.PATIENT_ANONYMIZED,
            ResourceType.PATIENT,
            patient.id,
            request_context=request_context,
            context={"original_name": original_name},
        )
        return patient
