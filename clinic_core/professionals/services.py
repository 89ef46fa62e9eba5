# clinic_core/professionals/services.py
from __future__ import annotations

import logging
from typing import Any, Optional

from django.db import IntegrityError, transaction

from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.common.api.exceptions import ConflictError
from clinic_core.common.request_context import RequestContext
from clinic_core.iam.models import Account
from clinic_core.iam.roles import Role
from clinic_core.professionals.models import Professional, role_for_position
from clinic_core.professionals.repository import SENSITIVE_FIELDS, ProfessionalRecord, ProfessionalRepository
from clinic_core.security.anonymize import NATIONAL_ID, anonymize

logger = logging.getLogger(__name__)

NATIONAL_ID_IN_USE = "A professional with this national ID already exists."
LICENSE_IN_USE = "A professional with this license number already exists."

# only administrators may change these
ADMIN_ONLY_FIELDS = frozenset({"national_id", "license_number", "is_active", "position"})


class ProfessionalService:
    def __init__(self, *, audit, envelope, accounts):
        self.audit = audit
        self.accounts = accounts
        self.repository = ProfessionalRepository(envelope=envelope)

    def read(self, professional: Professional) -> ProfessionalRecord:
        return self.repository.from_storage(professional)

    def _check_unique(self, values: dict[str, Any], *, exclude_id=None) -> None:
        if values.get("national_id") and self.repository.national_id_taken(values["national_id"], exclude_id=exclude_id):
            raise ConflictError(NATIONAL_ID_IN_USE)
        if values.get("license_number") and self.repository.license_taken(values["license_number"], exclude_id=exclude_id):
            raise ConflictError(LICENSE_IN_USE)

    def create(
        self,
        *,
        email: str,
        password: str,
        values: dict[str, Any],
        actor_id,
        request_context: Optional[RequestContext] = None,
    ) -> ProfessionalRecord:
        self._check_unique(values)
        role = role_for_position(values["position"])

        try:
            with transaction.atomic():
                account = self.accounts.create(email=email, password=password, role=role)
                professional = self.repository.insert(account=account, values=values)
        except IntegrityError:
            raise ConflictError("Professional conflicts with an existing record.")

        logger.info("professional created id=%s role=%s", professional.id, role)
        self.audit.record(
            actor_id,
            AuditAction.PROFESSIONAL_CREATED,
            ResourceType.PROFESSIONAL,
            professional.id,
            request_context=request_context,
            context={
                "account_id": str(account.id),
                "position": professional.position,
                "national_id": anonymize(values.get("national_id"), NATIONAL_ID),
            },
        )
        return self.read(professional)

    def update(
        self,
        professional: Professional,
        values: dict[str, Any],
        *,
        actor_id,
        actor_role: Role,
        request_context: Optional[RequestContext] = None,
    ) -> ProfessionalRecord:
        if actor_role != Role.ADMIN:
            values = {k: v for k, v in values.items() if k not in ADMIN_ONLY_FIELDS}
        self._check_unique(values, exclude_id=professional.id)

        before = self.read(professional)
        previous: dict[str, Any] = {}
        current: dict[str, Any] = {}
        for name, new in values.items():
            old = getattr(before, name)
            if old == new:
                continue
            kind = SENSITIVE_FIELDS.get(name)
            previous[name] = anonymize(old, kind) if kind else old
            current[name] = anonymize(new, kind) if kind else new

        try:
            with transaction.atomic():
                self.repository.apply(professional, values)
                if "position" in values:
                    Account.objects.filter(id=professional.account_id).update(role=role_for_position(values["position"]))
        except IntegrityError:
            raise ConflictError("Professional conflicts with an existing record.")

        self.audit.record(
            actor_id,
            AuditAction.PROFESSIONAL_UPDATED,
            ResourceType.PROFESSIONAL,
            professional.id,
            request_context=request_context,
            context={"changes": sorted(current.keys())},
            previous=previous,
            current=current,
        )
        return self.read(professional)

    def deactivate(self, professional: Professional, *, actor_id, request_context: Optional[RequestContext] = None) -> Professional:
        with transaction.atomic():
            Professional.objects.filter(id=professional.id).update(is_active=False)
            Account.objects.filter(id=professional.account_id).update(is_active=False)
        professional.refresh_from_db(fields=["is_active", "updated_at"])

        self.audit.record(
            actor_id,
            AuditAction.PROFESSIONAL_DEACTIVATED,
            ResourceType.PROFESSIONAL,
            professional.id,
            request_context=request_context,
            context={"account_id": str(professional.account_id)},
        )
        return professional
