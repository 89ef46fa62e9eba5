# clinic_core/common/wiring.py
"""
Process-wide service graph.

Built once when the app registry is ready (CommonConfig.ready) and handed to
views through services(). Tests that need a different clock or a broken audit
sink build their own Services and pass the pieces in directly, or swap the
whole graph with configure().
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from clinic_core.appointments.services import AppointmentService
    from clinic_core.audit.services import AuditTrail
    from clinic_core.iam.evaluator import AccessEvaluator
    from clinic_core.iam.services.accounts import AccountService
    from clinic_core.iam.services.authentication import AuthenticationService
    from clinic_core.patients.services import PatientService
    from clinic_core.professionals.services import ProfessionalService
    from clinic_core.security.envelope import Envelope


@dataclass(frozen=True)
class Services:
    audit: "AuditTrail"
    envelope: "Envelope"
    access: "AccessEvaluator"
    accounts: "AccountService"
    auth: "AuthenticationService"
    patients: "PatientService"
    professionals: "ProfessionalService"
    appointments: "AppointmentService"


_services: Optional[Services] = None


def build_services(*, audit=None, clock=None) -> Services:
    from django.utils import timezone

    from clinic_core.appointments.services import AppointmentService
    from clinic_core.audit.services import AuditTrail
    from clinic_core.iam.evaluator import AccessEvaluator
    from clinic_core.iam.services.accounts import AccountService
    from clinic_core.iam.services.authentication import AuthenticationService
    from clinic_core.patients.services import PatientService
    from clinic_core.professionals.services import ProfessionalService
    from clinic_core.security.envelope import Envelope

    audit = audit or AuditTrail()
    clock = clock or timezone.now
    envelope = Envelope.from_settings()
    accounts = AccountService(audit=audit)
    return Services(
        audit=audit,
        envelope=envelope,
        access=AccessEvaluator(audit=audit),
        accounts=accounts,
        auth=AuthenticationService(audit=audit, accounts=accounts, clock=clock),
        patients=PatientService(audit=audit, envelope=envelope, accounts=accounts),
        professionals=ProfessionalService(audit=audit, envelope=envelope, accounts=accounts),
        appointments=AppointmentService(audit=audit, clock=clock),
    )


def configure(value: Optional[Services] = None) -> Services:
    global _services
    _services = value or build_services()
    return _services


def services() -> Services:
    if _services is None:
        return configure()
    return _services
