# clinic_core/iam/policy.py
"""
Who may do what.

ROLE_TABLE is the single source of truth for role checks; every Action must
have an entry (enforced by tests). OWNERSHIP_RULES narrows "own data" actions
to the caller's linked record, and VISIBILITY_RULES decides who reads
sensitive fields in plaintext.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from clinic_core.iam.roles import ALL_ROLES, CLINICAL_ROLES, STAFF_ROLES, Role


class Action(str, Enum):
    PATIENT_CREATE = "patients.create"
    PATIENT_LIST = "patients.list"
    PATIENT_RETRIEVE = "patients.retrieve"
    PATIENT_UPDATE = "patients.update"
    PATIENT_DEACTIVATE = "patients.deactivate"
    PATIENT_ANONYMIZE = "patients.anonymize"
    PATIENT_STATISTICS = "patients.statistics"

    PROFESSIONAL_CREATE = "professionals.create"
    PROFESSIONAL_LIST = "professionals.list"
    PROFESSIONAL_RETRIEVE = "professionals.retrieve"
    PROFESSIONAL_UPDATE = "professionals.update"
    PROFESSIONAL_DEACTIVATE = "professionals.deactivate"
    PROFESSIONAL_BY_SPECIALTY = "professionals.by_specialty"
    PROFESSIONAL_SCHEDULE = "professionals.schedule"
    PROFESSIONAL_STATISTICS = "professionals.statistics"

    APPOINTMENT_CREATE = "appointments.create"
    APPOINTMENT_LIST = "appointments.list"
    APPOINTMENT_RETRIEVE = "appointments.retrieve"
    APPOINTMENT_UPDATE = "appointments.update"
    APPOINTMENT_CANCEL = "appointments.cancel"
    APPOINTMENT_CHECKIN = "appointments.checkin"
    APPOINTMENT_COMPLETE = "appointments.complete"
    APPOINTMENT_REPORT = "appointments.report"

    AUDIT_LIST = "audit.list"
    AUDIT_RETRIEVE = "audit.retrieve"
    AUDIT_STATISTICS = "audit.statistics"
    AUDIT_USER_ACTIVITY = "audit.user_activity"
    AUDIT_SECURITY_REPORT = "audit.security_report"
    AUDIT_EXPORT = "audit.export"

    ACCOUNT_REGISTER_STAFF = "accounts.register_staff"
    ACCOUNT_DEACTIVATE = "accounts.deactivate"
    ACCOUNT_REACTIVATE = "accounts.reactivate"

    @property
    def resource(self) -> str:
        return self.value.split(".", 1)[0]


class OwnerKey(str, Enum):
    PATIENT = "patient"
    PROFESSIONAL = "professional"


_ADMIN = frozenset({Role.ADMIN})
_CLINICAL = _ADMIN | CLINICAL_ROLES
_STAFF = STAFF_ROLES
_EVERYONE = ALL_ROLES


ROLE_TABLE: dict[Action, frozenset[Role]] = {
    Action.PATIENT_CREATE: _STAFF,
    Action.PATIENT_LIST: _EVERYONE,
    Action.PATIENT_RETRIEVE: _EVERYONE,
    Action.PATIENT_UPDATE: _CLINICAL | {Role.PATIENT},
    Action.PATIENT_DEACTIVATE: _ADMIN,
    Action.PATIENT_ANONYMIZE: _ADMIN,
    Action.PATIENT_STATISTICS: _ADMIN,

    Action.PROFESSIONAL_CREATE: _ADMIN,
    Action.PROFESSIONAL_LIST: _STAFF,
    Action.PROFESSIONAL_RETRIEVE: _STAFF,
    Action.PROFESSIONAL_UPDATE: _CLINICAL,
    Action.PROFESSIONAL_DEACTIVATE: _ADMIN,
    Action.PROFESSIONAL_BY_SPECIALTY: _EVERYONE,
    Action.PROFESSIONAL_SCHEDULE: _CLINICAL,
    Action.PROFESSIONAL_STATISTICS: _ADMIN,

    Action.APPOINTMENT_CREATE: _STAFF,
    Action.APPOINTMENT_LIST: _EVERYONE,
    Action.APPOINTMENT_RETRIEVE: _EVERYONE,
    Action.APPOINTMENT_UPDATE: _CLINICAL,
    Action.APPOINTMENT_CANCEL: _EVERYONE,
    Action.APPOINTMENT_CHECKIN: _STAFF,
    Action.APPOINTMENT_COMPLETE: _CLINICAL,
    Action.APPOINTMENT_REPORT: _ADMIN,

    Action.AUDIT_LIST: _ADMIN,
    Action.AUDIT_RETRIEVE: _ADMIN,
    Action.AUDIT_STATISTICS: _ADMIN,
    Action.AUDIT_USER_ACTIVITY: _ADMIN,
    Action.AUDIT_SECURITY_REPORT: _ADMIN,
    Action.AUDIT_EXPORT: _ADMIN,

    Action.ACCOUNT_REGISTER_STAFF: _ADMIN,
    Action.ACCOUNT_DEACTIVATE: _ADMIN,
    Action.ACCOUNT_REACTIVATE: _ADMIN,
}


# Role -> which linked record must match the resource owner.
# Roles missing from an action's map are not ownership-restricted.
OWNERSHIP_RULES: dict[Action, dict[Role, OwnerKey]] = {
    Action.PATIENT_RETRIEVE: {Role.PATIENT: OwnerKey.PATIENT},
    Action.PATIENT_UPDATE: {Role.PATIENT: OwnerKey.PATIENT},

    Action.PROFESSIONAL_RETRIEVE: {
        Role.PHYSICIAN: OwnerKey.PROFESSIONAL,
        Role.NURSE: OwnerKey.PROFESSIONAL,
    },
    Action.PROFESSIONAL_UPDATE: {
        Role.PHYSICIAN: OwnerKey.PROFESSIONAL,
        Role.NURSE: OwnerKey.PROFESSIONAL,
    },
    Action.PROFESSIONAL_SCHEDULE: {
        Role.PHYSICIAN: OwnerKey.PROFESSIONAL,
        Role.NURSE: OwnerKey.PROFESSIONAL,
    },

    Action.APPOINTMENT_RETRIEVE: {
        Role.PATIENT: OwnerKey.PATIENT,
        Role.PHYSICIAN: OwnerKey.PROFESSIONAL,
        Role.NURSE: OwnerKey.PROFESSIONAL,
    },
    Action.APPOINTMENT_UPDATE: {
        Role.PHYSICIAN: OwnerKey.PROFESSIONAL,
        Role.NURSE: OwnerKey.PROFESSIONAL,
    },
    Action.APPOINTMENT_CANCEL: {
        Role.PATIENT: OwnerKey.PATIENT,
        Role.PHYSICIAN: OwnerKey.PROFESSIONAL,
        Role.NURSE: OwnerKey.PROFESSIONAL,
    },
    Action.APPOINTMENT_CHECKIN: {
        Role.PHYSICIAN: OwnerKey.PROFESSIONAL,
        Role.NURSE: OwnerKey.PROFESSIONAL,
    },
    Action.APPOINTMENT_COMPLETE: {
        Role.PHYSICIAN: OwnerKey.PROFESSIONAL,
        Role.NURSE: OwnerKey.PROFESSIONAL,
    },
}


@dataclass(frozen=True)
class VisibilityRule:
    plaintext_roles: frozenset[Role]
    owner_key: OwnerKey | None = None


# resource -> who reads sensitive fields in plaintext
VISIBILITY_RULES: dict[str, VisibilityRule] = {
    "patients": VisibilityRule(plaintext_roles=_CLINICAL, owner_key=OwnerKey.PATIENT),
    "professionals": VisibilityRule(plaintext_roles=_ADMIN, owner_key=OwnerKey.PROFESSIONAL),
    "appointments": VisibilityRule(plaintext_roles=_ADMIN),
}
