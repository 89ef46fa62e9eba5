# clinic_core/iam/evaluator.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.common.api.exceptions import Forbidden
from clinic_core.common.request_context import RequestContext
from clinic_core.iam.policy import OWNERSHIP_RULES, ROLE_TABLE, VISIBILITY_RULES, Action, OwnerKey
from clinic_core.iam.principal import Principal
from clinic_core.security.anonymize import GENERIC, anonymize

logger = logging.getLogger(__name__)

FORBIDDEN_ROLE = "forbidden_role"
FORBIDDEN_OWNERSHIP = "forbidden_ownership"


@dataclass(frozen=True)
class ResourceOwner:
    patient_id: Optional[UUID] = None
    professional_id: Optional[UUID] = None

    def get(self, key: OwnerKey) -> Optional[UUID]:
        if key == OwnerKey.PATIENT:
            return self.patient_id
        return self.professional_id


@dataclass(frozen=True)
class FieldVisibility:
    plaintext: bool

    def render(self, value: Any, kind: str = GENERIC):
        if self.plaintext or value is None:
            return value
        return anonymize(str(value), kind)


PLAINTEXT = FieldVisibility(plaintext=True)
MASKED = FieldVisibility(plaintext=False)


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None
    visibility: FieldVisibility = MASKED
    required_roles: frozenset = frozenset()
    required_owner: Optional[OwnerKey] = None


def _linked_id(principal: Principal, key: OwnerKey) -> Optional[UUID]:
    if key == OwnerKey.PATIENT:
        return principal.patient_id
    return principal.professional_id


def _owns(principal: Principal, owner: Optional[ResourceOwner], key: OwnerKey) -> bool:
    if owner is None:
        return False
    mine = _linked_id(principal, key)
    return mine is not None and mine == owner.get(key)


class AccessEvaluator:
    """
    Role check, then ownership check; both must pass.
    Denials through authorize() always leave exactly one UNAUTHORIZED_ACCESS entry.
    """

    def __init__(self, *, audit):
        self.audit = audit

    def visibility(self, principal: Principal, action: Action, owner: Optional[ResourceOwner] = None) -> FieldVisibility:
        rule = VISIBILITY_RULES.get(action.resource)
        if rule is None:
            return PLAINTEXT
        if principal.is_admin or principal.role in rule.plaintext_roles:
            return PLAINTEXT
        if rule.owner_key is not None and _owns(principal, owner, rule.owner_key):
            return PLAINTEXT
        return MASKED

    def evaluate(self, principal: Principal, action: Action, owner: Optional[ResourceOwner] = None) -> AccessDecision:
        allowed_roles = ROLE_TABLE[action]
        if principal.role not in allowed_roles:
            return AccessDecision(allowed=False, reason=FORBIDDEN_ROLE, required_roles=allowed_roles)

        required = OWNERSHIP_RULES.get(action, {}).get(principal.role)
        if owner is not None and required is not None and not principal.is_admin:
            if not _owns(principal, owner, required):
                return AccessDecision(
                    allowed=False,
                    reason=FORBIDDEN_OWNERSHIP,
                    required_roles=allowed_roles,
                    required_owner=required,
                )

        return AccessDecision(
            allowed=True,
            visibility=self.visibility(principal, action, owner),
            required_roles=allowed_roles,
            required_owner=required,
        )

    def authorize(
        self,
        principal: Principal,
        action: Action,
        owner: Optional[ResourceOwner] = None,
        *,
        request_context: Optional[RequestContext] = None,
        resource_id=None,
    ) -> AccessDecision:
        decision = self.evaluate(principal, action, owner)
        if decision.allowed:
            return decision

        rc = request_context or RequestContext()
        context = {
            "action": action.value,
            "reason": decision.reason,
            "caller_role": principal.role.value,
        }
        if decision.reason == FORBIDDEN_ROLE:
            context["required_roles"] = sorted(r.value for r in decision.required_roles)
        else:
            context["required_owner"] = decision.required_owner.value

        logger.warning(
            "access denied account=%s action=%s reason=%s",
            principal.account_id,
            action.value,
            decision.reason,
        )
        self.audit.record(
            principal.account_id,
            AuditAction.UNAUTHORIZED_ACCESS,
            ResourceType.API,
            resource_id,
            request_context=rc,
            success=False,
            error_message=decision.reason,
            context=context,
        )
        raise Forbidden(reason=decision.reason)
