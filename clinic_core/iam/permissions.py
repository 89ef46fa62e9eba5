# clinic_core/iam/permissions.py
from __future__ import annotations

from typing import Optional

from rest_framework.permissions import BasePermission

from clinic_core.common.request_context import RequestContext
from clinic_core.common.wiring import services
from clinic_core.iam.evaluator import AccessDecision, ResourceOwner
from clinic_core.iam.policy import Action
from clinic_core.iam.principal import Principal, resolve_principal


def principal_for(request) -> Principal:
    """Resolved once per request and cached on it."""
    principal = getattr(request, "_principal", None)
    if principal is None:
        principal = resolve_principal(request.user)
        setattr(request, "_principal", principal)
    return principal


class ActionPermission(BasePermission):
    """
    Role check for the Action a view maps the current DRF action to.

    - Unauthenticated -> False (DRF answers 401/403).
    - Unmapped action -> deny.
    - Role denial -> audited Forbidden raised by the evaluator.
    Ownership needs the loaded object and is checked in the view
    through AccessControlledMixin.authorize_object().
    """

    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        if not user or not getattr(user, "is_authenticated", False):
            return False

        action = view.get_access_action()
        if action is None:
            return False

        decision = services().access.authorize(
            principal_for(request),
            action,
            request_context=RequestContext.from_request(request),
            resource_id=view.kwargs.get("pk"),
        )
        request.access_decision = decision
        return True


class AccessControlledMixin:
    """
    Views map DRF action names to Actions via `access_actions`.
    """
    access_actions: dict[str, Action] = {}

    def get_access_action(self) -> Optional[Action]:
        return self.access_actions.get(getattr(self, "action", None))

    @property
    def principal(self) -> Principal:
        return principal_for(self.request)

    @property
    def request_context(self) -> RequestContext:
        return RequestContext.from_request(self.request)

    def authorize_object(self, owner: ResourceOwner, *, action: Optional[Action] = None, resource_id=None) -> AccessDecision:
        return services().access.authorize(
            self.principal,
            action or self.get_access_action(),
            owner,
            request_context=self.request_context,
            resource_id=resource_id,
        )
