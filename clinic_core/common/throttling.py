# clinic_core/common/throttling.py
from __future__ import annotations

from rest_framework.throttling import ScopedRateThrottle


class ActionScopedThrottleMixin:
    """
    Per-action throttle scopes for ViewSets, e.g.
        action_throttle_scopes = {"anonymize": "sensitive"}
    Actions without a scope fall back to the global defaults.
    """
    action_throttle_scopes: dict[str, str] = {}

    def get_throttles(self):
        scope = self.action_throttle_scopes.get(getattr(self, "action", None))
        if scope:
            self.throttle_scope = scope
            return [ScopedRateThrottle()]
        return super().get_throttles()
