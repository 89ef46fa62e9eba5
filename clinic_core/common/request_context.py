# clinic_core/common/request_context.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address


@dataclass(frozen=True)
class RequestContext:
    """
    Who/where of a request, as recorded on audit entries.
    Services take this instead of the raw request so they stay callable from commands and tests.
    """
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = None

    @classmethod
    def from_request(cls, request) -> "RequestContext":
        if request is None:
            return cls()
        meta = getattr(request, "META", {}) or {}
        return cls(
            ip_address=client_ip(request),
            user_agent=(meta.get("HTTP_USER_AGENT") or "")[:512] or None,
            path=getattr(request, "path", None),
            method=getattr(request, "method", None),
        )


def client_ip(request) -> Optional[str]:
    """Caller IP, or None when the value is not a valid address."""
    meta = getattr(request, "META", {}) or {}
    candidate = meta.get("REMOTE_ADDR")
    if getattr(settings, "AUDIT_TRUST_X_FORWARDED_FOR", False):
        forwarded = meta.get("HTTP_X_FORWARDED_FOR")
        if forwarded:
            candidate = forwarded.split(",")[0].strip()
    if not candidate:
        return None
    try:
        validate_ipv46_address(candidate)
    except ValidationError:
        return None
    return candidate
