# clinic_core/audit/services.py
from __future__ import annotations

import logging
from typing import Any, Optional

from django.db import transaction

from clinic_core.audit.models import AuditEntry
from clinic_core.common.request_context import RequestContext

logger = logging.getLogger("clinic_core.audit")


def _resource_key(resource_id: Any) -> Optional[str]:
    if resource_id is None:
        return None
    return str(resource_id)[: AuditEntry._meta.get_field("resource_id").max_length]


class AuditTrail:
    """
    Central audit writer.

    Every write runs in its own savepoint so a failing insert never poisons
    the caller's transaction, and failures are logged and swallowed: a lost
    audit line must not fail the business operation that produced it.
    """

    def record(
        self,
        actor_id,
        action: str,
        resource_type: str,
        resource_id: Any = None,
        *,
        request_context: Optional[RequestContext] = None,
        success: bool = True,
        error_message: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
        previous: Optional[dict[str, Any]] = None,
        current: Optional[dict[str, Any]] = None,
    ) -> Optional[AuditEntry]:
        rc = request_context or RequestContext()
        payload = dict(context or {})
        if rc.path and "path" not in payload:
            payload["path"] = rc.path
        if rc.method and "method" not in payload:
            payload["method"] = rc.method

        fields = {
            "actor_id": actor_id,
            "action": str(action),
            "resource_type": str(resource_type),
            "resource_id": _resource_key(resource_id),
            "ip_address": rc.ip_address,
            "user_agent": rc.user_agent,
            "success": success,
            "error_message": error_message,
            "context": payload,
            "previous_data": previous,
            "new_data": current,
        }

        try:
            with transaction.atomic():
                entry = self._write(**fields)
        except Exception:
            logger.exception(
                "audit write failed action=%s resource=%s:%s actor=%s",
                action,
                resource_type,
                resource_id,
                actor_id,
            )
            return None

        logger.info(
            "audit action=%s resource=%s:%s actor=%s success=%s ip=%s",
            entry.action,
            entry.resource_type,
            entry.resource_id or "-",
            actor_id,
            success,
            rc.ip_address or "-",
        )
        return entry

    def _write(self, **fields) -> AuditEntry:
        return AuditEntry.objects.create(**fields)
