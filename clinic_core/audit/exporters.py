# clinic_core/audit/exporters.py
from __future__ import annotations

import csv
import io
from datetime import date
from typing import Iterable

from django.utils import timezone

from clinic_core.audit.models import AuditEntry

CSV_COLUMNS = [
    "id",
    "created_at",
    "actor_email",
    "actor_role",
    "action",
    "resource_type",
    "resource_id",
    "success",
    "ip_address",
    "user_agent",
]


def export_filename(date_from: date, date_to: date, fmt: str) -> str:
    return f"audit_logs_{date_from.isoformat()}_{date_to.isoformat()}.{fmt}"


def _row(entry: AuditEntry) -> dict:
    actor = entry.actor
    return {
        "id": str(entry.id),
        "created_at": entry.created_at.isoformat(),
        "actor_email": actor.email if actor else "N/A",
        "actor_role": actor.role if actor else "N/A",
        "action": entry.action,
        "resource_type": entry.resource_type,
        "resource_id": entry.resource_id or "",
        "success": entry.success,
        "ip_address": entry.ip_address or "N/A",
        "user_agent": entry.user_agent or "N/A",
    }


def to_csv(entries: Iterable[AuditEntry]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=CSV_COLUMNS)
    writer.writeheader()
    for entry in entries:
        writer.writerow(_row(entry))
    return buf.getvalue()


def to_json_payload(entries: list[AuditEntry], *, date_from: date, date_to: date, exported_by: str, serializer_class) -> dict:
    return {
        "export_info": {
            "date_from": date_from.isoformat(),
            "date_to": date_to.isoformat(),
            "total": len(entries),
            "exported_at": timezone.now().isoformat(),
            "exported_by": exported_by,
        },
        "entries": serializer_class(entries, many=True).data,
    }
