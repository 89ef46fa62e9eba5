# clinic_core/audit/selectors.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from django.db.models import Count, QuerySet
from django.utils import timezone

from clinic_core.audit.codes import SECURITY_ACTIONS, AuditAction
from clinic_core.audit.models import AuditEntry


def _start_of(day: date) -> datetime:
    return timezone.make_aware(datetime.combine(day, time.min))


def _end_of(day: date) -> datetime:
    # inclusive end of day
    return timezone.make_aware(datetime.combine(day, time.min)) + timedelta(days=1)


def _in_period(qs: QuerySet, date_from: Optional[date], date_to: Optional[date]) -> QuerySet:
    if date_from:
        qs = qs.filter(created_at__gte=_start_of(date_from))
    if date_to:
        qs = qs.filter(created_at__lt=_end_of(date_to))
    return qs


def list_entries(
    *,
    actor_id=None,
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    ip_address: Optional[str] = None,
) -> QuerySet[AuditEntry]:
    qs = AuditEntry.objects.select_related("actor")

    if actor_id:
        qs = qs.filter(actor_id=actor_id)
    if action:
        qs = qs.filter(action=action)
    if resource_type:
        qs = qs.filter(resource_type=resource_type)
    if ip_address:
        qs = qs.filter(ip_address=ip_address)

    return _in_period(qs, date_from, date_to).order_by("-created_at")


def get_entry(entry_id) -> AuditEntry:
    return AuditEntry.objects.select_related("actor").get(id=entry_id)


def _counts(qs: QuerySet, field: str) -> list[dict[str, Any]]:
    rows = qs.values(field).annotate(total=Count("id")).order_by("-total", field)
    return [{field: r[field], "total": r["total"]} for r in rows]


def statistics(*, date_from: Optional[date] = None, date_to: Optional[date] = None) -> dict[str, Any]:
    qs = _in_period(AuditEntry.objects.all(), date_from, date_to)

    top_actors = (
        qs.exclude(actor__isnull=True)
        .values("actor_id", "actor__email", "actor__role")
        .annotate(total=Count("id"))
        .order_by("-total")[:10]
    )

    return {
        "total": qs.count(),
        "by_action": _counts(qs, "action"),
        "by_resource_type": _counts(qs, "resource_type"),
        "top_actors": [
            {
                "actor_id": str(r["actor_id"]),
                "email": r["actor__email"],
                "role": r["actor__role"],
                "total": r["total"],
            }
            for r in top_actors
        ],
    }


def user_activity(
    *,
    actor_id,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> dict[str, Any]:
    qs = _in_period(AuditEntry.objects.filter(actor_id=actor_id), date_from, date_to)
    return {
        "total": qs.count(),
        "by_action": _counts(qs, "action"),
        "by_resource_type": _counts(qs, "resource_type"),
        "recent": list(qs.select_related("actor").order_by("-created_at")[:20]),
    }


def security_report(
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    ip_address: Optional[str] = None,
) -> dict[str, Any]:
    qs = AuditEntry.objects.filter(action__in=SECURITY_ACTIONS)
    if ip_address:
        qs = qs.filter(ip_address=ip_address)
    qs = _in_period(qs, date_from, date_to)

    suspicious_ips = (
        qs.filter(action=AuditAction.LOGIN_FAILED)
        .exclude(ip_address__isnull=True)
        .values("ip_address")
        .annotate(attempts=Count("id"))
        .order_by("-attempts", "ip_address")[:10]
    )

    recent_locks = qs.filter(action=AuditAction.ACCOUNT_LOCKED).select_related("actor").order_by("-created_at")[:10]

    return {
        "by_outcome": _counts(qs, "action"),
        "suspicious_ips": [{"ip_address": r["ip_address"], "attempts": r["attempts"]} for r in suspicious_ips],
        "recent_lockouts": list(recent_locks),
    }


def export_entries(*, date_from: date, date_to: date) -> QuerySet[AuditEntry]:
    return _in_period(AuditEntry.objects.select_related("actor"), date_from, date_to).order_by("created_at")
