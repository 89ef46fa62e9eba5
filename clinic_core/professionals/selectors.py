# clinic_core/professionals/selectors.py
from __future__ import annotations

from datetime import datetime, time

from django.db.models import Count, QuerySet
from django.utils import timezone

from clinic_core.professionals.models import Professional


def get_professional(professional_id) -> Professional:
    return Professional.objects.get(id=professional_id)


def search_professionals(
    *,
    search: str | None = None,
    specialty: str | None = None,
    position: str | None = None,
    only_id=None,
    restrict: bool = False,
) -> QuerySet[Professional]:
    qs = Professional.objects.filter(is_active=True)

    if restrict:
        if only_id is None:
            return qs.none()
        qs = qs.filter(id=only_id)

    sv = (search or "").strip()
    if sv:
        qs = qs.filter(full_name__icontains=sv)
    if specialty:
        qs = qs.filter(specialty__iexact=specialty)
    if position:
        qs = qs.filter(position=position)

    return qs.order_by("full_name", "id")


def professionals_by_specialty(specialty: str) -> QuerySet[Professional]:
    return Professional.objects.filter(is_active=True, specialty__iexact=specialty).order_by("full_name")


def professional_statistics() -> dict:
    active = Professional.objects.filter(is_active=True)
    start_of_day = timezone.make_aware(datetime.combine(timezone.localdate(), time.min))
    by_specialty = active.values("specialty").annotate(total=Count("id")).order_by("-total", "specialty")
    by_position = active.values("position").annotate(total=Count("id")).order_by("-total", "position")

    return {
        "total_active": active.count(),
        "by_specialty": [{"specialty": r["specialty"], "total": r["total"]} for r in by_specialty],
        "by_position": [{"position": r["position"], "total": r["total"]} for r in by_position],
        "registered_today": active.filter(created_at__gte=start_of_day).count(),
    }
