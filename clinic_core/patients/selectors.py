# clinic_core/patients/selectors.py
from __future__ import annotations

from datetime import datetime, time

from django.db.models import QuerySet
from django.utils import timezone

from clinic_core.patients.models import Patient


def get_patient(patient_id) -> Patient:
    return Patient.objects.get(id=patient_id)


def search_patients(*, search: str | None = None, only_id=None, restrict: bool = False) -> QuerySet[Patient]:
    """
    Active patients ordered by name.
    restrict=True limits the result to `only_id` (nothing when it is None).
    """
    qs = Patient.objects.filter(is_active=True)

    if restrict:
        if only_id is None:
            return qs.none()
        qs = qs.filter(id=only_id)

    sv = (search or "").strip()
    if sv:
        qs = qs.filter(full_name__icontains=sv)

    return qs.order_by("full_name", "id")


def patient_statistics() -> dict:
    active = Patient.objects.filter(is_active=True)
    total = active.count()
    with_consent = active.filter(lgpd_consent=True).count()
    start_of_day = timezone.make_aware(datetime.combine(timezone.localdate(), time.min))

    return {
        "total_active": total,
        "with_lgpd_consent": with_consent,
        "registered_today": active.filter(created_at__gte=start_of_day).count(),
        "lgpd_consent_rate": round(with_consent / total * 100, 2) if total else 0.0,
        "anonymized": Patient.objects.filter(anonymized_at__isnull=False).count(),
    }
