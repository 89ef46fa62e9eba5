# clinic_core/appointments/selectors.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional

from django.db.models import Count, Q, QuerySet
from django.utils import timezone

from clinic_core.appointments.models import CLOSED_STATUSES, Appointment, AppointmentStatus


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = timezone.make_aware(datetime.combine(day, time.min))
    return start, start + timedelta(days=1)


def get_appointment(appointment_id) -> Appointment:
    return Appointment.objects.select_related("patient", "professional").get(id=appointment_id)


def slot_taken(*, professional_id, scheduled_at, exclude_id=None) -> bool:
    qs = Appointment.objects.filter(professional_id=professional_id, scheduled_at=scheduled_at).exclude(
        status__in=CLOSED_STATUSES
    )
    if exclude_id is not None:
        qs = qs.exclude(id=exclude_id)
    return qs.exists()


def list_appointments(
    *,
    patient_id=None,
    professional_id=None,
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> QuerySet[Appointment]:
    qs = Appointment.objects.select_related("patient", "professional")

    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if professional_id:
        qs = qs.filter(professional_id=professional_id)
    if status:
        qs = qs.filter(status=status)
    if date_from:
        qs = qs.filter(scheduled_at__gte=_day_bounds(date_from)[0])
    if date_to:
        qs = qs.filter(scheduled_at__lt=_day_bounds(date_to)[1])

    return qs.order_by("-scheduled_at")


def schedule_for(*, professional_id, day: Optional[date] = None) -> QuerySet[Appointment]:
    qs = Appointment.objects.select_related("patient").filter(professional_id=professional_id)
    if day:
        start, end = _day_bounds(day)
        qs = qs.filter(scheduled_at__gte=start, scheduled_at__lt=end)
    else:
        qs = qs.filter(scheduled_at__gte=timezone.now())
    return qs.exclude(status=AppointmentStatus.CANCELLED).order_by("scheduled_at")


def appointment_report(
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: Optional[str] = None,
    professional_id=None,
) -> dict:
    qs = list_appointments(status=status, professional_id=professional_id, date_from=date_from, date_to=date_to)

    totals = qs.aggregate(
        total=Count("id"),
        completed=Count("id", filter=Q(status=AppointmentStatus.COMPLETED)),
        cancelled=Count("id", filter=Q(status=AppointmentStatus.CANCELLED)),
        scheduled=Count("id", filter=Q(status=AppointmentStatus.SCHEDULED)),
        no_show=Count("id", filter=Q(status=AppointmentStatus.NO_SHOW)),
    )
    total = totals["total"]

    per_professional = (
        qs.order_by()
        .values("professional_id", "professional__full_name", "professional__specialty")
        .annotate(total=Count("id"))
        .order_by("-total")
    )

    return {
        "totals": totals,
        "completion_rate": round(totals["completed"] / total * 100, 2) if total else 0.0,
        "by_professional": [
            {
                "professional_id": str(r["professional_id"]),
                "full_name": r["professional__full_name"],
                "specialty": r["professional__specialty"],
                "total": r["total"],
            }
            for r in per_professional
        ],
    }
