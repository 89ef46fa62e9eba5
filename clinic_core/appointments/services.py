# clinic_core/appointments/services.py
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from clinic_core.appointments.models import CLOSED_STATUSES, Appointment, AppointmentStatus
from clinic_core.appointments.selectors import slot_taken
from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.common.api.exceptions import ConflictError
from clinic_core.common.request_context import RequestContext
from clinic_core.patients.models import Patient
from clinic_core.professionals.models import Professional

logger = logging.getLogger(__name__)

SLOT_TAKEN = "The professional already has an appointment at this time."

# fields a reschedule/update may touch
EDITABLE_FIELDS = ("scheduled_at", "kind", "reason", "notes", "urgent", "status")
# in_progress, cancelled and completed have their own transitions
UPDATABLE_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.NO_SHOW)
COMPLETION_FIELDS = (
    "diagnosis",
    "prescription",
    "clinical_notes",
    "requested_exams",
    "follow_up_required",
    "follow_up_on",
)


def _jsonable(value):
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


class AppointmentService:
    def __init__(self, *, audit, clock: Callable = timezone.now):
        self.audit = audit
        self.clock = clock

    def _require_future(self, when) -> None:
        if when <= self.clock():
            raise ValidationError({"scheduled_at": ["Appointment must be scheduled in the future."]})

    def _record(self, actor_id, action, appointment: Appointment, request_context, **kwargs):
        self.audit.record(
            actor_id,
            action,
            ResourceType.APPOINTMENT,
            appointment.id,
            request_context=request_context,
            **kwargs,
        )

    def create(
        self,
        values: dict[str, Any],
        *,
        actor_id,
        request_context: Optional[RequestContext] = None,
    ) -> Appointment:
        values = dict(values)
        patient_id = values.pop("patient_id")
        professional_id = values.pop("professional_id")

        if not Patient.objects.filter(id=patient_id, is_active=True).exists():
            raise NotFound("Patient not found or inactive.")
        if not Professional.objects.filter(id=professional_id, is_active=True).exists():
            raise NotFound("Professional not found or inactive.")

        self._require_future(values["scheduled_at"])

        with transaction.atomic():
            # serialises bookings for the same professional
            Professional.objects.select_for_update().filter(id=professional_id).first()
            if slot_taken(professional_id=professional_id, scheduled_at=values["scheduled_at"]):
                raise ConflictError(SLOT_TAKEN)
            appointment = Appointment.objects.create(
                patient_id=patient_id,
                professional_id=professional_id,
                **values,
            )

        logger.info("appointment created id=%s professional=%s", appointment.id, professional_id)
        self._record(
            actor_id,
            AuditAction.APPOINTMENT_CREATED,
            appointment,
            request_context,
            context={
                "patient_id": str(patient_id),
                "professional_id": str(professional_id),
                "scheduled_at": appointment.scheduled_at.isoformat(),
                "kind": appointment.kind,
            },
        )
        return appointment

    def update(
        self,
        appointment: Appointment,
        values: dict[str, Any],
        *,
        actor_id,
        request_context: Optional[RequestContext] = None,
    ) -> Appointment:
        values = {k: v for k, v in values.items() if k in EDITABLE_FIELDS}
        if appointment.status in CLOSED_STATUSES:
            raise ValidationError({"status": [f"Appointment is {appointment.status} and can no longer change."]})
        if values.get("status") not in (None, *UPDATABLE_STATUSES):
            raise ValidationError({"status": ["Use check-in, cancel or complete for this transition."]})

        previous = {"status": appointment.status, "scheduled_at": appointment.scheduled_at.isoformat()}
        rescheduled = "scheduled_at" in values and values["scheduled_at"] != appointment.scheduled_at

        with transaction.atomic():
            if rescheduled:
                self._require_future(values["scheduled_at"])
                Professional.objects.select_for_update().filter(id=appointment.professional_id).first()
                if slot_taken(
                    professional_id=appointment.professional_id,
                    scheduled_at=values["scheduled_at"],
                    exclude_id=appointment.id,
                ):
                    raise ConflictError(SLOT_TAKEN)

            for name, value in values.items():
                setattr(appointment, name, value)
            appointment.save(update_fields=[*values.keys(), "updated_at"])

        self._record(
            actor_id,
            AuditAction.APPOINTMENT_UPDATED,
            appointment,
            request_context,
            context={"changes": sorted(values.keys())},
            previous=previous,
            current={k: _jsonable(v) for k, v in values.items()},
        )
        return appointment

    def cancel(
        self,
        appointment: Appointment,
        *,
        reason: str = "",
        actor_id,
        request_context: Optional[RequestContext] = None,
    ) -> Appointment:
        if appointment.status == AppointmentStatus.CANCELLED:
            raise ValidationError({"status": ["Appointment is already cancelled."]})
        if appointment.status == AppointmentStatus.COMPLETED:
            raise ValidationError({"status": ["A completed appointment cannot be cancelled."]})

        previous_status = appointment.status
        appointment.status = AppointmentStatus.CANCELLED
        appointment.cancellation_reason = reason
        appointment.cancelled_at = self.clock()
        appointment.save(update_fields=["status", "cancellation_reason", "cancelled_at", "updated_at"])

        self._record(
            actor_id,
            AuditAction.APPOINTMENT_CANCELLED,
            appointment,
            request_context,
            context={"reason": reason or None},
            previous={"status": previous_status},
            current={"status": appointment.status},
        )
        return appointment

    def checkin(
        self,
        appointment: Appointment,
        *,
        actor_id,
        request_context: Optional[RequestContext] = None,
    ) -> Appointment:
        if appointment.status != AppointmentStatus.SCHEDULED:
            raise ValidationError({"status": ["Only scheduled appointments can be checked in."]})

        appointment.status = AppointmentStatus.IN_PROGRESS
        appointment.checked_in_at = self.clock()
        appointment.save(update_fields=["status", "checked_in_at", "updated_at"])

        self._record(
            actor_id,
            AuditAction.APPOINTMENT_CHECKIN,
            appointment,
            request_context,
            context={"checked_in_at": appointment.checked_in_at.isoformat()},
        )
        return appointment

    def complete(
        self,
        appointment: Appointment,
        values: dict[str, Any],
        *,
        actor_id,
        request_context: Optional[RequestContext] = None,
    ) -> Appointment:
        if appointment.status in CLOSED_STATUSES:
            raise ValidationError({"status": [f"Appointment is {appointment.status} and cannot be completed."]})

        values = {k: v for k, v in values.items() if k in COMPLETION_FIELDS}
        previous_status = appointment.status
        for name, value in values.items():
            setattr(appointment, name, value)
        appointment.status = AppointmentStatus.COMPLETED
        appointment.completed_at = self.clock()
        appointment.save(update_fields=[*values.keys(), "status", "completed_at", "updated_at"])

        # clinical content stays out of the audit payload
        self._record(
            actor_id,
            AuditAction.APPOINTMENT_COMPLETED,
            appointment,
            request_context,
            context={
                "previous_status": previous_status,
                "follow_up_required": appointment.follow_up_required,
                "recorded": sorted(values.keys()),
            },
        )
        return appointment
