# clinic_core/appointments/models.py
from django.db import models

from clinic_core.common.models import UUIDModel
from clinic_core.patients.models import Patient
from clinic_core.professionals.models import Professional


class AppointmentKind(models.TextChoices):
    IN_PERSON = "in_person", "In person"
    TELEMEDICINE = "telemedicine", "Telemedicine"


class AppointmentStatus(models.TextChoices):
    SCHEDULED = "scheduled", "Scheduled"
    IN_PROGRESS = "in_progress", "In progress"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    NO_SHOW = "no_show", "No show"


# statuses that no longer hold the professional's slot
CLOSED_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED)


class Appointment(UUIDModel):
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="appointments")
    professional = models.ForeignKey(Professional, on_delete=models.PROTECT, related_name="appointments")

    scheduled_at = models.DateTimeField(db_index=True)
    kind = models.CharField(max_length=16, choices=AppointmentKind.choices, default=AppointmentKind.IN_PERSON)
    status = models.CharField(
        max_length=16,
        choices=AppointmentStatus.choices,
        default=AppointmentStatus.SCHEDULED,
        db_index=True,
    )

    reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    urgent = models.BooleanField(default=False)

    diagnosis = models.TextField(blank=True)
    prescription = models.TextField(blank=True)
    clinical_notes = models.TextField(blank=True)
    requested_exams = models.TextField(blank=True)
    follow_up_required = models.BooleanField(default=False)
    follow_up_on = models.DateField(null=True, blank=True)

    checked_in_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)

    class Meta:
        db_table = "appointments_appointment"
        ordering = ["scheduled_at"]
        indexes = [
            models.Index(fields=["professional", "scheduled_at"]),
            models.Index(fields=["patient", "scheduled_at"]),
            models.Index(fields=["status", "scheduled_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.scheduled_at:%Y-%m-%d %H:%M} {self.status}"
