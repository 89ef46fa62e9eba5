from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from clinic_core.appointments.models import Appointment, AppointmentStatus
from clinic_core.audit.codes import AuditAction
from clinic_core.audit.models import AuditEntry
from clinic_core.conftest import client_for
from clinic_core.patients.models import Patient

pytestmark = pytest.mark.django_db


def _when(days=1, hour=10):
    return (timezone.now() + timedelta(days=days)).replace(hour=hour, minute=0, second=0, microsecond=0)


@pytest.fixture
def booking(patient, physician):
    return Appointment.objects.create(patient=patient, professional=physician, scheduled_at=_when(), reason="checkup")


def _book(client, patient, professional, when):
    return client.post(
        "/api/v1/appointments/",
        {"patient_id": str(patient.id), "professional_id": str(professional.id), "scheduled_at": when.isoformat()},
        format="json",
    )


def test_receptionist_books_appointment(receptionist, patient, physician):
    res = _book(client_for(receptionist), patient, physician, _when())
    assert res.status_code == 201

    body = res.json()
    assert body["status"] == AppointmentStatus.SCHEDULED
    assert body["patient"]["national_id"] == "123.***.**-09"
    assert AuditEntry.objects.filter(action=AuditAction.APPOINTMENT_CREATED, resource_id=body["id"]).exists()


def test_double_booking_is_conflict(api_client, patient, other_patient, physician):
    when = _when()
    assert _book(api_client, patient, physician, when).status_code == 201

    res = _book(api_client, other_patient, physician, when)
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "conflict"


def test_cancelled_slot_can_be_reused(api_client, booking, other_patient, physician):
    booking.status = AppointmentStatus.CANCELLED
    booking.save()
    assert _book(api_client, other_patient, physician, booking.scheduled_at).status_code == 201


def test_past_date_is_rejected(api_client, patient, physician):
    res = _book(api_client, patient, physician, timezone.now() - timedelta(hours=1))
    assert res.status_code == 400


def test_inactive_patient_is_404(api_client, patient, physician):
    Patient.objects.filter(id=patient.id).update(is_active=False)
    assert _book(api_client, patient, physician, _when()).status_code == 404


def test_patient_cannot_book(patient, physician):
    assert _book(client_for(patient.account), patient, physician, _when()).status_code == 403


def test_list_is_scoped(api_client, booking, other_patient, other_physician, patient, physician):
    Appointment.objects.create(patient=other_patient, professional=other_physician, scheduled_at=_when(days=2))

    assert api_client.get("/api/v1/appointments/").json()["pagination"]["total"] == 2

    # a patient cannot widen the scope to someone else
    own = client_for(patient.account).get("/api/v1/appointments/", {"patient_id": str(other_patient.id)})
    assert [a["id"] for a in own.json()["appointments"]] == [str(booking.id)]

    agenda = client_for(physician.account).get("/api/v1/appointments/")
    assert [a["id"] for a in agenda.json()["appointments"]] == [str(booking.id)]

    filtered = api_client.get("/api/v1/appointments/", {"professional_id": str(other_physician.id)})
    assert filtered.json()["pagination"]["total"] == 1


def test_retrieve_masks_national_id_for_non_admins(api_client, booking, patient, other_patient):
    admin_view = api_client.get(f"/api/v1/appointments/{booking.id}/")
    assert admin_view.json()["patient"]["national_id"] == "12345678909"

    own = client_for(patient.account).get(f"/api/v1/appointments/{booking.id}/")
    assert own.status_code == 200
    assert own.json()["patient"]["national_id"] == "123.***.**-09"

    assert client_for(other_patient.account).get(f"/api/v1/appointments/{booking.id}/").status_code == 403
    assert AuditEntry.objects.filter(action=AuditAction.APPOINTMENT_VIEWED).count() == 2


def test_owning_professional_reschedules(booking, physician, other_physician):
    new_time = _when(days=3)
    res = client_for(physician.account).patch(
        f"/api/v1/appointments/{booking.id}/", {"scheduled_at": new_time.isoformat(), "notes": "moved"}, format="json"
    )
    assert res.status_code == 200

    entry = AuditEntry.objects.get(action=AuditAction.APPOINTMENT_UPDATED)
    assert entry.previous_data["status"] == AppointmentStatus.SCHEDULED
    assert entry.context["changes"] == ["notes", "scheduled_at"]

    other = client_for(other_physician.account).patch(f"/api/v1/appointments/{booking.id}/", {"notes": "x"}, format="json")
    assert other.status_code == 403


def test_reschedule_into_taken_slot_is_conflict(api_client, booking, other_patient, physician):
    taken = Appointment.objects.create(patient=other_patient, professional=physician, scheduled_at=_when(days=4))
    res = api_client.patch(
        f"/api/v1/appointments/{booking.id}/", {"scheduled_at": taken.scheduled_at.isoformat()}, format="json"
    )
    assert res.status_code == 409


def test_patient_cancels_own_appointment(booking, patient):
    client = client_for(patient.account)
    res = client.post(f"/api/v1/appointments/{booking.id}/cancel/", {"reason": "travelling"}, format="json")
    assert res.status_code == 200
    assert res.json()["status"] == AppointmentStatus.CANCELLED
    assert res.json()["cancellation_reason"] == "travelling"

    again = client.post(f"/api/v1/appointments/{booking.id}/cancel/", {}, format="json")
    assert again.status_code == 400


def test_update_cannot_skip_checkin(physician, booking, fresh_services):
    res = client_for(physician.account).patch(
        f"/api/v1/appointments/{booking.id}/", {"status": AppointmentStatus.IN_PROGRESS}, format="json"
    )
    assert res.status_code == 400

    with pytest.raises(ValidationError):
        fresh_services.appointments.update(booking, {"status": AppointmentStatus.IN_PROGRESS}, actor_id=None)

    booking.refresh_from_db()
    assert booking.status == AppointmentStatus.SCHEDULED
    assert booking.checked_in_at is None

    no_show = client_for(physician.account).patch(
        f"/api/v1/appointments/{booking.id}/", {"status": AppointmentStatus.NO_SHOW}, format="json"
    )
    assert no_show.status_code == 200
    assert no_show.json()["status"] == AppointmentStatus.NO_SHOW


def test_checkin_then_complete(receptionist, booking, physician):
    res = client_for(receptionist).post(f"/api/v1/appointments/{booking.id}/checkin/")
    assert res.status_code == 200
    assert res.json()["status"] == AppointmentStatus.IN_PROGRESS
    assert res.json()["checked_in_at"] is not None

    second = client_for(receptionist).post(f"/api/v1/appointments/{booking.id}/checkin/")
    assert second.status_code == 400

    done = client_for(physician.account).post(
        f"/api/v1/appointments/{booking.id}/complete/",
        {"diagnosis": "healthy", "follow_up_required": True, "follow_up_on": (timezone.localdate() + timedelta(days=30)).isoformat()},
        format="json",
    )
    assert done.status_code == 200
    assert done.json()["status"] == AppointmentStatus.COMPLETED
    assert done.json()["diagnosis"] == "healthy"

    entry = AuditEntry.objects.get(action=AuditAction.APPOINTMENT_COMPLETED)
    assert "healthy" not in str(entry.context)

    cancel = client_for(receptionist).post(f"/api/v1/appointments/{booking.id}/cancel/", {}, format="json")
    assert cancel.status_code == 400


def test_follow_up_needs_a_date(booking, physician):
    res = client_for(physician.account).post(
        f"/api/v1/appointments/{booking.id}/complete/", {"follow_up_required": True}, format="json"
    )
    assert res.status_code == 400


def test_report(api_client, booking, other_patient, physician):
    done = Appointment.objects.create(
        patient=other_patient,
        professional=physician,
        scheduled_at=_when(days=2),
        status=AppointmentStatus.COMPLETED,
    )
    res = api_client.get("/api/v1/appointments/report/")
    assert res.status_code == 200

    body = res.json()
    assert body["totals"]["total"] == 2
    assert body["totals"]["completed"] == 1
    assert body["completion_rate"] == 50.0
    assert body["by_professional"][0]["professional_id"] == str(done.professional_id)
    assert AuditEntry.objects.filter(action=AuditAction.APPOINTMENTS_REPORT_GENERATED).exists()


def test_report_is_admin_only(physician):
    assert client_for(physician.account).get("/api/v1/appointments/report/").status_code == 403
