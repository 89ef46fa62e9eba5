from datetime import timedelta

import pytest
from django.utils import timezone

from clinic_core.appointments.models import Appointment
from clinic_core.audit.codes import AuditAction
from clinic_core.audit.models import AuditEntry
from clinic_core.conftest import PASSWORD, client_for
from clinic_core.iam.models import Account
from clinic_core.iam.roles import Role
from clinic_core.professionals.models import Professional, role_for_position

pytestmark = pytest.mark.django_db


def _payload(**overrides):
    data = {
        "email": "new.doctor@example.com",
        "password": PASSWORD,
        "full_name": "Dra. Helena Costa",
        "national_id": "390.533.447-05",
        "license_number": "CRM-SP-1234",
        "specialty": "pediatrics",
        "phone": "1133334444",
        "position": "physician",
    }
    data.update(overrides)
    return data


@pytest.mark.parametrize(
    "position,role",
    [("physician", Role.PHYSICIAN), ("nurse", Role.NURSE), ("psychologist", Role.NURSE), ("admin", Role.ADMIN)],
)
def test_role_follows_position(position, role):
    assert role_for_position(position) == role


def test_admin_creates_professional(api_client):
    res = api_client.post("/api/v1/professionals/", _payload(), format="json")
    assert res.status_code == 201

    body = res.json()
    assert body["national_id"] == "39053344705"
    assert body["phone"] == "1133334444"
    assert Account.objects.get(email="new.doctor@example.com").role == Role.PHYSICIAN
    assert AuditEntry.objects.filter(action=AuditAction.PROFESSIONAL_CREATED, resource_id=body["id"]).exists()


def test_duplicate_license_is_conflict(api_client, physician):
    res = api_client.post("/api/v1/professionals/", _payload(license_number=physician.license_number), format="json")
    assert res.status_code == 409
    assert not Account.objects.filter(email="new.doctor@example.com").exists()


def test_only_admin_creates(physician):
    res = client_for(physician.account).post("/api/v1/professionals/", _payload(), format="json")
    assert res.status_code == 403


def test_list_scoping(receptionist, physician, other_physician, patient):
    everyone = client_for(receptionist).get("/api/v1/professionals/")
    assert everyone.json()["pagination"]["total"] == 2

    mine = client_for(physician.account).get("/api/v1/professionals/")
    assert [r["id"] for r in mine.json()["professionals"]] == [str(physician.id)]

    assert client_for(patient.account).get("/api/v1/professionals/").status_code == 403


def test_retrieve_visibility_and_ownership(receptionist, physician, other_physician):
    own = client_for(physician.account).get(f"/api/v1/professionals/{physician.id}/")
    assert own.status_code == 200
    assert own.json()["national_id"] == "98765432100"

    desk = client_for(receptionist).get(f"/api/v1/professionals/{physician.id}/")
    assert desk.json()["national_id"] == "987.***.**-00"

    foreign = client_for(other_physician.account).get(f"/api/v1/professionals/{physician.id}/")
    assert foreign.status_code == 403


def test_physician_cannot_change_admin_fields(physician):
    res = client_for(physician.account).patch(
        f"/api/v1/professionals/{physician.id}/",
        {"phone": "11955554444", "license_number": "CRM-HACK", "is_active": False},
        format="json",
    )
    assert res.status_code == 200
    assert res.json()["phone"] == "11955554444"

    physician.refresh_from_db()
    assert physician.license_number == "CRM-2100"
    assert physician.is_active is True


def test_admin_position_change_updates_role(api_client, physician):
    res = api_client.patch(f"/api/v1/professionals/{physician.id}/", {"position": "nurse"}, format="json")
    assert res.status_code == 200
    assert Account.objects.get(id=physician.account_id).role == Role.NURSE

    entry = AuditEntry.objects.get(action=AuditAction.PROFESSIONAL_UPDATED)
    assert entry.new_data == {"position": "nurse"}


def test_deactivate(api_client, physician):
    res = api_client.post(f"/api/v1/professionals/{physician.id}/deactivate/")
    assert res.status_code == 200
    assert Professional.objects.get(id=physician.id).is_active is False
    assert Account.objects.get(id=physician.account_id).is_active is False


def test_deactivate_denied_for_receptionist_is_audited(receptionist, physician):
    res = client_for(receptionist).post(f"/api/v1/professionals/{physician.id}/deactivate/")
    assert res.status_code == 403
    assert Professional.objects.get(id=physician.id).is_active is True

    entry = AuditEntry.objects.get(action=AuditAction.UNAUTHORIZED_ACCESS, actor=receptionist)
    assert entry.resource_id == str(physician.id)
    assert entry.context["path"] == f"/api/v1/professionals/{physician.id}/deactivate/"
    entry.full_clean()


def test_by_specialty_is_open_to_patients(patient, physician, nurse):
    res = client_for(patient.account).get("/api/v1/professionals/by-specialty/Cardiology/")
    assert res.status_code == 200
    ids = {r["id"] for r in res.json()["professionals"]}
    assert ids == {str(physician.id), str(nurse.id)}
    assert "national_id" not in res.json()["professionals"][0]


def test_schedule_lists_own_appointments(physician, other_physician, patient):
    when = timezone.now() + timedelta(days=1)
    Appointment.objects.create(patient=patient, professional=physician, scheduled_at=when)

    res = client_for(physician.account).get(
        f"/api/v1/professionals/{physician.id}/schedule/", {"date": timezone.localtime(when).date().isoformat()}
    )
    assert res.status_code == 200
    body = res.json()
    assert body["working_hours"] == {"mon": "08:00-12:00"}
    assert len(body["appointments"]) == 1
    assert body["appointments"][0]["patient"]["full_name"] == "Maria Souza"

    assert client_for(other_physician.account).get(f"/api/v1/professionals/{physician.id}/schedule/").status_code == 403


def test_statistics_admin_only(api_client, physician, nurse):
    res = api_client.get("/api/v1/professionals/statistics/")
    assert res.status_code == 200
    assert res.json()["total_active"] == 2
    assert client_for(physician.account).get("/api/v1/professionals/statistics/").status_code == 403
