import csv
import io

import pytest
from django.utils import timezone

from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.audit.models import AuditEntry
from clinic_core.audit.services import AuditTrail
from clinic_core.common.request_context import RequestContext
from clinic_core.conftest import client_for, make_account

pytestmark = pytest.mark.django_db


@pytest.fixture
def seeded(admin):
    trail = AuditTrail()
    victim = make_account("victim@example.com")
    for _ in range(3):
        trail.record(
            victim.id,
            AuditAction.LOGIN_FAILED,
            ResourceType.AUTH,
            victim.id,
            request_context=RequestContext(ip_address="203.0.113.9"),
            success=False,
        )
    trail.record(victim.id, AuditAction.ACCOUNT_LOCKED, ResourceType.AUTH, victim.id, success=False)
    trail.record(admin.id, AuditAction.LOGIN_SUCCESS, ResourceType.AUTH, admin.id)
    return victim


def test_list_filters_and_paginates(api_client, seeded):
    res = api_client.get("/api/v1/audit/", {"action": AuditAction.LOGIN_FAILED, "limit": 2})
    assert res.status_code == 200

    body = res.json()
    assert len(body["entries"]) == 2
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}
    assert AuditEntry.objects.filter(action=AuditAction.AUDIT_LOGS_VIEWED).count() == 1


def test_limit_is_capped(api_client):
    res = api_client.get("/api/v1/audit/", {"limit": 500})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"


def test_non_admin_is_denied_and_the_denial_is_audited(seeded):
    res = client_for(seeded).get("/api/v1/audit/")
    assert res.status_code == 403
    assert AuditEntry.objects.filter(action=AuditAction.UNAUTHORIZED_ACCESS, actor=seeded).exists()


def test_retrieve_shows_payloads(api_client, seeded):
    entry = AuditEntry.objects.filter(action=AuditAction.ACCOUNT_LOCKED).get()
    res = api_client.get(f"/api/v1/audit/{entry.id}/")

    assert res.status_code == 200
    assert res.json()["action"] == AuditAction.ACCOUNT_LOCKED
    assert "previous_data" in res.json()
    assert AuditEntry.objects.filter(action=AuditAction.AUDIT_LOG_DETAILED_VIEW, resource_id=str(entry.id)).exists()


def test_retrieve_unknown_is_404(api_client):
    assert api_client.get("/api/v1/audit/not-a-uuid/").status_code == 404


def test_statistics(api_client, seeded):
    res = api_client.get("/api/v1/audit/statistics/")
    assert res.status_code == 200
    by_action = {row["action"]: row["total"] for row in res.json()["by_action"]}
    assert by_action[AuditAction.LOGIN_FAILED] == 3


def test_user_activity_requires_actor(api_client, seeded):
    assert api_client.get("/api/v1/audit/user-activity/").status_code == 400

    res = api_client.get("/api/v1/audit/user-activity/", {"actor": str(seeded.id)})
    assert res.status_code == 200
    assert res.json()["total"] == 4
    assert len(res.json()["recent"]) == 4


def test_security_report(api_client, seeded):
    res = api_client.get("/api/v1/audit/security-report/")
    assert res.status_code == 200

    body = res.json()
    assert body["suspicious_ips"] == [{"ip_address": "203.0.113.9", "attempts": 3}]
    assert len(body["recent_lockouts"]) == 1
    assert AuditEntry.objects.filter(action=AuditAction.SECURITY_REPORT_GENERATED).exists()


@pytest.mark.parametrize("params", [{}, {"date_from": "2026-01-01"}, {"date_to": "2026-01-31"}])
def test_export_requires_both_dates(api_client, params):
    res = api_client.get("/api/v1/audit/export/", params)
    assert res.status_code == 400
    assert not AuditEntry.objects.filter(action=AuditAction.AUDIT_LOGS_EXPORTED).exists()


def test_export_csv(api_client, seeded):
    today = timezone.localdate().isoformat()
    res = api_client.get("/api/v1/audit/export/", {"date_from": today, "date_to": today, "format": "csv"})

    assert res.status_code == 200
    assert res["Content-Disposition"] == f'attachment; filename="audit_logs_{today}_{today}.csv"'
    rows = list(csv.DictReader(io.StringIO(res.content.decode("utf-8"))))
    assert len(rows) == 5
    assert rows[0]["action"] == AuditAction.LOGIN_FAILED


def test_export_json(api_client, seeded):
    today = timezone.localdate().isoformat()
    res = api_client.get("/api/v1/audit/export/", {"date_from": today, "date_to": today})

    assert res.status_code == 200
    assert res["Content-Disposition"].endswith('.json"')
    body = res.json()
    assert body["export_info"]["total"] == 5
    assert body["export_info"]["exported_by"] == "admin@example.com"
    assert AuditEntry.objects.filter(action=AuditAction.AUDIT_LOGS_EXPORTED).count() == 1
