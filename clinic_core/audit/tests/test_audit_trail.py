import logging

import pytest
from django.contrib.admin.sites import AdminSite
from django.db import IntegrityError

from clinic_core.audit.admin import AuditEntryAdmin
from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.audit.models import AuditEntry, AuditImmutableError
from clinic_core.audit.services import AuditTrail
from clinic_core.common.request_context import RequestContext
from clinic_core.conftest import make_account
from clinic_core.iam.services.accounts import AccountService
from clinic_core.patients.services import PatientService

pytestmark = pytest.mark.django_db


class BrokenAuditTrail(AuditTrail):
    def _write(self, **fields):
        raise IntegrityError("audit table unavailable")


def _entry(**overrides):
    fields = {"actor_id": None, "action": AuditAction.LOGIN_FAILED, "resource_type": ResourceType.AUTH}
    fields.update(overrides)
    return AuditTrail().record(fields.pop("actor_id"), fields.pop("action"), fields.pop("resource_type"), **fields)


def test_record_captures_request_context():
    account = make_account("actor@example.com")
    rc = RequestContext(ip_address="10.0.0.7", user_agent="pytest", path="/api/v1/patients/", method="GET")

    entry = AuditTrail().record(
        account.id,
        AuditAction.PATIENTS_LISTED,
        ResourceType.PATIENT,
        request_context=rc,
        context={"search": "ana"},
    )

    entry.refresh_from_db()
    assert entry.actor_id == account.id
    assert entry.ip_address == "10.0.0.7"
    assert entry.user_agent == "pytest"
    assert entry.context == {"search": "ana", "path": "/api/v1/patients/", "method": "GET"}


def test_entries_cannot_be_modified():
    entry = _entry()

    entry.success = False
    with pytest.raises(AuditImmutableError):
        entry.save()
    with pytest.raises(AuditImmutableError):
        entry.delete()


def test_queryset_bulk_changes_are_refused():
    _entry()
    with pytest.raises(AuditImmutableError):
        AuditEntry.objects.all().update(success=False)
    with pytest.raises(AuditImmutableError):
        AuditEntry.objects.filter(action=AuditAction.LOGIN_FAILED).delete()
    assert AuditEntry.objects.count() == 1


def test_admin_is_read_only(rf, admin):
    model_admin = AuditEntryAdmin(AuditEntry, AdminSite())
    request = rf.get("/admin/audit/auditentry/")
    request.user = admin

    assert model_admin.has_add_permission(request) is False
    assert model_admin.has_change_permission(request) is False
    assert model_admin.has_delete_permission(request) is False


def test_write_failure_is_logged_and_swallowed(caplog):
    with caplog.at_level(logging.ERROR, logger="clinic_core.audit"):
        result = BrokenAuditTrail().record(None, AuditAction.ERROR, ResourceType.API)

    assert result is None
    assert "audit write failed" in caplog.text


def test_failed_audit_does_not_fail_the_business_operation(fresh_services):
    broken = BrokenAuditTrail()
    patients = PatientService(audit=broken, envelope=fresh_services.envelope, accounts=AccountService(audit=broken))

    record = patients.create(
        email="still.created@example.com",
        password="s3cret-pass",
        values={"full_name": "Joana Dias", "national_id": "52998224725"},
        actor_id=None,
    )

    assert record.full_name == "Joana Dias"
    assert AuditEntry.objects.count() == 0
