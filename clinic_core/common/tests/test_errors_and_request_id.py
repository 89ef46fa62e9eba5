import pytest
from django.test import RequestFactory, override_settings
from rest_framework.exceptions import NotFound
from rest_framework.test import APIClient

from clinic_core.audit.codes import AuditAction
from clinic_core.audit.models import AuditEntry
from clinic_core.common.api.exceptions import ConflictError, api_exception_handler
from clinic_core.common.request_context import RequestContext, client_ip

pytestmark = pytest.mark.django_db


def test_health():
    res = APIClient().get("/health/")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_request_id_is_echoed():
    res = APIClient().get("/health/", HTTP_X_REQUEST_ID="trace-abc.123")
    assert res["X-Request-ID"] == "trace-abc.123"


def test_insane_request_id_is_replaced():
    res = APIClient().get("/health/", HTTP_X_REQUEST_ID="bad id with spaces")
    assert res["X-Request-ID"] != "bad id with spaces"
    assert len(res["X-Request-ID"]) == 32


def test_unauthenticated_uses_envelope():
    res = APIClient().get("/api/v1/patients/", HTTP_X_REQUEST_ID="rid-1")
    assert res.status_code == 401

    error = res.json()["error"]
    assert error["code"] == "not_authenticated"
    assert error["request_id"] == "rid-1"


def test_validation_errors_carry_details(api_client):
    res = api_client.post("/api/v1/patients/", {"full_name": "No Id"}, format="json")
    assert res.status_code == 400

    error = res.json()["error"]
    assert error["code"] == "validation_error"
    assert error["message"] == "Request failed."
    assert "national_id" in error["details"]


def test_domain_exceptions_map_to_codes():
    request = RequestFactory().get("/x/")
    res = api_exception_handler(ConflictError("Email already in use."), {"request": request})
    assert res.status_code == 409
    assert res.data["error"]["code"] == "conflict"
    assert res.data["error"]["message"] == "Email already in use."

    res = api_exception_handler(NotFound(), {"request": request})
    assert res.data["error"]["code"] == "not_found"


def test_unhandled_error_is_hidden_and_audited(admin):
    request = RequestFactory().get("/api/v1/patients/")
    request.user = admin

    res = api_exception_handler(RuntimeError("db password is hunter2"), {"request": request})

    assert res.status_code == 500
    assert res.data["error"]["code"] == "server_error"
    assert res.data["error"]["details"] is None
    assert "hunter2" not in str(res.data)
    assert AuditEntry.objects.filter(action=AuditAction.ERROR, actor=admin, success=False).exists()


@override_settings(DEBUG=True)
def test_unhandled_error_details_in_debug():
    request = RequestFactory().get("/x/")
    res = api_exception_handler(RuntimeError("boom"), {"request": request})
    assert res.data["error"]["details"] == {"exception": "RuntimeError", "message": "boom"}


def test_client_ip_rejects_garbage():
    rf = RequestFactory()
    assert client_ip(rf.get("/", REMOTE_ADDR="192.0.2.10")) == "192.0.2.10"
    assert client_ip(rf.get("/", REMOTE_ADDR="not-an-ip")) is None


@override_settings(AUDIT_TRUST_X_FORWARDED_FOR=True)
def test_client_ip_from_forwarded_header():
    request = RequestFactory().get("/", REMOTE_ADDR="10.0.0.1", HTTP_X_FORWARDED_FOR="198.51.100.7, 10.0.0.1")
    assert client_ip(request) == "198.51.100.7"
    assert RequestContext.from_request(request).ip_address == "198.51.100.7"
