from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from clinic_core.audit.codes import AuditAction
from clinic_core.audit.models import AuditEntry
from clinic_core.conftest import PASSWORD, client_for, make_account
from clinic_core.iam.models import Account
from clinic_core.iam.roles import Role

pytestmark = pytest.mark.django_db


def _register(client, email, national_id):
    return client.post(
        "/api/v1/auth/register/",
        {
            "email": email,
            "password": PASSWORD,
            "patient": {"full_name": "Ana Paula", "national_id": national_id, "phone": "11987654321"},
        },
        format="json",
    )


def _login(email, password=PASSWORD):
    return APIClient().post("/api/v1/auth/login/", {"email": email, "password": password}, format="json")


def _bearer(token):
    c = APIClient()
    c.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return c


def test_login_returns_tokens_and_sets_cookies(settings):
    make_account("cookie@example.com")

    res = _login("cookie@example.com")
    assert res.status_code == 200

    body = res.json()
    assert body["token"] and body["refresh"]
    assert body["profile"]["email"] == "cookie@example.com"
    assert settings.SIMPLE_JWT["AUTH_COOKIE"] in res.cookies
    assert settings.SIMPLE_JWT["AUTH_COOKIE_REFRESH"] in res.cookies


def test_bad_login_uses_error_envelope():
    res = _login("ghost@example.com")
    assert res.status_code == 401

    error = res.json()["error"]
    assert error["code"] == "invalid_credentials"
    assert error["request_id"]


def test_register_then_read_own_record_and_foreign_read_is_denied():
    anon = APIClient()
    res = _register(anon, "a@x.com", "52998224725")
    assert res.status_code == 201
    patient_id = res.json()["patient"]["id"]

    token = _login("a@x.com").json()["token"]
    own = _bearer(token).get(f"/api/v1/patients/{patient_id}/")
    assert own.status_code == 200
    assert own.json()["national_id"] == "52998224725"
    assert own.json()["phone"] == "11987654321"

    assert _register(anon, "intruder@x.com", "11144477735").status_code == 201
    intruder = Account.objects.get(email="intruder@x.com")
    other_token = _login("intruder@x.com").json()["token"]

    denied = _bearer(other_token).get(f"/api/v1/patients/{patient_id}/")
    assert denied.status_code == 403
    assert denied.json()["error"]["code"] == "permission_denied"

    entry = AuditEntry.objects.get(action=AuditAction.UNAUTHORIZED_ACCESS, actor=intruder)
    assert entry.success is False
    assert entry.resource_id == patient_id
    assert entry.context["reason"] == "forbidden_ownership"


def test_locked_account_returns_423():
    make_account("b@x.com")
    for _ in range(5):
        assert _login("b@x.com", "wrong-password").status_code == 401

    res = _login("b@x.com")
    assert res.status_code == 423
    assert res.json()["error"]["code"] == "account_locked"


def test_public_registration_cannot_pick_staff_role():
    res = APIClient().post(
        "/api/v1/auth/register/",
        {"email": "sneaky@example.com", "password": PASSWORD, "role": Role.ADMIN},
        format="json",
    )
    assert res.status_code == 403
    assert not Account.objects.filter(email="sneaky@example.com").exists()
    assert AuditEntry.objects.filter(action=AuditAction.UNAUTHORIZED_ACCESS, actor__isnull=True).exists()


def test_admin_registers_staff(admin):
    res = client_for(admin).post(
        "/api/v1/auth/register/",
        {"email": "desk@example.com", "password": PASSWORD, "role": Role.RECEPTIONIST},
        format="json",
    )
    assert res.status_code == 201
    assert Account.objects.get(email="desk@example.com").role == Role.RECEPTIONIST


def test_refresh_issues_new_pair():
    make_account("refresh@example.com")
    refresh = _login("refresh@example.com").json()["refresh"]

    res = APIClient().post("/api/v1/auth/refresh/", {"refresh": refresh}, format="json")
    assert res.status_code == 200
    assert res.json()["token"]
    assert AuditEntry.objects.filter(action=AuditAction.TOKEN_REFRESHED).exists()


def test_refresh_rejects_garbage():
    res = APIClient().post("/api/v1/auth/refresh/", {"refresh": "not-a-token"}, format="json")
    assert res.status_code == 401


def test_cookie_authenticates_profile():
    make_account("cookie.user@example.com")
    client = APIClient()
    assert client.post("/api/v1/auth/login/", {"email": "cookie.user@example.com", "password": PASSWORD}, format="json").status_code == 200

    res = client.get("/api/v1/auth/profile/")
    assert res.status_code == 200
    assert res.json()["email"] == "cookie.user@example.com"


def test_logout_clears_cookies_and_audits(settings):
    account = make_account("bye@example.com")
    res = client_for(account).post("/api/v1/auth/logout/")

    assert res.status_code == 200
    assert res.cookies[settings.SIMPLE_JWT["AUTH_COOKIE"]].value == ""
    assert AuditEntry.objects.filter(action=AuditAction.LOGOUT, actor=account).exists()


def test_profile_update_and_verify():
    account = make_account("old@example.com")
    client = client_for(account)

    res = client.put("/api/v1/auth/profile/", {"email": "new@example.com"}, format="json")
    assert res.status_code == 200
    assert res.json()["email"] == "new@example.com"

    verify = client.get("/api/v1/auth/verify/")
    assert verify.status_code == 200
    assert verify.json()["valid"] is True


def test_change_password_endpoint():
    account = make_account("change@example.com")
    client = client_for(account)

    bad = client.post(
        "/api/v1/auth/change-password/",
        {"current_password": "nope-nope", "new_password": "another-pass"},
        format="json",
    )
    assert bad.status_code == 401

    ok = client.post(
        "/api/v1/auth/change-password/",
        {"current_password": PASSWORD, "new_password": "another-pass"},
        format="json",
    )
    assert ok.status_code == 200
    assert _login("change@example.com", "another-pass").status_code == 200


def test_token_issued_before_password_change_is_rejected():
    account = make_account("rotated@example.com")
    token = _login("rotated@example.com").json()["token"]
    assert _bearer(token).get("/api/v1/auth/verify/").status_code == 200

    Account.objects.filter(id=account.id).update(password_changed_at=timezone.now() + timedelta(minutes=1))

    assert _bearer(token).get("/api/v1/auth/verify/").status_code == 401


def test_refresh_token_issued_before_password_change_is_rejected():
    account = make_account("rotated.refresh@example.com")
    refresh = _login("rotated.refresh@example.com").json()["refresh"]

    Account.objects.filter(id=account.id).update(password_changed_at=timezone.now() + timedelta(minutes=1))

    res = APIClient().post("/api/v1/auth/refresh/", {"refresh": refresh}, format="json")
    assert res.status_code == 401
    assert "token" not in res.json()
