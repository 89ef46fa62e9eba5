from datetime import timedelta

import pytest
from django.utils import timezone

from clinic_core.audit.codes import AuditAction
from clinic_core.audit.models import AuditEntry
from clinic_core.audit.services import AuditTrail
from clinic_core.common.api.exceptions import AccountInactive, AccountLocked, InvalidCredentials
from clinic_core.conftest import PASSWORD, make_account
from clinic_core.iam.models import Account
from clinic_core.iam.services.accounts import AccountService
from clinic_core.iam.services.authentication import AuthenticationService

pytestmark = pytest.mark.django_db


class FakeClock:
    def __init__(self):
        self.now = timezone.now()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def auth(clock):
    audit = AuditTrail()
    return AuthenticationService(audit=audit, accounts=AccountService(audit=audit), clock=clock)


@pytest.fixture
def account():
    return make_account("ana@example.com")


def _actions(account):
    return list(AuditEntry.objects.filter(resource_id=str(account.id)).order_by("created_at").values_list("action", flat=True))


def test_successful_login_returns_tokens_and_profile(auth, account):
    result = auth.login("ANA@example.com", PASSWORD)

    assert result.tokens.access
    assert result.tokens.refresh
    assert result.profile["email"] == "ana@example.com"
    assert AuditEntry.objects.filter(action=AuditAction.LOGIN_SUCCESS, actor=account).exists()


def test_unknown_email_is_indistinguishable_from_bad_password(auth, account):
    with pytest.raises(InvalidCredentials) as unknown:
        auth.login("nobody@example.com", PASSWORD)
    with pytest.raises(InvalidCredentials) as wrong:
        auth.login("ana@example.com", "wrong-password")

    assert str(unknown.value.detail) == str(wrong.value.detail)
    failed = AuditEntry.objects.filter(action=AuditAction.LOGIN_FAILED, actor__isnull=True).get()
    assert failed.context["reason"] == "not_found"


def test_inactive_account_is_rejected(auth, account):
    Account.objects.filter(pk=account.pk).update(is_active=False)

    with pytest.raises(AccountInactive):
        auth.login("ana@example.com", PASSWORD)


def test_five_failures_lock_for_fifteen_minutes(auth, account, clock):
    for attempt in range(1, 6):
        with pytest.raises(InvalidCredentials):
            auth.login("ana@example.com", "wrong-password")
        account.refresh_from_db()
        assert account.failed_login_attempts == attempt

    assert account.locked_until == clock.now + timedelta(minutes=15)
    assert AuditEntry.objects.filter(action=AuditAction.ACCOUNT_LOCKED, actor=account).count() == 1

    # correct password is refused while locked
    with pytest.raises(AccountLocked):
        auth.login("ana@example.com", PASSWORD)

    clock.advance(minutes=14)
    with pytest.raises(AccountLocked):
        auth.login("ana@example.com", PASSWORD)

    clock.advance(minutes=2)
    result = auth.login("ana@example.com", PASSWORD)
    assert result.account.failed_login_attempts == 0

    account.refresh_from_db()
    assert account.failed_login_attempts == 0
    assert account.locked_until is None
    assert account.last_login == clock.now


def test_success_resets_counter(auth, account):
    for _ in range(3):
        with pytest.raises(InvalidCredentials):
            auth.login("ana@example.com", "wrong-password")

    auth.login("ana@example.com", PASSWORD)

    account.refresh_from_db()
    assert account.failed_login_attempts == 0


def test_expired_lock_restarts_the_count(auth, account, clock):
    for _ in range(5):
        with pytest.raises(InvalidCredentials):
            auth.login("ana@example.com", "wrong-password")

    clock.advance(minutes=16)
    with pytest.raises(InvalidCredentials):
        auth.login("ana@example.com", "wrong-password")

    account.refresh_from_db()
    assert account.failed_login_attempts == 1
    assert account.locked_until is None


def test_every_failure_is_audited_with_attempt_count(auth, account):
    for _ in range(2):
        with pytest.raises(InvalidCredentials):
            auth.login("ana@example.com", "wrong-password")

    entries = AuditEntry.objects.filter(action=AuditAction.LOGIN_FAILED, actor=account).order_by("created_at")
    assert [e.context["attempts"] for e in entries] == [1, 2]
    assert all(e.success is False for e in entries)
    assert all(e.context["email"] != "ana@example.com" for e in entries)
