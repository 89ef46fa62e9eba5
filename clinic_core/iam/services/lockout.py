# clinic_core/iam/services/lockout.py
"""
Failed-login counter and lockout window.

The counter moves with single UPDATE ... SET n = n + 1 statements and the lock
is set by a conditional update, so concurrent failures can never lose a
lockout decision.
"""
from __future__ import annotations

from datetime import datetime, timedelta

from django.conf import settings
from django.db.models import F

from clinic_core.iam.models import Account


def max_failed_attempts() -> int:
    return int(settings.ACCOUNT_LOCKOUT.get("MAX_FAILED_ATTEMPTS", 5))


def lockout_window() -> timedelta:
    return timedelta(minutes=int(settings.ACCOUNT_LOCKOUT.get("LOCKOUT_MINUTES", 15)))


def register_failed_attempt(account: Account, *, now: datetime) -> tuple[int, bool]:
    """
    Returns (attempts, locked_now). locked_now is True only for the request
    that actually set the lock.
    """
    Account.objects.filter(pk=account.pk).update(failed_login_attempts=F("failed_login_attempts") + 1)
    account.refresh_from_db(fields=["failed_login_attempts", "locked_until"])

    locked_now = False
    if account.failed_login_attempts >= max_failed_attempts():
        locked_now = (
            Account.objects.filter(
                pk=account.pk,
                failed_login_attempts__gte=max_failed_attempts(),
                locked_until__isnull=True,
            ).update(locked_until=now + lockout_window())
            == 1
        )
        account.refresh_from_db(fields=["locked_until"])

    return account.failed_login_attempts, locked_now


def reset_failed_attempts(account: Account, *, now: datetime) -> None:
    Account.objects.filter(pk=account.pk).update(failed_login_attempts=0, locked_until=None, last_login=now)
    account.failed_login_attempts = 0
    account.locked_until = None
    account.last_login = now


def clear_expired_lockout(account: Account, *, now: datetime) -> bool:
    if account.locked_until is None or now < account.locked_until:
        return False
    cleared = Account.objects.filter(pk=account.pk, locked_until=account.locked_until).update(
        locked_until=None,
        failed_login_attempts=0,
    )
    account.refresh_from_db(fields=["failed_login_attempts", "locked_until"])
    return cleared == 1
