# clinic_core/iam/services/authentication.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from django.utils import timezone

from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.common.api.exceptions import AccountInactive, AccountLocked, InvalidCredentials
from clinic_core.common.request_context import RequestContext
from clinic_core.iam.models import Account, normalize_account_email
from clinic_core.iam.services import lockout
from clinic_core.iam.tokens import TokenPair, issue_tokens
from clinic_core.security.anonymize import EMAIL, anonymize
from clinic_core.security.passwords import verify_credential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    account: Account
    tokens: TokenPair
    profile: dict[str, Any]


def public_profile(account: Account) -> dict[str, Any]:
    from clinic_core.patients.models import Patient
    from clinic_core.professionals.models import Professional

    profile: dict[str, Any] = {
        "id": str(account.id),
        "email": account.email,
        "role": account.role,
        "is_active": account.is_active,
        "last_login": account.last_login,
        "patient": None,
        "professional": None,
    }

    patient = Patient.objects.filter(account_id=account.id).only("id", "full_name", "is_active").first()
    if patient is not None:
        profile["patient"] = {"id": str(patient.id), "full_name": patient.full_name, "is_active": patient.is_active}

    professional = (
        Professional.objects.filter(account_id=account.id)
        .only("id", "full_name", "specialty", "position", "is_active")
        .first()
    )
    if professional is not None:
        profile["professional"] = {
            "id": str(professional.id),
            "full_name": professional.full_name,
            "specialty": professional.specialty,
            "position": professional.position,
            "is_active": professional.is_active,
        }
    return profile


class AuthenticationService:
    """
    Login / password change / logout / refresh.

    Account states: active, locked until T, deactivated. Credential failures
    never reveal whether the email exists.
    """

    def __init__(self, *, audit, accounts, clock: Callable[[], Any] = timezone.now):
        self.audit = audit
        self.accounts = accounts
        self.clock = clock

    def _login_failed(self, account: Optional[Account], reason: str, rc: RequestContext, email: str, **extra) -> None:
        context = {"reason": reason, "email": anonymize(email, EMAIL), **extra}
        logger.info("login failed reason=%s account=%s", reason, account.id if account else "-")
        self.audit.record(
            account.id if account else None,
            AuditAction.LOGIN_FAILED,
            ResourceType.AUTH,
            account.id if account else None,
            request_context=rc,
            success=False,
            error_message=reason,
            context=context,
        )

    def login(self, email: str, password: str, *, request_context: Optional[RequestContext] = None) -> LoginResult:
        rc = request_context or RequestContext()
        email = normalize_account_email(email)

        account = Account.objects.filter(email__iexact=email).first()
        if account is None:
            self._login_failed(None, "not_found", rc, email)
            raise InvalidCredentials()

        if not account.is_active:
            self._login_failed(account, "inactive", rc, email)
            raise AccountInactive()

        now = self.clock()
        if account.is_locked(now):
            self._login_failed(account, "locked", rc, email, locked_until=account.locked_until)
            raise AccountLocked()

        if account.locked_until is not None:
            lockout.clear_expired_lockout(account, now=now)

        if not verify_credential(password, account.password):
            attempts, locked_now = lockout.register_failed_attempt(account, now=now)
            if locked_now:
                logger.warning("account locked id=%s until=%s", account.id, account.locked_until)
                self.audit.record(
                    account.id,
                    AuditAction.ACCOUNT_LOCKED,
                    ResourceType.AUTH,
                    account.id,
                    request_context=rc,
                    success=False,
                    context={"attempts": attempts, "locked_until": account.locked_until},
                )
            self._login_failed(account, "bad_password", rc, email, attempts=attempts)
            raise InvalidCredentials()

        lockout.reset_failed_attempts(account, now=now)
        tokens = issue_tokens(account)

        self.audit.record(
            account.id,
            AuditAction.LOGIN_SUCCESS,
            ResourceType.AUTH,
            account.id,
            request_context=rc,
            context={"role": account.role},
        )
        return LoginResult(account=account, tokens=tokens, profile=public_profile(account))

    def change_password(
        self,
        account: Account,
        current: str,
        new: str,
        *,
        request_context: Optional[RequestContext] = None,
    ) -> None:
        if not verify_credential(current, account.password):
            self.audit.record(
                account.id,
                AuditAction.PASSWORD_CHANGE_FAILED,
                ResourceType.AUTH,
                account.id,
                request_context=request_context,
                success=False,
                error_message="current password mismatch",
            )
            raise InvalidCredentials("Current password is incorrect.")

        self.accounts.set_password(account, new)
        self.audit.record(
            account.id,
            AuditAction.PASSWORD_CHANGE_SUCCESS,
            ResourceType.AUTH,
            account.id,
            request_context=request_context,
        )

    def logout(self, account: Account, *, request_context: Optional[RequestContext] = None) -> None:
        self.audit.record(
            account.id,
            AuditAction.LOGOUT,
            ResourceType.AUTH,
            account.id,
            request_context=request_context,
        )

    def refresh(self, account: Account, *, request_context: Optional[RequestContext] = None) -> TokenPair:
        account.refresh_from_db(fields=["is_active", "email", "role"])
        if not account.is_active:
            raise AccountInactive()

        tokens = issue_tokens(account)
        self.audit.record(
            account.id,
            AuditAction.TOKEN_REFRESHED,
            ResourceType.AUTH,
            account.id,
            request_context=request_context,
        )
        return tokens

    def profile(self, account: Account) -> dict[str, Any]:
        return public_profile(account)

    def update_profile(
        self,
        account: Account,
        *,
        email: Optional[str] = None,
        request_context: Optional[RequestContext] = None,
    ) -> dict[str, Any]:
        if email:
            self.accounts.update_email(account, email, request_context=request_context)
        return public_profile(account)
