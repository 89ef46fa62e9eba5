# clinic_core/iam/services/accounts.py
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from clinic_core.audit.codes import AuditAction, ResourceType
from clinic_core.common.api.exceptions import ConflictError
from clinic_core.common.request_context import RequestContext
from clinic_core.iam.models import Account, normalize_account_email
from clinic_core.iam.roles import Role
from clinic_core.security.anonymize import EMAIL, anonymize

logger = logging.getLogger(__name__)

EMAIL_IN_USE = "Email already in use."


class AccountService:
    def __init__(self, *, audit):
        self.audit = audit

    def email_taken(self, email: str, *, exclude_id=None) -> bool:
        qs = Account.objects.filter(email__iexact=normalize_account_email(email))
        if exclude_id is not None:
            qs = qs.exclude(id=exclude_id)
        return qs.exists()

    def create(self, *, email: str, password: str, role: Role) -> Account:
        """
        Inserts the row only. Callers that create an account together with a
        protected record wrap both in one transaction and audit afterwards.
        """
        if self.email_taken(email):
            raise ConflictError(EMAIL_IN_USE)
        try:
            with transaction.atomic():
                account = Account.objects.create_user(
                    email, password, role=role, password_changed_at=timezone.now()
                )
        except IntegrityError:
            raise ConflictError(EMAIL_IN_USE)
        return account

    def register(
        self,
        *,
        email: str,
        password: str,
        role: Role = Role.PATIENT,
        actor_id=None,
        request_context: Optional[RequestContext] = None,
        attach: Optional[Callable[[Account], Any]] = None,
    ) -> Account:
        """
        `attach` runs in the same transaction as the insert, for protected
        records created together with their account.
        """
        try:
            with transaction.atomic():
                account = self.create(email=email, password=password, role=role)
                if attach is not None:
                    attach(account)
        except ConflictError as exc:
            self.audit.record(
                actor_id,
                AuditAction.REGISTER_FAILED,
                ResourceType.AUTH,
                request_context=request_context,
                success=False,
                error_message=str(exc.detail),
                context={"email": anonymize(normalize_account_email(email), EMAIL), "reason": "conflict"},
            )
            raise

        logger.info("account registered id=%s role=%s", account.id, account.role)
        self.audit.record(
            actor_id or account.id,
            AuditAction.REGISTER_SUCCESS,
            ResourceType.AUTH,
            account.id,
            request_context=request_context,
            context={"role": account.role},
        )
        return account

    def set_password(self, account: Account, raw_password: str) -> None:
        account.set_password(raw_password)
        account.password_changed_at = timezone.now()
        account.save(update_fields=["password", "password_changed_at", "updated_at"])

    def update_email(
        self,
        account: Account,
        new_email: str,
        *,
        request_context: Optional[RequestContext] = None,
    ) -> Account:
        new_email = normalize_account_email(new_email)
        previous = account.email
        if new_email == previous:
            return account
        if self.email_taken(new_email, exclude_id=account.id):
            raise ConflictError(EMAIL_IN_USE)

        account.email = new_email
        try:
            with transaction.atomic():
                account.save(update_fields=["email", "updated_at"])
        except IntegrityError:
            account.email = previous
            raise ConflictError(EMAIL_IN_USE)

        self.audit.record(
            account.id,
            AuditAction.PROFILE_UPDATED,
            ResourceType.AUTH,
            account.id,
            request_context=request_context,
            previous={"email": anonymize(previous, EMAIL)},
            current={"email": anonymize(new_email, EMAIL)},
        )
        return account

    def deactivate(self, account: Account, *, actor_id, request_context: Optional[RequestContext] = None) -> Account:
        if account.is_active:
            account.is_active = False
            account.save(update_fields=["is_active", "updated_at"])
        self.audit.record(
            actor_id,
            AuditAction.ACCOUNT_DEACTIVATED,
            ResourceType.AUTH,
            account.id,
            request_context=request_context,
            context={"role": account.role},
        )
        return account

    def reactivate(self, account: Account, *, actor_id, request_context: Optional[RequestContext] = None) -> Account:
        account.is_active = True
        account.failed_login_attempts = 0
        account.locked_until = None
        account.save(update_fields=["is_active", "failed_login_attempts", "locked_until", "updated_at"])
        self.audit.record(
            actor_id,
            AuditAction.ACCOUNT_REACTIVATED,
            ResourceType.AUTH,
            account.id,
            request_context=request_context,
            context={"role": account.role},
        )
        return account
