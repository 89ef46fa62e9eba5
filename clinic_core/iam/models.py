# clinic_core/iam/models.py
import uuid

from django.contrib.auth.base_user import AbstractBaseUser, BaseUserManager
from django.contrib.auth.models import PermissionsMixin
from django.db import models

from clinic_core.common.models import TimeStampedModel
from clinic_core.iam.roles import Role


class AccountDeletionError(Exception):
    """Accounts are soft-deactivated, never deleted."""


def normalize_account_email(email: str) -> str:
    return (email or "").strip().lower()


class AccountManager(BaseUserManager):
    use_in_migrations = True

    def get_by_natural_key(self, username):
        return self.get(email__iexact=normalize_account_email(username))

    def create_user(self, email, password=None, role=Role.PATIENT, **extra_fields):
        if not email:
            raise ValueError("Accounts require an email address.")
        account = self.model(email=normalize_account_email(email), role=role, **extra_fields)
        account.set_password(password)
        account.save(using=self._db)
        return account

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        return self.create_user(email, password, role=Role.ADMIN, **extra_fields)


class Account(AbstractBaseUser, PermissionsMixin, TimeStampedModel):
    """
    Authenticatable identity with exactly one role.
    Patients and professionals hang their protected record off this row (1:1).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    email = models.EmailField(max_length=254, unique=True)
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.PATIENT, db_index=True)

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)

    failed_login_attempts = models.PositiveIntegerField(default=0)
    locked_until = models.DateTimeField(null=True, blank=True)
    password_changed_at = models.DateTimeField(null=True, blank=True)

    objects = AccountManager()

    USERNAME_FIELD = "email"
    EMAIL_FIELD = "email"
    REQUIRED_FIELDS = []

    class Meta:
        db_table = "iam_account"
        indexes = [
            models.Index(fields=["role", "is_active"]),
        ]

    def __str__(self) -> str:
        return self.email

    def save(self, *args, **kwargs):
        self.email = normalize_account_email(self.email)
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise AccountDeletionError("Accounts cannot be deleted; deactivate them instead.")

    def is_locked(self, now) -> bool:
        return self.locked_until is not None and now < self.locked_until

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
