# clinic_core/security/passwords.py
from __future__ import annotations

from django.contrib.auth.hashers import check_password, make_password


def hash_credential(secret: str) -> str:
    """Salted one-way hash using the first configured password hasher."""
    return make_password(secret)


def verify_credential(secret: str, hashed: str | None) -> bool:
    if not secret or not hashed:
        return False
    return check_password(secret, hashed)
