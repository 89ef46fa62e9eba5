# clinic_core/iam/tokens.py
from __future__ import annotations

from dataclasses import dataclass

from rest_framework_simplejwt.tokens import RefreshToken


@dataclass(frozen=True)
class TokenPair:
    access: str
    refresh: str


def issue_tokens(account) -> TokenPair:
    """Signed, time-limited pair bound to (account id, email, role)."""
    refresh = RefreshToken.for_user(account)
    refresh["email"] = account.email
    refresh["role"] = account.role
    return TokenPair(access=str(refresh.access_token), refresh=str(refresh))
