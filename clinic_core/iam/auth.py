# clinic_core/iam/auth.py

from __future__ import annotations

from django.conf import settings
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken


def issued_before_password_change(account, token) -> bool:
    changed = getattr(account, "password_changed_at", None)
    issued = token.get("iat")
    if changed is None or issued is None:
        return False
    # iat has whole-second precision
    return int(issued) < int(changed.timestamp())


class CookieOrHeaderJWTAuthentication(JWTAuthentication):
    """
    Access token from `Authorization: Bearer <access>` first, then the
    HttpOnly access cookie.

    Tokens issued before the account's last password change are rejected.
    """

    def authenticate(self, request):
        header = self.get_header(request)
        if header:
            raw_token = self.get_raw_token(header)
        else:
            raw_token = request.COOKIES.get(settings.SIMPLE_JWT.get("AUTH_COOKIE", "cc_access"))
        if not raw_token:
            return None

        validated_token = self.get_validated_token(raw_token)
        account = self.get_user(validated_token)
        if issued_before_password_change(account, validated_token):
            raise InvalidToken("Token predates the last password change.")
        return account, validated_token
