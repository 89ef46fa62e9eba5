# clinic_core/security/envelope.py
from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import re
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


class EnvelopeError(Exception):
    """Raised when an envelope cannot be opened with the configured key."""


def _derive_key(purpose: str, secret: str) -> bytes:
    raw = hashlib.sha256(f"{purpose}:{secret}".encode("utf-8")).digest()
    return base64.urlsafe_b64encode(raw)


class Envelope:
    """
    Reversible protection for sensitive text fields.

    Envelopes are Fernet tokens (AES-128-CBC + HMAC-SHA256), stored as ASCII
    text. A tampered or foreign token raises EnvelopeError instead of
    decoding to garbage.
    """

    def __init__(self, key: bytes | str, digest_key: bytes | str):
        if isinstance(key, str):
            key = key.encode("ascii")
        if isinstance(digest_key, str):
            digest_key = digest_key.encode("utf-8")
        self._fernet = Fernet(key)
        self._digest_key = digest_key

    @classmethod
    def from_settings(cls) -> "Envelope":
        key = getattr(settings, "FIELD_ENCRYPTION_KEY", "") or _derive_key("field-encryption", settings.SECRET_KEY)
        digest_key = getattr(settings, "FIELD_DIGEST_KEY", "") or _derive_key("field-digest", settings.SECRET_KEY)
        return cls(key, digest_key)

    def encode(self, plaintext: Optional[str]) -> Optional[str]:
        if plaintext is None:
            return None
        if not isinstance(plaintext, str):
            plaintext = str(plaintext)
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decode(self, envelope: Optional[str]) -> Optional[str]:
        if envelope is None:
            return None
        try:
            return self._fernet.decrypt(envelope.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError, ValueError) as exc:
            logger.error("Envelope decode failed: %s", type(exc).__name__)
            raise EnvelopeError("Envelope could not be decoded.") from exc

    def digest(self, value: Optional[str]) -> Optional[str]:
        """
        Keyed lookup digest (blind index).
        Identifiers are reduced to their digits so '123.456.789-09' and '12345678909' collide.
        """
        if value is None:
            return None
        normalized = _NON_DIGITS.sub("", value) or value.strip().lower()
        if not normalized:
            return None
        return hmac.new(self._digest_key, normalized.encode("utf-8"), hashlib.sha256).hexdigest()
