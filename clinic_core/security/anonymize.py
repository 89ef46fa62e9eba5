# clinic_core/security/anonymize.py
from __future__ import annotations

import re
from typing import Optional

NATIONAL_ID = "national_id"
PHONE = "phone"
EMAIL = "email"
NAME = "name"
GENERIC = "generic"

KINDS = (NATIONAL_ID, PHONE, EMAIL, NAME, GENERIC)

_NON_DIGITS = re.compile(r"\D")


def _generic(value: str) -> str:
    return "*" * len(value)


def _national_id(value: str) -> str:
    digits = _NON_DIGITS.sub("", value)
    if len(digits) != 11:
        return _generic(value)
    return f"{digits[:3]}.***.**-{digits[-2:]}"


def _phone(value: str) -> str:
    digits = _NON_DIGITS.sub("", value)
    if len(digits) == 11:
        return f"({digits[:2]}) 9****-{digits[-4:]}"
    if len(digits) == 10:
        return f"({digits[:2]}) ****-{digits[-4:]}"
    return _generic(value)


def _email(value: str) -> str:
    local, sep, domain = value.partition("@")
    if not sep or not local or not domain:
        return _generic(value)
    if len(local) <= 2:
        return f"{'*' * len(local)}@{domain}"
    return f"{local[0]}{'*' * (len(local) - 2)}{local[-1]}@{domain}"


def _name(value: str) -> str:
    words = value.split()
    if not words:
        return _generic(value)
    masked = [words[0]] + [w[0] + "*" * (len(w) - 1) for w in words[1:]]
    return " ".join(masked)


_MASKERS = {
    NATIONAL_ID: _national_id,
    PHONE: _phone,
    EMAIL: _email,
    NAME: _name,
    GENERIC: _generic,
}


def anonymize(value: Optional[str], kind: str = GENERIC) -> Optional[str]:
    """
    Display-safe masked form of a sensitive value. Irreversible.
    Unknown kinds fall back to the generic mask.
    """
    if value is None:
        return None
    value = str(value)
    if not value:
        return None
    return _MASKERS.get(kind, _generic)(value)
