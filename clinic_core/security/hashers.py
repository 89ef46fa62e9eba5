# clinic_core/security/hashers.py
from django.conf import settings
from django.contrib.auth.hashers import BCryptSHA256PasswordHasher


class TunableBCryptSHA256PasswordHasher(BCryptSHA256PasswordHasher):
    """
    bcrypt-SHA256 with the work factor taken from settings.BCRYPT_ROUNDS.
    Keeps the stock algorithm id, so existing hashes stay verifiable and
    get upgraded when the round count changes.
    """

    @property
    def rounds(self):
        return int(getattr(settings, "BCRYPT_ROUNDS", 12))
