import pytest
from cryptography.fernet import Fernet

from clinic_core.security.envelope import Envelope, EnvelopeError


@pytest.fixture
def envelope():
    return Envelope(Fernet.generate_key(), b"digest-key")


def test_encode_decode_round_trip(envelope):
    for value in ["123.456.789-09", "", "Maria da Silva", "ção ü ñ"]:
        token = envelope.encode(value)
        assert token != value
        assert envelope.decode(token) == value


def test_none_maps_to_none(envelope):
    assert envelope.encode(None) is None
    assert envelope.decode(None) is None


def test_foreign_envelope_raises(envelope):
    other = Envelope(Fernet.generate_key(), b"digest-key")
    token = other.encode("secret")
    with pytest.raises(EnvelopeError):
        envelope.decode(token)


def test_tampered_envelope_raises(envelope):
    token = envelope.encode("secret")
    tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")
    with pytest.raises(EnvelopeError):
        envelope.decode(tampered)


def test_digest_normalises_identifiers(envelope):
    assert envelope.digest("123.456.789-09") == envelope.digest("12345678909")
    assert envelope.digest("12345678909") != envelope.digest("12345678900")
    assert envelope.digest(None) is None


def test_digest_depends_on_key():
    a = Envelope(Fernet.generate_key(), b"key-a")
    b = Envelope(Fernet.generate_key(), b"key-b")
    assert a.digest("12345678909") != b.digest("12345678909")


def test_from_settings_is_stable(settings):
    settings.FIELD_ENCRYPTION_KEY = ""
    settings.FIELD_DIGEST_KEY = ""
    token = Envelope.from_settings().encode("x")
    assert Envelope.from_settings().decode(token) == "x"
