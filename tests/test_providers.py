import time
from types import SimpleNamespace

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from providers import (
    FirebaseIdentityProvider,
    IdentityProvider,
    IdentityVerificationError,
    ImageStore,
    SMSSender,
    normalize_phone,
)

PROJECT = "medstore-test"


@pytest.fixture(scope="module")
def private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def provider(private_key, monkeypatch):
    firebase = FirebaseIdentityProvider(PROJECT, jwks_url="https://keys.invalid/jwks")
    signing_key = SimpleNamespace(key=private_key.public_key())
    monkeypatch.setattr(firebase._jwks, "get_signing_key_from_jwt", lambda token: signing_key)
    return firebase


def id_token(private_key, **overrides):
    now = int(time.time())
    claims = {
        "aud": PROJECT,
        "iss": f"https://securetoken.google.com/{PROJECT}",
        "sub": "firebase-uid",
        "iat": now,
        "exp": now + 3600,
        "phone_number": "+919876543210",
    }
    claims.update(overrides)
    claims = {k: v for k, v in claims.items() if v is not None}
    return jwt.encode(claims, private_key, algorithm="RS256", headers={"kid": "test-key"})


def test_valid_token_returns_phone(provider, private_key):
    assert provider.verify_identity_token(id_token(private_key)) == "+919876543210"


@pytest.mark.parametrize(
    "overrides",
    [
        {"aud": "another-project"},
        {"iss": "https://securetoken.google.com/another-project"},
        {"exp": int(time.time()) - 60},
        {"phone_number": None},
    ],
)
def test_rejected_tokens(provider, private_key, overrides):
    with pytest.raises(IdentityVerificationError):
        provider.verify_identity_token(id_token(private_key, **overrides))


def test_token_signed_by_another_key(provider):
    stranger = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    with pytest.raises(IdentityVerificationError):
        provider.verify_identity_token(id_token(stranger))


def test_unconfigured_project(private_key):
    firebase = FirebaseIdentityProvider("", jwks_url="https://keys.invalid/jwks")
    with pytest.raises(IdentityVerificationError, match="not configured"):
        firebase.verify_identity_token(id_token(private_key))


@pytest.mark.parametrize("base", [SMSSender, IdentityProvider, ImageStore])
def test_provider_bases_are_abstract(base):
    with pytest.raises(TypeError):
        base()

    class Incomplete(base):
        pass

    with pytest.raises(TypeError):
        Incomplete()


def test_normalize_phone():
    assert normalize_phone("+91 98765-43210") == "9876543210"
    assert normalize_phone("9876543210") == "9876543210"
