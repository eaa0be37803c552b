from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import jwt
import pytest

from security.tokens import TokenExpired, TokenInvalid, TokenIssuer

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def token_issuer():
    return TokenIssuer(
        access_secret="access-key",
        refresh_secret="refresh-key",
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=7),
    )


@pytest.fixture
def account():
    return SimpleNamespace(id="u1", name="Ada", email="ada@example.com", role="user")


def test_same_secret_for_both_kinds_is_refused():
    with pytest.raises(ValueError):
        TokenIssuer("same", "same", timedelta(minutes=15), timedelta(days=7))


def test_access_claims_round_trip(token_issuer, account):
    pair = token_issuer.issue(account, now=T0)
    claims = token_issuer.decode_access(pair.access_token, now=T0)
    assert claims.subject_id == "u1"
    assert claims.role == "user"
    assert claims.email == "ada@example.com"
    assert claims.expires_at - claims.issued_at == 15 * 60
    assert claims.public_view() == {"id": "u1", "name": "Ada", "email": "ada@example.com", "role": "user"}


def test_refresh_token_carries_only_the_subject(token_issuer, account):
    pair = token_issuer.issue(account, now=T0)
    raw = jwt.decode(pair.refresh_token, options={"verify_signature": False})
    assert set(raw) == {"iss", "sub", "type", "iat", "exp", "jti"}
    assert raw["sub"] == "u1"
    assert raw["exp"] - raw["iat"] == 7 * 24 * 3600


def test_kinds_are_not_interchangeable(token_issuer, account):
    pair = token_issuer.issue(account, now=T0)
    with pytest.raises(TokenInvalid):
        token_issuer.decode_access(pair.refresh_token, now=T0)
    with pytest.raises(TokenInvalid):
        token_issuer.decode_refresh(pair.access_token, now=T0)


def test_access_token_valid_through_expiry_second_then_expired(token_issuer, account):
    pair = token_issuer.issue(account, now=T0)
    expiry = T0 + timedelta(minutes=15)
    assert token_issuer.decode_access(pair.access_token, now=expiry).subject_id == "u1"
    with pytest.raises(TokenExpired):
        token_issuer.decode_access(pair.access_token, now=expiry + timedelta(seconds=1))


def test_tampered_token_is_invalid_not_expired(token_issuer, account):
    pair = token_issuer.issue(account, now=T0)
    header, payload, signature = pair.access_token.split(".")
    forged = ".".join([header, payload, signature[::-1]])
    with pytest.raises(TokenInvalid):
        token_issuer.decode_access(forged, now=T0)


def test_token_signed_with_other_key_is_invalid(token_issuer, account):
    other = TokenIssuer("another-access", "another-refresh", timedelta(minutes=15), timedelta(days=7))
    pair = other.issue(account, now=T0)
    with pytest.raises(TokenInvalid):
        token_issuer.decode_refresh(pair.refresh_token, now=T0)


def test_expired_and_forged_token_is_invalid(token_issuer, account):
    pair = token_issuer.issue(account, now=T0)
    with pytest.raises(TokenInvalid):
        token_issuer.decode_access(pair.access_token + "x", now=T0 + timedelta(days=1))


def test_refresh_tokens_minted_in_the_same_second_differ(token_issuer, account):
    first = token_issuer.issue(account, now=T0)
    second = token_issuer.issue(account, now=T0)
    assert first.refresh_token != second.refresh_token
    assert first.access_token != second.access_token


@pytest.mark.parametrize("iat", ["yesterday", 1.5, True])
def test_signed_token_with_odd_iat_is_invalid(token_issuer, iat):
    payload = {
        "iss": token_issuer.issuer,
        "sub": "u1",
        "type": "refresh",
        "iat": iat,
        "exp": int(T0.timestamp()) + 60,
        "jti": "j1",
    }
    token = jwt.encode(payload, token_issuer.refresh_secret, algorithm="HS256")
    with pytest.raises(TokenInvalid):
        token_issuer.decode_refresh(token, now=T0)
