"""Unit tests for auth/tokens.py -- TokenCodec issue/verify and failure reasons.

The codec takes an injectable clock, so expiry is tested by moving a fake
clock rather than sleeping.
"""

import base64
import json

import pytest
from jose import jwt

from auth.errors import ConfigInvalid, TokenInvalid, TokenInvalidReason
from auth.tokens import ALGORITHM, TokenCodec

SECRET = "unit-test-secret-with-enough-entropy"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codec(clock):
    return TokenCodec(SECRET, ttl_seconds=3600, clock=clock)


def _reason(codec: TokenCodec, token: str) -> TokenInvalidReason:
    with pytest.raises(TokenInvalid) as excinfo:
        codec.verify(token)
    return excinfo.value.reason


def _b64(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


def test_issue_then_verify_returns_claims(codec, clock):
    token = codec.issue("alice")
    claims = codec.verify(token)
    assert claims.subject == "alice"
    assert claims.issued_at == int(clock.now)
    assert claims.expires_at == int(clock.now) + 3600
    assert claims.token_id


def test_token_is_hs256_jwt_with_expected_claims(codec):
    token = codec.issue("alice")
    payload = jwt.get_unverified_claims(token)
    assert jwt.get_unverified_header(token)["alg"] == ALGORITHM
    assert set(payload) == {"sub", "iat", "exp", "jti"}


def test_same_second_logins_produce_distinct_tokens(codec):
    assert codec.issue("alice") != codec.issue("alice")


def test_per_call_ttl_override(codec, clock):
    claims = codec.verify(codec.issue("alice", ttl_seconds=60))
    assert claims.expires_at - claims.issued_at == 60


def test_codecs_with_same_secret_interoperate(clock):
    first = TokenCodec(SECRET, clock=clock)
    second = TokenCodec(SECRET, clock=clock)
    assert second.verify(first.issue("alice")).subject == "alice"


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


def test_token_valid_until_one_second_before_exp(codec, clock):
    token = codec.issue("alice")
    clock.now += 3599
    assert codec.verify(token).subject == "alice"


def test_token_expired_at_exp(codec, clock):
    token = codec.issue("alice")
    clock.now += 3600
    assert _reason(codec, token) is TokenInvalidReason.EXPIRED


def test_zero_ttl_is_expired_immediately(clock):
    codec = TokenCodec(SECRET, ttl_seconds=0, clock=clock)
    assert _reason(codec, codec.issue("alice")) is TokenInvalidReason.EXPIRED


# ---------------------------------------------------------------------------
# Signature and structure
# ---------------------------------------------------------------------------


def test_wrong_secret_is_bad_signature(codec, clock):
    other = TokenCodec("a-completely-different-secret-value", clock=clock)
    assert _reason(codec, other.issue("alice")) is TokenInvalidReason.BAD_SIGNATURE


def test_tampered_payload_is_bad_signature(codec):
    header, _payload, signature = codec.issue("alice").split(".")
    forged = _b64({"sub": "admin", "iat": 1, "exp": 9_999_999_999, "jti": "x"})
    assert _reason(codec, f"{header}.{forged}.{signature}") is TokenInvalidReason.BAD_SIGNATURE


def test_flipped_signature_character_is_bad_signature(codec):
    header, payload, signature = codec.issue("alice").split(".")
    # first character: all six bits are signature data, none are padding
    flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
    assert _reason(codec, f"{header}.{payload}.{flipped}") is TokenInvalidReason.BAD_SIGNATURE


@pytest.mark.parametrize("token", ["", "abc", "a.b", "not.a.token", "....."])
def test_garbage_is_malformed(codec, token):
    assert _reason(codec, token) is TokenInvalidReason.MALFORMED


def test_other_algorithm_is_malformed(codec, clock):
    token = jwt.encode(
        {"sub": "alice", "iat": int(clock.now), "exp": int(clock.now) + 60, "jti": "x"},
        SECRET,
        algorithm="HS512",
    )
    assert _reason(codec, token) is TokenInvalidReason.MALFORMED


@pytest.mark.parametrize(
    "payload",
    [
        {"iat": 1, "exp": 2, "jti": "x"},
        {"sub": "", "iat": 1, "exp": 2, "jti": "x"},
        {"sub": "alice", "exp": 2, "jti": "x"},
        {"sub": "alice", "iat": "1", "exp": 2, "jti": "x"},
        {"sub": "alice", "iat": 1, "exp": True, "jti": "x"},
        {"sub": "alice", "iat": 1, "exp": 2},
    ],
)
def test_correctly_signed_but_incomplete_claims_are_malformed(codec, payload):
    token = jwt.encode(payload, SECRET, algorithm=ALGORITHM)
    assert _reason(codec, token) is TokenInvalidReason.MALFORMED


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def test_empty_secret_is_config_invalid():
    with pytest.raises(ConfigInvalid):
        TokenCodec("")


def test_negative_ttl_is_config_invalid():
    with pytest.raises(ConfigInvalid):
        TokenCodec(SECRET, ttl_seconds=-1)
