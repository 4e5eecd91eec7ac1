"""
auth/tokens.py -- Signed, time-bounded session tokens.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (username), iat, exp and a
       random jti. The codec holds the shared secret it was constructed with,
       so two processes configured with the same JWT_SECRET interoperate
       without any coordination.

  Verification is split so the failure reason survives:
       1. structure     -- header/payload decode, alg == HS256 (Malformed)
       2. signature     -- jws.verify() on a structurally valid token
                           (BadSignature)
       3. claim shape   -- sub/iat/exp/jti present and typed (Malformed)
       4. expiry        -- now >= exp is Expired (ttl=0 is dead on arrival)
       jwt.decode() would fold all of these into one JWTError and only
       compares exp at whole-second granularity. jws.verify() alone reports
       a bad signature and a truncated token with the same JWSError, hence
       the separate structural pass.

  A valid signature only proves the token was minted by us. Whether it is
  still the subject's live session is SessionStore's job (auth/gate.py).

Layer rule: no imports from api/.
"""

from __future__ import annotations

import json
import secrets
import time
from collections.abc import Callable

from jose import jws, jwt
from jose.exceptions import JWSError

from auth.errors import ConfigInvalid, TokenInvalid, TokenInvalidReason
from auth.models import Claims

ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 8 * 3600


class TokenCodec:
    """Issues and verifies session tokens with a symmetric secret.

    Usage:
        codec = TokenCodec(settings.jwt_secret, settings.token_ttl_seconds)
        token = codec.issue("alice")
        claims = codec.verify(token)   # raises TokenInvalid
    """

    def __init__(
        self,
        secret: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ConfigInvalid("Token signing secret must not be empty")
        if ttl_seconds < 0:
            raise ConfigInvalid("Token TTL must not be negative")
        self._secret = secret
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def new_claims(self, subject: str, ttl_seconds: int | None = None) -> Claims:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl < 0:
            raise ValueError("ttl_seconds must not be negative")
        now = int(self._clock())
        return Claims(
            subject=subject,
            issued_at=now,
            expires_at=now + ttl,
            token_id=secrets.token_urlsafe(16),
        )

    def encode(self, claims: Claims) -> str:
        payload = {
            "sub": claims.subject,
            "iat": claims.issued_at,
            "exp": claims.expires_at,
            "jti": claims.token_id,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def issue(self, subject: str, ttl_seconds: int | None = None) -> str:
        """Return a signed token for subject valid for ttl_seconds (default: codec TTL)."""
        return self.encode(self.new_claims(subject, ttl_seconds))

    def verify(self, token: str) -> Claims:
        """Return the token's Claims or raise TokenInvalid with the reason."""
        try:
            header = jws.get_unverified_header(token)
        except JWSError as exc:
            raise TokenInvalid(TokenInvalidReason.MALFORMED, str(exc)) from exc
        if header.get("alg") != ALGORITHM:
            raise TokenInvalid(TokenInvalidReason.MALFORMED, f"unexpected alg {header.get('alg')!r}")

        try:
            raw = jws.verify(token, self._secret, algorithms=[ALGORITHM])
        except JWSError as exc:
            raise TokenInvalid(TokenInvalidReason.BAD_SIGNATURE) from exc

        claims = _parse_claims(raw)
        if self._clock() >= claims.expires_at:
            raise TokenInvalid(TokenInvalidReason.EXPIRED)
        return claims


def _parse_claims(raw: bytes) -> Claims:
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise TokenInvalid(TokenInvalidReason.MALFORMED, "payload is not JSON") from exc
    if not isinstance(payload, dict):
        raise TokenInvalid(TokenInvalidReason.MALFORMED, "payload is not an object")

    sub, iat, exp, jti = (payload.get(k) for k in ("sub", "iat", "exp", "jti"))
    if not isinstance(sub, str) or not sub:
        raise TokenInvalid(TokenInvalidReason.MALFORMED, "missing sub")
    for name, value in (("iat", iat), ("exp", exp)):
        # bool is an int subclass; reject it explicitly.
        if not isinstance(value, int) or isinstance(value, bool):
            raise TokenInvalid(TokenInvalidReason.MALFORMED, f"missing {name}")
    if not isinstance(jti, str):
        raise TokenInvalid(TokenInvalidReason.MALFORMED, "missing jti")
    return Claims(subject=sub, issued_at=iat, expires_at=exp, token_id=jti)
