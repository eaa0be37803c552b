"""
Token Issuer.

Mints and decodes the two token kinds with PyJWT:
- access tokens: short-lived, carry identity and role claims
- refresh tokens: long-lived, carry only the subject id

Each kind has its own signing key and its own canonical claim shape
(`AccessClaims`, `RefreshClaims`); a `type` claim keeps one kind from being
accepted where the other is expected. The issuer is stateless: persisting
the refresh token is the caller's job.

Expiry is checked here against an explicit `now` instead of inside
`jwt.decode`, so a token is valid up to and including its `exp` second and
callers (tests included) can supply the clock.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    pass


class TokenExpired(TokenError):
    pass


class TokenInvalid(TokenError):
    pass


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(now: datetime | None) -> int:
    return int((now or _now()).timestamp())


@dataclass(frozen=True)
class AccessClaims:
    subject_id: str
    name: str
    email: str
    role: str
    issued_at: int
    expires_at: int
    jti: str

    def public_view(self) -> Dict[str, str]:
        return {"id": self.subject_id, "name": self.name, "email": self.email, "role": self.role}


@dataclass(frozen=True)
class RefreshClaims:
    subject_id: str
    issued_at: int
    expires_at: int
    jti: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_claims: AccessClaims
    refresh_claims: RefreshClaims


class TokenIssuer:
    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        algorithm: str = "HS256",
        issuer: str = "library-catalogue-api",
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("Both signing secrets are required")
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh tokens must be signed with different secrets")
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.algorithm = algorithm
        self.issuer = issuer

    @classmethod
    def from_config(cls, config) -> "TokenIssuer":
        return cls(
            access_secret=config["ACCESS_TOKEN_SECRET"],
            refresh_secret=config["REFRESH_TOKEN_SECRET"],
            access_ttl=config["ACCESS_TOKEN_EXPIRES"],
            refresh_ttl=config["REFRESH_TOKEN_EXPIRES"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            issuer=config.get("JWT_ISSUER", "library-catalogue-api"),
        )

    # ------------------------------------------------------------------
    # Issuing
    # ------------------------------------------------------------------

    def issue(self, account, now: datetime | None = None) -> TokenPair:
        """Mint an access/refresh pair from the account's current state."""
        iat = _timestamp(now)
        access_claims = AccessClaims(
            subject_id=str(account.id),
            name=account.name,
            email=account.email,
            role=account.role,
            issued_at=iat,
            expires_at=iat + int(self.access_ttl.total_seconds()),
            jti=generate_jti(),
        )
        refresh_claims = RefreshClaims(
            subject_id=str(account.id),
            issued_at=iat,
            expires_at=iat + int(self.refresh_ttl.total_seconds()),
            jti=generate_jti(),
        )
        access_payload = {
            "iss": self.issuer,
            "sub": access_claims.subject_id,
            "name": access_claims.name,
            "email": access_claims.email,
            "role": access_claims.role,
            "type": ACCESS,
            "iat": access_claims.issued_at,
            "exp": access_claims.expires_at,
            "jti": access_claims.jti,
        }
        refresh_payload = {
            "iss": self.issuer,
            "sub": refresh_claims.subject_id,
            "type": REFRESH,
            "iat": refresh_claims.issued_at,
            "exp": refresh_claims.expires_at,
            "jti": refresh_claims.jti,
        }
        return TokenPair(
            access_token=jwt.encode(access_payload, self.access_secret, algorithm=self.algorithm),
            refresh_token=jwt.encode(refresh_payload, self.refresh_secret, algorithm=self.algorithm),
            access_claims=access_claims,
            refresh_claims=refresh_claims,
        )

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def _decode(self, token: str, secret: str, expected_type: str, required, now) -> Dict[str, Any]:
        try:
            decoded = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"verify_exp": False, "verify_iat": False, "require": ["exp", "iat", "sub", "jti"]},
            )
        except jwt.InvalidTokenError as exc:
            raise TokenInvalid(f"Invalid token: {exc}") from exc

        if decoded.get("type") != expected_type:
            raise TokenInvalid("Wrong token type")
        missing = [claim for claim in required if not isinstance(decoded.get(claim), str)]
        if missing:
            raise TokenInvalid(f"Missing claims: {', '.join(missing)}")
        for claim in ("exp", "iat"):
            if not isinstance(decoded[claim], int) or isinstance(decoded[claim], bool):
                raise TokenInvalid(f"Malformed {claim} claim")
        if _timestamp(now) > decoded["exp"]:
            raise TokenExpired("Token expired")
        return decoded

    def decode_access(self, token: str, now: datetime | None = None) -> AccessClaims:
        decoded = self._decode(token, self.access_secret, ACCESS, ("sub", "name", "email", "role"), now)
        return AccessClaims(
            subject_id=decoded["sub"],
            name=decoded["name"],
            email=decoded["email"],
            role=decoded["role"],
            issued_at=decoded["iat"],
            expires_at=decoded["exp"],
            jti=decoded["jti"],
        )

    def decode_refresh(self, token: str, now: datetime | None = None) -> RefreshClaims:
        decoded = self._decode(token, self.refresh_secret, REFRESH, ("sub",), now)
        return RefreshClaims(
            subject_id=decoded["sub"],
            issued_at=decoded["iat"],
            expires_at=decoded["exp"],
            jti=decoded["jti"],
        )
