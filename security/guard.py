"""
Access Guard: turns an Authorization header into verified access claims.

Failure classes:
- no bearer token             -> Unauthorized(NO_TOKEN)
- valid signature but expired -> Unauthorized(TOKEN_EXPIRED), client should rotate
- anything else               -> Forbidden(MALFORMED)
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from security.errors import (
    Forbidden,
    INSUFFICIENT_ROLE,
    MALFORMED,
    NO_TOKEN,
    TOKEN_EXPIRED,
    Unauthorized,
)
from security.tokens import AccessClaims, TokenExpired, TokenInvalid, TokenIssuer

logger = logging.getLogger(__name__)


def extract_bearer(header: str | None) -> str | None:
    if not header:
        return None
    scheme, _, value = header.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


def authorize_request(issuer: TokenIssuer, authorization: str | None, now: datetime | None = None) -> AccessClaims:
    token = extract_bearer(authorization)
    if token is None:
        raise Unauthorized(NO_TOKEN, "Access token missing")
    try:
        return issuer.decode_access(token, now=now)
    except TokenExpired:
        raise Unauthorized(TOKEN_EXPIRED, "Access token expired")
    except TokenInvalid as exc:
        logger.warning("Malformed access token: %s", exc)
        raise Forbidden(MALFORMED, "Invalid access token")


def require_role(claims: AccessClaims, roles: Iterable[str]) -> None:
    allowed = set(roles)
    if claims.role not in allowed:
        logger.warning("Account %s lacks required roles: %s", claims.subject_id, ", ".join(sorted(allowed)))
        raise Forbidden(INSUFFICIENT_ROLE, "Insufficient role")
