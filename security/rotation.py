"""
Session issuance and the refresh-token Rotation Protocol.

login():   verify credentials -> issue pair -> persist refresh token
rotate():  PRESENTED -> SIGNATURE_VERIFIED -> ACCOUNT_RESOLVED -> MATCH_CONFIRMED -> ROTATED

A rotation that finds the stored token different from the presented one
treats it as replay of a superseded (or stolen) token: the slot is cleared,
ending the whole session family, and the request is rejected. The same
happens when the compare-and-set write loses a race, which is what keeps
two concurrent rotations of one token from both succeeding.

Rejections are returned as a RotationResult, never raised. Only
SessionPersistenceError propagates, and no tokens are handed out for a
write that did not land.
"""
from __future__ import annotations

import enum
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime

from security.credentials import verify_credentials
from security.errors import (
    AccountNotFound,
    AuthError,
    InvalidCredentials,
    SESSION_EXPIRED_MESSAGE,
    SessionPersistenceError,
    SessionRevoked,
    Unauthorized,
)
from security.session_store import ANY
from security.tokens import TokenError, TokenIssuer, TokenPair

logger = logging.getLogger(__name__)

DEFAULT_WRITE_ATTEMPTS = 2


class RotationState(enum.Enum):
    PRESENTED = "presented"
    SIGNATURE_VERIFIED = "signature_verified"
    ACCOUNT_RESOLVED = "account_resolved"
    MATCH_CONFIRMED = "match_confirmed"
    ROTATED = "rotated"
    REJECTED_MISSING = "rejected_missing"
    REJECTED_INVALID_SIGNATURE = "rejected_invalid_signature"
    REJECTED_ACCOUNT_GONE = "rejected_account_gone"
    REJECTED_REUSE_DETECTED = "rejected_reuse_detected"


# Rejected states whose cookie is worth clearing; a missing cookie has nothing to clear
_CLEARS_COOKIE = {
    RotationState.REJECTED_INVALID_SIGNATURE,
    RotationState.REJECTED_ACCOUNT_GONE,
    RotationState.REJECTED_REUSE_DETECTED,
}

_ERRORS = {
    RotationState.REJECTED_MISSING: lambda: Unauthorized(message=SESSION_EXPIRED_MESSAGE),
    RotationState.REJECTED_INVALID_SIGNATURE: lambda: Unauthorized(message=SESSION_EXPIRED_MESSAGE),
    RotationState.REJECTED_ACCOUNT_GONE: AccountNotFound,
    RotationState.REJECTED_REUSE_DETECTED: SessionRevoked,
}


@dataclass(frozen=True)
class SessionGrant:
    tokens: TokenPair
    account: object


@dataclass(frozen=True)
class RotationResult:
    state: RotationState
    grant: SessionGrant | None = None

    @property
    def ok(self) -> bool:
        return self.state is RotationState.ROTATED

    @property
    def clear_cookie(self) -> bool:
        return self.state in _CLEARS_COOKIE

    def error(self) -> AuthError:
        """The client-facing error for a rejected rotation; all present as an expired session."""
        if self.ok:
            raise ValueError("Rotation succeeded, there is no error")
        return _ERRORS[self.state]()


def persist_refresh_token(store, account_id, token, expected, attempts: int = DEFAULT_WRITE_ATTEMPTS) -> bool:
    """
    Compare-and-set the account's refresh token, retrying a failed write
    `attempts - 1` times at most. A lost precondition is not retried.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return store.set_refresh_token(account_id, token, expected=expected)
        except SessionPersistenceError:
            if attempt == attempts:
                raise
            logger.warning("Refresh token write failed for account %s, retrying once", account_id)
    raise SessionPersistenceError()


def login(
    store,
    issuer: TokenIssuer,
    identifier: str,
    secret: str,
    now: datetime | None = None,
    write_attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> SessionGrant:
    """
    Verify credentials and start a session. The new refresh token supersedes
    whatever the account held before.

    Raises InvalidCredentials or SessionPersistenceError.
    """
    account = verify_credentials(store, identifier, secret)
    pair = issuer.issue(account, now=now)
    # A fresh login supersedes whatever the slot held, so the overwrite is unconditional
    if not persist_refresh_token(store, account.id, pair.refresh_token, ANY, write_attempts):
        logger.warning("Account %s vanished during login", account.id)
        raise InvalidCredentials()
    logger.info("Session started for account %s", account.id)
    return SessionGrant(tokens=pair, account=account)


def _burn_session(store, account_id) -> None:
    try:
        store.set_refresh_token(account_id, None)
    except SessionPersistenceError:
        # the presented token is rejected either way
        logger.error("Could not clear refresh token for account %s after reuse detection", account_id)


def _same_token(stored: str | None, presented: str) -> bool:
    if stored is None:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))


def _advance(state: RotationState, account_id=None) -> RotationState:
    logger.debug("Rotation -> %s (account=%s)", state.name, account_id)
    return state


def rotate(
    store,
    issuer: TokenIssuer,
    presented: str | None,
    now: datetime | None = None,
    write_attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> RotationResult:
    """Exchange a refresh token for a new access/refresh pair."""
    _advance(RotationState.PRESENTED)
    if not presented:
        return RotationResult(_advance(RotationState.REJECTED_MISSING))

    try:
        claims = issuer.decode_refresh(presented, now=now)
    except TokenError as exc:
        logger.warning("Refresh token rejected: %s", exc.__class__.__name__)
        return RotationResult(_advance(RotationState.REJECTED_INVALID_SIGNATURE))
    _advance(RotationState.SIGNATURE_VERIFIED, claims.subject_id)

    account = store.get_account(claims.subject_id)
    if account is None:
        logger.warning("Refresh token names a missing account %s", claims.subject_id)
        return RotationResult(_advance(RotationState.REJECTED_ACCOUNT_GONE, claims.subject_id))
    _advance(RotationState.ACCOUNT_RESOLVED, account.id)

    if not _same_token(account.refresh_token, presented):
        logger.warning("Refresh token reuse detected for account %s, revoking session", account.id)
        _burn_session(store, account.id)
        return RotationResult(_advance(RotationState.REJECTED_REUSE_DETECTED, account.id))
    _advance(RotationState.MATCH_CONFIRMED, account.id)

    # Claims come from the account as stored now, not from any earlier token
    pair = issuer.issue(account, now=now)
    if not persist_refresh_token(store, account.id, pair.refresh_token, presented, write_attempts):
        logger.warning("Refresh token for account %s was rotated concurrently, revoking session", account.id)
        _burn_session(store, account.id)
        return RotationResult(_advance(RotationState.REJECTED_REUSE_DETECTED, account.id))

    logger.info("Rotated session for account %s", account.id)
    return RotationResult(
        _advance(RotationState.ROTATED, account.id),
        grant=SessionGrant(tokens=pair, account=account),
    )
