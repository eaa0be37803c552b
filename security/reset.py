"""
Password-reset challenges.

One numeric code per account, stored only as an argon2 hash with its
expiry. Issuing a challenge overwrites any earlier one; a successful reset
consumes it. Callers never learn whether an email belongs to an account.
"""
from __future__ import annotations

import enum
import logging
import secrets
from datetime import datetime, timedelta, timezone

from security.credentials import hash_password, normalize_email, verify_password
from security.errors import SessionPersistenceError
from security.mailer import MailDeliveryError, reset_code_email, reset_success_email

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; they were written as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ResetOutcome(enum.Enum):
    APPLIED = "applied"
    INVALID_CODE = "invalid_code"
    PASSWORD_UNCHANGED = "password_unchanged"

    @property
    def ok(self) -> bool:
        return self is ResetOutcome.APPLIED


def generate_code(length: int = 6) -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


class ResetChallenges:
    def __init__(self, store, mailer, ttl: timedelta = timedelta(minutes=10), code_length: int = 6):
        self.store = store
        self.mailer = mailer
        self.ttl = ttl
        self.code_length = code_length

    def issue(self, email: str, now: datetime | None = None) -> None:
        """Create and mail a fresh code. Silent when the account does not exist."""
        account = self.store.get_account_by_email(normalize_email(email))
        if account is None:
            logger.info("Password reset requested for an unknown email")
            return

        code = generate_code(self.code_length)
        expires_at = (now or _now()) + self.ttl
        try:
            self.store.set_reset_challenge(account.id, hash_password(code), expires_at)
        except SessionPersistenceError as exc:
            logger.error("Reset challenge for account %s could not be stored: %s", account.id, exc)
            return

        subject, body = reset_code_email(account.name, code, int(self.ttl.total_seconds() // 60))
        try:
            self.mailer.send(account.email, subject, body)
        except MailDeliveryError as exc:
            logger.error("Reset code delivery failed for account %s: %s", account.id, exc)
            try:
                self.store.set_reset_challenge(account.id, None, None)
            except SessionPersistenceError:
                logger.exception("Undelivered reset challenge for account %s was not cleared", account.id)
            return
        logger.info("Reset challenge issued for account %s", account.id)

    def _live_challenge(self, email: str, code: str, now: datetime | None):
        account = self.store.get_account_by_email(normalize_email(email))
        if account is None or not account.reset_code_hash or not code:
            return None
        expires_at = _aware(account.reset_code_expires_at)
        if expires_at is None or (now or _now()) > expires_at:
            return None
        if not verify_password(str(code), account.reset_code_hash):
            return None
        return account

    def verify(self, email: str, code: str, now: datetime | None = None) -> bool:
        return self._live_challenge(email, code, now) is not None

    def apply_new_password(self, email: str, code: str, new_secret: str, now: datetime | None = None) -> ResetOutcome:
        """
        Set a new password if `code` is the live challenge for `email`.

        A wrong, expired or already spent code yields INVALID_CODE; a password
        equal to the current one yields PASSWORD_UNCHANGED.
        """
        account = self._live_challenge(email, code, now)
        if account is None:
            return ResetOutcome.INVALID_CODE
        if verify_password(new_secret, account.password_hash):
            logger.info("Password reset for account %s rejected: password unchanged", account.id)
            return ResetOutcome.PASSWORD_UNCHANGED

        applied = self.store.replace_password(account.id, hash_password(new_secret), account.reset_code_hash)
        if not applied:
            return ResetOutcome.INVALID_CODE
        logger.info("Password reset for account %s; sessions revoked", account.id)

        subject, body = reset_success_email(account.name)
        try:
            self.mailer.send(account.email, subject, body)
        except MailDeliveryError as exc:
            logger.warning("Reset confirmation mail failed for account %s: %s", account.id, exc)
        return ResetOutcome.APPLIED
