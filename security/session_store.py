"""
Session Store Adapter.

Every account has exactly one refresh-token slot (`User.refresh_token`).
Writes to it are compare-and-set: the UPDATE only lands when the stored
value still equals `expected`, so two writers racing on the same previous
value cannot both win. Pass `expected=ANY` for an unconditional overwrite
(logout, theft response).

Any SQLAlchemy failure, lock timeouts included, is rolled back and surfaced
as SessionPersistenceError; a write is only reported as done once committed.
"""
from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from models.user import User
from security.errors import SessionPersistenceError

logger = logging.getLogger(__name__)


class _Any:
    def __repr__(self):
        return "ANY"


ANY = _Any()


class SessionStore:
    def __init__(self, storage):
        self.storage = storage

    def _session(self):
        return self.storage.get_session()

    def get_account(self, account_id: str) -> User | None:
        """Load an account, always re-reading the row rather than the identity map."""
        session = self._session()
        try:
            account = session.get(User, account_id, populate_existing=True)
            # end the read transaction so later reads see other writers' commits
            session.commit()
            return account
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Account lookup failed: %s", exc.__class__.__name__)
            raise SessionPersistenceError() from exc

    def get_account_by_email(self, email: str) -> User | None:
        session = self._session()
        try:
            account = (
                session.query(User)
                .populate_existing()
                .filter(User.email == email)
                .first()
            )
            session.commit()
            return account
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Account lookup failed: %s", exc.__class__.__name__)
            raise SessionPersistenceError() from exc

    def set_refresh_token(self, account_id: str, token: str | None, expected=ANY) -> bool:
        """
        Overwrite the account's refresh-token slot with `token` (None clears it).

        Returns False when the precondition did not hold (the slot no longer
        holds `expected`, or the account is gone); True once committed.
        """
        stmt = update(User).where(User.id == account_id)
        if expected is not ANY:
            if expected is None:
                stmt = stmt.where(User.refresh_token.is_(None))
            else:
                stmt = stmt.where(User.refresh_token == expected)
        stmt = stmt.values(refresh_token=token).execution_options(synchronize_session=False)

        session = self._session()
        try:
            result = session.execute(stmt)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Refresh token write failed for account %s: %s", account_id, exc.__class__.__name__)
            raise SessionPersistenceError() from exc

        swapped = result.rowcount == 1
        if not swapped:
            logger.debug("Refresh token precondition failed for account %s", account_id)
        return swapped

    def _write(self, account_id: str, conditions, **values) -> bool:
        stmt = (
            update(User)
            .where(User.id == account_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        session = self._session()
        try:
            result = session.execute(stmt)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Account write failed for %s: %s", account_id, exc.__class__.__name__)
            raise SessionPersistenceError() from exc
        return result.rowcount == 1

    def set_reset_challenge(self, account_id: str, code_hash: str | None, expires_at) -> bool:
        """Overwrite (or clear, with None) the account's reset challenge."""
        return self._write(account_id, (), reset_code_hash=code_hash, reset_code_expires_at=expires_at)

    def replace_password(self, account_id: str, password_hash: str, expected_code_hash: str) -> bool:
        """
        Store a new password hash, consuming the reset challenge and ending
        any live session. Only lands while `expected_code_hash` is still the
        outstanding challenge, so a code cannot be spent twice.
        """
        return self._write(
            account_id,
            (User.reset_code_hash == expected_code_hash,),
            password_hash=password_hash,
            reset_code_hash=None,
            reset_code_expires_at=None,
            refresh_token=None,
        )
