"""
Credential helpers:
- Argon2 password hashing via argon2-cffi
- Credential Verifier: identifier/secret pair against the stored hash
- Registration input policy (email shape, password strength)
"""
from __future__ import annotations

import logging
import re

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from security.errors import InvalidCredentials

logger = logging.getLogger(__name__)

ph = PasswordHasher()

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_RE = re.compile(r"^(?=.*[A-Z])(?=.*[a-z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$")

# Verified against when the identifier is unknown so both failure halves cost the same
_DUMMY_HASH = ph.hash("library-catalogue-placeholder")


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """ Verify a plaintext password using argon2
    """
    if not password_hash:
        return False
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def normalize_email(value):
    return value.strip().lower() if isinstance(value, str) else value


def is_valid_email(email: str) -> bool:
    return bool(email and EMAIL_RE.match(email))


def is_strong_password(password: str) -> bool:
    return bool(password and PASSWORD_RE.match(password))


def verify_credentials(store, identifier: str, secret: str):
    """
    Return the account owning `identifier` if `secret` matches its hash.

    Raises InvalidCredentials for an unknown identifier and for a wrong
    secret alike; nothing is written on failure.
    """
    account = store.get_account_by_email(normalize_email(identifier))
    if account is None:
        verify_password(secret, _DUMMY_HASH)
        logger.info("Login rejected: invalid credentials")
        raise InvalidCredentials()
    if not verify_password(secret, account.password_hash):
        logger.info("Login rejected: invalid credentials")
        raise InvalidCredentials()
    return account
