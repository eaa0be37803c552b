"""Logout: clear the caller's refresh-token slot."""
from __future__ import annotations

import logging

from security.errors import SessionPersistenceError

logger = logging.getLogger(__name__)


def logout(store, account_id: str) -> bool:
    """
    Null the account's stored refresh token.

    Returns whether the store write landed. A failed write is logged and
    reported as False, never raised: the caller clears the cookie regardless.
    """
    try:
        store.set_refresh_token(account_id, None)
    except SessionPersistenceError:
        logger.error("Logout could not clear the refresh token for account %s", account_id)
        return False
    logger.info("Session ended for account %s", account_id)
    return True
