import logging

from flask import Blueprint
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from models import storage

logger = logging.getLogger(__name__)

bp = Blueprint("health", __name__)

@bp.get("/health")
def health():
    """
    Health check, including a round trip to the account store
    ---
    tags:
      - Health
    responses:
      200:
        description: API and store are up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            database:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
      503:
        description: Store unreachable
    """
    session = storage.get_session()
    try:
        session.execute(text("SELECT 1"))
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Health check could not reach the store: %s", exc.__class__.__name__)
        return {"status": "degraded", "database": "unavailable", "version": "1.0.0"}, 503
    return {"status": "ok", "database": "ok", "version": "1.0.0"}, 200
