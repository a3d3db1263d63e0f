import functools
import logging

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import InterfaceError, OperationalError

from smartqueue.errors import StoreUnavailable

db = SQLAlchemy()

logger = logging.getLogger(__name__)


def store_guard(func):
    """
    Turns driver/connection failures into StoreUnavailable.
    The session is rolled back so no half-applied transition is left behind.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (OperationalError, InterfaceError) as exc:
            db.session.rollback()
            logger.error("Store unavailable during %s: %s", func.__name__, exc)
            raise StoreUnavailable() from exc
    return wrapper
