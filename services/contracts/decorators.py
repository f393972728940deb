"""
Shared decorators for the contract services.
"""

import logging
from functools import wraps

from sqlalchemy.exc import DBAPIError, IntegrityError

from models import db
from .exceptions import TransientFailure

logger = logging.getLogger(__name__)


def storage_errors_wrapped(f):
    """
    Decorator turning database failures into TransientFailure.

    The session is rolled back before re-raising. Integrity errors pass
    through untouched so callers can interpret constraint violations.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except IntegrityError:
            raise
        except DBAPIError as e:
            db.session.rollback()
            logger.error(f"Storage failure in {f.__name__}: {e}")
            raise TransientFailure(f"Storage unavailable during {f.__name__}", original=e) from e
    return decorated_function
