# storefront/utils/db_errors.py
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from storefront.domain.errors import TransientStoreError
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def transient_store_errors(db: Session, operation: str):
    """Roll back and re-raise database outages as ``TransientStoreError``."""
    try:
        yield
    except OperationalError as e:
        db.rollback()
        logger.error(f"Data store unavailable during {operation}: {e}")
        raise TransientStoreError(f"Data store unavailable during {operation}") from e
