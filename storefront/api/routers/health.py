# storefront/api/routers/health.py
from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from storefront.api.deps import get_session_store
from storefront.data.database import get_db
from storefront.services.session_store import CheckoutSessionStore
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health(
    db: Session = Depends(get_db),
    sessions: CheckoutSessionStore = Depends(get_session_store),
):
    checks = {"database": "ok", "sessions": "ok"}

    try:
        db.execute(text("SELECT 1"))
    except OperationalError as e:
        logger.error(f"Health check: database unavailable: {e}")
        checks["database"] = "unavailable"

    try:
        sessions.ping()
    except RedisError as e:
        logger.error(f"Health check: session store unavailable: {e}")
        checks["sessions"] = "unavailable"

    status = "ok" if all(v == "ok" for v in checks.values()) else "degraded"
    return {"status": status, **checks}
