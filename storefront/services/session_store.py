# storefront/services/session_store.py
import redis
from redis.exceptions import RedisError

from storefront.domain.errors import TransientStoreError
from storefront.domain.schemas import CheckoutSnapshot
from storefront.utils.logging import get_logger
from storefront.utils.retry import redis_retry
from storefront.utils.settings import CHECKOUT_SESSION_TTL_SECONDS, REDIS_URL

logger = get_logger(__name__)


class CheckoutSessionStore:
    """
    -keeps the checkout snapshot for a payment session
    -keyed by the provider session id
    -entries expire on their own (EX ttl), no cleanup job needed
    """

    def __init__(self, client: redis.Redis | None = None, url: str | None = None, ttl: int | None = None):
        self.redis = client or redis.Redis.from_url(url or REDIS_URL, decode_responses=True)
        self.ttl = ttl or CHECKOUT_SESSION_TTL_SECONDS

    @staticmethod
    def _key(session_id: str) -> str:
        return f"checkout:session:{session_id}"

    @staticmethod
    def _recheck_key(session_id: str) -> str:
        return f"checkout:recheck:{session_id}"

    def save(self, snapshot: CheckoutSnapshot) -> None:
        try:
            self._set(self._key(snapshot.session_id), snapshot.model_dump_json())
        except RedisError as e:
            logger.error(f"Could not store snapshot for session {snapshot.session_id}: {e}")
            raise TransientStoreError("Checkout session store unavailable") from e
        logger.info(f"Stored snapshot for session {snapshot.session_id} (ttl={self.ttl}s)")

    def load(self, session_id: str) -> CheckoutSnapshot | None:
        try:
            raw = self._get(self._key(session_id))
        except RedisError as e:
            logger.error(f"Could not read snapshot for session {session_id}: {e}")
            raise TransientStoreError("Checkout session store unavailable") from e

        if raw is None:
            return None
        return CheckoutSnapshot.model_validate_json(raw)

    def claim_recheck(self, session_id: str, window: float) -> bool:
        """True for the first caller within ``window`` seconds.

        Polling asks the processor about a session at most once per window.
        """
        try:
            return bool(self._set_nx(self._recheck_key(session_id), "1", max(1, int(window))))
        except RedisError as e:
            logger.warning(f"Could not claim payment re-check for session {session_id}: {e}")
            return False

    @redis_retry()
    def _set(self, key: str, value: str):
        # SET checkout:session:<id> <json> EX <ttl>
        return self.redis.set(name=key, value=value, ex=self.ttl)

    @redis_retry()
    def _set_nx(self, key: str, value: str, ttl: int):
        # SET checkout:recheck:<id> 1 NX EX <window>
        return self.redis.set(name=key, value=value, ex=ttl, nx=True)

    @redis_retry()
    def _get(self, key: str):
        return self.redis.get(key)

    @redis_retry()
    def ping(self) -> bool:
        return bool(self.redis.ping())
