"""
Per-user booking sessions kept in Redis.

One wizard state per user, stored as JSON under ``booking_session:{user_id}``
and refreshed on every change. Sessions expire after
BOOKING_SESSION_TTL_SECONDS of inactivity.
"""
import logging
from typing import Optional

from pydantic import ValidationError as SchemaError

from ..core.config import settings
from ..schemas.booking import WizardState

logger = logging.getLogger(__name__)


class BookingSessionStore:
    def __init__(self, redis_client, ttl: int = None):
        self.redis = redis_client
        self.ttl = ttl or settings.BOOKING_SESSION_TTL_SECONDS

    @staticmethod
    def _key(user_id: int) -> str:
        return f"booking_session:{user_id}"

    def load(self, user_id: int) -> Optional[WizardState]:
        raw = self.redis.get(self._key(user_id))
        if not raw:
            return None

        try:
            return WizardState.model_validate_json(raw)
        except SchemaError:
            # Unreadable sessions (e.g. after a schema change) start over
            logger.warning(f"Discarding unreadable booking session for user {user_id}")
            self.clear(user_id)
            return None

    def save(self, user_id: int, state: WizardState):
        self.redis.setex(self._key(user_id), self.ttl, state.model_dump_json())

    def clear(self, user_id: int):
        self.redis.delete(self._key(user_id))
        logger.info(f"Booking session cleared for user {user_id}")
