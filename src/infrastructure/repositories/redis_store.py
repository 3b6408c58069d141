"""
Redis Enrollment Attempt Store

Keeps enrollment attempts in Redis under ``mfa:enrollment:{account_id}``
with a TTL equal to the enrollment timeout, so abandoned attempts expire on
their own. Saves are compare-and-swap on the attempt version using
WATCH/MULTI, which keeps transitions consistent across processes.
"""

# Standard library imports
import json
import logging
from datetime import timedelta

# Third-party imports
import redis

# Local imports
from src.application.interfaces.repositories import IEnrollmentAttemptStore
from src.domain.entities.enrollment import EnrollmentAttempt
from src.domain.exceptions import ConflictError, StorageError

logger = logging.getLogger(__name__)


class RedisEnrollmentAttemptStore(IEnrollmentAttemptStore):
    """Redis implementation of IEnrollmentAttemptStore."""

    KEY_PREFIX = "mfa:enrollment:"

    def __init__(self, redis_client: redis.Redis, ttl: timedelta = timedelta(minutes=10)) -> None:
        self.redis = redis_client
        self.ttl_seconds = max(1, int(ttl.total_seconds()))

    def _key(self, account_id: str) -> str:
        return f"{self.KEY_PREFIX}{account_id}"

    async def get(self, account_id: str) -> EnrollmentAttempt | None:
        try:
            raw = self.redis.get(self._key(account_id))
        except redis.RedisError as e:
            raise StorageError("get_enrollment_attempt", type(e).__name__) from e
        return EnrollmentAttempt.from_dict(json.loads(raw)) if raw else None

    async def save(self, attempt: EnrollmentAttempt, expected_version: int | None) -> None:
        key = self._key(attempt.account_id)
        payload = json.dumps(attempt.to_dict())

        try:
            with self.redis.pipeline() as pipe:
                pipe.watch(key)
                raw = pipe.get(key)
                stored_version = json.loads(raw)["version"] if raw else None
                if stored_version != expected_version:
                    raise ConflictError(
                        f"Enrollment attempt for account {attempt.account_id} was modified concurrently",
                        details={"expected_version": expected_version, "actual_version": stored_version},
                    )
                pipe.multi()
                pipe.setex(key, self.ttl_seconds, payload)
                pipe.execute()
        except redis.WatchError as e:
            raise ConflictError(
                f"Enrollment attempt for account {attempt.account_id} was modified concurrently"
            ) from e
        except redis.RedisError as e:
            raise StorageError("save_enrollment_attempt", type(e).__name__) from e

    async def delete(self, account_id: str) -> None:
        try:
            self.redis.delete(self._key(account_id))
        except redis.RedisError as e:
            raise StorageError("delete_enrollment_attempt", type(e).__name__) from e

    async def list_all(self) -> list[EnrollmentAttempt]:
        attempts = []
        try:
            for key in self.redis.scan_iter(match=f"{self.KEY_PREFIX}*"):
                raw = self.redis.get(key)
                if raw:
                    attempts.append(EnrollmentAttempt.from_dict(json.loads(raw)))
        except redis.RedisError as e:
            raise StorageError("list_enrollment_attempts", type(e).__name__) from e
        return attempts
