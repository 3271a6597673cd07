"""Local durable cache for in-progress activation data.

Holds one JSON envelope under a single key:

    {"data": {"1": {...}, "4": {...}}, "currentStep": 2,
     "timestamp": <epoch ms>, "schemaVersion": "1.0.0", "userId": "..."}

An envelope is trusted only as a whole: if it is older than the TTL, was
written by a build with another schema version, belongs to another user,
or fails to parse, it is deleted and treated as absent.

Two store backends:
  - RedisStore   → synchronous redis client (writes complete in the same
                   call, so the cache never lags the in-memory state)
  - MemoryStore  → process-local dict with an optional byte quota
"""

import logging
import time
from typing import Callable, Optional, Protocol

import redis
from pydantic import BaseModel, Field, ValidationError
from pydantic.alias_generators import to_camel

from activation.config import settings
from activation.errors import InvalidStepError, StorageError, StorageQuotaExceededError
from activation.schemas.steps import STEP_MODELS, StepData, dump_step, validate_step_number

logger = logging.getLogger(__name__)


# ── Stores ──────────────────────────────────────────────────

class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class RedisStore:
    """Redis-backed store. Maps redis failures onto StorageError types."""

    def __init__(self, client: Optional[redis.Redis] = None, url: Optional[str] = None):
        self._client = client or redis.Redis.from_url(
            url or settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except redis.RedisError as e:
            raise StorageError(f"Redis read failed: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(key, value)
        except redis.ResponseError as e:
            # maxmemory reached: "OOM command not allowed when used memory > 'maxmemory'"
            if str(e).startswith("OOM"):
                raise StorageQuotaExceededError(str(e)) from e
            raise StorageError(f"Redis write failed: {e}") from e
        except redis.RedisError as e:
            raise StorageError(f"Redis write failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as e:
            raise StorageError(f"Redis delete failed: {e}") from e

    def close(self) -> None:
        self._client.close()


class MemoryStore:
    """In-process store with an optional quota on the total stored bytes.

    A replaced value keeps counting against the quota until the write
    succeeds, so deleting a key first frees room for a larger value.
    """

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._items: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            needed = self.used_bytes() + len(value.encode("utf-8"))
            if needed > self.quota_bytes:
                raise StorageQuotaExceededError(
                    f"Storage quota exceeded ({needed} > {self.quota_bytes} bytes)"
                )
        self._items[key] = value

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def used_bytes(self) -> int:
        return sum(len(v.encode("utf-8")) for v in self._items.values())

    def __contains__(self, key: str) -> bool:
        return key in self._items


# ── Envelope ────────────────────────────────────────────────

class CacheEnvelope(BaseModel):
    model_config = {"populate_by_name": True, "alias_generator": to_camel}

    data: dict[str, dict] = {}
    current_step: int = Field(default=1, ge=1, le=6)
    timestamp: int
    schema_version: str
    user_id: str | None = None

    def steps(self) -> dict[int, StepData]:
        """Decode `data` into step models (step 4 without files)."""
        decoded: dict[int, StepData] = {}
        for key, payload in self.data.items():
            try:
                step = validate_step_number(int(key))
            except ValueError:
                raise InvalidStepError(key) from None
            decoded[step] = STEP_MODELS[step].model_validate(payload)
        return decoded


class LocalDurableCache:
    """Reads, validates and writes the single activation envelope."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        key: Optional[str] = None,
        schema_version: Optional[str] = None,
        ttl_hours: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store if store is not None else RedisStore()
        self.key = key or settings.cache_key
        self.schema_version = schema_version or settings.cache_schema_version
        ttl = ttl_hours if ttl_hours is not None else settings.cache_ttl_hours
        self.max_age_ms = int(ttl * 60 * 60 * 1000)
        self._clock = clock

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def is_valid(self, envelope: CacheEnvelope, user_id: Optional[str]) -> bool:
        if self.now_ms() - envelope.timestamp > self.max_age_ms:
            return False
        if envelope.schema_version != self.schema_version:
            return False
        return envelope.user_id == user_id

    def read(self, user_id: Optional[str]) -> tuple[dict[int, StepData], int] | None:
        """Return (steps, current_step) from a valid envelope, else None.

        Raises StorageError if the store itself cannot be read.
        """
        raw = self.store.get(self.key)
        if raw is None:
            logger.debug(f"Cache MISS: {self.key}")
            return None

        try:
            envelope = CacheEnvelope.model_validate_json(raw)
            steps = envelope.steps()
        except (ValidationError, InvalidStepError) as e:
            logger.warning(f"Discarding unreadable activation cache: {e}")
            self._discard()
            return None

        if not self.is_valid(envelope, user_id):
            logger.info(
                "Discarding stale activation cache (age=%dms, version=%s)",
                self.now_ms() - envelope.timestamp,
                envelope.schema_version,
            )
            self._discard()
            return None

        logger.debug(f"Cache HIT: {self.key}")
        return steps, envelope.current_step

    def build_envelope(
        self,
        steps: dict[int, StepData],
        current_step: int,
        user_id: Optional[str],
    ) -> CacheEnvelope:
        return CacheEnvelope(
            data={str(step): dump_step(data) for step, data in sorted(steps.items())},
            current_step=current_step,
            timestamp=self.now_ms(),
            schema_version=self.schema_version,
            user_id=user_id,
        )

    def write(
        self,
        steps: dict[int, StepData],
        current_step: int,
        user_id: Optional[str],
    ) -> CacheEnvelope:
        """Serialize the full state and store it; retry once on quota errors.

        On StorageQuotaExceededError the existing entry is deleted and the
        write is retried. A second failure propagates to the caller.
        """
        envelope = self.build_envelope(steps, current_step, user_id)
        payload = envelope.model_dump_json(by_alias=True)
        try:
            self.store.set(self.key, payload)
        except StorageQuotaExceededError:
            logger.warning("Storage quota exceeded. Clearing old data and retrying...")
            self.store.delete(self.key)
            self.store.set(self.key, payload)
        return envelope

    def clear(self) -> None:
        self.store.delete(self.key)

    def _discard(self) -> None:
        try:
            self.store.delete(self.key)
        except StorageError as e:
            logger.warning(f"Failed to discard activation cache: {e}")
