"""Activation state container, the single owner of in-progress wizard data.

Lifecycle:
  hydrate(user_id, token)   → rebuild state from the activation service, or
                              from the local cache if the service has nothing
  update_step_data(step, …) → optimistic write: memory, then local cache
                              (same call), then remote write + document
                              uploads as background tasks
  clear_data()              → drop the client-side working copy once the
                              flow has completed server-side

Reads (`get_step_data`, `data`, `current_step`) never touch the network or
the store. No failure in here is fatal: remote errors fall back to the
cache, storage errors surface as the non-blocking `error` string, and
unexpected errors during hydration end in an empty form.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from activation.errors import RemoteSyncError, StorageError
from activation.schemas.profile import RemoteProfile, StepUpdateResponse
from activation.schemas.steps import (
    TOTAL_STEPS,
    Step4Form,
    StepData,
    parse_step,
    validate_step_number,
)
from activation.services.mapper import profile_to_steps
from activation.services.remote import CURRENT_SESSION, RemoteSyncClient
from activation.services.tasks import BackgroundTaskQueue
from activation.services.uploads import DocumentUploader
from activation.utils.cache import LocalDurableCache

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save activation progress. Please try again."
CLEAR_FAILED_MESSAGE = "Failed to clear activation data from storage."


@dataclass
class ActivationSummary:
    """Dashboard-level view of the remote activation record."""
    is_activated: bool = False
    progress: int = 0
    current_step: int = 1
    api_error: bool = False


class ActivationStateContainer:
    def __init__(
        self,
        client: Optional[RemoteSyncClient] = None,
        cache: Optional[LocalDurableCache] = None,
        queue: Optional[BackgroundTaskQueue] = None,
        uploader: Optional[DocumentUploader] = None,
    ):
        self.client = client or RemoteSyncClient()
        self.cache = cache or LocalDurableCache()
        self.queue = queue or BackgroundTaskQueue()
        self.uploader = uploader or DocumentUploader(self.client, self.queue)

        self.user_id: Optional[str] = None
        # Last signed-in user whose data this container loaded. Survives a
        # sign-out so that the next different user still triggers a wipe.
        self._hydrated_user_id: Optional[str] = None
        # Bumped by every hydrate(); results of an older one are dropped
        self._generation = 0

        self._steps: dict[int, StepData] = {}
        self._current_step = 1
        self.remote_profile: Optional[RemoteProfile] = None
        self.is_loading = False
        self.error: Optional[str] = None

    # ── Read accessors ──────────────────────────────────────

    @property
    def current_step(self) -> int:
        return self._current_step

    @property
    def data(self) -> dict[int, StepData]:
        return dict(self._steps)

    def get_step_data(self, step: int) -> Optional[StepData]:
        """Saved shape for `step`, or None (show an empty form)."""
        return self._steps.get(validate_step_number(step))

    # ── Hydration ───────────────────────────────────────────

    async def hydrate(self, user_id: Optional[str], token=CURRENT_SESSION) -> None:
        """Rebuild state for `user_id`: remote profile first, local cache second.

        `token` is the session token of `user_id`; when given it replaces the
        client's. Signing out (`user_id=None`) drops the client's token.
        Only the most recent call applies its result: a slower, older
        hydration that finishes afterwards is discarded.
        """
        self._generation += 1
        generation = self._generation
        if user_id is None:
            token = None
        if token is not CURRENT_SESSION:
            self.client.set_token(token)
        token = self.client.token

        self.is_loading = True
        try:
            if self._hydrated_user_id is not None and user_id != self._hydrated_user_id:
                if user_id is not None:
                    logger.info("User changed, clearing activation data")
                    self._discard_local_copy()
                self._reset()

            self.user_id = user_id
            if user_id is None:
                self._reset()
                return
            self._hydrated_user_id = user_id

            try:
                profile = await self._fetch_remote_profile(token)
                if generation != self._generation:
                    logger.info(f"Discarding outdated activation data for user {user_id}")
                    return
                if profile is not None:
                    self._apply_remote(profile)
                else:
                    self._load_from_cache()
            except Exception:
                logger.exception("Error loading activation data")
                if generation == self._generation:
                    self._reset()
        finally:
            if generation == self._generation:
                self.is_loading = False

    async def _fetch_remote_profile(self, token) -> Optional[RemoteProfile]:
        try:
            result = await self.client.fetch_profile(token=token)
        except RemoteSyncError as e:
            logger.info(f"Activation service not available, loading from local cache: {e.message}")
            return None
        return result.profile

    def _apply_remote(self, profile: RemoteProfile) -> None:
        self._steps = profile_to_steps(profile)
        self._current_step = _clamp_step(profile.current_step)
        self.remote_profile = profile
        logger.info(
            "Loaded activation data from service (steps=%s, current_step=%d)",
            sorted(self._steps),
            self._current_step,
        )

    def _load_from_cache(self) -> None:
        cached = self.cache.read(self.user_id)
        if cached is None:
            logger.info("No stored activation data found")
            self._steps = {}
            self._current_step = 1
            return
        steps, current_step = cached
        self._steps = steps
        self._current_step = current_step
        logger.info(f"Loaded activation data from local cache (steps={sorted(steps)})")

    # ── Writes ──────────────────────────────────────────────

    def update_step_data(self, step: int, payload) -> StepData:
        """Save one step. Must be called from inside the running event loop.

        The new data is readable via get_step_data() as soon as this
        returns; the local cache is already written. The remote write and
        any step 4 document uploads run in the background. Both are bound
        to the session signed in now, not the one signed in when they send.
        """
        data = parse_step(step, payload)
        token = self.client.token
        logger.debug(f"Updating step {step} data")

        if isinstance(data, Step4Form):
            if data.attachments():
                self.uploader.schedule(data, token=token)
            data = data.persisted()

        self._steps[step] = data
        self._persist_locally()
        self.queue.submit(
            f"save-step-{step}", self._save_to_remote(step, data, self.user_id, token)
        )
        return data

    def set_current_step(self, step: int) -> None:
        self._current_step = validate_step_number(step)
        self._persist_locally()

    def _persist_locally(self) -> None:
        try:
            self.cache.write(self._steps, self._current_step, self.user_id)
        except StorageError as e:
            logger.error(f"Error saving activation data to local cache: {e.message}")
            self.error = SAVE_FAILED_MESSAGE
        else:
            self.error = None

    async def _save_to_remote(
        self, step: int, data: StepData, user_id: Optional[str], token: Optional[str]
    ) -> StepUpdateResponse:
        try:
            result = await self.client.submit_step(step, data, token=token)
        except RemoteSyncError:
            logger.warning(f"Step {step} data saved locally only")
            raise
        logger.info(f"Step {step} data saved to activation service")
        # A write that lands after an account switch must not touch the new user's snapshot
        if result.profile is not None and user_id == self.user_id:
            self.remote_profile = result.profile
        return result

    # ── Reset ───────────────────────────────────────────────

    def clear_data(self) -> None:
        self._steps = {}
        self._current_step = 1
        self.error = None
        self.uploader.tracker.reset()
        try:
            self.cache.clear()
        except StorageError as e:
            logger.error(f"Error clearing activation data from local cache: {e.message}")
            self.error = CLEAR_FAILED_MESSAGE

    def clear_error(self) -> None:
        self.error = None

    def _reset(self) -> None:
        self._steps = {}
        self._current_step = 1
        self.remote_profile = None
        self.error = None
        self.uploader.tracker.reset()

    def _discard_local_copy(self) -> None:
        try:
            self.cache.clear()
        except StorageError as e:
            logger.warning(f"Failed to discard previous user's activation cache: {e.message}")

    # ── Status / lifecycle ──────────────────────────────────

    async def refresh_status(self) -> ActivationSummary:
        """Activation summary for dashboards; never raises on service errors."""
        if self.user_id is None:
            return ActivationSummary()
        try:
            result = await self.client.fetch_status()
        except RemoteSyncError as e:
            logger.info(f"Activation status not available, using defaults: {e.message}")
            return ActivationSummary(api_error=True)
        return ActivationSummary(
            is_activated=result.is_complete,
            progress=result.progress,
            current_step=_clamp_step(result.profile.current_step) if result.profile else 1,
        )

    async def drain(self) -> None:
        await self.queue.drain()

    async def aclose(self) -> None:
        await self.queue.drain()
        await self.client.aclose()


def _clamp_step(step: Optional[int]) -> int:
    if not step:
        return 1
    return max(1, min(step, TOTAL_STEPS))
