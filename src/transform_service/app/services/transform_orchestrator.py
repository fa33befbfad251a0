import asyncio
import dataclasses
import time
from collections import deque
from itertools import count
from typing import Callable, Iterable

from image_transform_core import (
    CancellationToken,
    ErrorClassifier,
    ErrorKind,
    ImagePayload,
    InFlightRegistry,
    ResultCache,
    RetryPolicy,
    TransformAttempt,
    TransformError,
    TransformParams,
    TransformRequest,
    TransformResult,
    TransformStats,
    derive_request_key,
    summarize,
)
from loguru import logger

from ..core.config import Settings
from .domain import (
    BatchItem,
    TransformDecision,
    TransformInProgressError,
    TransformOptions,
    TransformPhase,
    TransformProgress,
    TransformState,
    TransformSuggestion,
    UnknownTransformTypeError,
)
from .image_preparation import ImagePreparationService
from .progress import ProgressChannel, ProgressSubscription
from .transform_client import TransformClient

PROCESSING_PROGRESS_START = 50
PROCESSING_PROGRESS_STEP = 10
PROCESSING_PROGRESS_CAP = 75


class TransformOrchestrator:
    """Runs one image transform at a time through its phases.

    idle -> preparing -> uploading -> processing -> downloading -> completed,
    ending in ``error`` or ``cancelled`` on failure. Terminal outcomes are
    returned as ``TransformResult``; only misuse (a second concurrent call, an
    unknown transform type) raises.
    """

    def __init__(
        self,
        transform_client: TransformClient | None = None,
        image_preparer: ImagePreparationService | None = None,
        result_cache: ResultCache | None = None,
        inflight_registry: InFlightRegistry | None = None,
        retry_policy: RetryPolicy | None = None,
        progress_channel: ProgressChannel | None = None,
        classifier: ErrorClassifier | None = None,
        settings: Settings = None,
    ):
        from ..core.config import get_settings

        self.settings = settings or get_settings()

        if transform_client is None:
            raise ValueError("TransformClient must be provided via dependency injection")
        if image_preparer is None:
            raise ValueError(
                "ImagePreparationService must be provided via dependency injection"
            )

        self.transform_client = transform_client
        self.image_preparer = image_preparer

        if result_cache is None and self.settings.CACHE_ENABLED:
            result_cache = ResultCache(
                capacity=self.settings.CACHE_MAX_SIZE,
                ttl_seconds=self.settings.CACHE_TTL,
            )
        self.result_cache = result_cache

        if inflight_registry is None:
            inflight_registry = InFlightRegistry()
        self.inflight = inflight_registry

        if retry_policy is None:
            retry_policy = RetryPolicy(
                max_attempts=self.settings.MAX_RETRY_ATTEMPTS,
                base_delay=self.settings.RETRY_BASE_DELAY,
                max_delay=self.settings.RETRY_MAX_DELAY,
            )
        self.retry_policy = retry_policy

        self.progress = progress_channel if progress_channel is not None else ProgressChannel()
        self.classifier = classifier if classifier is not None else ErrorClassifier()

        self._state = TransformState()
        self._history: deque[TransformResult] = deque(
            maxlen=self.settings.HISTORY_LIMIT
        )
        self._cancel_token: CancellationToken | None = None
        self._started_at = 0.0
        self._request_ids = count(1)
        self._last_options: TransformOptions | None = None

    def resolve_request(
        self,
        image: ImagePayload,
        transform_type: str,
        options: TransformOptions | None = None,
    ) -> TransformRequest:
        preset = self.settings.TRANSFORM_PRESETS.get(transform_type)
        if preset is None:
            raise UnknownTransformTypeError(
                f"Unknown transform type: {transform_type}. "
                f"Available: {', '.join(self.settings.transform_types)}"
            )

        options = options or TransformOptions()

        def pick(value, default):
            return default if value is None else value

        params = TransformParams(
            prompt=options.custom_prompt or preset.prompt,
            strength=pick(options.strength, preset.strength),
            steps=pick(options.steps, preset.steps),
            guidance_scale=pick(options.guidance_scale, preset.guidance_scale),
            width=pick(options.width, self.settings.DEFAULT_WIDTH),
            height=pick(options.height, self.settings.DEFAULT_HEIGHT),
            seed=options.seed,
        )
        return TransformRequest(image=image, transform_type=transform_type, params=params)

    async def transform(
        self,
        image: ImagePayload,
        transform_type: str,
        options: TransformOptions | None = None,
    ) -> TransformResult:
        if self._state.is_transforming:
            raise TransformInProgressError("Transform already in progress")

        request = self.resolve_request(image, transform_type, options)
        key = derive_request_key(request)

        token = CancellationToken()
        self._cancel_token = token
        self._started_at = time.monotonic()
        self._last_options = options
        self._state.is_transforming = True
        self._state.current_phase = TransformPhase.IDLE
        self._state.progress = 0.0
        self._state.failed_attempts = 0

        logger.info(f"Starting {transform_type} transform (key {key})")

        try:
            self._update_progress(TransformPhase.PREPARING, 0, "Checking cache...")

            cached = self.result_cache.get(key) if self.result_cache else None
            if cached is not None:
                logger.info(f"Using cached transformation result for key {key}")
                return self._complete(request, key, cached, from_cache=True)

            self._update_progress(TransformPhase.PREPARING, 10, "Preparing image data...")
            prepared = await token.run(self.image_preparer.prepare(request.image))

            await self._simulate_upload(token)

            self._update_progress(
                TransformPhase.PROCESSING,
                PROCESSING_PROGRESS_START,
                "AI is processing the image...",
            )
            wire_request = dataclasses.replace(request, image=prepared)
            transformed = await self._process(key, wire_request, token)

            self._update_progress(TransformPhase.DOWNLOADING, 80, "Downloading result...")
            transformed_image = await token.run(
                self.image_preparer.materialize(transformed)
            )
            token.raise_if_cancelled()

            if self.result_cache is not None:
                self.result_cache.put(key, transformed_image)

            return self._complete(request, key, transformed_image)

        except TransformError as e:
            return self._fail(request, key, e)

        except asyncio.CancelledError:
            # The shared attempt chain only observes the token.
            token.cancel("Transform caller was cancelled")
            self._fail(request, key, token.error())
            raise

        except Exception as e:
            logger.exception(f"Unexpected error during {transform_type} transform: {e}")
            return self._fail(request, key, self.classifier.classify_exception(e))

        finally:
            self._state.is_transforming = False
            self._cancel_token = None
            self.progress.close()

    async def _simulate_upload(self, token: CancellationToken) -> None:
        # Synthetic steps: the payload goes out in a single request.
        self._update_progress(TransformPhase.UPLOADING, 20, "Uploading image to AI service...")
        steps = max(1, self.settings.UPLOAD_STEPS)
        for step in range(1, steps + 1):
            token.raise_if_cancelled()
            progress = 20 + (step / steps) * 20
            self._update_progress(
                TransformPhase.UPLOADING, progress, f"Upload progress {round(progress)}%"
            )
            await token.sleep(self.settings.UPLOAD_STEP_DELAY)

    async def _process(
        self, key: str, request: TransformRequest, token: CancellationToken
    ) -> str:
        task, started = self.inflight.get_or_start(
            key, lambda: self._run_attempts(request, token)
        )
        if not started:
            logger.info(f"Waiting for existing request {key} to complete")
        return await token.run(task, cancel_on_abort=False)

    async def _run_attempts(
        self, request: TransformRequest, token: CancellationToken
    ) -> str:
        max_attempts = self.retry_policy.max_attempts
        attempts: list[TransformAttempt] = []

        for attempt in count(1):
            token.raise_if_cancelled()
            request_id = f"transform_{next(self._request_ids)}"
            self._update_progress(
                TransformPhase.PROCESSING,
                self._processing_progress(attempt - 1),
                f"AI processing... (attempt {attempt}/{max_attempts})",
                attempt=attempt,
            )

            started_at = time.monotonic()
            try:
                result = await self.transform_client.execute(request, request_id, token)
                logger.info(f"Transformation successful on attempt {attempt}")
                return result
            except TransformError as error:
                attempts.append(TransformAttempt(attempt, started_at, error))
                if error.is_cancelled:
                    raise
                token.raise_if_cancelled()

                self._state.failed_attempts += 1
                logger.warning(
                    f"Transform attempt {attempt}/{max_attempts} failed "
                    f"with {error.kind.value}: {error.message}"
                )

                delay = self.retry_policy.next_delay(attempt, error)
                if delay is None:
                    logger.error(
                        f"Giving up after {len(attempts)} attempt(s): {error.kind.value}"
                    )
                    raise

                self._update_progress(
                    TransformPhase.PROCESSING,
                    self._processing_progress(attempt),
                    f"Attempt failed, retrying in {delay:.1f}s...",
                    attempt=attempt,
                )
                await token.sleep(delay)

    @staticmethod
    def _processing_progress(failed_attempts: int) -> float:
        return min(
            PROCESSING_PROGRESS_START + failed_attempts * PROCESSING_PROGRESS_STEP,
            PROCESSING_PROGRESS_CAP,
        )

    def _complete(
        self,
        request: TransformRequest,
        key: str,
        transformed_image: str,
        from_cache: bool = False,
    ) -> TransformResult:
        result = TransformResult(
            success=True,
            original_image=request.image,
            transform_type=request.transform_type,
            processing_time_ms=self._elapsed_ms(),
            transformed_image=transformed_image,
            request_key=key,
            from_cache=from_cache,
        )
        self._history.append(result)
        self._state.last_transform_time = result.completed_at
        self._update_progress(TransformPhase.COMPLETED, 100, "Transform complete!")

        logger.info(
            f"Completed {request.transform_type} transform in "
            f"{result.processing_time_ms:.0f}ms (cached: {from_cache})"
        )
        return result

    def _fail(
        self, request: TransformRequest, key: str, error: TransformError
    ) -> TransformResult:
        result = TransformResult(
            success=False,
            original_image=request.image,
            transform_type=request.transform_type,
            processing_time_ms=self._elapsed_ms(),
            error=error,
            request_key=key,
        )
        self._history.append(result)

        phase = TransformPhase.CANCELLED if error.is_cancelled else TransformPhase.ERROR
        self._update_progress(
            phase, self._state.progress, f"Transform failed: {error.message}"
        )

        if error.is_cancelled:
            logger.info(f"{request.transform_type} transform cancelled")
        else:
            logger.error(
                f"{request.transform_type} transform failed with "
                f"{error.kind.value}: {error.message}"
            )
        return result

    def _update_progress(
        self,
        phase: TransformPhase,
        progress: float,
        message: str,
        attempt: int | None = None,
    ) -> None:
        progress = min(100.0, max(0.0, float(progress)))
        self._state.current_phase = phase
        self._state.progress = progress

        self.progress.publish(
            TransformProgress(
                phase=phase,
                progress=progress,
                message=message,
                estimated_time_remaining_ms=self.estimate_time_remaining(progress),
                attempt=attempt,
            )
        )

    def estimate_time_remaining(self, progress: float) -> float | None:
        """Linear projection from the progress rate so far. A heuristic only."""
        if progress <= 0 or progress >= 100 or not self._state.is_transforming:
            return None
        elapsed = self._elapsed_ms()
        if elapsed <= 0:
            return None
        return (100 - progress) / (progress / elapsed)

    def _elapsed_ms(self) -> float:
        return (time.monotonic() - self._started_at) * 1000

    def cancel_transform(self) -> bool:
        token = self._cancel_token
        if token is None or not self._state.is_transforming:
            return False
        if not token.cancelled:
            logger.info("Cancelling current transform")
            token.cancel("Transform was cancelled")
        return True

    async def retry_last_transform(self) -> TransformResult | None:
        last_result = self.get_last_transform_result()
        if last_result is None or last_result.success:
            return None
        return await self.transform(
            last_result.original_image, last_result.transform_type, self._last_options
        )

    async def batch_transform(
        self,
        items: Iterable[BatchItem],
        on_item_complete: Callable[[int, int], None] | None = None,
    ) -> list[TransformResult]:
        items = list(items)
        results = []

        for index, item in enumerate(items, start=1):
            try:
                result = await self.transform(item.image, item.transform_type, item.options)
            except UnknownTransformTypeError as e:
                logger.error(f"Batch transformation failed for image {index}: {e}")
                result = TransformResult(
                    success=False,
                    original_image=item.image,
                    transform_type=item.transform_type,
                    processing_time_ms=0.0,
                    error=TransformError(ErrorKind.INVALID_REQUEST, str(e)),
                )
            results.append(result)

            if on_item_complete is not None:
                on_item_complete(index, len(items))

        return results

    def should_transform(self, click_count: int, has_image: bool = True) -> TransformDecision:
        if not has_image or self._state.is_transforming:
            return TransformDecision(should_transform=False)

        if click_count >= self.settings.PHASE2_THRESHOLD:
            if not self._has_successful("heavy"):
                return TransformDecision(should_transform=True, transform_type="heavy")
        elif click_count >= self.settings.PHASE1_THRESHOLD:
            if not self._has_successful("light"):
                return TransformDecision(should_transform=True, transform_type="light")

        return TransformDecision(should_transform=False)

    def get_progressive_suggestion(self, click_count: int) -> TransformSuggestion:
        if not self.settings.ENABLE_PROGRESSIVE_TRANSFORM:
            return TransformSuggestion(suggested=False, reason="Progressive transform disabled")

        decision = self.should_transform(click_count)
        if decision.should_transform:
            threshold = (
                self.settings.PHASE1_THRESHOLD
                if decision.transform_type == "light"
                else self.settings.PHASE2_THRESHOLD
            )
            return TransformSuggestion(
                suggested=True,
                transform_type=decision.transform_type,
                reason=f"Reached {threshold} clicks, suggesting a {decision.transform_type} transform",
            )

        return TransformSuggestion(
            suggested=False, reason="No transform needed at current click count"
        )

    def _has_successful(self, transform_type: str) -> bool:
        return any(
            result.success and result.transform_type == transform_type
            for result in self._history
        )

    def subscribe_progress(self) -> ProgressSubscription:
        return self.progress.subscribe()

    def get_state(self) -> TransformState:
        return dataclasses.replace(self._state, transform_history=tuple(self._history))

    def get_transform_history(self) -> list[TransformResult]:
        return list(self._history)

    def get_last_transform_result(self) -> TransformResult | None:
        return self._history[-1] if self._history else None

    def get_stats(self) -> TransformStats:
        return summarize(
            self._history,
            last_transform_time=self._state.last_transform_time,
            is_transforming=self._state.is_transforming,
            current_progress=self._state.progress,
        )

    def clear_history(self) -> None:
        self._history.clear()
        self._state.failed_attempts = 0

    def clear_cache(self) -> None:
        if self.result_cache is not None:
            self.result_cache.clear()
            logger.info("Transform cache cleared")

    def cache_stats(self) -> dict:
        stats = (
            self.result_cache.stats()
            if self.result_cache is not None
            else {"size": 0, "capacity": 0, "hits": 0, "misses": 0, "hit_rate": 0.0}
        )
        return {**stats, "in_flight": len(self.inflight)}

    async def check_service_status(self) -> dict:
        return await self.transform_client.check_status()

    async def aclose(self) -> None:
        self.cancel_transform()
        self.clear_history()
        cancelled = self.inflight.cancel_all()
        if cancelled:
            logger.info(f"Cancelled {cancelled} in-flight request(s)")
        self.progress.close()
        await self.transform_client.aclose()
