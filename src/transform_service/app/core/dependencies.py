from functools import lru_cache

from image_transform_core import InFlightRegistry, ResultCache, RetryPolicy

from ..core.config import get_settings
from ..services.image_preparation import ImagePreparationService
from ..services.transform_client import TransformClient
from ..services.transform_orchestrator import TransformOrchestrator


@lru_cache()
def get_transform_client() -> TransformClient:
    return TransformClient(settings=get_settings())


@lru_cache()
def get_image_preparer() -> ImagePreparationService:
    return ImagePreparationService(settings=get_settings())


@lru_cache()
def get_result_cache() -> ResultCache | None:
    settings = get_settings()
    if not settings.CACHE_ENABLED:
        return None
    return ResultCache(capacity=settings.CACHE_MAX_SIZE, ttl_seconds=settings.CACHE_TTL)


@lru_cache()
def get_inflight_registry() -> InFlightRegistry:
    return InFlightRegistry()


def get_retry_policy() -> RetryPolicy:
    settings = get_settings()
    return RetryPolicy(
        max_attempts=settings.MAX_RETRY_ATTEMPTS,
        base_delay=settings.RETRY_BASE_DELAY,
        max_delay=settings.RETRY_MAX_DELAY,
    )


@lru_cache()
def get_transform_orchestrator() -> TransformOrchestrator:
    return TransformOrchestrator(
        transform_client=get_transform_client(),
        image_preparer=get_image_preparer(),
        result_cache=get_result_cache(),
        inflight_registry=get_inflight_registry(),
        retry_policy=get_retry_policy(),
        settings=get_settings(),
    )
