from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient
from image_transform_core import InFlightRegistry, ResultCache, RetryPolicy

from tests.shared_fixtures import SharedImageFixtures
from transform_service.app.core.config import Settings
from transform_service.app.core.dependencies import get_transform_orchestrator
from transform_service.app.services.image_preparation import ImagePreparationService
from transform_service.app.services.transform_client import TransformClient
from transform_service.app.services.transform_orchestrator import (
    TransformOrchestrator,
)
from transform_service.main import create_app


@pytest.fixture
def test_settings():
    return Settings(
        TRANSFORM_API_URL="https://api.example.com/transform",
        TRANSFORM_API_KEY="test-api-key",
        TRANSFORM_MODEL="test-model",
        REQUEST_TIMEOUT=5.0,
        MAX_RETRY_ATTEMPTS=3,
        RETRY_BASE_DELAY=0.01,
        RETRY_MAX_DELAY=0.05,
        CACHE_ENABLED=True,
        CACHE_MAX_SIZE=10,
        HISTORY_LIMIT=50,
        UPLOAD_STEPS=3,
        UPLOAD_STEP_DELAY=0.0,
        MAX_IMAGE_DIMENSION=64,
    )


@pytest.fixture
def source_image():
    return SharedImageFixtures.image_bytes()


@pytest.fixture
def transformed_data_uri():
    return SharedImageFixtures.data_uri()


@pytest.fixture
def mock_transform_client(transformed_data_uri):
    mock = Mock(spec=TransformClient)
    mock.execute = AsyncMock(return_value=transformed_data_uri)
    mock.check_status = AsyncMock(
        return_value={"available": True, "latency_ms": 12.0, "error": None}
    )
    mock.aclose = AsyncMock()
    return mock


@pytest.fixture
def image_preparer(test_settings):
    return ImagePreparationService(settings=test_settings)


@pytest.fixture
def result_cache(test_settings):
    return ResultCache(capacity=test_settings.CACHE_MAX_SIZE, ttl_seconds=60)


@pytest.fixture
def inflight_registry():
    return InFlightRegistry()


@pytest.fixture
def retry_policy(test_settings):
    return RetryPolicy(
        max_attempts=test_settings.MAX_RETRY_ATTEMPTS,
        base_delay=test_settings.RETRY_BASE_DELAY,
        max_delay=test_settings.RETRY_MAX_DELAY,
    )


@pytest.fixture
def orchestrator(
    mock_transform_client,
    image_preparer,
    result_cache,
    inflight_registry,
    retry_policy,
    test_settings,
):
    return TransformOrchestrator(
        transform_client=mock_transform_client,
        image_preparer=image_preparer,
        result_cache=result_cache,
        inflight_registry=inflight_registry,
        retry_policy=retry_policy,
        settings=test_settings,
    )


@pytest.fixture
def test_app():
    return create_app()


@pytest.fixture
def test_client(test_app, orchestrator):
    test_app.dependency_overrides[get_transform_orchestrator] = lambda: orchestrator
    yield TestClient(test_app)
    test_app.dependency_overrides.clear()
