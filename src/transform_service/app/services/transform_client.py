import re
import time

import httpx
from image_transform_core import (
    CancellationToken,
    ErrorClassifier,
    ErrorKind,
    TransformError,
    TransformRequest,
)
from loguru import logger
from pydantic import ValidationError

from ..core.config import Settings
from ..schemas import RemoteTransformRequest, RemoteTransformResponse

_DATA_URI_PREFIX = re.compile(r"^data:image/[a-z]+;base64,")
DEFAULT_IMAGE_PREFIX = "data:image/jpeg;base64,"


def strip_data_uri_prefix(image: str) -> str:
    return _DATA_URI_PREFIX.sub("", image, count=1)


def add_data_uri_prefix(image: str) -> str:
    if image.startswith("data:"):
        return image
    return f"{DEFAULT_IMAGE_PREFIX}{image}"


class TransformClient:
    def __init__(
        self,
        settings: Settings | None = None,
        classifier: ErrorClassifier | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        from ..core.config import get_settings

        self.settings = settings or get_settings()
        self.classifier = classifier or ErrorClassifier()
        self.http_client = http_client or httpx.AsyncClient(
            timeout=self.settings.REQUEST_TIMEOUT,
            limits=httpx.Limits(max_connections=5, max_keepalive_connections=2),
        )

        if not self.settings.TRANSFORM_API_KEY:
            logger.warning(
                "Transform API key not configured. Image transformation will not work."
            )

    def build_payload(self, request: TransformRequest) -> dict:
        image = request.image
        if isinstance(image, bytes):
            image = image.decode("ascii")

        params = request.params
        body = RemoteTransformRequest(
            model=self.settings.TRANSFORM_MODEL,
            prompt=params.prompt,
            image=strip_data_uri_prefix(image),
            strength=params.strength,
            steps=params.steps,
            guidance_scale=params.guidance_scale,
            width=params.width,
            height=params.height,
            seed=params.seed,
        )
        return body.model_dump(exclude_none=True)

    def build_headers(self, attempt_id: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.TRANSFORM_API_KEY}",
            "X-Request-ID": attempt_id,
        }

    async def execute(
        self,
        request: TransformRequest,
        attempt_id: str,
        cancel_token: CancellationToken | None = None,
    ) -> str:
        """Run one exchange and return the transformed image as a data URI."""
        if not self.settings.TRANSFORM_API_KEY:
            raise TransformError(
                ErrorKind.AUTH_ERROR,
                "API key not configured",
                details={"transform_type": request.transform_type},
            )

        url = self.settings.TRANSFORM_API_URL
        details = {"request_id": attempt_id}

        logger.info(
            f"Sending {request.transform_type} transform to {url} (request {attempt_id})"
        )

        post = self.http_client.post(
            url,
            json=self.build_payload(request),
            headers=self.build_headers(attempt_id),
            timeout=self.settings.REQUEST_TIMEOUT,
        )

        try:
            if cancel_token is not None:
                response = await cancel_token.run(post)
            else:
                response = await post
        except TransformError:
            raise
        except Exception as e:
            error = self.classifier.classify_exception(e, details)
            logger.warning(f"Transform request {attempt_id} failed: {error.message}")
            raise error from e

        if not response.is_success:
            error = self.classifier.classify_status(
                response.status_code, response.text, details
            )
            logger.warning(
                f"Transform request {attempt_id} returned HTTP {response.status_code}"
            )
            raise error

        try:
            body = RemoteTransformResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransformError(
                ErrorKind.UNKNOWN_ERROR,
                f"Malformed response from transform service: {e}",
                details=details,
                status_code=response.status_code,
            ) from e

        if not body.success or body.data is None or not body.data.image:
            raise TransformError(
                ErrorKind.SERVER_ERROR,
                body.message or body.error or "Transformation failed",
                details={**details, "error": body.error},
                status_code=response.status_code,
            )

        logger.info(f"Transform request {attempt_id} succeeded")
        return add_data_uri_prefix(body.data.image)

    async def check_status(self) -> dict:
        if not self.settings.TRANSFORM_API_KEY:
            return {"available": False, "latency_ms": None, "error": "API key not configured"}

        started = time.perf_counter()
        try:
            response = await self.http_client.head(
                self.settings.TRANSFORM_API_URL,
                headers={"Authorization": f"Bearer {self.settings.TRANSFORM_API_KEY}"},
                timeout=self.settings.STATUS_CHECK_TIMEOUT,
            )
        except httpx.HTTPError as e:
            return {
                "available": False,
                "latency_ms": (time.perf_counter() - started) * 1000,
                "error": str(e) or type(e).__name__,
            }

        return {
            "available": response.is_success,
            "latency_ms": (time.perf_counter() - started) * 1000,
            "error": None if response.is_success else f"HTTP {response.status_code}",
        }

    async def aclose(self):
        """Cleanup resources when service is shutting down"""
        await self.http_client.aclose()
