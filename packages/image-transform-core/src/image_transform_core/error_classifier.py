import asyncio
from typing import Any

import httpx

from .types import ErrorKind, TransformError


class ErrorClassifier:
    """Maps transport outcomes onto the closed ``ErrorKind`` taxonomy.

    Classification never raises; anything it does not recognise becomes
    ``UNKNOWN_ERROR``, which is not retried.
    """

    def kind_for_status(self, status_code: int) -> ErrorKind:
        if status_code in (401, 403):
            return ErrorKind.AUTH_ERROR
        if status_code == 429:
            return ErrorKind.RATE_LIMIT_ERROR
        if 400 <= status_code < 500:
            return ErrorKind.INVALID_REQUEST
        if 500 <= status_code < 600:
            return ErrorKind.SERVER_ERROR
        return ErrorKind.UNKNOWN_ERROR

    def classify_status(
        self,
        status_code: int,
        body: str = "",
        details: dict[str, Any] | None = None,
    ) -> TransformError:
        kind = self.kind_for_status(status_code)
        error_details = {"body": body[:500]}
        if details:
            error_details.update(details)
        return TransformError(
            kind,
            f"HTTP {status_code}",
            details=error_details,
            status_code=status_code,
        )

    def classify_exception(
        self, exc: BaseException, details: dict[str, Any] | None = None
    ) -> TransformError:
        if isinstance(exc, TransformError):
            return exc

        error_details = {"exception": type(exc).__name__}
        if details:
            error_details.update(details)

        if isinstance(exc, asyncio.CancelledError):
            return TransformError(
                ErrorKind.CANCELLED, "Transform was cancelled", details=error_details
            )
        if isinstance(exc, httpx.TimeoutException):
            return TransformError(
                ErrorKind.TIMEOUT_ERROR,
                f"Request timeout: {exc}",
                details=error_details,
            )
        if isinstance(exc, httpx.TransportError):
            return TransformError(
                ErrorKind.NETWORK_ERROR,
                f"Network error: {exc}",
                details=error_details,
            )
        if isinstance(exc, httpx.HTTPStatusError):
            return self.classify_status(
                exc.response.status_code, exc.response.text, details
            )

        return TransformError(
            ErrorKind.UNKNOWN_ERROR,
            f"Unexpected error: {exc}",
            details=error_details,
        )
