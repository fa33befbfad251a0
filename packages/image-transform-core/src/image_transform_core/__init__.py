__version__ = "0.1.0"

from .cancellation import CancellationToken
from .error_classifier import ErrorClassifier
from .inflight import InFlightRegistry
from .request_key import derive_request_key, short_hash
from .result_cache import ResultCache
from .retry_policy import RetryPolicy
from .stats import TransformStats, summarize
from .types import (
    CacheEntry,
    ErrorKind,
    ImagePayload,
    TransformAttempt,
    TransformError,
    TransformParams,
    TransformRequest,
    TransformResult,
)

__all__ = [
    "CacheEntry",
    "CancellationToken",
    "ErrorClassifier",
    "ErrorKind",
    "ImagePayload",
    "InFlightRegistry",
    "ResultCache",
    "RetryPolicy",
    "TransformAttempt",
    "TransformError",
    "TransformParams",
    "TransformRequest",
    "TransformResult",
    "TransformStats",
    "derive_request_key",
    "short_hash",
    "summarize",
]
