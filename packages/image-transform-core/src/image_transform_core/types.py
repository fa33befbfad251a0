import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

ImagePayload = bytes | str


class ErrorKind(str, Enum):
    AUTH_ERROR = "AUTH_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    CANCELLED = "CANCELLED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_KINDS


_RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.RATE_LIMIT_ERROR,
        ErrorKind.SERVER_ERROR,
        ErrorKind.NETWORK_ERROR,
        ErrorKind.TIMEOUT_ERROR,
    }
)


class TransformError(Exception):
    """A classified failure of a transform exchange."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        self.timestamp = time.time()

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    @property
    def is_cancelled(self) -> bool:
        return self.kind is ErrorKind.CANCELLED

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
            "status_code": self.status_code,
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:
        return f"TransformError(kind={self.kind.value}, message={self.message!r})"


@dataclass(frozen=True)
class TransformParams:
    prompt: str
    strength: float
    steps: int
    guidance_scale: float
    width: int | None = None
    height: int | None = None
    seed: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "strength": self.strength,
            "steps": self.steps,
            "guidance_scale": self.guidance_scale,
            "width": self.width,
            "height": self.height,
            "seed": self.seed,
        }


@dataclass(frozen=True)
class TransformRequest:
    image: ImagePayload
    transform_type: str
    params: TransformParams


@dataclass(frozen=True)
class TransformAttempt:
    attempt_number: int
    started_at: float
    error: TransformError | None = None


@dataclass(frozen=True)
class TransformResult:
    success: bool
    original_image: ImagePayload
    transform_type: str
    processing_time_ms: float
    transformed_image: str | None = None
    error: TransformError | None = None
    request_key: str | None = None
    from_cache: bool = False
    completed_at: float = field(default_factory=time.time)

    @property
    def error_kind(self) -> ErrorKind | None:
        return self.error.kind if self.error else None


@dataclass(frozen=True)
class CacheEntry:
    key: str
    result: str
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at
