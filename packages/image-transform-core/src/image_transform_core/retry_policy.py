from .types import TransformError

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0


class RetryPolicy:
    """Exponential backoff without jitter: 1s, 2s, 4s ... capped at 10s."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("Retry delays cannot be negative")

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    def backoff(self, attempt: int) -> float:
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)

    def next_delay(self, attempt: int, error: TransformError) -> float | None:
        """Seconds to wait before attempt ``attempt + 1``, or None to stop."""
        if not error.retryable:
            return None
        if attempt >= self.max_attempts:
            return None
        return self.backoff(attempt)
