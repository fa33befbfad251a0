import pytest
from image_transform_core import ErrorKind, RetryPolicy, TransformError


def error(kind):
    return TransformError(kind, kind.value)


class TestRetryPolicy:
    def test_exponential_backoff(self):
        policy = RetryPolicy(max_attempts=10)

        assert policy.next_delay(1, error(ErrorKind.SERVER_ERROR)) == 1.0
        assert policy.next_delay(2, error(ErrorKind.SERVER_ERROR)) == 2.0
        assert policy.next_delay(3, error(ErrorKind.SERVER_ERROR)) == 4.0
        assert policy.next_delay(4, error(ErrorKind.SERVER_ERROR)) == 8.0

    def test_backoff_is_capped(self):
        policy = RetryPolicy(max_attempts=10)

        assert policy.next_delay(5, error(ErrorKind.NETWORK_ERROR)) == 10.0
        assert policy.next_delay(9, error(ErrorKind.NETWORK_ERROR)) == 10.0

    def test_stops_at_max_attempts(self):
        policy = RetryPolicy(max_attempts=3)

        assert policy.next_delay(2, error(ErrorKind.TIMEOUT_ERROR)) is not None
        assert policy.next_delay(3, error(ErrorKind.TIMEOUT_ERROR)) is None

    @pytest.mark.parametrize(
        "kind",
        [
            ErrorKind.AUTH_ERROR,
            ErrorKind.INVALID_REQUEST,
            ErrorKind.CANCELLED,
            ErrorKind.UNKNOWN_ERROR,
        ],
    )
    def test_non_retryable_stops_immediately(self, kind):
        assert RetryPolicy().next_delay(1, error(kind)) is None

    def test_rate_limit_is_retried(self):
        assert RetryPolicy().next_delay(1, error(ErrorKind.RATE_LIMIT_ERROR)) == 1.0

    def test_deterministic(self):
        policy = RetryPolicy(base_delay=0.5, max_delay=3.0, max_attempts=5)

        delays = [policy.next_delay(n, error(ErrorKind.SERVER_ERROR)) for n in range(1, 5)]

        assert delays == [0.5, 1.0, 2.0, 3.0]
        assert delays == [
            policy.next_delay(n, error(ErrorKind.SERVER_ERROR)) for n in range(1, 5)
        ]

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=-1)
