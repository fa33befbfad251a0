from image_transform_core import (
    ErrorKind,
    TransformError,
    TransformResult,
    TransformStats,
    summarize,
)


def result(success, processing_time_ms):
    return TransformResult(
        success=success,
        original_image="aW1n",
        transform_type="light",
        processing_time_ms=processing_time_ms,
        transformed_image="data:image/jpeg;base64,b3V0" if success else None,
        error=None if success else TransformError(ErrorKind.SERVER_ERROR, "HTTP 500"),
    )


class TestSummarize:
    def test_empty_history(self):
        stats = summarize([])

        assert stats == TransformStats.create_empty()
        assert stats.success_rate == 0.0

    def test_counts_and_average_over_successes_only(self):
        history = [result(True, 100.0), result(False, 5000.0), result(True, 300.0)]

        stats = summarize(history, last_transform_time=1234.5)

        assert stats.total_transforms == 3
        assert stats.successful_transforms == 2
        assert stats.failed_transforms == 1
        assert stats.average_processing_time_ms == 200.0
        assert stats.last_transform_time == 1234.5
        assert stats.success_rate == 66.67

    def test_only_failures(self):
        stats = summarize([result(False, 10.0)])

        assert stats.average_processing_time_ms == 0.0
        assert stats.failed_transforms == 1
