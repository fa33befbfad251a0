from dataclasses import dataclass
from typing import Iterable

from .types import TransformResult


@dataclass(frozen=True)
class TransformStats:
    total_transforms: int
    successful_transforms: int
    failed_transforms: int
    average_processing_time_ms: float
    last_transform_time: float
    is_transforming: bool = False
    current_progress: float = 0.0

    @classmethod
    def create_empty(cls) -> "TransformStats":
        return cls(
            total_transforms=0,
            successful_transforms=0,
            failed_transforms=0,
            average_processing_time_ms=0.0,
            last_transform_time=0.0,
        )

    @property
    def success_rate(self) -> float:
        if self.total_transforms == 0:
            return 0.0
        return round(self.successful_transforms / self.total_transforms * 100.0, 2)


def summarize(
    history: Iterable[TransformResult],
    last_transform_time: float = 0.0,
    is_transforming: bool = False,
    current_progress: float = 0.0,
) -> TransformStats:
    results = list(history)
    successful = [r for r in results if r.success]

    average = (
        sum(r.processing_time_ms for r in successful) / len(successful)
        if successful
        else 0.0
    )

    return TransformStats(
        total_transforms=len(results),
        successful_transforms=len(successful),
        failed_transforms=len(results) - len(successful),
        average_processing_time_ms=average,
        last_transform_time=last_transform_time,
        is_transforming=is_transforming,
        current_progress=current_progress,
    )
