from dataclasses import dataclass, field
from enum import Enum

from image_transform_core import ImagePayload, TransformResult


class TransformPhase(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TransformOptions:
    strength: float | None = None
    steps: int | None = None
    guidance_scale: float | None = None
    width: int | None = None
    height: int | None = None
    seed: int | None = None
    custom_prompt: str | None = None


@dataclass(frozen=True)
class TransformProgress:
    phase: TransformPhase
    progress: float  # 0-100
    message: str
    estimated_time_remaining_ms: float | None = None
    attempt: int | None = None

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "progress": self.progress,
            "message": self.message,
            "estimated_time_remaining_ms": self.estimated_time_remaining_ms,
            "attempt": self.attempt,
        }


@dataclass
class TransformState:
    is_transforming: bool = False
    current_phase: TransformPhase = TransformPhase.IDLE
    progress: float = 0.0
    last_transform_time: float = 0.0
    transform_history: tuple[TransformResult, ...] = field(default_factory=tuple)
    failed_attempts: int = 0


@dataclass(frozen=True)
class TransformDecision:
    should_transform: bool
    transform_type: str | None = None


@dataclass(frozen=True)
class TransformSuggestion:
    suggested: bool
    reason: str
    transform_type: str | None = None


@dataclass(frozen=True)
class BatchItem:
    image: ImagePayload
    transform_type: str
    options: TransformOptions | None = None


class TransformInProgressError(ValueError):
    pass


class UnknownTransformTypeError(ValueError):
    pass
