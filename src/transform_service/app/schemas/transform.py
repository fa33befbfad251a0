from typing import Any

from pydantic import BaseModel, Field


class RemoteTransformRequest(BaseModel):
    """Wire body sent to the remote image-to-image service"""

    model: str
    prompt: str
    image: str = Field(..., description="Base64 image without data-URI prefix")
    strength: float
    steps: int
    guidance_scale: float
    width: int | None = None
    height: int | None = None
    seed: int | None = None


class RemoteTransformData(BaseModel):
    image: str
    seed: int | None = None


class RemoteTransformResponse(BaseModel):
    """Wire body returned by the remote image-to-image service"""

    success: bool
    message: str = ""
    data: RemoteTransformData | None = None
    error: str | None = None


class TransformOptionsSchema(BaseModel):
    strength: float | None = Field(None, ge=0.0, le=1.0)
    steps: int | None = Field(None, gt=0)
    guidance_scale: float | None = Field(None, gt=0.0)
    width: int | None = Field(None, gt=0)
    height: int | None = Field(None, gt=0)
    seed: int | None = None
    custom_prompt: str | None = None


class TransformRequestSchema(BaseModel):
    """Request model for starting a transform"""

    image: str = Field(..., description="Base64 image, with or without data-URI prefix")
    transform_type: str = Field(..., description="Transform preset name, e.g. light or heavy")
    options: TransformOptionsSchema | None = None


class TransformErrorSchema(BaseModel):
    kind: str
    message: str
    retryable: bool
    status_code: int | None = None
    timestamp: float


class TransformResultResponse(BaseModel):
    """Outcome of one transform"""

    success: bool
    transform_type: str
    processing_time_ms: float
    transformed_image: str | None = None
    error: TransformErrorSchema | None = None
    request_key: str | None = None
    from_cache: bool = False
    completed_at: float


class TransformStateResponse(BaseModel):
    is_transforming: bool
    current_phase: str
    progress: float
    last_transform_time: float
    failed_attempts: int
    history_size: int


class TransformHistoryResponse(BaseModel):
    results: list[TransformResultResponse]
    total_count: int


class TransformStatsResponse(BaseModel):
    total_transforms: int
    successful_transforms: int
    failed_transforms: int
    average_processing_time_ms: float
    success_rate: float
    last_transform_time: float
    is_transforming: bool
    current_progress: float


class TransformSuggestionResponse(BaseModel):
    suggested: bool
    reason: str
    transform_type: str | None = None


class CacheStatsResponse(BaseModel):
    size: int
    capacity: int
    hits: int
    misses: int
    hit_rate: float
    oldest_entry: float | None = None
    in_flight: int = 0


class ServiceStatusResponse(BaseModel):
    available: bool
    latency_ms: float | None = None
    error: str | None = None


class CancelResponse(BaseModel):
    cancelled: bool
    message: str


def error_to_schema(error: Any) -> TransformErrorSchema | None:
    if error is None:
        return None
    return TransformErrorSchema(**error.to_dict())
