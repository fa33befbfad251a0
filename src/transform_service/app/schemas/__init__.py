from .transform import (
    CacheStatsResponse,
    CancelResponse,
    RemoteTransformData,
    RemoteTransformRequest,
    RemoteTransformResponse,
    ServiceStatusResponse,
    TransformErrorSchema,
    TransformHistoryResponse,
    TransformOptionsSchema,
    TransformRequestSchema,
    TransformResultResponse,
    TransformStateResponse,
    TransformStatsResponse,
    TransformSuggestionResponse,
    error_to_schema,
)

__all__ = [
    "CacheStatsResponse",
    "CancelResponse",
    "RemoteTransformData",
    "RemoteTransformRequest",
    "RemoteTransformResponse",
    "ServiceStatusResponse",
    "TransformErrorSchema",
    "TransformHistoryResponse",
    "TransformOptionsSchema",
    "TransformRequestSchema",
    "TransformResultResponse",
    "TransformStateResponse",
    "TransformStatsResponse",
    "TransformSuggestionResponse",
    "error_to_schema",
]
