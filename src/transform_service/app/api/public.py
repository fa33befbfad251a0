import json

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from image_transform_core import ErrorKind, TransformResult
from loguru import logger

from ..core.dependencies import get_transform_orchestrator
from ..schemas import (
    CacheStatsResponse,
    CancelResponse,
    ServiceStatusResponse,
    TransformHistoryResponse,
    TransformRequestSchema,
    TransformResultResponse,
    TransformStateResponse,
    TransformStatsResponse,
    TransformSuggestionResponse,
    error_to_schema,
)
from ..services.domain import (
    TransformInProgressError,
    TransformOptions,
    UnknownTransformTypeError,
)
from ..services.transform_orchestrator import TransformOrchestrator

router = APIRouter()

ERROR_STATUS_CODES = {
    ErrorKind.AUTH_ERROR: 502,
    ErrorKind.RATE_LIMIT_ERROR: 429,
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.SERVER_ERROR: 502,
    ErrorKind.NETWORK_ERROR: 502,
    ErrorKind.TIMEOUT_ERROR: 504,
    ErrorKind.CANCELLED: 409,
    ErrorKind.UNKNOWN_ERROR: 502,
}


def _to_response(result: TransformResult) -> TransformResultResponse:
    return TransformResultResponse(
        success=result.success,
        transform_type=result.transform_type,
        processing_time_ms=result.processing_time_ms,
        transformed_image=result.transformed_image,
        error=error_to_schema(result.error),
        request_key=result.request_key,
        from_cache=result.from_cache,
        completed_at=result.completed_at,
    )


def _raise_for_failure(result: TransformResult) -> None:
    if result.success:
        return
    status_code = ERROR_STATUS_CODES.get(result.error_kind, 502)
    raise HTTPException(
        status_code=status_code,
        detail=_to_response(result).model_dump(mode="json"),
    )


@router.post("/transform", response_model=TransformResultResponse)
async def transform_image(
    payload: TransformRequestSchema,
    orchestrator: TransformOrchestrator = Depends(get_transform_orchestrator),
):
    """
    Transform an image through the remote AI service.

    Args:
        payload: Base64 image, transform type and optional parameter overrides

    Returns:
        TransformResultResponse with the transformed image as a data URI

    Raises:
        HTTPException: 409 while another transform runs, 400 for unknown
            transform types, and a kind-specific status for failed transforms
    """
    logger.info(f"Received {payload.transform_type} transform request")

    options = (
        TransformOptions(**payload.options.model_dump())
        if payload.options is not None
        else None
    )

    try:
        result = await orchestrator.transform(
            payload.image, payload.transform_type, options
        )
    except TransformInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UnknownTransformTypeError as e:
        raise HTTPException(status_code=400, detail=str(e))

    _raise_for_failure(result)
    return _to_response(result)


@router.post("/transform/cancel", response_model=CancelResponse)
async def cancel_transform(
    orchestrator: TransformOrchestrator = Depends(get_transform_orchestrator),
):
    cancelled = orchestrator.cancel_transform()
    return CancelResponse(
        cancelled=cancelled,
        message="Transform cancellation requested" if cancelled else "No transform in progress",
    )


@router.post("/transform/retry", response_model=TransformResultResponse | None)
async def retry_last_transform(
    orchestrator: TransformOrchestrator = Depends(get_transform_orchestrator),
):
    """
    Retry the last transform if it failed.

    Returns:
        The new TransformResultResponse, or null when there is nothing to retry
    """
    try:
        result = await orchestrator.retry_last_transform()
    except TransformInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if result is None:
        return None

    _raise_for_failure(result)
    return _to_response(result)


@router.get("/transform/state", response_model=TransformStateResponse)
async def get_transform_state(
    orchestrator: TransformOrchestrator = Depends(get_transform_orchestrator),
):
    state = orchestrator.get_state()
    return TransformStateResponse(
        is_transforming=state.is_transforming,
        current_phase=state.current_phase.value,
        progress=state.progress,
        last_transform_time=state.last_transform_time,
        failed_attempts=state.failed_attempts,
        history_size=len(state.transform_history),
    )


@router.get("/transform/history", response_model=TransformHistoryResponse)
async def get_transform_history(
    orchestrator: TransformOrchestrator = Depends(get_transform_orchestrator),
):
    results = [_to_response(result) for result in orchestrator.get_transform_history()]
    return TransformHistoryResponse(results=results, total_count=len(results))


@router.get("/transform/stats", response_model=TransformStatsResponse)
async def get_transform_stats(
    orchestrator: TransformOrchestrator = Depends(get_transform_orchestrator),
):
    stats = orchestrator.get_stats()
    return TransformStatsResponse(
        total_transforms=stats.total_transforms,
        successful_transforms=stats.successful_transforms,
        failed_transforms=stats.failed_transforms,
        average_processing_time_ms=stats.average_processing_time_ms,
        success_rate=stats.success_rate,
        last_transform_time=stats.last_transform_time,
        is_transforming=stats.is_transforming,
        current_progress=stats.current_progress,
    )


@router.get("/transform/suggestion", response_model=TransformSuggestionResponse)
async def get_transform_suggestion(
    click_count: int = Query(..., ge=0),
    orchestrator: TransformOrchestrator = Depends(get_transform_orchestrator),
):
    suggestion = orchestrator.get_progressive_suggestion(click_count)
    return TransformSuggestionResponse(
        suggested=suggestion.suggested,
        reason=suggestion.reason,
        transform_type=suggestion.transform_type,
    )


@router.get("/transform/progress")
async def stream_transform_progress(
    orchestrator: TransformOrchestrator = Depends(get_transform_orchestrator),
):
    """Stream progress events of the current or next transform as NDJSON."""
    subscription = orchestrator.subscribe_progress()

    async def events():
        async with subscription:
            async for event in subscription:
                yield json.dumps(event.to_dict()) + "\n"

    return StreamingResponse(events(), media_type="application/x-ndjson")


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def get_cache_stats(
    orchestrator: TransformOrchestrator = Depends(get_transform_orchestrator),
):
    return CacheStatsResponse(**orchestrator.cache_stats())


@router.delete("/cache")
async def clear_cache(
    orchestrator: TransformOrchestrator = Depends(get_transform_orchestrator),
):
    orchestrator.clear_cache()
    return {"message": "Cache cleared"}


@router.get("/service/status", response_model=ServiceStatusResponse)
async def get_service_status(
    orchestrator: TransformOrchestrator = Depends(get_transform_orchestrator),
):
    return ServiceStatusResponse(**await orchestrator.check_service_status())
