from .image_preparation import ImagePreparationService
from .progress import ProgressChannel
from .transform_client import TransformClient
from .transform_orchestrator import TransformOrchestrator

__all__ = [
    "ImagePreparationService",
    "ProgressChannel",
    "TransformClient",
    "TransformOrchestrator",
]
