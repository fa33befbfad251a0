import asyncio
import base64
import binascii
import io

from image_transform_core import ErrorKind, ImagePayload, TransformError
from PIL import Image, UnidentifiedImageError

from ..core.config import Settings
from .transform_client import DEFAULT_IMAGE_PREFIX, strip_data_uri_prefix

# verify() reports broken chunks as SyntaxError.
_IMAGE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    SyntaxError,
    OSError,
    ValueError,
)


class ImagePreparationService:
    """Converts source images to the transport format and back.

    ``bytes`` inputs are encoded image files; ``str`` inputs are base64,
    optionally with a data-URI prefix.
    """

    def __init__(self, settings: Settings | None = None):
        from ..core.config import get_settings

        self.settings = settings or get_settings()

    async def prepare(self, image: ImagePayload) -> str:
        return await asyncio.to_thread(self._prepare_sync, image)

    async def materialize(self, data_uri: str) -> str:
        return await asyncio.to_thread(self._materialize_sync, data_uri)

    def _prepare_sync(self, image: ImagePayload) -> str:
        try:
            raw = image if isinstance(image, bytes) else self._decode_base64(image)
            with Image.open(io.BytesIO(raw)) as img:
                img = img.convert("RGB")
                max_size = self.settings.MAX_IMAGE_DIMENSION
                img.thumbnail((max_size, max_size))

                buffer = io.BytesIO()
                img.save(buffer, format="JPEG", quality=self.settings.JPEG_QUALITY)
        except _IMAGE_ERRORS as e:
            raise TransformError(
                ErrorKind.INVALID_REQUEST, f"Invalid source image: {e}"
            ) from e

        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"{DEFAULT_IMAGE_PREFIX}{encoded}"

    def _materialize_sync(self, data_uri: str) -> str:
        try:
            raw = self._decode_base64(data_uri)
            with Image.open(io.BytesIO(raw)) as img:
                img.verify()
        except _IMAGE_ERRORS as e:
            raise TransformError(
                ErrorKind.UNKNOWN_ERROR, f"Failed to load transformed image: {e}"
            ) from e
        return data_uri

    @staticmethod
    def _decode_base64(image: str) -> bytes:
        try:
            return base64.b64decode(strip_data_uri_prefix(image), validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 data: {e}") from e
