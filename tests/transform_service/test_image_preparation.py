import base64
import io

import pytest
from image_transform_core import ErrorKind, TransformError
from PIL import Image

from tests.shared_fixtures import SharedImageFixtures


def decode(data_uri: str) -> Image.Image:
    prefix, encoded = data_uri.split(",", 1)
    assert prefix == "data:image/jpeg;base64"
    return Image.open(io.BytesIO(base64.b64decode(encoded)))


class TestPrepare:
    @pytest.mark.asyncio
    async def test_bytes_are_encoded_as_jpeg_data_uri(self, image_preparer):
        prepared = await image_preparer.prepare(
            SharedImageFixtures.image_bytes(size=(20, 10))
        )

        image = decode(prepared)
        assert image.format == "JPEG"
        assert image.size == (20, 10)

    @pytest.mark.asyncio
    async def test_large_image_is_downscaled(self, image_preparer, test_settings):
        prepared = await image_preparer.prepare(
            SharedImageFixtures.image_bytes(size=(256, 128))
        )

        image = decode(prepared)
        assert max(image.size) == test_settings.MAX_IMAGE_DIMENSION
        assert image.size == (64, 32)

    @pytest.mark.asyncio
    async def test_accepts_base64_and_data_uri_strings(self, image_preparer):
        plain = await image_preparer.prepare(SharedImageFixtures.base64_image())
        prefixed = await image_preparer.prepare(SharedImageFixtures.data_uri())

        assert decode(plain).size == (10, 10)
        assert decode(prefixed).size == (8, 8)

    @pytest.mark.asyncio
    async def test_rgba_is_converted(self, image_preparer):
        buffer = io.BytesIO()
        Image.new("RGBA", (4, 4), color=(0, 255, 0, 128)).save(buffer, format="PNG")

        prepared = await image_preparer.prepare(buffer.getvalue())

        assert decode(prepared).mode == "RGB"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "image", [b"definitely not an image", "not base64 at all!", ""]
    )
    async def test_invalid_input_is_invalid_request(self, image_preparer, image):
        with pytest.raises(TransformError) as exc_info:
            await image_preparer.prepare(image)

        assert exc_info.value.kind == ErrorKind.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_decompression_bomb_is_invalid_request(self, image_preparer, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)

        with pytest.raises(TransformError) as exc_info:
            await image_preparer.prepare(SharedImageFixtures.image_bytes(size=(10, 10)))

        assert exc_info.value.kind == ErrorKind.INVALID_REQUEST


class TestMaterialize:
    @pytest.mark.asyncio
    async def test_valid_image_is_returned_unchanged(self, image_preparer):
        data_uri = SharedImageFixtures.data_uri()

        assert await image_preparer.materialize(data_uri) == data_uri

    @pytest.mark.asyncio
    async def test_undecodable_image_is_unknown_error(self, image_preparer):
        with pytest.raises(TransformError) as exc_info:
            await image_preparer.materialize("data:image/jpeg;base64,bm90IGFuIGltYWdl")

        assert exc_info.value.kind == ErrorKind.UNKNOWN_ERROR

    @pytest.mark.asyncio
    async def test_bad_chunk_checksum_is_unknown_error(self, image_preparer):
        raw = bytearray(SharedImageFixtures.image_bytes())
        idat = raw.index(b"IDAT")
        length = int.from_bytes(raw[idat - 4 : idat], "big")
        raw[idat + 4 + length] ^= 0xFF
        data_uri = "data:image/png;base64," + base64.b64encode(bytes(raw)).decode("ascii")

        with pytest.raises(TransformError) as exc_info:
            await image_preparer.materialize(data_uri)

        assert exc_info.value.kind == ErrorKind.UNKNOWN_ERROR
