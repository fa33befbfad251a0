import json
import string
import zlib

from .types import ImagePayload, TransformRequest

_BASE36_DIGITS = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def short_hash(data: ImagePayload) -> str:
    """CRC-32 of ``data`` in base 36.

    Not collision resistant. Good enough to key a per-process cache.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return _to_base36(zlib.crc32(data))


def derive_request_key(request: TransformRequest) -> str:
    # The image payload is hashed as given: two encodings of the same picture
    # produce different keys.
    params = {"transform_type": request.transform_type, **request.params.to_dict()}
    serialized = json.dumps(params, sort_keys=True, separators=(",", ":"))
    return f"{short_hash(request.image)}_{short_hash(serialized)}"
