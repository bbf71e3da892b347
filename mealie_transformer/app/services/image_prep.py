import base64
import binascii
import logging
import re
from io import BytesIO
from typing import List, Optional

from PIL import Image, UnidentifiedImageError

from mealie_transformer.app.core.errors import InvalidInputError

logger = logging.getLogger(__name__)

# Enable HEIC/HEIF support if pillow-heif is installed.
try:  # pragma: no cover
    import pillow_heif

    pillow_heif.register_heif_opener()  # type: ignore[attr-defined]
except ImportError:
    pass

DATA_URI_RE = re.compile(r"^data:(image/[A-Za-z0-9.+-]+);base64,(.+)$", re.S)

# Hugging Face guidance for vision encoders; we only ever downscale.
MAX_PIXELS = 1280 * 28 * 28


def decode_data_uri(data_uri: str) -> bytes:
    match = DATA_URI_RE.match((data_uri or "").strip())
    if not match:
        raise InvalidInputError("Images must be base64 data URIs (data:image/...;base64,...).")
    try:
        return base64.b64decode(match.group(2), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInputError("Image data is not valid base64.") from exc


def encode_data_uri(data: bytes, content_type: str = "image/jpeg") -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def resize_for_vision(data: bytes) -> bytes:
    """Re-encode as JPEG, downscaling to stay within the vision pixel budget."""
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidInputError("Unrecognized image file.") from exc
    img = img.convert("RGB")
    w, h = img.size
    pixels = w * h
    if pixels > MAX_PIXELS:
        scale = (MAX_PIXELS / pixels) ** 0.5

        # Round to nearest multiple of 28 as suggested for some vision encoders.
        def round28(x: int) -> int:
            return max(28, int(round(x / 28)) * 28)

        new_size = (round28(int(w * scale)), round28(int(h * scale)))
        logger.info("Downscaling image from %sx%s to %sx%s", w, h, *new_size)
        img = img.resize(new_size, Image.LANCZOS)
    out = BytesIO()
    img.save(out, format="JPEG", quality=90)
    return out.getvalue()


def prepare_image(raw: bytes, max_bytes: Optional[int] = None) -> str:
    if not raw:
        raise InvalidInputError("Empty image upload.")
    if max_bytes and len(raw) > max_bytes:
        raise InvalidInputError("Image too large.")
    return encode_data_uri(resize_for_vision(raw))


def prepare_data_uris(data_uris: List[str], max_bytes: Optional[int] = None) -> List[str]:
    """Validate and normalize images, preserving their order."""
    return [prepare_image(decode_data_uri(uri), max_bytes) for uri in data_uris]
