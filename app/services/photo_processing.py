"""Photo type detection (magic bytes) and size normalization for the vision call."""
import io
import logging

from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener
from pydantic import BaseModel

from app.config import settings

logger = logging.getLogger(__name__)

register_heif_opener()

HEIC_BRANDS = {b"heic", b"heix", b"heis", b"mif1"}

# Widths tried in order when an image is over the byte budget
RESIZE_WIDTHS = (2048, 1536, 1024)
RESIZE_QUALITY = 85
FALLBACK_QUALITY = 70
HEIC_TRANSCODE_QUALITY = 90


class PhotoValidationError(Exception):
    pass


class PhotoTooLarge(PhotoValidationError):
    pass


class PhotoTooSmall(PhotoValidationError):
    pass


class UnsupportedFormat(PhotoValidationError):
    pass


class PhotoType(BaseModel):
    model_config = {"frozen": True}

    kind: str
    media_type: str
    extension: str


JPEG = PhotoType(kind="jpeg", media_type="image/jpeg", extension="jpg")
PNG = PhotoType(kind="png", media_type="image/png", extension="png")
HEIC = PhotoType(kind="heic", media_type="image/heic", extension="heic")


def validate_photo(data: bytes) -> PhotoType:
    """Identify the image type from its leading bytes, never from a filename."""
    if len(data) > settings.max_photo_size_bytes:
        limit_mb = settings.max_photo_size_bytes // (1024 * 1024)
        raise PhotoTooLarge(f"Image must be under {limit_mb}MB")
    if len(data) < settings.min_photo_size_bytes:
        raise PhotoTooSmall("File is too small to be a valid image")

    if data[:3] == b"\xff\xd8\xff":
        return JPEG
    if data[:4] == b"\x89PNG":
        return PNG
    # ISO BMFF: box size (4 bytes), "ftyp", major brand
    if data[4:8] == b"ftyp" and data[8:12] in HEIC_BRANDS:
        return HEIC

    raise UnsupportedFormat("Please upload a JPEG, PNG, or HEIC image")


def _open(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as e:
        raise UnsupportedFormat(f"Unable to decode image: {e}") from e
    return image


def _encode(image: Image.Image, media_type: str, quality: int) -> bytes:
    buf = io.BytesIO()
    if media_type == "image/png":
        image.save(buf, format="PNG", optimize=True)
    else:
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(buf, format="JPEG", quality=quality, optimize=True)
    return buf.getvalue()


def _resize_to_width(image: Image.Image, width: int) -> Image.Image:
    height = max(1, round(image.height * width / image.width))
    return image.resize((width, height), Image.Resampling.LANCZOS)


def normalize_for_analysis(data: bytes, media_type: str) -> tuple[bytes, str]:
    """Return ``(bytes, media_type)`` ready to send to the vision service.

    HEIC is always transcoded to JPEG. Anything over the byte budget is
    stepped down through ``RESIZE_WIDTHS``; if nothing fits, the last attempt
    is re-encoded as a lower-quality JPEG instead of failing.
    """
    budget = settings.max_ai_image_bytes

    if media_type == HEIC.media_type:
        data = _encode(_open(data), JPEG.media_type, HEIC_TRANSCODE_QUALITY)
        media_type = JPEG.media_type
        logger.info("Transcoded HEIC to JPEG (%d bytes)", len(data))

    if len(data) <= budget:
        return data, media_type

    image = _open(data)
    original_size = len(data)
    current = image
    for width in RESIZE_WIDTHS:
        if current.width <= width:
            continue
        current = _resize_to_width(current, width)
        data = _encode(current, media_type, RESIZE_QUALITY)
        if len(data) <= budget:
            logger.info("Resized photo to width %d: %d -> %d bytes", width, original_size, len(data))
            return data, media_type

    data = _encode(current, JPEG.media_type, FALLBACK_QUALITY)
    logger.info(
        "Photo still over budget after resizing, re-encoded at quality %d: %d -> %d bytes",
        FALLBACK_QUALITY, original_size, len(data),
    )
    return data, JPEG.media_type
