"""Image validation and WebP optimisation.

Uploads are re-encoded as WebP, walking down a quality ladder until the
result is comfortably smaller than the original. Large photos are first
scaled to fit ``MAX_DIMENSION`` on their longest side.
"""

import io
from dataclasses import dataclass
from urllib.parse import urlparse

import structlog
from PIL import Image, UnidentifiedImageError

from storefront.domain import ValidationError

logger = structlog.get_logger()

QUALITY_LADDER: tuple[float, ...] = (0.7, 0.6, 0.5, 0.4, 0.3, 0.25)
RESIZE_RETRY_LADDER: tuple[float, ...] = (0.5, 0.4, 0.3)
MAX_DIMENSION = 1920
RESIZE_THRESHOLD_BYTES = 1024 * 1024
GOOD_ENOUGH_RATIO = 0.7


@dataclass
class OptimizedImage:
    """Result of ``optimize_image``.

    Attributes:
        data: Encoded WebP bytes.
        size: Encoded size in bytes.
        quality: Quality (0-1) the kept encoding used.
        width: Output width in pixels.
        height: Output height in pixels.
        original_size: Input size in bytes.
    """

    data: bytes
    size: int
    quality: float
    width: int
    height: int
    original_size: int

    content_type: str = "image/webp"


def is_valid_image_url(url: str | None) -> bool:
    """Check that a URL is absolute http(s)."""
    if not url or not isinstance(url, str):
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def ensure_image_url(url: str | None) -> str:
    """Return the URL stripped, or raise if it is not absolute http(s).

    Raises:
        ValidationError: If the URL is rejected.
    """
    if not is_valid_image_url(url):
        raise ValidationError(
            "Image URL must be an absolute http(s) URL",
            details={"url": url},
            error_code="INVALID_IMAGE_URL",
        )
    return url.strip()


def _open(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise ValidationError(
            "File is not a supported image",
            details={"reason": str(e)},
            error_code="INVALID_IMAGE",
        ) from e
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
    return image


def _fit(image: Image.Image) -> Image.Image:
    if max(image.size) <= MAX_DIMENSION:
        return image
    resized = image.copy()
    resized.thumbnail((MAX_DIMENSION, MAX_DIMENSION), Image.Resampling.LANCZOS)
    return resized


def _encode(image: Image.Image, quality: float) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="WEBP", quality=int(round(quality * 100)))
    return buffer.getvalue()


def _walk_ladder(
    image: Image.Image, ladder: tuple[float, ...], original_size: int
) -> tuple[bytes, float] | None:
    best: tuple[bytes, float] | None = None
    for quality in ladder:
        encoded = _encode(image, quality)
        if best is None or len(encoded) < len(best[0]):
            best = (encoded, quality)
        if len(encoded) < original_size * GOOD_ENOUGH_RATIO:
            break
    return best


def optimize_image(data: bytes) -> OptimizedImage:
    """Re-encode an uploaded image as WebP.

    Args:
        data: Raw uploaded bytes (any format Pillow can decode).

    Returns:
        The smallest encoding found.

    Raises:
        ValidationError: If the bytes are not a decodable image.
    """
    original_size = len(data)
    image = _open(data)
    working = _fit(image) if original_size > RESIZE_THRESHOLD_BYTES else image

    best = _walk_ladder(working, QUALITY_LADDER, original_size)
    if best is None or len(best[0]) >= original_size:
        resized = _fit(image)
        retry = _walk_ladder(resized, RESIZE_RETRY_LADDER, original_size)
        if retry is not None and (best is None or len(retry[0]) < len(best[0])):
            best = retry

    encoded, quality = best
    result = Image.open(io.BytesIO(encoded))
    logger.debug(
        "Image optimised",
        original_size=original_size,
        optimized_size=len(encoded),
        quality=quality,
        width=result.width,
        height=result.height,
    )
    return OptimizedImage(
        data=encoded,
        size=len(encoded),
        quality=quality,
        width=result.width,
        height=result.height,
        original_size=original_size,
    )
