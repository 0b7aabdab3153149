"""Image preparation for upload and the transient Redis image store."""

import hashlib
import io
import logging
from typing import Optional

import redis.asyncio as aioredis
from PIL import Image, UnidentifiedImageError
from redis.exceptions import RedisError

from nutrisync.config import settings

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/webp", "image/heic"]

MIN_JPEG_QUALITY = 30
QUALITY_STEP = 10


def _to_rgb(img: Image.Image) -> Image.Image:
    if img.mode == "RGBA":
        rgb_img = Image.new("RGB", img.size, (255, 255, 255))
        rgb_img.paste(img, mask=img.split()[3])
        return rgb_img
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def _encode_jpeg(img: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", optimize=True, quality=quality)
    return buffer.getvalue()


def prepare_image(
    image_bytes: bytes,
    max_dimension: Optional[int] = None,
    quality: Optional[int] = None,
    max_bytes: Optional[int] = None,
) -> bytes:
    """
    Downscale and re-encode an image as JPEG for upload.

    Args:
        image_bytes: Raw captured image
        max_dimension: Longest side in pixels (default from settings)
        quality: Initial JPEG quality (default from settings)
        max_bytes: If set, quality is stepped down by 10 until the encoded
            image fits, stopping at quality 30

    Returns:
        JPEG bytes, or the input unchanged if Pillow cannot decode it
    """
    max_dimension = max_dimension or settings.image_max_dimension
    quality = quality or settings.image_jpeg_quality

    try:
        with Image.open(io.BytesIO(image_bytes)) as opened:
            img = _to_rgb(opened)
            if max(img.size) > max_dimension:
                ratio = max_dimension / max(img.size)
                new_size = (
                    max(1, int(img.width * ratio)),
                    max(1, int(img.height * ratio)),
                )
                img = img.resize(new_size, Image.Resampling.LANCZOS)

            encoded = _encode_jpeg(img, quality)
            if max_bytes is not None:
                while len(encoded) > max_bytes and quality > MIN_JPEG_QUALITY:
                    quality = max(MIN_JPEG_QUALITY, quality - QUALITY_STEP)
                    encoded = _encode_jpeg(img, quality)
            return encoded
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.warning("Could not decode image (%d bytes), sending as-is: %s", len(image_bytes), e)
        return image_bytes


def image_key(image_bytes: bytes) -> str:
    return f"meal_image:{hashlib.sha256(image_bytes).hexdigest()}"


class TransientImageStore:
    """
    Short-lived copies of uploaded meal images in Redis.

    Uploads are best effort: failures are logged and never raised.
    """

    def __init__(self, redis_client=None, ttl_seconds: Optional[int] = None):
        self.redis = redis_client or aioredis.from_url(settings.redis_url)
        self.ttl_seconds = ttl_seconds or settings.image_store_ttl_seconds

    async def upload(self, image_bytes: bytes) -> Optional[str]:
        """
        Store an image with an expiry tag.

        Returns:
            The Redis key, or None if the upload failed
        """
        key = image_key(image_bytes)
        try:
            await self.redis.setex(key, self.ttl_seconds, image_bytes)
        except RedisError as e:
            logger.warning("Transient image upload failed for %s: %s", key, e)
            return None
        logger.debug("Stored %s (%d bytes, ttl %ds)", key, len(image_bytes), self.ttl_seconds)
        return key

    async def close(self):
        await self.redis.aclose()
