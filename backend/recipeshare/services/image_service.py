"""
RecipeShare Backend - Image Transform Service
===============================================

What:  Validates uploaded recipe images and renders the two fixed-size derivatives.
Why:   Every recipe image is served as a 400x300 thumbnail and a 1200x800 large
       JPEG, regardless of what the author uploaded.
How:   Size and declared MIME type are checked first (no decoding needed), then
       Pillow decodes the bytes, verifies the real container format, and
       re-encodes each derivative as JPEG.
Who:   Called by RecipePipeline, before the transaction (cheap checks) and from
       inside the transactional image callback (decode + render).

Validation order:
    1. Size check         rejects anything over max_image_size (1 MiB default)
    2. Declared MIME type only image/png and image/jpeg are accepted
    3. Content check      Pillow must identify the bytes as PNG or JPEG;
                          a renamed GIF or a truncated file is rejected here

Resize behavior:
    Derivatives are stretched to the exact target dimensions (fill strategy,
    nearest-neighbour kernel). Aspect ratio is NOT preserved; a 2000x1500 photo
    and a 500x2000 photo both come out 400x300. This matches how the images
    are laid out by clients and is intentional.

Failures are deterministic functions of the input bytes; retrying never helps.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from recipeshare.config import settings
from recipeshare.exceptions import ImageTooLargeError, UnsupportedImageFormatError

logger = logging.getLogger(__name__)

# ── Allowed Image Types ───────────────────────────────────────────────────
# Declared MIME type → Pillow format name expected after decoding
ALLOWED_MIME_TYPES = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
}

ALLOWED_FORMATS = frozenset(ALLOWED_MIME_TYPES.values())

DERIVATIVE_CONTENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class UploadedImage:
    """Raw file part from a multipart request."""

    data: bytes
    content_type: Optional[str]
    filename: Optional[str] = None


@dataclass(frozen=True)
class ImageDerivatives:
    """JPEG bytes for both derivatives, ready for upload."""

    thumbnail: bytes
    large: bytes


class ImageService:
    """
    Stateless image validator and resizer.

    Configuration is read once at construction so tests can build an instance
    with a tiny size limit without patching global settings.
    """

    def __init__(
        self,
        max_size: Optional[int] = None,
        thumbnail_size: Optional[Tuple[int, int]] = None,
        large_size: Optional[Tuple[int, int]] = None,
        quality: Optional[int] = None,
    ):
        self.max_size = max_size or settings.max_image_size
        self.thumbnail_size = thumbnail_size or (settings.thumbnail_width, settings.thumbnail_height)
        self.large_size = large_size or (settings.large_width, settings.large_height)
        self.quality = quality or settings.jpeg_quality

    # ── Validation ────────────────────────────────────────────────────────

    def validate_size(self, data: bytes) -> None:
        """
        Reject images larger than `max_size` bytes.

        Raises:
            ImageTooLargeError
        """
        if len(data) > self.max_size:
            logger.info("Rejected image: %d bytes exceeds limit of %d", len(data), self.max_size)
            raise ImageTooLargeError(size=len(data), limit=self.max_size)

    def validate_format(self, mime_type: Optional[str]) -> None:
        """
        Reject declared MIME types other than PNG and JPEG.

        Parameters such as "; charset=binary" are ignored.

        Raises:
            UnsupportedImageFormatError
        """
        normalized = (mime_type or "").split(";")[0].strip().lower()
        if normalized not in ALLOWED_MIME_TYPES:
            logger.info("Rejected image: declared type '%s' is not allowed", mime_type)
            raise UnsupportedImageFormatError(detected=normalized or None)

    # ── Transformation ────────────────────────────────────────────────────

    def make_thumbnail(self, data: bytes) -> bytes:
        return self._render(self._decode(data), self.thumbnail_size)

    def make_large(self, data: bytes) -> bytes:
        return self._render(self._decode(data), self.large_size)

    def render_derivatives(self, data: bytes) -> ImageDerivatives:
        """Decode once and render both derivatives."""
        image = self._decode(data)
        return ImageDerivatives(
            thumbnail=self._render(image, self.thumbnail_size),
            large=self._render(image, self.large_size),
        )

    async def render_derivatives_async(self, data: bytes) -> ImageDerivatives:
        """
        Run `render_derivatives` in a worker thread.

        Resizing a 1 MiB JPEG to 1200x800 takes tens of milliseconds of pure
        CPU; running it inline would stall every other request on the loop.
        """
        return await asyncio.to_thread(self.render_derivatives, data)

    def _decode(self, data: bytes) -> Image.Image:
        """
        Decode `data` and verify the real container format.

        Raises:
            UnsupportedImageFormatError: undecodable bytes or a format other
                than PNG/JPEG (e.g. a GIF uploaded as image/png)
        """
        try:
            image = Image.open(io.BytesIO(data))
            detected = image.format
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.info("Rejected image: could not decode (%s)", type(e).__name__)
            raise UnsupportedImageFormatError(detected=None) from e

        if detected not in ALLOWED_FORMATS:
            logger.info("Rejected image: content is %s", detected)
            raise UnsupportedImageFormatError(detected=detected)
        return image

    def _render(self, image: Image.Image, size: Tuple[int, int]) -> bytes:
        resized = _to_rgb(image).resize(size, Image.Resampling.NEAREST)
        out = io.BytesIO()
        resized.save(out, format="JPEG", quality=self.quality)
        return out.getvalue()


def _to_rgb(image: Image.Image) -> Image.Image:
    """Flatten alpha/palette images onto white so they can be saved as JPEG."""
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")
