"""
RecipeShare Backend - Image Service Unit Tests
================================================

What we test:
    ✅ Size limit (at the limit passes, one byte over fails)
    ✅ Declared MIME allow-list, including parameters and case
    ✅ Content sniffing: GIF bytes and garbage are rejected
    ✅ Derivatives are JPEG at exactly 400x300 and 1200x800 (stretched)
    ✅ Transparent PNGs are flattened before JPEG encoding
"""

import io

import pytest
from PIL import Image

from recipeshare.exceptions import (
    ImageTooLargeError,
    UnsupportedImageFormatError,
    ValidationError,
)
from recipeshare.services.image_service import ImageService


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


class TestImageValidation:
    def setup_method(self):
        self.service = ImageService(max_size=1024 * 1024)

    def test_size_at_limit_passes(self):
        self.service.validate_size(b"\x00" * (1024 * 1024))

    def test_size_over_limit_rejected(self):
        with pytest.raises(ImageTooLargeError) as exc_info:
            self.service.validate_size(b"\x00" * (1024 * 1024 + 1))

        assert exc_info.value.message == "Image file size is bigger than 1 MB"
        assert exc_info.value.field == "image"
        # Too-large is a client error
        assert isinstance(exc_info.value, ValidationError)

    @pytest.mark.parametrize("mime", ["image/png", "image/jpeg", "IMAGE/JPEG", "image/png; charset=binary"])
    def test_allowed_mime_types(self, mime):
        self.service.validate_format(mime)

    @pytest.mark.parametrize("mime", ["image/gif", "image/webp", "application/pdf", "", None])
    def test_disallowed_mime_types(self, mime):
        with pytest.raises(UnsupportedImageFormatError) as exc_info:
            self.service.validate_format(mime)
        assert exc_info.value.message == "Image type should only be png or jpeg"


class TestDerivatives:
    def setup_method(self):
        self.service = ImageService()

    def test_thumbnail_is_400x300_jpeg(self, make_image):
        thumbnail = _open(self.service.make_thumbnail(make_image("PNG", (2000, 1500))))

        assert thumbnail.format == "JPEG"
        assert thumbnail.size == (400, 300)

    def test_large_is_1200x800_jpeg(self, make_image):
        large = _open(self.service.make_large(make_image("JPEG", (640, 480))))

        assert large.format == "JPEG"
        assert large.size == (1200, 800)

    def test_portrait_input_is_stretched_not_cropped(self, make_image):
        derivatives = self.service.render_derivatives(make_image("JPEG", (500, 2000)))

        assert _open(derivatives.thumbnail).size == (400, 300)
        assert _open(derivatives.large).size == (1200, 800)

    def test_transparent_png_is_flattened(self, make_image):
        data = make_image("PNG", (100, 100), mode="RGBA")

        thumbnail = _open(self.service.make_thumbnail(data))

        assert thumbnail.mode == "RGB"

    def test_gif_content_rejected(self, make_image):
        with pytest.raises(UnsupportedImageFormatError) as exc_info:
            self.service.make_thumbnail(make_image("GIF", (50, 50)))
        assert exc_info.value.detected == "GIF"

    def test_undecodable_bytes_rejected(self):
        with pytest.raises(UnsupportedImageFormatError):
            self.service.render_derivatives(b"definitely not an image")

    @pytest.mark.asyncio
    async def test_async_render_matches_sync(self, make_image):
        derivatives = await self.service.render_derivatives_async(make_image("JPEG", (300, 300)))

        assert _open(derivatives.thumbnail).size == (400, 300)
        assert _open(derivatives.large).size == (1200, 800)
