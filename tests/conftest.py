"""
Pytest configuration and shared fixtures for editing engine tests.
"""

import io

import pytest
from PIL import Image

from stampedit.config import Settings
from stampedit.models.image_editor import ImageState


def encode(image: Image.Image, image_format: str = "PNG") -> bytes:
    """Encode a Pillow image to bytes."""
    buffer = io.BytesIO()
    if image_format == "JPEG":
        image = image.convert("RGB")
    image.save(buffer, format=image_format)
    return buffer.getvalue()


def make_gradient(width: int, height: int) -> Image.Image:
    """Image whose every pixel is distinct, for exact remap checks."""
    image = Image.new("RGBA", (width, height))
    image.putdata([
        ((x * 7 + y) % 256, (y * 5 + x) % 256, (x + y * 3) % 256, 255)
        for y in range(height)
        for x in range(width)
    ])
    return image


@pytest.fixture
def settings():
    """Settings with defaults independent of the environment."""
    settings = Settings()
    settings.CROP_HANDLE_THRESHOLD = 0.05
    settings.ENHANCE_MIN_RANGE = 10
    settings.ROTATION_HINT_THRESHOLD = 0.5
    settings.FINE_ROTATION_LIMIT = 45
    settings.JPEG_QUALITY = 95
    settings.GEMINI_API_KEY = None
    return settings


@pytest.fixture
def gradient_state():
    """7x5 state with distinct pixels."""
    return ImageState.from_image(make_gradient(7, 5))


@pytest.fixture
def make_state():
    """Factory for solid-colour states."""
    def _make(width: int, height: int, color=(128, 128, 128, 255)) -> ImageState:
        return ImageState.from_image(Image.new("RGBA", (width, height), color))
    return _make


@pytest.fixture
def png_bytes():
    """Factory for PNG-encoded solid images."""
    def _make(width: int, height: int, color=(200, 30, 30, 255)) -> bytes:
        return encode(Image.new("RGBA", (width, height), color), "PNG")
    return _make


@pytest.fixture
def encoder():
    """Encode a Pillow image to bytes: encoder(image, "JPEG")."""
    return encode
