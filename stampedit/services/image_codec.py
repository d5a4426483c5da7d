"""Image decode/encode between encoded bytes and ImageState.

Decoding validates size, format and dimensions before an ImageState is
created, so a broken image never reaches edit history.
"""

import logging
from io import BytesIO
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from stampedit.exceptions import ImageDecodeError
from stampedit.models.image_editor import ImageState


logger = logging.getLogger(__name__)

# Maximum encoded size: 50MB
MAX_IMAGE_SIZE = 52428800

# Maximum dimensions (Canvas API limit)
MAX_WIDTH = 32767
MAX_HEIGHT = 32767

SUPPORTED_FORMATS = {'png', 'jpeg', 'gif', 'webp', 'bmp'}

# Formats written back as-is; anything else is re-encoded as PNG
WRITABLE_FORMATS = {'png', 'jpeg', 'webp'}

DEFAULT_FORMAT = 'png'

MIME_TYPES = {
    'png': 'image/png',
    'jpeg': 'image/jpeg',
    'gif': 'image/gif',
    'webp': 'image/webp',
    'bmp': 'image/bmp',
}


def normalize_format(image_format: str) -> str:
    format_lower = (image_format or '').lower()
    if format_lower in ('jpg', 'mpo'):
        format_lower = 'jpeg'
    return format_lower


def decode_image(data: bytes) -> Tuple[ImageState, str]:
    """
    Decode encoded image bytes.

    Args:
        data: Encoded image (JPEG, PNG, ...)

    Returns:
        Tuple[ImageState, str]: Decoded state and normalized source format

    Raises:
        ImageDecodeError: If the data is empty, too large, unsupported or corrupt
    """
    if not data:
        raise ImageDecodeError("Image data is empty")

    if len(data) > MAX_IMAGE_SIZE:
        size_mb = len(data) / (1024 * 1024)
        max_mb = MAX_IMAGE_SIZE / (1024 * 1024)
        raise ImageDecodeError(f"Image size {size_mb:.1f}MB exceeds maximum {max_mb:.0f}MB")

    try:
        image = Image.open(BytesIO(data))
        image.load()  # Force load to validate data
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise ImageDecodeError(f"Failed to decode image data: {str(e)}") from e

    image_format = normalize_format(image.format)
    if image_format not in SUPPORTED_FORMATS:
        raise ImageDecodeError(
            f"Unsupported image format: {image.format}. "
            f"Supported formats: {', '.join(sorted(SUPPORTED_FORMATS))}"
        )

    width, height = image.size
    if width <= 0 or height <= 0:
        raise ImageDecodeError(f"Invalid dimensions: {width}x{height}")
    if width > MAX_WIDTH or height > MAX_HEIGHT:
        raise ImageDecodeError(
            f"Image dimensions {width}x{height} exceed maximum {MAX_WIDTH}x{MAX_HEIGHT}"
        )

    state = ImageState.from_image(image)
    logger.debug(f"Decoded {image_format} image: {width}x{height}")
    return state, image_format


def output_format(source_format: str) -> str:
    """Format used when writing back an image decoded from source_format."""
    image_format = normalize_format(source_format)
    return image_format if image_format in WRITABLE_FORMATS else DEFAULT_FORMAT


def encode_image(state: ImageState, image_format: str = DEFAULT_FORMAT, quality: int = 95) -> bytes:
    """
    Encode an ImageState.

    Args:
        state: State to encode
        image_format: Target format; unwritable formats fall back to PNG
        quality: JPEG/WebP quality (1-100)

    Returns:
        bytes: Encoded image
    """
    image_format = output_format(image_format)
    image = state.to_image()

    save_kwargs = {}
    if image_format == 'jpeg':
        # JPEG has no alpha channel
        image = image.convert("RGB")
        save_kwargs["quality"] = quality
    elif image_format == 'webp':
        save_kwargs["quality"] = quality

    buffer = BytesIO()
    image.save(buffer, format=image_format.upper(), **save_kwargs)
    return buffer.getvalue()
