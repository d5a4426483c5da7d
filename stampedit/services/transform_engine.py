"""Pure image transforms over ImageState.

Every function takes an ImageState and returns a new one (or None when the
transform would be a no-op). Nothing here keeps state between calls.

Supported transforms:
- rotate90: lossless quarter turn
- rotate_arbitrary: fine rotation onto a grown black canvas
- crop: normalized rectangle to pixel bounds
- auto_enhance: linear histogram stretch on luminance
"""

import logging
import math
from typing import Optional, Tuple

import numpy as np
from PIL import Image

from stampedit.models.image_editor import CropRect, ImageState, RotationDirection


logger = logging.getLogger(__name__)

# Fill for canvas area uncovered by a fine rotation
ROTATION_BACKGROUND = (0, 0, 0, 255)

# Luminance spread at or below which auto-enhance does nothing
DEFAULT_ENHANCE_MIN_RANGE = 10

# Precision for bounding-box trig terms before rounding up
_BBOX_DECIMALS = 6


def rotate90(state: ImageState, direction: RotationDirection) -> ImageState:
    """
    Rotate a quarter turn without interpolation.

    Args:
        state: Source state
        direction: RIGHT is clockwise, LEFT counter-clockwise

    Returns:
        ImageState: New state with width and height swapped
    """
    direction = RotationDirection(direction)
    # Pillow's ROTATE_90 is counter-clockwise
    method = (
        Image.Transpose.ROTATE_270 if direction == RotationDirection.RIGHT
        else Image.Transpose.ROTATE_90
    )
    rotated = state.to_image().transpose(method)
    return ImageState.from_image(rotated)


def rotated_bounding_box(width: int, height: int, degrees: float) -> Tuple[int, int]:
    """Canvas size that holds a width x height image rotated by degrees."""
    rad = math.radians(degrees)
    abs_cos = abs(math.cos(rad))
    abs_sin = abs(math.sin(rad))

    new_width = math.ceil(round(width * abs_cos + height * abs_sin, _BBOX_DECIMALS))
    new_height = math.ceil(round(width * abs_sin + height * abs_cos, _BBOX_DECIMALS))
    return max(new_width, 1), max(new_height, 1)


def rotate_arbitrary(state: ImageState, degrees: float) -> ImageState:
    """
    Rotate by an arbitrary angle about the image centre.

    The canvas grows to the rotated bounding box so no content is clipped;
    uncovered area is filled black. Positive degrees rotate clockwise.
    Sampling is nearest-neighbour, so edges stay hard.

    Args:
        state: Source state
        degrees: Rotation angle

    Returns:
        ImageState: Rotated state (the input itself when degrees is 0)
    """
    if degrees == 0:
        return state

    new_width, new_height = rotated_bounding_box(state.width, state.height, degrees)

    rad = math.radians(degrees)
    cos_t = math.cos(rad)
    sin_t = math.sin(rad)

    # Inverse mapping: output pixel -> source pixel, both about their centres
    out_cx, out_cy = new_width / 2, new_height / 2
    src_cx, src_cy = state.width / 2, state.height / 2
    matrix = (
        cos_t, sin_t, src_cx - cos_t * out_cx - sin_t * out_cy,
        -sin_t, cos_t, src_cy + sin_t * out_cx - cos_t * out_cy,
    )

    rotated = state.to_image().transform(
        (new_width, new_height),
        Image.Transform.AFFINE,
        matrix,
        resample=Image.Resampling.NEAREST,
        fillcolor=ROTATION_BACKGROUND
    )
    return ImageState.from_image(rotated)


def crop(state: ImageState, rect: CropRect) -> Optional[ImageState]:
    """
    Crop to a normalized rectangle.

    Pixel bounds are floor(rect.x * width) etc., clipped to the image.

    Returns:
        Optional[ImageState]: Cropped state, or None if the result would be empty
    """
    left, top, crop_width, crop_height = rect.to_pixel_box(state.width, state.height)
    crop_width = min(crop_width, state.width - left)
    crop_height = min(crop_height, state.height - top)

    if crop_width <= 0 or crop_height <= 0:
        logger.debug(f"Ignoring degenerate crop {rect} on {state.width}x{state.height}")
        return None

    cropped = state.to_image().crop((left, top, left + crop_width, top + crop_height))
    return ImageState.from_image(cropped)


def auto_enhance(state: ImageState, min_range: float = DEFAULT_ENHANCE_MIN_RANGE) -> Optional[ImageState]:
    """
    Linear histogram stretch on luminance.

    Luminance is (R + G + B) / 3. When its spread exceeds min_range, each
    colour channel is remapped so the darkest luminance maps to 0 and the
    brightest to 255. Alpha is left as is.

    Returns:
        Optional[ImageState]: Enhanced state, or None if the spread is too small
    """
    pixels = np.frombuffer(state.pixels, dtype=np.uint8).reshape(state.height, state.width, 4)
    rgb = pixels[..., :3].astype(np.float64)

    luminance = rgb.sum(axis=2) / 3
    low = float(luminance.min())
    high = float(luminance.max())
    spread = high - low

    if spread <= min_range:
        logger.debug(f"Skipping auto-enhance: luminance spread {spread:.1f} <= {min_range}")
        return None

    stretched = np.clip(np.rint((rgb - low) / spread * 255), 0, 255).astype(np.uint8)

    result = pixels.copy()
    result[..., :3] = stretched
    return ImageState(pixels=result.tobytes(), width=state.width, height=state.height)
