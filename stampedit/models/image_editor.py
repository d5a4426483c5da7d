"""Image editor data models.

ImageState is the immutable unit stored in edit history. CropRect lives in
normalized coordinates relative to the image it was drawn over.
"""

import enum
import math
from dataclasses import dataclass
from typing import Tuple

from PIL import Image


# Floating point slack absorbed when validating normalized rectangles
NORMALIZED_EPSILON = 1e-9

BYTES_PER_PIXEL = 4


class EditorMode(str, enum.Enum):
    """Mutually exclusive editor tool modes."""
    ADJUST = "adjust"
    CROP = "crop"
    AI_EDIT = "ai_edit"


class RotationDirection(str, enum.Enum):
    """Direction for quarter-turn rotation."""
    LEFT = "left"
    RIGHT = "right"


class CropAction(str, enum.Enum):
    """Active pointer drag action of the crop controller."""
    NONE = "none"
    CREATE = "create"
    MOVE = "move"
    RESIZE = "resize"


class Corner(str, enum.Enum):
    """Crop rectangle corner handles."""
    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"

    @property
    def moves_left(self) -> bool:
        return self in (Corner.NW, Corner.SW)

    @property
    def moves_top(self) -> bool:
        return self in (Corner.NW, Corner.NE)


@dataclass(frozen=True)
class ImageState:
    """
    Immutable snapshot of RGBA8 pixel content.

    Every transform produces a new ImageState; instances are never mutated
    once they are stored in history.
    """
    pixels: bytes
    width: int
    height: int

    def __post_init__(self):
        if not isinstance(self.pixels, bytes):
            object.__setattr__(self, "pixels", bytes(self.pixels))

        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Invalid dimensions: {self.width}x{self.height}")

        expected = self.width * self.height * BYTES_PER_PIXEL
        if len(self.pixels) != expected:
            raise ValueError(
                f"Pixel buffer length {len(self.pixels)} does not match "
                f"{self.width}x{self.height} RGBA ({expected} bytes)"
            )

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @classmethod
    def from_image(cls, image: Image.Image) -> "ImageState":
        """Build a state from a Pillow image, converting to RGBA."""
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        return cls(pixels=image.tobytes(), width=image.width, height=image.height)

    def to_image(self) -> Image.Image:
        """Return a fresh Pillow image; callers may draw on it freely."""
        return Image.frombytes("RGBA", self.size, self.pixels)

    def __repr__(self) -> str:
        return f"ImageState({self.width}x{self.height})"


@dataclass(frozen=True)
class CropRect:
    """Crop region in normalized [0, 1] coordinates."""
    x: float
    y: float
    w: float
    h: float

    def __post_init__(self):
        for name in ("x", "y", "w", "h"):
            value = getattr(self, name)
            if value < -NORMALIZED_EPSILON or value > 1 + NORMALIZED_EPSILON:
                raise ValueError(f"CropRect.{name} out of range [0, 1]: {value}")
            object.__setattr__(self, name, min(max(float(value), 0.0), 1.0))

        if self.x + self.w > 1 + NORMALIZED_EPSILON:
            raise ValueError(f"CropRect exceeds right edge: x={self.x} + w={self.w} > 1")
        if self.y + self.h > 1 + NORMALIZED_EPSILON:
            raise ValueError(f"CropRect exceeds bottom edge: y={self.y} + h={self.h} > 1")

        # Absorb rounding slack so x + w never exceeds 1
        object.__setattr__(self, "w", min(self.w, 1.0 - self.x))
        object.__setattr__(self, "h", min(self.h, 1.0 - self.y))

    @classmethod
    def from_edges(cls, left: float, top: float, right: float, bottom: float) -> "CropRect":
        """Build a rect from two opposite edges in either order."""
        return cls(
            x=min(left, right),
            y=min(top, bottom),
            w=abs(right - left),
            h=abs(bottom - top)
        )

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def is_empty(self) -> bool:
        return self.w <= 0 or self.h <= 0

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.right and self.y <= y <= self.bottom

    def corner(self, corner: Corner) -> Tuple[float, float]:
        cx = self.x if corner.moves_left else self.right
        cy = self.y if corner.moves_top else self.bottom
        return cx, cy

    def to_pixel_box(self, width: int, height: int) -> Tuple[int, int, int, int]:
        """Convert to (left, top, pixel_width, pixel_height) by flooring each term."""
        return (
            math.floor(self.x * width),
            math.floor(self.y * height),
            math.floor(self.w * width),
            math.floor(self.h * height)
        )

    def to_dict(self):
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}
