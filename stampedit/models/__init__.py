"""Image editing data models."""

from .image_editor import (
    ImageState,
    CropRect,
    CropAction,
    Corner,
    EditorMode,
    RotationDirection,
)

__all__ = [
    "ImageState",
    "CropRect",
    "CropAction",
    "Corner",
    "EditorMode",
    "RotationDirection",
]
