"""Pointer-driven crop rectangle state machine.

Positions are normalized to the display surface, so the rectangle stays valid
across zoom. A pointer-down picks the drag action by hit-testing the current
rectangle (corners first, then interior); pointer-move updates the rectangle
for that action; pointer-up ends the drag but keeps the rectangle.
"""

import logging
from typing import Optional, Tuple

from stampedit.models.image_editor import CropAction, CropRect, Corner


logger = logging.getLogger(__name__)

DEFAULT_HANDLE_THRESHOLD = 0.05

# Hit-test order for corner handles
_CORNER_ORDER = (Corner.NW, Corner.NE, Corner.SW, Corner.SE)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class CropInteractionController:
    """
    Owns one CropRect and interprets pointer events into create, move and
    resize operations.

    A disabled controller ignores every pointer event. Event handlers return
    True when they changed the controller's state.
    """

    def __init__(self, threshold: float = DEFAULT_HANDLE_THRESHOLD):
        self.threshold = threshold
        self.enabled = False
        self._rect: Optional[CropRect] = None
        self._action = CropAction.NONE
        self._corner: Optional[Corner] = None
        self._drag_start: Tuple[float, float] = (0.0, 0.0)
        self._initial_rect: Optional[CropRect] = None

    @property
    def rect(self) -> Optional[CropRect]:
        return self._rect

    @property
    def action(self) -> CropAction:
        return self._action

    @property
    def corner(self) -> Optional[Corner]:
        """Corner being dragged while action is RESIZE."""
        return self._corner

    def _is_near(self, a: float, b: float) -> bool:
        return abs(a - b) < self.threshold

    def hit_test(self, x: float, y: float) -> Tuple[CropAction, Optional[Corner]]:
        """Action a pointer-down at (x, y) would start."""
        rect = self._rect
        if rect is None:
            return CropAction.CREATE, None

        for corner in _CORNER_ORDER:
            cx, cy = rect.corner(corner)
            if self._is_near(x, cx) and self._is_near(y, cy):
                return CropAction.RESIZE, corner

        if rect.contains(x, y):
            return CropAction.MOVE, None

        return CropAction.CREATE, None

    def pointer_down(self, x: float, y: float) -> bool:
        if not self.enabled:
            return False

        x, y = _clamp(x), _clamp(y)
        action, corner = self.hit_test(x, y)

        self._drag_start = (x, y)
        self._action = action
        self._corner = corner

        if action == CropAction.CREATE:
            # Only one crop region is live at a time
            self._rect = CropRect(x=x, y=y, w=0.0, h=0.0)
            self._initial_rect = None
        else:
            self._initial_rect = self._rect

        logger.debug(f"Crop pointer down at ({x:.3f}, {y:.3f}): {action.value}")
        return True

    def pointer_move(self, x: float, y: float) -> bool:
        if not self.enabled or self._action == CropAction.NONE:
            return False

        x, y = _clamp(x), _clamp(y)

        if self._action == CropAction.CREATE:
            self._rect = self._create_rect(x, y)
        elif self._action == CropAction.MOVE:
            self._rect = self._moved_rect(x, y)
        elif self._action == CropAction.RESIZE:
            self._rect = self._resized_rect(x, y)

        return True

    def pointer_up(self) -> bool:
        if not self.enabled:
            return False

        changed = self._action != CropAction.NONE
        self._action = CropAction.NONE
        self._corner = None
        self._initial_rect = None
        return changed

    def clear(self) -> None:
        """Drop the rectangle and any drag in progress."""
        self._rect = None
        self._action = CropAction.NONE
        self._corner = None
        self._initial_rect = None

    def _create_rect(self, x: float, y: float) -> CropRect:
        start_x, start_y = self._drag_start
        left = min(x, start_x)
        top = min(y, start_y)
        width = min(abs(x - start_x), 1.0 - left)
        height = min(abs(y - start_y), 1.0 - top)
        return CropRect(x=left, y=top, w=width, h=height)

    def _moved_rect(self, x: float, y: float) -> CropRect:
        initial = self._initial_rect
        start_x, start_y = self._drag_start

        # Translation is capped at the border, not rejected
        new_x = min(max(initial.x + (x - start_x), 0.0), 1.0 - initial.w)
        new_y = min(max(initial.y + (y - start_y), 0.0), 1.0 - initial.h)
        return CropRect(x=new_x, y=new_y, w=initial.w, h=initial.h)

    def _resized_rect(self, x: float, y: float) -> CropRect:
        initial = self._initial_rect
        corner = self._corner
        dx = x - self._drag_start[0]
        dy = y - self._drag_start[1]

        left, top, right, bottom = initial.x, initial.y, initial.right, initial.bottom

        if corner.moves_left:
            left = _clamp(initial.x + dx)
        else:
            right = _clamp(initial.right + dx)

        if corner.moves_top:
            top = _clamp(initial.y + dy)
        else:
            bottom = _clamp(initial.bottom + dy)

        # Dragging past the opposite edge flips the rectangle
        return CropRect.from_edges(left, top, right, bottom)
