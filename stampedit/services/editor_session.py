"""Editor session orchestrating history, transforms, crop and AI edits.

This session handles:
- Loading the source image into history
- Local transforms (rotate, fine rotation, crop, auto-enhance)
- AI-guided edits through an injected gateway
- Undo/redo, hold-to-compare, finalize and cancel

History is the only source of truth. Anything displayed is rebuilt from
the displayed ImageState on demand.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from stampedit.exceptions import (
    EditFailedError,
    HistoryInvariantError,
    ImageDecodeError,
    SessionClosedError,
)
from stampedit.models.image_editor import (
    CropRect,
    EditorMode,
    ImageState,
    RotationDirection,
)
from stampedit.services import transform_engine
from stampedit.services.ai_edit_gateway import (
    QUICK_ACTIONS,
    AIEditGateway,
    validate_instruction,
)
from stampedit.services.crop_controller import CropInteractionController
from stampedit.services.edit_history import EditHistory
from stampedit.services.image_codec import decode_image, encode_image, output_format
from stampedit.utils.logging_config import edit_session


logger = logging.getLogger(__name__)


class EditorSession:
    """
    One interactive editing session over a single image.

    Local commands return True when they pushed a new history state and
    False when they were a silent no-op.
    """

    def __init__(
        self,
        gateway: Optional[AIEditGateway] = None,
        settings=None
    ):
        """
        Initialize an empty session.

        Args:
            gateway: AI edit gateway; AI edits fail when None
            settings: Editor settings, defaults to the cached global settings
        """
        if settings is None:
            from stampedit.config import get_settings
            settings = get_settings()

        self.settings = settings
        self.session_id = str(uuid.uuid4())
        self.gateway = gateway
        self.history = EditHistory()
        self.crop_controller = CropInteractionController(threshold=settings.CROP_HANDLE_THRESHOLD)

        self._mode = EditorMode.ADJUST
        self._pending_rotation = 0.0
        self._comparing = False
        self._inflight_edits = 0
        self._closed = False
        self._source_format = "png"

    @classmethod
    def from_bytes(
        cls,
        image_bytes: bytes,
        suggested_rotation: Optional[float] = None,
        gateway: Optional[AIEditGateway] = None,
        settings=None
    ) -> "EditorSession":
        """Create a session and load image_bytes into it."""
        session = cls(gateway=gateway, settings=settings)
        session.load(image_bytes, suggested_rotation=suggested_rotation)
        return session

    # --- State ---

    @property
    def mode(self) -> EditorMode:
        return self._mode

    @property
    def pending_rotation(self) -> float:
        return self._pending_rotation

    @property
    def crop_rect(self) -> Optional[CropRect]:
        return self.crop_controller.rect

    @property
    def comparing(self) -> bool:
        return self._comparing

    @property
    def is_processing(self) -> bool:
        """True while an AI edit is in flight."""
        return self._inflight_edits > 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def source_format(self) -> str:
        return self._source_format

    @property
    def current_state(self) -> ImageState:
        return self.history.current()

    @property
    def displayed_state(self) -> ImageState:
        """State the render surface should show: the original while comparing."""
        if self._comparing:
            return self.history.original()
        return self.history.current()

    def state_summary(self) -> Dict[str, Any]:
        """Snapshot of session state for UI binding and logs."""
        summary = {
            "session_id": self.session_id,
            "mode": self._mode.value,
            "history_length": len(self.history),
            "cursor": self.history.cursor,
            "can_undo": self.history.can_undo,
            "can_redo": self.history.can_redo,
            "pending_rotation": self._pending_rotation,
            "crop_rect": self.crop_rect.to_dict() if self.crop_rect else None,
            "comparing": self._comparing,
            "is_processing": self.is_processing,
            "closed": self._closed,
        }
        if not self.history.is_empty:
            displayed = self.displayed_state
            summary["width"] = displayed.width
            summary["height"] = displayed.height
        return summary

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Edit session {self.session_id} is closed")

    def _ensure_loaded(self) -> None:
        self._ensure_open()
        if self.history.is_empty:
            raise HistoryInvariantError("No image loaded into edit session")

    def _clamp_rotation(self, degrees: float) -> float:
        limit = self.settings.FINE_ROTATION_LIMIT
        return max(-limit, min(limit, float(degrees)))

    def _push(self, state: ImageState, operation: str) -> None:
        self.history.push(state)
        # A crop box is only meaningful against the state it was drawn over
        self.crop_controller.clear()
        logger.info(
            f"Session {self.session_id}: {operation} -> {state.width}x{state.height} "
            f"(cursor {self.history.cursor}/{len(self.history) - 1})"
        )

    # --- Loading ---

    def load(self, image_bytes: bytes, suggested_rotation: Optional[float] = None) -> ImageState:
        """
        Decode the source image and make it the original history entry.

        Args:
            image_bytes: Encoded source image
            suggested_rotation: Optional rotation hint in degrees; seeds the
                fine-rotation preview only when its magnitude exceeds the
                configured threshold

        Returns:
            ImageState: The decoded original

        Raises:
            ImageDecodeError: If the bytes cannot be decoded (history untouched)
            HistoryInvariantError: If an image was already loaded
        """
        self._ensure_open()
        if not self.history.is_empty:
            raise HistoryInvariantError("Edit session already has an image loaded")

        try:
            state, image_format = decode_image(image_bytes)
        except ImageDecodeError as e:
            logger.error(f"Session {self.session_id}: failed to decode source image: {str(e)}")
            raise

        self._source_format = image_format
        self.history.push(state)

        if suggested_rotation and abs(suggested_rotation) > self.settings.ROTATION_HINT_THRESHOLD:
            self._pending_rotation = self._clamp_rotation(suggested_rotation)

        logger.info(
            f"Session {self.session_id}: loaded {image_format} {state.width}x{state.height}, "
            f"pending rotation {self._pending_rotation}"
        )
        return state

    # --- Modes and pointer input ---

    def set_mode(self, mode: EditorMode) -> None:
        """Switch tool mode; an in-progress crop rectangle is discarded."""
        self._ensure_open()
        mode = EditorMode(mode)

        self.crop_controller.clear()
        self.crop_controller.enabled = mode == EditorMode.CROP

        if mode != self._mode:
            logger.debug(f"Session {self.session_id}: mode {self._mode.value} -> {mode.value}")
        self._mode = mode

    def pointer_down(self, x: float, y: float) -> bool:
        return self.crop_controller.pointer_down(x, y)

    def pointer_move(self, x: float, y: float) -> bool:
        return self.crop_controller.pointer_move(x, y)

    def pointer_up(self) -> bool:
        return self.crop_controller.pointer_up()

    def clear_crop(self) -> None:
        """Discard the crop rectangle; the mode is left unchanged."""
        self._ensure_open()
        self.crop_controller.clear()

    # --- Local transforms ---

    def apply_rotate90(self, direction: RotationDirection) -> bool:
        self._ensure_loaded()
        direction = RotationDirection(direction)
        rotated = transform_engine.rotate90(self.history.current(), direction)
        self._push(rotated, f"rotate90 {direction.value}")
        return True

    def set_fine_rotation(self, degrees: float) -> float:
        """Update the fine-rotation preview; history is not touched."""
        self._ensure_open()
        self._pending_rotation = self._clamp_rotation(degrees)
        return self._pending_rotation

    def commit_fine_rotation(self) -> bool:
        self._ensure_loaded()
        degrees = self._pending_rotation
        if degrees == 0:
            return False

        rotated = transform_engine.rotate_arbitrary(self.history.current(), degrees)
        self._push(rotated, f"rotate {degrees:+.1f}deg")
        self._pending_rotation = 0.0
        return True

    def commit_crop(self) -> bool:
        """
        Crop the current state to the controller's rectangle.

        The rectangle is cleared and the session returns to ADJUST mode
        whether or not a state was pushed.
        """
        self._ensure_loaded()
        rect = self.crop_controller.rect
        pushed = False

        if rect is not None and not rect.is_empty:
            cropped = transform_engine.crop(self.history.current(), rect)
            if cropped is not None:
                self._push(cropped, f"crop {rect.to_dict()}")
                pushed = True
        else:
            logger.debug(f"Session {self.session_id}: no committable crop rectangle")

        self.set_mode(EditorMode.ADJUST)
        return pushed

    def apply_enhance(self) -> bool:
        self._ensure_loaded()
        enhanced = transform_engine.auto_enhance(
            self.history.current(),
            min_range=self.settings.ENHANCE_MIN_RANGE
        )
        if enhanced is None:
            return False

        self._push(enhanced, "auto-enhance")
        return True

    # --- AI-guided edit ---

    async def apply_ai_edit(self, instruction: str) -> ImageState:
        """
        Submit the current state to the AI gateway and push the result.

        Callers should not issue mutating commands while is_processing is
        True. A mode change during the call does not cancel it.

        Returns:
            ImageState: The pushed state

        Raises:
            ValueError: If instruction is empty
            EditFailedError: If no gateway is configured or the edit fails;
                history is left unchanged
        """
        self._ensure_loaded()
        instruction = validate_instruction(instruction)

        if self.gateway is None:
            raise EditFailedError("AI edit is not configured")

        source = self.history.current()
        self._inflight_edits += 1
        with edit_session(self.session_id):
            try:
                edited = await self.gateway.submit(source, instruction)
            except EditFailedError as e:
                logger.error(f"Session {self.session_id}: AI edit failed: {str(e)}")
                raise
            finally:
                self._inflight_edits -= 1

            if self._closed:
                raise SessionClosedError(f"Edit session {self.session_id} closed during AI edit")

            self._push(edited, "ai-edit")
        return edited

    async def apply_quick_action(self, name: str) -> ImageState:
        """Run a preset AI instruction from QUICK_ACTIONS."""
        if name not in QUICK_ACTIONS:
            raise ValueError(
                f"Unknown quick action: {name}. "
                f"Available: {', '.join(sorted(QUICK_ACTIONS))}"
            )
        return await self.apply_ai_edit(QUICK_ACTIONS[name])

    # --- History navigation ---

    def _on_cursor_changed(self) -> None:
        self._pending_rotation = 0.0
        self.crop_controller.clear()

    def undo(self) -> bool:
        self._ensure_loaded()
        if self.history.undo():
            self._on_cursor_changed()
            logger.info(f"Session {self.session_id}: undo -> cursor {self.history.cursor}")
            return True
        return False

    def redo(self) -> bool:
        self._ensure_loaded()
        if self.history.redo():
            self._on_cursor_changed()
            logger.info(f"Session {self.session_id}: redo -> cursor {self.history.cursor}")
            return True
        return False

    def compare(self, hold: bool) -> ImageState:
        """Toggle hold-to-compare; returns the state to display."""
        self._ensure_loaded()
        self._comparing = bool(hold)
        return self.displayed_state

    # --- Rendering ---

    def preview(self) -> ImageState:
        """
        Scratch render of the displayed state with the pending fine rotation.

        The result is never pushed into history.
        """
        self._ensure_loaded()
        displayed = self.displayed_state
        if self._comparing or self._pending_rotation == 0:
            return displayed
        return transform_engine.rotate_arbitrary(displayed, self._pending_rotation)

    # --- Exit points ---

    def finalize(self) -> bytes:
        """
        Encode the current history state as the accepted edit result.

        A pending fine rotation is a preview only and is not applied; call
        commit_fine_rotation() first to keep it.
        """
        self._ensure_loaded()
        if self._pending_rotation != 0:
            logger.info(
                f"Session {self.session_id}: discarding uncommitted rotation "
                f"{self._pending_rotation:+.1f}deg on finalize"
            )

        current = self.history.current()
        result = encode_image(current, self._source_format, quality=self.settings.JPEG_QUALITY)
        logger.info(
            f"Session {self.session_id}: finalized {current.width}x{current.height} "
            f"as {output_format(self._source_format)} ({len(result)} bytes)"
        )
        return result

    def cancel(self) -> None:
        """Discard the session and release its history."""
        if self._closed:
            return
        self.history.clear()
        self.crop_controller.clear()
        self.crop_controller.enabled = False
        self._pending_rotation = 0.0
        self._comparing = False
        self._closed = True
        logger.info(f"Session {self.session_id}: cancelled")
