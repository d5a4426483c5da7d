"""Unit tests for EditorSession.

Tests command semantics over history: pushes, silent no-ops, crop lifecycle,
undo/redo side effects, compare, AI edits through a fake gateway, finalize
and cancel.
"""

import asyncio
import io
import logging
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from stampedit.exceptions import (
    EditFailedError,
    HistoryInvariantError,
    ImageDecodeError,
    SessionClosedError,
)
from stampedit.models.image_editor import EditorMode, ImageState, RotationDirection
from stampedit.services.ai_edit_gateway import QUICK_ACTIONS, AIEditGateway
from stampedit.services.editor_session import EditorSession
from stampedit.utils.logging_config import NO_SESSION, current_edit_session


class FakeGateway(AIEditGateway):
    """Gateway returning a fixed state, or raising EditFailedError."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def submit(self, state, instruction):
        self.calls.append((state, instruction))
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def session(settings, png_bytes):
    """Session loaded with a 100x60 image."""
    return EditorSession.from_bytes(png_bytes(100, 60), settings=settings)


def two_tone_png(encoder):
    image = Image.new("RGBA", (10, 10), (60, 60, 60, 255))
    for x in range(10):
        image.putpixel((x, 0), (160, 160, 160, 255))
    return encoder(image, "PNG")


class TestLoad:
    """Tests for EditorSession.load()."""

    def test_load_pushes_original(self, session):
        assert len(session.history) == 1
        assert session.current_state.size == (100, 60)
        assert session.mode == EditorMode.ADJUST

    def test_decode_failure_leaves_history_empty(self, settings):
        session = EditorSession(settings=settings)

        with pytest.raises(ImageDecodeError):
            session.load(b"garbage")

        assert session.history.is_empty

    def test_double_load_rejected(self, session, png_bytes):
        with pytest.raises(HistoryInvariantError):
            session.load(png_bytes(5, 5))

    @pytest.mark.parametrize("hint,expected", [
        (None, 0.0),
        (0.3, 0.0),
        (-0.5, 0.0),
        (2.5, 2.5),
        (-7.0, -7.0),
        (80.0, 45.0),
    ])
    def test_rotation_hint_seeds_preview_only(self, settings, png_bytes, hint, expected):
        session = EditorSession.from_bytes(png_bytes(20, 10), suggested_rotation=hint, settings=settings)

        assert session.pending_rotation == expected
        assert len(session.history) == 1

    def test_commands_before_load_fail(self, settings):
        session = EditorSession(settings=settings)

        with pytest.raises(HistoryInvariantError):
            session.apply_rotate90(RotationDirection.RIGHT)


class TestLocalTransforms:
    """Tests for rotate, fine rotation, crop and enhance commands."""

    def test_rotate90_pushes(self, session):
        assert session.apply_rotate90(RotationDirection.RIGHT) is True

        assert len(session.history) == 2
        assert session.current_state.size == (60, 100)

    def test_fine_rotation_preview_does_not_touch_history(self, session):
        session.set_fine_rotation(12.5)

        assert session.pending_rotation == 12.5
        assert len(session.history) == 1

    def test_fine_rotation_clamped(self, session):
        assert session.set_fine_rotation(-90) == -45

    def test_commit_fine_rotation(self, session):
        session.set_fine_rotation(10)

        assert session.commit_fine_rotation() is True

        assert len(session.history) == 2
        assert session.pending_rotation == 0
        assert session.current_state.size == (109, 77)

    def test_commit_zero_rotation_is_noop(self, session):
        assert session.commit_fine_rotation() is False
        assert len(session.history) == 1

    def test_preview_applies_pending_rotation(self, session):
        session.set_fine_rotation(10)

        preview = session.preview()

        assert preview.size == (109, 77)
        assert len(session.history) == 1

    def test_enhance_pushes(self, settings, encoder):
        session = EditorSession.from_bytes(two_tone_png(encoder), settings=settings)

        assert session.apply_enhance() is True
        assert len(session.history) == 2

    def test_enhance_noop_on_flat_image(self, session):
        assert session.apply_enhance() is False
        assert len(session.history) == 1


class TestCrop:
    """Tests for the crop workflow."""

    def test_pointer_ignored_outside_crop_mode(self, session):
        assert session.pointer_down(0.1, 0.1) is False
        assert session.crop_rect is None

    def test_commit_crop(self, session):
        session.set_mode(EditorMode.CROP)
        session.pointer_down(0.0, 0.0)
        session.pointer_move(0.5, 0.5)
        session.pointer_up()

        assert session.commit_crop() is True

        assert session.current_state.size == (50, 30)
        assert session.crop_rect is None
        assert session.mode == EditorMode.ADJUST

    def test_click_without_drag_is_noop(self, session):
        session.set_mode(EditorMode.CROP)
        session.pointer_down(0.4, 0.4)
        session.pointer_up()

        assert session.commit_crop() is False

        assert len(session.history) == 1
        assert session.crop_rect is None
        assert session.mode == EditorMode.ADJUST

    def test_commit_without_rect_is_noop(self, session):
        session.set_mode(EditorMode.CROP)

        assert session.commit_crop() is False
        assert session.mode == EditorMode.ADJUST

    def test_mode_switch_clears_rect(self, session):
        session.set_mode(EditorMode.CROP)
        session.pointer_down(0.1, 0.1)
        session.pointer_move(0.5, 0.5)

        session.set_mode(EditorMode.AI_EDIT)

        assert session.crop_rect is None
        assert session.pointer_down(0.1, 0.1) is False

    def test_clear_crop_keeps_mode(self, session):
        session.set_mode(EditorMode.CROP)
        session.pointer_down(0.1, 0.1)
        session.pointer_move(0.5, 0.5)
        session.pointer_up()

        session.clear_crop()

        assert session.crop_rect is None
        assert session.mode == EditorMode.CROP
        assert len(session.history) == 1

        # Still in crop mode, so a fresh rectangle can be drawn straight away
        assert session.pointer_down(0.2, 0.2) is True
        session.pointer_move(0.4, 0.4)
        session.pointer_up()
        assert session.crop_rect.x == pytest.approx(0.2)
        assert session.crop_rect.w == pytest.approx(0.2)


class TestUndoRedo:
    """Tests for undo/redo side effects."""

    def test_undo_redo(self, session):
        session.apply_rotate90(RotationDirection.RIGHT)

        assert session.undo() is True
        assert session.current_state.size == (100, 60)
        assert session.redo() is True
        assert session.current_state.size == (60, 100)

    def test_undo_at_original_is_noop(self, session):
        assert session.undo() is False

    def test_undo_clears_pending_rotation_and_rect(self, session):
        session.apply_rotate90(RotationDirection.LEFT)
        session.set_fine_rotation(5)
        session.set_mode(EditorMode.CROP)
        session.pointer_down(0.1, 0.1)
        session.pointer_move(0.4, 0.4)

        session.undo()

        assert session.pending_rotation == 0
        assert session.crop_rect is None

    def test_noop_undo_keeps_pending_rotation(self, session):
        session.set_fine_rotation(5)

        session.undo()

        assert session.pending_rotation == 5

    def test_push_after_undo_drops_redo(self, session):
        session.apply_rotate90(RotationDirection.RIGHT)
        session.undo()

        session.apply_rotate90(RotationDirection.LEFT)

        assert len(session.history) == 2
        assert session.redo() is False


class TestCompare:
    """Tests for hold-to-compare."""

    def test_compare_shows_original(self, session):
        session.apply_rotate90(RotationDirection.RIGHT)

        assert session.compare(True).size == (100, 60)
        assert session.displayed_state.size == (100, 60)
        assert session.compare(False).size == (60, 100)

    def test_compare_never_mutates(self, session):
        session.apply_rotate90(RotationDirection.RIGHT)
        session.apply_rotate90(RotationDirection.RIGHT)
        session.undo()
        states_before = list(session.history._states)
        cursor_before = session.history.cursor

        for _ in range(5):
            session.compare(True)
            session.compare(False)

        assert session.history.cursor == cursor_before
        assert session.history._states == states_before


@pytest.mark.asyncio
class TestAIEdit:
    """Tests for AI-guided edits."""

    async def test_success_pushes(self, settings, png_bytes, make_state):
        edited = make_state(30, 30, (1, 2, 3, 255))
        gateway = FakeGateway(result=edited)
        session = EditorSession.from_bytes(png_bytes(40, 40), gateway=gateway, settings=settings)

        result = await session.apply_ai_edit("remove the pencil mark")

        assert result is edited
        assert session.current_state is edited
        assert len(session.history) == 2
        assert gateway.calls[0][1] == "remove the pencil mark"
        assert session.is_processing is False

    async def test_ai_edit_is_undoable(self, settings, png_bytes, make_state):
        gateway = FakeGateway(result=make_state(30, 30))
        session = EditorSession.from_bytes(png_bytes(40, 40), gateway=gateway, settings=settings)

        await session.apply_ai_edit("sharpen")
        session.undo()

        assert session.current_state.size == (40, 40)

    async def test_failure_leaves_history(self, settings, png_bytes):
        gateway = FakeGateway(error=EditFailedError("provider down"))
        session = EditorSession.from_bytes(png_bytes(40, 40), gateway=gateway, settings=settings)

        with pytest.raises(EditFailedError):
            await session.apply_ai_edit("sharpen")

        assert len(session.history) == 1
        assert session.is_processing is False

    async def test_processing_flag_during_call(self, settings, png_bytes, make_state):
        observed = []
        session = EditorSession.from_bytes(png_bytes(40, 40), settings=settings)

        async def submit(state, instruction):
            observed.append(session.is_processing)
            return make_state(5, 5)

        session.gateway = AsyncMock(spec=AIEditGateway)
        session.gateway.submit.side_effect = submit

        await session.apply_ai_edit("sharpen")

        assert observed == [True]
        assert session.is_processing is False

    async def test_processing_until_last_overlapping_edit(self, settings, png_bytes, make_state):
        release_slow = asyncio.Event()
        observed = []
        session = EditorSession.from_bytes(png_bytes(40, 40), settings=settings)

        async def submit(state, instruction):
            if instruction == "slow":
                await release_slow.wait()
            return make_state(5, 5)

        session.gateway = AsyncMock(spec=AIEditGateway)
        session.gateway.submit.side_effect = submit

        slow = asyncio.ensure_future(session.apply_ai_edit("slow"))
        await asyncio.sleep(0)
        await session.apply_ai_edit("fast")
        observed.append(session.is_processing)

        release_slow.set()
        await slow

        assert observed == [True]
        assert session.is_processing is False
        assert len(session.history) == 3

    async def test_overlapping_sessions_keep_log_context(self, settings, png_bytes, make_state):
        base_factory = logging.getLogRecordFactory()
        seen = {}

        def make_session(delay):
            session = EditorSession.from_bytes(png_bytes(20, 20), settings=settings)

            async def submit(state, instruction):
                await asyncio.sleep(delay)
                seen[session.session_id] = current_edit_session()
                return make_state(5, 5)

            session.gateway = AsyncMock(spec=AIEditGateway)
            session.gateway.submit.side_effect = submit
            return session

        first, second = make_session(0.01), make_session(0.05)

        await asyncio.gather(
            first.apply_ai_edit("sharpen"),
            second.apply_ai_edit("sharpen"),
        )

        assert seen == {first.session_id: first.session_id, second.session_id: second.session_id}
        assert current_edit_session() == NO_SESSION
        assert logging.getLogRecordFactory() is base_factory

    async def test_mode_change_does_not_cancel(self, settings, png_bytes, make_state):
        gateway = FakeGateway(result=make_state(5, 5))
        session = EditorSession.from_bytes(png_bytes(40, 40), gateway=gateway, settings=settings)
        session.set_mode(EditorMode.AI_EDIT)

        task = asyncio.ensure_future(session.apply_ai_edit("sharpen"))
        await asyncio.sleep(0)
        session.set_mode(EditorMode.CROP)
        await task

        assert len(session.history) == 2
        assert session.mode == EditorMode.CROP

    async def test_empty_instruction_rejected(self, settings, png_bytes):
        gateway = FakeGateway()
        session = EditorSession.from_bytes(png_bytes(40, 40), gateway=gateway, settings=settings)

        with pytest.raises(ValueError):
            await session.apply_ai_edit("   ")

        assert gateway.calls == []

    async def test_no_gateway(self, session):
        with pytest.raises(EditFailedError):
            await session.apply_ai_edit("sharpen")

    async def test_quick_action(self, settings, png_bytes, make_state):
        gateway = FakeGateway(result=make_state(5, 5))
        session = EditorSession.from_bytes(png_bytes(40, 40), gateway=gateway, settings=settings)

        await session.apply_quick_action("remove_background")

        assert gateway.calls[0][1] == QUICK_ACTIONS["remove_background"]

    async def test_unknown_quick_action(self, session):
        with pytest.raises(ValueError):
            await session.apply_quick_action("make_it_rare")


class TestFinalizeAndCancel:
    """Tests for the session exit points."""

    def test_finalize_returns_current_state(self, session):
        session.apply_rotate90(RotationDirection.RIGHT)

        data = session.finalize()

        image = Image.open(io.BytesIO(data))
        assert image.format == "PNG"
        assert image.size == (60, 100)

    def test_finalize_discards_pending_rotation(self, session):
        session.set_fine_rotation(10)

        data = session.finalize()

        assert Image.open(io.BytesIO(data)).size == (100, 60)

    def test_finalize_keeps_jpeg_encoding(self, settings, encoder):
        source = encoder(Image.new("RGB", (32, 16), (90, 90, 200)), "JPEG")
        session = EditorSession.from_bytes(source, settings=settings)

        data = session.finalize()

        assert Image.open(io.BytesIO(data)).format == "JPEG"

    def test_cancel_closes_session(self, session):
        session.cancel()

        assert session.closed
        assert session.history.is_empty
        with pytest.raises(SessionClosedError):
            session.undo()
        with pytest.raises(SessionClosedError):
            session.finalize()

    def test_state_summary(self, session):
        session.apply_rotate90(RotationDirection.RIGHT)

        summary = session.state_summary()

        assert summary["history_length"] == 2
        assert summary["cursor"] == 1
        assert summary["can_undo"] is True
        assert summary["can_redo"] is False
        assert (summary["width"], summary["height"]) == (60, 100)
