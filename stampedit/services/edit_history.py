"""Linear edit history with undo/redo.

Pushing after an undo discards the redo tail; there is no branching.
"""

import logging
from typing import List

from stampedit.exceptions import HistoryInvariantError
from stampedit.models.image_editor import ImageState


logger = logging.getLogger(__name__)


class EditHistory:
    """
    Ordered sequence of ImageState with a cursor at the displayed state.

    Index 0 is always the original capture.
    """

    def __init__(self):
        self._states: List[ImageState] = []
        self._cursor = -1

    def __len__(self) -> int:
        return len(self._states)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def is_empty(self) -> bool:
        return not self._states

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return 0 <= self._cursor < len(self._states) - 1

    def push(self, state: ImageState) -> None:
        """Truncate everything after the cursor, then append state."""
        discarded = len(self._states) - (self._cursor + 1)
        if discarded > 0:
            logger.debug(f"Discarding {discarded} redo state(s)")
            del self._states[self._cursor + 1:]

        self._states.append(state)
        self._cursor = len(self._states) - 1

    def undo(self) -> bool:
        if self._cursor > 0:
            self._cursor -= 1
            return True
        return False

    def redo(self) -> bool:
        if self._cursor < len(self._states) - 1:
            self._cursor += 1
            return True
        return False

    def current(self) -> ImageState:
        self._check_invariants()
        return self._states[self._cursor]

    def original(self) -> ImageState:
        self._check_invariants()
        return self._states[0]

    def clear(self) -> None:
        """Release every state."""
        self._states.clear()
        self._cursor = -1

    def _check_invariants(self) -> None:
        if not self._states:
            raise HistoryInvariantError("Edit history is empty")
        if not 0 <= self._cursor < len(self._states):
            raise HistoryInvariantError(
                f"History cursor {self._cursor} out of bounds for {len(self._states)} states"
            )
