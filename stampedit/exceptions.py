"""Exceptions raised by the editing engine."""


class ImageEditorError(Exception):
    """Base exception for image editor operations."""
    pass


class ImageDecodeError(ImageEditorError):
    """Raised when image bytes cannot be decoded into an ImageState."""
    pass


class EditFailedError(ImageEditorError):
    """Raised when an AI-guided edit fails (provider, network, or bad response)."""
    pass


class HistoryInvariantError(ImageEditorError):
    """Raised when edit history is used in a state that should be impossible."""
    pass


class SessionClosedError(ImageEditorError):
    """Raised when a command is issued to a cancelled or finalized session."""
    pass
