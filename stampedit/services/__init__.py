"""Image editing engine services."""

from .edit_history import EditHistory
from .crop_controller import CropInteractionController
from .ai_edit_gateway import AIEditGateway, GeminiEditGateway, get_ai_edit_gateway
from .editor_session import EditorSession

__all__ = [
    "EditHistory",
    "CropInteractionController",
    "AIEditGateway",
    "GeminiEditGateway",
    "get_ai_edit_gateway",
    "EditorSession",
]
