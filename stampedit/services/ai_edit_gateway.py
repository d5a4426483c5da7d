"""AI-guided image edit gateway.

The gateway is an opaque transform source: it takes the current ImageState
and a free-text instruction and returns a new ImageState, which the editor
pushes into history like any local transform. One attempt is made per call;
retry policy belongs to the caller.
"""

import asyncio
import base64
import binascii
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from stampedit.exceptions import EditFailedError, ImageDecodeError
from stampedit.models.image_editor import ImageState
from stampedit.services.image_codec import MIME_TYPES, decode_image, encode_image


logger = logging.getLogger(__name__)


# Preset instructions offered as one-click actions
QUICK_ACTIONS: Dict[str, str] = {
    "remove_background": (
        "Remove the background entirely and replace it with a solid white background. "
        "Keep the stamp intact."
    ),
}


@dataclass
class AIEditConfig:
    """AI edit gateway configuration."""
    api_key: Optional[str] = None
    model: str = "gemini-2.5-flash-image"
    endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout: float = 60.0
    jpeg_quality: int = 95


class InlineData(BaseModel):
    """Base64 payload of a returned media part."""
    mimeType: str = "application/octet-stream"
    data: str


class ResponsePart(BaseModel):
    """One part of a candidate's content."""
    text: Optional[str] = None
    inlineData: Optional[InlineData] = None


class ResponseContent(BaseModel):
    parts: List[ResponsePart] = Field(default_factory=list)
    role: Optional[str] = None


class Candidate(BaseModel):
    content: Optional[ResponseContent] = None
    finishReason: Optional[str] = None


class GenerateContentResponse(BaseModel):
    """Subset of the generateContent response used by the gateway."""
    candidates: List[Candidate] = Field(default_factory=list)
    promptFeedback: Optional[Dict[str, Any]] = None

    def first_image(self) -> Optional[InlineData]:
        for candidate in self.candidates:
            if candidate.content is None:
                continue
            for part in candidate.content.parts:
                if part.inlineData is not None and part.inlineData.data:
                    return part.inlineData
        return None

    def text(self) -> str:
        chunks = []
        for candidate in self.candidates:
            if candidate.content is None:
                continue
            chunks.extend(part.text for part in candidate.content.parts if part.text)
        return " ".join(chunks)


def validate_instruction(instruction: str) -> str:
    """Strip an instruction, rejecting empty ones."""
    if not instruction or not isinstance(instruction, str) or not instruction.strip():
        raise ValueError("Edit instruction must be a non-empty string")
    return instruction.strip()


class AIEditGateway(ABC):
    """Abstract boundary over an external AI image edit call."""

    @abstractmethod
    async def submit(self, state: ImageState, instruction: str) -> ImageState:
        """
        Submit the current image with an instruction.

        Returns:
            ImageState: The edited image

        Raises:
            ValueError: If instruction is empty
            EditFailedError: If the provider fails or returns no usable image
        """
        pass


class GeminiEditGateway(AIEditGateway):
    """Gemini generateContent image edit over REST."""

    def __init__(self, config: AIEditConfig, client: Optional[httpx.AsyncClient] = None):
        if not config.api_key:
            raise EditFailedError("Gemini API key not provided")

        self.config = config
        self._client = client

    @property
    def url(self) -> str:
        return f"{self.config.endpoint.rstrip('/')}/models/{self.config.model}:generateContent"

    def _build_payload(self, image_b64: str, instruction: str) -> Dict[str, Any]:
        return {
            "contents": [{
                "role": "user",
                "parts": [
                    {"inline_data": {"mime_type": MIME_TYPES["jpeg"], "data": image_b64}},
                    {"text": instruction}
                ]
            }],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"]
            }
        }

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.config.api_key
        }

        if self._client is not None:
            return await self._client.post(
                self.url, json=payload, headers=headers, timeout=self.config.timeout
            )

        async with httpx.AsyncClient(timeout=self.config.timeout) as client:
            return await client.post(self.url, json=payload, headers=headers)

    async def submit(self, state: ImageState, instruction: str) -> ImageState:
        instruction = validate_instruction(instruction)
        start_time = time.time()

        logger.info(f"Submitting AI edit ({state.width}x{state.height}): {instruction[:80]!r}")

        encoded = await asyncio.to_thread(encode_image, state, "jpeg", self.config.jpeg_quality)
        payload = self._build_payload(base64.b64encode(encoded).decode("ascii"), instruction)

        try:
            response = await self._post(payload)
        except httpx.TimeoutException as e:
            logger.error(f"AI edit timed out after {self.config.timeout}s")
            raise EditFailedError(f"AI edit timed out after {self.config.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"AI edit request failed: {e}")
            raise EditFailedError(f"AI edit request failed: {str(e)}") from e

        if response.status_code != 200:
            logger.error(f"AI edit provider error: {response.status_code}")
            raise EditFailedError(
                f"AI edit provider error: {response.status_code} - {response.text[:200]}"
            )

        try:
            result = GenerateContentResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise EditFailedError(f"Malformed AI edit response: {str(e)}") from e

        inline = result.first_image()
        if inline is None:
            detail = result.text() or (result.promptFeedback or {}).get("blockReason", "")
            raise EditFailedError(f"AI edit returned no image. {detail}".strip())

        try:
            image_bytes = base64.b64decode(inline.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise EditFailedError(f"AI edit returned invalid image data: {str(e)}") from e

        try:
            edited, _ = await asyncio.to_thread(decode_image, image_bytes)
        except ImageDecodeError as e:
            raise EditFailedError(f"AI edit returned an undecodable image: {str(e)}") from e

        logger.info(
            f"AI edit completed in {time.time() - start_time:.2f}s: "
            f"{edited.width}x{edited.height} ({inline.mimeType})"
        )
        return edited


def get_ai_edit_gateway(settings=None) -> Optional[AIEditGateway]:
    """Build the configured gateway, or None when no provider is configured."""
    if settings is None:
        from stampedit.config import get_settings
        settings = get_settings()

    if not settings.ai_edit_enabled:
        logger.info("AI edit disabled: no Gemini API key configured")
        return None

    return GeminiEditGateway(settings.get_gateway_config())
