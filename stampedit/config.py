"""Editor configuration loaded from environment variables."""

import os
from typing import Optional
from functools import lru_cache

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings:
    """Editor settings loaded from environment variables."""

    # Logging
    LOG_LEVEL: str = os.getenv("STAMPEDIT_LOG_LEVEL", "INFO")
    LOG_TO_FILE: bool = os.getenv("STAMPEDIT_LOG_TO_FILE", "false").lower() == "true"
    LOG_DIR: str = os.getenv("STAMPEDIT_LOG_DIR", "logs")

    # Crop interaction
    CROP_HANDLE_THRESHOLD: float = float(os.getenv("CROP_HANDLE_THRESHOLD", "0.05"))

    # Transforms
    ENHANCE_MIN_RANGE: float = float(os.getenv("ENHANCE_MIN_RANGE", "10"))
    ROTATION_HINT_THRESHOLD: float = float(os.getenv("ROTATION_HINT_THRESHOLD", "0.5"))
    FINE_ROTATION_LIMIT: float = float(os.getenv("FINE_ROTATION_LIMIT", "45"))

    # Encoding
    JPEG_QUALITY: int = int(os.getenv("JPEG_QUALITY", "95"))

    # AI-guided edit (Gemini)
    GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-image")
    GEMINI_ENDPOINT: str = os.getenv(
        "GEMINI_ENDPOINT", "https://generativelanguage.googleapis.com/v1beta"
    )
    AI_EDIT_TIMEOUT: float = float(os.getenv("AI_EDIT_TIMEOUT", "60"))

    @property
    def ai_edit_enabled(self) -> bool:
        """Whether an AI edit provider is configured."""
        return bool(self.GEMINI_API_KEY)

    def get_gateway_config(self):
        """Get configuration for the AI edit gateway."""
        from stampedit.services.ai_edit_gateway import AIEditConfig

        return AIEditConfig(
            api_key=self.GEMINI_API_KEY,
            model=self.GEMINI_MODEL,
            endpoint=self.GEMINI_ENDPOINT,
            timeout=self.AI_EDIT_TIMEOUT,
            jpeg_quality=self.JPEG_QUALITY
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
