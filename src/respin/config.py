"""Configuration management for respin."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TEXT_API_BASE = "https://text.pollinations.ai"
DEFAULT_IMAGE_API_BASE = "https://image.pollinations.ai"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="RESPIN_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API Configuration
    model: str | None = Field(default=None, description="Chat model name (e.g., 'openai')")
    text_api_base: str = Field(default=DEFAULT_TEXT_API_BASE, description="Chat/text API base URL")
    image_api_base: str = Field(default=DEFAULT_IMAGE_API_BASE, description="Image API base URL")
    referrer: str | None = Field(default=None, description="Referrer attached to API requests")
    timeout_seconds: int = Field(default=45, ge=1, description="Per-request timeout in seconds")

    # Tool defaults
    image_model: str | None = Field(default=None, description="Image model name")
    image_width: int = Field(default=512, ge=1)
    image_height: int = Field(default=512, ge=1)
    image_private: bool = Field(default=True)
    image_nologo: bool = Field(default=True)
    image_safe: bool = Field(default=True)
    tts_model: str = Field(default="openai-audio", description="Speech synthesis model")
    tts_voice: str | None = Field(default=None, description="Speech synthesis voice")

    # Chat flow
    history_size: int = Field(default=10, ge=0, description="Transcript messages sent with each request")
    instructions_path: Path | None = Field(default=None, description="System instructions markdown file")
    auto_speak: bool = Field(default=False, description="Queue the whole reply for speech")

    # Interpreter
    max_depth: int = Field(default=64, ge=1, description="Maximum nesting depth walked by the dispatcher")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")

    def image_options(self) -> dict[str, object]:
        options: dict[str, object] = {
            "width": self.image_width,
            "height": self.image_height,
            "private": self.image_private,
            "nologo": self.image_nologo,
            "safe": self.image_safe,
        }
        if self.image_model:
            options["model"] = self.image_model
        return options

    def speech_options(self) -> dict[str, object]:
        options: dict[str, object] = {"model": self.tts_model}
        if self.tts_voice:
            options["voice"] = self.tts_voice
        return options

    def read_instructions(self) -> str:
        """Read the system instructions file, if configured."""
        if self.instructions_path is None or not self.instructions_path.is_file():
            return ""
        try:
            return self.instructions_path.read_text(encoding="utf-8").strip()
        except OSError:
            return ""


def load_settings(**overrides: object) -> Settings:
    """Load settings from the environment and ``.env``, applying explicit overrides."""

    settings = Settings()
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    return settings
