"""Application-level exception types for respin."""

from __future__ import annotations


class RespinError(Exception):
    """Base exception for respin."""


class ConfigurationError(RespinError):
    """Base exception for configuration and startup validation errors."""


class ModelNotConfiguredError(ConfigurationError):
    """Raised when no chat model is selected."""


class CollaboratorError(RespinError):
    """Raised by external collaborators (chat, image, speech backends)."""


class TransportError(CollaboratorError):
    """Raised when an HTTP request to the AI API fails."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
