"""Collaborator protocols for the AI API."""

from __future__ import annotations

import base64
from collections.abc import Mapping, Sequence
from typing import Any, Protocol


class ChatClient(Protocol):
    async def chat(
        self,
        *,
        model: str,
        messages: Sequence[Mapping[str, Any]],
        tools: Sequence[Mapping[str, Any]] | None = None,
        json: bool = False,
    ) -> Mapping[str, Any]: ...


class ImageGenerator(Protocol):
    async def generate(self, prompt: str, options: Mapping[str, Any]) -> str | bytes | Mapping[str, Any]: ...


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str, options: Mapping[str, Any]) -> bytes: ...


def to_data_url(data: bytes, content_type: str) -> str:
    """Wrap binary payloads as a playable/displayable ``data:`` URL."""

    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{content_type};base64,{encoded}"
