"""Built-in tool definitions."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger

from respin.clients.base import ImageGenerator, SpeechSynthesizer, to_data_url
from respin.commands import validator
from respin.config import Settings
from respin.core.types import ToolResult
from respin.tools.registry import ToolRegistry
from respin.ui.controller import UIController

IMAGE_PARAMETERS = {
    "type": "object",
    "properties": {"prompt": {"type": "string", "description": "Image description"}},
    "required": ["prompt"],
}
TTS_PARAMETERS = {
    "type": "object",
    "properties": {"text": {"type": "string", "description": "Text to speak"}},
    "required": ["text"],
}
UI_PARAMETERS = {
    "type": "object",
    "properties": {"command": validator.schema()},
    "required": ["command"],
}


def register_builtin_tools(
    registry: ToolRegistry,
    *,
    settings: Settings,
    images: ImageGenerator | None,
    speech: SpeechSynthesizer | None,
    ui: UIController | None,
) -> ToolRegistry:
    """Register the ``image``, ``tts`` and ``ui`` tools."""

    async def run_image(args: dict[str, Any]) -> ToolResult:
        prompt = args.get("prompt")
        if images is None or not isinstance(prompt, str) or not prompt.strip():
            return ToolResult()
        base_options = settings.image_options()
        try:
            result = await images.generate(prompt, {**base_options, "json": True})
        except Exception:
            logger.warning("tool.image.failed prompt={!r}", prompt)
            return ToolResult()

        url = _url_from_result(result)
        if not url:
            build_url = getattr(images, "image_url", None)
            if callable(build_url):
                url = build_url(prompt, base_options)
        if not url and isinstance(result, bytes | bytearray) and result:
            url = to_data_url(bytes(result), "image/jpeg")
        authorize = getattr(images, "authorize_url", None)
        if url and callable(authorize):
            url = authorize(url)
        return ToolResult(image_url=url) if url else ToolResult()

    async def run_tts(args: dict[str, Any]) -> ToolResult:
        text = args.get("text")
        if speech is None or not isinstance(text, str) or not text.strip():
            return ToolResult()
        try:
            audio = await speech.synthesize(text, settings.speech_options())
        except Exception:
            logger.warning("tool.tts.failed length={}", len(text))
            return ToolResult()
        if not audio:
            return ToolResult()
        return ToolResult(audio_url=to_data_url(bytes(audio), "audio/mpeg"))

    def run_ui(args: dict[str, Any]) -> ToolResult:
        command = args.get("command")
        if not validator.validate_command(command):
            logger.warning("tool.ui.invalid command={}", command)
            return ToolResult()
        if ui is None:
            return ToolResult()
        try:
            ui.execute(command, verb=args.get("verb"))
        except Exception:
            logger.exception("tool.ui.execute_failed")
        return ToolResult()

    registry.register("image", run_image, description="Generate an image", parameters=IMAGE_PARAMETERS)
    registry.register("tts", run_tts, description="Convert text to speech", parameters=TTS_PARAMETERS)
    registry.register("ui", run_ui, description="Execute a UI command", parameters=UI_PARAMETERS)
    return registry


def _url_from_result(result: Any) -> str | None:
    if isinstance(result, Mapping):
        url = result.get("url")
        return url if isinstance(url, str) and url else None
    if isinstance(result, str) and result.startswith(("http://", "https://", "data:")):
        return result
    return None
