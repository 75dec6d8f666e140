"""Tool registry with fuzzy tool-name normalization."""

from __future__ import annotations

import builtins
import inspect
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from loguru import logger

from respin.core.types import ToolResult

ToolHandler: TypeAlias = Callable[[dict[str, Any]], Awaitable[ToolResult] | ToolResult]

IMAGE_HINTS = ("image", "picture", "photo", "draw", "art")
TTS_HINTS = ("audio", "speak", "voice", "sound", "speech", "tts")
UI_HINTS = ("ui", "command", "action", "control")


def map_tool_name(name: Any) -> str | None:
    """Map a loosely named tool onto a canonical one.

    Substring rules are checked in order (image, then tts, then ui); anything
    else is passed through lower-cased so exact-name tools still resolve.
    """

    if not name:
        return None
    normalized = str(name).lower()
    if any(hint in normalized for hint in IMAGE_HINTS):
        return "image"
    if any(hint in normalized for hint in TTS_HINTS):
        return "tts"
    if any(hint in normalized for hint in UI_HINTS):
        return "ui"
    return normalized


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    if len(text) <= width:
        return text
    available = width - len(placeholder)
    if available <= 0:
        return placeholder
    return text[:available] + placeholder


@dataclass(frozen=True)
class ToolDescriptor:
    """Tool metadata and runtime handle."""

    name: str
    description: str
    handler: ToolHandler
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})


class ToolRegistry:
    """Registry for the tools a model response may invoke."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}

    def register(
        self,
        name: str,
        handler: ToolHandler | None = None,
        *,
        description: str = "",
        parameters: dict[str, Any] | None = None,
    ) -> Any:
        """Register ``handler`` under ``name``; without a handler, acts as a decorator."""

        def _register(func: ToolHandler) -> ToolHandler:
            self._tools[name] = ToolDescriptor(
                name=name,
                description=description,
                handler=self._wrap_handler(name, func),
                parameters=parameters or {"type": "object", "properties": {}},
            )
            return func

        if handler is None:
            return _register
        _register(handler)
        return self

    def has(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> ToolHandler | None:
        descriptor = self._tools.get(name)
        return descriptor.handler if descriptor is not None else None

    def descriptors(self) -> builtins.list[ToolDescriptor]:
        return sorted(self._tools.values(), key=lambda item: item.name)

    def model_tools(self) -> builtins.list[dict[str, Any]]:
        """OpenAI function-tool definitions for the chat request."""
        return [
            {
                "type": "function",
                "function": {
                    "name": descriptor.name,
                    "description": descriptor.description,
                    "parameters": descriptor.parameters,
                },
            }
            for descriptor in self.descriptors()
        ]

    async def execute(self, name: str, args: dict[str, Any]) -> ToolResult:
        handler = self.get(name)
        if handler is None:
            raise KeyError(name)
        return await handler(args)

    def _log_tool_call(self, name: str, args: dict[str, Any]) -> None:
        params: list[str] = []
        for key, value in args.items():
            try:
                rendered = json.dumps(value, ensure_ascii=False)
            except TypeError:
                rendered = repr(value)
            params.append(f"{key}={_shorten_text(rendered)}")
        logger.info("tool.call.start name={} {{ {} }}", name, ", ".join(params))

    def _wrap_handler(self, name: str, func: ToolHandler) -> Callable[[dict[str, Any]], Awaitable[ToolResult]]:
        async def _handler(args: dict[str, Any]) -> ToolResult:
            self._log_tool_call(name, args)
            start = time.monotonic()
            try:
                result = func(args)
                if inspect.isawaitable(result):
                    result = await result
            except Exception:
                logger.exception("tool.call.error name={}", name)
                return ToolResult()
            finally:
                duration = time.monotonic() - start
                logger.info("tool.call.end name={} duration={:.3f}ms", name, duration * 1000)
            return _coerce_result(result)

        return _handler


def _coerce_result(result: Any) -> ToolResult:
    if isinstance(result, ToolResult):
        return result
    if isinstance(result, dict):
        text = result.get("text")
        return ToolResult(
            image_url=result.get("image_url") or result.get("imageUrl") or None,
            audio_url=result.get("audio_url") or result.get("audioUrl") or None,
            text=text if isinstance(text, str) else None,
        )
    return ToolResult()
