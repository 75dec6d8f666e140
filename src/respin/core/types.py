"""Shared core dataclasses."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

RawResponse: TypeAlias = str | Mapping[str, Any]

FENCE_KINDS: frozenset[str] = frozenset({"image", "audio", "ui", "voice", "video"})


@dataclass(frozen=True)
class ToolCall:
    """One out-of-band ``tool_calls`` entry from the message object."""

    call: Any
    position: int

    @property
    def name(self) -> str | None:
        if not isinstance(self.call, Mapping):
            return None
        function = self.call.get("function")
        if isinstance(function, Mapping) and function.get("name"):
            return str(function["name"])
        name = self.call.get("name")
        return str(name) if name else None

    @property
    def arguments(self) -> Any:
        if not isinstance(self.call, Mapping):
            return None
        function = self.call.get("function")
        source = function if isinstance(function, Mapping) else self.call
        for key in ("arguments", "args", "parameters", "payload"):
            if source.get(key) is not None:
                return source[key]
        return None


@dataclass(frozen=True)
class GenericCommand:
    """A JSON value embedded in the response text, typically ``{tool, ...}``."""

    value: Any
    position: int

    @property
    def tool(self) -> Any:
        if isinstance(self.value, Mapping):
            return self.value.get("tool", self.value.get("type"))
        return None

    @property
    def args(self) -> dict[str, Any]:
        if not isinstance(self.value, Mapping):
            return {}
        return {key: value for key, value in self.value.items() if key not in ("tool", "type")}


@dataclass(frozen=True)
class FenceBlock:
    """A fenced code block whose language tag names a tool."""

    kind: str  # image|audio|ui|voice|video
    content: str
    position: int


@dataclass(frozen=True)
class ShorthandString:
    """A bare, JSON-less string aimed at a tool (``click button``)."""

    text: str
    position: int
    tool: str | None = None


Instruction: TypeAlias = ToolCall | GenericCommand | FenceBlock | ShorthandString


@dataclass(frozen=True)
class ToolResult:
    """What a tool handler hands back to the dispatcher."""

    image_url: str | None = None
    audio_url: str | None = None
    text: str | None = None


@dataclass(frozen=True)
class ImageOutput:
    url: str
    prompt: str | None
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AudioOutput:
    url: str
    text: str | None
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UIOutput:
    command: dict[str, Any]


@dataclass
class StructuredOutput:
    """Side effects accumulated during one dispatch pass."""

    images: list[ImageOutput] = field(default_factory=list)
    audio: list[AudioOutput] = field(default_factory=list)
    ui: list[UIOutput] = field(default_factory=list)
    voice: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.images or self.audio or self.ui or self.voice)

    def to_dict(self) -> dict[str, list[Any]]:
        """Plain representation with empty categories pruned."""
        result: dict[str, list[Any]] = {}
        if self.images:
            result["images"] = [
                {"url": item.url, "prompt": item.prompt, "options": dict(item.options)} for item in self.images
            ]
        if self.audio:
            result["audio"] = [{"url": item.url, "text": item.text, "options": dict(item.options)} for item in self.audio]
        if self.ui:
            result["ui"] = [{"command": dict(item.command)} for item in self.ui]
        if self.voice:
            result["voice"] = list(self.voice)
        return result


@dataclass(frozen=True)
class ExtractedSegments:
    """Segment extractor output."""

    instructions: list[Instruction]
    leftover_text: str


@dataclass(frozen=True)
class InterpretResult:
    """Outcome of interpreting one model response."""

    handled: bool
    text: str
    structured: StructuredOutput = field(default_factory=StructuredOutput)


@dataclass(frozen=True)
class AssistantMessage:
    """Message handed to the chat transcript."""

    content: str
    role: str = "ai"
    image_urls: list[str] = field(default_factory=list)
    audio_urls: list[str] = field(default_factory=list)
    metadata: dict[str, list[Any]] | None = None
    speech: list[str] = field(default_factory=list)
    error: bool = False
