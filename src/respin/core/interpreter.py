"""Entry point: turn one raw model response into actions and display text."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from respin.clients.base import ChatClient, ImageGenerator, SpeechSynthesizer
from respin.config import Settings, load_settings
from respin.core.assembler import ResponseAssembler
from respin.core.dispatcher import Dispatcher
from respin.core.extractor import extract_segments
from respin.core.types import InterpretResult, RawResponse
from respin.logging_utils import set_current_turn
from respin.memory import InMemoryMemoryStore, MemoryStore
from respin.tools import ToolRegistry, register_builtin_tools
from respin.ui import UIController, UISurface


@dataclass(frozen=True)
class FlattenedContent:
    """Message content reduced to display text plus media references."""

    text: str
    image_urls: list[str] = field(default_factory=list)
    audio_urls: list[str] = field(default_factory=list)


def flatten_content(content: Any) -> FlattenedContent:
    """Flatten a string or a list of typed content parts."""

    if isinstance(content, str):
        return FlattenedContent(text=content)
    if not isinstance(content, list):
        return FlattenedContent(text="")

    texts: list[str] = []
    images: list[str] = []
    audio: list[str] = []
    for part in content:
        if isinstance(part, str):
            texts.append(part)
            continue
        if not isinstance(part, Mapping):
            continue
        part_type = part.get("type")
        if part_type == "text" and isinstance(part.get("text"), str):
            texts.append(part["text"])
        elif part_type == "image_url":
            url = _nested_url(part.get("image_url"))
            if url:
                images.append(url)
        elif part_type == "audio":
            url = _nested_url(part.get("audio"))
            if url:
                audio.append(url)
    return FlattenedContent(text="\n".join(texts), image_urls=images, audio_urls=audio)


def _nested_url(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    if isinstance(value, Mapping):
        url = value.get("url")
        if isinstance(url, str) and url:
            return url
    return None


class AppContext:
    """Wires settings, collaborators and the tool registry for one client."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        chat: ChatClient | None = None,
        images: ImageGenerator | None = None,
        speech: SpeechSynthesizer | None = None,
        surface: UISurface | None = None,
        memory: MemoryStore | None = None,
        registry: ToolRegistry | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.chat = chat
        self.images = images
        self.speech = speech
        self.surface = surface
        self.memory: MemoryStore = memory if memory is not None else InMemoryMemoryStore()
        self.ui = UIController(surface) if surface is not None else None
        if registry is None:
            registry = register_builtin_tools(
                ToolRegistry(),
                settings=self.settings,
                images=images,
                speech=speech,
                ui=self.ui,
            )
        self.registry = registry
        self._closed = False

    def __enter__(self) -> AppContext:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for collaborator in (self.chat, self.images, self.speech):
            close = getattr(collaborator, "close", None)
            if callable(close):
                try:
                    close()
                except Exception:
                    logger.exception("context.close.failed collaborator={}", type(collaborator).__name__)

    def interpreter(self) -> Interpreter:
        return Interpreter(self)


class Interpreter:
    """Runs extract, dispatch and assemble for each model response."""

    def __init__(self, context: AppContext) -> None:
        self._context = context
        self._dispatcher = Dispatcher(context.registry, max_depth=context.settings.max_depth)
        self._assembler = ResponseAssembler(context.memory)

    @property
    def assembler(self) -> ResponseAssembler:
        return self._assembler

    async def interpret(self, raw_response: RawResponse, message: Mapping[str, Any] | None = None) -> InterpretResult:
        """Interpret one response. Never raises.

        ``raw_response`` may be the response text or the whole message object;
        in the latter case its content parts are flattened to text first.
        """

        turn_id = uuid.uuid4().hex[:8]
        set_current_turn(turn_id)

        if isinstance(raw_response, Mapping):
            message = raw_response if message is None else message
            raw_text = flatten_content(raw_response.get("content")).text
        else:
            raw_text = raw_response if isinstance(raw_response, str) else ""

        try:
            segments = extract_segments(raw_text, message)
            logger.debug(
                "interpret.segments instructions={} leftover_length={}",
                len(segments.instructions),
                len(segments.leftover_text),
            )
            result = await self._dispatcher.dispatch(segments.instructions, segments.leftover_text)
            result = self._assembler.assemble(result)
        except Exception:
            logger.exception("interpret.failed")
            return InterpretResult(handled=False, text=raw_text.strip())

        logger.info(
            "interpret.done handled={} images={} audio={} ui={} voice={}",
            result.handled,
            len(result.structured.images),
            len(result.structured.audio),
            len(result.structured.ui),
            len(result.structured.voice),
        )
        return result

    def handle_voice_command(self, text: str) -> bool:
        """Run a spoken phrase through the phrase grammar against the UI."""

        if self._context.ui is None:
            logger.debug("voice.command.skipped reason=no_surface")
            return False
        return self._context.ui.handle_phrase(text)


async def interpret(
    raw_response: RawResponse,
    message: Mapping[str, Any] | None = None,
    *,
    context: AppContext | None = None,
) -> InterpretResult:
    """Interpret ``raw_response`` with ``context``, or a bare default context."""

    return await Interpreter(context or AppContext()).interpret(raw_response, message)
