"""Instruction dispatch.

The dispatcher walks every extracted instruction in order and invokes the
matching tool. Values can nest arbitrarily (tool-call arrays, function-call
objects, ``{tool, ...}`` objects, shorthand fields such as ``image`` or
``command``), so the walk is a recursive descent that carries an explicit
:class:`DispatchContext` naming the tool a bare value belongs to.

Invocations are awaited one at a time so side effects happen in the order
the model emitted them.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from respin.commands.grammar import parse_phrase
from respin.commands.validator import parse_command
from respin.core.assembler import compose_text
from respin.core.json_repair import try_parse_json
from respin.core.types import (
    AudioOutput,
    FenceBlock,
    GenericCommand,
    ImageOutput,
    Instruction,
    InterpretResult,
    ShorthandString,
    StructuredOutput,
    ToolCall,
    UIOutput,
)
from respin.tools.registry import ToolRegistry, map_tool_name

ARG_KEYS = ("arguments", "args", "parameters", "payload", "data", "input", "options", "values")
FUNCTION_ARG_KEYS = ("arguments", "args", "parameters", "payload")
CONTROL_KEYS = frozenset(
    {
        "tool",
        "name",
        "type",
        "function",
        "tool_calls",
        "tools",
        "commands",
        "command",
        "ui",
        "image",
        "images",
        "audio",
        "tts",
        "voice",
        "speak",
    }
)
TEXT_KEYS = ("text", "message", "response", "reply", "caption", "description")
SHORTHAND_FIELDS = (
    ("image", "image"),
    ("images", "image"),
    ("audio", "tts"),
    ("tts", "tts"),
    ("voice", "voice"),
    ("speak", "tts"),
    ("ui", "ui"),
    ("command", "ui"),
)

IMAGE_ARG_FIELDS = ("prompt", "description", "text", "query", "input")
IMAGE_ORIGINAL_FIELDS = ("prompt", "description", "text")
TTS_ARG_FIELDS = ("text", "prompt", "speech", "say", "message", "content")
TTS_ORIGINAL_FIELDS = ("text", "speech", "message")
VOICE_FIELDS = ("text", "message", "prompt", "say", "response")


@dataclass(frozen=True)
class DispatchContext:
    """Where a value sits in the walk: the tool it feeds and how deep it is."""

    parent_tool: str | None = None
    depth: int = 0

    def descend(self, parent_tool: str | None = None) -> DispatchContext:
        return DispatchContext(parent_tool=parent_tool, depth=self.depth + 1)

    def deeper(self) -> DispatchContext:
        return DispatchContext(parent_tool=self.parent_tool, depth=self.depth + 1)


@dataclass
class _PassState:
    structured: StructuredOutput = field(default_factory=StructuredOutput)
    texts: list[str] = field(default_factory=list)
    handled: bool = False


@dataclass(frozen=True)
class _Invocation:
    """A tool that ran, and which shorthand fields of the source object it already used.

    Only shorthand fields are tracked. Text keys are always shown.
    """

    tool: str
    consumed: frozenset[str] = frozenset()


class Dispatcher:
    """Executes instructions against a :class:`ToolRegistry`."""

    def __init__(self, registry: ToolRegistry, *, max_depth: int = 64) -> None:
        self._registry = registry
        self._max_depth = max_depth

    async def dispatch(self, instructions: Sequence[Instruction], leftover_text: str = "") -> InterpretResult:
        state = _PassState()
        for instruction in instructions:
            await self._dispatch_instruction(instruction, state)
        return InterpretResult(
            handled=state.handled,
            text=compose_text(leftover_text, state.texts),
            structured=state.structured,
        )

    async def _dispatch_instruction(self, instruction: Instruction, state: _PassState) -> None:
        if isinstance(instruction, ToolCall):
            await self._process(instruction.call, DispatchContext(), state)
        elif isinstance(instruction, FenceBlock):
            await self._dispatch_fence(instruction, state)
        elif isinstance(instruction, ShorthandString):
            await self._process(instruction.text, DispatchContext(parent_tool=instruction.tool), state)
        elif isinstance(instruction, GenericCommand):
            logger.debug("dispatch.command tool={} position={}", instruction.tool, instruction.position)
            await self._process(instruction.value, DispatchContext(), state)
        else:
            logger.warning("dispatch.instruction.unknown type={}", type(instruction).__name__)

    async def _dispatch_fence(self, fence: FenceBlock, state: _PassState) -> None:
        content = fence.content
        if fence.kind == "voice":
            state.structured.voice.append(content)
        elif fence.kind == "image":
            await self._execute_tool("image", {"prompt": content}, content, state)
        elif fence.kind == "audio":
            await self._execute_tool("tts", {"text": content}, content, state)
        elif fence.kind == "ui":
            await self._execute_tool("ui", {"command": content}, content, state)
        else:
            await self._execute_tool(fence.kind, {"prompt": content}, content, state)

    async def _process(self, value: Any, context: DispatchContext, state: _PassState) -> None:
        if value is None:
            return
        if context.depth > self._max_depth:
            logger.warning("dispatch.depth_exceeded depth={} max_depth={}", context.depth, self._max_depth)
            return

        if isinstance(value, str | int | float | bool):
            await self._process_scalar(_scalar_text(value), context, state)
            return

        if isinstance(value, list | tuple):
            for item in value:
                await self._process(item, context.deeper(), state)
            return

        if not isinstance(value, Mapping):
            return

        parent = context.parent_tool
        if parent == "voice":
            voice_text = _pick_string(value.get(key) for key in VOICE_FIELDS)
            if voice_text:
                state.structured.voice.append(voice_text)
            return
        if parent:
            if await self._execute_tool(parent, extract_args(value), value, state):
                return

        await self._process_object(value, context, state)

    async def _process_scalar(self, text: str, context: DispatchContext, state: _PassState) -> None:
        if not text:
            return
        parent = context.parent_tool
        if parent is None:
            state.texts.append(text)
        elif parent == "voice":
            state.structured.voice.append(text)
        elif parent == "image":
            await self._execute_tool("image", {"prompt": text}, text, state)
        elif parent == "tts":
            await self._execute_tool("tts", {"text": text}, text, state)
        elif parent == "ui":
            await self._execute_tool("ui", {"command": text}, text, state)
        else:
            await self._execute_tool(parent, {"value": text}, text, state)

    async def _process_object(self, value: Mapping[str, Any], context: DispatchContext, state: _PassState) -> None:
        child = context.descend()

        for key in ("tool_calls", "tools"):
            entries = value.get(key)
            if isinstance(entries, list):
                for entry in entries:
                    await self._process(entry, child, state)

        commands = value.get("commands")
        if isinstance(commands, list):
            for command in commands:
                if isinstance(command, Mapping):
                    await self._process({"tool": "ui", **command}, child, state)
                elif isinstance(command, str):
                    await self._process({"tool": "ui", "command": command}, child, state)

        function = value.get("function")
        if isinstance(function, Mapping) and function.get("name"):
            payload = _first_present(function, FUNCTION_ARG_KEYS)
            await self._execute_tool(function["name"], parse_arg_payload(payload), function, state)

        if value.get("name") and any(value.get(key) for key in ("arguments", "args", "parameters")):
            payload = _first_present(value, ("arguments", "args", "parameters"))
            await self._execute_tool(value["name"], parse_arg_payload(payload), value, state)

        consumed: frozenset[str] = frozenset()
        tool = value.get("tool")
        if tool:
            if isinstance(tool, Mapping | list):
                await self._process(tool, child, state)
            else:
                invocation = await self._execute_tool(tool, extract_args(value), value, state)
                consumed = invocation.consumed if invocation else consumed
        elif value.get("type"):
            invocation = await self._execute_tool(value["type"], extract_args(value), value, state)
            consumed = invocation.consumed if invocation else consumed

        for key, parent_tool in SHORTHAND_FIELDS:
            if key in consumed or value.get(key) is None:
                continue
            await self._process(value[key], context.descend(parent_tool), state)

        for key in TEXT_KEYS:
            text = value.get(key)
            if isinstance(text, str) and text.strip():
                state.texts.append(text.strip())

    async def _execute_tool(
        self,
        name: Any,
        raw_args: Any,
        original: Any,
        state: _PassState,
    ) -> _Invocation | None:
        canonical = map_tool_name(name)
        if not canonical:
            return None
        if not self._registry.has(canonical):
            logger.debug("dispatch.tool.unknown name={}", name)
            return None

        if isinstance(raw_args, Mapping):
            args: dict[str, Any] = dict(raw_args)
        elif isinstance(raw_args, str):
            args = {"value": raw_args}
        else:
            args = {}

        consumed: set[str] = set()
        if canonical == "image":
            prompt = _resolve_primary(args, original, IMAGE_ARG_FIELDS, IMAGE_ORIGINAL_FIELDS)
            if not prompt:
                return None
            args["prompt"] = prompt
        elif canonical == "tts":
            text = _resolve_primary(args, original, TTS_ARG_FIELDS, TTS_ORIGINAL_FIELDS)
            if not text:
                return None
            args["text"] = text
        elif canonical == "ui":
            resolved = resolve_ui_command(args, original)
            if resolved is None:
                logger.debug("dispatch.ui.rejected args={}", args)
                return None
            command, verb = resolved
            args = {"command": command}
            if verb:
                args["verb"] = verb
            state.structured.ui.append(UIOutput(command=command))
            if isinstance(original, Mapping) and original.get("command") is not None:
                consumed.add("command")

        try:
            result = await self._registry.execute(canonical, args)
        except Exception:
            logger.exception("dispatch.tool.failed name={}", canonical)
            return None

        if result.image_url:
            state.structured.images.append(ImageOutput(url=result.image_url, prompt=args.get("prompt"), options=args))
        if result.audio_url:
            state.structured.audio.append(AudioOutput(url=result.audio_url, text=args.get("text"), options=args))
        if isinstance(result.text, str) and result.text.strip():
            state.texts.append(result.text)
        state.handled = True
        return _Invocation(tool=canonical, consumed=frozenset(consumed))


def parse_arg_payload(payload: Any) -> dict[str, Any]:
    """Normalize a tool-call argument payload into a mapping."""

    if payload is None:
        return {}
    if isinstance(payload, str):
        parsed = try_parse_json(payload)
        if isinstance(parsed, Mapping):
            return dict(parsed)
        if isinstance(parsed, list):
            return {"values": parsed}
        return {"prompt": payload}
    if isinstance(payload, Mapping):
        return dict(payload)
    if isinstance(payload, list | tuple):
        return {"values": list(payload)}
    return {}


def extract_args(source: Any) -> dict[str, Any]:
    """Arguments for a ``{tool, ...}`` object.

    An explicit argument container wins; otherwise every non-control,
    non-text key is an argument. ``text`` and an object ``command`` are
    still passed along when present.
    """

    if not isinstance(source, Mapping):
        return {}
    for key in ARG_KEYS:
        if source.get(key) is not None:
            parsed = parse_arg_payload(source[key])
            if parsed:
                return parsed

    args = {key: value for key, value in source.items() if key not in CONTROL_KEYS and key not in TEXT_KEYS}
    if source.get("text") is not None and args.get("text") is None:
        args["text"] = source["text"]
    if isinstance(source.get("command"), Mapping) and args.get("command") is None:
        args["command"] = source["command"]
    return args


def parse_command_string(value: str) -> Any:
    """JSON command, or ``action target...`` split on spaces."""

    trimmed = value.strip()
    if not trimmed:
        return None
    parsed = try_parse_json(trimmed)
    if parsed is not None:
        return parsed
    tokens = [part for part in trimmed.split(" ") if part.strip()]
    if not tokens:
        return None
    action, *rest = tokens
    command: dict[str, Any] = {"action": action}
    if rest:
        command["target"] = " ".join(rest)
    return command


def resolve_ui_command(args: Mapping[str, Any], original: Any) -> tuple[dict[str, str], str | None] | None:
    """Find a valid UI command in the tool arguments.

    String commands are parsed as JSON, then as ``action target...``; when
    neither validates, the phrase grammar gets a try.
    """

    command = args.get("command")
    if command is None and isinstance(original, Mapping):
        command = original.get("command")
    if command is None:
        command = args

    phrase: str | None = None
    if isinstance(command, str):
        phrase = command
        command = parse_command_string(command)
    elif not command or isinstance(command, list | tuple):
        source = original if isinstance(original, Mapping) else {}
        command = {
            key: args.get(key, source.get(key))
            for key in ("action", "target", "value")
            if args.get(key, source.get(key)) is not None
        }

    parsed = parse_command(command)
    if parsed is not None:
        return parsed.to_dict(), None

    if phrase:
        match = parse_phrase(phrase)
        if match is not None and parse_command(match.command) is not None:
            return dict(match.command), match.verb
    return None


def _resolve_primary(
    args: Mapping[str, Any],
    original: Any,
    arg_fields: Sequence[str],
    original_fields: Sequence[str],
) -> str | None:
    candidates: list[Any] = [args.get(key) for key in arg_fields]
    if isinstance(original, Mapping):
        candidates.extend(original.get(key) for key in original_fields)
    elif isinstance(original, str):
        candidates.append(original)
    return _pick_string(candidates)


def _pick_string(candidates: Any) -> str | None:
    for value in candidates:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _first_present(source: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if source.get(key) is not None:
            return source[key]
    return None


def _scalar_text(value: str | int | float | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
