"""Split a raw model response into prose and ordered instructions."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from respin.core.json_repair import is_repaired_structure, repair_json
from respin.core.types import (
    FENCE_KINDS,
    ExtractedSegments,
    FenceBlock,
    GenericCommand,
    Instruction,
    ShorthandString,
    ToolCall,
)

FENCE = "```"
TRANSPARENT_FENCE_KINDS = frozenset({"", "json"})
EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
MAX_NESTING = 64
MAX_SECTION_CHARS = 32_768


@dataclass(frozen=True)
class JsonSection:
    start: int
    end: int
    value: Any


@dataclass(frozen=True)
class _Fence:
    start: int
    end: int
    kind: str
    content: str


def extract_segments(raw_text: Any, message: Mapping[str, Any] | None = None) -> ExtractedSegments:
    """Find fenced blocks, embedded JSON and out-of-band tool calls.

    Positions are offsets into ``raw_text``; ``tool_calls`` entries get
    negative positions so they run first, in array order.
    """

    text = raw_text if isinstance(raw_text, str) else ""
    instructions: list[Instruction] = []
    removed: list[tuple[int, int]] = []

    if text.strip():
        fences = _find_fences(text)
        protected: list[tuple[int, int]] = []
        for fence in fences:
            if fence.kind in FENCE_KINDS:
                removed.append((fence.start, fence.end))
                if fence.content:
                    instructions.append(FenceBlock(kind=fence.kind, content=fence.content, position=fence.start))
            elif fence.kind not in TRANSPARENT_FENCE_KINDS:
                protected.append((fence.start, fence.end))

        blocked = sorted([*removed, *protected])
        sections = _scan_json_sections(text, blocked)
        for section in sections:
            removed.append((section.start, section.end))
            instructions.append(GenericCommand(value=section.value, position=section.start))
        removed.extend(_emptied_fences(text, fences, sections))

    leftover = _cut(text, removed)
    leftover = EXCESS_NEWLINES_RE.sub("\n\n", leftover).strip()

    tool_calls = message.get("tool_calls") if isinstance(message, Mapping) else None
    if isinstance(tool_calls, list):
        for offset, call in enumerate(tool_calls, start=1):
            if isinstance(call, str):
                instructions.append(ShorthandString(text=call, position=-offset))
            else:
                instructions.append(ToolCall(call=call, position=-offset))

    return ExtractedSegments(instructions=_order(instructions), leftover_text=leftover)


def extract_json_sections(text: str) -> list[JsonSection]:
    """Balanced-bracket scan for JSON objects/arrays embedded in prose."""

    return _scan_json_sections(text, [])


def _order(instructions: list[Instruction]) -> list[Instruction]:
    # tool_calls carry -1, -2, ... in array order; run them first, in that order.
    out_of_band = [item for item in instructions if item.position < 0]
    in_text = sorted((item for item in instructions if item.position >= 0), key=lambda item: item.position)
    return [*out_of_band, *in_text]


def _find_fences(text: str) -> list[_Fence]:
    fences: list[_Fence] = []
    idx = 0
    while idx < len(text):
        fence_start = text.find(FENCE, idx)
        if fence_start == -1:
            break
        lang_line_end = text.find("\n", fence_start + len(FENCE))
        if lang_line_end == -1:
            break
        fence_end = text.find(FENCE, lang_line_end + 1)
        if fence_end == -1:
            break
        kind = text[fence_start + len(FENCE) : lang_line_end].strip().lower()
        content = text[lang_line_end + 1 : fence_end].strip()
        end = fence_end + len(FENCE)
        fences.append(_Fence(start=fence_start, end=end, kind=kind, content=content))
        idx = end
    return fences


def _scan_json_sections(text: str, blocked: list[tuple[int, int]]) -> list[JsonSection]:
    sections: list[JsonSection] = []
    # No candidate can close past the last closing bracket.
    last_closer = max(text.rfind("}"), text.rfind("]"))
    idx = 0
    length = len(text)
    while idx < last_closer:
        skip_to = _blocked_end(idx, blocked)
        if skip_to is not None:
            idx = skip_to
            continue
        char = text[idx]
        if char not in "{[":
            idx += 1
            continue

        limit = min(_next_block_start(idx, blocked, length), last_closer + 1, idx + MAX_SECTION_CHARS)
        end = _match_brackets(text, idx, limit)
        if end is None:
            # Never closed: treat the bracket as prose and keep looking.
            idx += 1
            continue

        snippet = text[idx:end]
        value = repair_json(snippet)
        if is_repaired_structure(value, snippet):
            sections.append(JsonSection(start=idx, end=end, value=value))
        idx = end
    return sections


def _match_brackets(text: str, start: int, limit: int) -> int | None:
    """End offset of the bracket group opened at ``start``, or None.

    The walk gives up at ``limit`` or once nesting passes ``MAX_NESTING``.
    """

    depth = 0
    in_string = False
    escape = False
    for idx in range(start, limit):
        char = text[idx]
        if escape:
            escape = False
        elif char == "\\" and in_string:
            escape = True
        elif char == '"':
            in_string = not in_string
        elif in_string:
            pass
        elif char in "{[":
            depth += 1
            if depth > MAX_NESTING:
                return None
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return idx + 1
    return None


def _next_block_start(idx: int, blocked: list[tuple[int, int]], default: int) -> int:
    for start, _ in blocked:
        if start > idx:
            return start
    return default


def _blocked_end(idx: int, blocked: list[tuple[int, int]]) -> int | None:
    for start, end in blocked:
        if start <= idx < end:
            return end
        if start > idx:
            break
    return None


def _cut(text: str, spans: list[tuple[int, int]]) -> str:
    parts: list[str] = []
    last = 0
    for start, end in sorted(spans):
        if start < last:
            continue
        parts.append(text[last:start])
        last = end
    parts.append(text[last:])
    return "".join(parts)


def _emptied_fences(text: str, fences: list[_Fence], sections: list[JsonSection]) -> list[tuple[int, int]]:
    """Transparent fences whose whole body was consumed as JSON sections."""

    emptied: list[tuple[int, int]] = []
    for fence in fences:
        if fence.kind not in TRANSPARENT_FENCE_KINDS:
            continue
        body_start = text.find("\n", fence.start + len(FENCE)) + 1
        body_end = fence.end - len(FENCE)
        inner = [(s.start, s.end) for s in sections if body_start <= s.start and s.end <= body_end]
        if inner and not _cut(text[:body_end], inner)[body_start:].strip():
            emptied.append((fence.start, fence.end))
    return emptied
