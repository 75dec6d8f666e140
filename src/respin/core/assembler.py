"""Final text normalization, memory extraction and message assembly."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import replace

from loguru import logger

from respin.core.types import AssistantMessage, InterpretResult
from respin.memory import MemoryStore

EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
RULE_LINE_RE = re.compile(r"\n?^[ \t]*---[ \t]*$\n?", re.MULTILINE)
MEMORY_RE = re.compile(r"\[memory\]([\s\S]*?)\[/memory\]", re.IGNORECASE)
SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")


def normalize_text(text: str) -> str:
    """Collapse blank-line runs and give bare ``---`` rules room to render."""

    if not text:
        return ""
    text = EXCESS_NEWLINES_RE.sub("\n\n", text)
    text = RULE_LINE_RE.sub("\n\n---\n\n", text)
    return EXCESS_NEWLINES_RE.sub("\n\n", text).strip()


def compose_text(leftover: str, parts: Iterable[str]) -> str:
    """Join leftover prose with text produced while dispatching."""

    pieces: list[str] = []
    cleaned = EXCESS_NEWLINES_RE.sub("\n\n", leftover or "").strip()
    if cleaned:
        pieces.append(cleaned)
    extra = "\n\n".join(part for part in parts if part).strip()
    if extra:
        pieces.append(extra)
    return normalize_text("\n\n".join(pieces))


def split_sentences(text: str) -> list[str]:
    """Split text into sentences for the speech queue."""

    return [sentence for sentence in SENTENCE_BOUNDARY_RE.split(text or "") if sentence.strip()]


class ResponseAssembler:
    """Turns a dispatch result into what the transcript shows."""

    def __init__(self, memory: MemoryStore | None = None) -> None:
        self._memory = memory

    def assemble(self, result: InterpretResult) -> InterpretResult:
        """Strip ``[memory]`` spans (forwarding each to the store) and normalize."""

        text = self.extract_memories(result.text)
        return replace(result, text=normalize_text(text))

    def extract_memories(self, text: str) -> str:
        for match in MEMORY_RE.finditer(text):
            entry = match.group(1).strip()
            if not entry:
                continue
            if self._memory is None:
                logger.debug("memory.entry.dropped reason=no_store")
                continue
            try:
                self._memory.add_entry(entry)
            except Exception:
                logger.exception("memory.entry.failed")
        return MEMORY_RE.sub("", text).strip()

    def build_message(
        self,
        result: InterpretResult,
        *,
        image_urls: Iterable[str] = (),
        audio_urls: Iterable[str] = (),
        auto_speak: bool = False,
    ) -> AssistantMessage:
        """Merge content-part media with tool output into one transcript message."""

        images = [url for url in image_urls if url]
        images.extend(item.url for item in result.structured.images)
        audio = [url for url in audio_urls if url]
        audio.extend(item.url for item in result.structured.audio)

        speech: list[str] = []
        for voice_text in result.structured.voice:
            speech.extend(split_sentences(voice_text))
        if auto_speak and result.text:
            speech.extend(split_sentences(result.text))

        metadata = result.structured.to_dict() or None
        return AssistantMessage(
            content=result.text,
            image_urls=images,
            audio_urls=audio,
            metadata=metadata,
            speech=speech,
        )
