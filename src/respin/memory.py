"""Memory store collaborator."""

from __future__ import annotations

from typing import Protocol

from loguru import logger


class MemoryStore(Protocol):
    def add_entry(self, text: str) -> None: ...

    def get_entries(self) -> list[str]: ...


class InMemoryMemoryStore:
    """Process-local memory; entries live as long as the store."""

    def __init__(self, entries: list[str] | None = None) -> None:
        self._entries: list[str] = list(entries or [])

    def add_entry(self, text: str) -> None:
        entry = text.strip()
        if not entry:
            return
        self._entries.append(entry)
        logger.info("memory.entry.added length={}", len(entry))

    def get_entries(self) -> list[str]:
        return list(self._entries)
