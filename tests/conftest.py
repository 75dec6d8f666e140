from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from respin.config import Settings
from respin.core.interpreter import AppContext
from respin.memory import InMemoryMemoryStore
from respin.ui.surface import Element, ElementIndex, HeadlessUISurface


class FakeImages:
    def __init__(self, *, result: Any = None, fail: bool = False) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._result = result
        self._fail = fail

    async def generate(self, prompt: str, options: Mapping[str, Any]) -> Any:
        self.calls.append((prompt, dict(options)))
        if self._fail:
            raise RuntimeError("image backend down")
        if self._result is not None:
            return self._result
        return {"url": f"https://img.test/{prompt.replace(' ', '-')}"}

    @property
    def prompts(self) -> list[str]:
        return [prompt for prompt, _ in self.calls]


class FakeSpeech:
    def __init__(self) -> None:
        self.texts: list[str] = []

    async def synthesize(self, text: str, options: Mapping[str, Any]) -> bytes:
        self.texts.append(text)
        return b"mp3:" + text.encode("utf-8")


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, model="openai")


@pytest.fixture
def surface() -> HeadlessUISurface:
    elements = [
        Element(id="toggle-screensaver", aria_label="Toggle screensaver"),
        Element(id="console", aria_label="Console"),
        Element(id="ping"),
        Element(id="send-button", aria_label="Send message", text="Send"),
        Element(id="open-settings", aria_label="Settings"),
        Element(id="chat-input", aria_label="Message input", has_value=True),
    ]
    return HeadlessUISurface(index=ElementIndex(elements), models=[("openai", "OpenAI GPT-4o mini")])


@pytest.fixture
def images() -> FakeImages:
    return FakeImages()


@pytest.fixture
def speech() -> FakeSpeech:
    return FakeSpeech()


@pytest.fixture
def memory() -> InMemoryMemoryStore:
    return InMemoryMemoryStore()


@pytest.fixture
def context(
    settings: Settings,
    images: FakeImages,
    speech: FakeSpeech,
    surface: HeadlessUISurface,
    memory: InMemoryMemoryStore,
) -> AppContext:
    return AppContext(settings, images=images, speech=speech, surface=surface, memory=memory)
