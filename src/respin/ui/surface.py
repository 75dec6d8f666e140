"""Host UI surface protocol and a headless implementation."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger

WHITESPACE_RE = re.compile(r"\s+")


class UISurface(Protocol):
    """What the UI controller needs from the host page."""

    def find_element(self, phrase: str) -> Any | None: ...

    def click(self, element: Any) -> None: ...

    def set_value(self, element: Any, value: str) -> bool: ...

    def is_screensaver_active(self) -> bool: ...

    def set_theme(self, theme: str) -> None: ...

    def model_options(self) -> Sequence[tuple[str, str]]: ...

    def select_model(self, value: str) -> None: ...

    def announce(self, text: str) -> None: ...


def _normalize(text: str | None) -> str:
    return (text or "").strip().lower()


@dataclass(frozen=True)
class Element:
    """A clickable or editable control, described by its labels."""

    id: str = ""
    aria_label: str = ""
    title: str = ""
    text: str = ""
    has_value: bool = False

    def labels(self) -> list[str]:
        raw = (self.id.replace("-", " ").replace("_", " "), self.aria_label, self.title, self.text)
        return [label for label in (_normalize(item) for item in raw) if label]

    def voice_tags(self) -> set[str]:
        """Label variants tolerant of singular/plural wording."""
        tags: set[str] = set()
        for label in self.labels():
            tags.add(label)
            tags.add(label[:-1] if label.endswith("s") else f"{label}s")
        return tags


class ElementIndex:
    """Resolve natural-language phrases to elements.

    Lookup order: exact id (spaces become ``-``) or voice tag, then the
    singular form of a plural phrase, then substring containment either way
    against labels.
    """

    def __init__(self, elements: Iterable[Element] = ()) -> None:
        self._elements = list(elements)

    def add(self, element: Element) -> None:
        self._elements.append(element)

    def find(self, phrase: str) -> Element | None:
        norm = _normalize(phrase)
        if not norm:
            return None
        found = self._exact(norm)
        if found is None and norm.endswith("s"):
            found = self._exact(norm[:-1])
        if found is not None:
            return found

        for element in self._elements:
            texts = [*element.labels(), *sorted(element.voice_tags())]
            if any(text and (norm in text or text in norm) for text in texts):
                return element
        return None

    def _exact(self, norm: str) -> Element | None:
        element_id = WHITESPACE_RE.sub("-", norm)
        for element in self._elements:
            if element.id.lower() == element_id:
                return element
        for element in self._elements:
            if norm in element.voice_tags():
                return element
        return None


@dataclass
class HeadlessUISurface:
    """In-process surface that records every action it is asked to perform."""

    index: ElementIndex = field(default_factory=ElementIndex)
    models: list[tuple[str, str]] = field(default_factory=list)
    screensaver_active: bool = False
    theme: str | None = None
    selected_model: str | None = None
    values: dict[str, str] = field(default_factory=dict)
    actions: list[str] = field(default_factory=list)
    announcements: list[str] = field(default_factory=list)

    def find_element(self, phrase: str) -> Element | None:
        return self.index.find(phrase)

    def click(self, element: Element) -> None:
        if element.id == "toggle-screensaver":
            self.screensaver_active = not self.screensaver_active
        self.actions.append(f"click {element.id or element.text}")
        logger.debug("ui.surface.click element={}", element.id or element.text)

    def set_value(self, element: Element, value: str) -> bool:
        if not element.has_value:
            return False
        self.values[element.id] = value
        self.actions.append(f"set {element.id}={value}")
        return True

    def is_screensaver_active(self) -> bool:
        return self.screensaver_active

    def set_theme(self, theme: str) -> None:
        self.theme = theme
        self.actions.append(f"theme {theme}")

    def model_options(self) -> Sequence[tuple[str, str]]:
        return list(self.models)

    def select_model(self, value: str) -> None:
        self.selected_model = value
        self.actions.append(f"model {value}")

    def announce(self, text: str) -> None:
        self.announcements.append(text)
