"""Run validated UI commands against the host surface."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from loguru import logger

from respin.commands.grammar import parse_phrase
from respin.commands.validator import parse_command
from respin.ui.surface import UISurface

WHITESPACE_RE = re.compile(r"\s+")
OPEN_SCREENSAVER_REPLY = "Just a second, opening the screensaver."
CLOSE_SCREENSAVER_REPLY = "Closing the screensaver."
SCREENSAVER_TOGGLE = "toggle screensaver"


class UIController:
    """Executes ``UICommand`` mappings and announces what happened."""

    def __init__(self, surface: UISurface) -> None:
        self._surface = surface

    def execute(self, command: Mapping[str, Any], *, verb: str | None = None) -> bool:
        """Run one command. Returns ``False`` only when the command is invalid."""

        parsed = parse_command(command)
        if parsed is None:
            logger.warning("ui.command.invalid command={}", dict(command) if isinstance(command, Mapping) else command)
            return False

        logger.info("ui.command.start action={} target={}", parsed.action, parsed.target)
        if parsed.action == "openScreensaver":
            self._toggle_screensaver(want_active=True)
            self._surface.announce(OPEN_SCREENSAVER_REPLY)
        elif parsed.action == "closeScreensaver":
            self._toggle_screensaver(want_active=False)
            self._surface.announce(CLOSE_SCREENSAVER_REPLY)
        elif parsed.action == "changeTheme":
            self._change_theme(parsed.target or "")
        elif parsed.action == "changeModel":
            self._change_model(parsed.target or "")
        elif parsed.action == "setValue":
            self._set_value(parsed.target or "", parsed.value or "")
        else:
            self._click(parsed.target or "", verb=verb)
        return True

    def handle_phrase(self, text: str) -> bool:
        """Run a plain-language command (voice input). ``False`` if no rule matched."""

        match = parse_phrase(text)
        if match is None:
            return False
        return self.execute(match.command, verb=match.verb)

    def _toggle_screensaver(self, *, want_active: bool) -> None:
        if self._surface.is_screensaver_active() == want_active:
            return
        element = self._surface.find_element(SCREENSAVER_TOGGLE)
        if element is not None:
            self._surface.click(element)

    def _change_theme(self, target: str) -> None:
        theme = WHITESPACE_RE.sub("-", target.strip())
        self._surface.set_theme(theme)
        self._surface.announce(f"Theme changed to {theme}")

    def _change_model(self, target: str) -> None:
        desired = target.strip()
        for value, label in self._surface.model_options():
            if desired.lower() in label.lower():
                self._surface.select_model(value)
                self._surface.announce(f"Model changed to {label}.")
                return
        self._surface.announce(f"I couldn't find a model named {desired}.")

    def _set_value(self, target: str, value: str) -> None:
        element = self._surface.find_element(target)
        if element is not None and self._surface.set_value(element, value):
            self._surface.announce(f"{target} set to {value}.")
            return
        self._surface.announce(f"I couldn't find {target}.")

    def _click(self, target: str, *, verb: str | None) -> None:
        element = self._surface.find_element(target)
        if element is None and target == "screensaver":
            element = self._surface.find_element(verb or SCREENSAVER_TOGGLE)
        if element is None and verb:
            element = self._surface.find_element(f"{verb} {target}") or self._surface.find_element(verb)
        if element is None:
            self._surface.announce(f"I couldn't find {target}.")
            return
        self._surface.click(element)
        self._surface.announce(f"{target} activated.")
