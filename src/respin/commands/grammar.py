"""Fallback grammar for plain-language UI commands.

Rules are tried in order and the first match wins. Later rules are more
general than earlier ones (``open the screensaver`` must hit the screensaver
rule before the generic verb/target click rule), so the order is part of the
grammar.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class PhraseMatch:
    """A grammar hit: a command mapping plus the verb that produced it."""

    rule: str
    command: dict[str, str]
    verb: str | None = None


@dataclass(frozen=True)
class PhraseRule:
    name: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str]], dict[str, str]]
    lowercase: bool = True
    verb_group: int | None = None


CLICK_VERBS = "click|press|activate|toggle|open|start|close|stop|pause|resume|play|save|copy|hide|show|exit|fullscreen"
SINGLE_VERBS = "pause|resume|play|save|copy|hide|show|exit|fullscreen"

RULES: tuple[PhraseRule, ...] = (
    PhraseRule(
        name="open_screensaver",
        pattern=re.compile(r"^(open|start)( the)? screensaver$"),
        build=lambda _m: {"action": "openScreensaver"},
    ),
    PhraseRule(
        name="close_screensaver",
        pattern=re.compile(r"^(close|stop)( the)? screensaver$"),
        build=lambda _m: {"action": "closeScreensaver"},
    ),
    PhraseRule(
        name="change_theme",
        pattern=re.compile(r"change theme to\s+(.+)"),
        build=lambda m: {"action": "changeTheme", "target": m.group(1).strip()},
    ),
    PhraseRule(
        name="change_model",
        pattern=re.compile(r"^(change|set|switch) model to (.+)$"),
        build=lambda m: {"action": "changeModel", "target": m.group(2).strip()},
    ),
    PhraseRule(
        name="set_value",
        pattern=re.compile(r"^set (?:the )?(.+?) to[:]?\s*(.+)$", re.IGNORECASE),
        build=lambda m: {"action": "setValue", "target": m.group(1).strip(), "value": (m.group(2) or "").strip()},
        lowercase=False,
    ),
    PhraseRule(
        name="verb_click",
        pattern=re.compile(rf"^({CLICK_VERBS}) (?:the )?(.+)$", re.IGNORECASE),
        build=lambda m: {"action": "click", "target": m.group(2).strip()},
        lowercase=False,
        verb_group=1,
    ),
    PhraseRule(
        name="single_verb",
        pattern=re.compile(rf"^({SINGLE_VERBS})$", re.IGNORECASE),
        build=lambda m: {"action": "click", "target": m.group(1)},
        lowercase=False,
    ),
)


def parse_phrase(text: str) -> PhraseMatch | None:
    """Match one spoken or typed phrase against the grammar."""

    if not isinstance(text, str):
        return None
    message = text.strip()
    if not message:
        return None
    lower = message.lower()

    for rule in RULES:
        subject = lower if rule.lowercase else message
        match = rule.pattern.match(subject) if rule.pattern.pattern.startswith("^") else rule.pattern.search(subject)
        if match is None:
            continue
        verb = match.group(rule.verb_group).lower() if rule.verb_group is not None else None
        return PhraseMatch(rule=rule.name, command=rule.build(match), verb=verb)
    return None
