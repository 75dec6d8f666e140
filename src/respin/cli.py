"""Diagnostic CLI: run a raw model response through the interpreter."""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib import parse as urllib_parse

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from respin.clients.pollinations import PollinationsClient
from respin.commands.grammar import parse_phrase
from respin.config import load_settings
from respin.core.interpreter import AppContext, Interpreter
from respin.core.types import InterpretResult
from respin.logging_utils import configure_logging
from respin.ui.surface import Element, ElementIndex, HeadlessUISurface

app = typer.Typer(
    name="respin",
    help="Interpret multimodal chat responses into actions and display text.",
    add_completion=False,
    rich_markup_mode="rich",
)


@dataclass
class RecordingImageGenerator:
    """Offline image backend: answers with a URL and performs no request."""

    base: str
    prompts: list[str] = field(default_factory=list)

    async def generate(self, prompt: str, options: Mapping[str, Any]) -> Mapping[str, Any]:
        self.prompts.append(prompt)
        params = {key: str(value).lower() if isinstance(value, bool) else str(value) for key, value in options.items()}
        params.pop("json", None)
        return {"url": f"{self.base}/prompt/{urllib_parse.quote(prompt, safe='')}?{urllib_parse.urlencode(params)}"}


@dataclass
class RecordingSpeechSynthesizer:
    """Offline speech backend: returns the text bytes as a stand-in clip."""

    texts: list[str] = field(default_factory=list)

    async def synthesize(self, text: str, options: Mapping[str, Any]) -> bytes:
        self.texts.append(text)
        return text.encode("utf-8")


def default_surface() -> HeadlessUISurface:
    elements = [
        Element(id="toggle-screensaver", aria_label="Toggle screensaver"),
        Element(id="send-button", aria_label="Send message", text="Send"),
        Element(id="clear-chat", aria_label="Clear chat"),
        Element(id="open-settings", aria_label="Settings"),
        Element(id="open-personalization", aria_label="Personalization"),
        Element(id="voice-toggle", aria_label="Voice chat"),
        Element(id="chat-input", aria_label="Message input", has_value=True),
    ]
    return HeadlessUISurface(index=ElementIndex(elements), models=[("openai", "OpenAI GPT-4o mini")])


def _read_source(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _parse_raw(source: str) -> Any:
    stripped = source.strip()
    if stripped.startswith("{"):
        try:
            value = json.loads(stripped)
        except json.JSONDecodeError:
            return source
        if isinstance(value, dict) and ("content" in value or "tool_calls" in value):
            return value
    return source


def _render(console: Console, result: InterpretResult, surface: HeadlessUISurface) -> None:
    body = Text(result.text) if result.text else Text("(no text)", style="dim")
    console.print(Panel(body, title=f"handled={result.handled}"))
    structured = result.structured.to_dict()
    if structured:
        table = Table("kind", "detail")
        for kind, items in structured.items():
            for item in items:
                detail = item if isinstance(item, str) else json.dumps(item, ensure_ascii=False)
                table.add_row(kind, Text(detail))
        console.print(table)
    for action in surface.actions:
        console.print("[cyan]ui[/cyan]", Text(action))
    for announcement in surface.announcements:
        console.print("[green]say[/green]", Text(announcement))


@app.command("interpret")
def interpret_command(
    path: str = typer.Argument("-", help="File holding the raw response, or '-' for stdin"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    online: bool = typer.Option(False, "--online", help="Call the real image and speech APIs"),
) -> None:
    """Interpret one raw response against a headless UI."""

    configure_logging(profile="cli")
    settings = load_settings()
    surface = default_surface()
    if online:
        client = PollinationsClient.from_settings(settings)
        images: Any = client
        speech: Any = client
    else:
        images = RecordingImageGenerator(base=settings.image_api_base)
        speech = RecordingSpeechSynthesizer()

    try:
        raw = _parse_raw(_read_source(path))
    except OSError as exc:
        typer.echo(f"Cannot read {path}: {exc}", err=True)
        raise typer.Exit(1) from exc

    with AppContext(settings, images=images, speech=speech, surface=surface) as context:
        result = asyncio.run(Interpreter(context).interpret(raw))

    if as_json:
        payload = {
            "handled": result.handled,
            "text": result.text,
            "structured": result.structured.to_dict(),
            "ui_actions": list(surface.actions),
            "announcements": list(surface.announcements),
        }
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    _render(Console(), result, surface)


@app.command("phrase")
def phrase_command(text: str = typer.Argument(..., help="Plain-language UI command")) -> None:
    """Show how the phrase grammar reads TEXT."""

    match = parse_phrase(text)
    if match is None:
        typer.echo("no match")
        raise typer.Exit(1)
    verb = f" verb={match.verb}" if match.verb else ""
    typer.echo(f"{match.rule}: {json.dumps(match.command)}{verb}")


if __name__ == "__main__":
    app()
