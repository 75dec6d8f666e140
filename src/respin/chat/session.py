"""Chat-send flow: build the request, call the model, interpret the reply."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from loguru import logger

from respin.clients.base import ChatClient
from respin.core.interpreter import AppContext, Interpreter, flatten_content
from respin.core.types import AssistantMessage
from respin.errors import ModelNotConfiguredError

NO_MODEL_REPLY = "Error: No model selected."
FAILED_REPLY = "Error: Failed to get a response."
MEMORY_PREAMBLE = "Relevant memory:"
MEMORY_SUFFIX = "Use it in your response."

ROLE_MAP = {"ai": "assistant", "assistant": "assistant", "user": "user", "system": "system"}


@dataclass(frozen=True)
class HistoryMessage:
    """One transcript entry as the host keeps it."""

    role: str
    content: Any


class ChatSession:
    """Sends the transcript to the chat model and turns its reply into a message."""

    def __init__(self, context: AppContext) -> None:
        self._context = context
        self._interpreter = Interpreter(context)

    @property
    def interpreter(self) -> Interpreter:
        return self._interpreter

    def build_messages(
        self,
        history: Sequence[HistoryMessage | Mapping[str, Any]],
        user_text: str | None = None,
    ) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        instructions = self._context.settings.read_instructions()
        if instructions:
            messages.append({"role": "system", "content": instructions})

        memories = [entry for entry in self._context.memory.get_entries() if entry.strip()]
        if memories:
            memory_block = "\n".join(memories)
            messages.append({"role": "system", "content": f"{MEMORY_PREAMBLE}\n{memory_block}\n{MEMORY_SUFFIX}"})

        size = self._context.settings.history_size
        recent = list(history)[-size:] if size > 0 else []
        for entry in recent:
            role, content = _entry_fields(entry)
            mapped = ROLE_MAP.get(role)
            if mapped is None or not _has_content(content):
                continue
            messages.append({"role": mapped, "content": content})

        if user_text and user_text.strip():
            messages.append({"role": "user", "content": user_text.strip()})
        return messages

    async def send(
        self,
        history: Sequence[HistoryMessage | Mapping[str, Any]],
        user_text: str | None = None,
    ) -> AssistantMessage:
        """Run one request/response round and return the transcript message."""

        settings = self._context.settings
        try:
            model, chat = self._require_model()
        except ModelNotConfiguredError as exc:
            logger.warning("chat.send.skipped reason={}", exc)
            return AssistantMessage(content=NO_MODEL_REPLY, error=True)

        messages = self.build_messages(history, user_text)
        request: dict[str, Any] = {"model": model, "messages": messages}
        if await self._supports_tools(model):
            request["tools"] = self._context.registry.model_tools()
            request["json"] = True

        logger.info("chat.send.start model={} messages={} tools={}", model, len(messages), "tools" in request)
        try:
            response = await chat.chat(**request)
        except Exception:
            logger.exception("chat.send.failed model={}", model)
            return AssistantMessage(content=FAILED_REPLY, error=True)

        message = _first_message(response)
        content = flatten_content(message.get("content"))
        result = await self._interpreter.interpret(content.text, message)
        reply = self._interpreter.assembler.build_message(
            result,
            image_urls=content.image_urls,
            audio_urls=content.audio_urls,
            auto_speak=settings.auto_speak,
        )
        logger.info("chat.send.done handled={} length={}", result.handled, len(reply.content))
        return reply

    def _require_model(self) -> tuple[str, ChatClient]:
        if not self._context.settings.model:
            raise ModelNotConfiguredError("no chat model selected")
        if self._context.chat is None:
            raise ModelNotConfiguredError("no chat client configured")
        return self._context.settings.model, self._context.chat

    async def _supports_tools(self, model: str) -> bool:
        capabilities = getattr(self._context.chat, "model_capabilities", None)
        if not callable(capabilities):
            return False
        try:
            models = await capabilities()
        except Exception:
            logger.warning("chat.capabilities.unavailable model={}", model)
            return False
        info = models.get(model) if isinstance(models, Mapping) else None
        return bool(isinstance(info, Mapping) and info.get("tools"))


def _entry_fields(entry: HistoryMessage | Mapping[str, Any]) -> tuple[str, Any]:
    if isinstance(entry, HistoryMessage):
        return entry.role, entry.content
    return str(entry.get("role", "")), entry.get("content")


def _has_content(content: Any) -> bool:
    if isinstance(content, str):
        return bool(content.strip())
    if isinstance(content, list):
        return bool(content)
    return False


def _first_message(response: Any) -> Mapping[str, Any]:
    """The assistant message from an OpenAI-style chat completion."""

    if not isinstance(response, Mapping):
        return {"content": ""}
    choices = response.get("choices")
    if isinstance(choices, list) and choices:
        first = choices[0]
        if isinstance(first, Mapping) and isinstance(first.get("message"), Mapping):
            return first["message"]
    if "content" in response or "tool_calls" in response:
        return response
    return {"content": ""}
