"""HTTP collaborators for the Pollinations text, image and audio APIs."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping, Sequence
from typing import Any
from urllib import error as urllib_error
from urllib import parse as urllib_parse
from urllib import request as urllib_request

from loguru import logger

from respin.config import Settings
from respin.errors import TransportError

USER_AGENT = "respin/0.1"
MAX_RESPONSE_BYTES = 20_000_000


def _bool_param(value: Any) -> str:
    return "true" if value else "false"


class PollinationsClient:
    """Chat, image and speech client. Blocking I/O runs in a worker thread."""

    def __init__(
        self,
        *,
        text_base: str,
        image_base: str,
        referrer: str | None = None,
        timeout_seconds: int = 45,
    ) -> None:
        self.text_base = text_base.rstrip("/")
        self.image_base = image_base.rstrip("/")
        self.referrer = referrer
        self._timeout_seconds = timeout_seconds
        self._capabilities: dict[str, Any] | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> PollinationsClient:
        return cls(
            text_base=settings.text_api_base,
            image_base=settings.image_api_base,
            referrer=settings.referrer,
            timeout_seconds=settings.timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(
        self,
        *,
        model: str,
        messages: Sequence[Mapping[str, Any]],
        tools: Sequence[Mapping[str, Any]] | None = None,
        json: bool = False,
    ) -> Mapping[str, Any]:
        payload: dict[str, Any] = {"model": model, "messages": [dict(message) for message in messages]}
        if tools:
            payload["tools"] = [dict(tool) for tool in tools]
        if json:
            payload["response_format"] = {"type": "json_object"}
        if self.referrer:
            payload["referrer"] = self.referrer
        body, _ = await self._request(f"{self.text_base}/openai", payload=payload)
        return _decode_json(body)

    async def model_capabilities(self) -> dict[str, Any]:
        """Text model capabilities keyed by model name, fetched once."""
        if self._capabilities is not None:
            return self._capabilities
        body, _ = await self._request(f"{self.text_base}/models")
        data = _decode_json(body)
        capabilities: dict[str, Any] = {}
        entries = data if isinstance(data, list) else data.get("models", []) if isinstance(data, dict) else []
        for entry in entries:
            if isinstance(entry, Mapping) and entry.get("name"):
                capabilities[str(entry["name"])] = dict(entry)
        self._capabilities = capabilities
        return capabilities

    # ------------------------------------------------------------------
    # Image
    # ------------------------------------------------------------------

    def image_url(self, prompt: str, options: Mapping[str, Any]) -> str:
        """Direct image URL; fetching it renders the image."""
        params = self._image_params(options)
        params.pop("json", None)
        return self.authorize_url(f"{self.image_base}/prompt/{urllib_parse.quote(prompt, safe='')}?{urllib_parse.urlencode(params)}")

    def authorize_url(self, url: str) -> str:
        if not self.referrer or not url.startswith(self.image_base):
            return url
        parsed = urllib_parse.urlparse(url)
        query = dict(urllib_parse.parse_qsl(parsed.query))
        query.setdefault("referrer", self.referrer)
        return urllib_parse.urlunparse(parsed._replace(query=urllib_parse.urlencode(query)))

    async def generate(self, prompt: str, options: Mapping[str, Any]) -> str | bytes | Mapping[str, Any]:
        params = self._image_params(options)
        headers = {"Accept": "application/json"} if options.get("json") else {}
        url = f"{self.image_base}/prompt/{urllib_parse.quote(prompt, safe='')}?{urllib_parse.urlencode(params)}"
        body, content_type = await self._request(url, headers=headers)
        if "application/json" in content_type:
            data = _decode_json(body)
            if isinstance(data, Mapping) and data.get("url"):
                return data
            raise TransportError("image pending")
        return body

    def _image_params(self, options: Mapping[str, Any]) -> dict[str, str]:
        params: dict[str, str] = {}
        for key in ("model", "seed", "width", "height"):
            if options.get(key) is not None:
                params[key] = str(options[key])
        for key in ("nologo", "private", "enhance", "safe", "json"):
            if options.get(key) is not None:
                params[key] = _bool_param(options[key])
        if self.referrer:
            params["referrer"] = self.referrer
        return params

    # ------------------------------------------------------------------
    # Speech
    # ------------------------------------------------------------------

    async def synthesize(self, text: str, options: Mapping[str, Any]) -> bytes:
        params = {"model": str(options.get("model") or "openai-audio")}
        if options.get("voice"):
            params["voice"] = str(options["voice"])
        if self.referrer:
            params["referrer"] = self.referrer
        url = f"{self.text_base}/{urllib_parse.quote(text, safe='')}?{urllib_parse.urlencode(params)}"
        body, _ = await self._request(url)
        return body

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        url: str,
        *,
        payload: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> tuple[bytes, str]:
        return await asyncio.to_thread(self._request_sync, url, payload, dict(headers or {}))

    def _request_sync(self, url: str, payload: Mapping[str, Any] | None, headers: dict[str, str]) -> tuple[bytes, str]:
        headers.setdefault("User-Agent", USER_AGENT)
        data = None
        method = "GET"
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
            method = "POST"
        request = urllib_request.Request(url, data=data, headers=headers, method=method)  # noqa: S310
        logger.debug("http.request method={} url={}", method, url)
        try:
            with urllib_request.urlopen(request, timeout=self._timeout_seconds) as response:  # noqa: S310
                body = response.read(MAX_RESPONSE_BYTES)
                content_type = response.headers.get("Content-Type", "") or ""
        except urllib_error.HTTPError as exc:
            raise TransportError(f"http {exc.code}", status=exc.code) from exc
        except (urllib_error.URLError, OSError) as exc:
            raise TransportError(str(exc)) from exc
        return body, content_type


def _decode_json(body: bytes) -> Any:
    try:
        return json.loads(body.decode("utf-8", errors="replace"))
    except json.JSONDecodeError as exc:
        raise TransportError(f"invalid json response: {exc!s}") from exc
