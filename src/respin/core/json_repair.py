"""Best-effort recovery of near-JSON model output."""

from __future__ import annotations

import json
import re
from typing import Any

UNQUOTED_KEY_RE = re.compile(r"([,{]\s*)([A-Za-z0-9_]+)\s*:")
TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def repair_json(raw: Any) -> Any:
    """Parse ``raw`` as JSON, retrying with common model-output fixes.

    Never raises. When nothing parses, the trimmed input comes back wrapped as
    ``{"text": trimmed}``; use :func:`is_repaired_structure` to tell that
    fallback apart from a real object.
    """

    if not isinstance(raw, str):
        return {"text": ""}
    text = raw.strip()
    if not text:
        return {"text": ""}

    attempts = (
        text,
        text.replace("'", '"'),
        TRAILING_COMMA_RE.sub(r"\1", UNQUOTED_KEY_RE.sub(r'\1"\2":', text).replace("'", '"')),
    )
    for candidate in attempts:
        try:
            return json.loads(candidate)
        except (ValueError, RecursionError):
            continue
    return {"text": text}


def is_repaired_structure(value: Any, raw: str) -> bool:
    """Whether ``value`` is a genuine object/array rather than the prose fallback."""

    if isinstance(value, list):
        return True
    if not isinstance(value, dict):
        return False
    return not (len(value) == 1 and value.get("text") == raw.strip())


def try_parse_json(raw: Any) -> Any | None:
    """Return the repaired object/array for ``raw``, or ``None`` for plain text."""

    if not isinstance(raw, str):
        return None
    trimmed = raw.strip()
    if not trimmed:
        return None
    value = repair_json(trimmed)
    if is_repaired_structure(value, trimmed):
        return value
    return None
