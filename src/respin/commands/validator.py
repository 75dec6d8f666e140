"""Structured UI command validation."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError, model_validator

UIAction = Literal["openScreensaver", "closeScreensaver", "changeTheme", "changeModel", "setValue", "click"]

UI_ACTIONS: tuple[str, ...] = (
    "openScreensaver",
    "closeScreensaver",
    "changeTheme",
    "changeModel",
    "setValue",
    "click",
)
TARGET_REQUIRED: frozenset[str] = frozenset({"changeTheme", "changeModel", "click"})


class UICommand(BaseModel):
    """A UI command the model may ask the client to run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    action: UIAction
    target: StrictStr | None = None
    value: StrictStr | None = None

    @model_validator(mode="after")
    def _check_required_fields(self) -> UICommand:
        if self.action in TARGET_REQUIRED and self.target is None:
            raise ValueError(f"{self.action} requires a string target")
        if self.action == "setValue" and (self.target is None or self.value is None):
            raise ValueError("setValue requires string target and value")
        return self

    def to_dict(self) -> dict[str, str]:
        return self.model_dump(exclude_none=True)


def parse_command(candidate: Any) -> UICommand | None:
    """Return the validated command, or ``None`` when ``candidate`` is not one."""

    if not isinstance(candidate, Mapping):
        return None
    try:
        return UICommand.model_validate(dict(candidate))
    except ValidationError:
        return None


def validate_command(candidate: Any) -> bool:
    """Whether ``candidate`` is a well-formed UI command."""

    return parse_command(candidate) is not None


def schema() -> dict[str, Any]:
    """JSON schema advertised to the model for the ``ui`` tool's ``command``."""

    return {
        "type": "object",
        "properties": {
            "action": {"type": "string", "enum": list(UI_ACTIONS)},
            "target": {"type": "string"},
            "value": {"type": "string"},
        },
        "required": ["action"],
        "additionalProperties": False,
    }
