"""Tools package for respin."""

from .builtin import register_builtin_tools
from .registry import ToolDescriptor, ToolRegistry, map_tool_name

__all__ = ["ToolDescriptor", "ToolRegistry", "map_tool_name", "register_builtin_tools"]
