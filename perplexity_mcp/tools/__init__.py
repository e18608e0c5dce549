"""Tool system — registry, executor."""
from .registry import register_tool, get_tool, all_tools, ToolDef, ToolResult
from .executor import execute_tool

# Auto-import builtin tools to trigger @register_tool decorators
from .builtin import *  # noqa
