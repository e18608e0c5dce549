"""Tool registry — decorator-based tool registration and lookup."""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Type

from pydantic import BaseModel

from ..protocol import ToolResult

logger = logging.getLogger(__name__)


@dataclass
class ToolDef:
    name: str
    description: str
    input_model: Type[BaseModel]
    handler: Callable[..., Awaitable[ToolResult]]

    def input_schema(self) -> Dict[str, Any]:
        """JSON schema advertised in tools/list."""
        return self.input_model.model_json_schema()


_tools: Dict[str, ToolDef] = {}


def register_tool(name: str, input_model: Type[BaseModel], description: str = ""):
    """Decorator to register a tool function.

    The handler receives the validated ``input_model`` instance as its first
    argument and the calling session as the ``session`` keyword.
    """
    def decorator(func):
        tool = ToolDef(
            name=name,
            description=description or (func.__doc__ or "").strip(),
            input_model=input_model,
            handler=func,
        )
        _tools[name] = tool
        logger.info(f"Registered tool: {name}")
        return func
    return decorator


def get_tool(name: str) -> Optional[ToolDef]:
    return _tools.get(name)


def all_tools() -> Dict[str, ToolDef]:
    return dict(_tools)
