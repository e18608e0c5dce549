"""Tool executor — validates arguments and runs handlers behind a fault-isolation boundary."""
import asyncio
import logging
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, ValidationError

from .registry import ToolDef, ToolResult, get_tool

logger = logging.getLogger(__name__)


def _describe_errors(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts)


async def execute_tool(tool_name: str, args: Optional[Dict[str, Any]], session=None) -> ToolResult:
    """Execute a registered tool by name.

    Unknown tools, invalid arguments and handler failures all come back as
    error-flagged results. When ``session`` is given, the handler runs as a
    task tracked by the session and shielded from the caller: if the session
    closes mid-call, the upstream call finishes in the background and its
    result is dropped.
    """
    tool = get_tool(tool_name)
    if not tool:
        logger.warning(f"Unknown tool: {tool_name}")
        return ToolResult.error(f"Unknown tool: {tool_name}")

    try:
        params = tool.input_model.model_validate(args or {})
    except ValidationError as e:
        logger.warning(f"Rejected {tool_name} call: {e.error_count()} validation error(s)")
        return ToolResult.error(f"Invalid arguments for {tool_name}: {_describe_errors(e)}")

    sid = session.session_id if session else "-"
    arg_str = ", ".join(sorted(params.model_dump(exclude_none=True)))
    logger.info(f"[{sid}] Executing tool: {tool_name}({arg_str})")
    t0 = time.monotonic()

    task = asyncio.create_task(_run_isolated(tool, params, session))
    if session is not None:
        session.track(task)
    try:
        result = await asyncio.shield(task)
    except asyncio.CancelledError:
        logger.info(f"[{sid}] Tool {tool_name} caller cancelled, upstream call left to finish")
        raise

    elapsed = time.monotonic() - t0
    logger.info(f"[{sid}] Tool {tool_name}: {elapsed:.1f}s -> {'error' if result.is_error else 'ok'}")
    return result


async def _run_isolated(tool: ToolDef, params: BaseModel, session) -> ToolResult:
    try:
        return await tool.handler(params, session=session)
    except Exception as e:
        logger.error(f"Tool {tool.name} failed: {e}", exc_info=True)
        return ToolResult.error(f"Tool {tool.name} failed: {type(e).__name__}: {e}")
