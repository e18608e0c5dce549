"""Perplexity chat completions adapter — one upstream call per invocation, failures as error results."""
import logging

import httpx

from .config import settings
from .formatter import format_response
from .protocol import ChatRequest, ToolResult

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"

MISSING_KEY_MESSAGE = (
    "Missing PERPLEXITY_API_KEY environment variable. "
    "If you're using Claude Desktop, add this to your claude_desktop_config.json file "
    "under the 'env' section. Example:\n\n"
    "{\n"
    '  "mcpServers": {\n'
    '    "perplexity": {\n'
    '      "command": "perplexity-mcp",\n'
    '      "args": ["--stdio"],\n'
    '      "env": {\n'
    '        "PERPLEXITY_API_KEY": "your-api-key-here"\n'
    "      }\n"
    "    }\n"
    "  }\n"
    "}"
)


def _get_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.perplexity_base_url,
        timeout=settings.upstream_timeout,
    )


async def perplexity_chat(request: ChatRequest) -> ToolResult:
    """Run one chat completion against the upstream API and render the outcome."""
    api_key = settings.perplexity_api_key
    if not api_key:
        logger.error("Missing PERPLEXITY_API_KEY environment variable")
        return ToolResult.error(MISSING_KEY_MESSAGE)

    payload = request.upstream_payload()
    logger.info(f"Making request to Perplexity API with model: {request.model}")

    try:
        async with _get_client() as client:
            resp = await client.post(
                CHAT_COMPLETIONS_PATH,
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
            )
    except httpx.RequestError as e:
        message = str(e) or type(e).__name__
        logger.error(f"Error calling Perplexity API: {message}")
        return ToolResult.error(f"Error calling Perplexity API: {message}")

    body = resp.text
    if not resp.is_success:
        logger.error(f"Perplexity API error ({resp.status_code}): {body[:500]}")
        return ToolResult.error(f"Perplexity API error ({resp.status_code}): {body}")

    logger.info(f"Received response from Perplexity API (length: {len(body)} chars)")
    return format_response(request.output_format, body)
