"""perplexity-chat tool — web-grounded chat completion through the Perplexity API."""
from ...perplexity import perplexity_chat
from ...protocol import ChatRequest
from ..registry import register_tool, ToolResult


@register_tool(
    "perplexity-chat",
    input_model=ChatRequest,
    description=(
        "Generate a chat completion with the Perplexity API. Answers are grounded in "
        "live web search and returned with a numbered list of citations."
    ),
)
async def perplexity_chat_tool(request: ChatRequest, session=None, **kwargs) -> ToolResult:
    return await perplexity_chat(request)
