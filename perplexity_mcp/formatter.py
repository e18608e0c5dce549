"""Render upstream chat completion bodies as a markdown digest or pass them through raw."""
import json
import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from .protocol import ChatCompletion, ToolResult

logger = logging.getLogger(__name__)

REFERENCES_HEADING = "---\nReferences:"
NO_CITATIONS = "No citations available"
PREVIEW_CHARS = 500

INVALID_JSON_MESSAGE = (
    "Error: The API returned an invalid JSON response. "
    'Please try again with output_format set to "json" to see the raw response.'
)
SHAPE_MISMATCH_MESSAGE = (
    "There was an error converting the response to markdown, "
    'please try again but set the output_format to "json".'
)


@dataclass
class DecodeResult:
    """Outcome of decoding an upstream body: either ``completion`` or a failure ``reason``."""
    completion: Optional[ChatCompletion] = None
    reason: str = ""          # "invalid_json" | "shape_mismatch"
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.completion is not None


def decode_completion(body: str) -> DecodeResult:
    """Parse and shape-check an upstream body. Never raises."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, TypeError) as e:
        return DecodeResult(reason="invalid_json", detail=str(e))
    try:
        return DecodeResult(completion=ChatCompletion.model_validate(data))
    except ValidationError as e:
        return DecodeResult(reason="shape_mismatch", detail=f"{e.error_count()} validation error(s)")


def render_completion(completion: ChatCompletion) -> str:
    contents = "\n\n".join(
        choice.message.content for choice in completion.choices if choice.message.content
    )
    if completion.citations:
        citations = "\n".join(f"[{i}] {url}" for i, url in enumerate(completion.citations, start=1))
    else:
        citations = NO_CITATIONS
    return f"{contents}\n\n{REFERENCES_HEADING}\n{citations}".strip()


def format_response(output_format: str, body: str) -> ToolResult:
    """Format an upstream success body for the requested output format.

    ``json`` returns the body untouched. ``markdown`` returns the rendered
    digest, or an error-flagged diagnostic pointing at ``json`` when the body
    cannot be decoded into a chat completion.
    """
    if output_format != "markdown":
        return ToolResult(text=body)

    preview = body[:200] + ("..." if len(body) > 200 else "")
    logger.debug(f"Raw API response: {preview}")

    decoded = decode_completion(body)
    if decoded.ok:
        return ToolResult(text=render_completion(decoded.completion))

    if decoded.reason == "invalid_json":
        logger.error(f"Invalid JSON received from API: {decoded.detail}")
        return ToolResult.error(f"{INVALID_JSON_MESSAGE}\n\nPartial raw response: {body[:PREVIEW_CHARS]}")

    logger.error(f"Unexpected Perplexity response shape: {decoded.detail}")
    return ToolResult.error(SHAPE_MISMATCH_MESSAGE)
