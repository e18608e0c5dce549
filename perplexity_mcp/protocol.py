"""Wire models: the perplexity-chat tool input, the upstream chat completion body, tool results."""
from dataclasses import dataclass
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant"]
RecencyFilter = Literal["month", "week", "day", "hour"]
OutputFormat = Literal["json", "markdown"]


@dataclass
class ToolResult:
    """Rendered outcome of a tool call. is_error marks a failed call, not a crashed session."""
    text: str = ""
    is_error: bool = False

    @classmethod
    def error(cls, text: str) -> "ToolResult":
        return cls(text=text, is_error=True)


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class ChatRequest(BaseModel):
    """Arguments of one perplexity-chat invocation. Immutable once validated."""
    model_config = ConfigDict(frozen=True)

    model: str = Field(
        "sonar",
        description="The name of the model to use (e.g. 'sonar', 'sonar-pro', 'sonar-reasoning', 'sonar-deep-research')",
    )
    messages: List[ChatMessage] = Field(..., min_length=1, description="The messages to send to the model")
    temperature: Optional[float] = Field(None, ge=0, le=2, description="Controls randomness (0-2)")
    max_tokens: Optional[int] = Field(None, ge=0, description="Maximum number of tokens to generate")
    top_p: Optional[float] = Field(None, ge=0, le=1, description="Controls diversity via nucleus sampling (0-1)")
    search_domain_filter: Optional[List[str]] = Field(None, description="Limit citations to specific domains")
    return_images: Optional[bool] = Field(None, description="Whether to return images in the response")
    return_related_questions: Optional[bool] = Field(None, description="Whether to return related questions")
    search_recency_filter: Optional[RecencyFilter] = Field(None, description="Filter search results by recency")
    top_k: Optional[int] = Field(None, description="Maximum number of search results to consider")
    stream: Optional[bool] = Field(None, description="Whether to stream the response")
    presence_penalty: Optional[float] = Field(
        None, description="Penalizes new tokens based on presence in the text so far",
    )
    frequency_penalty: Optional[float] = Field(
        None, description="Penalizes new tokens based on frequency in the text so far",
    )
    output_format: OutputFormat = Field("markdown", description="Format to return the response in")

    def upstream_payload(self) -> dict:
        """Request body for the upstream API: every provided field, nothing unset, no output_format."""
        return self.model_dump(exclude={"output_format"}, exclude_none=True)


# ── Upstream response ───────────────────────────────────────

class CompletionMessage(BaseModel):
    role: str
    content: str


class Usage(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class Choice(BaseModel):
    index: int
    finish_reason: Optional[str] = None
    message: CompletionMessage
    delta: Optional[CompletionMessage] = None


class ChatCompletion(BaseModel):
    id: str
    model: str
    created: Union[int, float]
    usage: Usage
    citations: List[str]
    object: Optional[str] = None
    choices: List[Choice]
