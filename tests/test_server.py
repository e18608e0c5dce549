"""End-to-end tests for perplexity_mcp/server.py over an in-memory MCP client session."""
from unittest.mock import patch

import httpx
import mcp.types as types
import pytest
from mcp.shared.memory import create_connected_server_and_client_session

from perplexity_mcp.server import create_server

QUESTION = {"messages": [{"role": "user", "content": "What is the capital of France?"}]}


class TestWiring:
    def test_handlers_registered(self):
        server = create_server()
        assert types.ListToolsRequest in server.request_handlers
        assert types.CallToolRequest in server.request_handlers


class TestListTools:
    @pytest.mark.asyncio
    async def test_advertises_chat_tool(self):
        async with create_connected_server_and_client_session(create_server()) as client:
            result = await client.list_tools()
        assert [t.name for t in result.tools] == ["perplexity-chat"]
        schema = result.tools[0].inputSchema
        assert schema["required"] == ["messages"]
        assert "temperature" in schema["properties"]


class TestCallTool:
    @pytest.mark.asyncio
    async def test_missing_key_is_error_result(self, no_api_key):
        async with create_connected_server_and_client_session(create_server()) as client:
            result = await client.call_tool("perplexity-chat", QUESTION)
        assert result.isError is True
        assert "PERPLEXITY_API_KEY" in result.content[0].text

    @pytest.mark.asyncio
    async def test_markdown_answer(self, api_key, completion_body):
        body = completion_body(citations=("https://en.wikipedia.org/wiki/Paris",))

        def client_factory():
            return httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(200, text=body)),
                base_url="https://api.perplexity.ai",
            )

        with patch("perplexity_mcp.perplexity._get_client", side_effect=client_factory):
            async with create_connected_server_and_client_session(create_server()) as client:
                result = await client.call_tool("perplexity-chat", QUESTION)

        assert result.isError is False
        assert result.content[0].type == "text"
        assert result.content[0].text == (
            "Paris is the capital of France.\n\n---\nReferences:\n[1] https://en.wikipedia.org/wiki/Paris"
        )

    @pytest.mark.asyncio
    async def test_upstream_error_is_error_result(self, api_key):
        def client_factory():
            return httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(429, text="rate limited")),
                base_url="https://api.perplexity.ai",
            )

        with patch("perplexity_mcp.perplexity._get_client", side_effect=client_factory):
            async with create_connected_server_and_client_session(create_server()) as client:
                result = await client.call_tool("perplexity-chat", QUESTION)

        assert result.isError is True
        assert result.content[0].text == "Perplexity API error (429): rate limited"
