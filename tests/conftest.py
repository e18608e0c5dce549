"""Shared fixtures: upstream bodies, fake transports, fake protocol servers."""
import asyncio
import json

import pytest

from perplexity_mcp.config import settings


def make_completion(contents=("Paris is the capital of France.",), citations=()):
    """Build an upstream chat completion body as a dict."""
    return {
        "id": "cmpl-123",
        "model": "sonar",
        "object": "chat.completion",
        "created": 1735689600,
        "usage": {"prompt_tokens": 12, "completion_tokens": 34, "total_tokens": 46},
        "citations": list(citations),
        "choices": [
            {
                "index": i,
                "finish_reason": "stop",
                "message": {"role": "assistant", "content": content},
            }
            for i, content in enumerate(contents)
        ],
    }


@pytest.fixture
def completion_body():
    def _body(contents=("Paris is the capital of France.",), citations=()):
        return json.dumps(make_completion(contents, citations))
    return _body


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setattr(settings, "perplexity_api_key", "pplx-test-key")
    return "pplx-test-key"


@pytest.fixture
def no_api_key(monkeypatch):
    monkeypatch.setattr(settings, "perplexity_api_key", "")


@pytest.fixture
def chat_args():
    return {"messages": [{"role": "user", "content": "What is the capital of France?"}]}


class FakeTransport:
    """Transport double recording what the session does to it."""

    def __init__(self, fail_on_close=False):
        self.delivered = []
        self.close_calls = 0
        self.fail_on_close = fail_on_close
        self.read_stream = None
        self.write_stream = None

    async def deliver(self, message):
        self.delivered.append(message)

    def close(self):
        self.close_calls += 1
        if self.fail_on_close:
            raise RuntimeError("close failed")


class FakeServer:
    """Protocol server double: records inbound messages and echoes them back."""

    def __init__(self, echo=False, fail=False):
        self.received = []
        self.echo = echo
        self.fail = fail
        self.started = asyncio.Event()

    def create_initialization_options(self):
        return None

    async def run(self, read_stream, write_stream, options):
        self.started.set()
        if self.fail:
            raise RuntimeError("server loop exploded")
        async for message in read_stream:
            self.received.append(message)
            if self.echo:
                await write_stream.send(message)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def fake_server():
    return FakeServer()
