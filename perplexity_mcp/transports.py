"""Transports binding one session to the protocol server.

Both expose the same surface to the session manager: ``read_stream`` and
``write_stream`` for ``Server.run``, ``deliver()`` for inbound client
messages, and an idempotent ``close()``.
"""
import asyncio
import logging
import sys
from typing import AsyncIterator, Optional

import anyio
import mcp.types as types
from mcp.shared.message import SessionMessage
from pydantic import ValidationError

from .session import SessionClosedError

logger = logging.getLogger(__name__)

STDIN_LINE_LIMIT = 16 * 1024 * 1024  # bytes per JSON-RPC line


def serialize(message: SessionMessage) -> str:
    return message.message.model_dump_json(by_alias=True, exclude_none=True)


class StreamTransport:
    """Memory stream pair for one SSE connection: POST bodies in, SSE events out."""

    def __init__(self):
        self._inbound, self.read_stream = anyio.create_memory_object_stream(0)
        self.write_stream, self._outbound = anyio.create_memory_object_stream(0)
        self.closed = False

    async def deliver(self, message: SessionMessage):
        if self.closed:
            raise SessionClosedError("transport closed")
        try:
            await self._inbound.send(message)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
            raise SessionClosedError("transport closed") from e

    async def outbound(self) -> AsyncIterator[SessionMessage]:
        """Messages written by the server, until the transport closes."""
        try:
            async for message in self._outbound:
                yield message
        except anyio.ClosedResourceError:
            return

    def close(self):
        if self.closed:
            return
        self.closed = True
        # Closing the send sides ends both the server's read loop and the SSE event stream
        self._inbound.close()
        self.write_stream.close()


async def _connect_stdio():
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=STDIN_LINE_LIMIT)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    w_transport, w_protocol = await loop.connect_write_pipe(asyncio.streams.FlowControlMixin, sys.stdout)
    writer = asyncio.StreamWriter(w_transport, w_protocol, reader, loop)
    return reader, writer


class StdioTransport:
    """Newline-delimited JSON-RPC over the process's stdin/stdout.

    Errors on the standard channels are logged and swallowed; stdin EOF ends
    the inbound stream, which lets the server finish the session.
    """

    def __init__(self, reader: Optional[asyncio.StreamReader] = None, writer=None):
        self._reader = reader
        self._writer = writer
        self._inbound, self.read_stream = anyio.create_memory_object_stream(0)
        self.write_stream, self._outbound = anyio.create_memory_object_stream(0)
        self._reader_task: Optional[asyncio.Task] = None
        self._writer_task: Optional[asyncio.Task] = None
        self.closed = False

    async def start(self):
        if self._reader is None or self._writer is None:
            self._reader, self._writer = await _connect_stdio()
        self._reader_task = asyncio.create_task(self._pump_stdin(), name="stdio-reader")
        self._writer_task = asyncio.create_task(self._pump_stdout(), name="stdio-writer")

    async def deliver(self, message: SessionMessage):
        if self.closed:
            raise SessionClosedError("transport closed")
        await self._inbound.send(message)

    async def _pump_stdin(self):
        try:
            while not self.closed:
                try:
                    line = await self._reader.readline()
                except ValueError as e:
                    logger.warning(f"Dropping oversized stdin line: {e}")
                    continue
                if not line:
                    logger.info("stdin closed")
                    break
                if not line.strip():
                    continue
                try:
                    message = types.JSONRPCMessage.model_validate_json(line)
                except ValidationError as e:
                    logger.warning(f"Ignoring malformed message on stdin: {e.error_count()} error(s)")
                    continue
                await self.deliver(SessionMessage(message))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError, SessionClosedError):
            pass
        except Exception as e:
            logger.error(f"stdin transport error: {type(e).__name__}: {e}")
        finally:
            self._inbound.close()

    async def _pump_stdout(self):
        # Runs until the server's send side closes, so messages handed over before a close still go out
        try:
            async for message in self._outbound:
                try:
                    self._writer.write((serialize(message) + "\n").encode("utf-8"))
                    await self._writer.drain()
                except Exception as e:
                    logger.error(f"stdout transport error: {type(e).__name__}: {e}")
        except anyio.ClosedResourceError:
            pass

    async def flush(self, timeout: float):
        """Wait (bounded) for the stdout writer to finish after close."""
        task = self._writer_task
        if task is None or task.done():
            return
        _, pending = await asyncio.wait({task}, timeout=timeout)
        if pending:
            logger.warning(f"stdout writer still busy after {timeout}s, cancelling")
            task.cancel()

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
        self._inbound.close()
        self.write_stream.close()
