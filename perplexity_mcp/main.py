"""Streaming HTTP transport — one SSE stream per session plus the POST command endpoint."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import mcp.types as types
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from mcp.shared.message import SessionMessage
from pydantic import ValidationError
from sse_starlette.sse import EventSourceResponse

from .config import settings
from .session import SessionClosedError
from .transports import StreamTransport, serialize

logger = logging.getLogger(__name__)

MESSAGES_PATH = "/messages"


async def _event_stream(manager, session):
    """SSE events for one session: the endpoint announcement, then every server message."""
    try:
        yield {"event": "endpoint", "data": f"{MESSAGES_PATH}?sessionId={session.session_id}"}
        async for message in session.transport.outbound():
            yield {"event": "message", "data": serialize(message)}
    finally:
        manager.close_session(session.session_id)


def create_app(manager) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await manager.shutdown()

    app = FastAPI(title=settings.server_name, version=settings.server_version, lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.state.manager = manager

    @app.get("/health")
    async def health():
        return {"ok": True, "sessions": manager.session_count}

    @app.get("/sse")
    async def sse():
        try:
            session = manager.open_session(StreamTransport())
        except Exception as e:
            logger.error(f"Error establishing SSE connection: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail="Failed to establish SSE connection")
        return EventSourceResponse(_event_stream(manager, session))

    @app.post(MESSAGES_PATH)
    async def post_message(request: Request, session_id: Optional[str] = Query(None, alias="sessionId")):
        session = manager.lookup(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")

        body = await request.body()
        try:
            message = types.JSONRPCMessage.model_validate_json(body)
        except ValidationError as e:
            logger.warning(f"[{session.session_id}] Could not parse message: {e.error_count()} error(s)")
            raise HTTPException(status_code=400, detail="Could not parse message")

        try:
            await session.deliver(SessionMessage(message))
        except SessionClosedError:
            raise HTTPException(status_code=404, detail="Session not found")
        except Exception as e:
            logger.error(f"[{session.session_id}] Error handling message: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail="Failed to handle message")
        return PlainTextResponse("Accepted", status_code=202)

    return app
