"""Transport session manager — owns the session table and every session lifecycle.

Stdio mode runs one session for the life of the process; streaming mode
opens one session per SSE connection. Either way, shutdown closes every
session still open and a failing close never aborts the others.
"""
import asyncio
import logging
import signal
from typing import Optional

from .config import settings
from .launch import TransportMode
from .session import Session, SessionTable, current_session
from .transports import StdioTransport

logger = logging.getLogger(__name__)


def _log_loop_exception(loop, context):
    """Event loop exception handler: log and keep running."""
    exc = context.get("exception")
    message = context.get("message", "unhandled error")
    if exc is not None:
        logger.error(f"Unhandled exception in event loop: {message}", exc_info=exc)
    else:
        logger.error(f"Unhandled event loop error: {message}")


class SessionManager:

    def __init__(self, server):
        self.server = server
        self._sessions = SessionTable()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def lookup(self, session_id: Optional[str]) -> Optional[Session]:
        """Open session for ``session_id``, or None."""
        session = self._sessions.lookup(session_id)
        if session is None or not session.is_active:
            return None
        return session

    def open_session(self, transport) -> Session:
        """Register a session for ``transport`` and start serving the protocol on it."""
        session = Session(transport)
        self._sessions.register(session)
        session.server_task = asyncio.create_task(self._serve(session), name=f"mcp-session-{session.session_id}")
        session.activate()
        logger.info(f"[{session.session_id}] Session opened ({self.session_count} open)")
        return session

    async def _serve(self, session: Session):
        current_session.set(session)
        try:
            await self.server.run(
                session.transport.read_stream,
                session.transport.write_stream,
                self.server.create_initialization_options(),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[{session.session_id}] Server loop failed: {type(e).__name__}: {e}", exc_info=True)
        finally:
            self.close_session(session.session_id)

    def close_session(self, session_id: str) -> bool:
        """Remove the session and release its transport. Closing twice is a no-op."""
        session = self._sessions.unregister(session_id)
        if session is None:
            return False
        session.close()
        logger.info(f"[{session_id}] Session closed ({self.session_count} open)")
        return True

    async def shutdown(self, timeout: Optional[float] = None):
        """Close every open session, then wait (bounded) for their server tasks to stop."""
        sessions = list(self._sessions)
        if not sessions:
            return
        logger.info(f"Closing {len(sessions)} open session(s)...")
        for session in sessions:
            try:
                self.close_session(session.session_id)
            except Exception as e:
                logger.error(f"[{session.session_id}] Error closing session: {type(e).__name__}: {e}")

        tasks = [s.server_task for s in sessions if s.server_task is not None and not s.server_task.done()]
        if tasks:
            timeout = settings.shutdown_timeout if timeout is None else timeout
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                logger.warning(f"{len(pending)} session task(s) still running after {timeout}s")

    # ── run modes ───────────────────────────────────────────

    async def run(self, mode: TransportMode, host: str = "0.0.0.0", port: int = 3000):
        if mode is TransportMode.STDIO:
            await self.run_stdio()
        else:
            await self.run_http(host, port)

    async def run_stdio(self, transport: Optional[StdioTransport] = None, install_signal_handlers: bool = True):
        """Serve one session over stdin/stdout until EOF or a termination signal."""
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(_log_loop_exception)

        stop = asyncio.Event()
        if install_signal_handlers:
            self._install_signal_handlers(loop, stop)

        heartbeat = asyncio.create_task(self._heartbeat(settings.heartbeat_interval), name="heartbeat")
        transport = transport or StdioTransport()
        try:
            await transport.start()
            logger.info("Starting Perplexity MCP server with stdio transport...")
            session = self.open_session(transport)

            stop_waiter = asyncio.create_task(stop.wait())
            await asyncio.wait({session.server_task, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
            stop_waiter.cancel()
            logger.info("Shutting down...")
        finally:
            heartbeat.cancel()
            try:
                await heartbeat
            except asyncio.CancelledError:
                pass
            try:
                await self.shutdown()
                await transport.flush(settings.shutdown_timeout)
            except Exception as e:
                logger.error(f"Error during shutdown: {e}")
            if install_signal_handlers:
                self._remove_signal_handlers(loop)

    async def run_http(self, host: str, port: int):
        """Serve the streaming HTTP transport until uvicorn exits."""
        import uvicorn
        from .main import create_app

        config = uvicorn.Config(
            create_app(self),
            host=host,
            port=port,
            log_level=settings.log_level.lower(),
            timeout_graceful_shutdown=int(settings.shutdown_timeout),
        )
        server = uvicorn.Server(config)
        logger.info(f"Starting Perplexity MCP server on port {port}...")
        try:
            await server.serve()
        finally:
            await self.shutdown()

    async def _heartbeat(self, interval: float):
        """No-op tick independent of pending I/O. Cancelled first at shutdown."""
        while True:
            await asyncio.sleep(interval)
            logger.debug(f"Heartbeat: {self.session_count} open session(s)")

    def _install_signal_handlers(self, loop, stop: asyncio.Event):
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig, stop)
            except (NotImplementedError, RuntimeError):
                # Windows event loops, or not running in the main thread
                logger.debug(f"Signal handler for {sig.name} not installed")

    def _remove_signal_handlers(self, loop):
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass

    def _on_signal(self, sig, stop: asyncio.Event):
        logger.info(f"Received {sig.name}")
        stop.set()
