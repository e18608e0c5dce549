#!/usr/bin/env python3
"""
Perplexity MCP Server - launcher
Picks stdio or streaming HTTP (SSE) from the launch context, then hands off to the session manager
"""
import os
import sys

# Fix encoding issues on servers with ASCII locale
os.environ.setdefault('PYTHONIOENCODING', 'utf-8')

import asyncio
import logging
from perplexity_mcp.config import settings
from perplexity_mcp.launch import LaunchContext, TransportMode, select_mode
from perplexity_mcp.manager import SessionManager
from perplexity_mcp.server import create_server

# stdout belongs to the stdio transport; logs always go to stderr
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


async def run(context: LaunchContext):
    mode = select_mode(context)
    logger.info(f"Starting with arguments: {list(context.argv)}")
    logger.info(f"Environment: MCP_INSPECTOR={context.env.get('MCP_INSPECTOR')!r}, PORT={context.env.get('PORT')!r}")
    logger.info(f"Running in stdio mode: {'yes' if mode is TransportMode.STDIO else 'no'}")

    manager = SessionManager(create_server())
    await manager.run(mode, host=settings.host, port=context.port(settings.port))


def main():
    context = LaunchContext.from_process()
    try:
        asyncio.run(run(context))
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.error(f"Error starting server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
