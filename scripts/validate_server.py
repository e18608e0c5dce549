#!/usr/bin/env python3
"""
Handshake check for the stdio transport

Starts the server as a child process, initializes an MCP client session and
lists the tools. Exits 0 when the handshake completes within TIMEOUT_S.

Usage:
    python scripts/validate_server.py
"""
import asyncio
import os
import sys
from pathlib import Path

import anyio
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

ROOT = Path(__file__).resolve().parent.parent
TIMEOUT_S = 5.0


async def validate() -> list:
    params = StdioServerParameters(
        command=sys.executable,
        args=[str(ROOT / "run_server.py"), "--stdio"],
        env=dict(os.environ),
    )
    with anyio.fail_after(TIMEOUT_S):
        async with stdio_client(params) as (read_stream, write_stream):
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()
                result = await session.list_tools()
    return [tool.name for tool in result.tools]


def main():
    print("Starting MCP server...")
    try:
        names = asyncio.run(validate())
    except TimeoutError:
        print(f"\n❌ Timeout waiting for server response ({TIMEOUT_S}s)")
        sys.exit(1)
    except Exception as e:
        print(f"\n❌ Server validation failed: {type(e).__name__}: {e}")
        sys.exit(1)

    print("\n✅ Server validation successful!")
    print(f"Found {len(names)} tool(s): {', '.join(names)}")
    if not names:
        sys.exit(1)


if __name__ == "__main__":
    main()
