#!/usr/bin/env python3
"""
Example MCP client for the perplexity-chat tool

Spawns the server over stdio and sends one query.

Usage:
    python examples/chat_client.py --model sonar --query "Tell me about quantum computing"
    python examples/chat_client.py -m sonar-pro -q "Explain neural networks" -t 0.9
"""
import argparse
import asyncio
import os
import sys
from pathlib import Path

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

ROOT = Path(__file__).resolve().parent.parent


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Send one query to the perplexity-chat tool.")
    parser.add_argument("--model", "-m", default="sonar", help="model to use")
    parser.add_argument("--query", "-q", default="What is the capital of France?", help="query to send")
    parser.add_argument("--temperature", "-t", type=float, default=0.7, help="temperature (0-2)")
    parser.add_argument("--max-tokens", "-mt", type=int, default=1000, help="maximum tokens to generate")
    parser.add_argument("--output-format", choices=["markdown", "json"], default="markdown")
    parser.add_argument("--server", "-s", default=str(ROOT / "run_server.py"), help="path to the server script")
    return parser.parse_args(argv)


async def run(args):
    print("Configuration:")
    print(f"- Model: {args.model}")
    print(f"- Query: {args.query}")
    print(f"- Temperature: {args.temperature}")
    print(f"- Max Tokens: {args.max_tokens}")
    print(f"- Server Script: {args.server}")
    print()

    params = StdioServerParameters(command=sys.executable, args=[args.server, "--stdio"], env=dict(os.environ))

    print("Connecting to MCP server...")
    async with stdio_client(params) as (read_stream, write_stream):
        async with ClientSession(read_stream, write_stream) as session:
            await session.initialize()
            print("Connected successfully.")

            print("Sending query to model...")
            result = await session.call_tool(
                "perplexity-chat",
                {
                    "model": args.model,
                    "messages": [{"role": "user", "content": args.query}],
                    "temperature": args.temperature,
                    "max_tokens": args.max_tokens,
                    "output_format": args.output_format,
                },
            )

    print("\nResponse:" + (" (error)" if result.isError else ""))
    for block in result.content:
        print(getattr(block, "text", block))


def main():
    try:
        asyncio.run(run(parse_args()))
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        print(f"Unhandled error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
