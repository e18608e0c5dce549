"""Perplexity chat completions exposed as an MCP tool over stdio or SSE."""
__version__ = "0.1.1"
