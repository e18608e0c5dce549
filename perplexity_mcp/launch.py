"""Launch context and transport mode selection.

The mode is decided once at startup from the command line and environment:
desktop hosts and inspectors launch the server over stdio, anything asking
for a port gets the streaming HTTP transport.
"""
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Sequence, Tuple

DEFAULT_PORT = 3000

_STDIO_FLAGS = ("--stdio", "--inspector")
_SSE_FLAGS = ("--sse", "--port", "-p")


class TransportMode(str, Enum):
    STDIO = "stdio"
    SSE = "sse"


@dataclass(frozen=True)
class LaunchContext:
    """Snapshot of how the process was started. ``argv`` excludes the program name."""
    argv: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_process(cls, argv: Optional[Sequence[str]] = None,
                     environ: Optional[Mapping[str, str]] = None) -> "LaunchContext":
        args = sys.argv[1:] if argv is None else argv
        env = os.environ if environ is None else environ
        return cls(argv=tuple(args), env=dict(env))

    def port(self, default: int = DEFAULT_PORT) -> int:
        """Listening port: --port N / --port=N / -p N, then $PORT, then ``default``."""
        args = self.argv
        for i, arg in enumerate(args):
            value = None
            if arg in ("--port", "-p") and i + 1 < len(args):
                value = args[i + 1]
            elif arg.startswith("--port="):
                value = arg.split("=", 1)[1]
            parsed = _parse_port(value)
            if parsed is not None:
                return parsed
        parsed = _parse_port(self.env.get("PORT"))
        return parsed if parsed is not None else default


def _parse_port(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        port = int(value)
    except ValueError:
        return None
    return port if 0 < port < 65536 else None


def select_mode(context: LaunchContext) -> TransportMode:
    args = context.argv
    if any(flag in args for flag in _STDIO_FLAGS):
        return TransportMode.STDIO
    if context.env.get("MCP_INSPECTOR"):
        return TransportMode.STDIO
    if any("--args=" in arg or "inspector" in arg for arg in args):
        return TransportMode.STDIO
    if any(arg in _SSE_FLAGS or arg.startswith("--port=") for arg in args):
        return TransportMode.SSE
    # Desktop hosts launch the server without any arguments
    if not args:
        return TransportMode.STDIO
    return TransportMode.SSE
