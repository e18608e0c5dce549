from pydantic import BaseModel
import os
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Load .env file if it exists (before reading os.getenv)
_env_path = Path(__file__).resolve().parent.parent / ".env"
if _env_path.exists():
    with open(_env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip().strip('"').strip("'")
                # Only set if not already in environment (env vars take precedence)
                if key not in os.environ:
                    os.environ[key] = value


def _sanitize_ascii(val: str) -> str:
    """Strip non-ASCII characters from config values (prevents header encoding errors)"""
    return val.encode('ascii', errors='ignore').decode('ascii').strip()


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}")
        return None


class Settings(BaseModel):
    # Upstream API (Perplexity chat completions)
    perplexity_api_key: str = _sanitize_ascii(os.getenv("PERPLEXITY_API_KEY", ""))
    perplexity_base_url: str = _sanitize_ascii(os.getenv("PERPLEXITY_BASE_URL", "https://api.perplexity.ai"))
    upstream_timeout: Optional[float] = _optional_float("PERPLEXITY_TIMEOUT")  # None = wait indefinitely

    # Streaming HTTP transport
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = 3000  # resolved from --port / PORT by launch.LaunchContext

    # Stdio transport
    heartbeat_interval: float = float(os.getenv("MCP_HEARTBEAT_INTERVAL", "30"))
    shutdown_timeout: float = float(os.getenv("MCP_SHUTDOWN_TIMEOUT", "5"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # MCP server identity
    server_name: str = "Perplexity MCP"
    server_version: str = "0.1.1"

settings = Settings()

# Log config for debugging
_key = '***' + settings.perplexity_api_key[-4:] if len(settings.perplexity_api_key) > 4 else 'EMPTY'
logger.info(f"Config: upstream → {settings.perplexity_base_url} (key={_key})")
