"""Central environment and configuration helpers for the lighterdash CLI."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional

from .engine import DEFAULT_API_BASE, EngineConfig

PACKAGE_DIR = Path(__file__).resolve().parent
SRC_DIR = PACKAGE_DIR.parent
PROJECT_ROOT = SRC_DIR.parent
DEFAULT_ENV_PATH = PROJECT_ROOT / ".env"

APP_DIR = Path.home() / ".lighterdash"

DEFAULT_TIMEOUT = 10.0
DEFAULT_LOG_LEVEL = "WARNING"


def ensure_directories(paths: Iterable[Path] = (APP_DIR,)) -> None:
    for path in paths:
        path.mkdir(parents=True, exist_ok=True)


def load_dotenv(path: Optional[Path] = None) -> None:
    """Load environment variables from a simple KEY=VALUE .env file."""
    env_path = Path(path or DEFAULT_ENV_PATH)
    if not env_path.exists():
        return

    for raw in env_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if (value.startswith("\"") and value.endswith("\"")) or (
            value.startswith("'") and value.endswith("'")
        ):
            value = value[1:-1]
        os.environ.setdefault(key, value)


def get_api_base(override: Optional[str] = None) -> str:
    """Return the trading-engine base URL without a trailing slash."""
    if override and override.strip():
        base = override.strip()
    else:
        base = os.environ.get("LIGHTERDASH_API_BASE", "").strip() or DEFAULT_API_BASE
    if not base.startswith(("http://", "https://")):
        raise ValueError(f"API base must be an http(s) URL, got '{base}'.")
    return base.rstrip("/")


def get_request_timeout() -> float:
    raw = os.environ.get("LIGHTERDASH_TIMEOUT")
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        raise ValueError("LIGHTERDASH_TIMEOUT must be a number of seconds.") from None
    if timeout <= 0:
        raise ValueError("LIGHTERDASH_TIMEOUT must be positive.")
    return timeout


def get_log_level() -> str:
    return os.environ.get("LIGHTERDASH_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL


def build_engine_config(api_base: Optional[str] = None) -> EngineConfig:
    return EngineConfig(api_base=get_api_base(api_base), timeout=get_request_timeout())
