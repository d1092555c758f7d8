from __future__ import annotations

# config/runtime.py
import os
from typing import Optional


def get_port(default: int = 10000) -> int:
    """
    Returns the port for the aiohttp status server.
    Hosting platforms provide $PORT; locally we fall back to 10000.
    """
    try:
        return int(os.getenv("PORT", str(default)))
    except ValueError:
        return default


def get_env_name(default: str = "dev") -> str:
    return os.getenv("ENV_NAME", default)


def get_bot_name(default: str = "LanPlay-ServerList") -> str:
    return os.getenv("BOT_NAME", default)


def get_bot_version(default: str = "dev") -> str:
    return os.getenv("BOT_VERSION", default)


def _coerce_int(value: Optional[str], fallback: int) -> int:
    try:
        if value is None:
            raise TypeError
        return int(value)
    except (TypeError, ValueError):
        return fallback


def get_command_prefix(default: str = ",") -> str:
    """Prefix that marks a chat message as a bot command."""

    return os.getenv("CMD_PREFIX") or default


def get_client_id() -> Optional[str]:
    """Application id used to print the OAuth invite link at startup."""

    value = (os.getenv("CLIENT_ID") or "").strip()
    return value or None


def get_typing_delay_ms(default: int = 200) -> int:
    """
    Milliseconds a command may run before the typing indicator is shown.

    Negative values are treated as zero (type immediately).
    """

    return max(0, _coerce_int(os.getenv("TYPING_DELAY_MS"), default))
