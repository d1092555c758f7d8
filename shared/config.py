"""Runtime configuration helpers for the server list bot."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Dict, FrozenSet, Optional

from config import runtime as _runtime
from shared.redaction import mask_secret, sanitize_text

__all__ = [
    "ConfigError",
    "reload_config",
    "get_env_name",
    "get_bot_name",
    "get_bot_version",
    "get_discord_token",
    "get_command_prefix",
    "get_client_id",
    "get_source_channel_id",
    "get_admin_ids",
    "is_admin",
    "get_sweep_interval_sec",
    "get_probe_timeout_sec",
    "get_probe_max_in_flight",
    "get_list_delete_after_sec",
    "get_typing_delay_ms",
    "get_port",
    "get_log_level",
]

log = logging.getLogger("lanplay.config")

# ===== Config Schema (authoritative) =====
_REQUIRED_ENV = (
    "BOT_TOKEN",
    "SOURCE_CHANNEL_ID",
)

_SECRET_KEYS = {"BOT_TOKEN"}
_MISSING_VALUE = "—"
_INT_RE = re.compile(r"^\d+$")

_CONFIG: Dict[str, object] = {}


class ConfigError(RuntimeError):
    """Raised when the environment cannot produce a usable configuration."""


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or str(value).strip() == "":
        raise ConfigError(f"Missing required environment variable: {name}")
    return value


def _int_env(
    key: str,
    default: int,
    *,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    """Parse an optional integer environment variable defensively."""

    raw = os.getenv(key)
    if raw is None:
        return default

    text = str(raw).strip()
    if not text:
        return default

    try:
        value = int(text)
    except ValueError:
        log.warning("config: %s='%s' invalid; using default %s", key, text, default)
        return default

    if min_value is not None and value < min_value:
        log.warning("config: %s=%s < min %s; clamping", key, value, min_value)
        value = min_value

    if max_value is not None and value > max_value:
        log.warning("config: %s=%s > max %s; clamping", key, value, max_value)
        value = max_value

    return value


def _float_env(
    key: str,
    default: float,
    *,
    min_value: float | None = None,
) -> float:
    raw = os.getenv(key)
    if raw is None:
        return default

    text = str(raw).strip()
    if not text:
        return default

    try:
        value = float(text)
    except ValueError:
        log.warning("config: %s='%s' invalid; using default %s", key, text, default)
        return default

    if min_value is not None and value < min_value:
        log.warning("config: %s=%s < min %s; clamping", key, value, min_value)
        value = min_value

    return value


def _source_channel_id() -> int:
    text = _require_env("SOURCE_CHANNEL_ID").strip()
    if not _INT_RE.match(text) or int(text) <= 0:
        raise ConfigError(f"SOURCE_CHANNEL_ID must be a numeric channel id, got {text!r}")
    return int(text)


def _admin_ids(raw: str | None) -> FrozenSet[int]:
    """Parse ``ADMINS`` as a JSON array of user ids (strings or numbers)."""

    if raw is None or not raw.strip():
        return frozenset()
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ConfigError(f"ADMINS must be a JSON array of user ids: {exc}") from exc
    if not isinstance(data, list):
        raise ConfigError("ADMINS must be a JSON array of user ids")

    ids: set[int] = set()
    for item in data:
        text = str(item).strip()
        if isinstance(item, bool) or not _INT_RE.match(text):
            log.warning("config: ignoring non-numeric admin id %r", item)
            continue
        ids.add(int(text))
    return frozenset(ids)


def _redact_value(key: str, value: object) -> str:
    """Best-effort redaction for import-time logging."""

    if value in (None, "", [], (), {}, frozenset()):
        return _MISSING_VALUE

    key_upper = str(key).upper()
    if key_upper in _SECRET_KEYS or "TOKEN" in key_upper:
        return mask_secret(str(value).strip())

    if key_upper == "ADMINS":
        ids = sorted(value)  # type: ignore[arg-type]
        if len(ids) <= 3:
            return ", ".join(str(v) for v in ids)
        return f"{len(ids)} ids"

    return str(sanitize_text(value))


def _log_snapshot(snapshot: Dict[str, object]) -> None:
    redacted = {key: _redact_value(key, value) for key, value in snapshot.items()}
    log.info("config loaded", extra={"config": json.dumps(redacted, ensure_ascii=False)})


def _load_config() -> Dict[str, object]:
    return {
        "PORT": _runtime.get_port(),
        "BOT_NAME": _runtime.get_bot_name(),
        "BOT_VERSION": _runtime.get_bot_version(),
        "ENV_NAME": _runtime.get_env_name(),
        "BOT_TOKEN": (os.getenv("BOT_TOKEN") or "").strip(),
        "CMD_PREFIX": _runtime.get_command_prefix(),
        "CLIENT_ID": _runtime.get_client_id(),
        "SOURCE_CHANNEL_ID": _source_channel_id(),
        "ADMINS": _admin_ids(os.getenv("ADMINS")),
        "SWEEP_INTERVAL_SEC": _int_env("SWEEP_INTERVAL_SEC", 300, min_value=10),
        "PROBE_TIMEOUT_SEC": _float_env("PROBE_TIMEOUT_SEC", 20.0, min_value=1.0),
        "PROBE_MAX_IN_FLIGHT": _int_env("PROBE_MAX_IN_FLIGHT", 64, min_value=1),
        "LIST_DELETE_AFTER_SEC": _int_env("LIST_DELETE_AFTER_SEC", 300, min_value=0),
        "TYPING_DELAY_MS": _runtime.get_typing_delay_ms(),
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
    }


def reload_config() -> Dict[str, object]:
    """Reload configuration from environment and return a snapshot."""

    for _name in _REQUIRED_ENV:
        _require_env(_name)

    snapshot = _load_config()

    global _CONFIG
    _CONFIG = snapshot
    _log_snapshot(snapshot)
    return dict(_CONFIG)


reload_config()


def get_env_name(default: str = "dev") -> str:
    value = _CONFIG.get("ENV_NAME")
    return str(value) if isinstance(value, str) and value else default


def get_bot_name(default: str = "LanPlay-ServerList") -> str:
    value = _CONFIG.get("BOT_NAME")
    return str(value) if isinstance(value, str) and value else default


def get_bot_version(default: str = "dev") -> str:
    value = _CONFIG.get("BOT_VERSION")
    return str(value) if isinstance(value, str) and value else default


def get_discord_token() -> str:
    return str(_CONFIG.get("BOT_TOKEN", ""))


def get_command_prefix(default: str = ",") -> str:
    value = _CONFIG.get("CMD_PREFIX")
    return str(value) if isinstance(value, str) and value else default


def get_client_id() -> Optional[str]:
    value = _CONFIG.get("CLIENT_ID")
    return str(value) if value else None


def get_source_channel_id() -> int:
    return int(_CONFIG["SOURCE_CHANNEL_ID"])  # type: ignore[arg-type]


def get_admin_ids() -> FrozenSet[int]:
    raw = _CONFIG.get("ADMINS", frozenset())
    if isinstance(raw, frozenset):
        return raw
    return frozenset()


def is_admin(user_id: object) -> bool:
    try:
        value = int(user_id)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False
    return value in get_admin_ids()


def _coerce_int(key: str, default: int) -> int:
    value = _CONFIG.get(key, default)
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def get_sweep_interval_sec(default: int = 300) -> int:
    return _coerce_int("SWEEP_INTERVAL_SEC", default)


def get_probe_timeout_sec(default: float = 20.0) -> float:
    value = _CONFIG.get("PROBE_TIMEOUT_SEC", default)
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def get_probe_max_in_flight(default: int = 64) -> int:
    return _coerce_int("PROBE_MAX_IN_FLIGHT", default)


def get_list_delete_after_sec(default: int = 300) -> int:
    return _coerce_int("LIST_DELETE_AFTER_SEC", default)


def get_typing_delay_ms(default: int = 200) -> int:
    return _coerce_int("TYPING_DELAY_MS", default)


def get_port(default: int = 10000) -> int:
    return _coerce_int("PORT", default)


def get_log_level(default: str = "INFO") -> str:
    value = _CONFIG.get("LOG_LEVEL")
    return str(value).strip().upper() if isinstance(value, str) and value.strip() else default
