"""Secret redaction helpers for config snapshots and user-facing error text."""

from __future__ import annotations

import hashlib
import re
from typing import Any

__all__ = [
    "mask_secret",
    "sanitize_text",
]


_DISCORD_TOKEN_RE = re.compile(r"[A-Za-z0-9_-]{24,}\.[A-Za-z0-9_-]{6}\.[A-Za-z0-9_-]{27,}")
_WEBHOOK_RE = re.compile(r"https://(?:ptb\.|canary\.)?discord(?:app)?\.com/api/webhooks/\d+/\S+", re.I)
_SECRET_FIELD_RE = re.compile(
    r"(?P<prefix>(token|secret|credential|key)\s*[=:]\s*)(?P<secret>[^\s,;]+)",
    re.IGNORECASE,
)


def _stable_suffix(text: str) -> str:
    digest = hashlib.sha1(text.encode("utf-8", "ignore")).hexdigest()
    return digest[:4]


def mask_secret(text: str) -> str:
    suffix = _stable_suffix(text)
    return f"***{suffix}"


def sanitize_text(value: Any) -> Any:
    """Mask Discord tokens, webhook URLs and ``key=value`` secrets in ``value``."""

    if value is None:
        return value
    text = str(value)
    if not text:
        return text

    sanitized = _DISCORD_TOKEN_RE.sub(lambda match: mask_secret(match.group(0)), text)
    sanitized = _WEBHOOK_RE.sub(lambda match: mask_secret(match.group(0)), sanitized)
    sanitized = _SECRET_FIELD_RE.sub(
        lambda match: f"{match.group('prefix')}{mask_secret(match.group('secret'))}",
        sanitized,
    )
    return sanitized
