"""Parse the pinned roster message into server records."""

from __future__ import annotations

import logging
import re
from typing import Dict, List

from .models import ParseResult, ServerRecord, freeze

__all__ = [
    "DUPLICATE_ID_WARNING",
    "NO_SERVER_WARNING",
    "parse_roster",
]

log = logging.getLogger("lanplay.serverlist.parser")

DUPLICATE_ID_WARNING = "duplicate server id"
NO_SERVER_WARNING = "no server detected from source channel, check the format"

# "<id>) <address> <region...>"; the address is alphanumerics plus ":-." and the
# region is whatever remains on the line.
_ENTRY_RE = re.compile(r"(\d+)\)[ \t]*([0-9A-Za-z:\-.]+)[ \t]*(.*?)\s*$")


def parse_roster(content: str | None) -> ParseResult:
    """Return the roster described by ``content`` plus parse warnings.

    Lines that do not look like an entry are ignored. A repeated id keeps the
    last occurrence and adds one ``"duplicate server id"`` warning per repeat.
    An empty result adds the ``"no server detected"`` warning. Never raises on
    malformed text.
    """

    roster: Dict[int, ServerRecord] = {}
    warnings: List[str] = []

    for line in (content or "").splitlines():
        match = _ENTRY_RE.search(line)
        if match is None:
            continue
        id_text, address, region = match.groups()
        server_id = int(id_text)
        if server_id <= 0:
            continue
        if server_id in roster:
            log.debug("duplicate server id in roster text", extra={"server_id": server_id})
            warnings.append(DUPLICATE_ID_WARNING)
        roster[server_id] = ServerRecord(id=server_id, address=address, region=region.strip())

    if not roster:
        warnings.append(NO_SERVER_WARNING)

    return ParseResult(roster=freeze(roster), warnings=tuple(warnings))
