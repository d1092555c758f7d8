"""Text and embed rendering for roster replies."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import discord

from .models import HealthResult, ServerRecord, Snapshot

__all__ = [
    "FETCHING",
    "build_help_embed",
    "build_list_embed",
    "build_server_embed",
    "format_refresh_reply",
    "get_snapshot_text",
    "status_field",
]

FETCHING = "fetching..."
EMPTY_LIST = "No servers listed yet."

COLOR_OK = discord.Colour(0x00FF00)
COLOR_HELP = discord.Colour(0xFFFF00)
COLOR_FAIL = discord.Colour(0xFF0000)

# Discord caps embed descriptions at 4096 characters.
DESCRIPTION_LIMIT = 4096


def status_field(result: Optional[HealthResult]) -> str:
    if result is None:
        return FETCHING
    if result.ok:
        return str(result.online_count)
    return result.failure_reason or "unknown error"


def _server_line(record: ServerRecord, result: Optional[HealthResult]) -> str:
    return f"{record.id}) {record.address} {record.region} {status_field(result)}"


def get_snapshot_text(snapshot: Snapshot) -> str:
    """Render one ``"{id}) {address} {region} {status}"`` line per server, by id."""

    return "\n".join(
        _server_line(record, snapshot.health.get(record.id))
        for record in snapshot.sorted_records()
    )


def _trim(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
    if len(text) <= limit:
        return text
    cut = text.rfind("\n", 0, limit - 1)
    if cut <= 0:
        cut = limit - 1
    return f"{text[:cut]}\n…"


def build_help_embed(
    prefix: str,
    source_channel_id: int,
    *,
    include_admin: bool = False,
) -> discord.Embed:
    entries: list[str] = [
        f"server <1,2,3,4,5...<#{source_channel_id}>>",
        "list",
        "help",
    ]
    if include_admin:
        entries.extend(["refresh", "role"])
    embed = discord.Embed(colour=COLOR_HELP)
    embed.add_field(
        name=f"Prefix: {prefix}",
        value="\n".join(f"{prefix}{entry}" for entry in entries),
        inline=False,
    )
    return embed


def build_list_embed(snapshot: Snapshot, *, delete_after: int = 0) -> discord.Embed:
    text = get_snapshot_text(snapshot) or EMPTY_LIST
    embed = discord.Embed(colour=COLOR_OK, description=_trim(text))
    if snapshot.last_sweep_completed_at is not None:
        embed.timestamp = snapshot.last_sweep_completed_at
    if delete_after > 0:
        embed.set_footer(text=f"This message will be deleted after {delete_after} seconds")
    return embed


def build_server_embed(record: ServerRecord, result: HealthResult) -> discord.Embed:
    if result.ok:
        embed = discord.Embed(colour=COLOR_OK)
        embed.add_field(name=record.address, value=f"Online: {result.online_count}", inline=False)
        embed.add_field(name="Version", value=result.version, inline=True)
    else:
        embed = discord.Embed(colour=COLOR_FAIL)
        embed.add_field(
            name=record.address,
            value=f"Offline: {status_field(result)}",
            inline=False,
        )
    if record.region:
        embed.add_field(name="Region", value=record.region, inline=True)
    embed.timestamp = result.observed_at
    return embed


def format_refresh_reply(warnings: Sequence[str] | Iterable[str]) -> str:
    lines = [str(item) for item in warnings if str(item)]
    if not lines:
        return "Refresh done"
    return "Refresh done\n" + "\n".join(lines)
