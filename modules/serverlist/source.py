"""Read the roster text from the pinned message of the source channel."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

import discord

__all__ = [
    "ContentProvider",
    "SourceChannelEmpty",
    "SourceChannelError",
    "SourceChannelNotFound",
    "SourceChannelWrongType",
    "channel_content_provider",
    "fetch_source_text",
]

log = logging.getLogger("lanplay.serverlist.source")

ContentProvider = Callable[[], Awaitable[str]]


class SourceChannelError(RuntimeError):
    """The source channel could not supply roster text."""


class SourceChannelNotFound(SourceChannelError):
    def __init__(self, channel_id: int) -> None:
        super().__init__("Source channel is not found")
        self.channel_id = channel_id


class SourceChannelWrongType(SourceChannelError):
    def __init__(self, channel_id: int) -> None:
        super().__init__("Source channel is not a text channel")
        self.channel_id = channel_id


class SourceChannelEmpty(SourceChannelError):
    def __init__(self, channel_id: int) -> None:
        super().__init__("Source channel has no pinned message")
        self.channel_id = channel_id


async def _resolve_channel(bot: discord.Client, channel_id: int) -> object:
    channel = bot.get_channel(channel_id)
    if channel is not None:
        return channel
    try:
        return await bot.fetch_channel(channel_id)
    except (discord.NotFound, discord.Forbidden):
        raise SourceChannelNotFound(channel_id) from None
    except discord.InvalidData:
        raise SourceChannelWrongType(channel_id) from None


async def fetch_source_text(bot: discord.Client, channel_id: int) -> str:
    """Return the content of the most recently pinned message in ``channel_id``."""

    channel = await _resolve_channel(bot, channel_id)
    if not isinstance(channel, discord.TextChannel):
        raise SourceChannelWrongType(channel_id)

    # Newest pin first.
    pins = await channel.pins()
    if not pins:
        raise SourceChannelEmpty(channel_id)
    message = pins[0]
    log.debug(
        "source message loaded",
        extra={"channel_id": channel_id, "message_id": message.id},
    )
    return message.content or ""


def channel_content_provider(bot: discord.Client, channel_id: int) -> ContentProvider:
    async def provider() -> str:
        return await fetch_source_text(bot, channel_id)

    return provider
