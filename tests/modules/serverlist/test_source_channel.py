import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from modules.serverlist.source import (
    SourceChannelEmpty,
    SourceChannelNotFound,
    SourceChannelWrongType,
    channel_content_provider,
    fetch_source_text,
)


def _text_channel(pins):
    channel = MagicMock(spec=discord.TextChannel)
    channel.pins = AsyncMock(return_value=pins)
    return channel


def _bot(cached=None, *, fetch_error: Exception | None = None):
    fetch = AsyncMock(side_effect=fetch_error) if fetch_error else AsyncMock(return_value=cached)
    return SimpleNamespace(get_channel=lambda _id: cached, fetch_channel=fetch)


def test_newest_pin_content_is_returned():
    pins = [
        SimpleNamespace(id=2, content="1) a:1 Tokyo"),
        SimpleNamespace(id=1, content="old"),
    ]
    bot = _bot(_text_channel(pins))

    assert asyncio.run(fetch_source_text(bot, 42)) == "1) a:1 Tokyo"


def test_provider_wraps_fetch():
    bot = _bot(_text_channel([SimpleNamespace(id=1, content="1) a:1")]))
    provider = channel_content_provider(bot, 42)

    assert asyncio.run(provider()) == "1) a:1"


def test_missing_channel_raises_not_found():
    response = SimpleNamespace(status=404, reason="Not Found")
    bot = _bot(fetch_error=discord.NotFound(response, "Unknown Channel"))

    with pytest.raises(SourceChannelNotFound) as excinfo:
        asyncio.run(fetch_source_text(bot, 42))

    assert str(excinfo.value) == "Source channel is not found"
    assert excinfo.value.channel_id == 42


def test_non_text_channel_raises_wrong_type():
    voice = MagicMock(spec=discord.VoiceChannel)
    bot = _bot(voice)

    with pytest.raises(SourceChannelWrongType) as excinfo:
        asyncio.run(fetch_source_text(bot, 42))

    assert str(excinfo.value) == "Source channel is not a text channel"


def test_channel_without_pins_raises_empty():
    bot = _bot(_text_channel([]))

    with pytest.raises(SourceChannelEmpty):
        asyncio.run(fetch_source_text(bot, 42))
