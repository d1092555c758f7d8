from __future__ import annotations

import asyncio
import logging
import os

import discord
from discord.ext import commands

from shared import health as healthmod
from shared.config import (
    get_client_id,
    get_command_prefix,
    get_discord_token,
    get_env_name,
    get_source_channel_id,
)
from modules.common.runtime import Runtime

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("lanplay.app")

INTENTS = discord.Intents.default()
INTENTS.message_content = True

bot = commands.Bot(
    command_prefix=get_command_prefix(),
    intents=INTENTS,
    help_command=None,
)

runtime = Runtime(bot)


def _invite_url(client_id: str) -> str:
    return (
        "https://discordapp.com/oauth2/authorize"
        f"?client_id={client_id}&permissions=0&scope=bot"
    )


@bot.event
async def on_ready():
    healthmod.set_component("discord", True)
    log.info(
        'Bot ready as %s | env=%s | prefix="%s" | source_channel=%s',
        bot.user,
        get_env_name(),
        get_command_prefix(),
        get_source_channel_id(),
    )
    client_id = get_client_id()
    if client_id:
        log.info("invite: %s", _invite_url(client_id))


@bot.event
async def on_resumed():
    healthmod.set_component("discord", True)


@bot.event
async def on_disconnect():
    log.warning("discord gateway disconnected")
    healthmod.set_component("discord", False)


@bot.event
async def on_message(message: discord.Message):
    if message.author.bot:
        return
    await bot.process_commands(message)


async def main() -> None:
    token = get_discord_token()
    try:
        await runtime.start(token)
    finally:
        await runtime.close()
        if not bot.is_closed():
            await bot.close()


if __name__ == "__main__":
    asyncio.run(main())
