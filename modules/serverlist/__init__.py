"""Server roster tracking: parse the pinned list, sweep health, answer commands."""

import logging

from .cog import ServerListCog
from .scheduler import schedule_sweep_job

log = logging.getLogger("lanplay.serverlist")

__all__ = ["ServerListCog", "schedule_sweep_job", "setup"]


async def setup(bot):
    await bot.add_cog(ServerListCog(bot))
    log.info("ServerList extension loaded")
