"""Schedule the recurring health sweep on the runtime scheduler."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shared.config import get_sweep_interval_sec

if TYPE_CHECKING:
    from modules.common.runtime import Runtime

log = logging.getLogger("lanplay.serverlist.scheduler")


def schedule_sweep_job(runtime: "Runtime") -> None:
    interval = get_sweep_interval_sec()

    def _resolve_cog():
        return runtime.bot.get_cog("ServerListCog")

    job = runtime.scheduler.every(seconds=interval, tag="serverlist", name="serverlist_sweep")

    async def runner() -> None:
        cog = _resolve_cog()
        if cog is None:
            log.warning("ServerList cog missing; scheduled sweep skipped")
            return
        await cog.coordinator.sweep()

    job.do(runner)
    log.info("sweep job scheduled", extra={"interval_sec": interval})
