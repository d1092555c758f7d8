"""Application runtime scaffolding for the bot process."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from aiohttp import web
from discord.ext import commands

from shared import health as healthmod
from shared.config import (
    get_bot_name,
    get_bot_version,
    get_env_name,
    get_log_level,
    get_port,
    get_sweep_interval_sec,
)
from shared.logging import get_trace_id, set_trace_id, setup_logging
from modules.common.logs import log as human_log

log = logging.getLogger("lanplay.runtime")


def _serverlist_cog(runtime: "Runtime | None") -> Any:
    if runtime is None:
        return None
    getter = getattr(runtime.bot, "get_cog", None)
    if not callable(getter):
        return None
    return getter("ServerListCog")


def _age_seconds(moment: datetime | None) -> float | None:
    if moment is None:
        return None
    return round(max(0.0, (datetime.now(timezone.utc) - moment).total_seconds()), 3)


async def create_app(*, runtime: "Runtime | None" = None) -> web.Application:
    """Create the aiohttp status application served next to the bot."""

    access_logger = logging.getLogger("aiohttp.access")
    healthmod.set_component("runtime", True)

    @web.middleware
    async def tracing_middleware(
        request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
    ) -> web.StreamResponse:
        trace = set_trace_id()
        started = time.perf_counter()
        status = 500
        try:
            response = await handler(request)
            status = getattr(response, "status", status)
            response.headers["X-Trace-Id"] = trace
            return response
        except web.HTTPException as exc:
            status = exc.status
            raise
        finally:
            duration_ms = int((time.perf_counter() - started) * 1000)
            access_logger.info(
                "http_request",
                extra={
                    "trace": trace,
                    "path": request.path,
                    "method": request.method,
                    "status": status,
                    "ms": duration_ms,
                },
            )

    app = web.Application(middlewares=[tracing_middleware])

    async def root(_: web.Request) -> web.Response:
        payload = {
            "ok": True,
            "bot": get_bot_name(),
            "env": get_env_name(),
            "version": get_bot_version(),
            "trace": get_trace_id(),
        }
        return web.json_response(payload)

    async def ready(_: web.Request) -> web.Response:
        components = healthmod.components_snapshot()
        ok = healthmod.overall_ready()
        return web.json_response({"ok": ok, "components": components}, status=200 if ok else 503)

    async def healthz(_: web.Request) -> web.Response:
        payload: dict[str, Any] = {
            "ok": True,
            "bot": get_bot_name(),
            "env": get_env_name(),
            "version": get_bot_version(),
            "endpoint": "healthz",
        }
        cog = _serverlist_cog(runtime)
        if cog is not None:
            snapshot = cog.store.snapshot()
            age = _age_seconds(snapshot.last_sweep_completed_at)
            stale_after = get_sweep_interval_sec() * 3
            payload.update(
                {
                    "generation": snapshot.generation,
                    "servers": len(snapshot.roster),
                    "probed": len(snapshot.health),
                    "last_sweep_age": age,
                    "stale_after_sec": stale_after,
                }
            )
            payload["ok"] = age is None or age <= stale_after
        status = 200 if payload["ok"] else 503
        return web.json_response(payload, status=status)

    async def servers(_: web.Request) -> web.Response:
        cog = _serverlist_cog(runtime)
        if cog is None:
            return web.json_response({"ok": False, "servers": []}, status=503)
        snapshot = cog.store.snapshot()
        rows = []
        for record in snapshot.sorted_records():
            result = snapshot.health.get(record.id)
            rows.append(
                {
                    "id": record.id,
                    "address": record.address,
                    "region": record.region,
                    "ok": None if result is None else result.ok,
                    "online": None if result is None else result.online_count,
                    "version": None if result is None else result.version,
                    "reason": None if result is None else result.failure_reason,
                    "observed_at": None if result is None else result.observed_at.isoformat(),
                }
            )
        last = snapshot.last_sweep_completed_at
        return web.json_response(
            {
                "ok": True,
                "generation": snapshot.generation,
                "last_sweep_completed_at": None if last is None else last.isoformat(),
                "servers": rows,
            }
        )

    app.router.add_get("/", root)
    app.router.add_get("/ready", ready)
    app.router.add_get("/healthz", healthz)
    app.router.add_get("/servers", servers)

    return app


class _RecurringJob:
    def __init__(
        self,
        scheduler: "Scheduler",
        *,
        interval: timedelta,
        tag: str | None = None,
        name: str | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._interval = interval
        self.tag = tag
        self.name = name
        self.next_run: datetime | None = None

    def _compute_next_run(self, reference: datetime | None = None) -> datetime:
        now = reference or datetime.now(timezone.utc)
        interval_seconds = max(1.0, self._interval.total_seconds())
        # Align to UTC interval boundaries.
        cycles = math.floor(now.timestamp() / interval_seconds)
        base_seconds = (cycles + 1) * interval_seconds
        candidate = datetime.fromtimestamp(base_seconds, tz=timezone.utc)
        if candidate <= now:
            candidate = now + timedelta(seconds=1)
        return candidate

    async def _sleep_until_due(self) -> None:
        if self.next_run is None:
            self.next_run = self._compute_next_run()
        while True:
            assert self.next_run is not None
            now = datetime.now(timezone.utc)
            delay = (self.next_run - now).total_seconds()
            if delay <= 0:
                break
            await asyncio.sleep(min(delay, 60.0))

    def do(self, job: Callable[[], Awaitable[None]]) -> asyncio.Task:
        self.next_run = self._compute_next_run()

        async def runner() -> None:
            while True:
                await self._sleep_until_due()
                try:
                    await job()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    log.exception(
                        "recurring job error",
                        extra={
                            "job_name": self.name or getattr(job, "__name__", "job"),
                            "tag": self.tag,
                        },
                    )
                finally:
                    self.next_run = self._compute_next_run()

        task_name = self.name or getattr(job, "__name__", "recurring_job")
        return self._scheduler.spawn(runner(), name=task_name)


class Scheduler:
    """Very small asyncio task supervisor for background jobs."""

    def __init__(self) -> None:
        self._tasks: list[asyncio.Task] = []

    def spawn(self, coro: Awaitable, *, name: Optional[str] = None) -> asyncio.Task:
        if name is not None:
            task = asyncio.create_task(coro, name=name)
        else:
            task = asyncio.create_task(coro)
        self._tasks = [existing for existing in self._tasks if not existing.done()]
        self._tasks.append(task)
        return task

    def every(
        self,
        *,
        hours: float = 0.0,
        minutes: float = 0.0,
        seconds: float = 0.0,
        tag: str | None = None,
        name: str | None = None,
    ) -> _RecurringJob:
        total_seconds = float(hours) * 3600.0 + float(minutes) * 60.0 + float(seconds)
        if total_seconds <= 0:
            total_seconds = 60.0
        interval = timedelta(seconds=total_seconds)
        return _RecurringJob(self, interval=interval, tag=tag, name=name)

    async def shutdown(self) -> None:
        for task in self._tasks:
            if task.done():
                continue
            task.cancel()
        for task in self._tasks:
            if task.done():
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:  # pragma: no cover - best-effort cleanup
                log.exception("scheduler task error during shutdown")


class Runtime:
    """Container object that wires the bot, status server, and scheduler."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        self.scheduler = Scheduler()
        self._web_app: Optional[web.Application] = None
        self._web_runner: Optional[web.AppRunner] = None
        self._web_site: Optional[web.TCPSite] = None

    async def start_webserver(self, *, port: Optional[int] = None) -> None:
        if self._web_site is not None:
            return
        port = port or get_port()

        app = await create_app(runtime=self)
        self._web_app = app
        self._web_runner = web.AppRunner(app, access_log=None)
        await self._web_runner.setup()
        self._web_site = web.TCPSite(self._web_runner, host="0.0.0.0", port=port)
        await self._web_site.start()
        human_log.human("info", f"web server listening • port={port}", port=port)

    async def shutdown_webserver(self) -> None:
        site, runner = self._web_site, self._web_runner
        self._web_site = None
        self._web_runner = None
        self._web_app = None
        if site is not None:
            await site.stop()
        if runner is not None:
            await runner.cleanup()

    async def load_extensions(self) -> None:
        """Load feature modules into the shared bot instance and schedule their jobs."""

        from modules import serverlist

        await self.bot.load_extension("modules.serverlist")
        try:
            serverlist.schedule_sweep_job(self)
        except Exception:  # pragma: no cover
            log.exception("failed to schedule server sweep job")

    async def start(self, token: str) -> None:
        static_fields = {"env": get_env_name(), "bot": get_bot_name()}
        setup_logging(level=get_log_level(), static_fields=static_fields)
        await self.start_webserver()
        await self.load_extensions()
        await self.bot.start(token)

    async def close(self) -> None:
        await self.shutdown_webserver()
        await self.scheduler.shutdown()
