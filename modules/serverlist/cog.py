"""Prefix commands for listing and probing roster servers."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from discord.ext import commands

from shared import health as healthmod
from shared.config import (
    get_command_prefix,
    get_list_delete_after_sec,
    get_probe_max_in_flight,
    get_probe_timeout_sec,
    get_source_channel_id,
    get_typing_delay_ms,
    is_admin,
)
from shared.redaction import sanitize_text

from .coordinator import FetchCoordinator
from .models import ServerRecord
from .prober import HealthProber
from .render import (
    build_help_embed,
    build_list_embed,
    build_server_embed,
    format_refresh_reply,
)
from .source import ContentProvider, SourceChannelError, channel_content_provider
from .store import RosterStore

__all__ = ["BAD_SERVER_ID", "ServerListCog", "admin_only"]

log = logging.getLogger("lanplay.serverlist.cog")

BAD_SERVER_ID = "bad server id"
ADMIN_ONLY = "That command is reserved for bot admins."


def admin_only():
    """Command check that passes only for ids in the ``ADMINS`` allow-list."""

    async def predicate(ctx: commands.Context) -> bool:
        author = getattr(ctx, "author", None)
        return is_admin(getattr(author, "id", None))

    return commands.check(predicate)


class ServerListCog(commands.Cog):
    """Roster commands backed by the in-memory store."""

    def __init__(
        self,
        bot: commands.Bot,
        *,
        store: Optional[RosterStore] = None,
        prober: Optional[HealthProber] = None,
        coordinator: Optional[FetchCoordinator] = None,
        provider: Optional[ContentProvider] = None,
    ) -> None:
        self.bot = bot
        self.store = store or (coordinator.store if coordinator is not None else RosterStore())
        if coordinator is None:
            prober = prober or HealthProber(timeout_sec=get_probe_timeout_sec())
            coordinator = FetchCoordinator(
                self.store, prober, max_in_flight=get_probe_max_in_flight()
            )
        self.coordinator = coordinator
        self.provider = provider or channel_content_provider(bot, get_source_channel_id())
        self._initial_loaded = False
        self._initial_task: Optional[asyncio.Task] = None
        self._typing_tasks: Dict[int, asyncio.Task] = {}

    # === Lifecycle ===
    async def cog_unload(self) -> None:
        task = self._initial_task
        if task is not None and not task.done():
            task.cancel()
        for typing_task in self._typing_tasks.values():
            typing_task.cancel()
        self._typing_tasks.clear()
        await self.coordinator.close()
        await self.coordinator.prober.close()

    async def load_roster(self, *, actor: str = "startup") -> tuple[str, ...]:
        """Reload the roster from the source channel and start a sweep."""

        try:
            warnings = await self.coordinator.refresh(self.provider)
        except SourceChannelError as exc:
            healthmod.set_component("roster", False)
            log.error(
                "roster refresh failed",
                extra={"actor": actor, "reason": str(exc)},
            )
            raise
        healthmod.set_component("roster", True)
        log.info(
            "roster refresh done",
            extra={"actor": actor, "warnings": len(warnings)},
        )
        return warnings

    async def _initial_load(self) -> None:
        try:
            await self.load_roster(actor="startup")
        except SourceChannelError:
            # Already logged; admins can retry with the refresh command.
            return
        except Exception:
            healthmod.set_component("roster", False)
            log.exception("roster refresh failed", extra={"actor": "startup"})

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        if self._initial_loaded:
            return
        self._initial_loaded = True
        self._initial_task = asyncio.create_task(
            self._initial_load(), name="serverlist_initial_load"
        )

    # === Typing indicator ===
    async def _typing_after_delay(self, ctx: commands.Context, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            async with ctx.typing():
                await asyncio.Event().wait()
        except Exception:
            log.warning(
                "typing indicator failed",
                extra={"message_id": getattr(ctx.message, "id", None)},
                exc_info=True,
            )

    async def cog_before_invoke(self, ctx: commands.Context) -> None:
        delay = get_typing_delay_ms() / 1000.0
        key = ctx.message.id
        self._typing_tasks[key] = asyncio.create_task(
            self._typing_after_delay(ctx, delay), name=f"typing_{key}"
        )

    def _stop_typing(self, ctx: commands.Context) -> None:
        message = getattr(ctx, "message", None)
        task = self._typing_tasks.pop(getattr(message, "id", None), None)
        if task is not None:
            task.cancel()

    async def cog_after_invoke(self, ctx: commands.Context) -> None:
        self._stop_typing(ctx)

    # === Helpers ===
    def _lookup(self, raw: Optional[str]) -> Optional[ServerRecord]:
        text = (raw or "").strip()
        if not text.isdigit():
            return None
        return self.store.lookup(int(text))

    # === Commands ===
    @commands.command(name="help", help="Show the available commands.")
    async def help_command(self, ctx: commands.Context) -> None:
        embed = build_help_embed(
            get_command_prefix(),
            get_source_channel_id(),
            include_admin=is_admin(ctx.author.id),
        )
        await ctx.send(embed=embed)

    @commands.command(name="list", help="List every server with its cached status.")
    async def list_servers(self, ctx: commands.Context) -> None:
        delete_after = get_list_delete_after_sec()
        embed = build_list_embed(self.store.snapshot(), delete_after=delete_after)
        await ctx.send(embed=embed, delete_after=delete_after if delete_after > 0 else None)

    @commands.command(name="server", help="Query one server live by its roster id.")
    async def server(self, ctx: commands.Context, server_id: Optional[str] = None) -> None:
        record = self._lookup(server_id)
        if record is None:
            await ctx.reply(BAD_SERVER_ID, mention_author=False)
            return
        result = await self.coordinator.probe_one(record)
        await ctx.send(embed=build_server_embed(record, result))

    @commands.command(name="refresh", help="Reload the roster from the source channel.")
    @admin_only()
    async def refresh(self, ctx: commands.Context) -> None:
        try:
            warnings = await self.load_roster(actor=f"user:{ctx.author.id}")
        except SourceChannelError as exc:
            await ctx.reply(f"Error: {exc}", mention_author=False)
            return
        await ctx.reply(format_refresh_reply(warnings), mention_author=False)

    @commands.command(name="role", help="Show whether you are a bot admin.")
    async def role(self, ctx: commands.Context) -> None:
        await ctx.reply("admin" if is_admin(ctx.author.id) else "member", mention_author=False)

    # === Error handling ===
    async def cog_command_error(self, ctx: commands.Context, error: Exception) -> None:
        self._stop_typing(ctx)
        if isinstance(error, commands.CheckFailure):
            await ctx.reply(ADMIN_ONLY, mention_author=False)
            return
        if isinstance(error, commands.UserInputError):
            await ctx.reply(f"Error: {error}", mention_author=False)
            return
        original = getattr(error, "original", error)
        command_name = getattr(ctx.command, "qualified_name", None)
        log.error(
            "command failed",
            extra={"command": command_name, "reason": repr(original)},
            exc_info=(type(original), original, original.__traceback__),
        )
        await ctx.reply(f"Error: {sanitize_text(str(original))}", mention_author=False)

    @commands.Cog.listener()
    async def on_command_error(self, ctx: commands.Context, error: Exception) -> None:
        if not isinstance(error, commands.CommandNotFound):
            return
        prefix = get_command_prefix()
        await ctx.reply(
            f"Unknown command `{ctx.invoked_with}`. Try `{prefix}help`.",
            mention_author=False,
        )
