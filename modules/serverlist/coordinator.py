"""Concurrent health sweeps over the current roster generation."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Sequence

from shared.logging import set_trace_id

from .models import HealthResult, ServerRecord, SweepReport, now_utc
from .parser import parse_roster
from .prober import HealthProber
from .source import ContentProvider
from .store import RosterStore

__all__ = ["FetchCoordinator"]

log = logging.getLogger("lanplay.serverlist.sweep")

Spawn = Callable[..., asyncio.Task]

_OK = "ok"
_FAILED = "failed"
_DISCARDED = "discarded"


class FetchCoordinator:
    """Fan probes out over the roster and commit each result as it lands.

    At most ``max_in_flight`` probes run at once across all sweeps started by
    this coordinator. Every probe carries the roster generation it was started
    for; results that come back after the roster has been replaced are
    dropped by the store.
    """

    def __init__(
        self,
        store: RosterStore,
        prober: HealthProber,
        *,
        max_in_flight: int = 64,
        spawn: Optional[Spawn] = None,
    ) -> None:
        self.store = store
        self.prober = prober
        self.max_in_flight = max(1, int(max_in_flight))
        self._semaphore = asyncio.Semaphore(self.max_in_flight)
        self._spawn = spawn
        self._background: set[asyncio.Task] = set()

    async def _probe_and_record(self, record: ServerRecord, generation: int) -> str:
        async with self._semaphore:
            try:
                result = await self.prober.probe(record)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                log.exception(
                    "probe raised",
                    extra={"server_id": record.id, "address": record.address},
                )
                result = HealthResult.failure(repr(exc))
        if not self.store.record_health(record.id, result, generation=generation):
            return _DISCARDED
        return _OK if result.ok else _FAILED

    async def sweep(self) -> SweepReport:
        """Probe every server in the current roster once."""

        set_trace_id()
        snapshot = self.store.snapshot()
        records: Sequence[ServerRecord] = snapshot.sorted_records()
        started = time.perf_counter()
        log.info(
            "sweep started",
            extra={"generation": snapshot.generation, "servers": len(records)},
        )

        outcomes = await asyncio.gather(
            *(self._probe_and_record(record, snapshot.generation) for record in records)
        )

        completed_at = self.store.mark_sweep_completed(now_utc())
        report = SweepReport(
            generation=snapshot.generation,
            total=len(records),
            ok=outcomes.count(_OK),
            failed=outcomes.count(_FAILED),
            discarded=outcomes.count(_DISCARDED),
            duration_ms=int((time.perf_counter() - started) * 1000),
            completed_at=completed_at,
        )
        log.info(
            "sweep finished",
            extra={
                "generation": report.generation,
                "servers": report.total,
                "ok": report.ok,
                "failed": report.failed,
                "discarded": report.discarded,
                "ms": report.duration_ms,
            },
        )
        return report

    def schedule_sweep(self) -> asyncio.Task:
        """Start a sweep in the background and return its task."""

        coro = self.sweep()
        if self._spawn is not None:
            task = self._spawn(coro, name="serverlist_sweep")
        else:
            task = asyncio.create_task(coro, name="serverlist_sweep")
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error(
                "background sweep failed",
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def refresh(self, provider: ContentProvider | Callable[[], Awaitable[str]]) -> tuple[str, ...]:
        """Reload the roster from ``provider`` and kick off a sweep.

        Errors raised by ``provider`` propagate unchanged and leave the current
        roster generation in place. Returns the parse warnings.
        """

        content = await provider()
        parsed = parse_roster(content)
        generation = self.store.replace_roster(parsed.roster)
        if parsed.warnings:
            log.warning(
                "roster parsed with warnings",
                extra={"generation": generation, "warnings": "; ".join(parsed.warnings)},
            )
        self.schedule_sweep()
        return parsed.warnings

    async def probe_one(self, record: ServerRecord) -> HealthResult:
        """Live probe for a single server; the cache is left untouched."""

        return await self.prober.probe(record)

    async def close(self) -> None:
        tasks = [task for task in self._background if not task.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:  # pragma: no cover - already logged by the done callback
                log.debug("background sweep ended with error during close", exc_info=True)
        self._background.clear()
