"""In-memory roster and health cache shared by sweeps and commands."""

from __future__ import annotations

import datetime as dt
import logging
import threading
from typing import Dict, Mapping, Optional

from .models import HealthResult, Roster, ServerRecord, Snapshot, freeze

__all__ = ["RosterStore"]

log = logging.getLogger("lanplay.serverlist.store")


class RosterStore:
    """Single owner of the mutable roster state.

    Every read and write goes through one lock. The lock is only held for
    dictionary swaps and copies, never across network I/O, so snapshots do
    not wait on in-flight probes.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0
        self._roster: Roster = freeze({})
        self._health: Dict[int, HealthResult] = {}
        self._last_sweep_completed_at: Optional[dt.datetime] = None

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def replace_roster(self, roster: Mapping[int, ServerRecord]) -> int:
        """Install ``roster`` as a new generation and drop all cached health."""

        frozen = freeze(roster)
        with self._lock:
            self._generation += 1
            self._roster = frozen
            self._health = {}
            generation = self._generation
        log.info(
            "roster replaced",
            extra={"generation": generation, "servers": len(frozen)},
        )
        return generation

    def record_health(
        self,
        server_id: int,
        result: HealthResult,
        *,
        generation: Optional[int] = None,
    ) -> bool:
        """Store ``result`` for ``server_id``; the latest write wins.

        Results tagged with a ``generation`` other than the current one, or
        for ids missing from the current roster, are dropped and ``False`` is
        returned.
        """

        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            if server_id not in self._roster:
                return False
            self._health[server_id] = result
            return True

    def mark_sweep_completed(self, at: dt.datetime) -> dt.datetime:
        """Advance the last full sweep timestamp; it never moves backwards."""

        with self._lock:
            current = self._last_sweep_completed_at
            if current is None or at > current:
                self._last_sweep_completed_at = at
            return self._last_sweep_completed_at  # type: ignore[return-value]

    @property
    def last_sweep_completed_at(self) -> Optional[dt.datetime]:
        with self._lock:
            return self._last_sweep_completed_at

    def lookup(self, server_id: int) -> Optional[ServerRecord]:
        with self._lock:
            return self._roster.get(server_id)

    def snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(
                generation=self._generation,
                roster=self._roster,
                health=freeze(self._health),
                last_sweep_completed_at=self._last_sweep_completed_at,
            )
