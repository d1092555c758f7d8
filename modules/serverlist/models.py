"""Value types shared by the roster parser, store and sweep coordinator."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

UTC = dt.timezone.utc

UNKNOWN_VERSION = "unknown"
OFFLINE_COUNT = -1


def now_utc() -> dt.datetime:
    return dt.datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ServerRecord:
    """One advertised relay server."""

    id: int
    address: str
    region: str = ""

    @property
    def info_url(self) -> str:
        return f"http://{self.address}/info"


@dataclass(frozen=True, slots=True)
class HealthResult:
    """Outcome of a single ``/info`` probe.

    ``failure_reason`` is set exactly when ``ok`` is false; failed results
    always carry ``online_count == -1`` and ``version == "unknown"``.
    """

    ok: bool
    online_count: int
    version: str
    observed_at: dt.datetime
    failure_reason: Optional[str] = None

    @classmethod
    def success(
        cls, online_count: int, version: str, *, observed_at: dt.datetime | None = None
    ) -> "HealthResult":
        return cls(
            ok=True,
            online_count=max(0, int(online_count)),
            version=version,
            observed_at=observed_at or now_utc(),
        )

    @classmethod
    def failure(cls, reason: str, *, observed_at: dt.datetime | None = None) -> "HealthResult":
        return cls(
            ok=False,
            online_count=OFFLINE_COUNT,
            version=UNKNOWN_VERSION,
            observed_at=observed_at or now_utc(),
            failure_reason=reason or "unknown error",
        )


Roster = Mapping[int, ServerRecord]


@dataclass(frozen=True, slots=True)
class ParseResult:
    roster: Roster
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Point-in-time view of roster and health; both belong to ``generation``."""

    generation: int
    roster: Roster
    health: Mapping[int, HealthResult]
    last_sweep_completed_at: Optional[dt.datetime] = None

    def sorted_records(self) -> list[ServerRecord]:
        return [self.roster[key] for key in sorted(self.roster)]


@dataclass(frozen=True, slots=True)
class SweepReport:
    generation: int
    total: int
    ok: int
    failed: int
    discarded: int
    duration_ms: int
    completed_at: dt.datetime = field(default_factory=now_utc)


def freeze(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))
