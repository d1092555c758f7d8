"""Pytest configuration for shared test fixtures."""

from __future__ import annotations

import asyncio
import datetime as dt
import sys
from pathlib import Path
from typing import Iterable

import pytest


def _ensure_project_root_on_path(source_file: Path) -> None:
    """Add the repository root to ``sys.path`` when running from subpackages."""

    for candidate in [source_file.parent, *source_file.parents]:
        shared_dir = candidate / "shared"
        if shared_dir.is_dir():
            project_root = str(candidate)
            if project_root not in sys.path:
                sys.path.insert(0, project_root)
            break


_ensure_project_root_on_path(Path(__file__).resolve())

from shared.testing.environment import apply_required_test_environment

apply_required_test_environment()

from modules.serverlist.models import HealthResult, ServerRecord


class FakeProber:
    """Stand-in for :class:`HealthProber` driven by a per-address script."""

    def __init__(
        self,
        outcomes: dict[str, HealthResult | BaseException] | None = None,
        *,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.outcomes = dict(outcomes or {})
        self.delays = dict(delays or {})
        self.calls: list[ServerRecord] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def probe(self, record: ServerRecord) -> HealthResult:
        self.calls.append(record)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(record.address, 0))
            outcome = self.outcomes.get(record.address)
            if isinstance(outcome, BaseException):
                raise outcome
            if outcome is None:
                return HealthResult.success(1, "test")
            return outcome
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True


def make_roster(entries: Iterable[tuple[int, str, str]]) -> dict[int, ServerRecord]:
    return {sid: ServerRecord(id=sid, address=address, region=region) for sid, address, region in entries}


@pytest.fixture
def fake_prober_factory():
    return FakeProber


@pytest.fixture
def roster_factory():
    return make_roster


@pytest.fixture
def fixed_now() -> dt.datetime:
    return dt.datetime(2024, 5, 1, 12, 0, tzinfo=dt.timezone.utc)
