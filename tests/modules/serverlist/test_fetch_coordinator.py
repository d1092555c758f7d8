import asyncio

import pytest

from modules.serverlist.coordinator import FetchCoordinator
from modules.serverlist.models import HealthResult
from modules.serverlist.parser import DUPLICATE_ID_WARNING
from modules.serverlist.source import SourceChannelNotFound
from modules.serverlist.store import RosterStore


def test_sweep_records_one_result_per_server(fake_prober_factory, roster_factory):
    async def _run():
        store = RosterStore()
        store.replace_roster(
            roster_factory(
                [
                    (1, "a:1", "Tokyo"),
                    (2, "b:1", "Osaka"),
                    (3, "c:1", ""),
                ]
            )
        )
        prober = fake_prober_factory(
            {
                "b:1": HealthResult.failure("timeout of 20000ms exceeded"),
                "c:1": HealthResult.success(12, "0.2.3"),
            }
        )
        coordinator = FetchCoordinator(store, prober)

        report = await coordinator.sweep()
        snapshot = store.snapshot()

        assert sorted(snapshot.health) == [1, 2, 3]
        assert snapshot.health[2].failure_reason == "timeout of 20000ms exceeded"
        assert snapshot.health[3].online_count == 12
        assert (report.total, report.ok, report.failed, report.discarded) == (3, 2, 1, 0)
        assert snapshot.last_sweep_completed_at == report.completed_at

    asyncio.run(_run())


def test_results_land_before_sweep_completes(fake_prober_factory, roster_factory):
    async def _run():
        store = RosterStore()
        store.replace_roster(roster_factory([(1, "fast:1", ""), (2, "slow:1", "")]))
        prober = fake_prober_factory(delays={"slow:1": 0.2})
        coordinator = FetchCoordinator(store, prober)

        task = asyncio.create_task(coordinator.sweep())
        await asyncio.sleep(0.05)

        partial = store.snapshot()
        assert sorted(partial.health) == [1]
        assert partial.last_sweep_completed_at is None

        await task
        done = store.snapshot()
        assert sorted(done.health) == [1, 2]
        assert done.last_sweep_completed_at is not None

    asyncio.run(_run())


def test_in_flight_probes_are_bounded(fake_prober_factory, roster_factory):
    async def _run():
        store = RosterStore()
        entries = [(sid, f"10.0.0.{sid}:11451", "") for sid in range(1, 21)]
        store.replace_roster(roster_factory(entries))
        prober = fake_prober_factory(delays={address: 0.01 for _, address, _ in entries})
        coordinator = FetchCoordinator(store, prober, max_in_flight=4)

        report = await coordinator.sweep()

        assert report.total == 20
        assert len(prober.calls) == 20
        assert 1 <= prober.max_in_flight <= 4

    asyncio.run(_run())


def test_results_for_replaced_roster_are_discarded(fake_prober_factory, roster_factory):
    async def _run():
        store = RosterStore()
        store.replace_roster(roster_factory([(1, "old:1", "")]))
        prober = fake_prober_factory(delays={"old:1": 0.1})
        coordinator = FetchCoordinator(store, prober)

        task = asyncio.create_task(coordinator.sweep())
        await asyncio.sleep(0.02)
        store.replace_roster(roster_factory([(1, "new:1", "")]))
        report = await task

        assert report.discarded == 1
        assert dict(store.snapshot().health) == {}

    asyncio.run(_run())


def test_raising_prober_becomes_failed_result(fake_prober_factory, roster_factory, caplog):
    async def _run():
        store = RosterStore()
        store.replace_roster(roster_factory([(1, "boom:1", ""), (2, "fine:1", "")]))
        prober = fake_prober_factory({"boom:1": RuntimeError("kaboom")})
        coordinator = FetchCoordinator(store, prober)

        report = await coordinator.sweep()

        health = store.snapshot().health
        assert report.failed == 1
        assert not health[1].ok
        assert "kaboom" in health[1].failure_reason
        assert health[2].ok

    caplog.set_level("ERROR", logger="lanplay.serverlist.sweep")
    asyncio.run(_run())
    assert any(record.getMessage() == "probe raised" for record in caplog.records)


def test_last_sweep_timestamp_advances_each_sweep(fake_prober_factory, roster_factory):
    async def _run():
        store = RosterStore()
        store.replace_roster(roster_factory([(1, "a:1", "")]))
        coordinator = FetchCoordinator(store, fake_prober_factory())

        first = await coordinator.sweep()
        second = await coordinator.sweep()

        assert second.completed_at >= first.completed_at
        assert store.last_sweep_completed_at == second.completed_at

    asyncio.run(_run())


def test_refresh_replaces_roster_and_returns_warnings(fake_prober_factory):
    async def _run():
        store = RosterStore()
        prober = fake_prober_factory()
        coordinator = FetchCoordinator(store, prober)

        async def provider():
            return "1) a:1 X\n1) b:1 Y\n2) c:1 Z\n"

        warnings = await coordinator.refresh(provider)
        await asyncio.gather(*list(coordinator._background))

        snapshot = store.snapshot()
        assert list(warnings) == [DUPLICATE_ID_WARNING]
        assert snapshot.generation == 1
        assert snapshot.roster[1].address == "b:1"
        assert sorted(snapshot.health) == [1, 2]
        await coordinator.close()

    asyncio.run(_run())


def test_refresh_keeps_roster_when_source_fails(fake_prober_factory, roster_factory):
    async def _run():
        store = RosterStore()
        generation = store.replace_roster(roster_factory([(1, "a:1", "")]))
        coordinator = FetchCoordinator(store, fake_prober_factory())

        async def provider():
            raise SourceChannelNotFound(424242)

        with pytest.raises(SourceChannelNotFound):
            await coordinator.refresh(provider)

        snapshot = store.snapshot()
        assert snapshot.generation == generation
        assert snapshot.roster[1].address == "a:1"
        assert not coordinator._background

    asyncio.run(_run())


def test_probe_one_does_not_touch_the_cache(fake_prober_factory, roster_factory):
    async def _run():
        store = RosterStore()
        roster = roster_factory([(1, "a:1", "")])
        store.replace_roster(roster)
        prober = fake_prober_factory({"a:1": HealthResult.success(9, "v")})
        coordinator = FetchCoordinator(store, prober)

        result = await coordinator.probe_one(roster[1])

        assert result.online_count == 9
        assert dict(store.snapshot().health) == {}

    asyncio.run(_run())


def test_close_cancels_background_sweeps(fake_prober_factory, roster_factory):
    async def _run():
        store = RosterStore()
        store.replace_roster(roster_factory([(1, "slow:1", "")]))
        coordinator = FetchCoordinator(store, fake_prober_factory(delays={"slow:1": 5}))

        task = coordinator.schedule_sweep()
        await asyncio.sleep(0)
        await coordinator.close()

        assert task.cancelled()
        assert store.last_sweep_completed_at is None

    asyncio.run(_run())
