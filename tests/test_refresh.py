"""
Tests for RefreshCoordinator fan-out and join behavior.
"""

import asyncio
from uuid import uuid4

import pytest

from lcpkg.core.refresh import RefreshCoordinator
from lcpkg.models.link import Reachability
from lcpkg.network.prober import LinkProber
from lcpkg.storage.link_store import PackageFileStore


@pytest.fixture
def store(kv_store):
    return PackageFileStore(kv_store)


class TestRefreshAll:
    @pytest.mark.asyncio
    async def test_returns_after_every_probe_finished(
        self, store, package_host, session_pool
    ):
        prober = LinkProber(session_pool, timeout=5)
        coordinator = RefreshCoordinator(store, prober, max_concurrent=4)
        await store.add(str(package_host.make_url("/app.ipa")), "fast")
        await store.add(str(package_host.make_url("/slow/0.3")), "slow")
        await store.add(str(package_host.make_url("/missing.ipa")), "gone")

        task = asyncio.create_task(coordinator.refresh_all())
        await asyncio.sleep(0)
        assert coordinator.is_refreshing is True
        await task

        assert coordinator.is_refreshing is False
        states = [r.reachability for r in store.records]
        assert states == [
            Reachability.REACHABLE,
            Reachability.REACHABLE,
            Reachability.UNREACHABLE,
        ]
        assert all(r.last_probed_at is not None for r in store.records)

    @pytest.mark.asyncio
    async def test_failing_probe_does_not_stop_others(
        self, store, session_pool, monkeypatch
    ):
        prober = LinkProber(session_pool, timeout=5)
        bad = await store.add("https://example.invalid/bad.ipa", "bad")
        good = await store.add("https://example.invalid/good.ipa", "good")

        async def fake_probe(record):
            if record.id == bad.id:
                raise RuntimeError("probe exploded")
            return record.model_copy(
                update={"reachability": Reachability.REACHABLE, "size_bytes": 1}
            )

        monkeypatch.setattr(prober, "probe", fake_probe)
        coordinator = RefreshCoordinator(store, prober)

        await coordinator.refresh_all()

        assert coordinator.is_refreshing is False
        assert store.get(good.id).reachability is Reachability.REACHABLE
        assert store.get(bad.id).reachability is Reachability.UNKNOWN

    @pytest.mark.asyncio
    async def test_probes_run_concurrently(self, store, session_pool, monkeypatch):
        prober = LinkProber(session_pool, timeout=5)
        for i in range(4):
            await store.add(f"https://example.invalid/{i}.ipa", str(i))

        in_flight = 0
        peak = 0

        async def fake_probe(record):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.05)
            in_flight -= 1
            return record.model_copy(update={"reachability": Reachability.REACHABLE})

        monkeypatch.setattr(prober, "probe", fake_probe)

        await RefreshCoordinator(store, prober, max_concurrent=2).refresh_all()

        assert peak == 2
        assert all(r.is_reachable for r in store.records)


class TestRefreshOne:
    @pytest.mark.asyncio
    async def test_unknown_link_returns_none(self, store, session_pool):
        coordinator = RefreshCoordinator(store, LinkProber(session_pool))
        assert await coordinator.refresh_one(uuid4()) is None

    @pytest.mark.asyncio
    async def test_added_link_is_probed_in_background(
        self, store, package_host, session_pool
    ):
        coordinator = RefreshCoordinator(store, LinkProber(session_pool, timeout=5))
        store.on_added = coordinator.refresh_one

        record = await store.add(str(package_host.make_url("/small.ipa")), "small")
        await store.wait_for_pending()

        stored = store.get(record.id)
        assert stored.reachability is Reachability.REACHABLE
        assert stored.size_bytes == len(b"small package")
