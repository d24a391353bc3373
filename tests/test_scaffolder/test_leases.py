"""Tests for per-target leases."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from filelock import FileLock

from scaffold_engine.errors import LeaseTimeout
from scaffold_engine.scaffolder.leases import TargetLeaseRegistry


pytestmark = pytest.mark.unit


@pytest.fixture
def registry(tmp_path: Path) -> TargetLeaseRegistry:
    return TargetLeaseRegistry(tmp_path / "locks", timeout=0.2)


class TestLease:
    @pytest.mark.asyncio
    async def test_lease_tracks_active_target(
        self, registry: TargetLeaseRegistry, tmp_path: Path
    ) -> None:
        target = tmp_path / "apps" / "web"
        async with registry.lease(target) as key:
            assert key == str(target.resolve())
            assert registry.is_active(target)
            assert registry.active_targets == [key]
        assert not registry.is_active(target)
        assert registry.active_targets == []

    @pytest.mark.asyncio
    async def test_lock_files_outside_target(
        self, registry: TargetLeaseRegistry, tmp_path: Path
    ) -> None:
        target = tmp_path / "apps" / "web"
        async with registry.lease(target):
            lock_file = registry.lock_file_for(target)
            assert lock_file.parent == tmp_path / "locks"
            assert lock_file.suffix == ".lock"
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_same_target_serialised(
        self, registry: TargetLeaseRegistry, tmp_path: Path
    ) -> None:
        target = tmp_path / "web"
        order: list[str] = []

        async def worker(name: str) -> None:
            async with registry.lease(target, timeout=2.0):
                order.append(f"{name}-start")
                await asyncio.sleep(0.05)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        # Each lease runs start->end without interleaving.
        assert order[0].split("-")[0] == order[1].split("-")[0]
        assert order[2].split("-")[0] == order[3].split("-")[0]

    @pytest.mark.asyncio
    async def test_different_targets_run_concurrently(
        self, registry: TargetLeaseRegistry, tmp_path: Path
    ) -> None:
        async with registry.lease(tmp_path / "one"):
            async with registry.lease(tmp_path / "two"):
                assert len(registry.active_targets) == 2

    @pytest.mark.asyncio
    async def test_busy_target_times_out(
        self, registry: TargetLeaseRegistry, tmp_path: Path
    ) -> None:
        target = tmp_path / "web"
        async with registry.lease(target):
            with pytest.raises(LeaseTimeout) as excinfo:
                async with registry.lease(target, timeout=0.05):
                    pass
        assert excinfo.value.code == "LEASE_TIMEOUT"
        # The first lease is released normally afterwards.
        async with registry.lease(target):
            pass

    @pytest.mark.asyncio
    async def test_held_file_lock_times_out(
        self, registry: TargetLeaseRegistry, tmp_path: Path
    ) -> None:
        target = tmp_path / "web"
        registry.lock_dir.mkdir(parents=True)
        other_process = FileLock(str(registry.lock_file_for(target)), thread_local=False)
        other_process.acquire()
        try:
            with pytest.raises(LeaseTimeout) as excinfo:
                async with registry.lease(target, timeout=0.1):
                    pass
            assert "lock_file" in excinfo.value.context
        finally:
            other_process.release()
        assert not registry.is_active(target)

    @pytest.mark.asyncio
    async def test_released_on_error(self, registry: TargetLeaseRegistry, tmp_path: Path) -> None:
        target = tmp_path / "web"
        with pytest.raises(RuntimeError):
            async with registry.lease(target):
                raise RuntimeError("boom")
        assert registry.active_targets == []
        async with registry.lease(target, timeout=0.05):
            pass

    @pytest.mark.asyncio
    async def test_idle_locks_dropped(self, registry: TargetLeaseRegistry, tmp_path: Path) -> None:
        for name in ("one", "two", "three"):
            async with registry.lease(tmp_path / name):
                assert registry.tracked_targets == 1
        assert registry.tracked_targets == 0

        target = tmp_path / "web"
        async with registry.lease(target):
            with pytest.raises(LeaseTimeout):
                async with registry.lease(target, timeout=0.05):
                    pass
            assert registry.tracked_targets == 1
        assert registry.tracked_targets == 0

    @pytest.mark.asyncio
    async def test_waiter_keeps_lock_alive(self, registry: TargetLeaseRegistry, tmp_path: Path) -> None:
        target = tmp_path / "web"
        order: list[str] = []

        async def waiter() -> None:
            async with registry.lease(target, timeout=2.0):
                order.append("waiter")

        async with registry.lease(target):
            task = asyncio.create_task(waiter())
            await asyncio.sleep(0.05)
            order.append("holder")
        await task

        assert order == ["holder", "waiter"]
        assert registry.tracked_targets == 0


def test_key_normalises_paths(tmp_path: Path) -> None:
    registry = TargetLeaseRegistry(tmp_path)
    assert registry.key_for(tmp_path / "a" / ".." / "b") == str((tmp_path / "b").resolve())
    assert registry.lock_file_for(tmp_path / "b") == registry.lock_file_for(tmp_path / "a" / ".." / "b")
