"""Tests for the idle-room reaper."""

import asyncio

import pytest

from backend import RoomRegistry
from reaper import Reaper

HOUR_MS = 60 * 60 * 1000


def test_reaps_old_empty_room(registry: RoomRegistry) -> None:
    room = registry.get_or_create("old")
    reaper = Reaper(registry, retention_seconds=2 * 60 * 60)

    evicted = reaper.reap(now_ms=room.created_at + 3 * HOUR_MS)

    assert evicted == ["OLD"]
    assert registry.get("OLD") is None
    assert room.closed


def test_keeps_recent_empty_room(registry: RoomRegistry) -> None:
    room = registry.get_or_create("fresh")
    reaper = Reaper(registry, retention_seconds=2 * 60 * 60)

    assert reaper.reap(now_ms=room.created_at + HOUR_MS) == []
    assert registry.get("FRESH") is room


def test_never_reaps_occupied_room(registry: RoomRegistry, make_connection) -> None:
    room = registry.get_or_create("busy")
    room.add_participant(make_connection(), "Ana")
    reaper = Reaper(registry, retention_seconds=2 * 60 * 60)

    assert reaper.reap(now_ms=room.created_at + 100 * HOUR_MS) == []
    assert registry.get("BUSY") is room


def test_reap_mixed_rooms(registry: RoomRegistry, make_connection) -> None:
    stale = registry.get_or_create("stale")
    registry.get_or_create("busy").add_participant(make_connection(), "Ana")
    reaper = Reaper(registry, retention_seconds=60)

    evicted = reaper.reap(now_ms=stale.created_at + HOUR_MS)

    assert evicted == ["STALE"]
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_background_task_sweeps_periodically(registry: RoomRegistry) -> None:
    registry.get_or_create("idle")
    reaper = Reaper(registry, interval_seconds=0.01, retention_seconds=0)

    reaper.start()
    assert reaper.running
    await asyncio.sleep(0.1)
    await reaper.stop()

    assert registry.get("IDLE") is None
    assert not reaper.running


@pytest.mark.asyncio
async def test_stop_without_start(registry: RoomRegistry) -> None:
    reaper = Reaper(registry)

    await reaper.stop()

    assert not reaper.running
