import time

import pytest

from bitaxe_monitor.devices import ConnectionState, View, ViewKind
from bitaxe_monitor.orchestration import MonitorSession, SessionThread
from bitaxe_monitor.telemetry import TelemetryLogger

from helpers import DummyClient, wait_for

STATS = {"hashRate": 550, "power": 12.0, "temp": 58}
DEVICES = [
    {"id": "a", "nickname": "Alpha", "address": "A"},
    {"id": "b", "nickname": "Beta", "address": "B"},
]


@pytest.mark.asyncio
async def test_session_polls_and_publishes_snapshots(store, clock):
    store.set("devices", DEVICES)
    client = DummyClient({"A": STATS, "B": STATS})
    session = MonitorSession(store, client=client, clock=clock)
    received = []
    session.add_listener(received.append)

    await session.start()
    try:
        await wait_for(lambda: session.latest_snapshot.cycles_completed == 1)
        snapshot = session.latest_snapshot
        assert snapshot.view.kind is ViewKind.FARM
        assert [device.label for device in snapshot.devices] == ["Alpha", "Beta"]
        assert snapshot.states["a"] is ConnectionState.ONLINE
        assert snapshot.online_count() == 2
        assert snapshot.device_series("a")["hashrate"][0].value == 550.0
        assert received == [{"a": STATS, "b": STATS}]

        # snapshots are copies
        snapshot.stats["a"]["hashRate"] = 0
        assert session.snapshot().stats["a"]["hashRate"] == 550

        session.remove_listener(received.append)
        session.refresh_now()
        await wait_for(lambda: session.latest_snapshot.cycles_completed == 2)
        assert len(received) == 1
    finally:
        await session.stop()
    await session.stop()
    assert not client.closed


@pytest.mark.asyncio
async def test_session_migrates_legacy_address(store, clock):
    store.set("bitaxe_ip", "10.0.0.5")
    session = MonitorSession(store, client=DummyClient({"10.0.0.5": STATS}), clock=clock)

    await session.start()
    try:
        snapshot = session.latest_snapshot
        (device,) = snapshot.devices
        assert device.address == "10.0.0.5"
        assert snapshot.view == View.single(device.id)
        assert store.get("devices")[0]["id"] == device.id
    finally:
        await session.stop()


@pytest.mark.asyncio
async def test_device_removal_updates_view_and_series(store, clock):
    store.set("devices", DEVICES)
    session = MonitorSession(store, client=DummyClient({"A": STATS, "B": STATS}), clock=clock)
    await session.start()
    try:
        await wait_for(lambda: session.latest_snapshot.cycles_completed == 1)

        store.set("devices", DEVICES[:1])

        snapshot = session.latest_snapshot
        assert snapshot.view == View.single("a")
        assert [device.id for device in snapshot.devices] == ["a"]
        assert snapshot.device_series("b") == {}
        assert session.scheduler.reconfigure_pending
    finally:
        await session.stop()


@pytest.mark.asyncio
async def test_cleared_address_clears_series(store, clock):
    store.set("devices", DEVICES)
    session = MonitorSession(store, client=DummyClient({"A": STATS, "B": STATS}), clock=clock)
    await session.start()
    try:
        await wait_for(lambda: session.latest_snapshot.cycles_completed == 1)
        store.set("devices", [DEVICES[0], dict(DEVICES[1], address="")])

        snapshot = session.latest_snapshot
        assert snapshot.states["b"] is ConnectionState.UNCONFIGURED
        assert all(samples == () for samples in snapshot.device_series("b").values())
    finally:
        await session.stop()


@pytest.mark.asyncio
async def test_pause_resume_and_window_changes(store, clock):
    store.set("devices", DEVICES[:1])
    store.set("paused", True)
    session = MonitorSession(store, client=DummyClient({"A": STATS}), clock=clock)
    await session.start()
    try:
        assert session.latest_snapshot.paused
        assert session.context.cycles_completed == 0

        session.set_paused(False)
        assert store.get_bool("paused") is False
        await wait_for(lambda: session.latest_snapshot.cycles_completed == 1)

        store.set("sparkline_window_minutes", 10)
        assert session.latest_snapshot.window_seconds == 600
    finally:
        await session.stop()


@pytest.mark.asyncio
async def test_selection_is_persisted(store, clock):
    store.set("devices", DEVICES)
    session = MonitorSession(store, client=DummyClient({"A": STATS, "B": STATS}), clock=clock)
    await session.start()
    try:
        session.select_device("b")
        assert session.latest_snapshot.view == View.single("b")
        assert store.get("selected_device_id") == "b"

        session.select_farm()
        assert session.latest_snapshot.view == View.farm()
    finally:
        await session.stop()


@pytest.mark.asyncio
async def test_snapshot_reports_busy_while_cycle_runs(store, clock):
    store.set("devices", DEVICES[:1])
    client = DummyClient({"A": STATS})
    gate = client.hold("A")
    session = MonitorSession(store, client=client, clock=clock)
    await session.start()
    try:
        await wait_for(lambda: session.latest_snapshot.busy)
        assert session.latest_snapshot.cycles_completed == 0

        gate.set()
        await wait_for(lambda: session.latest_snapshot.cycles_completed == 1)
        assert not session.latest_snapshot.busy
    finally:
        await session.stop()


@pytest.mark.asyncio
async def test_readdressed_device_series_is_cleared(store, clock):
    store.set("devices", DEVICES)
    session = MonitorSession(store, client=DummyClient({"A": STATS, "A2": STATS, "B": STATS}), clock=clock)
    await session.start()
    try:
        await wait_for(lambda: session.latest_snapshot.cycles_completed == 1)
        session.context.registry.update("a", address="A2")

        snapshot = session.latest_snapshot
        assert snapshot.device("a").address == "A2"
        assert snapshot.states["a"] is ConnectionState.CONNECTING
        assert all(samples == () for samples in snapshot.device_series("a").values())
        assert snapshot.device_series("b")["hashrate"]
    finally:
        await session.stop()


@pytest.mark.asyncio
async def test_display_settings_travel_with_snapshot(store, clock):
    store.set("devices", DEVICES[:1])
    session = MonitorSession(store, client=DummyClient({"A": STATS}), clock=clock)
    await session.start()
    try:
        assert session.latest_snapshot.settings["hashrate_unit"] == "auto"

        store.set("hashrate_unit", "GH/s")
        store.set("show_power", False)

        settings = session.latest_snapshot.settings
        assert settings["hashrate_unit"] == "GH/s"
        assert settings["show_power"] is False
        settings["hashrate_unit"] = "TH/s"
        assert store.get("hashrate_unit") == "GH/s"
    finally:
        await session.stop()


@pytest.mark.asyncio
async def test_session_closes_owned_client_and_logger(store, tmp_path):
    log = TelemetryLogger(tmp_path / "log.csv")
    session = MonitorSession(store, telemetry_logger=log)
    await session.start()
    client = session._client
    await session.stop()

    assert client.closed
    assert log._file is None


def test_session_thread_round_trip(store):
    store.set("devices", DEVICES)
    session = MonitorSession(store, client=DummyClient({"A": STATS, "B": STATS}))
    runner = SessionThread(session)
    runner.start()
    try:
        deadline = time.monotonic() + 5
        while runner.snapshot.cycles_completed < 1 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert runner.snapshot.cycles_completed >= 1

        assert runner.call(session.select_device, "a")
        while runner.snapshot.view != View.single("a") and time.monotonic() < deadline:
            time.sleep(0.01)
        assert runner.snapshot.view == View.single("a")
    finally:
        runner.stop()
    assert not runner.alive
    assert not runner.call(session.refresh_now)
